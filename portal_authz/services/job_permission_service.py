"""
JobPermissionService: batch add/remove of job-level grants.

The remove phase runs before the add phase, so an id requested in both
lists exists afterwards.  Unparsable ids in either list are skipped so the
valid members of a partially invalid batch are still applied.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from portal_authz.auth import require_authenticated, require_management_access
from portal_authz.models.job_permission import JobPermission
from portal_authz.services.permission_store import PermissionStore
from portal_authz.utils.cache import PermissionCache
from portal_authz.utils.permission_ids import parse_permission_id, record_permission_id

logger = logging.getLogger(__name__)


class JobPermissionService:
    def __init__(self, db: AsyncSession, cache: PermissionCache | None = None) -> None:
        self.store = PermissionStore(db)
        self.cache = cache or PermissionCache()

    async def manage_job_permissions(
        self,
        caller_uid: str | None,
        job_id: int,
        permissions_to_add: list[str],
        permissions_to_remove: list[str],
    ) -> dict:
        caller_uid = await require_management_access(self.store, caller_uid)

        removed = added = skipped = 0
        async with self.store.batch() as store:
            for raw in permissions_to_remove:
                parsed = parse_permission_id(raw)
                if parsed is None:
                    logger.debug(f"Skipping unparsable permission id {raw!r} for job {job_id}")
                    skipped += 1
                    continue
                for grant in await store.find_by_tuple(JobPermission, parsed, job_id=job_id):
                    await store.delete(grant)
                    removed += 1

            for raw in permissions_to_add:
                parsed = parse_permission_id(raw)
                if parsed is None:
                    logger.debug(f"Skipping unparsable permission id {raw!r} for job {job_id}")
                    skipped += 1
                    continue
                if await store.find_by_tuple(JobPermission, parsed, job_id=job_id):
                    continue
                await store.create(
                    JobPermission(
                        job_id=job_id,
                        **parsed.fields(),
                        created_by=caller_uid,
                        created_at=datetime.now(timezone.utc),
                    )
                )
                added += 1

        await self.cache.invalidate_job(job_id)
        logger.info(
            "Job permissions updated: job=%s added=%s removed=%s skipped=%s by=%s",
            job_id,
            added,
            removed,
            skipped,
            caller_uid,
            extra={"job_id": job_id, "caller_uid": caller_uid},
        )
        return {"success": True}

    async def list_job_permissions(self, caller_uid: str | None, job_id: int) -> list[dict]:
        """List every grant stored for *job_id*, malformed rows included."""
        require_authenticated(caller_uid)
        rows = await self.store.find_all_by_job(job_id)
        return [
            {
                "id": r.id,
                "job_id": r.job_id,
                "permission_id": record_permission_id(r),
                "service_id": r.service_id,
                "sub_service_id": r.sub_service_id,
                "sub_sub_service_id": r.sub_sub_service_id,
                "created_by": r.created_by,
                "created_at": r.created_at.isoformat() if r.created_at else None,
            }
            for r in rows
        ]
