"""
UserPermissionService: per-user manual exceptions.

Each requested entry is reconciled against the target user's job grants:

    is_allowed  job grants it  action
    ----------  -------------  ----------------------------------------
    True        yes            delete the exception (grant already allows)
    True        no             upsert exception is_allowed=True
    False       yes            upsert exception is_allowed=False
    False       no             delete the exception (nothing to deny)

Exceptions are matched on the exact (service, sub-service, sub-sub-service)
triple and upserted rather than appended, so a user has at most one
exception per (level, id).  All entries of one call commit together;
a later entry for the same tuple sees the effect of an earlier one.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from portal_authz.auth import require_authenticated, require_management_access
from portal_authz.models.job_permission import JobPermission
from portal_authz.models.user_permission import UserPermission
from portal_authz.schemas.permissions import UserPermissionEntry
from portal_authz.services.permission_store import PermissionStore
from portal_authz.utils.cache import PermissionCache
from portal_authz.utils.permission_ids import record_permission_id

logger = logging.getLogger(__name__)


class UserPermissionService:
    def __init__(self, db: AsyncSession, cache: PermissionCache | None = None) -> None:
        self.store = PermissionStore(db)
        self.cache = cache or PermissionCache()

    async def manage_user_permissions(
        self,
        caller_uid: str | None,
        target_user_id: str,
        entries: list[UserPermissionEntry],
    ) -> dict:
        caller_uid = await require_management_access(self.store, caller_uid)

        # A target without a directory record behaves like a user with no job
        target = await self.store.get_user(target_user_id)
        job_id = target.job_id if target is not None else None

        upserted = deleted = 0
        async with self.store.batch() as store:
            for entry in entries:
                permission_id = entry.permission_id()

                job_has_it = False
                if job_id is not None:
                    job_has_it = bool(await store.find_by_tuple(JobPermission, permission_id, job_id=job_id))

                existing = await store.find_by_tuple(UserPermission, permission_id, user_id=target_user_id)

                # An exception is only needed when it disagrees with the job
                if entry.is_allowed != job_has_it:
                    if existing:
                        for row in existing:
                            await store.update(row, is_allowed=entry.is_allowed, created_by=caller_uid)
                    else:
                        await store.create(
                            UserPermission(
                                user_id=target_user_id,
                                **permission_id.fields(),
                                is_allowed=entry.is_allowed,
                                is_manual_exception=True,
                                created_by=caller_uid,
                                created_at=datetime.now(timezone.utc),
                            )
                        )
                    upserted += 1
                else:
                    for row in existing:
                        await store.delete(row)
                        deleted += 1

        await self.cache.invalidate_user(target_user_id)
        logger.info(
            "User permission exceptions updated: user=%s entries=%s upserted=%s deleted=%s by=%s",
            target_user_id,
            len(entries),
            upserted,
            deleted,
            caller_uid,
            extra={"target_user_id": target_user_id, "caller_uid": caller_uid},
        )
        return {"success": True}

    async def list_user_exceptions(self, caller_uid: str | None, user_id: str) -> list[dict]:
        """List the manual exceptions stored for *user_id*."""
        require_authenticated(caller_uid)
        rows = await self.store.find_all_by_user(user_id)
        return [
            {
                "id": r.id,
                "user_id": r.user_id,
                "permission_id": record_permission_id(r),
                "service_id": r.service_id,
                "sub_service_id": r.sub_service_id,
                "sub_sub_service_id": r.sub_sub_service_id,
                "is_allowed": r.is_allowed,
                "is_manual_exception": r.is_manual_exception,
                "created_by": r.created_by,
                "created_at": r.created_at.isoformat() if r.created_at else None,
            }
            for r in rows
        ]
