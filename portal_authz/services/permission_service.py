"""
PermissionService: permission resolution.

Combines the two permission sources of a caller:
  1. Job grants (JobPermission rows for the caller's job_id)
  2. Manual exceptions (UserPermission rows for the caller)

Precedence:
  - Super admins are allowed everything; neither source is consulted.
  - An exception for the exact (level, id) wins over any grant, in both
    directions (allow or deny).
  - Without an exception, a grant for the caller's job allows; no grant
    denies.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from portal_authz.auth import require_authenticated
from portal_authz.exceptions import UserNotFoundError
from portal_authz.models.job_permission import JobPermission
from portal_authz.models.user_permission import UserPermission
from portal_authz.services.permission_store import PermissionStore
from portal_authz.utils.cache import PermissionCache
from portal_authz.utils.permission_ids import (
    PermissionLevel,
    format_permission_id,
    parse_permission_id,
    record_permission_id,
)

logger = logging.getLogger(__name__)

GENERAL_ACCESS = "general_access"


class PermissionService:
    def __init__(self, db: AsyncSession, cache: PermissionCache | None = None) -> None:
        self.store = PermissionStore(db)
        self.cache = cache or PermissionCache()

    # ── Single check ─────────────────────────────────────────────────────────

    async def check_permission(self, caller_uid: str | None, permission_id: str) -> bool:
        """
        Return True if the caller is allowed *permission_id*.

        Raises AuthenticationError without a caller and UserNotFoundError
        when the caller has no user record.  An unparsable *permission_id*
        is simply not allowed.
        """
        caller_uid = require_authenticated(caller_uid)

        user = await self.store.get_user(caller_uid)
        if user is None:
            raise UserNotFoundError(caller_uid)

        if user.is_super_admin:
            return True

        parsed = parse_permission_id(permission_id)
        if parsed is None:
            logger.debug(f"Unparsable permission id {permission_id!r} for user {caller_uid}")
            return False

        exceptions = await self.store.find_by_tuple(UserPermission, parsed, user_id=caller_uid)
        if exceptions:
            return bool(exceptions[0].is_allowed)

        if user.job_id is None:
            return False

        grants = await self.store.find_by_tuple(JobPermission, parsed, job_id=user.job_id)
        return bool(grants)

    # ── Full effective set ───────────────────────────────────────────────────

    async def get_effective_permissions(self, caller_uid: str | None) -> dict[str, bool]:
        """
        Return ``{permission_id: allowed}`` for every permission the caller
        has a grant or an exception for, always including general_access.

        For super admins every catalog entry is allowed.  Exceptions are
        applied after grants and overwrite them.
        """
        caller_uid = require_authenticated(caller_uid)

        effective: dict[str, bool] = {GENERAL_ACCESS: True}

        # A caller without a directory record is treated as a user with no job
        user = await self.store.get_user(caller_uid)

        if user is not None and user.is_super_admin:
            for level in PermissionLevel:
                for numeric_id in await self.store.list_catalog_ids(level):
                    effective[format_permission_id(level, numeric_id)] = True
            return effective

        if user is not None and user.job_id is not None:
            for key in await self._job_grant_keys(user.job_id):
                effective[key] = True

        effective.update(await self._user_exception_map(caller_uid))
        return effective

    async def _job_grant_keys(self, job_id: int) -> list[str]:
        cached = await self.cache.get_job_grants(job_id)
        if cached is not None:
            return cached

        version = await self.cache.job_version(job_id)
        keys = []
        for grant in await self.store.find_all_by_job(job_id):
            key = record_permission_id(grant)
            if key is None:
                logger.warning(f"Skipping malformed job permission {grant.id} for job {job_id}")
                continue
            keys.append(key)

        await self.cache.set_job_grants(job_id, keys, version)
        return keys

    async def _user_exception_map(self, user_id: str) -> dict[str, bool]:
        cached = await self.cache.get_user_exceptions(user_id)
        if cached is not None:
            return cached

        version = await self.cache.user_version(user_id)
        exceptions: dict[str, bool] = {}
        for row in await self.store.find_all_by_user(user_id):
            key = record_permission_id(row)
            if key is None:
                logger.warning(f"Skipping malformed user permission {row.id} for user {user_id}")
                continue
            exceptions[key] = bool(row.is_allowed)

        await self.cache.set_user_exceptions(user_id, exceptions, version)
        return exceptions
