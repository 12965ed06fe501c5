"""
PermissionStore: query/mutation surface over the permission tables.

Pure I/O.  Precedence, validation and the management policies live in the
services built on top of this class.

Writes are flushed immediately so that later reads in the same request
observe them; nothing is committed until the surrounding ``batch()`` exits.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from portal_authz.models.catalog import Service, SubService, SubSubService
from portal_authz.models.job_permission import JobPermission
from portal_authz.models.user import User
from portal_authz.models.user_permission import UserPermission
from portal_authz.utils.permission_ids import PermissionId, PermissionLevel

logger = logging.getLogger(__name__)

PermissionRecord = JobPermission | UserPermission

CATALOG_MODELS = {
    PermissionLevel.service: Service,
    PermissionLevel.sub_service: SubService,
    PermissionLevel.sub_sub_service: SubSubService,
}


class PermissionStore:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    # ── Reads ────────────────────────────────────────────────────────────────

    async def get_user(self, user_id: str) -> User | None:
        return await self.db.get(User, user_id)

    async def find_by_tuple(
        self,
        model: type[PermissionRecord],
        permission_id: PermissionId,
        **extra_filter: Any,
    ) -> list[PermissionRecord]:
        """
        Return every *model* row whose three id columns equal the triple of
        *permission_id* exactly (the two unset columns must be NULL).
        """
        stmt = select(model)
        for field, value in permission_id.fields().items():
            column = getattr(model, field)
            stmt = stmt.where(column.is_(None) if value is None else column == value)
        for field, value in extra_filter.items():
            stmt = stmt.where(getattr(model, field) == value)
        result = await self.db.execute(stmt.order_by(model.id))
        return list(result.scalars().all())

    async def find_all_by_job(self, job_id: int) -> list[JobPermission]:
        result = await self.db.execute(
            select(JobPermission).where(JobPermission.job_id == job_id).order_by(JobPermission.id)
        )
        return list(result.scalars().all())

    async def find_all_by_user(self, user_id: str) -> list[UserPermission]:
        result = await self.db.execute(
            select(UserPermission).where(UserPermission.user_id == user_id).order_by(UserPermission.id)
        )
        return list(result.scalars().all())

    async def list_catalog_ids(self, level: PermissionLevel) -> list[int]:
        model = CATALOG_MODELS[PermissionLevel(level)]
        result = await self.db.execute(select(model.id).order_by(model.id))
        return list(result.scalars().all())

    # ── Writes ───────────────────────────────────────────────────────────────

    async def create(self, record: PermissionRecord) -> PermissionRecord:
        self.db.add(record)
        await self.db.flush()
        return record

    async def update(self, record: PermissionRecord, **patch: Any) -> PermissionRecord:
        for field, value in patch.items():
            setattr(record, field, value)
        await self.db.flush()
        return record

    async def delete(self, record: PermissionRecord) -> None:
        await self.db.delete(record)
        await self.db.flush()

    @asynccontextmanager
    async def batch(self) -> AsyncIterator["PermissionStore"]:
        """
        Unit of work for one management call.

        Commits every write made inside the block at once, or rolls all of
        them back if the block raises.
        """
        try:
            yield self
        except BaseException:
            await self.db.rollback()
            raise
        await self.db.commit()
