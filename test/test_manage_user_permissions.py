"""
Tests for UserPermissionService

The decision table, upsert semantics, the no-job and unknown target cases
and cache invalidation.
"""

import pytest

from portal_authz.exceptions import AuthenticationError
from portal_authz.models import UserPermission
from portal_authz.schemas.permissions import UserPermissionEntry
from portal_authz.services.permission_service import PermissionService
from portal_authz.services.user_permission_service import UserPermissionService
from portal_authz.utils.cache import PermissionCache
from utils.factories import create_job_permission, create_user, create_user_permission, fetch_rows
from utils.mocks import MockRedis


def entry(is_allowed: bool, **fields) -> UserPermissionEntry:
    return UserPermissionEntry(is_allowed=is_allowed, **fields)


class TestDecisionTable:
    async def test_allow_with_job_grant_stores_nothing(self, db, session_factory):
        await create_user(db, "regular-user-id", job_id=2)
        await create_job_permission(db, 2, service_id=1)

        await UserPermissionService(db).manage_user_permissions(
            "admin-user-id", "regular-user-id", [entry(True, service_id=1)]
        )

        assert await fetch_rows(session_factory, UserPermission) == []

    async def test_allow_without_job_grant_creates_allow(self, db, session_factory):
        await create_user(db, "regular-user-id", job_id=2)

        await UserPermissionService(db).manage_user_permissions(
            "admin-user-id", "regular-user-id", [entry(True, sub_service_id=5)]
        )

        rows = await fetch_rows(session_factory, UserPermission, user_id="regular-user-id")
        assert len(rows) == 1
        assert rows[0].sub_service_id == 5
        assert rows[0].service_id is None
        assert rows[0].sub_sub_service_id is None
        assert rows[0].is_allowed is True
        assert rows[0].is_manual_exception is True
        assert rows[0].created_by == "admin-user-id"

    async def test_deny_with_job_grant_creates_deny(self, db, session_factory):
        """Denying a granted permission stores a deny exception."""
        await create_user(db, "regular-user-id", job_id=2)
        await create_job_permission(db, 2, service_id=1)

        result = await UserPermissionService(db).manage_user_permissions(
            "admin-user-id", "regular-user-id", [entry(False, service_id=1)]
        )

        assert result == {"success": True}
        rows = await fetch_rows(session_factory, UserPermission, user_id="regular-user-id")
        assert [(r.service_id, r.is_allowed) for r in rows] == [(1, False)]
        assert await PermissionService(db).check_permission("regular-user-id", "s:1") is False

    async def test_deny_without_job_grant_stores_nothing(self, db, session_factory):
        await create_user(db, "regular-user-id", job_id=2)

        await UserPermissionService(db).manage_user_permissions(
            "admin-user-id", "regular-user-id", [entry(False, service_id=1)]
        )

        assert await fetch_rows(session_factory, UserPermission) == []

    async def test_redundant_allow_removes_stale_deny(self, db, session_factory):
        """Re-allowing a job grant clears the earlier deny."""
        await create_user(db, "regular-user-id", job_id=2)
        await create_job_permission(db, 2, service_id=1)
        await create_user_permission(db, "regular-user-id", is_allowed=False, service_id=1)

        await UserPermissionService(db).manage_user_permissions(
            "admin-user-id", "regular-user-id", [entry(True, service_id=1)]
        )

        assert await fetch_rows(session_factory, UserPermission) == []
        assert await PermissionService(db).check_permission("regular-user-id", "s:1") is True

    async def test_redundant_deny_removes_stale_allow(self, db, session_factory):
        await create_user(db, "regular-user-id", job_id=2)
        await create_user_permission(db, "regular-user-id", is_allowed=True, service_id=1)

        await UserPermissionService(db).manage_user_permissions(
            "admin-user-id", "regular-user-id", [entry(False, service_id=1)]
        )

        assert await fetch_rows(session_factory, UserPermission) == []


class TestUpsert:
    async def test_existing_exception_is_updated_in_place(self, db, session_factory):
        await create_user(db, "regular-user-id", job_id=2)
        await create_job_permission(db, 2, sub_sub_service_id=7)
        seeded = await create_user_permission(db, "regular-user-id", is_allowed=True, sub_sub_service_id=7)

        await UserPermissionService(db).manage_user_permissions(
            "admin-user-id", "regular-user-id", [entry(False, sub_sub_service_id=7)]
        )

        rows = await fetch_rows(session_factory, UserPermission, user_id="regular-user-id")
        assert len(rows) == 1
        assert rows[0].id == seeded.id
        assert rows[0].is_allowed is False
        assert rows[0].created_by == "admin-user-id"

    async def test_exceptions_match_exact_triple(self, db, session_factory):
        await create_user(db, "regular-user-id", job_id=2)
        await create_user_permission(db, "regular-user-id", is_allowed=True, service_id=1)

        await UserPermissionService(db).manage_user_permissions(
            "admin-user-id", "regular-user-id", [entry(True, sub_service_id=1)]
        )

        rows = await fetch_rows(session_factory, UserPermission, user_id="regular-user-id")
        assert sorted((r.service_id, r.sub_service_id) for r in rows) == [(None, 1), (1, None)]

    async def test_repeated_entry_last_value_wins(self, db, session_factory):
        await create_user(db, "regular-user-id", job_id=2)

        await UserPermissionService(db).manage_user_permissions(
            "admin-user-id",
            "regular-user-id",
            [entry(True, service_id=3), entry(True, service_id=3)],
        )
        rows = await fetch_rows(session_factory, UserPermission, user_id="regular-user-id")
        assert len(rows) == 1

        await UserPermissionService(db).manage_user_permissions(
            "admin-user-id",
            "regular-user-id",
            [entry(True, service_id=4), entry(False, service_id=4)],
        )
        rows = await fetch_rows(session_factory, UserPermission, user_id="regular-user-id", service_id=4)
        assert rows == []

    async def test_other_users_exceptions_untouched(self, db, session_factory):
        await create_user(db, "regular-user-id", job_id=2)
        await create_user_permission(db, "other-user-id", is_allowed=True, service_id=1)

        await UserPermissionService(db).manage_user_permissions(
            "admin-user-id", "regular-user-id", [entry(False, service_id=1)]
        )

        rows = await fetch_rows(session_factory, UserPermission)
        assert [(r.user_id, r.is_allowed) for r in rows] == [("other-user-id", True)]


class TestTargets:
    async def test_target_without_job_keeps_allow(self, db, session_factory):
        await create_user(db, "no-job-user-id", job_id=None)
        await create_job_permission(db, 2, service_id=1)

        await UserPermissionService(db).manage_user_permissions(
            "admin-user-id", "no-job-user-id", [entry(True, service_id=1), entry(False, service_id=2)]
        )

        rows = await fetch_rows(session_factory, UserPermission, user_id="no-job-user-id")
        assert [(r.service_id, r.is_allowed) for r in rows] == [(1, True)]

    async def test_unknown_target_is_treated_as_no_job(self, db, session_factory):
        result = await UserPermissionService(db).manage_user_permissions(
            "admin-user-id", "future-user-id", [entry(True, service_id=1)]
        )

        assert result == {"success": True}
        assert len(await fetch_rows(session_factory, UserPermission, user_id="future-user-id")) == 1

    async def test_empty_entries_succeed(self, db, session_factory):
        result = await UserPermissionService(db).manage_user_permissions("admin-user-id", "regular-user-id", [])

        assert result == {"success": True}
        assert await fetch_rows(session_factory, UserPermission) == []

    async def test_requires_caller(self, db, session_factory):
        with pytest.raises(AuthenticationError):
            await UserPermissionService(db).manage_user_permissions(
                None, "regular-user-id", [entry(True, service_id=1)]
            )

        assert await fetch_rows(session_factory, UserPermission) == []


class TestListUserExceptions:
    async def test_lists_rows_for_user(self, db):
        await create_user_permission(db, "regular-user-id", is_allowed=False, service_id=1)
        await create_user_permission(db, "regular-user-id", is_allowed=True, sub_sub_service_id=8)
        await create_user_permission(db, "other-user-id", is_allowed=True, service_id=1)

        rows = await UserPermissionService(db).list_user_exceptions("admin-user-id", "regular-user-id")

        assert [(r["permission_id"], r["is_allowed"]) for r in rows] == [("s:1", False), ("sss:8", True)]
        assert rows[0]["is_manual_exception"] is True

    async def test_requires_caller(self, db):
        with pytest.raises(AuthenticationError):
            await UserPermissionService(db).list_user_exceptions("", "regular-user-id")


class TestUserCacheInvalidation:
    async def test_user_entry_dropped_after_commit(self, db):
        await create_user(db, "regular-user-id", job_id=2)
        fake = MockRedis()
        fake.store["perm:user:regular-user-id"] = "{}"
        cache = PermissionCache(client=fake)

        await UserPermissionService(db, cache).manage_user_permissions(
            "admin-user-id", "regular-user-id", [entry(True, service_id=1)]
        )

        assert fake.commands("delete") == ["perm:user:regular-user-id"]
        assert "perm:user:regular-user-id" not in fake.store

        effective = await PermissionService(db, cache).get_effective_permissions("regular-user-id")
        assert effective == {"general_access": True, "s:1": True}
