"""
UserPermission Model

A per-user exception.  For this user and this exact (level, id), the
effective permission is forced to ``is_allowed`` regardless of any job
grant.  UserPermissionService keeps at most one row per
(user_id, level, id) by updating or deleting instead of appending.
"""

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String

from portal_authz.database import Base
from portal_authz.models.job_permission import _utcnow


class UserPermission(Base):
    __tablename__ = "user_permissions"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(String(128), nullable=False, index=True)

    service_id = Column(Integer, nullable=True)
    sub_service_id = Column(Integer, nullable=True)
    sub_sub_service_id = Column(Integer, nullable=True)

    # True = explicit allow, False = explicit deny
    is_allowed = Column(Boolean, nullable=False)
    is_manual_exception = Column(Boolean, nullable=False, default=True)

    created_by = Column(String(128), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        Index("ix_user_perm_tuple", "user_id", "service_id", "sub_service_id", "sub_sub_service_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<UserPermission(id={self.id}, user={self.user_id!r}, s={self.service_id}, "
            f"ss={self.sub_service_id}, sss={self.sub_sub_service_id}, allowed={self.is_allowed})>"
        )
