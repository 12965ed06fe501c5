"""
JobPermission Model

A grant: every user whose job_id matches is allowed the permission at the
(level, id) addressed by the one non-null id column.

Rows are never updated in place.  JobPermissionService creates them
if absent and deletes them by exact tuple.
"""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Index, Integer, String

from portal_authz.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobPermission(Base):
    __tablename__ = "job_permissions"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    job_id = Column(Integer, nullable=False, index=True)

    # Exactly one of these is set on a well-formed row
    service_id = Column(Integer, nullable=True)
    sub_service_id = Column(Integer, nullable=True)
    sub_sub_service_id = Column(Integer, nullable=True)

    created_by = Column(String(128), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        Index("ix_job_perm_tuple", "job_id", "service_id", "sub_service_id", "sub_sub_service_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<JobPermission(id={self.id}, job={self.job_id}, s={self.service_id}, "
            f"ss={self.sub_service_id}, sss={self.sub_sub_service_id})>"
        )
