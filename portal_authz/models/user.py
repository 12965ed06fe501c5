from sqlalchemy import Boolean, Column, Integer, String

from portal_authz.database import Base


# Read-only here; the user directory owns these rows
class User(Base):
    __tablename__ = "users"
    id = Column(String(128), primary_key=True)
    name = Column(String(255), nullable=True)
    is_super_admin = Column(Boolean, nullable=False, default=False)
    job_id = Column(Integer, nullable=True, index=True)

    def __repr__(self) -> str:
        return f"<User(id={self.id!r}, job_id={self.job_id}, is_super_admin={self.is_super_admin})>"
