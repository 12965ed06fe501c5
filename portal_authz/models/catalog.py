"""
Service catalog models.

Three flat tables, one per level of the permission hierarchy.  The engine
only enumerates their ids when building a super admin's permission set.
"""

from sqlalchemy import Column, Integer, String

from portal_authz.database import Base


class Service(Base):
    __tablename__ = "services"
    id = Column(Integer, primary_key=True, autoincrement=False)
    name = Column(String(255), nullable=True)


class SubService(Base):
    __tablename__ = "sub_services"
    id = Column(Integer, primary_key=True, autoincrement=False)
    service_id = Column(Integer, nullable=True, index=True)
    name = Column(String(255), nullable=True)


class SubSubService(Base):
    __tablename__ = "sub_sub_services"
    id = Column(Integer, primary_key=True, autoincrement=False)
    sub_service_id = Column(Integer, nullable=True, index=True)
    name = Column(String(255), nullable=True)
