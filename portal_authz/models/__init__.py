from .catalog import Service, SubService, SubSubService
from .job_permission import JobPermission
from .user import User
from .user_permission import UserPermission

__all__ = [
    "JobPermission",
    "Service",
    "SubService",
    "SubSubService",
    "User",
    "UserPermission",
]
