from .permissions import (
    CheckPermissionRequest,
    CheckPermissionResponse,
    ManageJobPermissionsRequest,
    ManageUserPermissionsRequest,
    SuccessResponse,
    UserPermissionEntry,
)

__all__ = [
    "CheckPermissionRequest",
    "CheckPermissionResponse",
    "ManageJobPermissionsRequest",
    "ManageUserPermissionsRequest",
    "SuccessResponse",
    "UserPermissionEntry",
]
