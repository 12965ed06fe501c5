"""
Permission Routes

Route table (all under /api/v1/permissions prefix):
  POST /check                     is the caller allowed one permission id
  GET  /effective                 every effective permission of the caller
  POST /jobs/manage               add/remove grants of a job
  POST /users/manage              reconcile manual exceptions of a user
  GET  /jobs/{job_id}             list grants of a job
  GET  /users/{user_id}/exceptions  list manual exceptions of a user

Every route takes the caller from the bearer token.  A missing or invalid
token reaches the service as "no caller", which answers UNAUTHENTICATED.
"""

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from portal_authz.auth import get_caller_uid
from portal_authz.database import get_db
from portal_authz.schemas.permissions import (
    CheckPermissionRequest,
    CheckPermissionResponse,
    ManageJobPermissionsRequest,
    ManageUserPermissionsRequest,
    SuccessResponse,
)
from portal_authz.services.job_permission_service import JobPermissionService
from portal_authz.services.permission_service import PermissionService
from portal_authz.services.user_permission_service import UserPermissionService
from portal_authz.utils.cache import PermissionCache, get_permission_cache
from portal_authz.utils.permission_ids import MAX_NUMERIC_ID

router = APIRouter(tags=["Permissions"])


@router.post("/check", response_model=CheckPermissionResponse)
async def check_permission(
    data: CheckPermissionRequest,
    db: AsyncSession = Depends(get_db),
    cache: PermissionCache = Depends(get_permission_cache),
    caller_uid: str | None = Depends(get_caller_uid),
) -> dict:
    service = PermissionService(db, cache)
    allowed = await service.check_permission(caller_uid, data.permission_id)
    return {"isAllowed": allowed}


@router.get("/effective")
async def get_user_effective_permissions(
    db: AsyncSession = Depends(get_db),
    cache: PermissionCache = Depends(get_permission_cache),
    caller_uid: str | None = Depends(get_caller_uid),
) -> dict[str, bool]:
    """Return ``{permission_id: allowed}``; always contains ``general_access``."""
    service = PermissionService(db, cache)
    return await service.get_effective_permissions(caller_uid)


@router.post("/jobs/manage", response_model=SuccessResponse)
async def manage_job_permissions(
    data: ManageJobPermissionsRequest,
    db: AsyncSession = Depends(get_db),
    cache: PermissionCache = Depends(get_permission_cache),
    caller_uid: str | None = Depends(get_caller_uid),
) -> dict:
    """Remove, then add, job-level grants.  Unparsable ids are skipped."""
    service = JobPermissionService(db, cache)
    return await service.manage_job_permissions(
        caller_uid,
        data.job_id,
        data.permissions_to_add,
        data.permissions_to_remove,
    )


@router.post("/users/manage", response_model=SuccessResponse)
async def manage_user_permissions(
    data: ManageUserPermissionsRequest,
    db: AsyncSession = Depends(get_db),
    cache: PermissionCache = Depends(get_permission_cache),
    caller_uid: str | None = Depends(get_caller_uid),
) -> dict:
    """Create, update or delete manual exceptions so they only record deviations from the job."""
    service = UserPermissionService(db, cache)
    return await service.manage_user_permissions(caller_uid, data.user_id, data.permissions_to_process)


@router.get("/jobs/{job_id}")
async def list_job_permissions(
    job_id: int = Path(..., ge=0, le=MAX_NUMERIC_ID),
    db: AsyncSession = Depends(get_db),
    caller_uid: str | None = Depends(get_caller_uid),
) -> list[dict]:
    service = JobPermissionService(db)
    return await service.list_job_permissions(caller_uid, job_id)


@router.get("/users/{user_id}/exceptions")
async def list_user_exceptions(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    caller_uid: str | None = Depends(get_caller_uid),
) -> list[dict]:
    service = UserPermissionService(db)
    return await service.list_user_exceptions(caller_uid, user_id)
