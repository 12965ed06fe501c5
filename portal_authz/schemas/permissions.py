from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool, model_validator

from portal_authz.utils.permission_ids import MAX_NUMERIC_ID, PermissionId, from_fields


class CheckPermissionRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    # Any string is accepted here; an unparsable one resolves to "not allowed"
    permission_id: str = Field(..., description="Permission id, e.g. 's:1', 'ss:10' or 'sss:789'")


class CheckPermissionResponse(BaseModel):
    isAllowed: bool


class ManageJobPermissionsRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    job_id: int = Field(..., ge=0, le=MAX_NUMERIC_ID, description="Job whose grants are changed")
    permissions_to_add: list[str] = Field(default_factory=list, description="Permission ids to grant")
    permissions_to_remove: list[str] = Field(default_factory=list, description="Permission ids to revoke")


class UserPermissionEntry(BaseModel):
    """One requested exception: exactly one id field set, plus the desired outcome."""

    model_config = ConfigDict(extra="forbid")

    service_id: Optional[int] = Field(None, ge=0, le=MAX_NUMERIC_ID)
    sub_service_id: Optional[int] = Field(None, ge=0, le=MAX_NUMERIC_ID)
    sub_sub_service_id: Optional[int] = Field(None, ge=0, le=MAX_NUMERIC_ID)
    is_allowed: StrictBool = Field(..., description="True = allow, False = deny")

    @model_validator(mode="after")
    def check_exactly_one_id(self) -> "UserPermissionEntry":
        ids = [self.service_id, self.sub_service_id, self.sub_sub_service_id]
        if sum(value is not None for value in ids) != 1:
            raise ValueError("Exactly one of service_id, sub_service_id, sub_sub_service_id must be set")
        return self

    def permission_id(self) -> PermissionId:
        return from_fields(self.service_id, self.sub_service_id, self.sub_sub_service_id)


class ManageUserPermissionsRequest(BaseModel):
    user_id: str = Field(..., min_length=1, description="User whose exceptions are changed")
    permissions_to_process: list[UserPermissionEntry] = Field(default_factory=list)

    model_config = ConfigDict(
        extra="forbid",
        json_schema_extra={
            "example": {
                "user_id": "target-user-id",
                "permissions_to_process": [
                    {"service_id": 5, "sub_service_id": None, "sub_sub_service_id": None, "is_allowed": True},
                    {"service_id": None, "sub_service_id": 10, "sub_sub_service_id": None, "is_allowed": False},
                ],
            }
        },
    )


class SuccessResponse(BaseModel):
    success: bool = True
