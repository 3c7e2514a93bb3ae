"""Session and impersonation schemas."""

from typing import Optional

from pydantic import BaseModel, Field

ADMINISTRATOR_ROLE = "ADMINISTRATOR"


class SessionContext(BaseModel):
    """Effective caller context used for permission checks and row scoping."""

    auth_user_id: str = Field(..., alias="userId")
    app_user_id: str = Field(..., alias="appUserId")
    full_name: Optional[str] = Field(None, alias="fullName")
    email: Optional[str] = None
    role_code: Optional[str] = Field(None, alias="roleCode")
    role_name: Optional[str] = Field(None, alias="roleName")
    role_family: Optional[str] = Field(None, alias="roleFamily")
    permissions: list[str] = Field(default_factory=list)
    allowed_warehouse_codes: list[str] = Field(default_factory=list, alias="allowedWarehouseCodes")
    allowed_warehouse_ids: list[str] = Field(default_factory=list, alias="allowedWarehouseIds")
    can_see_all_warehouses: bool = Field(False, alias="canSeeAllWarehouses")
    impersonating: bool = False
    impersonation_denied: Optional[str] = Field(None, alias="impersonationDenied")
    real_app_user_id: Optional[str] = Field(None, alias="realAppUserId")

    class Config:
        populate_by_name = True

    def has_permission(self, key: str) -> bool:
        return key in self.permissions

    @property
    def is_administrator(self) -> bool:
        return (self.role_code or "").upper() == ADMINISTRATOR_ROLE


class ImpersonateRequest(BaseModel):
    """Start impersonating another app user."""

    user_id: str = Field(..., alias="userId", min_length=1, max_length=128)

    class Config:
        populate_by_name = True
