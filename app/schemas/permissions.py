"""Pydantic schemas for permission sets, role defaults and per-account overrides."""

from pydantic import BaseModel, Field

# Every action flag, in display order. can_generate_invoice is the finance-document action.
PERMISSION_FLAGS: tuple[str, ...] = (
    "can_view",
    "can_create",
    "can_edit",
    "can_delete",
    "can_export",
    "can_generate_invoice",
)


class PermissionSet(BaseModel):
    """Concrete flags for one resource; defaults are closed."""

    can_view: bool = False
    can_create: bool = False
    can_edit: bool = False
    can_delete: bool = False
    can_export: bool = False
    can_generate_invoice: bool = False


class EffectivePermission(PermissionSet):
    """Resolved flags for one resource plus whether an account override contributed."""

    resource_id: str
    resource_name: str = ""
    is_override: bool = False


class OverrideFlags(BaseModel):
    """Nullable flags: None inherits the role default, a bool replaces it."""

    can_view: bool | None = None
    can_create: bool | None = None
    can_edit: bool | None = None
    can_delete: bool | None = None
    can_export: bool | None = None
    can_generate_invoice: bool | None = None

    def is_empty(self) -> bool:
        return all(getattr(self, flag) is None for flag in PERMISSION_FLAGS)


class RolePermissionEntry(PermissionSet):
    resource_id: str = Field(..., min_length=1, max_length=100)


class OverrideEntry(OverrideFlags):
    resource_id: str = Field(..., min_length=1, max_length=100)


class RolePermissionsUpdate(BaseModel):
    permissions: list[RolePermissionEntry] = Field(..., max_length=500)


class OverridesUpdate(BaseModel):
    overrides: list[OverrideEntry] = Field(..., max_length=500)


class PermissionsResponse(BaseModel):
    """Resolved permission table for an account or a role."""

    account_id: str | None = None
    role: str
    permissions: list[EffectivePermission]
