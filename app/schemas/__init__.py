"""Pydantic request/response schemas."""

from app.schemas.account import (
    AccountSummary,
    AccountUpdate,
    ProvisionRequest,
    RegisterRequest,
    Role,
    TemporaryPasswordResponse,
)
from app.schemas.auth import (
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    PasswordResetRequest,
    RefreshRequest,
    ResetPasswordRequest,
    TokenClaims,
    TokenPair,
)
from app.schemas.health import HealthResponse
from app.schemas.permissions import (
    EffectivePermission,
    OverrideEntry,
    OverridesUpdate,
    PermissionSet,
    PermissionsResponse,
    RolePermissionEntry,
    RolePermissionsUpdate,
)
from app.schemas.reset import ResetDelivery
from app.schemas.scope import AuthContext, ScopePredicate

__all__ = [
    "AccountSummary",
    "AccountUpdate",
    "AuthContext",
    "ChangePasswordRequest",
    "EffectivePermission",
    "HealthResponse",
    "LoginRequest",
    "LoginResponse",
    "MessageResponse",
    "OverrideEntry",
    "OverridesUpdate",
    "PasswordResetRequest",
    "PermissionSet",
    "PermissionsResponse",
    "ProvisionRequest",
    "RefreshRequest",
    "RegisterRequest",
    "ResetDelivery",
    "ResetPasswordRequest",
    "Role",
    "RolePermissionEntry",
    "RolePermissionsUpdate",
    "ScopePredicate",
    "TemporaryPasswordResponse",
    "TokenClaims",
    "TokenPair",
]
