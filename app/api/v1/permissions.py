"""Permission queries and administration (role matrix, per-account overrides)."""

from typing import Annotated

from fastapi import APIRouter, Depends

from app.api.v1.auth import get_auth_context, get_session_lifecycle, require_top_tier
from app.schemas.permissions import OverridesUpdate, PermissionsResponse, RolePermissionsUpdate
from app.schemas.scope import AuthContext
from app.services.session import SessionLifecycle

router = APIRouter()


@router.get("/me", response_model=PermissionsResponse)
def my_permissions(
    context: Annotated[AuthContext, Depends(get_auth_context)],
    lifecycle: Annotated[SessionLifecycle, Depends(get_session_lifecycle)],
) -> PermissionsResponse:
    """Effective permissions of the caller, one entry per active resource."""
    return lifecycle.my_permissions(context.account_id)


@router.get("/accounts/{account_id}", response_model=PermissionsResponse)
def account_permissions(
    account_id: str,
    context: Annotated[AuthContext, Depends(get_auth_context)],
    lifecycle: Annotated[SessionLifecycle, Depends(get_session_lifecycle)],
) -> PermissionsResponse:
    """Effective permissions of any account (owner/admin) or of the caller."""
    return lifecycle.computed_permissions(account_id, context.role, context.account_id)


@router.put("/accounts/{account_id}/overrides", response_model=PermissionsResponse)
def update_overrides(
    account_id: str,
    body: OverridesUpdate,
    context: Annotated[AuthContext, Depends(require_top_tier)],
    lifecycle: Annotated[SessionLifecycle, Depends(get_session_lifecycle)],
) -> PermissionsResponse:
    """Upsert overrides; an entry with every flag null removes that override."""
    return lifecycle.set_overrides(context, account_id, body.overrides)


@router.get("/roles/{role}", response_model=PermissionsResponse)
def role_permissions(
    role: str,
    context: Annotated[AuthContext, Depends(require_top_tier)],
    lifecycle: Annotated[SessionLifecycle, Depends(get_session_lifecycle)],
) -> PermissionsResponse:
    return lifecycle.role_defaults(context, role)


@router.put("/roles/{role}", response_model=PermissionsResponse)
def update_role_permissions(
    role: str,
    body: RolePermissionsUpdate,
    context: Annotated[AuthContext, Depends(require_top_tier)],
    lifecycle: Annotated[SessionLifecycle, Depends(get_session_lifecycle)],
) -> PermissionsResponse:
    """Bulk upsert of a role's defaults; takes effect on the next request."""
    return lifecycle.set_role_defaults(context, role, body.permissions)
