"""Account administration: provisioning, updates, soft deactivation and admin password resets."""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from app.api.v1.auth import get_auth_context, get_session_lifecycle, require_top_tier
from app.schemas.account import (
    AccountSummary,
    AccountUpdate,
    ProvisionRequest,
    TemporaryPasswordResponse,
)
from app.schemas.scope import AuthContext
from app.services.session import SessionLifecycle

router = APIRouter()


@router.post("", response_model=AccountSummary, status_code=status.HTTP_201_CREATED)
def provision_account(
    body: ProvisionRequest,
    context: Annotated[AuthContext, Depends(require_top_tier)],
    lifecycle: Annotated[SessionLifecycle, Depends(get_session_lifecycle)],
) -> AccountSummary:
    """
    Create an active account. The caller must outrank the requested role; tenant
    ids must match it (regional: city_id, unit: city_id and unit_id).
    """
    return lifecycle.provision(context, body)


@router.get("/{account_id}", response_model=AccountSummary)
def get_account(
    account_id: str,
    context: Annotated[AuthContext, Depends(get_auth_context)],
    lifecycle: Annotated[SessionLifecycle, Depends(get_session_lifecycle)],
) -> AccountSummary:
    return lifecycle.get_account(context, account_id)


@router.patch("/{account_id}", response_model=AccountSummary)
def update_account(
    account_id: str,
    body: AccountUpdate,
    context: Annotated[AuthContext, Depends(get_auth_context)],
    lifecycle: Annotated[SessionLifecycle, Depends(get_session_lifecycle)],
) -> AccountSummary:
    """
    Partial update. Approving a pending account is a status change to active, and
    requires a role/tenant combination that is valid.
    """
    return lifecycle.update_account(context, account_id, body)


@router.delete("/{account_id}", response_model=AccountSummary)
def deactivate_account(
    account_id: str,
    context: Annotated[AuthContext, Depends(require_top_tier)],
    lifecycle: Annotated[SessionLifecycle, Depends(get_session_lifecycle)],
) -> AccountSummary:
    """Soft delete: status becomes inactive; the row is kept."""
    return lifecycle.deactivate_account(context, account_id)


@router.post("/{account_id}/reset-password", response_model=TemporaryPasswordResponse)
def admin_reset_password(
    account_id: str,
    context: Annotated[AuthContext, Depends(require_top_tier)],
    lifecycle: Annotated[SessionLifecycle, Depends(get_session_lifecycle)],
) -> TemporaryPasswordResponse:
    """Set a generated temporary password and return it once."""
    return lifecycle.admin_reset_password(context, account_id)
