"""Session routes and the auth dependencies (get_current_claims, get_auth_context, require_top_tier)."""

from collections.abc import Callable
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.database import get_db
from app.core.errors import ForbiddenError, UnauthorizedError
from app.core.security import utcnow
from app.schemas.account import AccountSummary, RegisterRequest
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
from app.schemas.scope import AuthContext
from app.services.email import ResetMailer, deliver_reset_email
from app.services.session import SessionLifecycle

router = APIRouter()
security = HTTPBearer(auto_error=False)

RESET_REQUESTED_MESSAGE = "If an account exists for this email, a password reset link has been sent."


def get_clock() -> Callable[[], datetime]:
    """Dependency: time source for token and lockout checks (overridden in tests)."""
    return utcnow


def get_session_lifecycle(
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
    clock: Annotated[Callable[[], datetime], Depends(get_clock)],
) -> SessionLifecycle:
    return SessionLifecycle(db, settings, clock=clock)


def get_mailer(settings: Annotated[Settings, Depends(get_settings)]) -> ResetMailer:
    return ResetMailer(settings)


def get_current_claims(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    lifecycle: Annotated[SessionLifecycle, Depends(get_session_lifecycle)],
) -> TokenClaims:
    """Dependency: require a valid Bearer access token. Raises 401 if missing or invalid."""
    if credentials is None:
        raise UnauthorizedError("Not authenticated")
    return lifecycle.tokens.verify_access_token(credentials.credentials)


def get_auth_context(
    claims: Annotated[TokenClaims, Depends(get_current_claims)],
    lifecycle: Annotated[SessionLifecycle, Depends(get_session_lifecycle)],
) -> AuthContext:
    """Dependency: identity, tenant scope and permissions for downstream handlers."""
    return lifecycle.build_auth_context(claims)


def require_top_tier(
    context: Annotated[AuthContext, Depends(get_auth_context)],
) -> AuthContext:
    """Dependency: require an owner or admin. Raises 403 otherwise."""
    if not context.is_top_tier:
        raise ForbiddenError("Administrator role required.")
    return context


@router.post("/login", response_model=LoginResponse)
def login(
    body: LoginRequest,
    lifecycle: Annotated[SessionLifecycle, Depends(get_session_lifecycle)],
) -> LoginResponse:
    """
    Authenticate with email and password; returns an access/refresh pair.
    Include the access token in the Authorization header as: Bearer <access_token>
    """
    return lifecycle.login(body.email, body.password)


@router.post("/refresh", response_model=TokenPair)
def refresh(
    body: RefreshRequest,
    lifecycle: Annotated[SessionLifecycle, Depends(get_session_lifecycle)],
) -> TokenPair:
    """Exchange the current refresh token for a new pair; the old one stops working."""
    return lifecycle.refresh(body.refresh_token)


@router.post("/logout", response_model=MessageResponse)
def logout(
    claims: Annotated[TokenClaims, Depends(get_current_claims)],
    lifecycle: Annotated[SessionLifecycle, Depends(get_session_lifecycle)],
) -> MessageResponse:
    lifecycle.logout(claims.account_id)
    return MessageResponse(message="Logged out.")


@router.post("/request-reset", response_model=MessageResponse)
def request_reset(
    body: PasswordResetRequest,
    background_tasks: BackgroundTasks,
    lifecycle: Annotated[SessionLifecycle, Depends(get_session_lifecycle)],
    mailer: Annotated[ResetMailer, Depends(get_mailer)],
) -> MessageResponse:
    """Always answers the same way, whether or not the email belongs to an account."""
    delivery = lifecycle.request_password_reset(body.email)
    if delivery is not None:
        background_tasks.add_task(deliver_reset_email, mailer, delivery)
    return MessageResponse(message=RESET_REQUESTED_MESSAGE)


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(
    body: ResetPasswordRequest,
    lifecycle: Annotated[SessionLifecycle, Depends(get_session_lifecycle)],
) -> MessageResponse:
    lifecycle.reset_password(body.token, body.new_password)
    return MessageResponse(message="Password has been reset. Please log in.")


@router.post("/change-password", response_model=MessageResponse)
def change_password(
    body: ChangePasswordRequest,
    claims: Annotated[TokenClaims, Depends(get_current_claims)],
    lifecycle: Annotated[SessionLifecycle, Depends(get_session_lifecycle)],
) -> MessageResponse:
    """Change the caller's password; every refresh token is revoked."""
    lifecycle.change_password(claims.account_id, body.current_password, body.new_password)
    return MessageResponse(message="Password changed. Please log in again.")


@router.post("/register", response_model=AccountSummary, status_code=status.HTTP_201_CREATED)
def register(
    body: RegisterRequest,
    lifecycle: Annotated[SessionLifecycle, Depends(get_session_lifecycle)],
) -> AccountSummary:
    """Create a pending account; it can log in once an administrator activates it."""
    return lifecycle.register(body.email, body.password, body.name)


@router.get("/me", response_model=AccountSummary)
def me(
    claims: Annotated[TokenClaims, Depends(get_current_claims)],
    lifecycle: Annotated[SessionLifecycle, Depends(get_session_lifecycle)],
) -> AccountSummary:
    return lifecycle.current_account(claims.account_id)
