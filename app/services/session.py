"""Session lifecycle: the operations the HTTP layer calls.

Composes CredentialVerifier, TokenService, PasswordResetFlow and PermissionResolver
over one request-scoped SQLAlchemy session. Holds no state between requests.
"""

import logging
import uuid
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import (
    INVALID_CREDENTIALS_MESSAGE,
    BadRequestError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
)
from app.core.security import TEMP_PASSWORD_LENGTH, generate_temp_password, utcnow
from app.models import Account
from app.schemas.account import (
    DEFAULT_REGISTRATION_ROLE,
    ROLE_VALUES,
    AccountSummary,
    AccountUpdate,
    ProvisionRequest,
    TemporaryPasswordResponse,
    normalize_email,
)
from app.schemas.auth import LoginResponse, TokenClaims, TokenPair
from app.schemas.permissions import (
    EffectivePermission,
    OverrideEntry,
    PermissionsResponse,
    RolePermissionEntry,
)
from app.schemas.reset import ResetDelivery
from app.schemas.scope import AuthContext
from app.services.credentials import CredentialVerifier
from app.services.password_reset import PasswordResetFlow
from app.services.permissions import PermissionResolver
from app.services.scope import (
    can_modify_account,
    city_filter,
    is_top_tier,
    role_rank,
    unit_filter,
    validate_tenant_ids,
)
from app.services.tokens import TokenService

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)

# Status-specific messages are only returned after the password has been verified.
_STATUS_MESSAGES = {
    "pending": "Account is pending approval.",
    "inactive": "Account is inactive.",
    "blocked": "Account is blocked.",
}


class SessionLifecycle:
    """Login, refresh, logout, password reset/change and permission queries."""

    def __init__(
        self,
        db: Session,
        settings: "Settings",
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.db = db
        self.settings = settings
        self.clock = clock
        self.credentials = CredentialVerifier(db, settings, clock=clock)
        self.tokens = TokenService(db, settings, clock=clock)
        self.resets = PasswordResetFlow(db, settings, self.credentials, clock=clock)
        self.permissions = PermissionResolver(db)

    def _get_account(self, account_id: str) -> Account | None:
        return self.db.query(Account).filter(Account.id == account_id).first()

    def _require_account(self, account_id: str) -> Account:
        account = self._get_account(account_id)
        if account is None:
            raise NotFoundError("Account not found.")
        return account

    # --- sessions ---

    def login(self, email: str, password: str) -> LoginResponse:
        """
        Authenticate and open a session.

        Lockout is checked before any hash work. A wrong password (or unknown email)
        always yields the same generic UnauthorizedError; the account status is only
        reported once the password is known to be correct.
        """
        account = self.db.query(Account).filter(Account.email == normalize_email(email)).first()
        if account is not None:
            self.credentials.check_lockout(account)

        if not self.credentials.verify(account, password):
            if account is not None:
                self.credentials.record_failure(account.id)
                logger.info("Login failed", extra={"account_id": account.id})
            else:
                logger.info("Login failed for unknown account")
            raise UnauthorizedError(INVALID_CREDENTIALS_MESSAGE)

        if account.status != "active":
            logger.info(
                "Login refused for non-active account",
                extra={"account_id": account.id, "status": account.status},
            )
            raise UnauthorizedError(_STATUS_MESSAGES.get(account.status, INVALID_CREDENTIALS_MESSAGE))

        pair, refresh_expires_at = self.tokens.issue_pair(account)
        self.db.query(Account).filter(Account.id == account.id).update(
            {
                Account.failed_login_attempts: 0,
                Account.locked_until: None,
                Account.last_login_at: self.clock(),
                Account.refresh_token_hash: self.tokens.digest(pair.refresh_token),
                Account.refresh_token_expires_at: refresh_expires_at,
            },
            synchronize_session=False,
        )
        self.db.commit()
        self.db.refresh(account)
        logger.info("Login succeeded", extra={"account_id": account.id, "role": account.role})
        return LoginResponse(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            account=AccountSummary.model_validate(account),
        )

    def refresh(self, refresh_token: str) -> TokenPair:
        return self.tokens.rotate(refresh_token)

    def logout(self, account_id: str) -> None:
        self.tokens.revoke(account_id)
        logger.info("Logout", extra={"account_id": account_id})

    # --- passwords ---

    def request_password_reset(self, email: str) -> ResetDelivery | None:
        """Returns the delivery for the mailer, or None. Callers must respond identically."""
        return self.resets.request_reset(normalize_email(email))

    def reset_password(self, token: str, new_password: str) -> None:
        self.resets.consume(token, new_password)

    def change_password(self, account_id: str, current_password: str, new_password: str) -> None:
        """Verify the current password, store the new one and end every session."""
        account = self._get_account(account_id)
        if account is None or not self.credentials.verify(account, current_password):
            raise UnauthorizedError("Current password is incorrect.")
        self.credentials.validate_strength(new_password)
        if self.credentials.verify(account, new_password):
            raise BadRequestError("New password must differ from the current password.")

        self.db.query(Account).filter(Account.id == account_id).update(
            {
                Account.password_hash: self.credentials.hash(new_password),
                Account.refresh_token_hash: None,
                Account.refresh_token_expires_at: None,
            },
            synchronize_session=False,
        )
        self.db.commit()
        logger.info("Password changed", extra={"account_id": account_id})

    # --- accounts ---

    def _create_account(self, **fields) -> Account:
        account = Account(id=str(uuid.uuid4()), **fields)
        self.db.add(account)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError("An account with this email already exists.") from e
        self.db.refresh(account)
        return account

    def _ensure_email_free(self, email: str) -> None:
        if self.db.query(Account.id).filter(Account.email == email).first() is not None:
            raise ConflictError("An account with this email already exists.")

    def register(self, email: str, password: str, name: str | None = None) -> AccountSummary:
        """Self-registration: a pending account awaiting administrator approval."""
        email = normalize_email(email)
        self.credentials.validate_strength(password)
        self._ensure_email_free(email)
        account = self._create_account(
            email=email,
            name=name,
            password_hash=self.credentials.hash(password),
            role=DEFAULT_REGISTRATION_ROLE,
            status="pending",
        )
        logger.info("Account registered", extra={"account_id": account.id})
        return AccountSummary.model_validate(account)

    def provision(self, actor: AuthContext, request: ProvisionRequest) -> AccountSummary:
        """
        Administrative account creation. The actor must be top tier and strictly
        outrank the role being granted; tenant ids must match the role.
        """
        if not actor.is_top_tier or role_rank(actor.role) <= role_rank(request.role):
            raise ForbiddenError("Not allowed to create an account with this role.")
        error = validate_tenant_ids(request.role, request.city_id, request.unit_id)
        if error:
            raise BadRequestError(error)

        password_hash = None
        if request.password:
            self.credentials.validate_strength(request.password)
            password_hash = self.credentials.hash(request.password)

        email = normalize_email(request.email)
        self._ensure_email_free(email)
        account = self._create_account(
            email=email,
            name=request.name,
            password_hash=password_hash,
            role=request.role,
            city_id=request.city_id,
            unit_id=request.unit_id,
            status="active",
        )
        logger.info(
            "Account provisioned",
            extra={"account_id": account.id, "role": account.role, "created_by": actor.account_id},
        )
        return AccountSummary.model_validate(account)

    def current_account(self, account_id: str) -> AccountSummary:
        return AccountSummary.model_validate(self._require_account(account_id))

    def get_account(self, actor: AuthContext, target_id: str) -> AccountSummary:
        if actor.account_id != target_id and not actor.is_top_tier:
            raise ForbiddenError("Not allowed to view this account.")
        return self.current_account(target_id)

    def update_account(
        self, actor: AuthContext, target_id: str, request: AccountUpdate
    ) -> AccountSummary:
        """
        Apply a partial update. Anyone may rename themself; role, status and tenant
        ids need a top-tier actor that may modify the target (and outranks any new
        role), never on their own account. The resulting role/tenant shape must be
        valid whenever it changes or the account is being activated. Moving to
        inactive or blocked revokes the refresh token.
        """
        changes = request.model_dump(exclude_unset=True)
        for key in ("role", "status"):
            if key in changes and changes[key] is None:
                del changes[key]
        if not changes:
            raise BadRequestError("No changes requested.")

        target = self._require_account(target_id)
        administrative = changes.keys() & {"role", "status", "city_id", "unit_id"}
        if administrative:
            if not actor.is_top_tier:
                raise ForbiddenError("Administrator role required.")
            if actor.account_id == target.id:
                raise BadRequestError("Cannot change the role, status or tenant of your own account.")
        elif actor.account_id != target.id and not actor.is_top_tier:
            raise ForbiddenError("Not allowed to modify this account.")
        if not can_modify_account(
            actor.role, actor.account_id, target.role, target.id, new_role=changes.get("role")
        ):
            raise ForbiddenError("Not allowed to modify this account.")

        if changes.keys() & {"role", "city_id", "unit_id"} or changes.get("status") == "active":
            error = validate_tenant_ids(
                changes.get("role", target.role),
                changes.get("city_id", target.city_id),
                changes.get("unit_id", target.unit_id),
            )
            if error:
                raise BadRequestError(error)

        values = {getattr(Account, key): value for key, value in changes.items()}
        if changes.get("status") in ("inactive", "blocked"):
            values[Account.refresh_token_hash] = None
            values[Account.refresh_token_expires_at] = None
        self.db.query(Account).filter(Account.id == target.id).update(
            values, synchronize_session=False
        )
        self.db.commit()
        self.db.refresh(target)
        logger.info(
            "Account updated",
            extra={
                "account_id": target.id,
                "changed_by": actor.account_id,
                "fields": sorted(changes),
            },
        )
        return AccountSummary.model_validate(target)

    def deactivate_account(self, actor: AuthContext, target_id: str) -> AccountSummary:
        """Soft delete: the account becomes inactive and its session ends. Rows are kept."""
        return self.update_account(actor, target_id, AccountUpdate(status="inactive"))

    def admin_reset_password(
        self, actor: AuthContext, target_id: str
    ) -> TemporaryPasswordResponse:
        """
        Replace another account's password with a generated temporary one.

        Clears lockout, any outstanding reset link and the refresh token. Status is
        left as it is. The temporary password is returned once; only its hash is stored.
        """
        if not actor.is_top_tier:
            raise ForbiddenError("Administrator role required.")
        target = self._require_account(target_id)
        if actor.account_id == target.id:
            raise BadRequestError("Use change-password for your own account.")
        if not can_modify_account(actor.role, actor.account_id, target.role, target.id):
            raise ForbiddenError("Not allowed to modify this account.")

        temporary = generate_temp_password(
            max(TEMP_PASSWORD_LENGTH, self.settings.PASSWORD_MIN_LENGTH)
        )
        self.db.query(Account).filter(Account.id == target.id).update(
            {
                Account.password_hash: self.credentials.hash(temporary),
                Account.failed_login_attempts: 0,
                Account.locked_until: None,
                Account.password_reset_token_hash: None,
                Account.password_reset_expires_at: None,
                Account.refresh_token_hash: None,
                Account.refresh_token_expires_at: None,
            },
            synchronize_session=False,
        )
        self.db.commit()
        logger.info(
            "Password reset by administrator",
            extra={"account_id": target.id, "changed_by": actor.account_id},
        )
        return TemporaryPasswordResponse(account_id=target.id, temporary_password=temporary)

    # --- authorization ---

    def _resolve(
        self, account_id: str, role: str, city_id: str | None, unit_id: str | None
    ) -> dict[str, EffectivePermission]:
        """Effective table; an account whose tenant ids do not fit its role gets no permissions."""
        error = validate_tenant_ids(role, city_id, unit_id)
        if error:
            logger.warning(
                "Permissions withheld from account with invalid tenant ids",
                extra={"account_id": account_id, "role": role, "reason": error},
            )
            return self.permissions.resolve(None, None)
        return self.permissions.resolve(account_id, role)

    def build_auth_context(self, claims: TokenClaims) -> AuthContext:
        """Identity, tenant scope and resolved permissions for one request."""
        return AuthContext(
            account_id=claims.account_id,
            email=claims.email,
            role=claims.role,
            city_id=claims.city_id,
            unit_id=claims.unit_id,
            is_top_tier=is_top_tier(claims.role),
            city_scope=city_filter(claims.role, claims.city_id),
            unit_scope=unit_filter(claims.role, claims.city_id, claims.unit_id),
            permissions=self._resolve(claims.account_id, claims.role, claims.city_id, claims.unit_id),
        )

    def my_permissions(self, account_id: str) -> PermissionsResponse:
        account = self._require_account(account_id)
        table = self._resolve(account.id, account.role, account.city_id, account.unit_id)
        return PermissionsResponse(
            account_id=account.id, role=account.role, permissions=list(table.values())
        )

    def computed_permissions(
        self, target_id: str, requester_role: str, requester_id: str
    ) -> PermissionsResponse:
        """Another account's effective table; top tier or self only."""
        if requester_id != target_id and not is_top_tier(requester_role):
            raise ForbiddenError("Not allowed to view this account's permissions.")
        return self.my_permissions(target_id)

    def role_defaults(self, actor: AuthContext, role: str) -> PermissionsResponse:
        self._check_role_admin(actor, role)
        table = self.permissions.role_defaults(role)
        return PermissionsResponse(role=role, permissions=list(table.values()))

    def set_role_defaults(
        self, actor: AuthContext, role: str, entries: list[RolePermissionEntry]
    ) -> PermissionsResponse:
        self._check_role_admin(actor, role)
        self.permissions.set_role_defaults(role, entries)
        logger.info(
            "Role defaults changed",
            extra={"role": role, "changed_by": actor.account_id},
        )
        return self.role_defaults(actor, role)

    def set_overrides(
        self, actor: AuthContext, target_id: str, overrides: list[OverrideEntry]
    ) -> PermissionsResponse:
        """Top tier only, and the actor must be allowed to modify the target account."""
        if not actor.is_top_tier:
            raise ForbiddenError("Administrator role required.")
        target = self._require_account(target_id)
        if not can_modify_account(actor.role, actor.account_id, target.role, target.id):
            raise ForbiddenError("Not allowed to modify this account.")
        self.permissions.set_overrides(target.id, overrides, granted_by=actor.account_id)
        return self.my_permissions(target.id)

    def _check_role_admin(self, actor: AuthContext, role: str) -> None:
        if not actor.is_top_tier:
            raise ForbiddenError("Administrator role required.")
        if role not in ROLE_VALUES:
            raise BadRequestError(f"Unknown role '{role}'.")
        if role_rank(role) > role_rank(actor.role):
            raise ForbiddenError("Not allowed to change permissions of a higher role.")
