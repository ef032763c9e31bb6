"""One-time, time-boxed password reset tokens.

Only an HMAC digest of the token is stored. Consumption is a single conditional
UPDATE keyed on that digest and its expiry, so two racing requests with the same
token cannot both succeed.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import case
from sqlalchemy.orm import Session

from app.core.errors import BadRequestError
from app.core.security import generate_reset_token, token_digest, utcnow
from app.models import Account
from app.schemas.reset import ResetDelivery
from app.services.credentials import CredentialVerifier

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)

INVALID_RESET_TOKEN_MESSAGE = "Invalid or expired reset token."


class PasswordResetFlow:
    """Issues reset tokens and consumes them exactly once."""

    def __init__(
        self,
        db: Session,
        settings: "Settings",
        credentials: CredentialVerifier,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.db = db
        self.settings = settings
        self.credentials = credentials
        self.clock = clock

    def _digest(self, raw_token: str) -> str:
        return token_digest(raw_token, self.settings.JWT_SECRET.get_secret_value())

    def request_reset(self, email: str) -> ResetDelivery | None:
        """
        Issue a reset token for the account with this email, if any.

        Token generation and hashing happen whether or not the email matches, so the
        work done does not reveal existence. Returns the delivery to hand to the
        mailer, or None on no match; callers respond identically in both cases.
        """
        token = generate_reset_token()
        digest = self._digest(token)
        expires_at = self.clock() + timedelta(minutes=self.settings.RESET_TOKEN_TTL_MINUTES)

        account = self.db.query(Account).filter(Account.email == email).first()
        if account is None or account.status in ("inactive", "blocked"):
            logger.info("Password reset requested with no eligible account")
            return None

        self.db.query(Account).filter(Account.id == account.id).update(
            {
                Account.password_reset_token_hash: digest,
                Account.password_reset_expires_at: expires_at,
            },
            synchronize_session=False,
        )
        self.db.commit()
        logger.info("Password reset token issued", extra={"account_id": account.id})
        return ResetDelivery(account_id=account.id, email=account.email, name=account.name, token=token)

    def consume(self, token: str, new_password: str) -> str:
        """
        Set a new password using a reset token; returns the account id.

        Clears the token, resets lockout state, revokes the refresh token and
        activates a pending account in the same UPDATE. Raises BadRequestError if
        the token is unknown, expired, already used, or the password is weak.
        """
        now = self.clock()
        digest = self._digest(token)
        account = (
            self.db.query(Account)
            .filter(
                Account.password_reset_token_hash == digest,
                Account.password_reset_expires_at > now,
            )
            .first()
        )
        if account is None:
            raise BadRequestError(INVALID_RESET_TOKEN_MESSAGE)

        self.credentials.validate_strength(new_password)
        password_hash = self.credentials.hash(new_password)

        updated = (
            self.db.query(Account)
            .filter(
                Account.id == account.id,
                Account.password_reset_token_hash == digest,
                Account.password_reset_expires_at > now,
            )
            .update(
                {
                    Account.password_hash: password_hash,
                    Account.password_reset_token_hash: None,
                    Account.password_reset_expires_at: None,
                    Account.failed_login_attempts: 0,
                    Account.locked_until: None,
                    Account.refresh_token_hash: None,
                    Account.refresh_token_expires_at: None,
                    Account.status: case(
                        (Account.status == "pending", "active"),
                        else_=Account.status,
                    ),
                },
                synchronize_session=False,
            )
        )
        self.db.commit()
        if updated != 1:
            raise BadRequestError(INVALID_RESET_TOKEN_MESSAGE)

        logger.info("Password reset completed", extra={"account_id": account.id})
        return account.id
