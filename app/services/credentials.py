"""Credential verification: bcrypt checks, failed-attempt counting and lockout windows.

Lockout state is persisted on the account row and mutated only with single
conditional UPDATE statements, so it stays correct across any number of
stateless worker processes. Nothing here logs a plaintext password or a hash.
"""

import logging
import math
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, case, literal
from sqlalchemy.orm import Session

from app.core.errors import AccountLockedError
from app.core.security import (
    as_utc,
    burn_password_check,
    hash_password,
    utcnow,
    validate_password_strength,
    verify_password,
)
from app.models import Account

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)


class CredentialVerifier:
    """Password hashing/verification plus store-backed lockout tracking."""

    def __init__(
        self,
        db: Session,
        settings: "Settings",
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.db = db
        self.settings = settings
        self.clock = clock

    def hash(self, plain_password: str) -> str:
        return hash_password(plain_password, rounds=self.settings.BCRYPT_ROUNDS)

    def validate_strength(self, plain_password: str) -> None:
        validate_password_strength(plain_password, min_length=self.settings.PASSWORD_MIN_LENGTH)

    def verify(self, account: Account | None, plain_password: str) -> bool:
        """
        Check a password against the account's hash.

        A missing account or hash still costs one bcrypt verification so response
        timing does not reveal whether the email exists.
        """
        if account is None or not account.password_hash:
            burn_password_check(plain_password, rounds=self.settings.BCRYPT_ROUNDS)
            return False
        return verify_password(plain_password, account.password_hash)

    def lockout_remaining(self, account: Account) -> timedelta | None:
        """Time left in the lockout window, or None when the account is not locked."""
        locked_until = as_utc(account.locked_until)
        if locked_until is None:
            return None
        remaining = locked_until - self.clock()
        if remaining <= timedelta(0):
            return None
        return remaining

    def check_lockout(self, account: Account) -> None:
        """Raise AccountLockedError while the lockout window is open. Does no hash work."""
        remaining = self.lockout_remaining(account)
        if remaining is None:
            return
        minutes = max(1, math.ceil(remaining.total_seconds() / 60))
        raise AccountLockedError(retry_after_minutes=minutes)

    def record_failure(self, account_id: str) -> None:
        """
        Atomically increment the failed-attempt counter and, when the new value
        reaches LOCKOUT_THRESHOLD, open a LOCKOUT_MINUTES window. The counter is
        left as-is; the next successful login resets it.
        """
        now = self.clock()
        lock_until = now + timedelta(minutes=self.settings.LOCKOUT_MINUTES)
        threshold = self.settings.LOCKOUT_THRESHOLD
        next_attempts = Account.failed_login_attempts + 1
        self.db.query(Account).filter(Account.id == account_id).update(
            {
                Account.failed_login_attempts: next_attempts,
                Account.locked_until: case(
                    (next_attempts >= threshold, literal(lock_until, DateTime(timezone=True))),
                    else_=Account.locked_until,
                ),
            },
            synchronize_session=False,
        )
        self.db.commit()

        attempts = (
            self.db.query(Account.failed_login_attempts).filter(Account.id == account_id).scalar()
        )
        if attempts is not None and attempts >= threshold:
            logger.warning(
                "Account locked after repeated failed logins",
                extra={
                    "account_id": account_id,
                    "failed_attempts": attempts,
                    "locked_minutes": self.settings.LOCKOUT_MINUTES,
                },
            )

    def record_success(self, account_id: str) -> None:
        """Reset the counter and clear any lockout."""
        self.db.query(Account).filter(Account.id == account_id).update(
            {Account.failed_login_attempts: 0, Account.locked_until: None},
            synchronize_session=False,
        )
        self.db.commit()
