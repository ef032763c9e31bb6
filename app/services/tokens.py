"""Access/refresh token issuance, verification, rotation and revocation.

Access tokens are verified statelessly (signature + expiry). Refresh tokens follow
a single-active-token design: the account row holds the digest of the one valid
refresh token, and rotation is a compare-and-set UPDATE on that digest, so a
superseded token (or a second concurrent rotation of the same token) is rejected.
"""

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import jwt
from sqlalchemy.orm import Session

from app.core.errors import UnauthorizedError
from app.core.security import (
    TOKEN_TYPE_ACCESS,
    TOKEN_TYPE_REFRESH,
    decode_token,
    encode_token,
    token_digest,
    utcnow,
)
from app.models import Account
from app.schemas.auth import TokenClaims, TokenPair

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)

INVALID_TOKEN_MESSAGE = "Invalid or expired token"
INVALID_REFRESH_MESSAGE = "Invalid or expired refresh token"


def claims_for(account: Account) -> dict[str, Any]:
    """Token claims carried by both token types for an account."""
    return {
        "sub": account.id,
        "email": account.email,
        "role": account.role,
        "city_id": account.city_id,
        "unit_id": account.unit_id,
    }


class TokenService:
    """Signs and verifies JWTs and keeps the stored refresh token in step."""

    def __init__(
        self,
        db: Session,
        settings: "Settings",
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.db = db
        self.settings = settings
        self.clock = clock

    @property
    def _access_secret(self) -> str:
        return self.settings.JWT_SECRET.get_secret_value()

    @property
    def _refresh_secret(self) -> str:
        return self.settings.JWT_REFRESH_SECRET.get_secret_value()

    def digest(self, raw_token: str) -> str:
        return token_digest(raw_token, self._refresh_secret)

    def issue_access_token(self, claims: dict[str, Any]) -> str:
        token, _ = encode_token(
            claims,
            TOKEN_TYPE_ACCESS,
            self._access_secret,
            self.settings.JWT_ALGORITHM,
            timedelta(minutes=self.settings.ACCESS_TOKEN_EXPIRE_MINUTES),
            self.clock(),
        )
        return token

    def issue_refresh_token(self, claims: dict[str, Any]) -> tuple[str, datetime]:
        """Return (token, expires_at)."""
        return encode_token(
            claims,
            TOKEN_TYPE_REFRESH,
            self._refresh_secret,
            self.settings.JWT_ALGORITHM,
            timedelta(days=self.settings.REFRESH_TOKEN_EXPIRE_DAYS),
            self.clock(),
        )

    def verify_access_token(self, token: str) -> TokenClaims:
        """Signature, expiry and type check only; no store round-trip."""
        try:
            payload = decode_token(
                token,
                TOKEN_TYPE_ACCESS,
                self._access_secret,
                self.settings.JWT_ALGORITHM,
                self.clock(),
            )
            return TokenClaims(
                account_id=str(payload["sub"]),
                email=payload.get("email") or "",
                role=payload["role"],
                city_id=payload.get("city_id"),
                unit_id=payload.get("unit_id"),
                issued_at=datetime.fromtimestamp(payload["iat"], tz=UTC),
                expires_at=datetime.fromtimestamp(payload["exp"], tz=UTC),
            )
        except (jwt.PyJWTError, KeyError, ValueError, TypeError) as e:
            raise UnauthorizedError(INVALID_TOKEN_MESSAGE) from e

    def issue_pair(self, account: Account) -> tuple[TokenPair, datetime]:
        """New access + refresh tokens for an account; returns (pair, refresh_expires_at)."""
        claims = claims_for(account)
        access = self.issue_access_token(claims)
        refresh, refresh_expires_at = self.issue_refresh_token(claims)
        return TokenPair(access_token=access, refresh_token=refresh), refresh_expires_at

    def rotate(self, refresh_token: str) -> TokenPair:
        """
        Exchange a refresh token for a new pair.

        The presented token must be well-signed, unexpired, and equal to the one
        currently stored on an active account whose stored expiry has not passed.
        The swap is a single conditional UPDATE; zero rows means stale or replayed.
        """
        try:
            payload = decode_token(
                refresh_token,
                TOKEN_TYPE_REFRESH,
                self._refresh_secret,
                self.settings.JWT_ALGORITHM,
                self.clock(),
            )
        except jwt.PyJWTError as e:
            raise UnauthorizedError(INVALID_REFRESH_MESSAGE) from e

        account_id = str(payload["sub"])
        account = self.db.query(Account).filter(Account.id == account_id).first()
        if account is None:
            raise UnauthorizedError(INVALID_REFRESH_MESSAGE)

        now = self.clock()
        pair, refresh_expires_at = self.issue_pair(account)
        updated = (
            self.db.query(Account)
            .filter(
                Account.id == account_id,
                Account.status == "active",
                Account.refresh_token_hash == self.digest(refresh_token),
                Account.refresh_token_expires_at > now,
            )
            .update(
                {
                    Account.refresh_token_hash: self.digest(pair.refresh_token),
                    Account.refresh_token_expires_at: refresh_expires_at,
                },
                synchronize_session=False,
            )
        )
        self.db.commit()
        if updated != 1:
            logger.warning(
                "Refresh token rejected (stale, replayed or revoked)",
                extra={"account_id": account_id},
            )
            raise UnauthorizedError(INVALID_REFRESH_MESSAGE)
        return pair

    def store_refresh_token(
        self, account_id: str, refresh_token: str, expires_at: datetime
    ) -> None:
        """Overwrite the account's single active refresh token (invalidates the previous one)."""
        self.db.query(Account).filter(Account.id == account_id).update(
            {
                Account.refresh_token_hash: self.digest(refresh_token),
                Account.refresh_token_expires_at: expires_at,
            },
            synchronize_session=False,
        )
        self.db.commit()

    def revoke(self, account_id: str) -> None:
        """Clear the stored refresh token (logout)."""
        self.db.query(Account).filter(Account.id == account_id).update(
            {Account.refresh_token_hash: None, Account.refresh_token_expires_at: None},
            synchronize_session=False,
        )
        self.db.commit()
