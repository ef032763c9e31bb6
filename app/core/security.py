"""Password hashing, JWT encoding/decoding, and one-time token helpers."""

import hashlib
import hmac
import re
import secrets
from datetime import UTC, datetime, timedelta
from functools import lru_cache
from typing import Any

import bcrypt
import jwt

from app.core.errors import BadRequestError

# Bcrypt cost (rounds); 12 is a good default for security vs speed.
BCRYPT_ROUNDS = 12

# Min/max lengths for email and password validation (BSIMM / input validation).
EMAIL_MAX_LEN = 255
PASSWORD_MIN_LEN = 8
PASSWORD_MAX_LEN = 72

# bcrypt only reads the first 72 bytes of its input; longer passwords are refused.
PASSWORD_MAX_BYTES = 72

# Temporary passwords set by an administrator; no 0/O or 1/l/I.
TEMP_PASSWORD_LENGTH = 12
_TEMP_PASSWORD_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZabcdefghjkmnpqrstuvwxyz23456789"

# Entropy of password-reset tokens in bytes (secrets.token_urlsafe -> ~43 chars).
RESET_TOKEN_BYTES = 32

TOKEN_TYPE_ACCESS = "access"
TOKEN_TYPE_REFRESH = "refresh"

_UPPER = re.compile(r"[A-Z]")
_LOWER = re.compile(r"[a-z]")
_DIGIT = re.compile(r"[0-9]")


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from the store (all stored times are UTC)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def hash_password(plain_password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """Hash a plain-text password for storage. Do not store plain passwords."""
    pw_bytes = plain_password.encode("utf-8")
    if len(pw_bytes) > PASSWORD_MAX_BYTES:
        raise ValueError(f"Password exceeds {PASSWORD_MAX_BYTES} bytes")
    return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain_password: str, hashed: str) -> bool:
    """Verify a plain password against a stored hash (constant-time inside bcrypt)."""
    pw_bytes = plain_password.encode("utf-8")
    if len(pw_bytes) > PASSWORD_MAX_BYTES:
        return False
    try:
        return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


@lru_cache(maxsize=8)
def dummy_hash(rounds: int = BCRYPT_ROUNDS) -> str:
    """Hash of a throwaway password at the given cost, for timing equalization."""
    return hash_password(secrets.token_urlsafe(16), rounds=rounds)


def burn_password_check(plain_password: str, rounds: int = BCRYPT_ROUNDS) -> None:
    """Spend one bcrypt verification when there is no real hash to check against."""
    verify_password(plain_password, dummy_hash(rounds))


def validate_password_strength(password: str, min_length: int = PASSWORD_MIN_LEN) -> None:
    """Raise BadRequestError naming the first rule the password breaks."""
    if len(password) < min_length:
        raise BadRequestError(f"Password must be at least {min_length} characters long.")
    if len(password.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise BadRequestError(f"Password must be at most {PASSWORD_MAX_BYTES} bytes long.")
    if not _UPPER.search(password):
        raise BadRequestError("Password must contain at least one uppercase letter.")
    if not _LOWER.search(password):
        raise BadRequestError("Password must contain at least one lowercase letter.")
    if not _DIGIT.search(password):
        raise BadRequestError("Password must contain at least one digit.")


def encode_token(
    claims: dict[str, Any],
    token_type: str,
    secret: str,
    algorithm: str,
    expires_in: timedelta,
    now: datetime,
) -> tuple[str, datetime]:
    """
    Sign a JWT with the given claims plus type, jti, iat and exp.

    jti makes every token unique, so two tokens issued in the same second for the
    same account never compare equal. Returns (token, expires_at).
    """
    expire = now + expires_in
    payload: dict[str, Any] = {
        **claims,
        "type": token_type,
        "jti": secrets.token_urlsafe(16),
        "iat": now,
        "exp": expire,
    }
    return jwt.encode(payload, secret, algorithm=algorithm), expire


def decode_token(
    token: str,
    token_type: str,
    secret: str,
    algorithm: str,
    now: datetime,
) -> dict[str, Any]:
    """
    Decode and validate a JWT of the expected type; return its payload.

    Expiry is checked against `now` (the caller's clock) rather than PyJWT's wall
    clock. Raises jwt.PyJWTError on invalid signature, expiry, missing claims or
    wrong type.
    """
    payload = jwt.decode(
        token,
        secret,
        algorithms=[algorithm],
        options={
            "require": ["sub", "exp", "iat", "type"],
            "verify_exp": False,
            "verify_iat": False,
        },
    )
    if payload.get("type") != token_type:
        raise jwt.InvalidTokenError(f"Expected a {token_type} token")
    try:
        expires_at = float(payload["exp"])
    except (TypeError, ValueError) as e:
        raise jwt.InvalidTokenError("Malformed exp claim") from e
    if expires_at <= now.timestamp():
        raise jwt.ExpiredSignatureError("Signature has expired")
    return payload


def generate_temp_password(length: int = TEMP_PASSWORD_LENGTH) -> str:
    """Random password that passes validate_password_strength at the given length."""
    while True:
        candidate = "".join(secrets.choice(_TEMP_PASSWORD_ALPHABET) for _ in range(length))
        if _UPPER.search(candidate) and _LOWER.search(candidate) and _DIGIT.search(candidate):
            return candidate


def generate_reset_token() -> str:
    """High-entropy, URL-safe one-time token."""
    return secrets.token_urlsafe(RESET_TOKEN_BYTES)


def token_digest(raw_token: str, key: str) -> str:
    """
    Return HMAC-SHA256(key, raw_token) as hex.

    Stored in place of the raw refresh/reset token: deterministic, so lookups stay
    equality checks, and a leaked row does not yield a usable token.
    """
    return hmac.new(key.encode("utf-8"), raw_token.encode("utf-8"), hashlib.sha256).hexdigest()
