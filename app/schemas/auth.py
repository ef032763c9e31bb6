"""Request/response schemas for auth endpoints."""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.core.security import EMAIL_MAX_LEN, PASSWORD_MAX_LEN
from app.schemas.account import AccountSummary, normalize_email


class LoginRequest(BaseModel):
    """Credentials for login."""

    email: EmailStr = Field(..., max_length=EMAIL_MAX_LEN, description="Account email")
    password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LEN, description="Password")

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return normalize_email(v)


class TokenPair(BaseModel):
    """Access + refresh tokens returned by login and refresh."""

    access_token: str = Field(..., description="JWT access token")
    refresh_token: str = Field(..., description="JWT refresh token (single active per account)")
    token_type: str = Field(default="bearer", description="Token type")


class LoginResponse(TokenPair):
    """Token pair plus the authenticated account."""

    account: AccountSummary


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1, max_length=4096)


class PasswordResetRequest(BaseModel):
    email: EmailStr = Field(..., max_length=EMAIL_MAX_LEN)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return normalize_email(v)


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=256)
    new_password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LEN)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LEN)
    new_password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LEN)


class MessageResponse(BaseModel):
    message: str


class TokenClaims(BaseModel):
    """Verified access-token payload (identity, role and tenant ids)."""

    account_id: str
    email: str
    role: str
    city_id: str | None = None
    unit_id: str | None = None
    issued_at: datetime
    expires_at: datetime
