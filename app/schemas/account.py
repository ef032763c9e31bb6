"""Pydantic schemas for accounts: role and status enumerations, summaries, provisioning."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.core.security import EMAIL_MAX_LEN, PASSWORD_MAX_LEN

# Closed role enumeration. Rank order lives in app.services.scope.ROLE_RANK.
Role = Literal["owner", "admin", "regional", "unit"]

ROLE_VALUES: frozenset[str] = frozenset({"owner", "admin", "regional", "unit"})

AccountStatus = Literal["pending", "active", "inactive", "blocked"]

# Role given to self-registered accounts until an administrator reviews them.
DEFAULT_REGISTRATION_ROLE: Role = "regional"


def normalize_email(value: str) -> str:
    """Emails are unique case-insensitively; store and compare lower-cased."""
    return value.strip().lower()


class AccountSummary(BaseModel):
    """Public view of an account (never includes hashes or tokens)."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: str | None = None
    role: str
    city_id: str | None = None
    unit_id: str | None = None
    status: AccountStatus


class RegisterRequest(BaseModel):
    """Self-service registration; the account stays pending until approved."""

    email: EmailStr = Field(..., max_length=EMAIL_MAX_LEN)
    password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LEN)
    name: str | None = Field(default=None, min_length=2, max_length=255)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return normalize_email(v)


class ProvisionRequest(BaseModel):
    """Administrative account creation with role and tenant identifiers."""

    email: EmailStr = Field(..., max_length=EMAIL_MAX_LEN)
    role: Role
    city_id: str | None = Field(default=None, max_length=36)
    unit_id: str | None = Field(default=None, max_length=36)
    name: str | None = Field(default=None, min_length=2, max_length=255)
    password: str | None = Field(
        default=None,
        max_length=PASSWORD_MAX_LEN,
        description="Initial password; omit to let the user set one through a reset link.",
    )

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return normalize_email(v)


class AccountUpdate(BaseModel):
    """
    Partial account update. Only fields present in the request body are applied;
    city_id and unit_id may be sent as null to clear them.
    """

    name: str | None = Field(default=None, min_length=2, max_length=255)
    role: Role | None = None
    status: AccountStatus | None = None
    city_id: str | None = Field(default=None, max_length=36)
    unit_id: str | None = Field(default=None, max_length=36)


class TemporaryPasswordResponse(BaseModel):
    account_id: str
    temporary_password: str
