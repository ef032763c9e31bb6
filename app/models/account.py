"""ORM model for accounts: identity, credentials, session and reset state."""

from sqlalchemy import Column, DateTime, Integer, String, func

from app.models.base import Base


class Account(Base):
    """
    Account for JWT authentication, lockout tracking and tenant-scoped RBAC.

    role: 'owner', 'admin', 'regional' or 'unit'.
    city_id is set for 'regional' and 'unit'; unit_id only for 'unit'.
    Refresh and reset tokens are stored as HMAC digests, never raw.
    """

    __tablename__ = "accounts"

    id = Column(String(36), primary_key=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=True)
    password_hash = Column(String(255), nullable=True)
    role = Column(String(32), nullable=False, default="regional")
    city_id = Column(String(36), nullable=True, index=True)
    unit_id = Column(String(36), nullable=True, index=True)
    status = Column(String(16), nullable=False, default="pending")

    failed_login_attempts = Column(Integer, nullable=False, default=0)
    locked_until = Column(DateTime(timezone=True), nullable=True)

    refresh_token_hash = Column(String(64), nullable=True)
    refresh_token_expires_at = Column(DateTime(timezone=True), nullable=True)

    password_reset_token_hash = Column(String(64), nullable=True, index=True)
    password_reset_expires_at = Column(DateTime(timezone=True), nullable=True)

    last_login_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
