"""Declarative base shared by the account and permission models."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Every table in Base.metadata is created by the Alembic migrations (and by create_all in tests)."""
