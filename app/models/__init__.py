"""SQLAlchemy ORM models."""

from app.models.account import Account
from app.models.base import Base
from app.models.permission import PermissionOverride, Resource, RolePermission

__all__ = ["Account", "Base", "PermissionOverride", "Resource", "RolePermission"]
