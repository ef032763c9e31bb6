"""ORM models for the resource catalogue, role permission matrix and per-account overrides."""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    func,
)

from app.models.base import Base


class Resource(Base):
    """A protected resource (screen/module). Only active resources are resolved."""

    __tablename__ = "resources"

    id = Column(String(100), primary_key=True)
    name = Column(String(255), nullable=False)
    path = Column(String(255), nullable=False)
    category = Column(String(100), nullable=False, default="main")
    order_index = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)


class RolePermission(Base):
    """Default action flags of one role on one resource. Missing row means all False."""

    __tablename__ = "role_permissions"
    __table_args__ = (UniqueConstraint("role", "resource_id", name="uq_role_permissions_role_resource"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    role = Column(String(32), nullable=False, index=True)
    resource_id = Column(
        String(100),
        ForeignKey("resources.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    can_view = Column(Boolean, nullable=False, default=False)
    can_create = Column(Boolean, nullable=False, default=False)
    can_edit = Column(Boolean, nullable=False, default=False)
    can_delete = Column(Boolean, nullable=False, default=False)
    can_export = Column(Boolean, nullable=False, default=False)
    can_generate_invoice = Column(Boolean, nullable=False, default=False)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )


class PermissionOverride(Base):
    """
    Account-specific exception to the role defaults for one resource.

    Every flag is nullable: NULL inherits the role default, a value replaces it.
    Rows with every flag NULL are deleted rather than stored.
    """

    __tablename__ = "permission_overrides"
    __table_args__ = (
        UniqueConstraint("account_id", "resource_id", name="uq_permission_overrides_account_resource"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(
        String(36),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    resource_id = Column(
        String(100),
        ForeignKey("resources.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    can_view = Column(Boolean, nullable=True)
    can_create = Column(Boolean, nullable=True)
    can_edit = Column(Boolean, nullable=True)
    can_delete = Column(Boolean, nullable=True)
    can_export = Column(Boolean, nullable=True)
    can_generate_invoice = Column(Boolean, nullable=True)
    granted_by = Column(String(36), ForeignKey("accounts.id"), nullable=True)
    granted_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
