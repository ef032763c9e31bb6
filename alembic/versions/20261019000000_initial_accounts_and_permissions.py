"""Initial accounts, resources, role_permissions and permission_overrides tables.

Revision ID: 20261019000000
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261019000000"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

FLAGS = (
    "can_view",
    "can_create",
    "can_edit",
    "can_delete",
    "can_export",
    "can_generate_invoice",
)


def upgrade() -> None:
    op.create_table(
        "accounts",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("password_hash", sa.String(length=255), nullable=True),
        sa.Column("role", sa.String(length=32), nullable=False, server_default="regional"),
        sa.Column("city_id", sa.String(length=36), nullable=True),
        sa.Column("unit_id", sa.String(length=36), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("failed_login_attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("locked_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("refresh_token_hash", sa.String(length=64), nullable=True),
        sa.Column("refresh_token_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("password_reset_token_hash", sa.String(length=64), nullable=True),
        sa.Column("password_reset_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.CheckConstraint(
            "role IN ('owner', 'admin', 'regional', 'unit')", name="ck_accounts_role"
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'active', 'inactive', 'blocked')", name="ck_accounts_status"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_accounts_email"), "accounts", ["email"], unique=True)
    op.create_index(op.f("ix_accounts_city_id"), "accounts", ["city_id"], unique=False)
    op.create_index(op.f("ix_accounts_unit_id"), "accounts", ["unit_id"], unique=False)
    op.create_index(
        op.f("ix_accounts_password_reset_token_hash"),
        "accounts",
        ["password_reset_token_hash"],
        unique=False,
    )

    op.create_table(
        "resources",
        sa.Column("id", sa.String(length=100), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("path", sa.String(length=255), nullable=False),
        sa.Column("category", sa.String(length=100), nullable=False, server_default="main"),
        sa.Column("order_index", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "role_permissions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("role", sa.String(length=32), nullable=False),
        sa.Column("resource_id", sa.String(length=100), nullable=False),
        *[sa.Column(flag, sa.Boolean(), nullable=False, server_default=sa.false()) for flag in FLAGS],
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["resource_id"], ["resources.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("role", "resource_id", name="uq_role_permissions_role_resource"),
    )
    op.create_index(op.f("ix_role_permissions_role"), "role_permissions", ["role"], unique=False)
    op.create_index(
        op.f("ix_role_permissions_resource_id"), "role_permissions", ["resource_id"], unique=False
    )

    op.create_table(
        "permission_overrides",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("account_id", sa.String(length=36), nullable=False),
        sa.Column("resource_id", sa.String(length=100), nullable=False),
        *[sa.Column(flag, sa.Boolean(), nullable=True) for flag in FLAGS],
        sa.Column("granted_by", sa.String(length=36), nullable=True),
        sa.Column(
            "granted_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["account_id"], ["accounts.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["resource_id"], ["resources.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["granted_by"], ["accounts.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "account_id", "resource_id", name="uq_permission_overrides_account_resource"
        ),
    )
    op.create_index(
        op.f("ix_permission_overrides_account_id"),
        "permission_overrides",
        ["account_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_permission_overrides_resource_id"),
        "permission_overrides",
        ["resource_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index(op.f("ix_permission_overrides_resource_id"), table_name="permission_overrides")
    op.drop_index(op.f("ix_permission_overrides_account_id"), table_name="permission_overrides")
    op.drop_table("permission_overrides")
    op.drop_index(op.f("ix_role_permissions_resource_id"), table_name="role_permissions")
    op.drop_index(op.f("ix_role_permissions_role"), table_name="role_permissions")
    op.drop_table("role_permissions")
    op.drop_table("resources")
    op.drop_index(op.f("ix_accounts_password_reset_token_hash"), table_name="accounts")
    op.drop_index(op.f("ix_accounts_unit_id"), table_name="accounts")
    op.drop_index(op.f("ix_accounts_city_id"), table_name="accounts")
    op.drop_index(op.f("ix_accounts_email"), table_name="accounts")
    op.drop_table("accounts")
