"""Seed the default resource catalogue and role permission matrix.

Revision ID: 20261019100000
Revises: 20261019000000
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
from sqlalchemy.orm import Session

revision: str = "20261019100000"
down_revision: Union[str, None] = "20261019000000"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    from app.services.permission_catalog import seed_permission_catalog

    session = Session(bind=op.get_bind())
    seed_permission_catalog(session)


def downgrade() -> None:
    from app.services.permission_catalog import DEFAULT_RESOURCES

    ids = ", ".join(f"'{rid}'" for rid, _name, _path, _category in DEFAULT_RESOURCES)
    op.execute(f"DELETE FROM role_permissions WHERE resource_id IN ({ids})")
    op.execute(f"DELETE FROM resources WHERE id IN ({ids})")
