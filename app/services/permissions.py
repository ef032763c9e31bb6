"""Effective permissions: role defaults merged with per-account overrides.

Resolution reads the current matrix and override rows on every call (no cache),
so an administrative change is visible to the very next request. Missing rows
resolve to False; resolution never raises on absent data.
"""

import logging
from collections.abc import Iterable

from sqlalchemy.orm import Session

from app.core.errors import BadRequestError
from app.core.security import utcnow
from app.models import PermissionOverride, Resource, RolePermission
from app.schemas.permissions import (
    PERMISSION_FLAGS,
    EffectivePermission,
    OverrideEntry,
    OverrideFlags,
    PermissionSet,
    RolePermissionEntry,
)

logger = logging.getLogger(__name__)


def merge_flags(
    role_default: PermissionSet | RolePermission | None,
    override: OverrideFlags | PermissionOverride | None,
) -> PermissionSet:
    """
    Per flag: the override value when it is not None, else the role default,
    else False.
    """
    merged: dict[str, bool] = {}
    for flag in PERMISSION_FLAGS:
        value = getattr(override, flag, None) if override is not None else None
        if value is None:
            value = getattr(role_default, flag, None) if role_default is not None else None
        merged[flag] = bool(value)
    return PermissionSet(**merged)


class PermissionResolver:
    """Reads and administers the role matrix and account overrides."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def _active_resources(self) -> list[Resource]:
        return (
            self.db.query(Resource)
            .filter(Resource.is_active.is_(True))
            .order_by(Resource.order_index, Resource.id)
            .all()
        )

    def _role_rows(self, role: str | None) -> dict[str, RolePermission]:
        if not role:
            return {}
        rows = self.db.query(RolePermission).filter(RolePermission.role == role).all()
        return {row.resource_id: row for row in rows}

    def _override_rows(self, account_id: str | None) -> dict[str, PermissionOverride]:
        if not account_id:
            return {}
        rows = (
            self.db.query(PermissionOverride)
            .filter(PermissionOverride.account_id == account_id)
            .all()
        )
        return {row.resource_id: row for row in rows}

    def resolve(self, account_id: str | None, role: str | None) -> dict[str, EffectivePermission]:
        """
        Complete resource-keyed table for an account: every active resource, every
        flag a concrete bool. Unknown role or account yields all False.
        """
        defaults = self._role_rows(role)
        overrides = self._override_rows(account_id)
        table: dict[str, EffectivePermission] = {}
        for resource in self._active_resources():
            override = overrides.get(resource.id)
            merged = merge_flags(defaults.get(resource.id), override)
            table[resource.id] = EffectivePermission(
                resource_id=resource.id,
                resource_name=resource.name,
                is_override=override is not None,
                **merged.model_dump(),
            )
        return table

    def role_defaults(self, role: str) -> dict[str, EffectivePermission]:
        """The role's matrix over every active resource, holes filled with False."""
        return self.resolve(None, role)

    def _known_resource_ids(self, resource_ids: Iterable[str]) -> set[str]:
        wanted = set(resource_ids)
        if not wanted:
            return set()
        found = {
            rid for (rid,) in self.db.query(Resource.id).filter(Resource.id.in_(wanted)).all()
        }
        missing = sorted(wanted - found)
        if missing:
            raise BadRequestError(f"Unknown resource(s): {', '.join(missing)}")
        return found

    def set_role_defaults(self, role: str, entries: list[RolePermissionEntry]) -> int:
        """Bulk upsert of one role's matrix entries in a single transaction. Returns rows written."""
        self._known_resource_ids(e.resource_id for e in entries)
        existing = self._role_rows(role)
        for entry in entries:
            flags = {flag: getattr(entry, flag) for flag in PERMISSION_FLAGS}
            row = existing.get(entry.resource_id)
            if row is None:
                row = RolePermission(role=role, resource_id=entry.resource_id, **flags)
                self.db.add(row)
                existing[entry.resource_id] = row
            else:
                for flag, value in flags.items():
                    setattr(row, flag, value)
        self.db.commit()
        logger.info(
            "Role permissions updated",
            extra={"role": role, "entry_count": len(entries)},
        )
        return len(entries)

    def set_overrides(
        self,
        account_id: str,
        overrides: list[OverrideEntry],
        granted_by: str | None = None,
    ) -> tuple[int, int]:
        """
        Bulk upsert of an account's overrides. An entry with every flag None deletes
        the stored override for that resource instead of storing an empty row.

        Returns (upserted, deleted).
        """
        self._known_resource_ids(o.resource_id for o in overrides)
        existing = self._override_rows(account_id)
        upserted = 0
        deleted = 0
        for entry in overrides:
            row = existing.get(entry.resource_id)
            if entry.is_empty():
                if row is not None:
                    if row.id is None:
                        self.db.expunge(row)
                    else:
                        self.db.delete(row)
                    existing.pop(entry.resource_id)
                    deleted += 1
                continue
            flags = {flag: getattr(entry, flag) for flag in PERMISSION_FLAGS}
            if row is None:
                row = PermissionOverride(
                    account_id=account_id,
                    resource_id=entry.resource_id,
                    granted_by=granted_by,
                    granted_at=utcnow(),
                    **flags,
                )
                self.db.add(row)
                existing[entry.resource_id] = row
            else:
                for flag, value in flags.items():
                    setattr(row, flag, value)
                row.granted_by = granted_by
                row.granted_at = utcnow()
            upserted += 1
        self.db.commit()
        logger.info(
            "Permission overrides updated",
            extra={
                "account_id": account_id,
                "granted_by": granted_by,
                "upserted": upserted,
                "deleted": deleted,
            },
        )
        return upserted, deleted
