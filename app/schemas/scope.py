"""Immutable value objects for row-level tenant scoping and the per-request auth context."""

from collections.abc import Mapping
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import false, true
from sqlalchemy.sql.elements import ColumnElement

from app.schemas.permissions import EffectivePermission

# Tenant columns a predicate may constrain.
ScopeColumn = Literal["city_id", "unit_id"]

ScopeKind = Literal["unrestricted", "equals", "deny_all"]


class ScopePredicate(BaseModel):
    """
    Restriction on tenant-scoped rows a caller may see.

    - unrestricted: every row (top-tier roles).
    - equals: rows whose `column` equals `value`.
    - deny_all: no rows (unknown role or missing tenant id; defaults closed).
    """

    model_config = ConfigDict(frozen=True)

    kind: ScopeKind
    column: ScopeColumn | None = None
    value: str | None = None

    @classmethod
    def unrestricted(cls) -> "ScopePredicate":
        return cls(kind="unrestricted")

    @classmethod
    def equals(cls, column: ScopeColumn, value: str) -> "ScopePredicate":
        return cls(kind="equals", column=column, value=value)

    @classmethod
    def deny_all(cls) -> "ScopePredicate":
        return cls(kind="deny_all")

    @property
    def is_unrestricted(self) -> bool:
        return self.kind == "unrestricted"

    def matches(self, row: Mapping[str, Any]) -> bool:
        """True if a row (mapping of column -> value) is visible under this predicate."""
        if self.kind == "unrestricted":
            return True
        if self.kind == "deny_all" or self.column is None:
            return False
        return row.get(self.column) == self.value

    def as_filter(self) -> dict[str, str] | None:
        """
        Filter dict for repository-style calls: {} is unrestricted, {column: value}
        restricts, None means no row may be returned.
        """
        if self.kind == "unrestricted":
            return {}
        if self.kind == "deny_all" or self.column is None or self.value is None:
            return None
        return {self.column: self.value}

    def clause(self, columns: Mapping[str, ColumnElement[Any]]) -> ColumnElement[bool]:
        """SQLAlchemy WHERE clause; a table lacking the scoped column yields no rows."""
        if self.kind == "unrestricted":
            return true()
        if self.kind == "deny_all" or self.column is None:
            return false()
        column = columns.get(self.column)
        if column is None:
            return false()
        return column == self.value

    def apply(self, query: Any, columns: Mapping[str, ColumnElement[Any]]) -> Any:
        """Return `query` (ORM Query or Select) filtered by this predicate."""
        if self.kind == "unrestricted":
            return query
        return query.where(self.clause(columns))


class AuthContext(BaseModel):
    """Read-only identity, scope and permissions handed to downstream route handlers."""

    model_config = ConfigDict(frozen=True)

    account_id: str
    email: str
    role: str
    city_id: str | None = None
    unit_id: str | None = None
    is_top_tier: bool = False
    city_scope: ScopePredicate
    unit_scope: ScopePredicate
    permissions: dict[str, EffectivePermission] = Field(default_factory=dict)

    def can(self, resource_id: str, flag: str) -> bool:
        """True only if the resolved table grants `flag` on `resource_id`; unknown means no."""
        entry = self.permissions.get(resource_id)
        if entry is None:
            return False
        return bool(getattr(entry, flag, False))
