"""Default resource catalogue and role permission matrix.

Used by the initial Alembic migration and by `python -m app.scripts.create_account --seed`.
Seeding only inserts missing rows, so administrator edits are never overwritten.
"""

import logging

from sqlalchemy.orm import Session

from app.models import Resource, RolePermission
from app.schemas.permissions import PERMISSION_FLAGS

logger = logging.getLogger(__name__)

# (id, name, path, category)
DEFAULT_RESOURCES: tuple[tuple[str, str, str, str], ...] = (
    ("dashboard", "Dashboard", "/", "main"),
    ("leads", "Leads", "/leads", "main"),
    ("deals", "Rental Pipeline", "/deals", "main"),
    ("motorcycles", "Motorcycles", "/motorcycles", "main"),
    ("rentals", "Rentals", "/rentals", "main"),
    ("sales", "Sales", "/sales", "main"),
    ("clients", "Clients", "/clients", "main"),
    ("inspections", "Inspections", "/inspections", "main"),
    ("franchisees", "Franchisees", "/franchisees", "main"),
    ("finance", "Finance", "/finance", "main"),
    ("unit_finance", "Unit Finance", "/unit-finance", "main"),
    ("fleet", "Fleet", "/fleet", "main"),
    ("growth_projection", "Growth Projection", "/growth-projection", "main"),
    ("trackers", "Trackers", "/trackers", "main"),
    ("terminations", "Terminations", "/terminations", "main"),
    ("rental_ranking", "Rental Ranking", "/rental-ranking", "main"),
    ("satisfaction_surveys", "Satisfaction Surveys", "/satisfaction-surveys", "main"),
    ("campaigns", "Campaigns", "/campaigns", "main"),
    ("suggestions", "Suggestions", "/suggestions", "main"),
    ("users", "Users", "/users", "admin"),
    ("maintenance_list", "Maintenance", "/maintenance/list", "maintenance"),
    ("maintenance_calendar", "Maintenance Calendar", "/maintenance/calendar", "maintenance"),
    ("maintenance_kpi", "Maintenance KPI", "/maintenance/kpi", "maintenance"),
    ("maintenance_parts", "Parts", "/maintenance/parts", "maintenance"),
    ("maintenance_services", "Services", "/maintenance/services", "maintenance"),
    ("maintenance_workshops", "Workshops", "/maintenance/workshops", "maintenance"),
    ("maintenance_professionals", "Professionals", "/maintenance/professionals", "maintenance"),
    ("idleness_forecast", "Idleness Forecast", "/idleness-forecast", "main"),
    ("recurring", "Recurring Charges", "/recurring", "main"),
)

_ALL = {flag: True for flag in PERMISSION_FLAGS}
_NONE = {flag: False for flag in PERMISSION_FLAGS}
_VIEW_ONLY = {**_NONE, "can_view": True}

# Resources a unit account may read but not change.
_UNIT_VIEW_ONLY = frozenset(
    {
        "dashboard",
        "motorcycles",
        "rentals",
        "inspections",
        "franchisees",
        "fleet",
        "suggestions",
        "maintenance_list",
        "maintenance_calendar",
        "maintenance_kpi",
        "idleness_forecast",
    }
)

# Resources a unit account fully manages for itself (invoice generation stays off).
_UNIT_FULL = frozenset({"unit_finance", "recurring"})


def default_flags(role: str, resource_id: str) -> dict[str, bool]:
    """Seed flags for one (role, resource) pair."""
    if role == "admin":
        return dict(_ALL)
    if role in ("owner", "regional"):
        if resource_id in ("users", "unit_finance"):
            return dict(_NONE)
        return dict(_ALL)
    if role == "unit":
        if resource_id in _UNIT_FULL:
            return {**_ALL, "can_generate_invoice": False}
        if resource_id in _UNIT_VIEW_ONLY:
            return dict(_VIEW_ONLY)
        if resource_id == "satisfaction_surveys":
            return {**_VIEW_ONLY, "can_edit": True}
        return dict(_NONE)
    return dict(_NONE)


def default_resource_rows() -> list[dict[str, object]]:
    return [
        {
            "id": rid,
            "name": name,
            "path": path,
            "category": category,
            "order_index": index,
            "is_active": True,
        }
        for index, (rid, name, path, category) in enumerate(DEFAULT_RESOURCES, start=1)
    ]


def default_role_permission_rows() -> list[dict[str, object]]:
    rows: list[dict[str, object]] = []
    for role in ("owner", "admin", "regional", "unit"):
        for rid, _name, _path, _category in DEFAULT_RESOURCES:
            rows.append({"role": role, "resource_id": rid, **default_flags(role, rid)})
    return rows


def seed_permission_catalog(db: Session) -> tuple[int, int]:
    """
    Insert missing default resources and role matrix entries.

    Returns (resources_inserted, role_permissions_inserted). Idempotent.
    """
    existing_resources = {rid for (rid,) in db.query(Resource.id).all()}
    resources_inserted = 0
    for row in default_resource_rows():
        if row["id"] not in existing_resources:
            db.add(Resource(**row))
            resources_inserted += 1
    db.flush()

    existing_pairs = {
        (role, rid) for role, rid in db.query(RolePermission.role, RolePermission.resource_id).all()
    }
    permissions_inserted = 0
    for row in default_role_permission_rows():
        if (row["role"], row["resource_id"]) not in existing_pairs:
            db.add(RolePermission(**row))
            permissions_inserted += 1
    db.commit()

    if resources_inserted or permissions_inserted:
        logger.info(
            "Permission catalogue seeded: resources_inserted=%s, role_permissions_inserted=%s",
            resources_inserted,
            permissions_inserted,
        )
    return resources_inserted, permissions_inserted
