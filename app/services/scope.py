"""Tenant scoping and role hierarchy: pure functions of (role, tenant ids).

No hidden state and no I/O, so every function is safe to call from any request
thread. Missing or unknown inputs always resolve to the most restrictive answer.
"""

from app.schemas.account import Role
from app.schemas.scope import ScopePredicate

# Fixed total order over the closed role enumeration. Unknown roles rank 0.
ROLE_RANK: dict[str, int] = {
    "owner": 4,
    "admin": 3,
    "regional": 2,
    "unit": 1,
}

# Roles that see every tenant's rows and may administer permissions.
TOP_TIER_ROLES: frozenset[str] = frozenset({"owner", "admin"})

# Roles whose rows are confined to one city (region).
CITY_SCOPED_ROLES: frozenset[str] = frozenset({"regional"})

# Roles whose rows are confined to one franchise unit.
UNIT_SCOPED_ROLES: frozenset[str] = frozenset({"unit"})


def role_rank(role: str | None) -> int:
    """Rank of a role in the hierarchy; 0 for None or anything outside the enumeration."""
    if role is None:
        return 0
    return ROLE_RANK.get(role, 0)


def is_top_tier(role: str | None) -> bool:
    return role in TOP_TIER_ROLES


def city_filter(role: str | None, city_id: str | None) -> ScopePredicate:
    """Top tier: unrestricted. Regional and unit roles: city_id = their city."""
    if is_top_tier(role):
        return ScopePredicate.unrestricted()
    if role in CITY_SCOPED_ROLES or role in UNIT_SCOPED_ROLES:
        if city_id:
            return ScopePredicate.equals("city_id", city_id)
    return ScopePredicate.deny_all()


def unit_filter(role: str | None, city_id: str | None, unit_id: str | None) -> ScopePredicate:
    """
    Top tier: unrestricted. Regional: city_id = their city. Unit: unit_id = their unit.

    A unit role never falls back to its city, so it cannot see another unit's rows
    in the same region.
    """
    if is_top_tier(role):
        return ScopePredicate.unrestricted()
    if role in CITY_SCOPED_ROLES:
        return ScopePredicate.equals("city_id", city_id) if city_id else ScopePredicate.deny_all()
    if role in UNIT_SCOPED_ROLES:
        return ScopePredicate.equals("unit_id", unit_id) if unit_id else ScopePredicate.deny_all()
    return ScopePredicate.deny_all()


def can_access_city(role: str | None, city_id: str | None, resource_city_id: str | None) -> bool:
    """Single-row check against a city-scoped record."""
    return city_filter(role, city_id).matches({"city_id": resource_city_id})


def can_access_unit(
    role: str | None,
    city_id: str | None,
    unit_id: str | None,
    resource_unit_id: str | None,
    resource_city_id: str | None = None,
) -> bool:
    """Single-row check against a unit-scoped record."""
    predicate = unit_filter(role, city_id, unit_id)
    return predicate.matches({"city_id": resource_city_id, "unit_id": resource_unit_id})


def can_modify_account(
    actor_role: str | None,
    actor_id: str,
    target_role: str | None,
    target_id: str,
    new_role: Role | str | None = None,
) -> bool:
    """
    Whether the actor may modify the target account.

    Anyone may modify themself, but not raise their own role. Otherwise the actor
    must strictly outrank the target (peers cannot modify peers) and, when a role
    change is requested, strictly outrank the role being granted.
    """
    actor_rank = role_rank(actor_role)
    if actor_rank == 0:
        return False
    if actor_id == target_id:
        return new_role is None or role_rank(new_role) <= actor_rank
    if actor_rank <= role_rank(target_role):
        return False
    if new_role is not None and actor_rank <= role_rank(new_role):
        return False
    return True


def validate_tenant_ids(role: str, city_id: str | None, unit_id: str | None) -> str | None:
    """
    Check the role/tenant-id invariant; return an error message or None.

    Top tier carries neither id, regional carries a city, unit carries city and unit.
    """
    if role in TOP_TIER_ROLES:
        if city_id or unit_id:
            return f"Role '{role}' must not carry city or unit identifiers."
        return None
    if role in CITY_SCOPED_ROLES:
        if not city_id:
            return f"Role '{role}' requires a city_id."
        if unit_id:
            return f"Role '{role}' must not carry a unit_id."
        return None
    if role in UNIT_SCOPED_ROLES:
        if not city_id or not unit_id:
            return f"Role '{role}' requires both city_id and unit_id."
        return None
    return f"Unknown role '{role}'."
