"""
Create an active account (e.g. the first owner). Run from project root:
  python -m app.scripts.create_account EMAIL ROLE [--city-id C] [--unit-id U] [--password P] [--seed]
Example:
  python -m app.scripts.create_account owner@example.com owner --password 'Str0ngPassw0rd' --seed

Without --password the account has no password until a reset link is used.
--seed inserts any missing default resources and role permissions first.
"""
import argparse
import sys
import uuid

from app.core.config import get_settings
from app.core.database import SessionLocal
from app.core.errors import BadRequestError
from app.core.security import hash_password, validate_password_strength
from app.models import Account
from app.schemas.account import ROLE_VALUES, normalize_email
from app.services.permission_catalog import seed_permission_catalog
from app.services.scope import validate_tenant_ids


def main() -> int:
    parser = argparse.ArgumentParser(description="Create a TenantGuard account (administrative bootstrap).")
    parser.add_argument("email", help="Account email")
    parser.add_argument("role", choices=sorted(ROLE_VALUES))
    parser.add_argument("--city-id", default=None, help="City (region) id; required for regional and unit")
    parser.add_argument("--unit-id", default=None, help="Franchise unit id; required for unit")
    parser.add_argument("--name", default=None)
    parser.add_argument("--password", default=None, help="Initial password (upper, lower, digit; min length)")
    parser.add_argument("--seed", action="store_true", help="Seed the default permission catalogue")
    args = parser.parse_args()

    settings = get_settings()
    email = normalize_email(args.email)
    if not email or "@" not in email or len(email) > 255:
        print("Invalid email.", file=sys.stderr)
        return 1
    error = validate_tenant_ids(args.role, args.city_id, args.unit_id)
    if error:
        print(error, file=sys.stderr)
        return 1

    password_hash = None
    if args.password is not None:
        try:
            validate_password_strength(args.password, min_length=settings.PASSWORD_MIN_LENGTH)
        except BadRequestError as e:
            print(e.message, file=sys.stderr)
            return 1
        password_hash = hash_password(args.password, rounds=settings.BCRYPT_ROUNDS)

    db = SessionLocal()
    try:
        if args.seed:
            resources, permissions = seed_permission_catalog(db)
            print(f"Seeded {resources} resources and {permissions} role permissions.")
        existing = db.query(Account).filter(Account.email == email).first()
        if existing:
            print(f"Account '{email}' already exists.", file=sys.stderr)
            return 1
        account = Account(
            id=str(uuid.uuid4()),
            email=email,
            name=args.name,
            password_hash=password_hash,
            role=args.role,
            city_id=args.city_id,
            unit_id=args.unit_id,
            status="active",
        )
        db.add(account)
        db.commit()
        print(f"Created account '{email}' with role '{args.role}' (id {account.id}).")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
