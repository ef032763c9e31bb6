"""Shared fixtures for store-backed tests: in-memory SQLite, fast settings, a controllable clock."""

import uuid
from datetime import UTC, datetime, timedelta

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import Settings
from app.core.security import hash_password
from app.models import Account, Base
from app.services.permission_catalog import seed_permission_catalog

STRONG_PASSWORD = "Corr3ctHorse"
OTHER_STRONG_PASSWORD = "Battery9Staple"
WRONG_PASSWORD = "Wrong-pass1"

# Cheapest bcrypt cost the settings accept; tests only need correctness, not strength.
TEST_BCRYPT_ROUNDS = 4


class FakeClock:
    """Callable time source that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 3, 1, 9, 0, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def make_settings(**overrides: object) -> Settings:
    values: dict[str, object] = {"APP_ENV": "dev", "BCRYPT_ROUNDS": TEST_BCRYPT_ROUNDS}
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_session_factory(seed: bool = True) -> sessionmaker:
    """Fresh in-memory database with every table created (and the catalogue seeded)."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    if seed:
        with factory() as db:
            seed_permission_catalog(db)
    return factory


def make_account(
    db: Session,
    email: str = "a@x.com",
    role: str = "unit",
    password: str | None = STRONG_PASSWORD,
    status: str = "active",
    city_id: str | None = "C1",
    unit_id: str | None = "U1",
    name: str | None = None,
) -> Account:
    if role in ("owner", "admin"):
        city_id = unit_id = None
    elif role == "regional":
        unit_id = None
    account = Account(
        id=str(uuid.uuid4()),
        email=email,
        name=name,
        password_hash=hash_password(password, rounds=TEST_BCRYPT_ROUNDS) if password else None,
        role=role,
        city_id=city_id,
        unit_id=unit_id,
        status=status,
        failed_login_attempts=0,
    )
    db.add(account)
    db.commit()
    db.refresh(account)
    return account


def reload(db: Session, account_id: str) -> Account:
    """Re-read an account, discarding anything cached in the session."""
    db.expire_all()
    return db.query(Account).filter(Account.id == account_id).one()
