"""Sweep: clear expired lockout windows, reset tokens and refresh tokens."""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from app.core.security import utcnow
from app.models import Account

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)


def run_sweep(
    session: Session,
    settings: "Settings",
    clock: Callable[[], datetime] = utcnow,
) -> tuple[int, int, int]:
    """
    Null out expired lockout, reset and refresh state.

    Each step is one conditional UPDATE on already-expired rows, so running it
    alongside live traffic never touches a value a request could still use.
    Failed-attempt counters are left alone; only a successful login resets them.

    Returns (lockouts_cleared, reset_tokens_cleared, refresh_tokens_cleared).
    Idempotent: safe to run repeatedly.
    """
    if not settings.SWEEP_ENABLED:
        logger.info("Sweep is disabled (SWEEP_ENABLED=false); skipping.")
        return (0, 0, 0)

    now = clock()
    lockouts = (
        session.query(Account)
        .filter(Account.locked_until.isnot(None), Account.locked_until <= now)
        .update({Account.locked_until: None}, synchronize_session=False)
    )
    resets = (
        session.query(Account)
        .filter(
            Account.password_reset_token_hash.isnot(None),
            Account.password_reset_expires_at <= now,
        )
        .update(
            {Account.password_reset_token_hash: None, Account.password_reset_expires_at: None},
            synchronize_session=False,
        )
    )
    refreshes = (
        session.query(Account)
        .filter(
            Account.refresh_token_hash.isnot(None),
            Account.refresh_token_expires_at <= now,
        )
        .update(
            {Account.refresh_token_hash: None, Account.refresh_token_expires_at: None},
            synchronize_session=False,
        )
    )
    session.commit()

    if lockouts or resets or refreshes:
        logger.info(
            "Sweep run: now=%s, lockouts_cleared=%s, reset_tokens_cleared=%s, refresh_tokens_cleared=%s",
            now.isoformat(),
            lockouts,
            resets,
            refreshes,
        )
    return (lockouts, resets, refreshes)
