"""
CLI entrypoint for the expired-state sweep. Run from cron, e.g.:

  python -m app.sweep

Or every 15 minutes: */15 * * * * cd /path/to/tenantguard && .venv/bin/python -m app.sweep
"""

import logging
import sys

from app.core.config import get_settings
from app.core.database import SessionLocal
from app.services.sweep import run_sweep

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)


def main() -> int:
    """Run the sweep once; exit 1 if the store call fails."""
    settings = get_settings()
    db = SessionLocal()
    try:
        lockouts, resets, refreshes = run_sweep(db, settings)
        logger.info(
            "Sweep completed: lockouts_cleared=%s, reset_tokens_cleared=%s, refresh_tokens_cleared=%s",
            lockouts,
            resets,
            refreshes,
        )
        return 0
    except Exception as e:
        logger.exception("Sweep job failed: %s", e)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
