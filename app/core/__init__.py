"""Configuration, store sessions, error taxonomy and crypto primitives."""

from app.core.config import get_settings, settings
from app.core.database import get_db
from app.core.errors import AuthServiceError

__all__ = ["AuthServiceError", "get_db", "get_settings", "settings"]
