"""Core infrastructure: settings, database, logging, request context."""

from .config import Settings, get_settings
from .database import get_engine, get_session, init_db, set_database_url
from .errors import AccessDeniedError, ConflictError, CRMError, InvalidOperationError, NotFoundError
from .logging_config import setup_logging

__all__ = [
    "Settings",
    "get_settings",
    "get_engine",
    "get_session",
    "init_db",
    "set_database_url",
    "CRMError",
    "AccessDeniedError",
    "ConflictError",
    "InvalidOperationError",
    "NotFoundError",
    "setup_logging",
]
