"""Database connection management for the SQLModel ORM."""

import logging
from typing import Generator

from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from .config import get_settings

logger = logging.getLogger(__name__)

_DATABASE_URL: str | None = None
_engine: Engine | None = None


def get_database_url() -> str:
    """Get the configured database URL."""
    global _DATABASE_URL
    if _DATABASE_URL is None:
        _DATABASE_URL = get_settings().resolved_database_url()
    return _DATABASE_URL


def set_database_url(url: str) -> None:
    """Set a custom database URL (useful for testing)."""
    global _DATABASE_URL, _engine
    _DATABASE_URL = url
    _engine = None  # Reset engine when URL changes


def get_engine() -> Engine:
    """Get the SQLAlchemy engine, creating it on first use."""
    global _engine
    if _engine is None:
        url = get_database_url()
        connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
        _engine = create_engine(url, echo=get_settings().debug, connect_args=connect_args)
    return _engine


def get_session() -> Generator[Session, None, None]:
    """Yield a SQLModel session for dependency injection."""
    with Session(get_engine()) as session:
        yield session


def init_db(engine: Engine | None = None) -> None:
    """Create all tables registered on the SQLModel metadata."""
    # Table modules must be imported so their metadata is registered.
    from doula_crm import models  # noqa: F401

    engine = engine or get_engine()
    SQLModel.metadata.create_all(engine)
    logger.info("Database tables ensured", extra={"tables": len(SQLModel.metadata.tables)})
