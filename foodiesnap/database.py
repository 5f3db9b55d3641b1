"""SQLAlchemy engine and session factory for the durable key/value store."""
from __future__ import annotations

from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import get_settings

Base = declarative_base()


def build_engine(database_url: str) -> Engine:
    """Create an engine; sqlite connections are shared with worker threads."""

    options: dict[str, Any] = {"future": True}
    if database_url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
        if ":memory:" in database_url:
            # One connection, or every thread would see its own empty database.
            options["poolclass"] = StaticPool
    else:
        options["pool_pre_ping"] = True
    return create_engine(database_url, **options)


def build_session_factory(bind: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=bind, autoflush=False, autocommit=False, future=True, expire_on_commit=False)


settings = get_settings()
engine: Engine = build_engine(settings.database_url)
SessionLocal = build_session_factory(engine)


def create_session() -> Session:
    """Return a new session; storage calls open one per operation."""
    return SessionLocal()


def init_db(bind: Engine | None = None) -> None:
    """Create the key/value table when missing."""
    # Registers KeyValueRecord on Base.metadata.
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


__all__ = [
    "Base",
    "SessionLocal",
    "build_engine",
    "build_session_factory",
    "create_session",
    "engine",
    "init_db",
]
