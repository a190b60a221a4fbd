"""
db/session.py

SQLAlchemy engine and session factory shared by the API, the import CLI and
the report store.
"""

from __future__ import annotations

import os
import threading
from collections.abc import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from db.config import resolve_database_url

_engine: Engine | None = None
_session_factory: sessionmaker | None = None
_init_lock = threading.Lock()


def _get_int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def create_db_engine() -> Engine:
    database_url = resolve_database_url()
    if not database_url.startswith("postgresql"):
        raise RuntimeError("Only PostgreSQL URLs are supported.")

    return create_engine(
        database_url,
        echo=os.getenv("SQL_ECHO", "").strip().lower() in {"1", "true", "yes", "on"},
        pool_pre_ping=True,
        pool_recycle=_get_int_env("DB_POOL_RECYCLE", 1800),
        pool_size=_get_int_env("DB_POOL_SIZE", 10),
        max_overflow=_get_int_env("DB_MAX_OVERFLOW", 10),
    )


def get_engine() -> Engine:
    """Return the shared engine, creating it on first call."""
    global _engine
    if _engine is None:
        with _init_lock:
            if _engine is None:
                _engine = create_db_engine()
    return _engine


def _get_session_factory() -> sessionmaker:
    global _session_factory
    if _session_factory is None:
        engine = get_engine()
        with _init_lock:
            if _session_factory is None:
                _session_factory = sessionmaker(
                    bind=engine,
                    class_=Session,
                    autoflush=False,
                    expire_on_commit=False,
                )
    return _session_factory


def SessionLocal() -> Session:
    """Lazy session factory. Drop-in replacement for a sessionmaker() call."""
    return _get_session_factory()()


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
