from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI


def _validate_env() -> None:
    """
    Validate required environment variables at startup.

    Raises RuntimeError listing every problem so the operator can fix them
    in one restart cycle.
    """

    from db.config import load_env_files

    load_env_files()

    errors: list[str] = []

    database_url = os.getenv("DATABASE_URL", "").strip()
    cloud_database_url = os.getenv("CLOUD_DATABASE_URL", "").strip()
    local_database_url = os.getenv("LOCAL_DATABASE_URL", "").strip()
    if not database_url and not cloud_database_url and not local_database_url:
        errors.append(
            "No database URL configured. Set DATABASE_URL, CLOUD_DATABASE_URL or LOCAL_DATABASE_URL."
        )

    duplicate_mode = os.getenv("REPORT_IMPORT_DEFAULT_DUPLICATE_MODE", "update").strip().lower()
    if duplicate_mode and duplicate_mode not in {"update", "skip", "create"}:
        errors.append(
            f"REPORT_IMPORT_DEFAULT_DUPLICATE_MODE='{duplicate_mode}' is not valid. "
            "Allowed values: ['create', 'skip', 'update']."
        )

    if errors:
        raise RuntimeError(
            "Startup validation failed, missing or invalid environment variables:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )


def _configure_logging() -> None:
    """
    Configure root logging once for the API process.
    """

    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _check_db() -> None:
    """Open a session and run SELECT 1. Raises RuntimeError if the DB is unreachable."""
    from sqlalchemy import text
    from sqlalchemy.exc import SQLAlchemyError

    from db.session import SessionLocal

    try:
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
        finally:
            db.close()
    except SQLAlchemyError as exc:
        raise RuntimeError("Database unavailable.") from exc


def _check_schema() -> None:
    """
    Abort startup when a table registered on Base.metadata is missing.

    Does NOT auto-migrate.
    """
    from sqlalchemy import inspect as sa_inspect

    import db.models  # noqa: F401  registers all ORM models on Base.metadata
    from db.base import Base
    from db.session import get_engine

    inspector = sa_inspect(get_engine())
    missing = set(Base.metadata.tables.keys()) - set(inspector.get_table_names())
    if missing:
        logging.getLogger(__name__).critical(
            "Schema mismatch: %d table(s) absent from the database: %s. "
            "Run 'alembic upgrade head' and restart.",
            len(missing),
            ", ".join(sorted(missing)),
        )
        raise RuntimeError(
            f"Schema mismatch: {len(missing)} table(s) missing from the database "
            f"({', '.join(sorted(missing))}). Run migrations and restart."
        )


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    _check_db()
    logging.getLogger(__name__).info("Database connectivity confirmed")
    _check_schema()
    logging.getLogger(__name__).info("Database schema validated")
    yield


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """

    _validate_env()
    _configure_logging()

    application = FastAPI(
        title="Report Import API",
        version="1.0.0",
        lifespan=_lifespan,
    )

    from app.api.routers import report_import_router

    application.include_router(report_import_router)

    @application.get("/health")
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    return application


app = create_app()
