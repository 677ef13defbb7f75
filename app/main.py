from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI


def _validate_env() -> None:
    """
    Validate all required environment variables at startup.

    Runs before any service or database connection is initialised.
    Raises RuntimeError listing every missing or invalid variable so the
    operator can fix all problems in one restart cycle.

    Rules:
    - A database URL must be configured (PostgreSQL, or SQLite for local runs).
    - Numeric ONBOARDING_* variables, when set, must parse and be positive.
    - ONBOARDING_BACKOFF_SECONDS, when set, must be a comma-separated list
      of non-negative numbers.
    """

    from db.config import is_supported_database_url, load_env_files, normalize_database_url

    load_env_files()

    errors: list[str] = []

    # --- Database URL ---------------------------------------------------
    candidates = [
        os.getenv(name, "").strip()
        for name in ("DATABASE_URL", "CLOUD_DATABASE_URL", "LOCAL_DATABASE_URL")
    ]
    configured = [url for url in candidates if url]
    if not configured:
        errors.append(
            "No database URL configured. Set DATABASE_URL, CLOUD_DATABASE_URL "
            "or LOCAL_DATABASE_URL."
        )
    elif not all(is_supported_database_url(normalize_database_url(url)) for url in configured):
        errors.append("Database URLs must use a PostgreSQL or SQLite scheme.")

    # --- Onboarding lane ------------------------------------------------
    for name in (
        "ONBOARDING_MAX_BATCH_SIZE",
        "ONBOARDING_INSERT_CHUNK_SIZE",
        "ONBOARDING_MAX_ATTEMPTS",
        "ONBOARDING_WORKER_CONCURRENCY",
    ):
        raw = os.getenv(name)
        if raw is None:
            continue
        try:
            valid = int(raw) > 0
        except ValueError:
            valid = False
        if not valid:
            errors.append(f"{name}='{raw}' is not valid. Expected a positive integer.")

    raw_timeout = os.getenv("ONBOARDING_TIMEOUT_SECONDS")
    if raw_timeout is not None:
        try:
            valid = float(raw_timeout) > 0
        except ValueError:
            valid = False
        if not valid:
            errors.append(
                f"ONBOARDING_TIMEOUT_SECONDS='{raw_timeout}' is not valid. Expected a positive number."
            )

    raw_backoff = os.getenv("ONBOARDING_BACKOFF_SECONDS")
    if raw_backoff is not None:
        try:
            delays = [float(item) for item in raw_backoff.split(",") if item.strip()]
            valid = bool(delays) and all(delay >= 0 for delay in delays)
        except ValueError:
            valid = False
        if not valid:
            errors.append(
                f"ONBOARDING_BACKOFF_SECONDS='{raw_backoff}' is not valid. "
                "Expected comma-separated non-negative seconds, e.g. '10,30,60'."
            )

    if errors:
        raise RuntimeError(
            "Startup validation failed: missing or invalid environment variables:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )


def _configure_logging() -> None:
    """
    Configure root logging once for the API process.
    """

    from app.config import get_app_settings

    log_level = get_app_settings().log_level
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _check_db() -> None:
    """Open a session and run SELECT 1. Raises RuntimeError if the DB is unreachable."""
    from sqlalchemy import text

    from db.session import SessionLocal

    try:
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
        finally:
            db.close()
    except Exception as exc:
        raise RuntimeError("Database unavailable.") from exc


def _check_schema() -> None:
    """
    Compare Base.metadata table names against the live DB schema.

    Every table registered on Base.metadata must exist in the database.
    If any are missing, log a critical error and abort startup so that
    the operator is forced to run migrations before serving traffic.

    Does NOT auto-migrate.
    """
    from sqlalchemy import inspect as sa_inspect

    import db.models  # noqa: F401 (registers all ORM models on Base.metadata)
    from db.base import Base
    from db.session import get_engine

    inspector = sa_inspect(get_engine())
    actual: set[str] = set(inspector.get_table_names())
    expected: set[str] = set(Base.metadata.tables.keys())
    missing = expected - actual

    if missing:
        log = logging.getLogger(__name__)
        log.critical(
            "Schema mismatch: %d table(s) defined in ORM metadata are absent from "
            "the database: %s. Run 'alembic upgrade head' and restart.",
            len(missing),
            ", ".join(sorted(missing)),
        )
        raise RuntimeError(
            f"Schema mismatch: {len(missing)} table(s) missing from the database "
            f"({', '.join(sorted(missing))}). Run migrations and restart."
        )


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Validate DB connectivity and schema, start the onboarding lane on boot; shut it down on exit."""
    _check_db()
    logging.getLogger(__name__).info("Database connectivity confirmed")
    _check_schema()
    logging.getLogger(__name__).info("Database schema validated")

    from app.scheduler.jobs import build_scheduler, build_work_dispatcher

    scheduler = build_scheduler()
    application.state.work_dispatcher = build_work_dispatcher(scheduler)
    scheduler.start()
    logging.getLogger(__name__).info("Scheduler started with %d jobs", len(scheduler.get_jobs()))
    try:
        yield
    finally:
        scheduler.shutdown(wait=True)
        application.state.work_dispatcher = None
        logging.getLogger(__name__).info("Scheduler shut down")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """

    _validate_env()
    _configure_logging()

    application = FastAPI(
        title="Organization Onboarding API",
        version="1.0.0",
        lifespan=_lifespan,
    )

    from app.api.errors import register_exception_handlers
    from app.api.routers import bulk_onboard_router

    register_exception_handlers(application)
    application.include_router(bulk_onboard_router)

    @application.get("/health")
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    return application


app = create_app()
