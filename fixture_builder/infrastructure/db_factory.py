"""
Database engine factory utilities for fixture-builder.

Builds the SQLAlchemy engine the gateway, loader, and setup sessions share.
One run owns one engine; there is no pooling beyond what SQLAlchemy does per
engine, because a run is single-threaded and short-lived.

Includes retry logic for transient connection failures using tenacity.
"""

from __future__ import annotations

from typing import Any, Optional

import sqlalchemy
from sqlalchemy import text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import OperationalError
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from fixture_builder.config import Settings, get_settings
from fixture_builder.utils.logging import get_logger

log = get_logger(__name__)


def build_dsn(settings: Optional[Settings] = None) -> str:
    """
    Compose a DSN string from settings.

    `DATABASE_URL` wins when set; otherwise the URL is assembled from the
    individual `DB_*` fields.
    """
    settings = settings or get_settings()
    if settings.database_url:
        return settings.database_url
    return (
        f"{settings.db_driver}://{settings.db_user}:{settings.db_password}"
        f"@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    )


def masked_dsn(dsn: str) -> str:
    """Render a DSN with the password hidden, safe for logging."""
    return make_url(dsn).render_as_string(hide_password=True)


def create_engine(settings: Optional[Settings] = None, **engine_kwargs: Any) -> Engine:
    """
    Create the engine for a fixture run.

    Parameters
    ----------
    settings : Settings | None
        Source of the connection parameters. Defaults to `get_settings()`.
    **engine_kwargs
        Passed through to `sqlalchemy.create_engine`.

    Returns
    -------
    Engine
        A lazily connecting SQLAlchemy engine.
    """
    dsn = build_dsn(settings)
    engine = sqlalchemy.create_engine(dsn, **engine_kwargs)
    log.info("Engine created", extra={"dsn": masked_dsn(dsn), "dialect": engine.dialect.name})
    return engine


def verify_connection(engine: Engine, attempts: int = 3) -> None:
    """
    Check that the database answers, retrying transient failures.

    Retries up to `attempts` times with exponential backoff on
    `OperationalError` only; anything else (bad credentials surfaced as
    programming errors, missing drivers) propagates immediately.

    Raises
    ------
    sqlalchemy.exc.OperationalError
        If the connection still fails after all retry attempts.
    """
    for attempt in Retrying(
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(OperationalError),
        reraise=True,
    ):
        with attempt:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            log.debug(
                "Database reachable",
                extra={"attempt": attempt.retry_state.attempt_number},
            )


__all__ = [
    "build_dsn",
    "create_engine",
    "masked_dsn",
    "verify_connection",
]
