"""
Pytest configuration for fixture-builder.

Provides fixtures for:
- A file-backed SQLite database with foreign keys enforced
- A small mapped schema (users, posts, widgets)
- Settings pointing the fixture directory and fingerprint into tmp_path
- Intercepting the fatal exit so aborted builds can be asserted on
- Postgres connectivity for the integration tests
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Generator, Type

import psycopg
import pytest
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

import fixture_builder.builder
from fixture_builder.config import Settings
from fixture_builder.infrastructure.db_factory import build_dsn, create_engine
from fixture_builder.infrastructure.gateway import StoreGateway
from tests.models import Base


class BuildTerminated(BaseException):
    """Raised in place of the process exit a failed build performs."""

    def __init__(self, status: int) -> None:
        super().__init__(status)
        self.status = status


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path / 'fixtures.sqlite3'}"


@pytest.fixture
def settings(tmp_path: Path, database_url: str) -> Settings:
    """
    Settings with every path under tmp_path.
    """
    return Settings(
        database_url=database_url,
        fixtures_dir=tmp_path / "fixtures",
        fingerprint_file=tmp_path / "tmp" / "fixture_builder.yml",
        files_to_check=[],
        legacy_fixtures=[],
        tables=None,
        record_name_fields=[],
        log_level="DEBUG",
    )


@pytest.fixture
def engine(settings: Settings) -> Generator[Engine, None, None]:
    """
    SQLite engine with the mapped schema created and foreign keys enforced.
    """
    engine = create_engine(settings)

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):  # noqa: ANN001
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.close()

    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def gateway(engine: Engine, settings: Settings) -> StoreGateway:
    return StoreGateway(engine, settings, Base)


@pytest.fixture
def session(engine: Engine) -> Generator[Session, None, None]:
    with Session(engine, expire_on_commit=False) as session:
        yield session


@pytest.fixture
def terminated(monkeypatch: pytest.MonkeyPatch) -> Type[BuildTerminated]:
    """
    Replace the hard process exit of a failed build with `BuildTerminated`.

    Returns the exception type, for use with `pytest.raises`.
    """

    def _raise(status: int) -> None:
        raise BuildTerminated(status)

    monkeypatch.setattr(fixture_builder.builder, "_terminate", _raise)
    return BuildTerminated


@pytest.fixture(scope="session")
def pg_settings() -> Settings:
    """
    Postgres settings for integration tests, overridable via DB_* variables.
    """
    return Settings(
        database_url=None,
        db_driver="postgresql+psycopg",
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "fixture_builder_test"),
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def pg_available(pg_settings: Settings) -> bool:
    """
    Check if Postgres is reachable.

    Used to conditionally skip integration tests when the database is not available.
    """
    conninfo = build_dsn(pg_settings).replace("postgresql+psycopg://", "postgresql://", 1)
    try:
        with psycopg.connect(conninfo, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except psycopg.Error:
        return False
