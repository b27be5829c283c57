"""
Infrastructure package for fixture-builder.

Centralizes database concerns: engine creation, the store gateway used by
the pipeline, and the fixture loader. Keep this layer focused on I/O and
resource management, decoupled from naming and orchestration logic.
"""

from fixture_builder.infrastructure.db_factory import (
    build_dsn,
    create_engine,
    masked_dsn,
    verify_connection,
)
from fixture_builder.infrastructure.gateway import FetchedRow, StoreGateway, mapped_tables
from fixture_builder.infrastructure.loader import FixtureLoader, identify

__all__ = [
    "FetchedRow",
    "FixtureLoader",
    "StoreGateway",
    "build_dsn",
    "create_engine",
    "identify",
    "mapped_tables",
    "masked_dsn",
    "verify_connection",
]
