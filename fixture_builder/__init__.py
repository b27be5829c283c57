"""
fixture-builder - freeze the result of ordinary object-creation code as YAML fixtures.

A setup procedure creates records through SQLAlchemy; the builder wipes the
database first, runs the procedure, names the records it was told about, and
writes every table to `<fixtures_dir>/<table>.yml`:

- explicit names (`ctx.name("admin", user)`) and exposed bindings become
  fixture keys, everything else gets positional keys "000", "001", ...
- every table gets a file, empty tables an empty mapping
- temporal and structured values are written in a fixed, reloadable form
- a failing setup procedure aborts the process before anything is dumped
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from fixture_builder.builder import Builder, Phase
from fixture_builder.config import Settings, get_settings
from fixture_builder.domain.models import BuildReport, DumpFormat, RecordKey
from fixture_builder.exceptions import (
    FixtureBuilderError,
    FixtureLoadError,
    NameConflictError,
    SetupImportError,
)
from fixture_builder.factory import FixtureFactory, configure
from fixture_builder.infrastructure.loader import FixtureLoader
from fixture_builder.naming.registry import NameRegistry
from fixture_builder.runner import SetupContext, SetupProcedure
from fixture_builder.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Building
    "Builder",
    "BuildReport",
    "FixtureFactory",
    "Phase",
    "configure",
    # Setup procedures
    "SetupContext",
    "SetupProcedure",
    "NameRegistry",
    # Values and loading
    "DumpFormat",
    "FixtureLoader",
    "RecordKey",
    # Errors
    "FixtureBuilderError",
    "FixtureLoadError",
    "NameConflictError",
    "SetupImportError",
    # Logging
    "configure_logging",
    "get_logger",
]
