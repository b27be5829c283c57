"""
Exception hierarchy for fixture-builder.

Only conditions the pipeline can describe precisely get their own type.
Connectivity and schema problems surface as the raw SQLAlchemy errors.
"""

from __future__ import annotations


class FixtureBuilderError(Exception):
    """Base class for every error raised by fixture-builder itself."""


class NameConflictError(FixtureBuilderError):
    """A symbolic name or a record was registered twice with different partners."""


class FixtureLoadError(FixtureBuilderError):
    """A fixture file could not be parsed into a key to row mapping."""


class SetupImportError(FixtureBuilderError):
    """A `module:attribute` reference could not be imported."""


__all__ = [
    "FixtureBuilderError",
    "FixtureLoadError",
    "NameConflictError",
    "SetupImportError",
]
