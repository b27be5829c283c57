"""
Domain package for fixture-builder.

Exports the value types shared by the registry, the gateway, and the writer.
Keep this package focused on data definitions and validation concerns.
"""

from fixture_builder.domain.models import BuildReport, DumpFormat, RecordKey

__all__ = [
    "BuildReport",
    "DumpFormat",
    "RecordKey",
]
