"""
Naming package for fixture-builder.

Re-exports the registry and the naming passes so downstream code can import
from `fixture_builder.naming` directly.
"""

from fixture_builder.naming.namer import AutoNamer, NameFunction, RowNamer, positional_key
from fixture_builder.naming.registry import NameRegistry, is_persisted_record, record_key

__all__ = [
    "AutoNamer",
    "NameFunction",
    "NameRegistry",
    "RowNamer",
    "is_persisted_record",
    "positional_key",
    "record_key",
]
