"""
Value normalization and YAML encoding for fixture files.

One policy decides how a database value is written to a fixture:

- temporal values are rendered with the explicit `DumpFormat` handed in by
  the caller (never a process-wide default);
- structured columns (JSON, pickled, enum, custom type decorators) are
  rendered in the form they are stored in, using the column's own type;
- everything else is reduced to a YAML-safe scalar.

Rows fetched through a mapped table know their column types; rows fetched
with raw SQL only have Python values, so the same function falls back to
type-of-value rules when `column_type` is None.
"""

from __future__ import annotations

import datetime as dt
import decimal
import json
import uuid
from typing import Any, Dict, Mapping, Optional

import yaml
from sqlalchemy import types as sqltypes
from sqlalchemy.engine import Dialect

from fixture_builder.domain.models import DumpFormat
from fixture_builder.exceptions import FixtureLoadError


def format_temporal(value: Any, fmt: DumpFormat) -> Any:
    """Render datetimes, dates, and times as text; return anything else unchanged."""
    if isinstance(value, dt.datetime):
        if value.tzinfo is not None:
            value = value.astimezone(dt.timezone.utc).replace(tzinfo=None)
        return value.strftime(fmt.datetime_format)
    if isinstance(value, dt.date):
        return value.strftime(fmt.date_format)
    if isinstance(value, dt.time):
        return value.strftime(fmt.time_format)
    return value


def _normalize_typed(
    value: Any, column_type: sqltypes.TypeEngine, dialect: Optional[Dialect]
) -> Any:
    if isinstance(column_type, sqltypes.PickleType):
        return column_type.pickler.dumps(value, column_type.protocol)
    if isinstance(column_type, sqltypes.TypeDecorator):
        overrides_bind = (
            type(column_type).process_bind_param is not sqltypes.TypeDecorator.process_bind_param
        )
        if dialect is None or not overrides_bind:
            return value
        return column_type.process_bind_param(value, dialect)
    if isinstance(column_type, sqltypes.JSON):
        return json.dumps(value)
    if isinstance(column_type, sqltypes.Enum):
        processor = column_type.bind_processor(dialect) if dialect is not None else None
        return processor(value) if processor else value
    return value


def _impl_type(column_type: sqltypes.TypeEngine) -> Optional[sqltypes.TypeEngine]:
    if isinstance(column_type, sqltypes.TypeDecorator) and not isinstance(
        column_type, sqltypes.PickleType
    ):
        return column_type.impl
    return None


def normalize_value(
    value: Any,
    fmt: DumpFormat,
    column_type: Optional[sqltypes.TypeEngine] = None,
    dialect: Optional[Dialect] = None,
) -> Any:
    """
    Convert one column value into the scalar written to a fixture file.

    Parameters
    ----------
    value : Any
        The value as returned by the database driver or the ORM.
    fmt : DumpFormat
        Text formats for temporal values.
    column_type : TypeEngine | None
        The column's SQLAlchemy type, when the table is mapped.
    dialect : Dialect | None
        Dialect of the engine the value came from; custom types may need it.
    """
    if value is None:
        return None

    if column_type is not None:
        if isinstance(column_type, sqltypes.ARRAY) and isinstance(value, (list, tuple)):
            return [normalize_value(item, fmt, column_type.item_type, dialect) for item in value]
        value = _normalize_typed(value, column_type, dialect)
        impl = _impl_type(column_type)
        if impl is not None:
            return normalize_value(value, fmt, impl, dialect)

    if isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (dt.datetime, dt.date, dt.time)):
        return format_temporal(value, fmt)
    if isinstance(value, decimal.Decimal):
        return str(value)
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (memoryview, bytearray)):
        return bytes(value)
    if isinstance(value, bytes):
        return value
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value)
    return str(value)


def dump_fixture(data: Mapping[str, Mapping[str, Any]]) -> str:
    """
    Encode a key to row mapping as YAML, preserving key order.
    """
    return yaml.safe_dump(
        {str(key): dict(row) for key, row in data.items()},
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
        explicit_start=True,
    )


def load_fixture(text: str, source: str = "<string>") -> Dict[str, Dict[str, Any]]:
    """
    Decode fixture YAML into a key to row mapping.

    Raises
    ------
    FixtureLoadError
        If the document is not valid YAML or not a mapping of mappings.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise FixtureLoadError(f"{source}: invalid YAML ({exc})") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise FixtureLoadError(f"{source}: expected a mapping, got {type(data).__name__}")

    fixtures: Dict[str, Dict[str, Any]] = {}
    for key, row in data.items():
        if row is None:
            row = {}
        if not isinstance(row, dict):
            raise FixtureLoadError(f"{source}: row {key!r} is not a mapping")
        fixtures[str(key)] = row
    return fixtures


__all__ = [
    "dump_fixture",
    "format_temporal",
    "load_fixture",
    "normalize_value",
]
