from __future__ import annotations

import datetime as dt
import decimal
import enum
import json
import pickle
import uuid

import pytest
import yaml
from sqlalchemy import JSON, Enum, Integer, PickleType, String, TypeDecorator
from sqlalchemy.dialects import sqlite

from fixture_builder.domain.models import DumpFormat
from fixture_builder.exceptions import FixtureLoadError
from fixture_builder.serialization import (
    dump_fixture,
    format_temporal,
    load_fixture,
    normalize_value,
)

FMT = DumpFormat()


class Color(enum.Enum):
    RED = "red"
    BLUE = "blue"


class Upper(TypeDecorator):
    impl = String
    cache_ok = True

    def process_bind_param(self, value, dialect):  # noqa: ANN001
        return value.upper() if value is not None else None


class Passthrough(TypeDecorator):
    impl = Integer
    cache_ok = True


def test_format_temporal_uses_the_given_formats() -> None:
    fmt = DumpFormat(datetime_format="%d/%m/%Y %H:%M", date_format="%Y%m%d", time_format="%H%M")

    assert format_temporal(dt.datetime(2024, 1, 15, 9, 30), fmt) == "15/01/2024 09:30"
    assert format_temporal(dt.date(2024, 1, 15), fmt) == "20240115"
    assert format_temporal(dt.time(9, 30), fmt) == "0930"
    assert format_temporal("unchanged", fmt) == "unchanged"


def test_aware_datetimes_are_rendered_in_utc() -> None:
    value = dt.datetime(2024, 1, 15, 11, 30, tzinfo=dt.timezone(dt.timedelta(hours=2)))

    assert format_temporal(value, FMT) == "2024-01-15 09:30:00"


def test_untyped_values_reduce_to_yaml_scalars() -> None:
    identifier = uuid.UUID("12345678-1234-5678-1234-567812345678")

    assert normalize_value(None, FMT) is None
    assert normalize_value(True, FMT) is True
    assert normalize_value(42, FMT) == 42
    assert normalize_value(decimal.Decimal("9.90"), FMT) == "9.90"
    assert normalize_value(identifier, FMT) == str(identifier)
    assert normalize_value(memoryview(b"\x00\x01"), FMT) == b"\x00\x01"
    assert normalize_value({"a": [1, 2]}, FMT) == '{"a": [1, 2]}'
    assert normalize_value(dt.date(2024, 1, 15), FMT) == "2024-01-15"


def test_json_columns_are_written_as_stored_text() -> None:
    value = {"theme": "dark", "beta": True}

    assert json.loads(normalize_value(value, FMT, JSON())) == value


def test_pickle_columns_are_written_as_pickled_bytes() -> None:
    dumped = normalize_value({"a": 1}, FMT, PickleType())

    assert isinstance(dumped, bytes)
    assert pickle.loads(dumped) == {"a": 1}


def test_enum_columns_are_written_as_stored_value() -> None:
    dialect = sqlite.dialect()

    assert normalize_value(Color.RED, FMT, Enum(Color), dialect) == "RED"


def test_type_decorators_apply_their_bind_processing() -> None:
    dialect = sqlite.dialect()

    assert normalize_value("shout", FMT, Upper(), dialect) == "SHOUT"
    assert normalize_value(5, FMT, Passthrough(), dialect) == 5


def test_dump_fixture_keeps_key_order_and_text_keys() -> None:
    text = dump_fixture(
        {
            "admin": {"id": 1, "created_at": "2024-01-15 09:30:00"},
            "000": {"id": 2, "created_at": None},
        }
    )
    loaded = yaml.safe_load(text)

    assert text.startswith("---")
    assert list(loaded) == ["admin", "000"]
    assert loaded["admin"]["created_at"] == "2024-01-15 09:30:00"


def test_load_fixture_accepts_empty_documents() -> None:
    assert load_fixture("") == {}
    assert load_fixture("--- {}\n") == {}
    assert load_fixture("a:\n") == {"a": {}}
    assert load_fixture("1:\n  id: 1\n") == {"1": {"id": 1}}


@pytest.mark.parametrize(
    "text",
    [
        "- just\n- a list\n",
        "admin: 3\n",
        "admin: [\n",
    ],
)
def test_load_fixture_rejects_malformed_documents(text: str) -> None:
    with pytest.raises(FixtureLoadError):
        load_fixture(text, source="users.yml")
