"""
Domain models for fixture-builder.

`RecordKey` identifies one row independently of how it was obtained (a live
ORM instance, a row fetched for dumping, or a row created by the fixture
loader). `DumpFormat` carries the temporal formats through the writer and
`BuildReport` summarises a finished run.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, List, NamedTuple, Tuple

from pydantic import BaseModel, Field


class RecordKey(NamedTuple):
    """
    Table name plus primary-key values of a single row.

    Identity components are stored as text so that `1`, `"1"` and a UUID
    object and its string form compare equal no matter which layer produced
    them (ORM identity, driver row, or YAML fixture).
    """

    table: str
    identity: Tuple[str, ...]

    @classmethod
    def build(cls, table: str, values: Iterable[Any]) -> "RecordKey":
        return cls(table, tuple(str(value) for value in values))


class DumpFormat(BaseModel):
    """
    Text formats used for temporal values while dumping.
    """

    datetime_format: str = Field("%Y-%m-%d %H:%M:%S", description="strftime for datetimes.")
    date_format: str = Field("%Y-%m-%d", description="strftime for dates.")
    time_format: str = Field("%H:%M:%S", description="strftime for times.")

    model_config = {
        "frozen": True,
    }


class BuildReport(BaseModel):
    """
    Outcome of one fixture generation run.
    """

    fixtures_dir: Path = Field(..., description="Directory the fixture files were written to.")
    tables: List[str] = Field(default_factory=list, description="Every table that got a file.")
    written: List[str] = Field(
        default_factory=list, description="Tables whose fixture file holds at least one row."
    )
    row_counts: Dict[str, int] = Field(default_factory=dict, description="Rows dumped per table.")
    phase_durations: Dict[str, float] = Field(
        default_factory=dict, description="Wall-clock seconds spent in each phase."
    )
    skipped: bool = Field(False, description="True when the fingerprint matched and nothing ran.")


__all__ = ["BuildReport", "DumpFormat", "RecordKey"]
