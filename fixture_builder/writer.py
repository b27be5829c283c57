"""
Fixture writer: turns table rows into one YAML file per table.

Two passes over the table list:

1. `write_placeholders` removes old fixture files and writes `{}` for every
   table, so the directory always holds a complete set of files;
2. `dump_tables` replaces the placeholder of every non-empty table with its
   rows, keyed by `RowNamer`.

Each file is written to a temporary sibling and moved into place with
`os.replace`, so readers never see a half-written document.
"""

from __future__ import annotations

import os
import tempfile
from contextlib import suppress
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping

from fixture_builder.config import Settings
from fixture_builder.domain.models import DumpFormat
from fixture_builder.infrastructure.gateway import StoreGateway
from fixture_builder.naming.namer import RowNamer
from fixture_builder.serialization import dump_fixture
from fixture_builder.utils.logging import get_logger

log = get_logger(__name__)

FIXTURE_FILE_MODE = 0o644


class FixtureWriter:
    """
    Write fixture files for a list of tables.

    Parameters
    ----------
    gateway : StoreGateway
        Source of the rows.
    settings : Settings
        Fixture directory and file extension.
    row_namer : RowNamer
        Decides the key of every row.
    """

    def __init__(self, gateway: StoreGateway, settings: Settings, row_namer: RowNamer) -> None:
        self.gateway = gateway
        self.settings = settings
        self.row_namer = row_namer

    @property
    def fixtures_dir(self) -> Path:
        return self.settings.fixtures_dir

    def fixture_file(self, table_name: str) -> Path:
        return self.settings.fixture_path(table_name)

    def delete_fixture_files(self) -> None:
        """Remove existing fixture files; anything that cannot be removed is left alone."""
        for path in self.fixtures_dir.glob(f"*.{self.settings.fixture_extension}"):
            with suppress(OSError):
                path.unlink()

    def write_fixture_file(self, fixture_data: Mapping[str, Mapping[str, Any]], table_name: str) -> Path:
        """Atomically replace the fixture file of `table_name` with `fixture_data`."""
        path = self.fixture_file(table_name)
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = dump_fixture(fixture_data)

        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.chmod(tmp_name, FIXTURE_FILE_MODE)
            os.replace(tmp_name, path)
        except BaseException:
            with suppress(FileNotFoundError):
                os.unlink(tmp_name)
            raise
        return path

    def write_placeholders(self, tables: Iterable[str]) -> None:
        """Start from a clean directory holding an empty fixture for every table."""
        self.delete_fixture_files()
        for table_name in tables:
            self.write_fixture_file({}, table_name)

    def dump_tables(self, tables: Iterable[str], fmt: DumpFormat) -> Dict[str, int]:
        """
        Dump the rows of every table over its placeholder.

        Returns
        -------
        dict[str, int]
            Row count per table, in table order. Tables with zero rows keep
            their empty placeholder.
        """
        row_counts: Dict[str, int] = {}
        for table_name in tables:
            rows = self.gateway.fetch_rows(table_name, fmt)
            row_counts[table_name] = len(rows)
            if not rows:
                continue

            keys = self.row_namer.keys_for(table_name, rows)
            fixture_data = {key: row.attributes for key, row in zip(keys, rows)}
            path = self.write_fixture_file(fixture_data, table_name)
            log.info("Fixture written", extra={"table": table_name, "rows": len(rows), "path": str(path)})
        return row_counts

    def written_files(self, row_counts: Mapping[str, int]) -> List[str]:
        """File names of the tables that received rows, in table order."""
        return [self.fixture_file(table).name for table, count in row_counts.items() if count]


__all__ = ["FixtureWriter"]
