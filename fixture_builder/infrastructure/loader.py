"""
Fixture loader: materialize the rows of a fixture file in the database.

Used twice: to import legacy fixture files before a setup procedure runs,
and by test suites that reload generated fixtures. Values are inserted as
written in the file (no type processing), which is the form the fixture
writer produces for every column type.

Rows without a primary-key value get a stable integer id derived from their
label, so the same label always lands on the same id across runs.
"""

from __future__ import annotations

import json
import zlib
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import column as sa_column
from sqlalchemy import table as sa_table
from sqlalchemy import text

from fixture_builder.domain.models import RecordKey
from fixture_builder.exceptions import FixtureLoadError
from fixture_builder.infrastructure.gateway import StoreGateway
from fixture_builder.serialization import load_fixture
from fixture_builder.utils.logging import get_logger

log = get_logger(__name__)

# Keeps generated ids inside a signed 32-bit integer column.
MAX_IDENTIFY_ID = 2**30 - 1


def identify(label: str) -> int:
    """Derive a stable integer id from a fixture label."""
    return zlib.crc32(label.encode("utf-8")) % MAX_IDENTIFY_ID


def _insertable(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return value


class FixtureLoader:
    """
    Load fixture files into the tables they are named after.

    Parameters
    ----------
    gateway : StoreGateway
        Provides the engine, primary keys, quoting, and integrity suspension.
    extension : str
        Preferred fixture file extension; `yml` and `yaml` are also tried.
    """

    def __init__(self, gateway: StoreGateway, extension: str = "yml") -> None:
        self.gateway = gateway
        self.extension = extension

    def fixture_file(self, directory: Path | str, base_name: str) -> Path:
        directory = Path(directory)
        candidates = [self.extension, "yml", "yaml"]
        for suffix in dict.fromkeys(candidates):
            path = directory / f"{base_name}.{suffix}"
            if path.exists():
                return path
        raise FixtureLoadError(f"No fixture file for '{base_name}' in {directory}")

    def load_fixtures(
        self, directory: Path | str, base_name: str
    ) -> List[Tuple[str, Optional[RecordKey]]]:
        """
        Replace the rows of table `base_name` with the rows of its fixture file.

        Returns
        -------
        list[tuple[str, RecordKey | None]]
            Each fixture label with the key of the row it created, in file
            order. The key is None when the table has no primary key.
        """
        path = self.fixture_file(directory, base_name)
        fixtures = load_fixture(path.read_text(encoding="utf-8"), source=str(path))
        table_name = base_name
        pk = self.gateway.primary_key(table_name)

        created: List[Tuple[str, Optional[RecordKey]]] = []
        with self.gateway.engine.connect() as conn:
            with self.gateway.referential_integrity_suspended(conn):
                conn.execute(
                    text(self.gateway.settings.delete_sql.format(table=self.gateway.quote(table_name)))
                )
                for label, attributes in fixtures.items():
                    row: Dict[str, Any] = {name: _insertable(v) for name, v in attributes.items()}
                    if len(pk) == 1 and row.get(pk[0]) is None:
                        row[pk[0]] = identify(label)
                    clause = sa_table(table_name, *(sa_column(name) for name in row))
                    conn.execute(clause.insert().values(row))
                    created.append((label, self.gateway.row_key(table_name, row)))
                conn.commit()

        log.info(
            "Fixtures loaded",
            extra={"table": table_name, "rows": len(created), "path": str(path)},
        )
        return created


__all__ = ["FixtureLoader", "identify"]
