"""
Store gateway: the narrow surface fixture-builder needs from the database.

- enumerate the tables to snapshot
- delete every row of those tables with foreign-key enforcement suspended
- fetch a table's rows as ordered attribute maps, normalized for dumping

Tables that belong to a mapped class of the configured declarative base are
read through that class's `Table`, so column types drive normalization.
The read is a Core `select`, which bypasses ORM execution events and with
them any global criteria ("default scopes") a project may install. Other
tables are read with the raw `select_sql` template.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Generator, Iterable, List, NamedTuple, Optional

from sqlalchemy import Table, inspect, select, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.orm import registry as orm_registry

from fixture_builder.config import Settings
from fixture_builder.domain.models import DumpFormat, RecordKey
from fixture_builder.serialization import normalize_value
from fixture_builder.utils.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class _IntegrityToggle:
    """SQL to read, disable, and restore foreign-key enforcement for one dialect."""

    read: str
    disable: str
    restore: str


_INTEGRITY_TOGGLES: Dict[str, _IntegrityToggle] = {
    "sqlite": _IntegrityToggle(
        read="PRAGMA foreign_keys",
        disable="PRAGMA foreign_keys = OFF",
        restore="PRAGMA foreign_keys = {prior}",
    ),
    "postgresql": _IntegrityToggle(
        read="SHOW session_replication_role",
        disable="SET session_replication_role = replica",
        restore="SET session_replication_role = '{prior}'",
    ),
    "mysql": _IntegrityToggle(
        read="SELECT @@FOREIGN_KEY_CHECKS",
        disable="SET FOREIGN_KEY_CHECKS = 0",
        restore="SET FOREIGN_KEY_CHECKS = {prior}",
    ),
}
_INTEGRITY_TOGGLES["mariadb"] = _INTEGRITY_TOGGLES["mysql"]


class FetchedRow(NamedTuple):
    """A row ready for dumping, plus the key used to look up its registered name."""

    key: Optional[RecordKey]
    attributes: Dict[str, Any]


def mapped_tables(base: Any) -> Dict[str, Table]:
    """
    Index the tables of every class mapped by `base`.

    `base` may be a declarative base class (anything with a `registry`
    attribute) or an `sqlalchemy.orm.registry`.
    """
    if base is None:
        return {}
    registry = base if isinstance(base, orm_registry) else base.registry
    tables: Dict[str, Table] = {}
    for mapper in registry.mappers:
        table = mapper.local_table
        if isinstance(table, Table):
            tables.setdefault(table.name, table)
    return tables


class StoreGateway:
    """
    Database access for one fixture run.

    Parameters
    ----------
    engine : Engine
        Engine bound to the database being snapshotted.
    settings : Settings
        Supplies the table list, skip list, and SQL templates.
    base : declarative base | registry | None
        Mapped classes whose tables get column-aware normalization.
    """

    def __init__(self, engine: Engine, settings: Settings, base: Any = None) -> None:
        self.engine = engine
        self.settings = settings
        self._mapped = mapped_tables(base)
        self._reflected_pks: Dict[str, List[str]] = {}

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    def quote(self, table_name: str) -> str:
        return self.engine.dialect.identifier_preparer.quote(table_name)

    def mapped_table(self, table_name: str) -> Optional[Table]:
        return self._mapped.get(table_name)

    def list_tables(self) -> List[str]:
        """
        Tables to snapshot: the configured list, else every table in the database.

        Tables named in `skip_tables` are never included.
        """
        if self.settings.tables:
            names = list(self.settings.tables)
        else:
            names = sorted(inspect(self.engine).get_table_names())
        skipped = set(self.settings.skip_tables)
        return [name for name in names if name not in skipped]

    @contextmanager
    def referential_integrity_suspended(
        self, connection: Connection
    ) -> Generator[None, None, None]:
        """
        Disable foreign-key enforcement on `connection` for the duration of the block.

        The prior setting is restored on every exit path. Work left
        uncommitted by the block is rolled back before restoring, since
        SQLite ignores `PRAGMA foreign_keys` inside a transaction.
        """
        toggle = _INTEGRITY_TOGGLES.get(self.dialect_name)
        if toggle is None:
            log.warning(
                "No referential integrity toggle for dialect; clearing without suspension",
                extra={"dialect": self.dialect_name},
            )
            yield
            return

        prior = connection.exec_driver_sql(toggle.read).scalar()
        connection.exec_driver_sql(toggle.disable)
        connection.commit()
        log.debug("Referential integrity suspended", extra={"dialect": self.dialect_name})
        try:
            yield
        finally:
            connection.rollback()
            connection.exec_driver_sql(toggle.restore.format(prior=prior))
            connection.commit()
            log.debug("Referential integrity restored", extra={"prior": prior})

    def clear_tables(self, tables: Iterable[str]) -> None:
        """Delete every row of `tables`, in any order, within one transaction."""
        tables = list(tables)
        with self.engine.connect() as conn:
            with self.referential_integrity_suspended(conn):
                for table_name in tables:
                    conn.execute(text(self.settings.delete_sql.format(table=self.quote(table_name))))
                conn.commit()
        log.info("Tables cleared", extra={"tables": len(tables)})

    def primary_key(self, table_name: str) -> List[str]:
        """Primary-key column names, from the mapped table or by reflection."""
        mapped = self._mapped.get(table_name)
        if mapped is not None:
            return [column.name for column in mapped.primary_key.columns]
        if table_name not in self._reflected_pks:
            constraint = inspect(self.engine).get_pk_constraint(table_name)
            self._reflected_pks[table_name] = list(constraint.get("constrained_columns") or [])
        return self._reflected_pks[table_name]

    def row_key(self, table_name: str, row: Dict[str, Any]) -> Optional[RecordKey]:
        pk = self.primary_key(table_name)
        if not pk or any(row.get(column) is None for column in pk):
            return None
        return RecordKey.build(table_name, (row[column] for column in pk))

    def fetch_rows(self, table_name: str, fmt: DumpFormat) -> List[FetchedRow]:
        """
        Read all rows of `table_name` in primary-key order, normalized for dumping.
        """
        mapped = self._mapped.get(table_name)
        if mapped is not None:
            return self._fetch_mapped(mapped, fmt)
        return self._fetch_raw(table_name, fmt)

    def _fetch_mapped(self, table: Table, fmt: DumpFormat) -> List[FetchedRow]:
        dialect = self.engine.dialect
        stmt = select(table).order_by(*table.primary_key.columns)
        rows: List[FetchedRow] = []
        with self.engine.connect() as conn:
            for raw in conn.execute(stmt).mappings():
                by_name = {column.name: raw[column] for column in table.columns}
                attributes = {
                    column.name: normalize_value(raw[column], fmt, column.type, dialect)
                    for column in table.columns
                }
                rows.append(FetchedRow(self.row_key(table.name, by_name), attributes))
        return rows

    def _fetch_raw(self, table_name: str, fmt: DumpFormat) -> List[FetchedRow]:
        sql = self.settings.select_sql.format(table=self.quote(table_name))
        with self.engine.connect() as conn:
            raw_rows = [dict(row) for row in conn.execute(text(sql)).mappings()]

        pk = self.primary_key(table_name)
        if pk:
            raw_rows.sort(key=lambda row: tuple(row.get(column) for column in pk))
        return [
            FetchedRow(
                self.row_key(table_name, row),
                {name: normalize_value(value, fmt) for name, value in row.items()},
            )
            for row in raw_rows
        ]


__all__ = ["FetchedRow", "StoreGateway", "mapped_tables"]
