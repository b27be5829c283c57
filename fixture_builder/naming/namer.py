"""
Naming passes that run after the setup procedure.

`AutoNamer` turns the bindings a setup procedure exposes into registry
entries. `RowNamer` decides the fixture key of every dumped row, in order of
precedence:

1. a per-table name function, when one is configured for the table;
2. the name registered for the row's record;
3. a name inferred from the first non-empty `record_name_fields` column;
4. a positional key ("000", "001", ...) counted over the unnamed rows of
   the table in fetch order.
"""

from __future__ import annotations

import re
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Set,
    Tuple,
)

from fixture_builder.infrastructure.gateway import FetchedRow
from fixture_builder.naming.registry import NameRegistry, is_persisted_record, record_key
from fixture_builder.utils.logging import get_logger

log = get_logger(__name__)

NameFunction = Callable[[Dict[str, Any], str], Any]

_NON_WORD = re.compile(r"\W+")


def positional_key(index: int) -> str:
    return f"{index:03d}"


def _unique(name: str, used: Set[str]) -> str:
    if name not in used:
        return name
    suffix = 1
    while f"{name}_{suffix}" in used:
        suffix += 1
    return f"{name}_{suffix}"


class AutoNamer:
    """Register binding names for persisted records that have no name yet."""

    def __init__(self, registry: NameRegistry) -> None:
        self.registry = registry

    def _candidates(self, binding: str, value: Any) -> Iterator[Tuple[str, Any]]:
        if is_persisted_record(value):
            yield binding, value
        elif isinstance(value, (list, tuple)):
            records = [item for item in value if is_persisted_record(item)]
            for position, record in enumerate(records, start=1):
                yield f"{binding}_{position}", record

    def name_bindings(self, bindings: Mapping[str, Any]) -> List[str]:
        """
        Register every persisted record found in `bindings` under its binding name.

        Records that already have a name keep it. A binding whose name is
        already taken by another record is skipped. Bindings starting with an
        underscore are treated as private and ignored.

        Returns
        -------
        list[str]
            The names added by this pass.
        """
        added: List[str] = []
        for binding, value in bindings.items():
            if binding.startswith("_"):
                continue
            for name, record in self._candidates(binding, value):
                if self.registry.lookup(record) is not None:
                    continue
                if self.registry.is_taken(record_key(record).table, name):
                    log.debug("Binding name already taken", extra={"binding": name})
                    continue
                self.registry.register(name, record)
                added.append(name)
        return added


class RowNamer:
    """
    Compute the fixture keys of one table's rows.

    Parameters
    ----------
    registry : NameRegistry
        Names registered during setup and legacy import.
    record_name_fields : iterable[str]
        Columns tried, in order, to infer a name for unregistered rows.
    name_functions : mapping[str, NameFunction] | None
        Per-table callables `func(attributes, index) -> name`, where `index`
        is the row's zero-padded position in fetch order.
    """

    def __init__(
        self,
        registry: NameRegistry,
        record_name_fields: Iterable[str] = (),
        name_functions: Optional[Mapping[str, NameFunction]] = None,
    ) -> None:
        self.registry = registry
        self.record_name_fields = list(record_name_fields)
        self.name_functions = dict(name_functions or {})

    def _inferred(self, attributes: Mapping[str, Any]) -> Optional[str]:
        for field_name in self.record_name_fields:
            value = attributes.get(field_name)
            if value is None:
                continue
            inferred = _NON_WORD.sub("_", str(value).strip().lower()).strip("_")
            if inferred:
                return inferred
        return None

    def keys_for(self, table_name: str, rows: Sequence[FetchedRow]) -> List[str]:
        """Fixture keys for `rows`, in the same order, unique within the table."""
        keys: List[Optional[str]] = [None] * len(rows)
        used: Set[str] = set()
        name_function = self.name_functions.get(table_name)

        for position, row in enumerate(rows):
            if name_function is not None:
                name = str(name_function(dict(row.attributes), positional_key(position)))
                keys[position] = _unique(name, used)
            else:
                keys[position] = self.registry.lookup_key(row.key)
            if keys[position] is not None:
                used.add(keys[position])

        counter = 0
        for position, row in enumerate(rows):
            if keys[position] is not None:
                continue
            inferred = self._inferred(row.attributes)
            if inferred is not None:
                keys[position] = _unique(inferred, used)
            else:
                while positional_key(counter) in used:
                    counter += 1
                keys[position] = positional_key(counter)
                counter += 1
            used.add(keys[position])

        return [key for key in keys if key is not None]


__all__ = ["AutoNamer", "NameFunction", "RowNamer", "positional_key"]
