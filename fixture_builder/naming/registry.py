"""
Name registry: symbolic names bound to created records.

A record is identified by its `RecordKey` (table plus primary-key values), so
a name given to a live ORM instance during setup is found again when the
same row is fetched for dumping.

Names live in one namespace per table, the same scope as a fixture file:
`ctx.name("bob", user, account)` names one row in `users` and one in
`accounts`. Within a run:
- a name is bound to at most one record of a table, and a record carries at
  most one name;
- registering the same (name, record) pair twice is a no-op;
- any other re-registration raises `NameConflictError`.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Set, Tuple

from sqlalchemy import inspect
from sqlalchemy.orm import InstanceState

from fixture_builder.domain.models import RecordKey
from fixture_builder.exceptions import NameConflictError


def _instance_state(value: Any) -> Optional[InstanceState]:
    state = inspect(value, raiseerr=False)
    return state if isinstance(state, InstanceState) else None


def is_persisted_record(value: Any) -> bool:
    """True for ORM instances that have been flushed and carry an identity."""
    state = _instance_state(value)
    return state is not None and state.has_identity


def record_key(record: Any) -> RecordKey:
    """
    Reduce a persisted ORM instance to its `RecordKey`.

    Raises
    ------
    ValueError
        If `record` is not a mapped instance or has not been flushed yet.
    """
    state = _instance_state(record)
    if state is None:
        raise ValueError(f"Cannot name {record!r}: not a mapped instance")
    if not state.has_identity:
        raise ValueError(f"Cannot name {record!r}: it has not been persisted")
    return RecordKey.build(state.mapper.local_table.name, state.identity)


class NameRegistry:
    """Bidirectional mapping between symbolic names and record keys for one run."""

    def __init__(self) -> None:
        self._by_name: Dict[Tuple[str, str], RecordKey] = {}
        self._by_key: Dict[RecordKey, str] = {}

    def __len__(self) -> int:
        return len(self._by_key)

    def is_taken(self, table_name: str, name: str) -> bool:
        return (table_name, name) in self._by_name

    def register(self, name: str, record: Any) -> Any:
        """Bind `name` to a persisted ORM instance and return the instance."""
        self.register_key(name, record_key(record))
        return record

    def register_key(self, name: str, key: RecordKey) -> None:
        name = str(name).strip()
        if not name:
            raise ValueError("Cannot register a blank name")

        bound = self._by_name.get((key.table, name))
        if bound is not None and bound != key:
            raise NameConflictError(
                f"Name '{name}' is already bound to {bound.table} {bound.identity}"
            )
        existing = self._by_key.get(key)
        if existing is not None and existing != name:
            raise NameConflictError(
                f"{key.table} {key.identity} is already named '{existing}', "
                f"cannot rename it to '{name}'"
            )

        self._by_name[(key.table, name)] = key
        self._by_key[key] = name

    def lookup(self, record: Any) -> Optional[str]:
        if not is_persisted_record(record):
            return None
        return self._by_key.get(record_key(record))

    def lookup_key(self, key: Optional[RecordKey]) -> Optional[str]:
        if key is None:
            return None
        return self._by_key.get(key)

    def all_names(self) -> List[Tuple[str, RecordKey]]:
        """Every (name, key) pair in registration order."""
        return [(name, key) for (_, name), key in self._by_name.items()]

    def names_for_table(self, table_name: str) -> Set[str]:
        return {name for (table, name) in self._by_name if table == table_name}


__all__ = ["NameRegistry", "is_persisted_record", "record_key"]
