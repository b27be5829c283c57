"""
Setup runner: executes the caller's setup procedure.

A setup procedure is any callable taking a `SetupContext`:

    def build(ctx):
        admin = ctx.add(User(name="Ada", role="admin"))
        ctx.add(User(name="Guest", role="guest"))
        ctx.name("first_post", Post(title="Hello", author=admin))
        return {"admin": admin}

It creates rows through `ctx.session` (or the `add` shortcut), may name
records explicitly with `ctx.name`, and exposes further records for
automatic naming by returning a mapping or calling `ctx.bind`. Nothing else
about the procedure is inspected.

Errors are not handled here; the builder owns the fatal path.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Protocol, Tuple

from sqlalchemy.orm import Session

from fixture_builder.domain.models import RecordKey
from fixture_builder.infrastructure.loader import FixtureLoader
from fixture_builder.naming.registry import NameRegistry, is_persisted_record
from fixture_builder.utils.logging import get_logger

log = get_logger(__name__)


class SetupContext:
    """
    Everything a setup procedure may touch.

    Attributes
    ----------
    session : Session
        Session the procedure creates rows with; committed by the runner.
    registry : NameRegistry
        Names registered so far, including legacy fixture labels.
    bindings : dict[str, Any]
        Records exposed for automatic naming, keyed by the name to use.
    loaded : dict[str, list[tuple[str, RecordKey | None]]]
        Rows created by legacy fixture import, per table.
    """

    def __init__(self, session: Session, registry: NameRegistry) -> None:
        self.session = session
        self.registry = registry
        self.bindings: Dict[str, Any] = {}
        self.loaded: Dict[str, List[Tuple[str, Optional[RecordKey]]]] = {}

    def _persist(self, records: Iterable[Any]) -> None:
        pending = [record for record in records if not is_persisted_record(record)]
        if pending:
            self.session.add_all(pending)
            self.session.flush()

    def add(self, *records: Any) -> Any:
        """Add and flush `records`; return the first one."""
        if not records:
            raise ValueError("add() needs at least one record")
        self._persist(records)
        return records[0]

    def name(self, name: str, *records: Any) -> Any:
        """
        Give `records` an explicit fixture name; return the first one.

        Unsaved records are flushed first so they have a primary key.
        Explicit names always win over names derived from bindings.
        """
        if not records:
            raise ValueError(f"Cannot name '{name}': no record given")
        self._persist(records)
        for record in records:
            self.registry.register(name, record)
        return records[0]

    def bind(self, **records: Any) -> None:
        """Expose records for automatic naming under the keyword names."""
        self.bindings.update(records)


class SetupProcedure(Protocol):
    def __call__(self, ctx: SetupContext) -> Optional[Mapping[str, Any]]:
        ...


class SetupRunner:
    """
    Runs legacy fixture import and the setup procedure for one build.

    Parameters
    ----------
    registry : NameRegistry
        Receives legacy labels and explicit names.
    loader : FixtureLoader
        Materializes legacy fixture files.
    session_factory : Callable[[], Session]
        Creates the session handed to the setup procedure.
    """

    def __init__(
        self,
        registry: NameRegistry,
        loader: FixtureLoader,
        session_factory: Callable[[], Session],
    ) -> None:
        self.registry = registry
        self.loader = loader
        self.session_factory = session_factory
        self.loaded: Dict[str, List[Tuple[str, Optional[RecordKey]]]] = {}

    def load_legacy_fixtures(self, sources: Iterable[Path | str]) -> None:
        """Import each legacy fixture file and register its labels as names."""
        for source in sources:
            path = Path(source)
            created = self.loader.load_fixtures(path.parent, path.stem)
            self.loaded[path.stem] = created
            for label, key in created:
                if key is None:
                    log.warning(
                        "Legacy row has no primary key; label not registered",
                        extra={"table": path.stem, "label": label},
                    )
                    continue
                self.registry.register_key(label, key)

    def run(self, setup: SetupProcedure) -> SetupContext:
        """
        Execute `setup` and commit what it created.

        A mapping returned by the procedure is merged into the context's
        bindings.
        """
        with self.session_factory() as session:
            ctx = SetupContext(session, self.registry)
            ctx.loaded = dict(self.loaded)
            returned = setup(ctx)
            if returned is not None:
                if not isinstance(returned, Mapping):
                    raise TypeError(
                        f"Setup procedure returned {type(returned).__name__}; "
                        "expected a mapping of names to records or None"
                    )
                ctx.bindings.update(returned)
            session.commit()
        log.info("Setup procedure finished", extra={"bindings": len(ctx.bindings)})
        return ctx


__all__ = ["SetupContext", "SetupProcedure", "SetupRunner"]
