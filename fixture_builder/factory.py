"""
Entry point for test suites.

Typical use in a `conftest.py`:

    import fixture_builder

    factory = fixture_builder.configure(
        base=Base,
        fixtures_dir=Path("tests/fixtures"),
        files_to_check=[Path("myapp/models.py"), Path(__file__)],
    )
    factory.name_table_with(Invoice, lambda row, index: f"invoice_{row['number']}")
    factory.factory(build)

`factory()` only wipes and rebuilds when a watched file changed since the
last successful build (or when forced), so repeated test runs stay cheap.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional

from rich.console import Console
from sqlalchemy import inspect
from sqlalchemy.engine import Engine

from fixture_builder.builder import Builder
from fixture_builder.config import Settings, get_settings
from fixture_builder.domain.models import BuildReport
from fixture_builder.fingerprint import Fingerprint
from fixture_builder.infrastructure.db_factory import create_engine, verify_connection
from fixture_builder.naming.namer import NameFunction
from fixture_builder.reporter import say
from fixture_builder.runner import SetupProcedure
from fixture_builder.utils.logging import get_logger

log = get_logger(__name__)


def _table_name(target: Any) -> str:
    if isinstance(target, str):
        return target
    return inspect(target).local_table.name


class FixtureFactory:
    """
    Configured fixture generation for one database and fixture directory.

    Parameters
    ----------
    settings : Settings
        Effective configuration.
    engine : Engine | None
        Engine to build against; created from `settings` when omitted.
    base : declarative base | registry | None
        Mapped classes for column-aware dumping.
    after_build : Callable[[], Any] | None
        Hook run after a successful build.
    """

    def __init__(
        self,
        settings: Settings,
        engine: Optional[Engine] = None,
        base: Any = None,
        after_build: Optional[Callable[[], Any]] = None,
        console: Optional[Console] = None,
    ) -> None:
        self.settings = settings
        self.engine = engine
        self.base = base
        self.after_build = after_build
        self.console = console
        self.name_functions: Dict[str, NameFunction] = {}

    def name_table_with(self, target: Any, name_function: NameFunction) -> None:
        """
        Key the rows of a table with `name_function(attributes, index)`.

        `target` is a table name or a mapped class.
        """
        self.name_functions[_table_name(target)] = name_function

    def fingerprint(self) -> Fingerprint:
        files = list(self.settings.files_to_check) + list(self.settings.legacy_fixtures)
        return Fingerprint(files, self.settings.fingerprint_file)

    def _fixtures_present(self) -> bool:
        directory = self.settings.fixtures_dir
        return directory.is_dir() and any(directory.glob(f"*.{self.settings.fixture_extension}"))

    def rebuild_needed(self) -> bool:
        return not self._fixtures_present() or self.fingerprint().changed()

    def get_engine(self) -> Engine:
        if self.engine is None:
            self.engine = create_engine(self.settings)
        return self.engine

    def factory(self, setup: SetupProcedure, force: bool = False) -> BuildReport:
        """
        Build fixtures with `setup` unless they are already up to date.

        Parameters
        ----------
        setup : SetupProcedure
            Creates the records to snapshot.
        force : bool
            Rebuild even when the fingerprint matches.
        """
        if not force and not self.rebuild_needed():
            say("Fixtures are up to date", console=self.console)
            log.info("Fixture build skipped", extra={"fixtures_dir": str(self.settings.fixtures_dir)})
            return BuildReport(fixtures_dir=self.settings.fixtures_dir, skipped=True)

        fingerprint = self.fingerprint()
        fingerprint.clear()
        engine = self.get_engine()
        verify_connection(engine, attempts=self.settings.connect_retries)
        builder = Builder(
            self.settings,
            engine,
            setup,
            base=self.base,
            after_build=self.after_build,
            name_functions=self.name_functions,
            console=self.console,
        )
        report = builder.generate()
        fingerprint.save()
        return report


def configure(
    settings: Optional[Settings] = None,
    engine: Optional[Engine] = None,
    base: Any = None,
    after_build: Optional[Callable[[], Any]] = None,
    console: Optional[Console] = None,
    **overrides: Any,
) -> FixtureFactory:
    """
    Create a `FixtureFactory`.

    Keyword `overrides` replace fields of `settings` (or of `get_settings()`),
    e.g. `configure(fixtures_dir=Path("test/fixtures"), tables=["users"])`.
    """
    settings = settings or get_settings()
    if overrides:
        settings = settings.model_copy(update=overrides)
    return FixtureFactory(settings, engine=engine, base=base, after_build=after_build, console=console)


__all__ = ["FixtureFactory", "configure"]
