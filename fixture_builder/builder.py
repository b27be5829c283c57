"""
Builder: runs one fixture generation pass from start to finish.

Usage:
    from fixture_builder.builder import Builder

    report = Builder(settings, engine, setup=build, base=Base).generate()
    print(report.written)

Phases run in a fixed order and never go back:

    START -> CLEARING -> LOADING_LEGACY -> RUNNING_SETUP -> AUTO_NAMING
          -> WRITING_PLACEHOLDERS -> DUMPING_TABLES -> DONE

Only legacy loading and the setup procedure may fail in a handled way: the
error is printed with its traceback and the process exits with status 1
before any row is dumped. Failures in any other phase are environment
problems and propagate unchanged.
"""

from __future__ import annotations

import os
import sys
from contextlib import contextmanager
from enum import Enum
from typing import Any, Callable, Dict, Generator, List, Mapping, NoReturn, Optional

from rich.console import Console
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from fixture_builder.config import Settings
from fixture_builder.domain.models import BuildReport
from fixture_builder.infrastructure.gateway import StoreGateway
from fixture_builder.infrastructure.loader import FixtureLoader
from fixture_builder.naming.namer import AutoNamer, NameFunction, RowNamer
from fixture_builder.naming.registry import NameRegistry
from fixture_builder.reporter import report_fatal, say, to_sentence
from fixture_builder.runner import SetupContext, SetupProcedure, SetupRunner
from fixture_builder.utils.logging import get_logger
from fixture_builder.utils.profiler import ProfileStats, profile_block
from fixture_builder.writer import FixtureWriter

log = get_logger(__name__)


class Phase(str, Enum):
    START = "start"
    CLEARING = "clearing"
    LOADING_LEGACY = "loading_legacy"
    RUNNING_SETUP = "running_setup"
    AUTO_NAMING = "auto_naming"
    WRITING_PLACEHOLDERS = "writing_placeholders"
    DUMPING_TABLES = "dumping_tables"
    DONE = "done"
    ABORTED = "aborted"


def _terminate(status: int) -> NoReturn:
    """Exit the process immediately, skipping cleanup handlers."""
    sys.stdout.flush()
    sys.stderr.flush()
    os._exit(status)


class Builder:
    """
    Generate fixture files from whatever `setup` creates.

    Parameters
    ----------
    settings : Settings
        Fixture directory, table selection, naming, and dump format.
    engine : Engine
        Database the setup procedure writes to and the fixtures are read from.
    setup : SetupProcedure
        Callable receiving a `SetupContext`.
    base : declarative base | registry | None
        Mapped classes; their tables are dumped with column-aware normalization.
    after_build : Callable[[], Any] | None
        Called with no arguments once every fixture file is written.
    name_functions : mapping[str, NameFunction] | None
        Per-table key functions, see `RowNamer`.
    """

    def __init__(
        self,
        settings: Settings,
        engine: Engine,
        setup: SetupProcedure,
        base: Any = None,
        after_build: Optional[Callable[[], Any]] = None,
        name_functions: Optional[Mapping[str, NameFunction]] = None,
        console: Optional[Console] = None,
        error_console: Optional[Console] = None,
    ) -> None:
        self.settings = settings
        self.setup = setup
        self.after_build = after_build
        self.console = console
        self.error_console = error_console

        self.registry = NameRegistry()
        self.gateway = StoreGateway(engine, settings, base)
        self.loader = FixtureLoader(self.gateway, settings.fixture_extension)
        self.runner = SetupRunner(
            self.registry,
            self.loader,
            sessionmaker(bind=engine, expire_on_commit=False),
        )
        self.auto_namer = AutoNamer(self.registry)
        self.writer = FixtureWriter(
            self.gateway,
            settings,
            RowNamer(self.registry, settings.record_name_fields, name_functions),
        )

        self.phase = Phase.START
        self.context: Optional[SetupContext] = None
        self._durations: Dict[str, float] = {}

    @contextmanager
    def _phase(self, phase: Phase) -> Generator[ProfileStats, None, None]:
        self.phase = phase
        log.info(f"[PHASE START] {phase.value}", extra={"phase": phase.value})
        with profile_block(phase.value) as stats:
            yield stats
        self._durations[phase.value] = round(stats.duration_seconds, 4)
        log.info(
            f"[PHASE COMPLETE] {phase.value}",
            extra={
                "phase": phase.value,
                "duration": self._durations[phase.value],
                "rss_delta_bytes": stats.rss_delta_bytes,
            },
        )

    @contextmanager
    def surface_errors(self) -> Generator[None, None, None]:
        """Turn any error raised in the block into a reported, fatal exit."""
        try:
            yield
        except Exception as error:  # noqa: BLE001
            failed_phase = self.phase.value
            self.phase = Phase.ABORTED
            log.critical(
                "[BUILD ABORTED] %s", type(error).__name__, extra={"phase": failed_phase}
            )
            report_fatal(error, console=self.error_console)
            _terminate(1)

    def clean_out_old_data(self, tables: List[str]) -> None:
        self.gateway.clear_tables(tables)
        self.writer.delete_fixture_files()

    def create_fixture_objects(self) -> SetupContext:
        with self.surface_errors():
            if self.settings.legacy_fixtures:
                with self._phase(Phase.LOADING_LEGACY):
                    self.runner.load_legacy_fixtures(self.settings.legacy_fixtures)
            with self._phase(Phase.RUNNING_SETUP):
                self.context = self.runner.run(self.setup)
        return self.context

    def generate(self) -> BuildReport:
        """
        Run every phase and return what was written.

        Returns
        -------
        BuildReport
            Tables, row counts, and per-phase durations of the run.
        """
        say("Building fixtures", console=self.console)
        tables = self.gateway.list_tables()

        with self._phase(Phase.CLEARING):
            self.clean_out_old_data(tables)

        context = self.create_fixture_objects()

        with self._phase(Phase.AUTO_NAMING):
            added = self.auto_namer.name_bindings(context.bindings)
            log.debug("Names inferred from bindings", extra={"names": added})

        with self._phase(Phase.WRITING_PLACEHOLDERS):
            self.writer.write_placeholders(tables)

        with self._phase(Phase.DUMPING_TABLES):
            row_counts = self.writer.dump_tables(tables, self.settings.dump_format())

        files = self.writer.written_files(row_counts)
        say(f"Built {to_sentence(files)}" if files else "Built no fixtures", console=self.console)

        self.phase = Phase.DONE
        if self.after_build is not None:
            self.after_build()

        return BuildReport(
            fixtures_dir=self.settings.fixtures_dir,
            tables=tables,
            written=[table for table, count in row_counts.items() if count],
            row_counts=row_counts,
            phase_durations=dict(self._durations),
        )


__all__ = ["Builder", "Phase"]
