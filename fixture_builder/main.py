from __future__ import annotations

import importlib
import sys
from pathlib import Path
from typing import Any, Optional

import typer

from fixture_builder.config import get_settings
from fixture_builder.exceptions import SetupImportError
from fixture_builder.factory import configure
from fixture_builder.infrastructure.db_factory import build_dsn, create_engine, masked_dsn
from fixture_builder.infrastructure.gateway import StoreGateway
from fixture_builder.reporter import print_fixture_summary, summarize_fixture_files
from fixture_builder.utils.logging import configure_logging

app = typer.Typer(help="Snapshot a database into YAML test fixtures.")


def import_object(reference: str) -> Any:
    """
    Import `package.module:attribute`.

    Raises
    ------
    SetupImportError
        If the reference is malformed, the module is missing, or the
        attribute does not exist.
    """
    module_name, _, attribute = reference.partition(":")
    if not module_name or not attribute:
        raise SetupImportError(f"Expected 'module:attribute', got '{reference}'")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise SetupImportError(f"Cannot import module '{module_name}': {exc}") from exc
    try:
        return getattr(module, attribute)
    except AttributeError as exc:
        raise SetupImportError(f"Module '{module_name}' has no attribute '{attribute}'") from exc


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"DB={masked_dsn(build_dsn(settings))} | fixtures={settings.fixtures_dir} "
        f"ext={settings.fixture_extension} tables={settings.tables or 'all'} "
        f"skip={','.join(settings.skip_tables) or '-'}"
    )


@app.command()
def tables(
    models: Optional[str] = typer.Option(
        None, "--models", "-m", help="Declarative base as 'module:Base'."
    ),
) -> None:
    """
    List the tables a build would dump, marking the mapped ones.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.json_logs)
    gateway = StoreGateway(create_engine(settings), settings, import_object(models) if models else None)
    for table_name in gateway.list_tables():
        marker = "mapped" if gateway.mapped_table(table_name) is not None else "raw"
        typer.echo(f"{table_name} ({marker})")


@app.command()
def build(
    setup: str = typer.Option(
        ..., "--setup", "-s", help="Setup procedure as 'module:function'."
    ),
    models: Optional[str] = typer.Option(
        None, "--models", "-m", help="Declarative base as 'module:Base'."
    ),
    fixtures_dir: Optional[Path] = typer.Option(
        None, "--fixtures-dir", "-d", help="Override the fixture directory."
    ),
    force: bool = typer.Option(False, "--force", "-f", help="Rebuild even if nothing changed."),
) -> None:
    """
    Run the setup procedure and write one fixture file per table.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.json_logs)

    overrides = {"fixtures_dir": fixtures_dir} if fixtures_dir else {}
    factory = configure(
        settings=settings,
        base=import_object(models) if models else None,
        **overrides,
    )
    report = factory.factory(import_object(setup), force=force)
    if not report.skipped:
        typer.echo(
            f"{len(report.written)} of {len(report.tables)} tables written to {report.fixtures_dir}"
        )


@app.command()
def show(
    fixtures_dir: Optional[Path] = typer.Option(
        None, "--fixtures-dir", "-d", help="Override the fixture directory."
    ),
) -> None:
    """
    Summarize the fixture files on disk.
    """
    settings = get_settings()
    directory = fixtures_dir or settings.fixtures_dir
    print_fixture_summary(summarize_fixture_files(directory, settings.fixture_extension))


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
