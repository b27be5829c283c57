"""
Operator-facing output for fixture-builder.

Progress lines start with "=> ", the same marker on every line, so build
output is easy to pick out of a test run. The fatal path prints a banner,
the error, and its full traceback to stderr. `print_fixture_summary` renders
the generated files as a rich table for the `show` command.
"""

from __future__ import annotations

import traceback
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from rich import box
from rich.console import Console
from rich.table import Table

from fixture_builder.exceptions import FixtureLoadError
from fixture_builder.serialization import load_fixture

MARKER = "=> "

_stdout = Console(highlight=False)
_stderr = Console(stderr=True, highlight=False)


def _emit(console: Console, text: str = "") -> None:
    console.print(text, markup=False, highlight=False, emoji=False, soft_wrap=True)


def say(*messages: str, console: Optional[Console] = None) -> None:
    """Print each message on its own marked line."""
    console = console or _stdout
    for message in messages:
        _emit(console, f"{MARKER}{message}")


def to_sentence(words: Sequence[str]) -> str:
    """Join words as "a", "a and b", or "a, b, and c"."""
    words = list(words)
    if not words:
        return ""
    if len(words) == 1:
        return words[0]
    if len(words) == 2:
        return f"{words[0]} and {words[1]}"
    return f"{', '.join(words[:-1])}, and {words[-1]}"


def report_fatal(error: BaseException, console: Optional[Console] = None) -> None:
    """Print the banner, the error, and its traceback."""
    console = console or _stderr
    _emit(console)
    say("There was an error building fixtures", repr(error), console=console)
    _emit(console)
    trace = "".join(traceback.format_exception(type(error), error, error.__traceback__))
    _emit(console, trace.rstrip("\n"))
    _emit(console)


def summarize_fixture_files(directory: Path, extension: str = "yml") -> List[Dict[str, Any]]:
    """
    Describe every fixture file in `directory`.

    Each entry holds the table name, the row count, and the first few keys.
    Unreadable files are listed with an error instead of a count.
    """
    summary: List[Dict[str, Any]] = []
    for path in sorted(Path(directory).glob(f"*.{extension}")):
        entry: Dict[str, Any] = {"table": path.stem, "file": path.name}
        try:
            fixtures = load_fixture(path.read_text(encoding="utf-8"), source=str(path))
        except FixtureLoadError as exc:
            entry["error"] = str(exc)
        else:
            entry["rows"] = len(fixtures)
            entry["keys"] = list(fixtures)[:5]
        summary.append(entry)
    return summary


def print_fixture_summary(summary: List[Dict[str, Any]], console: Optional[Console] = None) -> None:
    """
    Render a fixture summary as a rich table.

    Empty fixtures are dimmed so the tables that carry data stand out.
    """
    console = console or _stdout

    if not summary:
        console.print("[yellow]No fixture files found.[/yellow]")
        return

    table = Table(
        title="Fixture Files",
        box=box.ROUNDED,
        caption=f"{sum(1 for entry in summary if entry.get('rows'))} of {len(summary)} with rows",
    )
    table.add_column("Table", style="cyan", no_wrap=True)
    table.add_column("File", style="blue")
    table.add_column("Rows", justify="right", style="magenta")
    table.add_column("Keys", style="green")

    for entry in summary:
        if "error" in entry:
            table.add_row(entry["table"], entry["file"], "[red]error[/red]", entry["error"])
            continue
        keys = ", ".join(entry["keys"])
        if entry["rows"] > len(entry["keys"]):
            keys = f"{keys}, ..."
        style = None if entry["rows"] else "dim"
        table.add_row(entry["table"], entry["file"], str(entry["rows"]), keys, style=style)

    console.print(table)


__all__ = [
    "MARKER",
    "print_fixture_summary",
    "report_fatal",
    "say",
    "summarize_fixture_files",
    "to_sentence",
]
