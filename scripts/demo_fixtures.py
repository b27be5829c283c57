"""
Demo schema and setup procedure for fixture-builder.

Creates a small SQLite database (teams, users, posts, tags), runs a setup
procedure against it, and writes the fixtures, so the whole pipeline can be
tried without an application of your own:

    python scripts/demo_fixtures.py --out demo_fixtures --db demo.sqlite3
"""

from __future__ import annotations

import datetime as dt
from pathlib import Path
from typing import Any, Dict, Optional

import typer
from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from fixture_builder import configure
from fixture_builder.config import Settings
from fixture_builder.domain.models import BuildReport
from fixture_builder.infrastructure.db_factory import create_engine
from fixture_builder.runner import SetupContext

app = typer.Typer(help="Build demo fixtures into a SQLite database.")

FIXED_NOW = dt.datetime(2024, 1, 15, 9, 30, 0)


class DemoBase(DeclarativeBase):
    pass


class Team(DemoBase):
    __tablename__ = "teams"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(80), nullable=False)
    settings: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)


class User(DemoBase):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(80), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="guest")
    team_id: Mapped[Optional[int]] = mapped_column(ForeignKey("teams.id"), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=lambda: FIXED_NOW)

    team: Mapped[Optional[Team]] = relationship()


class Post(DemoBase):
    __tablename__ = "posts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    author_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    body: Mapped[str] = mapped_column(Text, default="")

    author: Mapped[User] = relationship()


class Tag(DemoBase):
    __tablename__ = "tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    label: Mapped[str] = mapped_column(String(40), nullable=False)


def _enable_sqlite_foreign_keys(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):  # noqa: ANN001
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.close()


def build_demo(ctx: SetupContext) -> Dict[str, Any]:
    """Setup procedure: two teams, an admin, a guest, and a post. Tags stay empty."""
    core = ctx.add(Team(name="Core", settings={"timezone": "UTC", "beta": True}))
    ctx.add(Team(name="Support"))

    admin = ctx.add(User(name="Ada Lovelace", role="admin", team=core))
    ctx.add(User(name="Guest", role="guest"))
    ctx.name("welcome_post", Post(title="Welcome", body="First post", author=admin))
    return {"admin": admin, "core_team": core}


def build_demo_fixtures(out: Path, db_path: Path, force: bool = True) -> BuildReport:
    engine = create_engine(Settings(database_url=f"sqlite:///{db_path}"))
    _enable_sqlite_foreign_keys(engine)
    DemoBase.metadata.create_all(engine)

    factory = configure(
        engine=engine,
        base=DemoBase,
        fixtures_dir=out,
        fingerprint_file=db_path.parent / "demo_fingerprint.yml",
        files_to_check=[Path(__file__)],
        tables=None,
        legacy_fixtures=[],
    )
    return factory.factory(build_demo, force=force)


@app.command()
def main(
    out: Path = typer.Option(Path("demo_fixtures"), "--out", "-o", help="Fixture directory."),
    db: Path = typer.Option(Path("demo.sqlite3"), "--db", help="SQLite database file."),
) -> None:
    report = build_demo_fixtures(out, db)
    typer.echo(f"Rows per table: {report.row_counts}")


if __name__ == "__main__":
    app()
