from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from fixture_builder.config import Settings
from fixture_builder.domain.models import DumpFormat, RecordKey
from fixture_builder.exceptions import FixtureLoadError
from fixture_builder.infrastructure.gateway import StoreGateway
from fixture_builder.infrastructure.loader import MAX_IDENTIFY_ID, FixtureLoader, identify
from fixture_builder.naming.namer import RowNamer
from fixture_builder.naming.registry import NameRegistry
from fixture_builder.writer import FixtureWriter
from tests.models import CREATED_AT, Post, User, Widget


def test_identify_is_stable_and_bounded() -> None:
    assert identify("gizmo") == identify("gizmo")
    assert identify("gizmo") != identify("gadget")
    assert 0 <= identify("gizmo") < MAX_IDENTIFY_ID


def test_fixture_file_falls_back_to_yaml_suffix(gateway: StoreGateway, tmp_path: Path) -> None:
    (tmp_path / "widgets.yaml").write_text("{}\n", encoding="utf-8")
    loader = FixtureLoader(gateway)

    assert loader.fixture_file(tmp_path, "widgets") == tmp_path / "widgets.yaml"
    with pytest.raises(FixtureLoadError):
        loader.fixture_file(tmp_path, "users")


def test_rows_without_primary_key_get_label_ids(
    gateway: StoreGateway, engine: Engine, tmp_path: Path
) -> None:
    (tmp_path / "widgets.yml").write_text(
        "gizmo:\n  label: Gizmo\nsprocket:\n  id: 7\n  label: Sprocket\n", encoding="utf-8"
    )

    created = FixtureLoader(gateway).load_fixtures(tmp_path, "widgets")

    assert created == [
        ("gizmo", RecordKey.build("widgets", [identify("gizmo")])),
        ("sprocket", RecordKey.build("widgets", [7])),
    ]
    with Session(engine) as session:
        labels = session.scalars(select(Widget.label).order_by(Widget.label)).all()
    assert labels == ["Gizmo", "Sprocket"]


def test_loading_replaces_existing_rows(
    gateway: StoreGateway, session: Session, tmp_path: Path
) -> None:
    session.add(Widget(id=1, label="Old"))
    session.commit()
    (tmp_path / "widgets.yml").write_text("new:\n  id: 2\n  label: New\n", encoding="utf-8")

    FixtureLoader(gateway).load_fixtures(tmp_path, "widgets")

    assert [row.attributes["label"] for row in gateway.fetch_rows("widgets", DumpFormat())] == ["New"]


def test_written_fixtures_load_back_unchanged(
    gateway: StoreGateway, settings: Settings, engine: Engine
) -> None:
    with Session(engine) as session:
        ada = User(name="Ada", role="admin", created_at=CREATED_AT, settings={"theme": "dark"})
        session.add(ada)
        session.flush()
        session.add(Post(title="Hello", author_id=ada.id))
        session.add(User(name="Guest", created_at=CREATED_AT))
        session.commit()

    fmt = DumpFormat()
    tables = ["posts", "users"]
    before = {table: gateway.fetch_rows(table, fmt) for table in tables}
    FixtureWriter(gateway, settings, RowNamer(NameRegistry())).dump_tables(tables, fmt)
    gateway.clear_tables(tables)

    loader = FixtureLoader(gateway)
    for table in ("users", "posts"):
        loader.load_fixtures(settings.fixtures_dir, table)

    assert {table: gateway.fetch_rows(table, fmt) for table in tables} == before
    with Session(engine) as session:
        reloaded = session.get(User, 1)
        assert reloaded.created_at == CREATED_AT
        assert reloaded.settings == {"theme": "dark"}
