from __future__ import annotations

from datetime import UTC
from pathlib import Path

import allure
import pytest

from agent_console.errors import HistoryError
from agent_console.history import DEFAULT_TITLE, SessionRecord, SqliteHistoryStore, truncate

pytestmark = [
    allure.epic("Persistence"),
    allure.feature("Chat history"),
]


@pytest.fixture()
def store(tmp_path: Path):
    store = SqliteHistoryStore(tmp_path / "data" / "history.db")
    store.init_schema()
    yield store
    store.close()


def test_first_prompt_sets_title_and_each_prompt_sets_summary() -> None:
    record = SessionRecord(session_id="s1", project="/proj")

    first = record.with_prompt("  fix   the flaky\ntest  ")
    second = first.with_prompt("now update the changelog")

    assert first.title == "fix the flaky test"
    assert second.title == "fix the flaky test"
    assert second.summary == "now update the changelog"
    assert record.with_prompt("   ") is record


def test_long_prompts_are_truncated() -> None:
    record = SessionRecord(session_id="s1", project="/proj").with_prompt("word " * 40)

    assert len(record.title) == 60
    assert record.title.endswith("…")
    assert len(record.summary) <= 120
    assert truncate("short", 10) == "short"


def test_create_and_get_round_trip(store: SqliteHistoryStore) -> None:
    created = store.create("/proj")

    loaded = store.get(created.session_id)

    assert loaded is not None
    assert loaded.title == DEFAULT_TITLE
    assert loaded.project == "/proj"
    assert loaded.created_at is not None
    assert loaded.created_at.tzinfo is UTC
    assert store.get("missing") is None


def test_save_updates_existing_row(store: SqliteHistoryStore) -> None:
    created = store.create("/proj")

    saved = store.save(created.with_prompt("deploy the service"))

    loaded = store.get(created.session_id)
    assert loaded is not None
    assert loaded.title == "deploy the service"
    assert loaded.summary == "deploy the service"
    assert saved.updated_at is not None
    assert created.updated_at is not None
    assert saved.updated_at >= created.updated_at
    assert len(store.list()) == 1


def test_list_is_most_recent_first_and_filters_by_project(store: SqliteHistoryStore) -> None:
    first = store.create("/a")
    second = store.create("/b")
    store.save(first.with_prompt("touch first again"))

    ordered = store.list()
    only_b = store.list("/b")

    assert [record.session_id for record in ordered] == [first.session_id, second.session_id]
    assert [record.session_id for record in only_b] == [second.session_id]


def test_init_schema_reports_unusable_location(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    store = SqliteHistoryStore(blocker / "history.db")

    with pytest.raises(HistoryError, match="cannot initialize history"):
        store.init_schema()
    store.close()
