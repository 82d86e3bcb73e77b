"""Integration tests for store initialization through Alembic migrations."""

from __future__ import annotations

from pathlib import Path
from typing import Iterator

import pytest
from sqlalchemy import create_engine, inspect

import services.database as database
from config import settings
from decisions.repository import DecisionRepository
from models import Decision, ModelInfo


def _decision(decision_id: str) -> Decision:
    return Decision(
        id=decision_id,
        created_at="2025-01-01T00:00:00.000Z",
        updated_at="2025-01-01T00:00:00.000Z",
        title="t",
        problem_text="p",
        model_info=ModelInfo(model="m", prompt_version="v2.0"),
    )


@pytest.fixture
def db_url(monkeypatch, tmp_path: Path) -> Iterator[str]:
    """Point settings at a fresh sqlite file and reset engine state."""
    url = f"sqlite:///{tmp_path / 'nested' / 'decisions.db'}"
    monkeypatch.setattr(settings.database, "url", url)
    monkeypatch.setattr(database, "_initialized_urls", set())
    database.reset_engine()
    yield url
    database.reset_engine()


def test_init_db_creates_schema(db_url: str) -> None:
    """Migrations create the decisions table and listing indexes."""
    database.init_db()

    engine = create_engine(db_url)
    try:
        inspector = inspect(engine)
        assert "decisions" in inspector.get_table_names()
        columns = {column["name"] for column in inspector.get_columns("decisions")}
        assert columns == {"id", "created_at", "updated_at", "prompt_version", "payload"}
        index_names = {index["name"] for index in inspector.get_indexes("decisions")}
        assert "ix_decisions_created_at_id" in index_names
    finally:
        engine.dispose()


def test_init_db_is_idempotent(db_url: str, monkeypatch) -> None:
    """Repeated initialization migrates once and keeps existing records."""
    calls: list[str] = []
    real_run = database.run_migrations

    def counting_run(url: str | None = None, **kwargs) -> None:
        calls.append(url or "")
        real_run(url, **kwargs)

    monkeypatch.setattr(database, "run_migrations", counting_run)

    repository = DecisionRepository(database.init_db())
    repository.put(_decision("d1"))

    factory = database.init_db()

    assert calls == [db_url]
    assert DecisionRepository(factory).get("d1") is not None


def test_migrations_rerun_on_existing_database(db_url: str) -> None:
    """Upgrading an already-migrated database is a no-op."""
    database.run_migrations(db_url)
    database.run_migrations(db_url)

    assert DecisionRepository(database.get_session_factory()).count() == 0


def test_in_memory_database_is_usable_after_init(monkeypatch) -> None:
    """An in-memory store keeps the migrated schema for later sessions."""
    monkeypatch.setattr(settings.database, "url", "sqlite:///:memory:")
    monkeypatch.setattr(database, "_initialized_urls", set())
    database.reset_engine()
    try:
        repository = DecisionRepository(database.init_db())

        assert repository.count() == 0
        repository.put(_decision("d1"))
        assert repository.get("d1") is not None
    finally:
        database.reset_engine()
