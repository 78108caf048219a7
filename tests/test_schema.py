"""SQLite schema contract tests for checkpoint and audit tables."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import create_engine, inspect, text

from timerecon.checkpoint import init_schema

if TYPE_CHECKING:
    from pathlib import Path


def test_schema_creates_expected_tables(tmp_path: Path) -> None:
    engine = create_engine(f"sqlite:///{tmp_path / 'test.db'}")
    init_schema(engine)

    inspector = inspect(engine)
    assert {"checkpoints", "sync_events"} <= set(inspector.get_table_names())

    checkpoint_cols = {c["name"] for c in inspector.get_columns("checkpoints")}
    assert checkpoint_cols == {"name", "value", "updated_at"}
    assert inspector.get_pk_constraint("checkpoints")["constrained_columns"] == ["name"]

    index_names = {i["name"] for i in inspector.get_indexes("sync_events")}
    assert "idx_sync_events_started_at" in index_names
    engine.dispose()


def test_schema_is_reapplicable(tmp_path: Path) -> None:
    """Re-running init keeps existing rows (IF NOT EXISTS everywhere)."""
    engine = create_engine(f"sqlite:///{tmp_path / 'test.db'}")
    init_schema(engine)
    with engine.begin() as conn:
        conn.execute(
            text(
                "INSERT INTO checkpoints (name, value, updated_at) "
                "VALUES ('last_processed_timestamp', '2024-01-01T00:00:00Z', 'now')"
            )
        )

    init_schema(engine)

    with engine.connect() as conn:
        count = conn.execute(text("SELECT COUNT(*) FROM checkpoints")).scalar()
    assert count == 1
    engine.dispose()
