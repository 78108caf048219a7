"""Checkpoint store and the watermark model built on top of it."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from timerecon.errors import CheckpointError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.engine import Engine

    from timerecon.models import TimeEntry

WATERMARK_KEY = "last_processed_timestamp"
SCHEMA_PATH = Path(__file__).parent / "schema.sql"


class CheckpointStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def put(self, key: str, value: str) -> None: ...


class InMemoryCheckpointStore:
    """Dict-backed store for tests and the offline demo."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.values: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self.values.get(key)

    def put(self, key: str, value: str) -> None:
        self.values[key] = value


class SqlCheckpointStore:
    """Checkpoints in the `checkpoints` table of any SQLAlchemy database.

    Database errors surface as CheckpointError: a run cannot continue
    without its watermark.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def get(self, key: str) -> str | None:
        try:
            with self.engine.connect() as conn:
                value = conn.execute(
                    text("SELECT value FROM checkpoints WHERE name = :name"),
                    {"name": key},
                ).scalar()
        except SQLAlchemyError as e:
            msg = f"Checkpoint store unavailable reading {key!r}: {e}"
            raise CheckpointError(msg) from e
        return None if value is None else str(value)

    def put(self, key: str, value: str) -> None:
        params = {
            "name": key,
            "value": value,
            "updated_at": datetime.now(UTC).isoformat(),
        }
        try:
            with self.engine.begin() as conn:
                if conn.dialect.name in ("postgresql", "sqlite"):
                    conn.execute(
                        text("""
                            INSERT INTO checkpoints (name, value, updated_at)
                            VALUES (:name, :value, :updated_at)
                            ON CONFLICT (name) DO UPDATE SET
                                value = EXCLUDED.value,
                                updated_at = EXCLUDED.updated_at
                        """),
                        params,
                    )
                    return

                # Other dialects: manual upsert
                updated = conn.execute(
                    text("""
                        UPDATE checkpoints
                        SET value = :value, updated_at = :updated_at
                        WHERE name = :name
                    """),
                    params,
                )
                if updated.rowcount == 0:
                    conn.execute(
                        text("""
                            INSERT INTO checkpoints (name, value, updated_at)
                            VALUES (:name, :value, :updated_at)
                        """),
                        params,
                    )
        except SQLAlchemyError as e:
            msg = f"Checkpoint store unavailable writing {key!r}: {e}"
            raise CheckpointError(msg) from e


def init_schema(engine: Engine) -> None:
    """Apply schema.sql statement by statement (works for sqlite and postgres)."""
    statements = [
        stmt.strip()
        for stmt in SCHEMA_PATH.read_text(encoding="utf-8").split(";")
        if stmt.strip()
    ]
    with engine.begin() as conn:
        for stmt in statements:
            conn.execute(text(stmt))


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 UTC with a Z suffix, floored to whole seconds."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    moment = moment.astimezone(UTC).replace(microsecond=0)
    return moment.isoformat().replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    moment = datetime.fromisoformat(value)
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment


def load_watermark(store: CheckpointStore, *, now: datetime) -> str:
    """Return the stored watermark, initializing it to `now` on first use.

    The first-ever run therefore processes nothing retroactively.
    """
    value = store.get(WATERMARK_KEY)
    if value:
        return value

    initial = format_timestamp(now)
    store.put(WATERMARK_KEY, initial)
    return initial


def advance_watermark(current: str, entries: Iterable[TimeEntry]) -> str:
    """max(current, latest updated_at); never moves backwards."""
    base = parse_timestamp(current)
    latest = base
    for entry in entries:
        if entry.updated_at > latest:
            latest = entry.updated_at

    # Flooring to seconds must not drop below a sub-second stored value
    advanced = format_timestamp(latest)
    if parse_timestamp(advanced) <= base:
        return current
    return advanced


def save_watermark(store: CheckpointStore, value: str) -> None:
    store.put(WATERMARK_KEY, value)
