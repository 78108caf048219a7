"""Test configuration and fixtures."""

from __future__ import annotations

import pytest
from sqlalchemy import Engine

from tests.utils.db_helper import create_test_engine
from tests.utils.fakes import ON_TRACK, OVER, UNDER
from timerecon.config import StatusLabels


@pytest.fixture
def labels() -> StatusLabels:
    return StatusLabels(over=OVER, under=UNDER, on_track=ON_TRACK)


@pytest.fixture
def db_engine() -> Engine:
    """In-memory SQLite with the checkpoint schema."""
    return create_test_engine()


@pytest.fixture(autouse=True)
def _hermetic_env(monkeypatch: pytest.MonkeyPatch) -> None:
    # No .env loading, and egress allowed unless a test blocks it
    monkeypatch.setenv("TIMERECON_SKIP_DOTENV", "1")
    monkeypatch.delenv("TIMERECON_NO_EGRESS", raising=False)
