"""Process entry points: the scheduled trigger and the direct-request stub."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import create_engine

from timerecon.aggregate import create_aggregator
from timerecon.checkpoint import SqlCheckpointStore
from timerecon.connectors.harvest_client import create_harvest_client
from timerecon.connectors.linear_client import create_linear_client
from timerecon.reconcile import Reconciler

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

    from timerecon.config import Settings
    from timerecon.models import RunSummary

logger = logging.getLogger(__name__)

NOT_HANDLED = "This worker does not handle direct requests."


def handle_request() -> str:
    """Direct invocations do no work."""
    return NOT_HANDLED


def run_once(settings: Settings, *, engine: Engine | None = None) -> RunSummary:
    """One reconciliation pass against the live services. Raises on fatal errors."""
    owns_engine = engine is None
    if engine is None:
        engine = create_engine(settings.database_url)

    try:
        store = SqlCheckpointStore(engine)
        with (
            create_harvest_client(settings) as harvest,
            create_linear_client(settings) as linear,
        ):
            reconciler = Reconciler(
                store=store,
                source=harvest,
                tracker=linear,
                aggregator=create_aggregator(
                    settings.aggregation,
                    store=store,
                    source=harvest,
                    tracked_service=settings.tracked_service,
                ),
                labels=settings.labels,
                tracked_service=settings.tracked_service,
                issue_marker=settings.issue_marker,
            )
            return reconciler.run()
    finally:
        if owns_engine:
            engine.dispose()


def scheduled(settings: Settings) -> RunSummary | None:
    """Scheduled trigger: never raises, so the host process survives any failure."""
    try:
        return run_once(settings)
    except Exception:
        logger.exception("Error processing time entries")
        return None
