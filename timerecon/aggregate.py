"""Tracked-hours aggregation strategies.

Exactly one strategy is active per run:

- ``full`` (default) re-sums every entry Harvest holds for the issue. It needs one
  extra fetch per entry but heals itself after missed or duplicated runs.
- ``incremental`` adds the entry's hours to a running total kept in the
  checkpoint store. Re-processing an entry (the fetch window is inclusive)
  counts it twice.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Protocol

from timerecon.models import round_hours, to_decimal

if TYPE_CHECKING:
    from collections.abc import Iterable

    from timerecon.checkpoint import CheckpointStore
    from timerecon.models import TimeEntry

TOTAL_KEY_PREFIX = "tracked_time:"


class ReferenceEntrySource(Protocol):
    def fetch_for_reference(self, reference_id: str) -> list[TimeEntry]: ...


class Aggregator(Protocol):
    def tracked_hours(self, entry: TimeEntry) -> Decimal: ...

    def commit(self, issue_id: str, total: Decimal) -> None: ...


def total_hours(entries: Iterable[TimeEntry]) -> Decimal:
    """Sum of hours rounded to 2 places; order independent."""
    return round_hours(sum((entry.hours for entry in entries), Decimal(0)))


class FullRecomputeAggregator:
    def __init__(
        self, source: ReferenceEntrySource, *, tracked_service: str = "linear.app"
    ) -> None:
        self.source = source
        self.tracked_service = tracked_service

    def tracked_hours(self, entry: TimeEntry) -> Decimal:
        issue_id = entry.issue_id
        if issue_id is None:
            msg = f"Time entry {entry.id} has no external reference"
            raise ValueError(msg)

        # The reference id alone is not unique across services
        entries = [
            e
            for e in self.source.fetch_for_reference(issue_id)
            if e.issue_id == issue_id
            and e.external_reference is not None
            and e.external_reference.service == self.tracked_service
        ]
        return total_hours(entries)

    def commit(self, issue_id: str, total: Decimal) -> None:
        """Nothing to persist; the source is the record."""


class IncrementalAggregator:
    def __init__(self, store: CheckpointStore) -> None:
        self.store = store

    @staticmethod
    def key_for(issue_id: str) -> str:
        return f"{TOTAL_KEY_PREFIX}{issue_id}"

    def tracked_hours(self, entry: TimeEntry) -> Decimal:
        issue_id = entry.issue_id
        if issue_id is None:
            msg = f"Time entry {entry.id} has no external reference"
            raise ValueError(msg)

        stored = self.store.get(self.key_for(issue_id))
        previous = to_decimal(stored) if stored else Decimal(0)
        return round_hours(previous + entry.hours)

    def commit(self, issue_id: str, total: Decimal) -> None:
        # Only called after the annotation was confirmed
        self.store.put(self.key_for(issue_id), str(total))


def create_aggregator(
    kind: str,
    *,
    store: CheckpointStore,
    source: ReferenceEntrySource,
    tracked_service: str = "linear.app",
) -> Aggregator:
    if kind == "full":
        return FullRecomputeAggregator(source, tracked_service=tracked_service)
    if kind == "incremental":
        return IncrementalAggregator(store)
    msg = f"Unsupported aggregation strategy: {kind}"
    raise ValueError(msg)
