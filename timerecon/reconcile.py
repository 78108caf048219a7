"""Run driver: one reconciliation pass from watermark to watermark."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol

import httpx

from timerecon.checkpoint import advance_watermark, load_watermark, save_watermark
from timerecon.classify import classify, format_comment
from timerecon.errors import AnnotationError, IssueTrackerError, SourceFetchError
from timerecon.labels import reconcile_labels
from timerecon.models import EntryOutcome, RunSummary

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from timerecon.aggregate import Aggregator
    from timerecon.checkpoint import CheckpointStore
    from timerecon.config import StatusLabels
    from timerecon.models import IssueSnapshot, TimeEntry

logger = logging.getLogger(__name__)

# Failures that end one entry's pipeline but not the run
ENTRY_ERRORS = (AnnotationError, IssueTrackerError, SourceFetchError, httpx.HTTPError)


class TimeEntrySource(Protocol):
    def fetch_updated_since(self, since: str) -> list[TimeEntry]: ...


class IssueTracker(Protocol):
    def get_issue(self, issue_id: str) -> IssueSnapshot | None: ...

    def annotate(self, issue_id: str, comment: str, label_ids: Iterable[str]) -> None: ...


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Reconciler:
    """Reconciles Harvest entries updated since the watermark against Linear.

    Entries are processed one at a time in fetch order; each pipeline reads
    and writes per-issue state, so there is no fan-out. Per-entry failures are
    logged and counted (best effort) while fetch and checkpoint failures
    propagate and leave the watermark where it was.
    """

    def __init__(
        self,
        *,
        store: CheckpointStore,
        source: TimeEntrySource,
        tracker: IssueTracker,
        aggregator: Aggregator,
        labels: StatusLabels,
        tracked_service: str = "linear.app",
        issue_marker: str = "WIL",
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.source = source
        self.tracker = tracker
        self.aggregator = aggregator
        self.labels = labels
        self.tracked_service = tracked_service
        self.issue_marker = issue_marker
        self.clock = clock

    def is_relevant(self, entry: TimeEntry) -> bool:
        ref = entry.external_reference
        return ref is not None and ref.service == self.tracked_service

    def run(self) -> RunSummary:
        watermark = load_watermark(self.store, now=self.clock())
        logger.info("Fetching time entries updated since %s", watermark)

        entries = self.source.fetch_updated_since(watermark)
        relevant = [entry for entry in entries if self.is_relevant(entry)]

        summary = RunSummary(
            previous_watermark=watermark,
            watermark=watermark,
            fetched=len(entries),
            relevant=len(relevant),
        )

        if not relevant:
            summary.message = "No new time entries to process."
            logger.info(summary.message)
            return summary

        for entry in relevant:
            outcome = self.process_entry(entry)
            summary.outcomes.append(outcome)
            if outcome.outcome == "annotated":
                summary.annotated += 1
            elif outcome.outcome == "skipped":
                summary.skipped += 1
            else:
                summary.failed += 1

        # Advance over the full fetched set, not just the relevant entries
        summary.watermark = advance_watermark(watermark, entries)
        save_watermark(self.store, summary.watermark)

        summary.message = "Time entries processed successfully."
        logger.info(
            "Processed %d entries (%d annotated, %d skipped, %d failed); watermark %s",
            summary.relevant,
            summary.annotated,
            summary.skipped,
            summary.failed,
            summary.watermark,
        )
        return summary

    def process_entry(self, entry: TimeEntry) -> EntryOutcome:
        """Aggregate, classify, reconcile labels and annotate one entry."""
        issue_id = entry.issue_id or ""

        if self.issue_marker not in issue_id:
            logger.info("Ignoring entry %s: %r is not a tracked issue", entry.id, issue_id)
            return EntryOutcome(
                entry_id=entry.id,
                issue_id=issue_id,
                outcome="skipped",
                reason=f"issue key lacks marker {self.issue_marker!r}",
            )

        try:
            issue = self.tracker.get_issue(issue_id)
            if issue is None or not issue.estimate:
                logger.info("Skipping %s: no estimate", issue_id)
                return EntryOutcome(
                    entry_id=entry.id,
                    issue_id=issue_id,
                    outcome="skipped",
                    reason="no estimate",
                )

            tracked = self.aggregator.tracked_hours(entry)
            result = classify(tracked, issue.estimate)
            label_ids = reconcile_labels(issue.label_ids, result.status, self.labels)
            comment = format_comment(
                result, author_name=entry.author_name, notes=entry.notes
            )

            self.tracker.annotate(issue_id, comment, label_ids)
            self.aggregator.commit(issue_id, tracked)
        except ENTRY_ERRORS as e:
            logger.error("Failed to annotate %s for entry %s: %s", issue_id, entry.id, e)
            return EntryOutcome(
                entry_id=entry.id,
                issue_id=issue_id,
                outcome="failed",
                reason=str(e),
            )

        logger.info("Annotated %s as %s (%s h)", issue_id, result.status, tracked)
        return EntryOutcome(
            entry_id=entry.id,
            issue_id=issue_id,
            outcome="annotated",
            status=result.status,
            tracked_hours=tracked,
        )
