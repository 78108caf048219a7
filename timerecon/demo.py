"""Offline demo: fixture-backed source and tracker with an in-memory store."""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Any

from timerecon.aggregate import FullRecomputeAggregator
from timerecon.checkpoint import WATERMARK_KEY, InMemoryCheckpointStore, parse_timestamp
from timerecon.models import IssueSnapshot, RunSummary, TimeEntry
from timerecon.reconcile import Reconciler

if TYPE_CHECKING:
    from collections.abc import Iterable

    from timerecon.config import StatusLabels

FIXTURES_DIR = Path(__file__).parent / "fixtures" / "demo"
DEMO_WATERMARK = "2024-01-01T00:00:00Z"


class FixtureTimeEntrySource:
    """Serves a fixed list of entries with Harvest's inclusive filters."""

    def __init__(self, entries: list[TimeEntry]) -> None:
        self.entries = entries

    def fetch_updated_since(self, since: str) -> list[TimeEntry]:
        threshold = parse_timestamp(since)
        return [e for e in self.entries if e.updated_at >= threshold]

    def fetch_for_reference(self, reference_id: str) -> list[TimeEntry]:
        return [e for e in self.entries if e.issue_id == reference_id]


class RecordingIssueTracker:
    """Keeps issues in memory and records every annotation instead of posting it."""

    def __init__(self, issues: dict[str, IssueSnapshot]) -> None:
        self.issues = issues
        self.annotations: list[dict[str, Any]] = []

    def get_issue(self, issue_id: str) -> IssueSnapshot | None:
        return self.issues.get(issue_id)

    def annotate(self, issue_id: str, comment: str, label_ids: Iterable[str]) -> None:
        labels = sorted(label_ids)
        self.annotations.append(
            {"issue_id": issue_id, "comment": comment, "label_ids": labels}
        )
        issue = self.issues[issue_id]
        self.issues[issue_id] = issue.model_copy(update={"label_ids": labels})


def load_demo_fixtures() -> tuple[list[TimeEntry], dict[str, IssueSnapshot]]:
    """Load demo time entries and Linear issues."""
    raw_entries = json.loads(
        (FIXTURES_DIR / "time_entries.json").read_text(encoding="utf-8")
    )
    raw_issues = json.loads((FIXTURES_DIR / "issues.json").read_text(encoding="utf-8"))

    entries = [TimeEntry.from_harvest(item) for item in raw_entries]
    issues = {item["issue_id"]: IssueSnapshot(**item) for item in raw_issues}
    return entries, issues


def run_demo(labels: StatusLabels) -> tuple[RunSummary, RecordingIssueTracker]:
    """Run one full-recompute pass over the fixtures, starting at DEMO_WATERMARK."""
    entries, issues = load_demo_fixtures()
    source = FixtureTimeEntrySource(entries)
    tracker = RecordingIssueTracker(issues)
    store = InMemoryCheckpointStore({WATERMARK_KEY: DEMO_WATERMARK})

    reconciler = Reconciler(
        store=store,
        source=source,
        tracker=tracker,
        aggregator=FullRecomputeAggregator(source),
        labels=labels,
    )
    return reconciler.run(), tracker
