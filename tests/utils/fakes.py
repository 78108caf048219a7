"""In-memory collaborators for driving the reconciler in tests."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from timerecon.errors import AnnotationError, SourceFetchError
from timerecon.models import IssueSnapshot, TimeEntry

if TYPE_CHECKING:
    from collections.abc import Iterable

OVER = "label-over"
UNDER = "label-under"
ON_TRACK = "label-on-track"


def harvest_payload(
    entry_id: int,
    hours: float,
    updated_at: str,
    *,
    issue_id: str | None = "WIL-12",
    service: str = "linear.app",
    notes: str | None = "",
    author: str = "Alex Rivera",
) -> dict[str, Any]:
    """A raw item as returned in Harvest's `time_entries` array."""
    return {
        "id": entry_id,
        "hours": hours,
        "notes": notes,
        "updated_at": updated_at,
        "user": {"id": 1, "name": author},
        "external_reference": (
            None
            if issue_id is None
            else {"id": issue_id, "service": service, "group_id": "team"}
        ),
    }


def make_entry(entry_id: int, hours: float, updated_at: str, **kwargs: Any) -> TimeEntry:  # noqa: ANN401
    return TimeEntry.from_harvest(harvest_payload(entry_id, hours, updated_at, **kwargs))


class FakeSource:
    """Returns every configured entry; the inclusive `since` filter is the API's job."""

    def __init__(self, entries: list[TimeEntry], *, fail: bool = False) -> None:
        self.entries = entries
        self.fail = fail
        self.since_calls: list[str] = []
        self.reference_calls: list[str] = []

    def fetch_updated_since(self, since: str) -> list[TimeEntry]:
        self.since_calls.append(since)
        if self.fail:
            msg = "Failed to fetch time entries from Harvest (HTTP 503)"
            raise SourceFetchError(msg)
        return list(self.entries)

    def fetch_for_reference(self, reference_id: str) -> list[TimeEntry]:
        self.reference_calls.append(reference_id)
        return [e for e in self.entries if e.issue_id == reference_id]


class FakeTracker:
    """Linear stand-in: serves snapshots and applies annotations in memory."""

    def __init__(
        self,
        issues: dict[str, IssueSnapshot] | None = None,
        *,
        fail_for: Iterable[str] = (),
    ) -> None:
        self.issues = dict(issues or {})
        self.fail_for = set(fail_for)
        self.lookups: list[str] = []
        self.annotations: list[dict[str, Any]] = []

    def add_issue(
        self, issue_id: str, estimate: float | None, label_ids: list[str] | None = None
    ) -> None:
        self.issues[issue_id] = IssueSnapshot(
            issue_id=issue_id, estimate=estimate, label_ids=label_ids or []
        )

    def get_issue(self, issue_id: str) -> IssueSnapshot | None:
        self.lookups.append(issue_id)
        return self.issues.get(issue_id)

    def annotate(self, issue_id: str, comment: str, label_ids: Iterable[str]) -> None:
        if issue_id in self.fail_for:
            msg = "Failed to update Linear issue."
            raise AnnotationError(msg)
        labels = set(label_ids)
        self.annotations.append(
            {"issue_id": issue_id, "comment": comment, "label_ids": labels}
        )
        self.issues[issue_id] = self.issues[issue_id].model_copy(
            update={"label_ids": sorted(labels)}
        )
