"""Tests for status label reconciliation."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from tests.utils.fakes import ON_TRACK, OVER, UNDER
from timerecon.config import StatusLabels
from timerecon.labels import reconcile_labels
from timerecon.models import Status

STATUS_IDS = {OVER, UNDER, ON_TRACK}
EXPECTED = {Status.OVER: OVER, Status.UNDER: UNDER, Status.ON_TRACK: ON_TRACK}

PRIOR_SETS = [
    set(),
    {"frontend"},
    {UNDER},
    {OVER, "backend"},
    # Drifted: two status labels at once
    {OVER, UNDER, "backend", "frontend"},
    {OVER, UNDER, ON_TRACK},
]


@pytest.mark.parametrize("status", list(Status))
@pytest.mark.parametrize("prior", PRIOR_SETS)
def test_exactly_one_status_label_remains(
    labels: StatusLabels, prior: set[str], status: Status
) -> None:
    result = reconcile_labels(prior, status, labels)

    assert result & STATUS_IDS == {EXPECTED[status]}
    assert result - STATUS_IDS == prior - STATUS_IDS


def test_does_not_mutate_input(labels: StatusLabels) -> None:
    prior = [OVER, "frontend"]
    reconcile_labels(prior, Status.UNDER, labels)
    assert prior == [OVER, "frontend"]


def test_reconcile_is_idempotent(labels: StatusLabels) -> None:
    once = reconcile_labels({"frontend", OVER}, Status.ON_TRACK, labels)
    assert reconcile_labels(once, Status.ON_TRACK, labels) == once


def test_status_labels_must_be_distinct() -> None:
    with pytest.raises(ValidationError, match="three distinct"):
        StatusLabels(over="a", under="a", on_track="b")
