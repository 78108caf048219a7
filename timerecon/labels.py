"""Status label reconciliation."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from timerecon.config import StatusLabels
    from timerecon.models import Status


def reconcile_labels(
    current: Iterable[str], status: Status, labels: StatusLabels
) -> set[str]:
    """Drop every status label, then add the one for `status`.

    Exactly one status label remains no matter how many were present before;
    all other labels are kept.
    """
    reconciled = set(current) - labels.all_ids()
    reconciled.add(labels.for_status(status))
    return reconciled
