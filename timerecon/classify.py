"""Three-way comparison of tracked hours against an estimate, and its comment."""

from __future__ import annotations

from decimal import Decimal

from timerecon.models import Classification, Status, round_hours, to_decimal

ZERO_DELTA = Decimal("0.00")


def classify(
    tracked: Decimal | float | int, estimate: Decimal | float | int
) -> Classification:
    """Pure: OVER / UNDER / ON_TRACK plus the rounded distance to the estimate."""
    tracked = to_decimal(tracked)
    estimate = to_decimal(estimate)

    if tracked > estimate:
        return Classification(
            status=Status.OVER,
            tracked=tracked,
            estimate=estimate,
            delta=round_hours(tracked - estimate),
        )
    if tracked < estimate:
        return Classification(
            status=Status.UNDER,
            tracked=tracked,
            estimate=estimate,
            delta=round_hours(estimate - tracked),
        )
    return Classification(
        status=Status.ON_TRACK, tracked=tracked, estimate=estimate, delta=ZERO_DELTA
    )


def _hours(value: Decimal) -> str:
    return f"{round_hours(value):.2f}"


def format_message(result: Classification) -> str:
    # Totals and deltas are fixed to 2 places; the estimate is shown as Linear sent it
    tracked = _hours(result.tracked)
    estimate = f"{result.estimate:f}"

    if result.status is Status.OVER:
        return (
            f"🔴 **Over**: {tracked} hours tracked, which is {_hours(result.delta)} "
            f"hours over the estimate of {estimate} hours."
        )
    if result.status is Status.UNDER:
        return (
            f"🟢 **Under**: {tracked} hours tracked, which is {_hours(result.delta)} "
            f"hours under the estimate of {estimate} hours."
        )
    return (
        f"🟡 **On Track**: {tracked} hours tracked, which matches the estimate "
        f"of {estimate} hours exactly."
    )


def format_comment(result: Classification, *, author_name: str, notes: str) -> str:
    """Full Linear comment body for one time entry."""
    comment = (
        f"🕒 **Time Tracked** by {author_name}: {format_message(result)} "
        f"📝 **Notes**: {notes}"
    )
    return comment.strip()
