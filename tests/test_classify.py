"""Tests for the hours-vs-estimate classifier and comment formatting."""

from __future__ import annotations

from decimal import Decimal

import pytest

from timerecon.classify import classify, format_comment, format_message
from timerecon.models import Status


class TestClassify:
    """classify() is a pure three-way comparison."""

    @pytest.mark.parametrize("value", [0, 1, 4.5, Decimal("7.25"), 100])
    def test_equal_is_on_track_with_zero_delta(self, value: Decimal | float) -> None:
        result = classify(value, value)
        assert result.status is Status.ON_TRACK
        assert result.delta == Decimal("0.00")

    def test_over(self) -> None:
        result = classify(Decimal("6.25"), 5)
        assert result.status is Status.OVER
        assert result.delta == Decimal("1.25")

    def test_under(self) -> None:
        result = classify(3, 5)
        assert result.status is Status.UNDER
        assert result.delta == Decimal("2.00")

    def test_half_up_rounding_at_boundary(self) -> None:
        """0.555 rounds up to 0.56 (decimal half-up, no binary float drift)."""
        result = classify(5.555, 5.0)
        assert result.status is Status.OVER
        assert result.delta == Decimal("0.56")

    def test_under_half_up_rounding(self) -> None:
        result = classify(Decimal("1.005"), 2)
        assert result.status is Status.UNDER
        # 0.995 -> 1.00
        assert result.delta == Decimal("1.00")

    def test_is_deterministic(self) -> None:
        assert classify(3.1, 4) == classify(3.1, 4)


class TestMessages:
    """Message wording is part of the Linear comment contract."""

    def test_over_message(self) -> None:
        message = format_message(classify(Decimal("6.25"), 5))
        assert message == (
            "🔴 **Over**: 6.25 hours tracked, which is 1.25 hours over "
            "the estimate of 5 hours."
        )

    def test_under_message(self) -> None:
        message = format_message(classify(3, 5))
        assert message == (
            "🟢 **Under**: 3.00 hours tracked, which is 2.00 hours under "
            "the estimate of 5 hours."
        )

    def test_on_track_message(self) -> None:
        message = format_message(classify(Decimal("4.00"), 4))
        assert message == (
            "🟡 **On Track**: 4.00 hours tracked, which matches the estimate "
            "of 4 hours exactly."
        )

    def test_estimate_rendered_as_provided(self) -> None:
        """Totals are fixed to 2 places, the estimate is not reformatted."""
        message = format_message(classify(2, 2.5))
        assert "2.00 hours tracked" in message
        assert "estimate of 2.5 hours" in message

    def test_full_comment(self) -> None:
        comment = format_comment(
            classify(3, 5), author_name="Alex Rivera", notes="Wired up settings"
        )
        assert comment == (
            "🕒 **Time Tracked** by Alex Rivera: 🟢 **Under**: 3.00 hours tracked, "
            "which is 2.00 hours under the estimate of 5 hours. "
            "📝 **Notes**: Wired up settings"
        )

    def test_comment_is_trimmed_when_notes_empty(self) -> None:
        comment = format_comment(classify(3, 5), author_name="Alex", notes="")
        assert comment.endswith("📝 **Notes**:")
        assert comment == comment.strip()
