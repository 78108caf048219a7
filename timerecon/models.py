"""Typed records shared by the sources, the classifier and the run driver."""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

HOURS_QUANTUM = Decimal("0.01")


def to_decimal(value: Decimal | float | int | str) -> Decimal:
    """Convert an API number to Decimal through its text form (no binary float noise)."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_hours(value: Decimal) -> Decimal:
    """Round to 2 places, half-up (5.555 -> 5.56)."""
    return value.quantize(HOURS_QUANTUM, rounding=ROUND_HALF_UP)


class Status(StrEnum):
    OVER = "over"
    UNDER = "under"
    ON_TRACK = "on_track"


class ExternalReference(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    service: str
    group_id: str | None = None


class TimeEntry(BaseModel):
    """A Harvest time entry. Produced by the source, never mutated locally."""

    model_config = ConfigDict(frozen=True)

    id: int
    hours: Decimal
    notes: str = ""
    updated_at: datetime
    author_name: str = ""
    external_reference: ExternalReference | None = None

    @field_validator("hours", mode="before")
    @classmethod
    def _hours_from_text(cls, value: Any) -> Any:  # noqa: ANN401
        if isinstance(value, float | int):
            return to_decimal(value)
        return value

    @field_validator("notes", mode="before")
    @classmethod
    def _notes_default(cls, value: Any) -> Any:  # noqa: ANN401
        return value or ""

    @field_validator("updated_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @property
    def issue_id(self) -> str | None:
        if self.external_reference is None:
            return None
        return self.external_reference.id

    @classmethod
    def from_harvest(cls, payload: dict[str, Any]) -> TimeEntry:
        """Build an entry from a raw `/v2/time_entries` item."""
        user = payload.get("user") or {}
        return cls(
            id=payload["id"],
            hours=payload["hours"],
            notes=payload.get("notes"),
            updated_at=payload["updated_at"],
            author_name=user.get("name") or "",
            external_reference=payload.get("external_reference"),
        )


class IssueSnapshot(BaseModel):
    """Estimate and current labels of a Linear issue, fetched per entry."""

    issue_id: str
    estimate: Decimal | None = None
    label_ids: list[str] = Field(default_factory=list)

    @field_validator("estimate", mode="before")
    @classmethod
    def _estimate_from_text(cls, value: Any) -> Any:  # noqa: ANN401
        if isinstance(value, float | int):
            return to_decimal(value)
        return value


class Classification(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Status
    tracked: Decimal
    estimate: Decimal
    delta: Decimal


class EntryOutcome(BaseModel):
    entry_id: int
    issue_id: str
    outcome: Literal["annotated", "skipped", "failed"]
    status: Status | None = None
    tracked_hours: Decimal | None = None
    reason: str | None = None


class RunSummary(BaseModel):
    previous_watermark: str
    watermark: str
    fetched: int = 0
    relevant: int = 0
    annotated: int = 0
    skipped: int = 0
    failed: int = 0
    message: str = ""
    outcomes: list[EntryOutcome] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.failed == 0
