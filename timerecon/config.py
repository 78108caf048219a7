"""Process-wide settings read from the environment."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Self, cast

import yaml
from pydantic import BaseModel, model_validator

from timerecon.models import Status

__all__ = [
    "HarvestCredentials",
    "LinearCredentials",
    "Settings",
    "StatusLabels",
    "load_settings_from_env",
    "load_status_labels",
    "normalize_database_url",
]

REQUIRED_ENV = ("HARVEST_API_KEY", "HARVEST_ACCOUNT_ID", "LINEAR_API_KEY", "DATABASE_URL")


class StatusLabels(BaseModel):
    """Linear label ids of the three mutually exclusive status labels."""

    over: str
    under: str
    on_track: str

    @model_validator(mode="after")
    def _distinct(self) -> Self:
        if len({self.over, self.under, self.on_track}) != 3:  # noqa: PLR2004
            msg = "Status label ids must be three distinct values"
            raise ValueError(msg)
        return self

    def for_status(self, status: Status) -> str:
        return {
            Status.OVER: self.over,
            Status.UNDER: self.under,
            Status.ON_TRACK: self.on_track,
        }[status]

    def all_ids(self) -> frozenset[str]:
        return frozenset((self.over, self.under, self.on_track))


class HarvestCredentials(BaseModel):
    api_key: str
    account_id: str


class LinearCredentials(BaseModel):
    api_key: str


class Settings(BaseModel):
    harvest: HarvestCredentials
    linear: LinearCredentials
    database_url: str
    tracked_service: str = "linear.app"
    issue_marker: str = "WIL"
    aggregation: Literal["full", "incremental"] = "full"
    labels: StatusLabels


@lru_cache(maxsize=1)
def _load_label_defaults() -> dict[str, Any]:
    """Load the packaged status label ids (cached)."""
    labels_path = Path(__file__).parent / "labels.yaml"
    result = yaml.safe_load(labels_path.read_text(encoding="utf-8"))
    return cast(dict[str, Any], result["status_labels"])


def load_status_labels() -> StatusLabels:
    """Packaged label ids with TIMERECON_LABEL_* overrides applied."""
    defaults = _load_label_defaults()
    return StatusLabels(
        over=os.getenv("TIMERECON_LABEL_OVER") or defaults["over"],
        under=os.getenv("TIMERECON_LABEL_UNDER") or defaults["under"],
        on_track=os.getenv("TIMERECON_LABEL_ON_TRACK") or defaults["on_track"],
    )


def normalize_database_url(database_url: str) -> str:
    """Route bare postgresql:// URLs to the psycopg driver."""
    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+psycopg://", 1)
    return database_url


def load_settings_from_env() -> Settings:
    """Create settings from environment variables.

    Raises:
        ValueError: If a required variable is missing or a value is invalid
    """
    missing = [name for name in REQUIRED_ENV if not os.getenv(name)]
    if missing:
        msg = f"Missing required environment variables: {', '.join(missing)}"
        raise ValueError(msg)

    return Settings(
        harvest=HarvestCredentials(
            api_key=os.environ["HARVEST_API_KEY"],
            account_id=os.environ["HARVEST_ACCOUNT_ID"],
        ),
        linear=LinearCredentials(api_key=os.environ["LINEAR_API_KEY"]),
        database_url=normalize_database_url(os.environ["DATABASE_URL"]),
        tracked_service=os.getenv("TIMERECON_SERVICE", "linear.app"),
        issue_marker=os.getenv("TIMERECON_ISSUE_MARKER", "WIL"),
        aggregation=os.getenv("TIMERECON_AGGREGATION", "full"),  # type: ignore[arg-type]
        labels=load_status_labels(),
    )
