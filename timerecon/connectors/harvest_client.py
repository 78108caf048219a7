"""Harvest time entry source with pagination and bounded retry."""

from __future__ import annotations

import logging
import random
import time
from types import TracebackType
from typing import TYPE_CHECKING, Any, Self

import httpx
from pydantic import ValidationError

from timerecon.errors import SourceFetchError
from timerecon.http_guard import create_guarded_client
from timerecon.models import TimeEntry

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from timerecon.config import HarvestCredentials, Settings

__all__ = ["HARVEST_API_URL", "HarvestClient", "create_harvest_client"]

logger = logging.getLogger(__name__)

HARVEST_API_URL = "https://api.harvestapp.com/v2"
USER_AGENT = "timerecon (Harvest to Linear estimate reconciliation)"
RETRYABLE_STATUS = (429, 500, 502, 503, 504)
MAX_ATTEMPTS = 3


def _default_backoff(attempt: int) -> float:
    """~0.5s, 1s, 2s with ±20% jitter; tests may override to 0."""
    base = 0.5 * (2**attempt)
    jitter: float = random.uniform(-0.2, 0.2)  # noqa: S311
    return base * (1 + jitter)


class HarvestClient:
    """Read-only Harvest API v2 client: 5s connect, 15s read."""

    def __init__(
        self,
        credentials: HarvestCredentials,
        *,
        base_url: str = HARVEST_API_URL,
        backoff_fn: Callable[[int], float] | None = None,
    ) -> None:
        self.credentials = credentials
        self.base_url = base_url
        self.backoff_fn = backoff_fn or _default_backoff
        self.client = create_guarded_client(
            timeout=httpx.Timeout(connect=5.0, read=15.0, write=10.0, pool=10.0),
            headers={
                "Authorization": f"Bearer {credentials.api_key}",
                "Harvest-Account-Id": credentials.account_id,
                "User-Agent": USER_AGENT,
                "Accept": "application/json",
            },
        )

    def _get(self, url: str, params: dict[str, str] | None) -> dict[str, Any]:
        # Retry only on 429/5xx + connect/timeout
        for attempt in range(MAX_ATTEMPTS):
            try:
                resp = self.client.get(url, params=params)
                resp.raise_for_status()
                break
            except httpx.HTTPStatusError as e:
                code = e.response.status_code
                if code in RETRYABLE_STATUS and attempt < MAX_ATTEMPTS - 1:
                    logger.warning("Harvest returned %s, retrying", code)
                    time.sleep(self.backoff_fn(attempt))
                    continue
                msg = f"Failed to fetch time entries from Harvest (HTTP {code})"
                raise SourceFetchError(msg) from e
            except (httpx.ConnectError, httpx.TimeoutException) as e:
                if attempt < MAX_ATTEMPTS - 1:
                    logger.warning("Harvest unreachable (%s), retrying", e)
                    time.sleep(self.backoff_fn(attempt))
                    continue
                msg = f"Failed to fetch time entries from Harvest: {e}"
                raise SourceFetchError(msg) from e

        return resp.json()  # type: ignore[no-any-return]

    def _iter_entries(self, params: dict[str, str]) -> Iterator[TimeEntry]:
        url: str | None = f"{self.base_url}/time_entries"
        page_params: dict[str, str] | None = params

        while url:
            data = self._get(url, page_params)
            for item in data.get("time_entries") or []:
                try:
                    yield TimeEntry.from_harvest(item)
                except (KeyError, ValidationError) as e:
                    msg = f"Malformed Harvest time entry {item.get('id')!r}: {e}"
                    raise SourceFetchError(msg) from e

            # links.next already carries the query string
            url = (data.get("links") or {}).get("next")
            page_params = None

    def fetch_updated_since(self, since: str) -> list[TimeEntry]:
        """All entries with updated_at >= since (Harvest filter is inclusive)."""
        return list(self._iter_entries({"updated_since": since}))

    def fetch_for_reference(self, reference_id: str) -> list[TimeEntry]:
        """Every entry ever logged against an external reference (issue key)."""
        return list(self._iter_entries({"external_reference_id": reference_id}))

    def close(self) -> None:
        """Close the HTTP client."""
        self.client.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()


def create_harvest_client(settings: Settings) -> HarvestClient:
    """Create Harvest client from settings."""
    return HarvestClient(settings.harvest)
