"""HTTP client guard for offline (demo) egress control."""

import os
from typing import Any

import httpx


def egress_blocked() -> bool:
    return os.getenv("TIMERECON_NO_EGRESS") == "1"


def create_guarded_client(**kwargs: Any) -> httpx.Client:  # noqa: ANN401
    """Create an httpx client that respects TIMERECON_NO_EGRESS."""
    if egress_blocked():
        msg = "External API calls blocked in offline mode (TIMERECON_NO_EGRESS=1)"
        raise RuntimeError(msg)
    return httpx.Client(**kwargs)
