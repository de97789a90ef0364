"""Clock helpers."""

from __future__ import annotations

import time
from datetime import UTC, datetime


def utc_now() -> datetime:
    return datetime.now(UTC)


def now_ms() -> int:
    """Wall-clock milliseconds since the epoch, matching browser ``Date.now()``."""

    return time.time_ns() // 1_000_000


__all__ = ["now_ms", "utc_now"]
