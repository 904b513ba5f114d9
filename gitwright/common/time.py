"""Common time utilities."""

from __future__ import annotations

import datetime as dt


def utcnow() -> dt.datetime:
    """Return an aware UTC timestamp suitable for DB defaults."""
    return dt.datetime.now(dt.UTC)


def elapsed_ms(started: float, finished: float) -> int:
    """Convert a pair of ``time.monotonic`` readings into whole milliseconds."""
    return max(0, round((finished - started) * 1000))
