from __future__ import annotations

import time
from datetime import timezone
from typing import Optional


def now_ms() -> int:
    """Return current time as integer milliseconds since the Unix epoch."""
    return int(time.time() * 1000)


def iso_to_ms(ts: Optional[str]) -> Optional[int]:
    """Convert an ISO 8601 timestamp string to epoch milliseconds.

    - If ts is None/empty, returns None.
    - Accepts ISO strings with or without timezone (naive -> assume UTC).
    - Returns None if parsing fails.
    """
    if not ts:
        return None

    try:
        from dateutil.parser import isoparse

        dt = isoparse(ts)
    except (ValueError, OverflowError, TypeError):
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    return int(dt.timestamp() * 1000)
