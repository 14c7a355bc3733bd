"""Capped backoff schedule for failed webhook deliveries."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Sequence

# 1min, 5min, 15min, 1h, 6h
RETRY_DELAYS: tuple[int, ...] = (60, 300, 900, 3600, 21600)


def retry_delay(attempts: int, delays: Sequence[int] = RETRY_DELAYS) -> timedelta:
    """Delay before the next attempt; clamped to the last step of ``delays``."""
    index = min(max(attempts, 0), len(delays) - 1)
    return timedelta(seconds=delays[index])


def next_retry_at(
    attempts: int,
    *,
    now: datetime | None = None,
    delays: Sequence[int] = RETRY_DELAYS,
) -> datetime:
    if now is None:
        now = datetime.now(timezone.utc)
    return now + retry_delay(attempts, delays)
