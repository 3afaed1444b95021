"""
Purpose: Presence rules for runners (is this runner actually "there" right now?).
What it does:
A runner is present when the app heartbeat is recent AND the location fix is
either fresh or was never timestamped. A fix with no timestamp falls back to
whatever location is on file; a fix that is timestamped and stale does not.
"""

from datetime import datetime, timedelta
from typing import Optional

from .models import Runner


def _within(timestamp: Optional[datetime], now: datetime, window_seconds: float) -> bool:
    if timestamp is None:
        return False
    return now - timestamp <= timedelta(seconds=window_seconds)


def has_recent_heartbeat(runner: Runner, now: datetime, window_seconds: float = 120) -> bool:
    return _within(runner.last_seen_at, now, window_seconds)


def has_fresh_location(runner: Runner, now: datetime, freshness_seconds: float = 90) -> bool:
    """No fix timestamp at all counts as fresh."""
    if runner.location_updated_at is None:
        return True
    return _within(runner.location_updated_at, now, freshness_seconds)


def is_present(
    runner: Runner,
    now: datetime,
    heartbeat_window_seconds: float = 120,
    location_freshness_seconds: float = 90,
) -> bool:
    return has_recent_heartbeat(runner, now, heartbeat_window_seconds) and has_fresh_location(
        runner, now, location_freshness_seconds
    )
