"""
Date-based views of the feed: trailing window for diffing, today/upcoming split for the digest.
"""
from __future__ import annotations

import sys
from datetime import datetime, timedelta
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from models import CalendarEvent

WINDOW_DAYS = 14


def window_cutoff(now: datetime, days: int = WINDOW_DAYS) -> str:
    """Return the earliest date (YYYY-MM-DD) still inside the trailing window."""
    return (now - timedelta(days=days)).date().isoformat()


def filter_to_window(
    events: list[CalendarEvent],
    now: datetime,
    days: int = WINDOW_DAYS,
) -> list[CalendarEvent]:
    """Keep events dated on or after now - days. ISO dates compare correctly as strings."""
    cutoff = window_cutoff(now, days)
    return [e for e in events if e.date >= cutoff]


def partition_schedule(
    events: list[CalendarEvent],
    today: str,
) -> tuple[list[CalendarEvent], list[CalendarEvent]]:
    """Split the full feed into (today, upcoming), keeping feed order."""
    today_events = [e for e in events if e.date == today]
    upcoming = [e for e in events if e.date > today]
    return today_events, upcoming


if __name__ == "__main__":
    from datetime import timezone

    now = datetime.now(timezone.utc)
    feed = [
        CalendarEvent(date="2020-01-01", details="Old"),
        CalendarEvent(date=now.date().isoformat(), details="Today"),
        CalendarEvent(date="2999-01-01", details="Far future"),
    ]
    print("Cutoff:", window_cutoff(now))
    print("Windowed:", [e.details for e in filter_to_window(feed, now)])
    t, u = partition_schedule(feed, now.date().isoformat())
    print("Today:", [e.details for e in t], "Upcoming:", [e.details for e in u])
