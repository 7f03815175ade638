"""
Format calendar events as short posts bounded to the 280-character budget.
"""
from __future__ import annotations

import sys
from datetime import date
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from models import CalendarEvent

CHAR_BUDGET = 280
MAX_DIGEST_EVENTS = 8
HASHTAGS = "\n\n#WhiteHouse #Trump #Schedule"
ELLIPSIS = "..."
WHITE_HOUSE = "The White House"
NO_PUBLIC_EVENTS = "The President has no public events scheduled"
DIGEST_SEPARATOR = "\n\n" + "━" * 20 + "\n\n"


def short_date(iso_date: str) -> str:
    """'2025-01-15' -> 'Wed, Jan 15'."""
    d = date.fromisoformat(iso_date)
    return f"{d:%a}, {d:%b} {d.day}"


def long_date(iso_date: str) -> str:
    """'2025-01-15' -> 'January 15, 2025'."""
    d = date.fromisoformat(iso_date)
    return f"{d:%B} {d.day}, {d.year}"


def _truncate(text: str, limit: int) -> str:
    return text[: max(limit, 0)] + ELLIPSIS


def _location_marker(location: str) -> str:
    if location == WHITE_HOUSE:
        return "🏛️ White House"
    return f"📍 {location}"


def _alert_block(event: CalendarEvent, number: str) -> str:
    when = short_date(event.date)
    time = event.time_formatted or "Time TBA"
    location = _location_marker(event.location)
    details = event.details
    max_details = 100 - (len(number) + len(when) + len(time) + len(location) + 10)
    if len(details) > max_details:
        details = _truncate(details, max_details - len(ELLIPSIS))
    return f"{number}📅 {when} {time}\n{location}\n{details}"


def format_new_events_alert(events: list[CalendarEvent]) -> str:
    """Alert post for newly detected events. Always at most CHAR_BUDGET characters."""
    if not events:
        return ""
    if len(events) == 1:
        header = "🚨 NEW WHITE HOUSE EVENT:"
    else:
        header = f"🚨 {len(events)} NEW WHITE HOUSE EVENTS:"
    blocks = [
        _alert_block(e, f"{i}. " if len(events) > 1 else "")
        for i, e in enumerate(events, start=1)
    ]
    text = f"{header}\n\n" + "\n\n".join(blocks)
    if len(text) + len(HASHTAGS) <= CHAR_BUDGET:
        text += HASHTAGS
    if len(text) > CHAR_BUDGET:
        text = _truncate(text, CHAR_BUDGET - len(ELLIPSIS))
    return text


def _digest_header(iso_date: str, today: str) -> str:
    if iso_date == today:
        label = f"🗓️ Today, {long_date(iso_date)}"
    else:
        label = f"🗓️ {date.fromisoformat(iso_date):%A}, {long_date(iso_date)}"
    return label.upper()


def _digest_line(event: CalendarEvent) -> str:
    time = (event.time_formatted or "").upper()
    details = event.details
    if len(details) > 60:
        details = _truncate(details, 57)
    if NO_PUBLIC_EVENTS in details:
        return f"❌ {NO_PUBLIC_EVENTS}"
    return f"{time}:   {details}\n📍 {event.location} 👥 {event.coverage}"


def format_schedule_digest(
    today_events: list[CalendarEvent],
    upcoming_events: list[CalendarEvent],
    today: str,
) -> str:
    """
    Digest post of today's and upcoming events, grouped by date.
    Only the hashtag suffix is budget-checked; the body itself is not clamped.
    """
    all_events = sorted(
        [*today_events, *upcoming_events],
        key=lambda e: (e.date, e.time or ""),
    )
    if not all_events:
        return ""

    by_date: dict[str, list[CalendarEvent]] = {}
    for e in all_events[:MAX_DIGEST_EVENTS]:
        by_date.setdefault(e.date, []).append(e)

    sections = [
        f"{_digest_header(d, today)}\n\n" + "\n\n".join(_digest_line(e) for e in group)
        for d, group in by_date.items()
    ]
    text = DIGEST_SEPARATOR.join(sections)

    if len(all_events) > MAX_DIGEST_EVENTS:
        text += f"\n\n+ {len(all_events) - MAX_DIGEST_EVENTS} more events..."
    if len(text) + len(HASHTAGS) <= CHAR_BUDGET:
        text += HASHTAGS
    return text


if __name__ == "__main__":
    e = CalendarEvent(
        date="2025-01-15",
        time="14:00:00",
        time_formatted="2:00 PM",
        details="The President will host a bilateral meeting",
        location="The White House",
        type="Meeting",
        coverage="Closed Press",
    )
    print(format_new_events_alert([e]))
    print("-----")
    print(format_schedule_digest([e], [], today="2025-01-15"))
