"""
Change detection between two windowed snapshots of the feed, keyed by event identity.
"""
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))
from models import CalendarEvent

NO_TIME = "no-time"


def event_identity(event: CalendarEvent) -> str:
    """Key naming one real-world occurrence: date, time, details, location and type."""
    return f"{event.date}_{event.time or NO_TIME}_{event.details}_{event.location}_{event.type}"


def detect_new_events(
    current: list[CalendarEvent],
    previous: list[CalendarEvent],
    first_fetch: bool = False,
) -> list[CalendarEvent]:
    """
    Return events of `current` whose identity is absent from `previous`, in `current` order.
    Nothing is new on the first fetch or when there is no previous snapshot.
    """
    if first_fetch or not previous:
        return []
    seen = {event_identity(e) for e in previous}
    return [e for e in current if event_identity(e) not in seen]


if __name__ == "__main__":
    base = [
        CalendarEvent(
            date="2025-01-15",
            time="10:00:00",
            details="The President receives his intelligence briefing",
            location="The White House",
            type="Briefing",
        ),
    ]
    added = base + [CalendarEvent(date="2025-01-16", details="Remarks", location="Rose Garden", type="Remarks")]
    print("First fetch new events:", len(detect_new_events(base, [], first_fetch=True)))
    print("Unchanged feed new events:", len(detect_new_events(base, base)))
    print("Added feed new events:", len(detect_new_events(added, base)))
