"""Tests for the poll loop state machine."""
import asyncio

import pytest

from models import CalendarEvent
from providers.base import BaseFeedSource, FetchError
from publishers.base import BasePublisher
from publishers.console import ConsolePublisher
from tracker import CalendarTracker


class ScriptedSource(BaseFeedSource):
    """Returns (or raises) one queued item per fetch; repeats the last item when the queue runs out."""

    def __init__(self, *feeds) -> None:
        self.feeds = list(feeds)
        self.calls = 0

    async def fetch_events(self, session):
        self.calls += 1
        item = self.feeds.pop(0) if len(self.feeds) > 1 else self.feeds[0]
        if isinstance(item, Exception):
            raise item
        return list(item)


class FailingPublisher(BasePublisher):
    def __init__(self) -> None:
        self.calls = 0

    async def publish(self, text, media=None):
        self.calls += 1
        return False


def make_tracker(source, publisher, fixed_now):
    return CalendarTracker(source, publisher, session=None, clock=lambda: fixed_now)


async def run_cycles(tracker, n):
    results = []
    for _ in range(n):
        results.append(await tracker.run_cycle())
    if tracker.publish_tasks:
        await asyncio.gather(*tracker.publish_tasks)
    return results


@pytest.fixture
def feed(make_event):
    return [
        make_event(date="2024-11-01", details="Long gone"),
        make_event(date="2025-01-14", details="Yesterday's briefing"),
        make_event(date="2025-01-15", details="Today's briefing"),
    ]


class TestRunCycle:

    def test_first_fetch_never_publishes(self, feed, fixed_now):
        publisher = ConsolePublisher()
        tracker = make_tracker(ScriptedSource(feed), publisher, fixed_now)

        (new,) = asyncio.run(run_cycles(tracker, 1))

        assert new == []
        assert publisher.sent == []
        assert tracker.state.first_fetch is False
        assert len(tracker.state.previous_window) == 2

    def test_unchanged_feed_publishes_nothing(self, feed, fixed_now):
        publisher = ConsolePublisher()
        tracker = make_tracker(ScriptedSource(feed, feed), publisher, fixed_now)

        first, second = asyncio.run(run_cycles(tracker, 2))

        assert first == [] and second == []
        assert publisher.sent == []

    def test_new_event_publishes_digest(self, feed, make_event, fixed_now):
        added = make_event(date="2025-01-16", details="Bilateral meeting", location="Oval Office")
        publisher = ConsolePublisher()
        tracker = make_tracker(ScriptedSource(feed, feed + [added]), publisher, fixed_now)

        _, new = asyncio.run(run_cycles(tracker, 2))

        assert new == [added]
        assert len(publisher.sent) == 1
        digest = publisher.sent[0]
        assert digest.startswith("🗓️ TODAY, JANUARY 15, 2025")
        assert "Bilateral meeting" in digest
        assert "THURSDAY, JANUARY 16, 2025" in digest

    def test_new_event_outside_window_is_ignored(self, feed, make_event, fixed_now):
        old = make_event(date="2024-12-01", details="Backfilled entry")
        publisher = ConsolePublisher()
        tracker = make_tracker(ScriptedSource(feed, feed + [old]), publisher, fixed_now)

        _, new = asyncio.run(run_cycles(tracker, 2))

        assert new == []
        assert publisher.sent == []

    def test_new_past_event_without_schedule_skips_publish(self, make_event, fixed_now):
        past = [make_event(date="2025-01-10", details="A")]
        added = make_event(date="2025-01-12", details="B")
        publisher = ConsolePublisher()
        tracker = make_tracker(ScriptedSource(past, past + [added]), publisher, fixed_now)

        _, new = asyncio.run(run_cycles(tracker, 2))

        assert new == [added]
        assert publisher.sent == []

    def test_fetch_error_leaves_state_untouched(self, feed, make_event, fixed_now):
        added = make_event(date="2025-01-17", details="Rally")
        source = ScriptedSource(feed, FetchError("boom", status=503, body="unavailable"), feed + [added])
        publisher = ConsolePublisher()
        tracker = make_tracker(source, publisher, fixed_now)

        async def scenario():
            await tracker.run_cycle()
            window_before = tracker.state.previous_window
            updated_before = tracker.state.last_updated
            assert await tracker.run_cycle() == []
            assert tracker.state.previous_window is window_before
            assert tracker.state.last_updated is updated_before
            return await tracker.run_cycle()

        assert asyncio.run(scenario()) == [added]

    def test_fetch_error_on_start_keeps_first_fetch_pending(self, feed, fixed_now):
        tracker = make_tracker(ScriptedSource(FetchError("down"), feed), ConsolePublisher(), fixed_now)

        asyncio.run(run_cycles(tracker, 1))

        assert tracker.state.first_fetch is True
        assert tracker.state.schedule == []

    def test_failed_publish_does_not_roll_back_snapshot(self, feed, make_event, fixed_now):
        added = make_event(date="2025-01-16", details="Press conference")
        publisher = FailingPublisher()
        tracker = make_tracker(ScriptedSource(feed, feed + [added], feed + [added]), publisher, fixed_now)

        _, second, third = asyncio.run(run_cycles(tracker, 3))

        assert second == [added]
        assert third == []
        assert publisher.calls == 1

    def test_formatting_error_still_replaces_snapshot(self, feed, make_event, fixed_now):
        # model_construct skips validation, as an unvalidated record would
        bad = CalendarEvent.model_construct(date="2025-1-20", details="Unparseable date")
        publisher = ConsolePublisher()
        tracker = make_tracker(ScriptedSource(feed, feed + [bad]), publisher, fixed_now)

        async def scenario():
            await tracker.tick()
            await tracker.tick()
            assert len(tracker.state.previous_window) == 3
            assert tracker.state.schedule[-1] is bad
            return await tracker.run_cycle()

        assert asyncio.run(scenario()) == []
        assert publisher.sent == []

    def test_cached_views_are_refreshed(self, make_event, fixed_now):
        events = [make_event(date="2025-01-15", details=f"E{i}") for i in range(12)]
        events.append(make_event(date="2025-01-20", details="Future"))
        tracker = make_tracker(ScriptedSource(events), ConsolePublisher(), fixed_now)

        asyncio.run(run_cycles(tracker, 1))

        s = tracker.state
        assert s.schedule == events
        assert s.latest == events[:10]
        assert len(s.today) == 12
        assert [e.details for e in s.upcoming] == ["Future"]
        assert s.last_updated == fixed_now


class TestTick:

    def test_skips_while_cycle_in_progress(self, feed, fixed_now):
        source = ScriptedSource(feed)
        tracker = make_tracker(source, ConsolePublisher(), fixed_now)
        tracker.cycle_in_progress = True

        asyncio.run(tracker.tick())

        assert source.calls == 0

    def test_unexpected_error_is_contained(self, fixed_now):
        source = ScriptedSource(RuntimeError("unexpected"))
        tracker = make_tracker(source, ConsolePublisher(), fixed_now)

        asyncio.run(tracker.tick())

        assert source.calls == 1
        assert tracker.cycle_in_progress is False

    def test_run_ticks_immediately_and_repeatedly(self, feed, fixed_now):
        source = ScriptedSource(feed)
        tracker = make_tracker(source, ConsolePublisher(), fixed_now)
        tracker.interval = 0.01

        async def scenario():
            with pytest.raises(asyncio.TimeoutError):
                await asyncio.wait_for(tracker.run(), timeout=0.1)
            tracker.shutdown()

        asyncio.run(scenario())

        assert source.calls >= 2
        assert tracker.state.first_fetch is False
