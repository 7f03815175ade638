"""
Poll loop: fetch the feed on a fixed timer, detect new events, publish the schedule digest.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

import aiohttp
from loguru import logger

from models import CalendarEvent
from pipeline.detector import detect_new_events
from pipeline.formatter import format_new_events_alert, format_schedule_digest
from pipeline.schedule import WINDOW_DAYS, filter_to_window, partition_schedule
from providers.base import BaseFeedSource, FetchError
from publishers.base import BasePublisher

POLL_INTERVAL = 15
LATEST_COUNT = 10


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class TrackerState:
    """Everything the tracker remembers between cycles. Memory only."""
    previous_window: list[CalendarEvent] = field(default_factory=list)
    first_fetch: bool = True
    schedule: list[CalendarEvent] = field(default_factory=list)
    latest: list[CalendarEvent] = field(default_factory=list)
    today: list[CalendarEvent] = field(default_factory=list)
    upcoming: list[CalendarEvent] = field(default_factory=list)
    last_updated: datetime | None = None


class CalendarTracker:
    """
    Owns TrackerState and is the only thing that mutates it.
    Cycles never overlap: a tick that fires while a cycle is still running is skipped.
    Publishing runs in its own task so a slow publisher does not hold up the next cycle.
    """

    def __init__(
        self,
        source: BaseFeedSource,
        publisher: BasePublisher,
        session: aiohttp.ClientSession,
        *,
        clock: Callable[[], datetime] = utc_now,
        interval: float = POLL_INTERVAL,
    ) -> None:
        self.source = source
        self.publisher = publisher
        self.session = session
        self.clock = clock
        self.interval = interval
        self.state = TrackerState()
        self.cycle_in_progress = False
        self.publish_tasks: set[asyncio.Task] = set()
        self._tick_tasks: set[asyncio.Task] = set()

    async def run_cycle(self) -> list[CalendarEvent]:
        """Run one fetch cycle and return the detected new events."""
        try:
            events = await self.source.fetch_events(self.session)
        except FetchError as e:
            logger.error("Error fetching calendar data: {}", e)
            if e.status is not None:
                logger.error("Response status: {}", e.status)
            if e.body:
                logger.error("Response data: {}", e.body)
            return []

        now = self.clock()
        today = now.date().isoformat()
        windowed = filter_to_window(events, now)
        new = detect_new_events(windowed, self.state.previous_window, self.state.first_fetch)

        # snapshot and views are replaced before anything is formatted
        first_fetch = self.state.first_fetch
        self.state.first_fetch = False
        self.state.previous_window = windowed
        self._refresh_views(events, today, now)

        if first_fetch:
            logger.info(
                "Initial fetch completed - tracking {} events from the latest {} days ({} total events in feed)",
                len(windowed),
                WINDOW_DAYS,
                len(events),
            )
        elif new:
            self._announce(new, windowed)
            today_events, upcoming = partition_schedule(events, today)
            text = format_schedule_digest(today_events, upcoming, today)
            if text:
                self._spawn_publish(text)
        return new

    def _announce(self, new: list[CalendarEvent], windowed: list[CalendarEvent]) -> None:
        logger.info("NEW EVENTS DETECTED! Found {} new event(s)", len(new))
        for i, e in enumerate(new, start=1):
            logger.debug(
                "New event {}: date={} time={} type={} coverage={} url={} video_url={}",
                i,
                e.date,
                e.time_formatted or "No time specified",
                e.type,
                e.coverage or "None",
                e.url,
                e.video_url,
            )
        logger.info("\n{}", format_new_events_alert(new))
        logger.info("Total events in {}-day window: {}", WINDOW_DAYS, len(windowed))

    def _refresh_views(self, events: list[CalendarEvent], today: str, now: datetime) -> None:
        s = self.state
        s.schedule = events
        s.latest = events[:LATEST_COUNT]
        s.today, s.upcoming = partition_schedule(events, today)
        s.last_updated = now

    def _spawn_publish(self, text: str) -> None:
        logger.info("📱 Sending schedule post ({} chars)", len(text))
        task = asyncio.create_task(self._publish(text))
        self.publish_tasks.add(task)
        task.add_done_callback(self.publish_tasks.discard)

    async def _publish(self, text: str) -> None:
        try:
            ok = await self.publisher.publish(text)
        except Exception:
            logger.exception("Publisher raised while posting")
            return
        if not ok:
            logger.warning("Schedule post was not published")

    async def tick(self) -> None:
        """One timer tick. Any error escaping the cycle is logged here so the loop keeps going."""
        if self.cycle_in_progress:
            logger.debug("Previous cycle still running; skipping tick")
            return
        self.cycle_in_progress = True
        try:
            await self.run_cycle()
        except Exception:
            logger.exception("Unhandled error in fetch cycle")
        finally:
            self.cycle_in_progress = False

    async def run(self) -> None:
        """Tick immediately, then every `interval` seconds, regardless of how long cycles take."""
        logger.info("Starting White House Calendar Tracker...")
        logger.info("Fetching data every {} seconds...", self.interval)
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while True:
            task = asyncio.create_task(self.tick())
            self._tick_tasks.add(task)
            task.add_done_callback(self._tick_tasks.discard)
            next_tick += self.interval
            await asyncio.sleep(max(0.0, next_tick - loop.time()))

    def shutdown(self) -> None:
        """Stop outstanding cycles and posts without waiting for them."""
        for task in (*self._tick_tasks, *self.publish_tasks):
            task.cancel()
