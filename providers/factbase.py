"""
Factba.se calendar adapter: fetches calendar-full.json and validates it into CalendarEvents.
"""

import asyncio
import json
from typing import Any

import aiohttp
from pydantic import TypeAdapter, ValidationError

from models import CalendarEvent
from providers.base import BaseFeedSource, FetchError

DEFAULT_FEED_URL = "https://media-cdn.factba.se/rss/json/trump/calendar-full.json"

_events_adapter = TypeAdapter(list[CalendarEvent])


class FactbaseCalendarSource(BaseFeedSource):
    """Fetch the full White House calendar feed published by Factba.se."""

    def __init__(self, url: str = DEFAULT_FEED_URL, timeout: float = 20) -> None:
        self.url = url
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    def parse_events(self, data: Any) -> list[CalendarEvent]:
        """Validate a decoded feed body. The feed is a JSON array of event objects."""
        if not isinstance(data, list):
            raise FetchError(f"Expected a JSON array, got {type(data).__name__}")
        try:
            return _events_adapter.validate_python(data)
        except ValidationError as e:
            raise FetchError(f"Malformed feed entries: {e.error_count()} error(s)") from e

    async def fetch_events(self, session: aiohttp.ClientSession) -> list[CalendarEvent]:
        """GET the feed; any non-2xx status or undecodable body becomes FetchError."""
        try:
            async with session.get(self.url, timeout=self.timeout) as resp:
                body = await resp.text()
                if not 200 <= resp.status < 300:
                    raise FetchError(
                        f"Feed returned HTTP {resp.status}", status=resp.status, body=body[:500]
                    )
                status = resp.status
        except aiohttp.ClientError as e:
            raise FetchError(f"Request to {self.url} failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise FetchError(f"Request to {self.url} timed out") from e
        try:
            data = json.loads(body)
        except json.JSONDecodeError as e:
            raise FetchError(f"Feed body is not JSON: {e}", status=status, body=body[:500]) from e
        return self.parse_events(data)


if __name__ == "__main__":

    async def main() -> None:
        async with aiohttp.ClientSession() as session:
            events = await FactbaseCalendarSource().fetch_events(session)
        print(f"{len(events)} events")
        for e in events[:5]:
            print(e.model_dump_json())

    asyncio.run(main())
