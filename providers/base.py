"""
Abstract interface for calendar feed sources.
A source implements fetch_events and raises FetchError on any network, HTTP or parse failure.
"""

from abc import ABC, abstractmethod
import aiohttp
from models import CalendarEvent


class FetchError(Exception):
    """Feed could not be fetched or parsed. Carries the HTTP status and body when there was a response."""

    def __init__(self, message: str, status: int | None = None, body: str | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class BaseFeedSource(ABC):
    """
    Base class for all feed sources.
    """

    @abstractmethod
    async def fetch_events(self, session: "aiohttp.ClientSession") -> list[CalendarEvent]:
        """
        Fetch the current feed and return its events in feed order.
        """
        pass
