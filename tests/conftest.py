import json
import os
import sys
from datetime import datetime, timezone

import pytest


def _project_root() -> str:
    here = os.path.dirname(__file__)
    return os.path.abspath(os.path.join(here, os.pardir))


# Flat layout: make `models`, `pipeline`, `providers`... importable from tests
root = _project_root()
if root not in sys.path:
    sys.path.insert(0, root)

from models import CalendarEvent  # noqa: E402

FIXED_NOW = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def make_event():
    """Factory for CalendarEvent with sensible defaults."""

    def _make(**overrides) -> CalendarEvent:
        fields = {
            "date": "2025-01-15",
            "time": "10:00:00",
            "time_formatted": "10:00 AM",
            "details": "The President receives his intelligence briefing",
            "location": "The White House",
            "type": "Briefing",
            "coverage": "Closed Press",
        }
        fields.update(overrides)
        return CalendarEvent(**fields)

    return _make


class FakeResponse:
    """Stands in for an aiohttp response used as `async with session.get(...) as resp`."""

    def __init__(self, status: int = 200, text: str = "", json_data=None) -> None:
        self.status = status
        self._text = text if json_data is None else json.dumps(json_data)

    async def text(self) -> str:
        return self._text

    async def json(self):
        return json.loads(self._text)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc) -> bool:
        return False


class FakeSession:
    """Returns queued FakeResponses (or raises queued exceptions) in order; records every call."""

    def __init__(self, responses) -> None:
        self.responses = list(responses)
        self.calls: list[tuple[str, str, dict]] = []

    def _next(self, method: str, url: str, kwargs: dict):
        self.calls.append((method, url, kwargs))
        r = self.responses.pop(0)
        if isinstance(r, Exception):
            raise r
        return r

    def get(self, url, **kwargs):
        return self._next("GET", url, kwargs)

    def post(self, url, **kwargs):
        return self._next("POST", url, kwargs)
