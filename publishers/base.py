"""
Abstract interface for post sinks.
"""

from abc import ABC, abstractmethod


class PublishError(Exception):
    """A post was rejected or could not be sent."""


class BasePublisher(ABC):
    """
    Base class for all publishers. publish() reports failure by returning False, never by raising.
    """

    @abstractmethod
    async def publish(self, text: str, media: bytes | None = None) -> bool:
        """Post `text` (optionally with media). Return True when the post went out."""
        pass

    async def close(self) -> None:
        """Release any network resources held by the publisher."""
        return None
