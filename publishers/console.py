"""
Dry-run publisher: writes posts to the log instead of sending them.
"""

from loguru import logger

from publishers.base import BasePublisher


class ConsolePublisher(BasePublisher):
    """Log every post; keeps them in `sent` for inspection."""

    def __init__(self) -> None:
        self.sent: list[str] = []

    async def publish(self, text: str, media: bytes | None = None) -> bool:
        if media:
            logger.info("📱 Post with {} bytes of media (dry run)", len(media))
        logger.info("📱 Post ({} chars, dry run):\n{}", len(text), text)
        self.sent.append(text)
        return True
