"""
White House calendar tracker: poll the feed, post the schedule when new events appear, serve a liveness page.
"""
import asyncio
import contextlib
import signal
import sys
import aiohttp
import uvicorn
from loguru import logger
from config import ConfigError, load_config, setup_logging
from providers.factbase import FactbaseCalendarSource
from publishers.base import BasePublisher
from publishers.console import ConsolePublisher
from publishers.x import XPublisher
from status_server import create_app
from tracker import CalendarTracker


class StatusServer(uvicorn.Server):
    """uvicorn server that leaves SIGINT/SIGTERM to run()."""

    def install_signal_handlers(self) -> None:
        pass

    @contextlib.contextmanager
    def capture_signals(self):
        yield


def get_publisher(cfg: dict) -> BasePublisher:
    """Return the publisher selected by config ('console' or 'x')."""
    if cfg["publisher"] == "x":
        creds = cfg["x"]
        return XPublisher(
            creds["access_token"],
            refresh_token=creds.get("refresh_token"),
            client_id=creds.get("client_id"),
            client_secret=creds.get("client_secret"),
        )
    if cfg["publisher"] == "console":
        return ConsolePublisher()
    raise ValueError(f"Unknown publisher: {cfg['publisher']}")


async def run(cfg: dict) -> bool:
    """Run tracker and status server until a shutdown signal. Returns False if the server died first."""
    source = FactbaseCalendarSource(cfg["feed_url"], timeout=cfg["request_timeout"])
    publisher = get_publisher(cfg)
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    async with aiohttp.ClientSession() as session:
        tracker = CalendarTracker(source, publisher, session)
        server = StatusServer(
            uvicorn.Config(create_app(tracker), host=cfg["host"], port=cfg["port"], log_level="warning")
        )
        server_task = asyncio.create_task(server.serve())
        tracker_task = asyncio.create_task(tracker.run())
        stop_task = asyncio.create_task(stop.wait())
        logger.info("HTTP server running on port {}", cfg["port"])

        await asyncio.wait({server_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
        failed = server_task.done() and not stop.is_set()
        if failed:
            logger.error("HTTP server stopped unexpectedly")
        logger.info("Shutting down calendar tracker...")
        stop_task.cancel()
        tracker_task.cancel()
        tracker.shutdown()
        server.should_exit = True
        with contextlib.suppress(asyncio.CancelledError, SystemExit):
            await server_task
        await publisher.close()
    return not failed


def main() -> int:
    try:
        cfg = load_config()
    except ConfigError as ce:
        logger.error("Configuration error: {}", ce)
        return 2
    setup_logging(cfg["log_level"], cfg["log_file"])
    return 0 if asyncio.run(run(cfg)) else 1


if __name__ == "__main__":
    sys.exit(main())
