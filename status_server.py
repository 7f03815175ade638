"""
Liveness server: any request gets a plain-text status line so the host platform keeps the process up.
GET /api/events returns the tracker's cached schedule views as JSON.
"""
from fastapi import FastAPI
from fastapi.responses import JSONResponse, PlainTextResponse
from tracker import CalendarTracker, TrackerState

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def status_text(state: TrackerState) -> str:
    """Status line naming the cached event count and when it was last refreshed."""
    updated = state.last_updated.isoformat() if state.last_updated else "never"
    return (
        "White House Calendar Tracker is running!\n"
        f"Tracking {len(state.schedule)} total events.\n"
        f"Last updated: {updated}"
    )


def create_app(tracker: CalendarTracker) -> FastAPI:
    app = FastAPI(title="White House Calendar Tracker")

    @app.get("/api/events")
    async def get_events() -> JSONResponse:
        """Return the latest, today and upcoming views from the last successful fetch."""
        s = tracker.state

        def dump(events):
            return [e.model_dump(mode="json") for e in events]

        return JSONResponse(
            content={
                "count": len(s.schedule),
                "last_updated": s.last_updated.isoformat() if s.last_updated else None,
                "latest": dump(s.latest),
                "today": dump(s.today),
                "upcoming": dump(s.upcoming),
            }
        )

    @app.api_route("/{path:path}", methods=ALL_METHODS, response_class=PlainTextResponse)
    async def status(path: str) -> str:
        return status_text(tracker.state)

    return app
