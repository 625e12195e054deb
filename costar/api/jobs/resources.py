"""Read-only HTTP view of the job scheduler.

Clients normally follow jobs over the WebSocket channel; this endpoint gives
scripts and probes the same snapshot without holding a socket open.
"""

from __future__ import annotations

import typing as typ
from http import HTTPStatus

import falcon
import msgspec

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from costar.jobs.scheduler import JobScheduler

__all__ = ["JobsResource"]


class JobsResource:
    """``GET /api/jobs``: jobs newest first plus the server status."""

    def __init__(self, scheduler: JobScheduler) -> None:
        """Serve snapshots of ``scheduler``."""
        self._scheduler = scheduler

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /api/jobs requests."""
        resp.content_type = falcon.MEDIA_JSON
        resp.data = msgspec.json.encode(
            {"jobs": self._scheduler.jobs, "status": self._scheduler.status}
        )
        resp.status = HTTPStatus.OK
