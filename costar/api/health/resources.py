"""Health probe resources for liveness and readiness checks.

Readiness reflects the job scheduler when one is wired in: a process whose
queue is full still answers, but reports ``busy`` so operators can tell it
apart from an idle one.

Usage
-----
Register health endpoints on the Falcon app::

    app.add_route("/health", HealthResource())
    app.add_route("/ready", ReadyResource(scheduler))

"""

from __future__ import annotations

import typing as typ
from http import HTTPStatus

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from costar.jobs.scheduler import JobScheduler

__all__ = ["HealthResource", "ReadyResource"]


class HealthResource:
    """Liveness probe resource returning ``{"status": "ok"}``."""

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /health requests."""
        resp.media = {"status": "ok"}
        resp.status = HTTPStatus.OK


class ReadyResource:
    """Readiness probe resource.

    Responds ``{"status": "ready"}``, or ``{"status": "busy"}`` when the
    scheduler's queue is full. Always HTTP 200.

    """

    def __init__(self, scheduler: JobScheduler | None = None) -> None:
        """Optionally observe ``scheduler`` for queue saturation."""
        self._scheduler = scheduler

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /ready requests."""
        busy = self._scheduler is not None and self._scheduler.status.queue_full
        resp.media = {"status": "busy" if busy else "ready"}
        resp.status = HTTPStatus.OK
