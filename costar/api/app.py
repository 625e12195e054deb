"""Application factory for the costar Falcon ASGI application.

Usage
-----
Create a health-only app::

    app = create_app()

Create a full app with the job channel::

    from costar.api.app import AppDependencies, create_app

    deps = AppDependencies(scheduler=scheduler, hub=hub, closers=(client.aclose,))
    app = create_app(deps)

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import falcon.asgi

from costar.api.errors import InvalidInputError, handle_invalid_input
from costar.api.health.resources import HealthResource, ReadyResource

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from costar.api.channel import ChannelHub
    from costar.jobs.scheduler import JobScheduler

__all__ = ["SOCKET_PATH", "AppDependencies", "create_app"]

SOCKET_PATH = "/api/socket"
JOBS_PATH = "/api/jobs"


@dc.dataclass(frozen=True, slots=True)
class AppDependencies:
    """Dependencies for the Falcon ASGI application.

    When ``scheduler`` and ``hub`` are both provided the application serves
    the job list and the WebSocket channel. Otherwise only health endpoints
    are registered.

    Attributes
    ----------
    scheduler
        Job scheduler shared by every client.
    hub
        Connected-socket registry the scheduler broadcasts through.
    closers
        Coroutine functions run once at server shutdown.

    """

    scheduler: JobScheduler | None = None
    hub: ChannelHub | None = None
    closers: cabc.Sequence[cabc.Callable[[], cabc.Awaitable[None]]] = ()


def create_app(
    dependencies: AppDependencies | None = None,
) -> falcon.asgi.App:
    """Create and configure the Falcon ASGI application.

    Parameters
    ----------
    dependencies
        Optional application dependencies. When ``None``, only health
        endpoints are available.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    """
    deps = dependencies or AppDependencies()
    middleware: list[object] = []
    if deps.closers:
        from costar.api.middleware import ResourceLifespan

        middleware.append(ResourceLifespan(deps.closers))

    app = falcon.asgi.App(middleware=middleware)  # type: ignore[no-matching-overload]  # Falcon stubs

    app.add_route("/health", HealthResource())
    app.add_route("/ready", ReadyResource(deps.scheduler))

    if deps.scheduler is not None and deps.hub is not None:
        from costar.api.channel import ChannelResource
        from costar.api.jobs.resources import JobsResource

        app.add_route(JOBS_PATH, JobsResource(deps.scheduler))
        app.add_route(SOCKET_PATH, ChannelResource(deps.hub, deps.scheduler))

    app.add_error_handler(InvalidInputError, handle_invalid_input)
    return app
