"""Lifespan middleware releasing process-wide resources on shutdown.

The GitHub HTTP client, the Valkey connection and any running crawl live for
the whole process. Falcon calls ``process_shutdown`` once when the ASGI
server stops, and each resource is closed there in registration order.

Usage
-----
Register the middleware when creating the Falcon app::

    app = falcon.asgi.App(
        middleware=[ResourceLifespan([scheduler.aclose, client.aclose])]
    )

"""

from __future__ import annotations

import typing as typ

from costar.logging import get_logger, log_exception, log_info

if typ.TYPE_CHECKING:
    import collections.abc as cabc

__all__ = ["ResourceLifespan"]

logger = get_logger(__name__)

type AsyncCloser = cabc.Callable[[], cabc.Awaitable[None]]


class ResourceLifespan:
    """Falcon ASGI middleware closing resources on server shutdown.

    Parameters
    ----------
    closers
        Coroutine functions called in order. A failing closer is logged and
        does not prevent the remaining ones from running.

    """

    def __init__(self, closers: cabc.Sequence[AsyncCloser]) -> None:
        """Initialize the middleware with the closers to run at shutdown."""
        self._closers = tuple(closers)

    async def process_startup(
        self, _scope: dict[str, typ.Any], _event: dict[str, typ.Any]
    ) -> None:
        """Log that the application is serving."""
        log_info(
            logger, "Application started (%d managed resources)", len(self._closers)
        )

    async def process_shutdown(
        self, _scope: dict[str, typ.Any], _event: dict[str, typ.Any]
    ) -> None:
        """Close every managed resource."""
        for closer in self._closers:
            try:
                await closer()
            except Exception as exc:  # noqa: BLE001
                log_exception(logger, f"Failed to close {closer!r}", exc)
        log_info(logger, "Application resources released")
