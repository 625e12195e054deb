"""Costar service entrypoint.

This module provides the ASGI application factory used by Granian. It builds
the full dependency graph (GitHub client, cache, pipeline, scheduler and
channel hub) from the environment and hands it to
:func:`costar.api.app.create_app`, keeping ``costar.runtime:create_app`` a
stable entrypoint.

Settings read from the environment:

- ``COSTAR_HOST``: Bind address (default ``0.0.0.0``)
- ``COSTAR_PORT``: Listen port (default ``1996``)
- ``COSTAR_LOG_LEVEL``: Log level (default ``INFO``)
- ``COSTAR_GITHUB_TOKEN``: GitHub access token (required)
- ``COSTAR_VALKEY_URL``: Result cache location

Run the service directly with ``python -m costar.runtime``.
"""

from __future__ import annotations

import os
import typing as typ

from costar.logging import (
    configure_logging,
    get_logger,
    log_error,
    log_info,
    log_warning,
)

if typ.TYPE_CHECKING:
    import falcon.asgi

__all__ = ["create_app", "main"]

logger = get_logger(__name__)

DEFAULT_PORT = "1996"

_PORT_RANGE = range(1, 65536)


def _parse_port(raw: str) -> int:
    """Return ``raw`` as a TCP port, exiting with status 1 when it is not one."""
    port = int(raw) if raw.strip().isdecimal() else None
    if port is None or port not in _PORT_RANGE:
        log_error(
            logger,
            "COSTAR_PORT must be an integer between %d and %d, got %r",
            _PORT_RANGE.start,
            _PORT_RANGE.stop - 1,
            raw,
        )
        raise SystemExit(1)
    return port


def create_app() -> falcon.asgi.App:
    """Create the Falcon ASGI application with its crawl dependencies.

    Raises
    ------
    SystemExit
        If the GitHub token is missing or a numeric setting is invalid.

    """
    from costar.api.app import create_app as _create_api_app
    from costar.api.factory import build_app_dependencies
    from costar.github.errors import GitHubConfigError

    try:
        deps = build_app_dependencies()
    except GitHubConfigError as exc:
        log_error(logger, "Cannot start costar: %s", exc)
        raise SystemExit(1) from exc
    except ValueError as exc:
        log_error(logger, "Invalid costar configuration: %s", exc)
        raise SystemExit(1) from exc
    return _create_api_app(deps)


def main() -> None:
    """Serve ``costar.runtime:create_app`` with Granian until interrupted."""
    from granian import Granian
    from granian.constants import Interfaces

    host = os.environ.get("COSTAR_HOST", "0.0.0.0")  # noqa: S104 - bind all interfaces for container
    port = _parse_port(os.environ.get("COSTAR_PORT", DEFAULT_PORT))
    log_level_str = os.environ.get("COSTAR_LOG_LEVEL", "INFO")

    normalized_level, invalid_level = configure_logging(log_level_str)
    if invalid_level:
        log_warning(
            logger,
            "Invalid COSTAR_LOG_LEVEL %r, falling back to %s",
            log_level_str,
            normalized_level,
        )

    log_info(
        logger,
        "Starting costar on %s:%d (log_level=%s)",
        host,
        port,
        normalized_level,
    )

    server = Granian(
        "costar.runtime:create_app",
        address=host,
        port=port,
        interface=Interfaces.ASGI,
        factory=True,
    )
    server.serve()


if __name__ == "__main__":
    main()
