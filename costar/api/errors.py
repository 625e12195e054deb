"""Validation failures raised by costar's HTTP and socket surfaces.

``InvalidInputError`` carries the offending field so both surfaces can name
it: the HTTP handler answers 400 with an ``ErrorBody`` and the WebSocket
channel sends ``str(error)`` back as a private ``message`` event.
"""

from __future__ import annotations

import typing as typ

import falcon
import msgspec

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

__all__ = ["ErrorBody", "InvalidInputError", "handle_invalid_input"]


class ErrorBody(msgspec.Struct, kw_only=True, omit_defaults=True):
    """JSON body of a 400 response."""

    title: str
    description: str
    field: str | None = None


class InvalidInputError(Exception):
    """Client input that costar refuses to act on.

    Attributes
    ----------
    reason
        What was wrong with the input.
    field
        Wire name of the offending input, when one can be singled out.

    """

    def __init__(self, reason: str, *, field: str | None = None) -> None:
        """Store ``reason`` and ``field``; ``str()`` prefixes the field."""
        self.reason = reason
        self.field = field
        super().__init__(reason if field is None else f"{field}: {reason}")

    def to_body(self) -> ErrorBody:
        """Return the response body describing this error."""
        return ErrorBody(
            title="Invalid input", description=self.reason, field=self.field
        )


async def handle_invalid_input(
    _req: Request,
    resp: Response,
    ex: InvalidInputError,
    _params: dict[str, typ.Any],
) -> None:
    """Answer ``InvalidInputError`` with HTTP 400."""
    resp.status = falcon.HTTP_400
    resp.media = msgspec.to_builtins(ex.to_body())
