"""Real-time channel between the scheduler and browser clients.

Each browser holds one WebSocket on ``/api/socket``. Messages in both
directions are JSON envelopes ``{"event": ..., "payload": ...}``:

* server to client: ``jobs:list``, ``jobs:update``, ``message`` and
  ``status``;
* client to server: ``jobs:add`` with ``{repoFullName, maxStarsPerUser}``.

Delivery is best effort. A client that vanished mid-broadcast is dropped and
the broadcast continues with the others.
"""

from __future__ import annotations

import itertools
import typing as typ

import falcon
import msgspec

from costar.common.slug import parse_repo_slug
from costar.jobs.models import ChannelEvent, ChannelMessage, JobRequest
from costar.logging import get_logger, log_debug, log_info, log_warning

from .errors import InvalidInputError

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, WebSocket

    from costar.jobs.scheduler import JobScheduler

__all__ = ["ChannelHub", "ChannelResource", "parse_job_request"]

logger = get_logger(__name__)


def encode_message(event: ChannelEvent, payload: object) -> str:
    """Render one channel envelope as JSON text."""
    return msgspec.json.encode(ChannelMessage(event=event, payload=payload)).decode(
        "utf-8"
    )


def parse_job_request(payload: object) -> JobRequest:
    """Validate a ``jobs:add`` payload.

    Raises
    ------
    InvalidInputError
        If the payload is not an object with a valid ``repoFullName`` and a
        positive integer ``maxStarsPerUser``.

    """
    try:
        request = msgspec.convert(payload, type=JobRequest)
    except msgspec.ValidationError as exc:
        raise InvalidInputError(str(exc)) from exc
    try:
        parse_repo_slug(request.repo_full_name)
    except ValueError as exc:
        raise InvalidInputError(str(exc), field="repoFullName") from exc
    return request


class ChannelHub:
    """Registry of connected sockets; implements the scheduler's broadcaster."""

    def __init__(self) -> None:
        """Start with no clients."""
        self._clients: dict[str, WebSocket] = {}
        self._ids = itertools.count(1)

    @property
    def client_ids(self) -> list[str]:
        """Return the ids of connected clients."""
        return list(self._clients)

    def register(self, ws: WebSocket) -> str:
        """Track ``ws`` and return its client id."""
        client_id = f"client-{next(self._ids)}"
        self._clients[client_id] = ws
        return client_id

    def unregister(self, client_id: str) -> None:
        """Stop tracking ``client_id``; unknown ids are ignored."""
        self._clients.pop(client_id, None)

    async def broadcast(self, event: ChannelEvent, payload: object) -> None:
        """Send an event to every connected client."""
        text = encode_message(event, payload)
        for client_id in list(self._clients):
            await self._send_text(client_id, text)

    async def send(self, client_id: str, event: ChannelEvent, payload: object) -> None:
        """Send an event to one client."""
        await self._send_text(client_id, encode_message(event, payload))

    async def _send_text(self, client_id: str, text: str) -> None:
        ws = self._clients.get(client_id)
        if ws is None:
            log_debug(logger, "Dropping message for unknown client %s", client_id)
            return
        try:
            await ws.send_text(text)
        except falcon.WebSocketDisconnected:
            log_debug(logger, "Client %s went away during send", client_id)
            self.unregister(client_id)


class ChannelResource:
    """WebSocket endpoint feeding clients and accepting job submissions."""

    def __init__(self, hub: ChannelHub, scheduler: JobScheduler) -> None:
        """Bind the endpoint to the hub and the scheduler it feeds."""
        self._hub = hub
        self._scheduler = scheduler

    async def on_websocket(self, _req: Request, ws: WebSocket) -> None:
        """Serve one client until it disconnects."""
        await ws.accept()
        client_id = self._hub.register(ws)
        log_info(logger, "Client %s connected", client_id)
        try:
            await self._scheduler.client_connected(client_id)
            while True:
                text = await ws.receive_text()
                await self._handle(client_id, text)
        except falcon.WebSocketDisconnected:
            pass
        finally:
            self._hub.unregister(client_id)
            await self._scheduler.client_disconnected(client_id)

    async def _handle(self, client_id: str, text: str) -> None:
        try:
            message = msgspec.json.decode(text, type=ChannelMessage)
            if message.event != ChannelEvent.JOBS_ADD:
                msg = f"Unsupported event: {message.event}"
                raise InvalidInputError(msg, field="event")
            request = parse_job_request(message.payload)
        except (msgspec.DecodeError, msgspec.ValidationError) as exc:
            await self._reject(client_id, f"Malformed message: {exc}")
            return
        except InvalidInputError as exc:
            await self._reject(client_id, str(exc))
            return
        await self._scheduler.submit(request, client_id)

    async def _reject(self, client_id: str, reason: str) -> None:
        log_warning(logger, "Rejected message from %s: %s", client_id, reason)
        await self._hub.send(client_id, ChannelEvent.MESSAGE, reason)
