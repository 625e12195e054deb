"""Job and channel message types shared with browser clients.

All wire names are camelCase; messages travel as ``{"event", "payload"}``
JSON envelopes over the WebSocket channel.
"""

from __future__ import annotations

import enum
import typing as typ

import msgspec

from costar.analysis.progress import CrawlProgress

DEFAULT_MAX_STARS_PER_USER = 200


class ChannelEvent(enum.StrEnum):
    """Event names exchanged over the real-time channel."""

    JOBS_LIST = "jobs:list"
    JOBS_UPDATE = "jobs:update"
    MESSAGE = "message"
    STATUS = "status"
    JOBS_ADD = "jobs:add"


class JobRequest(msgspec.Struct, rename="camel", frozen=True, kw_only=True):
    """What a client asked to analyse."""

    repo_full_name: str
    max_stars_per_user: typ.Annotated[int, msgspec.Meta(gt=0)] = (
        DEFAULT_MAX_STARS_PER_USER
    )


class Job(msgspec.Struct, rename="camel", kw_only=True):
    """A submitted crawl; mutated only by the scheduler."""

    uid: str
    request: JobRequest
    progress: CrawlProgress = msgspec.field(default_factory=CrawlProgress)
    requester_id: str | None = None
    output_file: str | None = None
    submitted_at: int = 0

    @property
    def is_pending(self) -> bool:
        """Return True while the job is queued or running."""
        return not self.progress.done

    @property
    def is_queued(self) -> bool:
        """Return True when the job waits for its turn."""
        return not self.progress.done and not self.progress.running


class ServerStatus(msgspec.Struct, rename="camel", kw_only=True):
    """Aggregate server state broadcast to every client."""

    connected_clients: int = 0
    is_running: bool = False
    queue_full: bool = False


class ChannelMessage(msgspec.Struct, frozen=True):
    """Envelope for every channel message."""

    event: str
    payload: typ.Any = None
