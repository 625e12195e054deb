"""Crawl job queue and its wire types."""

from __future__ import annotations

from .models import ChannelEvent, ChannelMessage, Job, JobRequest, ServerStatus
from .scheduler import (
    Broadcaster,
    JobScheduler,
    SchedulerConfig,
    SchedulerInvariantError,
)

__all__ = [
    "Broadcaster",
    "ChannelEvent",
    "ChannelMessage",
    "Job",
    "JobRequest",
    "JobScheduler",
    "SchedulerConfig",
    "SchedulerInvariantError",
    "ServerStatus",
]
