"""Single-runner job scheduler.

Crawls can take hours and share one API quota, so the scheduler runs at most
one at a time and queues the rest in submission order. Every state change is
pushed to subscribers through a :class:`Broadcaster`; the scheduler never
talks to sockets itself.

Jobs are kept after they finish so late subscribers can see the history.
"""

from __future__ import annotations

import asyncio
import contextlib
import dataclasses
import os
import secrets
import time
import typing as typ

import msgspec

from costar.analysis.errors import CrawlAbortedError
from costar.logging import get_logger, log_exception, log_info, log_warning

from .models import ChannelEvent, Job, ServerStatus

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from costar.analysis.pipeline import CrawlResult
    from costar.analysis.progress import CrawlProgress, ProgressReporter

    from .models import JobRequest

logger = get_logger(__name__)

QUEUE_FULL_MESSAGE = "Cannot add more. Wait for the current queue to clear."
DEFAULT_MAX_PENDING = 5


class SchedulerInvariantError(RuntimeError):
    """Raised when the scheduler is asked to run two jobs at once."""

    @classmethod
    def already_running(cls) -> SchedulerInvariantError:
        """Return the error for a start attempt while a job runs."""
        return cls("start_next called while another job is running")


class Broadcaster(typ.Protocol):
    """Delivers channel events to connected clients."""

    async def broadcast(self, event: ChannelEvent, payload: object) -> None:
        """Send ``payload`` to every connected client."""
        ...

    async def send(self, client_id: str, event: ChannelEvent, payload: object) -> None:
        """Send ``payload`` to one client only."""
        ...


class CrawlRunner(typ.Protocol):
    """Anything that can run a crawl, usually a ``CrawlPipeline``."""

    async def run(
        self,
        seed: str,
        *,
        max_stars_per_user: int | None = None,
        reporter: ProgressReporter | None = None,
    ) -> CrawlResult:
        """Run one crawl to completion."""
        ...


@dataclasses.dataclass(frozen=True, slots=True)
class SchedulerConfig:
    """Queue limits."""

    max_pending: int = DEFAULT_MAX_PENDING

    @classmethod
    def from_env(cls) -> SchedulerConfig:
        """Read ``COSTAR_MAX_PENDING_JOBS``; must be a positive integer."""
        raw = os.environ.get("COSTAR_MAX_PENDING_JOBS", "").strip()
        if not raw:
            return cls()
        try:
            value = int(raw)
        except ValueError as exc:
            msg = f"COSTAR_MAX_PENDING_JOBS must be an integer, got: {raw!r}"
            raise ValueError(msg) from exc
        if value < 1:
            msg = f"COSTAR_MAX_PENDING_JOBS must be positive, got: {value}"
            raise ValueError(msg)
        return cls(max_pending=value)


def new_job_uid() -> str:
    """Return a random, URL-safe job identifier."""
    return secrets.token_urlsafe(15)


class _JobProgressReporter:
    """Forward pipeline progress into a job and its subscribers."""

    def __init__(self, scheduler: JobScheduler, job: Job) -> None:
        self._scheduler = scheduler
        self._job = job

    async def report(self, progress: CrawlProgress) -> None:
        self._job.progress = progress
        await self._scheduler.notify_job_changed(self._job)


class JobScheduler:
    """Queue crawl requests and run them one at a time."""

    def __init__(
        self,
        runner: CrawlRunner,
        broadcaster: Broadcaster,
        *,
        config: SchedulerConfig | None = None,
        uid_factory: cabc.Callable[[], str] = new_job_uid,
        clock: cabc.Callable[[], float] = time.time,
    ) -> None:
        """Create an idle scheduler with an empty job list."""
        self._runner = runner
        self._broadcaster = broadcaster
        self._config = config or SchedulerConfig()
        self._uid_factory = uid_factory
        self._clock = clock
        self._jobs: list[Job] = []
        self._status = ServerStatus()
        self._task: asyncio.Task[None] | None = None

    @property
    def jobs(self) -> list[Job]:
        """Return the jobs, newest first."""
        return list(self._jobs)

    @property
    def status(self) -> ServerStatus:
        """Return the aggregate server status."""
        return self._status

    def pending_count(self) -> int:
        """Return the number of queued or running jobs."""
        return sum(1 for job in self._jobs if job.is_pending)

    async def submit(self, request: JobRequest, requester_id: str) -> Job | None:
        """Queue ``request``; reply privately and return None when full."""
        if self.pending_count() >= self._config.max_pending:
            log_info(
                logger,
                "Rejecting %s from %s: queue full",
                request.repo_full_name,
                requester_id,
            )
            await self._broadcaster.send(
                requester_id, ChannelEvent.MESSAGE, QUEUE_FULL_MESSAGE
            )
            return None

        existing = {job.uid for job in self._jobs}
        uid = self._uid_factory()
        while uid in existing:
            uid = self._uid_factory()

        job = Job(
            uid=uid,
            request=request,
            requester_id=requester_id,
            submitted_at=int(self._clock()),
        )
        self._jobs.insert(0, job)
        log_info(logger, "Queued job %s for '%s'", uid, request.repo_full_name)
        await self._broadcaster.broadcast(ChannelEvent.JOBS_LIST, self.jobs)
        await self._update_status(
            queue_full=self.pending_count() >= self._config.max_pending
        )

        if not self._status.is_running:
            await self.start_next()
        return job

    async def start_next(self) -> Job | None:
        """Start the oldest queued job, if any.

        Raises
        ------
        SchedulerInvariantError
            If a job is already running.

        """
        if self._status.is_running:
            raise SchedulerInvariantError.already_running()

        job = next((job for job in reversed(self._jobs) if job.is_queued), None)
        if job is None:
            log_info(
                logger,
                "No more jobs to start right now (%d total)",
                len(self._jobs),
            )
            return None

        self._status.is_running = True
        job.progress = msgspec.structs.replace(
            job.progress,
            done=False,
            running=True,
            start_time=int(self._clock()),
        )
        await self._update_status()
        await self.notify_job_changed(job)
        self._task = asyncio.create_task(self._execute(job), name=f"crawl-{job.uid}")
        return job

    async def notify_job_changed(self, job: Job) -> None:
        """Broadcast the current state of ``job``."""
        await self._broadcaster.broadcast(ChannelEvent.JOBS_UPDATE, job)

    async def client_connected(self, client_id: str) -> None:
        """Count a new subscriber and send it the job list."""
        await self._update_status(
            connected_clients=self._status.connected_clients + 1
        )
        await self._broadcaster.send(client_id, ChannelEvent.JOBS_LIST, self.jobs)

    async def client_disconnected(self, client_id: str) -> None:
        """Forget a subscriber; running jobs are unaffected."""
        log_info(logger, "Client %s disconnected", client_id)
        await self._update_status(
            connected_clients=max(self._status.connected_clients - 1, 0)
        )

    async def wait_idle(self) -> None:
        """Wait until no job is running; used by tests and shutdown."""
        while self._task is not None and not self._task.done():
            await asyncio.shield(self._task)

    async def aclose(self) -> None:
        """Cancel the running crawl, if any."""
        task = self._task
        if task is None or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _execute(self, job: Job) -> None:
        request = job.request
        started = self._clock()
        error: str | None = None
        output_file: str | None = None
        try:
            result = await self._runner.run(
                request.repo_full_name,
                max_stars_per_user=request.max_stars_per_user,
                reporter=_JobProgressReporter(self, job),
            )
            output_file = result.statistics_file
            log_info(
                logger,
                "Analysis of '%s' complete in %d seconds",
                request.repo_full_name,
                round(self._clock() - started),
            )
        except CrawlAbortedError as exc:
            error = str(exc)
            log_warning(
                logger, "Analysis of '%s' aborted: %s", request.repo_full_name, exc
            )
        except Exception as exc:  # noqa: BLE001
            error = str(exc) or type(exc).__name__
            log_exception(
                logger,
                f"Analysis of '{request.repo_full_name}' failed after "
                f"{round(self._clock() - started)} seconds",
                exc,
            )
        await self._settle(job, started=started, error=error, output_file=output_file)

    async def _settle(
        self,
        job: Job,
        *,
        started: float,
        error: str | None,
        output_file: str | None,
    ) -> None:
        job.output_file = output_file
        job.progress = msgspec.structs.replace(
            job.progress,
            done=True,
            running=False,
            fraction=1.0 if error is None else job.progress.fraction,
            elapsed_seconds=round(self._clock() - started),
            eta_seconds=0,
            error=error,
        )
        await self.notify_job_changed(job)
        # Nothing may await between clearing the flag and claiming the next job.
        self._status.is_running = False
        self._status.queue_full = self.pending_count() >= self._config.max_pending
        if await self.start_next() is None:
            await self._update_status()

    async def _update_status(self, **changes: typ.Any) -> None:  # noqa: ANN401
        for name, value in changes.items():
            setattr(self._status, name, value)
        await self._broadcaster.broadcast(ChannelEvent.STATUS, self._status)
