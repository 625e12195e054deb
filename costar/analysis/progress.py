"""Progress reporting for long-running crawls.

The pipeline does not know who is listening. It pushes immutable
:class:`CrawlProgress` snapshots into a :class:`ProgressReporter`; the job
scheduler forwards them to WebSocket subscribers, the CLI ignores them.
"""

from __future__ import annotations

import enum
import time
import typing as typ

import msgspec

if typ.TYPE_CHECKING:
    import collections.abc as cabc


class CrawlPhase(enum.StrEnum):
    """Ordered stages of a crawl."""

    SEED_STARGAZERS = "seed_stargazers"
    COSTAR_ACCUMULATION = "costar_accumulation"
    RELEVANCE_FILTERING = "relevance_filtering"
    DETAIL_ENRICHMENT = "detail_enrichment"
    STAR_HISTORY = "star_history"


PHASES: tuple[CrawlPhase, ...] = tuple(CrawlPhase)


class CrawlProgress(msgspec.Struct, rename="camel", frozen=True, kw_only=True):
    """Snapshot of a crawl's progress, as shown to subscribers."""

    done: bool = False
    running: bool = False
    fraction: float = 0.0
    phase: CrawlPhase | None = None
    phase_index: int = 0
    phase_count: int = len(PHASES)
    start_time: int = 0
    elapsed_seconds: int = 0
    eta_seconds: int = 0
    error: str | None = None


@typ.runtime_checkable
class ProgressReporter(typ.Protocol):
    """Receives progress snapshots from a running crawl."""

    async def report(self, progress: CrawlProgress) -> None:
        """Handle a new snapshot; must not raise."""
        ...


class NullProgressReporter:
    """Discard every snapshot."""

    async def report(self, progress: CrawlProgress) -> None:
        """Ignore ``progress``."""


def estimate_eta(elapsed_seconds: float, fraction: float) -> int:
    """Project the seconds left assuming a constant rate."""
    if fraction <= 0:
        return 0
    return round(elapsed_seconds * (1 - fraction) / fraction)


class PhaseTracker:
    """Turn stage transitions into progress snapshots."""

    def __init__(
        self,
        reporter: ProgressReporter,
        *,
        clock: cabc.Callable[[], float] = time.time,
    ) -> None:
        """Start the clock; nothing is reported until :meth:`enter`."""
        self._reporter = reporter
        self._clock = clock
        self._start = clock()
        self._phase: CrawlPhase | None = None

    @property
    def elapsed_seconds(self) -> float:
        """Return seconds since the tracker was created."""
        return self._clock() - self._start

    async def enter(self, phase: CrawlPhase) -> None:
        """Report the start of ``phase``."""
        self._phase = phase
        await self.advance(0.0)

    async def advance(self, phase_fraction: float) -> None:
        """Report progress within the current phase, in ``[0, 1]``."""
        if self._phase is None:
            return
        index = PHASES.index(self._phase)
        within = min(max(phase_fraction, 0.0), 1.0)
        fraction = (index + within) / len(PHASES)
        await self._reporter.report(self._snapshot(index, fraction))

    def _snapshot(self, index: int, fraction: float) -> CrawlProgress:
        elapsed = self.elapsed_seconds
        return CrawlProgress(
            running=True,
            fraction=round(fraction, 4),
            phase=self._phase,
            phase_index=index,
            start_time=int(self._start),
            elapsed_seconds=round(elapsed),
            eta_seconds=estimate_eta(elapsed, fraction),
        )
