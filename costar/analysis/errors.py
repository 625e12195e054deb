"""Errors raised by the crawl pipeline."""

from __future__ import annotations

from .progress import CrawlPhase


class CrawlAbortedError(RuntimeError):
    """The whole run ended early for lack of signal."""

    def __init__(self, message: str, *, phase: CrawlPhase) -> None:
        """Record the phase that gave up."""
        super().__init__(message)
        self.phase = phase

    @classmethod
    def too_few_stargazers(
        cls, seed: str, found: int, minimum: int
    ) -> CrawlAbortedError:
        """Return an error for a seed with too small an audience."""
        return cls(
            f"Issues finding stars(t) of '{seed}': {found} resolved, "
            f"at least {minimum} required",
            phase=CrawlPhase.SEED_STARGAZERS,
        )

    @classmethod
    def no_candidates(cls, seed: str) -> CrawlAbortedError:
        """Return an error for an audience that starred nothing usable."""
        return cls(
            f"Issues finding related repos of '{seed}': no candidates",
            phase=CrawlPhase.COSTAR_ACCUMULATION,
        )

    @classmethod
    def inconsistent_seed(cls, seed: str, detail: str) -> CrawlAbortedError:
        """Return an error for a seed whose stargazer pages contradict themselves."""
        return cls(
            f"Inconsistent stargazer pages for '{seed}': {detail}",
            phase=CrawlPhase.SEED_STARGAZERS,
        )
