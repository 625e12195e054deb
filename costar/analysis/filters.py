"""Relevance filters applied to ranked candidates.

Filters run in a fixed order and each one sees the output of the previous
one, so the positional cap at the end counts only candidates that survived
every content filter.
"""

from __future__ import annotations

import dataclasses
import typing as typ

from costar.logging import get_logger, log_info

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from .config import AnalysisConfig
    from .models import RepoCandidate

logger = get_logger(__name__)

type CandidatePredicate = cabc.Callable[[RepoCandidate, int], bool]


@dataclasses.dataclass(frozen=True, slots=True)
class CandidateFilter:
    """A named predicate over ``(candidate, position)``."""

    reason: str
    keep: CandidatePredicate

    def apply(self, candidates: cabc.Sequence[RepoCandidate]) -> list[RepoCandidate]:
        """Return the kept candidates and log how many were removed."""
        kept = [
            candidate
            for index, candidate in enumerate(candidates)
            if self.keep(candidate, index)
        ]
        log_info(
            logger,
            "removed %d: %s (%d -> %d)",
            len(candidates) - len(kept),
            self.reason,
            len(candidates),
            len(kept),
        )
        return kept


def has_noise_name(full_name: str, config: AnalysisConfig) -> bool:
    """Return True when ``full_name`` contains a denylisted fragment."""
    return any(part in full_name for part in config.noise_name_parts)


def is_noise_repo(full_name: str, config: AnalysisConfig) -> bool:
    """Return True for repositories excluded by exact name."""
    return full_name in config.noise_repos


def relevance_filters(config: AnalysisConfig) -> tuple[CandidateFilter, ...]:
    """Build the ordered filter chain for ``config``."""
    return (
        CandidateFilter("archived (old)", lambda repo, _: not repo.is_archived),
        CandidateFilter(
            f"left share < {config.min_left_share}%",
            lambda repo, _: repo.left_share >= config.min_left_share,
        ),
        CandidateFilter(
            f"right share < {config.min_right_share}%",
            lambda repo, _: repo.right_share >= config.min_right_share,
        ),
        CandidateFilter(
            f"no activity in the last {config.max_pushed_ago_days:g} days",
            lambda repo, _: repo.pushed_ago < config.max_pushed_ago_days,
        ),
        CandidateFilter(
            "noise names",
            lambda repo, _: not has_noise_name(repo.full_name, config)
            and not is_noise_repo(repo.full_name, config),
        ),
        CandidateFilter(
            f"stop at project {config.max_results}",
            lambda _, index: index < config.max_results,
        ),
    )


def apply_filters(
    candidates: cabc.Sequence[RepoCandidate],
    filters: cabc.Iterable[CandidateFilter],
) -> list[RepoCandidate]:
    """Run ``filters`` in order; each sees the previous survivors."""
    survivors = list(candidates)
    for candidate_filter in filters:
        survivors = candidate_filter.apply(survivors)
    return survivors
