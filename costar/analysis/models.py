"""Data carried through a crawl.

``StarringEvent`` lists are cached between runs, so they are msgspec structs
with camelCase wire names. ``RepoCandidate`` is deliberately mutable: it is
created as a shell during co-star accumulation and filled in by the later
stages of the same run.
"""

from __future__ import annotations

import dataclasses

import msgspec


class StarringEvent(msgspec.Struct, rename="camel", frozen=True, kw_only=True):
    """One user starring one repository.

    Attributes
    ----------
    ordinal
        Cumulative star number at the time of starring. Counted down from the
        stargazer-count snapshot while crawling newest-first.
    starred_at
        Unix seconds.
    user_id
        GitHub node id of the user.
    user_login
        GitHub login of the user.

    """

    ordinal: int
    starred_at: int
    user_id: str
    user_login: str


@dataclasses.dataclass(frozen=True, slots=True)
class TimeSeriesPoint:
    """A ``(timestamp, cumulative stars)`` sample."""

    x: int
    y: int

    @classmethod
    def from_event(cls, event: StarringEvent) -> TimeSeriesPoint:
        """Project a starring event onto the star-history plane."""
        return cls(x=event.starred_at, y=event.ordinal)


class RepoCandidate(msgspec.Struct, rename="camel", kw_only=True):
    """A repository starred by part of the seed audience."""

    id: str
    full_name: str
    description: str | None = None
    is_archived: bool = False
    is_fork: bool = False
    created_ago: float = 0.0
    pushed_ago: float = 0.0
    stars_total: int = 0

    # filled in by detail enrichment
    watchers: int = 0
    forks: int = 0
    issues: int = 0
    pull_requests: int = 0
    releases: int = 0
    topics: list[str] = []
    mentionable: int = 0
    assignable: int = 0

    # relative to the seed audience, in percent
    users_stars: int = 0
    left_share: float = 0.0
    right_share: float = 0.0
    relevance: float = 0.0

    # star-history statistics, keyed by window or sample name
    slopes: dict[str, float | None] = {}
    monthly: dict[str, int] = {}
