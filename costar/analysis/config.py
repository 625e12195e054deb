"""Tunable parameters of the related-repository analysis.

The thresholds below are empirical. They are kept together, with their
historical defaults, so an operator can override them without touching the
pipeline.

Usage
-----
>>> config = AnalysisConfig()
>>> config.min_right_share
3.0
>>> [window.name for window in config.stat_windows][:3]
['T1W', 'T2W', 'T1M']

"""

from __future__ import annotations

import dataclasses as dc
import os

DAYS_PER_MONTH = 365 / 12

NOISE_REPOS: frozenset[str] = frozenset(
    {
        "CyC2018/CS-Notes",
        "TheAlgorithms/Python",
        "awesomedata/awesome-public-datasets",
        "coder2gwy/coder2gwy",
        "jwasham/coding-interview-university",
        "labuladong/fucking-algorithm",
        "vinta/awesome-python",
    }
)
NOISE_NAME_PARTS: tuple[str, ...] = ("fuck", "awesome")
BROKEN_USER_IDS: frozenset[str] = frozenset({"MDQ6VXNlcjQyMTgzMzI2"})


@dc.dataclass(frozen=True, slots=True)
class StatWindow:
    """A trailing window ending at the start of the current week.

    ``days`` is ``None`` for the window that starts at the first star.
    """

    name: str
    days: float | None


STAT_WINDOWS: tuple[StatWindow, ...] = (
    StatWindow("T1W", 7),
    StatWindow("T2W", 14),
    StatWindow("T1M", DAYS_PER_MONTH),
    StatWindow("T3M", 365 / 4),
    StatWindow("T6M", 365 / 2),
    StatWindow("T1Y", 365),
    StatWindow("T2Y", 365 * 2),
    StatWindow("T5Y", 365 * 5),
    StatWindow("TI", None),
)


@dc.dataclass(frozen=True, slots=True)
class AnalysisConfig:
    """Parameters for one related-repository crawl.

    Attributes
    ----------
    max_stars_per_user
        Users who starred more repositories than this are dropped from the
        seed audience. Overridden per request.
    min_seed_stargazers
        Runs whose seed resolves fewer starring events are aborted.
    user_batch_size
        Users per batched starred-repositories query.
    detail_batch_size
        Repositories per batched details query.
    min_left_share, min_right_share
        Percent thresholds applied by the relevance filters.
    max_pushed_ago_days
        Candidates without a push in this many days are dropped.
    max_results
        Survivors kept after filtering, in relevance order.
    min_history_points
        Candidates with a shorter star history get no statistics.
    histogram_months
        Number of monthly samples before the current week.

    """

    max_stars_per_user: int = 200
    min_seed_stargazers: int = 10
    user_batch_size: int = 25
    detail_batch_size: int = 40
    min_left_share: float = 0.4
    min_right_share: float = 3.0
    max_pushed_ago_days: float = 42
    max_results: int = 100
    min_history_points: int = 10
    histogram_months: int = 48
    noise_name_parts: tuple[str, ...] = NOISE_NAME_PARTS
    noise_repos: frozenset[str] = NOISE_REPOS
    broken_user_ids: frozenset[str] = BROKEN_USER_IDS
    stat_windows: tuple[StatWindow, ...] = STAT_WINDOWS

    @staticmethod
    def _parse_positive_int(env_var: str, default: int) -> int:
        raw = os.environ.get(env_var, "")
        if not raw.strip():
            return default
        try:
            value = int(raw)
        except ValueError as exc:
            msg = f"{env_var} must be an integer, got: {raw!r}"
            raise ValueError(msg) from exc
        if value < 1:
            msg = f"{env_var} must be positive, got: {value}"
            raise ValueError(msg)
        return value

    @classmethod
    def from_env(cls) -> AnalysisConfig:
        """Create configuration from environment variables.

        Reads ``COSTAR_MAX_STARS_PER_USER``, ``COSTAR_USER_BATCH_SIZE``,
        ``COSTAR_DETAIL_BATCH_SIZE``, ``COSTAR_MAX_RESULTS`` and
        ``COSTAR_HISTOGRAM_MONTHS``; each must be a positive integer.

        Raises
        ------
        ValueError
            If any override is not a positive integer.

        """
        defaults = cls()
        return cls(
            max_stars_per_user=cls._parse_positive_int(
                "COSTAR_MAX_STARS_PER_USER", defaults.max_stars_per_user
            ),
            user_batch_size=cls._parse_positive_int(
                "COSTAR_USER_BATCH_SIZE", defaults.user_batch_size
            ),
            detail_batch_size=cls._parse_positive_int(
                "COSTAR_DETAIL_BATCH_SIZE", defaults.detail_batch_size
            ),
            max_results=cls._parse_positive_int(
                "COSTAR_MAX_RESULTS", defaults.max_results
            ),
            histogram_months=cls._parse_positive_int(
                "COSTAR_HISTOGRAM_MONTHS", defaults.histogram_months
            ),
        )

    def with_max_stars_per_user(self, value: int) -> AnalysisConfig:
        """Return a copy using a per-request ``max_stars_per_user``."""
        return dc.replace(self, max_stars_per_user=value)
