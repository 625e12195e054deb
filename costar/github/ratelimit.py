"""Quota-aware pacing for sequential GitHub API calls.

GitHub reports the remaining call budget of the current window through the
``x-ratelimit-limit``, ``x-ratelimit-remaining`` and ``x-ratelimit-reset``
response headers. Rather than bursting until the budget runs out and then
stalling, the client spreads the remaining calls across the remaining window.
The ``aggressiveness`` divisor front-loads the spending: with the default of 2
each planned interval is half of the uniform spacing, so the budget is spent
faster at the start of a window and the pacing tightens as it drains.

The functions here are pure; the client owns the actual sleeping.
"""

from __future__ import annotations

import dataclasses
import enum
import typing as typ

if typ.TYPE_CHECKING:
    import collections.abc as cabc

LIMIT_HEADER = "x-ratelimit-limit"
REMAINING_HEADER = "x-ratelimit-remaining"
RESET_HEADER = "x-ratelimit-reset"

DEFAULT_AGGRESSIVENESS = 2.0

# reset timestamps are taken with a small safety margin against clock skew
_RESET_MARGIN_SECONDS = 10
_MAX_SECONDS_REMAINING = 3700
_MAX_CALLS_REMAINING = 20000


class QuotaStatus(enum.StrEnum):
    """Outcome of reading the quota headers from a response."""

    PACED = "paced"
    MISSING = "missing"
    INVALID = "invalid"


@dataclasses.dataclass(frozen=True, slots=True)
class PacingDecision:
    """How long to wait before the next call, and why."""

    status: QuotaStatus
    delay_ms: int = 0
    seconds_remaining: int | None = None
    calls_remaining: int | None = None

    @property
    def should_sleep(self) -> bool:
        """Return True when a positive delay was planned."""
        return self.delay_ms > 0


def _read_int(headers: cabc.Mapping[str, str], name: str) -> int | None:
    raw = headers.get(name)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def _has_quota_headers(headers: cabc.Mapping[str, str]) -> bool:
    return all(
        headers.get(name) is not None
        for name in (LIMIT_HEADER, REMAINING_HEADER, RESET_HEADER)
    )


def planned_interval_ms(
    seconds_remaining: int, calls_remaining: int, aggressiveness: float
) -> int:
    """Return the planned spacing between calls, in whole milliseconds."""
    return int(1000 * seconds_remaining / calls_remaining / aggressiveness)


def plan_delay(
    headers: cabc.Mapping[str, str],
    *,
    now: int,
    elapsed_ms: int,
    aggressiveness: float = DEFAULT_AGGRESSIVENESS,
) -> PacingDecision:
    """Compute the pause owed after a call that took ``elapsed_ms``.

    Parameters
    ----------
    headers
        Response headers; lookups must be case-insensitive for real responses.
    now
        Current time in unix seconds.
    elapsed_ms
        Duration of the call that produced ``headers``. Time already spent
        waiting on the network counts towards the planned interval.
    aggressiveness
        Divisor applied to the uniform spacing.

    Returns
    -------
    PacingDecision
        ``MISSING`` or ``INVALID`` decisions always carry a zero delay.

    """
    if not _has_quota_headers(headers):
        return PacingDecision(status=QuotaStatus.MISSING)

    reset_at = _read_int(headers, RESET_HEADER)
    calls_remaining = _read_int(headers, REMAINING_HEADER)
    if reset_at is None or calls_remaining is None:
        return PacingDecision(status=QuotaStatus.INVALID)

    seconds_remaining = reset_at - now + _RESET_MARGIN_SECONDS
    sane = (
        0 <= seconds_remaining <= _MAX_SECONDS_REMAINING
        and 0 <= calls_remaining <= _MAX_CALLS_REMAINING
    )
    if not sane:
        return PacingDecision(
            status=QuotaStatus.INVALID,
            seconds_remaining=seconds_remaining,
            calls_remaining=calls_remaining,
        )

    if calls_remaining > 0:
        interval = planned_interval_ms(
            seconds_remaining, calls_remaining, aggressiveness
        )
        delay_ms = max(0, interval - elapsed_ms)
    else:
        # budget exhausted: wait out the window plus one second
        delay_ms = 1000 * seconds_remaining + 1000

    return PacingDecision(
        status=QuotaStatus.PACED,
        delay_ms=delay_ms,
        seconds_remaining=seconds_remaining,
        calls_remaining=calls_remaining,
    )
