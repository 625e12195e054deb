"""Co-star relevance scoring.

For a candidate starred by ``usersStars`` members of the seed audience:

* ``leftShare``: fraction of the seed audience that starred the candidate;
* ``rightShare``: fraction of the candidate's own stargazers that came from
  the seed audience;
* ``relevance``: ``(rightShare**2 * leftShare) ** (1/3)``, which favours
  concentrated overlap over raw popularity.

Both shares are scaled by ``usersTotal / usersValid`` so dropping heavy
starrers from the audience does not shrink every score. Stored values are
percentages rounded to two decimals.
"""

from __future__ import annotations

import typing as typ

from costar.logging import get_logger, log_debug

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from .models import RepoCandidate

logger = get_logger(__name__)


def share_adjustment(users_total: int, users_valid: int) -> float:
    """Return the audience compensation factor."""
    return users_total / users_valid if users_valid else 1.0


def relevance_score(left_share: float, right_share: float) -> float:
    """Combine the two shares (as fractions) into one score."""
    return (right_share * right_share * left_share) ** (1 / 3)


def score_candidates(
    candidates: cabc.Iterable[RepoCandidate],
    *,
    users_total: int,
    users_valid: int,
) -> list[RepoCandidate]:
    """Score candidates in place and return them sorted by relevance.

    Candidates without stars keep zero scores and sink to the bottom.
    """
    adjustment = share_adjustment(users_total, users_valid)
    ranked = list(candidates)
    for candidate in ranked:
        if candidate.stars_total < 1:
            log_debug(
                logger,
                "Skipping repo %s that has %d stars and %d references",
                candidate.full_name,
                candidate.stars_total,
                candidate.users_stars,
            )
            continue
        left = adjustment * candidate.users_stars / users_total
        right = adjustment * candidate.users_stars / candidate.stars_total
        candidate.left_share = round(100 * left, 2)
        candidate.right_share = round(100 * right, 2)
        candidate.relevance = round(100 * relevance_score(left, right), 2)
    ranked.sort(key=lambda candidate: candidate.relevance, reverse=True)
    return ranked
