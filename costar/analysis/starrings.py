"""Starring-history crawl shared by the seed and per-candidate stages.

GitHub lists stargazers newest first. The crawl takes the star count once,
up front, and numbers events downwards from it, so the ordinal of each event
approximates the cumulative star count when it happened. Counting is not
re-synchronised if stars arrive while paging.
"""

from __future__ import annotations

import functools
import typing as typ

from costar.common.slug import repo_slug
from costar.common.time import parse_github_timestamp
from costar.github.errors import PaginationIntegrityError
from costar.github.models import RepoStarrings, RepoStarsCount
from costar.github.pagination import Paginator
from costar.logging import get_logger, log_error, log_info, log_warning

from .models import StarringEvent

if typ.TYPE_CHECKING:
    from costar.cache.store import ResultCache
    from costar.github.client import RateLimitedClient

logger = get_logger(__name__)

STARS_COUNT_SCOPE = "repo-stars-count"
STARRINGS_PAGE_SCOPE = "repo-starrings-page"


class _StarringAccumulator:
    """Fold stargazer pages into a newest-first event list."""

    def __init__(self, slug: str, stars_count: int) -> None:
        self.slug = slug
        self.events: list[StarringEvent] = []
        self._next_ordinal = stars_count
        self._seen: set[str] = set()

    def __call__(self, page: RepoStarrings | None) -> bool:
        if page is None or page.repository is None:
            log_error(logger, "Skipping repo '%s' because of an API error", self.slug)
            return False

        connection = page.repository.stargazers
        if len(connection.edges) != len(connection.nodes):
            raise PaginationIntegrityError.mismatched_lengths(
                f"stargazers of {self.slug}",
                edges=len(connection.edges),
                nodes=len(connection.nodes),
            )

        for edge, node in zip(connection.edges, connection.nodes, strict=True):
            if edge is None or node is None:
                log_warning(
                    logger,
                    "Skipping starring %d of repo '%s' (edge=%s, node=%s)",
                    len(self.events),
                    self.slug,
                    edge is not None,
                    node is not None,
                )
                continue
            if node.id in self._seen:
                log_warning(
                    logger,
                    "Skipping duplicate stargazer %s of repo '%s'",
                    node.login,
                    self.slug,
                )
                continue
            self._seen.add(node.id)
            self.events.append(
                StarringEvent(
                    ordinal=self._next_ordinal,
                    starred_at=parse_github_timestamp(edge.starred_at),
                    user_id=node.id,
                    user_login=node.login,
                )
            )
            self._next_ordinal -= 1
        return True


def _starrings_cursor(page: RepoStarrings) -> tuple[bool, str | None]:
    if page.repository is None:
        return (False, None)
    info = page.repository.stargazers.page_info
    return (info.has_next_page, info.end_cursor)


class StarringCrawler:
    """Resolve the full starring history of repositories.

    Individual pages are cached, keyed by the star-count snapshot and the
    cursor, so an interrupted crawl resumes from cache on the next run while
    a partial history is never stored as if it were complete.
    """

    def __init__(self, client: RateLimitedClient, cache: ResultCache) -> None:
        """Bind the crawler to an API client and a result cache."""
        self._client = client
        self._cache = cache

    async def starrings_descending(self, owner: str, name: str) -> list[StarringEvent]:
        """Return every starring of ``owner/name``, newest first.

        Raises
        ------
        PaginationIntegrityError
            If a page pairs a different number of edges and nodes, or claims
            more pages without a cursor.

        """
        return await self._crawl(owner, name)

    async def stars_count(self, owner: str, name: str) -> int | None:
        """Return the cached stargazer count snapshot of ``owner/name``."""
        response = await self._cache.get_or_compute(
            STARS_COUNT_SCOPE,
            repo_slug(owner, name),
            functools.partial(self._client.repo_stars_count, owner, name),
            type=RepoStarsCount,
        )
        if response is None or response.repository is None:
            return None
        return response.repository.stargazer_count

    async def _crawl(self, owner: str, name: str) -> list[StarringEvent]:
        slug = repo_slug(owner, name)
        stars_count = await self.stars_count(owner, name)
        if stars_count is None:
            log_warning(logger, "Could not read the stargazer count of '%s'", slug)
            return []

        log_info(logger, "Resolving %d starrings of '%s'", stars_count, slug)
        accumulator = _StarringAccumulator(slug, stars_count)

        async def fetch_page(cursor: str | None) -> RepoStarrings | None:
            return await self._cache.get_or_compute(
                STARRINGS_PAGE_SCOPE,
                f"{slug}-{stars_count}-{cursor or 'first'}",
                functools.partial(self._client.repo_starrings, owner, name, cursor),
                type=RepoStarrings,
            )

        paginator = Paginator(
            fetch=fetch_page,
            accumulate=accumulator,
            extract_cursor=_starrings_cursor,
            context=f"stargazers of {slug}",
        )
        result = await paginator.run()
        log_info(
            logger,
            "Fetched %d/%d starrings of '%s' in %d pages%s",
            len(accumulator.events),
            stars_count,
            slug,
            result.pages,
            "" if result.completed else " (incomplete)",
        )
        return accumulator.events
