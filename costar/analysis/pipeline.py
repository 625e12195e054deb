"""Related-repository crawl.

Given a seed repository, the pipeline finds who starred it, what else those
people starred, and which of those repositories are disproportionately
popular with that audience. It runs five stages in order:

1. seed stargazers: the seed's starring history;
2. co-star accumulation: every repository starred by the retained audience,
   scored by relevance;
3. relevance filtering: a fixed chain of named filters;
4. detail enrichment: extended metadata for the survivors;
5. star history: growth statistics for each survivor.

Stages 1 and 2 abort the whole run when they produce too little signal.
Every other failure is local: an API error skips the batch, user, or
repository it concerns and the run continues.
"""

from __future__ import annotations

import dataclasses
import functools
import typing as typ

from costar.common.slug import parse_repo_slug
from costar.common.time import (
    SECONDS_PER_DAY,
    days_between,
    parse_github_timestamp,
    start_of_week,
    unix_seconds,
    utcnow,
)
from costar.github.errors import PaginationIntegrityError
from costar.github.models import RepoListDetails, UserListStarredRepos, UserStarredRepos
from costar.github.pagination import Paginator
from costar.logging import get_logger, log_error, log_info, log_warning

from .config import DAYS_PER_MONTH, AnalysisConfig
from .errors import CrawlAbortedError
from .export import RunLabel
from .filters import apply_filters, is_noise_repo, relevance_filters
from .models import RepoCandidate, TimeSeriesPoint
from .observability import CrawlEventLogger, CrawlRunContext
from .progress import CrawlPhase, NullProgressReporter, PhaseTracker
from .relevance import score_candidates
from .starrings import StarringCrawler
from .statistics import bounds, interpolate, slope

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from costar.cache.store import ResultCache
    from costar.github.client import RateLimitedClient
    from costar.github.models import RepoAdvanced, RepoBasic, StarredRepoEdge

    from .export import ResultSink
    from .models import StarringEvent
    from .progress import ProgressReporter

logger = get_logger(__name__)

USER_LIST_STARRED_SCOPE = "user-list-starred-repos"
USER_STARRED_SCOPE = "user-starred-repos"
REPO_DETAILS_SCOPE = "repo-list-details"


@dataclasses.dataclass(slots=True)
class AudienceSummary:
    """How much of the seed audience contributed to accumulation."""

    users_total: int
    users_valid: int = 0
    users_exceeding_max: int = 0
    users_multi_page: int = 0
    users_missing: int = 0


@dataclasses.dataclass(frozen=True, slots=True)
class CrawlResult:
    """Outcome of one successful crawl."""

    seed: str
    audience: AudienceSummary
    related: list[RepoCandidate]
    relevant: list[RepoCandidate]
    with_statistics: list[RepoCandidate]
    related_file: str | None = None
    statistics_file: str | None = None


@dataclasses.dataclass(frozen=True, slots=True)
class _RunState:
    """Per-run values shared by the stages."""

    seed: str
    config: AnalysisConfig
    tracker: PhaseTracker
    started_at: int
    week_start: int


def apply_details(candidate: RepoCandidate, details: RepoAdvanced) -> None:
    """Merge enrichment fields into ``candidate``."""
    candidate.description = details.description
    candidate.watchers = details.watchers.total_count
    candidate.forks = details.fork_count
    candidate.issues = details.issues.total_count
    candidate.pull_requests = details.pull_requests.total_count
    candidate.releases = details.releases.total_count
    candidate.topics = details.repository_topics.names()
    candidate.mentionable = details.mentionable_users.total_count
    candidate.assignable = details.assignable_users.total_count


def candidate_from_repo(repo: RepoBasic, *, now: int) -> RepoCandidate:
    """Create the candidate shell for a repository seen for the first time."""
    created_at = parse_github_timestamp(repo.created_at)
    pushed_at = (
        parse_github_timestamp(repo.pushed_at) if repo.pushed_at else created_at
    )
    return RepoCandidate(
        id=repo.id,
        full_name=repo.name_with_owner,
        is_archived=repo.is_archived,
        is_fork=repo.is_fork,
        created_ago=days_between(created_at, now),
        pushed_ago=days_between(pushed_at, now),
        stars_total=repo.stargazer_count,
    )


def _user_starred_cursor(page: UserStarredRepos) -> tuple[bool, str | None]:
    if page.user is None:
        return (False, None)
    info = page.user.starred_repositories.page_info
    return (info.has_next_page, info.end_cursor)


class CrawlPipeline:
    """Find and analyse the repositories related to a seed repository."""

    def __init__(  # noqa: PLR0913
        self,
        client: RateLimitedClient,
        cache: ResultCache,
        *,
        config: AnalysisConfig | None = None,
        sink: ResultSink | None = None,
        event_logger: CrawlEventLogger | None = None,
        clock: cabc.Callable[[], dt.datetime] = utcnow,
    ) -> None:
        """Wire the pipeline to its collaborators.

        Parameters
        ----------
        client
            GitHub client; its soft failures become skipped items.
        cache
            Result cache wrapping every GitHub query.
        config
            Analysis parameters; defaults to :class:`AnalysisConfig`.
        sink
            Optional destination for the related and statistics tables.
        event_logger
            Structured run-event logger.
        clock
            Returns the run start; ages and statistic windows derive from it.

        """
        self._client = client
        self._cache = cache
        self._config = config or AnalysisConfig()
        self._sink = sink
        self._event_logger = event_logger or CrawlEventLogger()
        self._clock = clock
        self._starrings = StarringCrawler(client, cache)

    async def run(
        self,
        seed: str,
        *,
        max_stars_per_user: int | None = None,
        reporter: ProgressReporter | None = None,
    ) -> CrawlResult:
        """Run the five stages for ``seed`` (``owner/name``).

        Raises
        ------
        ValueError
            If ``seed`` is not an ``owner/name`` full name.
        CrawlAbortedError
            If the seed audience or the candidate set is too small.

        """
        parse_repo_slug(seed)
        config = self._config
        if max_stars_per_user is not None:
            config = config.with_max_stars_per_user(max_stars_per_user)

        started_at = self._clock()
        context = CrawlRunContext(
            seed=seed,
            max_stars_per_user=config.max_stars_per_user,
            started_at=started_at,
        )
        state = _RunState(
            seed=seed,
            config=config,
            tracker=PhaseTracker(reporter or NullProgressReporter()),
            started_at=unix_seconds(started_at),
            week_start=start_of_week(started_at),
        )
        self._event_logger.log_run_started(context)

        try:
            result = await self._run_stages(state, context)
        except CrawlAbortedError as exc:
            self._event_logger.log_run_aborted(context, exc, self._clock() - started_at)
            raise
        except Exception as exc:
            self._event_logger.log_run_failed(context, exc, self._clock() - started_at)
            raise

        self._event_logger.log_run_completed(
            context,
            related=len(result.related),
            relevant=len(result.relevant),
            with_statistics=len(result.with_statistics),
            duration=self._clock() - started_at,
        )
        return result

    async def _run_stages(
        self, state: _RunState, context: CrawlRunContext
    ) -> CrawlResult:
        label = RunLabel(state.seed, state.config.max_stars_per_user)

        await state.tracker.enter(CrawlPhase.SEED_STARGAZERS)
        user_ids = await self._seed_audience(state)
        self._event_logger.log_stage_completed(
            context, CrawlPhase.SEED_STARGAZERS, len(user_ids)
        )

        await state.tracker.enter(CrawlPhase.COSTAR_ACCUMULATION)
        related, audience = await self._accumulate(state, user_ids)
        related_file = None
        if self._sink is not None:
            related_file = await self._sink.write_related(label, related)
        self._event_logger.log_stage_completed(
            context, CrawlPhase.COSTAR_ACCUMULATION, len(related)
        )

        await state.tracker.enter(CrawlPhase.RELEVANCE_FILTERING)
        relevant = apply_filters(related, relevance_filters(state.config))
        log_info(
            logger,
            "-> %d relevant repos left (%.2f%% is gone)",
            len(relevant),
            100 * (1 - len(relevant) / len(related)),
        )
        self._event_logger.log_stage_completed(
            context, CrawlPhase.RELEVANCE_FILTERING, len(relevant)
        )

        await state.tracker.enter(CrawlPhase.DETAIL_ENRICHMENT)
        await self._enrich(state, relevant)
        self._event_logger.log_stage_completed(
            context, CrawlPhase.DETAIL_ENRICHMENT, len(relevant)
        )

        await state.tracker.enter(CrawlPhase.STAR_HISTORY)
        with_statistics = await self._star_history(state, relevant, len(user_ids))
        statistics_file = None
        if self._sink is not None:
            statistics_file = await self._sink.write_statistics(label, with_statistics)
        self._event_logger.log_stage_completed(
            context, CrawlPhase.STAR_HISTORY, len(with_statistics)
        )

        return CrawlResult(
            seed=state.seed,
            audience=audience,
            related=related,
            relevant=relevant,
            with_statistics=with_statistics,
            related_file=related_file,
            statistics_file=statistics_file,
        )

    # Stage 1: seed stargazers

    async def _seed_audience(self, state: _RunState) -> list[str]:
        owner, name = parse_repo_slug(state.seed)
        log_info(logger, "*** Resolving users that starred '%s' ...", state.seed)
        try:
            events = await self._starrings.starrings_descending(owner, name)
        except PaginationIntegrityError as exc:
            raise CrawlAbortedError.inconsistent_seed(state.seed, str(exc)) from exc

        if len(events) < state.config.min_seed_stargazers:
            raise CrawlAbortedError.too_few_stargazers(
                state.seed, len(events), state.config.min_seed_stargazers
            )
        log_info(
            logger, "** Found %d users that starred '%s'", len(events), state.seed
        )
        return [event.user_id for event in events]

    # Stage 2: co-star accumulation

    async def _accumulate(
        self, state: _RunState, user_ids: list[str]
    ) -> tuple[list[RepoCandidate], AudienceSummary]:
        config = state.config
        audience = AudienceSummary(users_total=len(user_ids))
        candidates: dict[str, RepoCandidate] = {}

        for start in range(0, len(user_ids), config.user_batch_size):
            batch = [
                user_id
                for user_id in user_ids[start : start + config.user_batch_size]
                if user_id not in config.broken_user_ids
            ]
            if batch:
                await self._accumulate_batch(state, audience, candidates, start, batch)
            await state.tracker.advance(
                min(start + config.user_batch_size, len(user_ids)) / len(user_ids)
            )

        log_info(
            logger,
            "< skipped %d users (over %d) for exceeding max-stars-per-user %d; "
            "using %d valid users",
            audience.users_exceeding_max,
            audience.users_total,
            config.max_stars_per_user,
            audience.users_valid,
        )
        if not candidates:
            raise CrawlAbortedError.no_candidates(state.seed)

        ranked = score_candidates(
            candidates.values(),
            users_total=audience.users_total,
            users_valid=audience.users_valid,
        )
        log_info(
            logger, "** Discovered %d related repos to '%s'", len(ranked), state.seed
        )
        return ranked, audience

    async def _accumulate_batch(
        self,
        state: _RunState,
        audience: AudienceSummary,
        candidates: dict[str, RepoCandidate],
        start: int,
        batch: list[str],
    ) -> None:
        first, last = start + 1, start + len(batch)
        log_info(
            logger,
            "- Fetching stars for %d users %d-%d / %d (%.1f%%)",
            len(batch),
            first,
            last,
            audience.users_total,
            100 * last / audience.users_total,
        )
        response = await self._cache.get_or_compute(
            USER_LIST_STARRED_SCOPE,
            f"{state.seed}-{audience.users_total}-{first}-{last}",
            functools.partial(self._client.user_list_starred_repos, batch),
            type=UserListStarredRepos,
        )
        if response is None:
            log_error(
                logger,
                "< skipping users %d-%d because of an API error; check manually: %s",
                first,
                last,
                batch,
            )
            return

        users = [user for user in response.nodes if user is not None]
        audience.users_missing += len(response.nodes) - len(users)
        retained = [
            user
            for user in users
            if user.starred_repositories.total_count
            <= state.config.max_stars_per_user
        ]
        audience.users_exceeding_max += len(users) - len(retained)
        audience.users_valid += len(retained)

        for user in retained:
            edges = list(user.starred_repositories.edges)
            info = user.starred_repositories.page_info
            if info.has_next_page:
                audience.users_multi_page += 1
                edges.extend(await self._remaining_stars(user.login, info.end_cursor))
            self._add_user_stars(candidates, edges, now=state.started_at)

    async def _remaining_stars(
        self, login: str, cursor: str | None
    ) -> list[StarredRepoEdge | None]:
        edges: list[StarredRepoEdge | None] = []

        async def fetch_page(after: str | None) -> UserStarredRepos | None:
            return await self._cache.get_or_compute(
                USER_STARRED_SCOPE,
                f"{login}-{after}",
                functools.partial(self._client.user_starred_repos, login, after),
                type=UserStarredRepos,
            )

        def accumulate(page: UserStarredRepos | None) -> bool:
            if page is None or page.user is None:
                log_error(
                    logger,
                    "< skipping additional stars of '%s' because of an API error",
                    login,
                )
                return False
            edges.extend(page.user.starred_repositories.edges)
            return True

        paginator = Paginator(
            fetch=fetch_page,
            accumulate=accumulate,
            extract_cursor=_user_starred_cursor,
            context=f"starred repositories of {login}",
        )
        try:
            await paginator.run(cursor)
        except PaginationIntegrityError as exc:
            log_warning(logger, "< stopped paging '%s': %s", login, exc)
        return edges

    @staticmethod
    def _add_user_stars(
        candidates: dict[str, RepoCandidate],
        edges: cabc.Iterable[StarredRepoEdge | None],
        *,
        now: int,
    ) -> None:
        seen: set[str] = set()
        for edge in edges:
            if edge is None or edge.node is None:
                continue
            repo = edge.node
            if repo.id in seen:
                continue
            seen.add(repo.id)
            candidate = candidates.get(repo.id)
            if candidate is None:
                candidate = candidate_from_repo(repo, now=now)
                candidates[repo.id] = candidate
            candidate.users_stars += 1

    # Stage 4: detail enrichment

    async def _enrich(self, state: _RunState, repos: list[RepoCandidate]) -> None:
        total = len(repos)
        size = state.config.detail_batch_size
        log_info(logger, ">> Finding repository details for %d repositories", total)

        for start in range(0, total, size):
            part = repos[start : start + size]
            ids = [repo.id for repo in part]
            log_info(
                logger,
                "- Fetching repo details for %d repositories %d-%d/%d ...",
                len(part),
                start + 1,
                start + len(part),
                total,
            )
            details = await self._cache.get_or_compute(
                REPO_DETAILS_SCOPE,
                f"{len(ids)}-{total}-{ids[0]}-{ids[-1]}",
                functools.partial(self._client.repo_list_details, ids),
                type=RepoListDetails,
            )
            if details is None:
                log_error(
                    logger,
                    "< skipping details for repositories %d-%d because of an API "
                    "error; check manually: %s",
                    start + 1,
                    start + len(part),
                    ids,
                )
            else:
                self._merge_details(part, details)
            await state.tracker.advance((start + len(part)) / total)

    @staticmethod
    def _merge_details(part: list[RepoCandidate], details: RepoListDetails) -> None:
        by_id = {repo.id: repo for repo in part}
        for node in details.nodes:
            if node is None:
                continue
            target = by_id.get(node.id)
            if target is None:
                log_error(
                    logger,
                    "Cannot merge details for %s: not in the requested batch",
                    node.name_with_owner,
                )
                continue
            apply_details(target, node)

    # Stage 5: star history

    async def _star_history(
        self, state: _RunState, repos: list[RepoCandidate], audience_size: int
    ) -> list[RepoCandidate]:
        log_info(
            logger,
            ">> Finding stars history of %d relevant repositories "
            "(most starred by the %d users of '%s')",
            len(repos),
            audience_size,
            state.seed,
        )
        with_statistics: list[RepoCandidate] = []
        for index, repo in enumerate(repos, start=1):
            log_info(
                logger,
                "*** Resolving %d starrings for '%s' (%d/%d) ...",
                repo.stars_total,
                repo.full_name,
                index,
                len(repos),
            )
            if await self._attach_statistics(state, repo):
                with_statistics.append(repo)
            await state.tracker.advance(index / len(repos))
        return with_statistics

    async def _attach_statistics(self, state: _RunState, repo: RepoCandidate) -> bool:
        config = state.config
        if is_noise_repo(repo.full_name, config):
            log_info(logger, "< skipping %s: noise for this analysis", repo.full_name)
            return False

        owner, name = parse_repo_slug(repo.full_name)
        try:
            events = await self._starrings.starrings_descending(owner, name)
        except PaginationIntegrityError as exc:
            log_warning(logger, "< skipping %s: %s", repo.full_name, exc)
            return False

        if len(events) < config.min_history_points:
            log_warning(
                logger,
                "Issues finding stars(t) of '%s': %d",
                repo.full_name,
                len(events),
            )
            return False

        series = self._ascending_series(events)
        series_bounds = bounds(series)
        log_info(
            logger,
            "- last star was %d hours ago (#%d), the first (#%d) was %.2f years ago",
            round((state.started_at - series_bounds.max_x) / 3600),
            series_bounds.max_y,
            series_bounds.min_y,
            (state.started_at - series_bounds.min_x) / SECONDS_PER_DAY / 365,
        )

        right = state.week_start
        for window in config.stat_windows:
            if window.days is None:
                left = series_bounds.min_x
            else:
                left = right - SECONDS_PER_DAY * window.days
            repo.slopes[window.name] = slope(
                series, left, right, series_bounds.min_x, window.name
            )

        month_seconds = SECONDS_PER_DAY * DAYS_PER_MONTH
        for month in range(-config.histogram_months, 1):
            repo.monthly[f"T{month}"] = interpolate(
                series,
                right + month_seconds * month,
                name=repo.full_name,
                min_points=config.min_history_points,
            )
        return True

    @staticmethod
    def _ascending_series(events: list[StarringEvent]) -> list[TimeSeriesPoint]:
        return [TimeSeriesPoint.from_event(event) for event in reversed(events)]
