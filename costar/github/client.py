"""Rate-limited GitHub API client used by the crawler.

Every call is a soft operation: transport errors, HTTP error statuses,
GraphQL ``errors`` payloads and malformed responses are logged and turned
into a ``None`` result, which callers treat as "skip this item". Only a
missing credential is raised, at construction time.

After each response the client reads the quota headers and sleeps long enough
to spread the remaining budget over the remaining window (see
:mod:`costar.github.ratelimit`). The sleep is awaited inside the calling task,
so it paces the sequence of calls issued through one client instance without
blocking unrelated tasks on the event loop.
"""

from __future__ import annotations

import asyncio
import dataclasses
import os
import time
import typing as typ
from http import HTTPStatus

import httpx
import msgspec

from costar.logging import get_logger, log_debug, log_error, log_info, log_warning

from . import queries
from .errors import GitHubConfigError
from .models import (
    RepoListDetails,
    RepoStarrings,
    RepoStarsCount,
    UserListStarredRepos,
    UserStarredRepos,
)
from .ratelimit import DEFAULT_AGGRESSIVENESS, QuotaStatus, plan_delay

if typ.TYPE_CHECKING:
    import collections.abc as cabc

logger = get_logger(__name__)

_GRAPHQL_PATH = "/graphql"
_DEFAULT_ACCEPT = "application/vnd.github.v3+json"
_HTTP_ERROR_STATUS_THRESHOLD = 400
_EMPTY_RESULT_STATUSES = frozenset(
    {HTTPStatus.NOT_FOUND, HTTPStatus.UNAVAILABLE_FOR_LEGAL_REASONS}
)
_MAX_LOGGED_BODY = 500


@dataclasses.dataclass(frozen=True, slots=True)
class GitHubClientConfig:
    """Configuration for :class:`RateLimitedClient`."""

    token: str
    base_url: str = "https://api.github.com"
    timeout_s: float = 60.0
    user_agent: str = "costar/0.1"
    aggressiveness: float = DEFAULT_AGGRESSIVENESS

    @classmethod
    def from_env(cls) -> GitHubClientConfig:
        """Build configuration from the environment.

        ``COSTAR_GITHUB_TOKEN`` is preferred; ``GITHUB_PA_TOKEN`` is accepted
        for deployments that predate the rename. ``COSTAR_RATE_AGGRESSIVENESS``
        optionally overrides the pacing divisor.

        Raises
        ------
        GitHubConfigError
            If no token is configured.
        ValueError
            If the aggressiveness override is not a positive number.

        """
        token = (
            os.environ.get("COSTAR_GITHUB_TOKEN", "").strip()
            or os.environ.get("GITHUB_PA_TOKEN", "").strip()
        )
        if not token:
            raise GitHubConfigError.missing_token()

        aggressiveness = DEFAULT_AGGRESSIVENESS
        raw = os.environ.get("COSTAR_RATE_AGGRESSIVENESS", "").strip()
        if raw:
            try:
                aggressiveness = float(raw)
            except ValueError as exc:
                msg = f"COSTAR_RATE_AGGRESSIVENESS must be a number, got: {raw!r}"
                raise ValueError(msg) from exc
            if aggressiveness <= 0:
                msg = f"COSTAR_RATE_AGGRESSIVENESS must be positive, got: {raw!r}"
                raise ValueError(msg)
        return cls(token=token, aggressiveness=aggressiveness)


class RateLimitedClient:
    """GitHub GraphQL and REST access with quota pacing and soft failures."""

    def __init__(
        self,
        config: GitHubClientConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
        sleep: cabc.Callable[[float], cabc.Awaitable[None]] = asyncio.sleep,
        clock: cabc.Callable[[], float] = time.time,
    ) -> None:
        """Initialise the client with the provided API configuration."""
        if not config.token.strip():
            raise GitHubConfigError.empty_token()

        self._config = config
        self._sleep = sleep
        self._clock = clock
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.timeout_s,
            headers={
                "Authorization": f"Bearer {config.token}",
                "User-Agent": config.user_agent,
                "Accept": _DEFAULT_ACCEPT,
            },
        )

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    # Typed GraphQL operations

    async def repo_stars_count(self, owner: str, name: str) -> RepoStarsCount | None:
        """Return the current stargazer count of a repository."""
        return await self._typed(
            queries.REPO_STARS_COUNT,
            "RepoStarsCount",
            {"owner": owner, "name": name},
            RepoStarsCount,
        )

    async def repo_starrings(
        self, owner: str, name: str, after: str | None = None
    ) -> RepoStarrings | None:
        """Return one page of stargazers, newest first."""
        return await self._typed(
            queries.REPO_STARRINGS,
            "RepoStarrings",
            {"owner": owner, "name": name, "after": after},
            RepoStarrings,
        )

    async def user_starred_repos(
        self, login: str, after: str | None = None
    ) -> UserStarredRepos | None:
        """Return one page of repositories starred by a user."""
        return await self._typed(
            queries.USER_STARRED_REPOS,
            "UserStarredRepos",
            {"login": login, "after": after},
            UserStarredRepos,
        )

    async def user_list_starred_repos(
        self, user_ids: cabc.Sequence[str]
    ) -> UserListStarredRepos | None:
        """Return the first page of starred repositories for many users."""
        return await self._typed(
            queries.USER_LIST_STARRED_REPOS,
            "UserListStarredRepos",
            {"ids": list(user_ids)},
            UserListStarredRepos,
        )

    async def repo_list_details(
        self, repo_ids: cabc.Sequence[str]
    ) -> RepoListDetails | None:
        """Return extended metadata for many repositories."""
        return await self._typed(
            queries.REPO_LIST_DETAILS,
            "RepoListDetails",
            {"ids": list(repo_ids)},
            RepoListDetails,
        )

    # Generic operations

    async def graphql(
        self,
        query: str,
        *,
        operation_name: str,
        variables: dict[str, typ.Any],
    ) -> dict[str, typ.Any] | None:
        """Execute a GraphQL operation and return its ``data`` object."""
        body = {
            "query": query,
            "operationName": operation_name,
            "variables": variables,
        }
        payload = await self._request("POST", _GRAPHQL_PATH, json=body)
        if payload is None:
            return None
        return _graphql_data(payload, operation_name, variables)

    async def rest_get(self, path: str, *, accept: str | None = None) -> object | None:
        """GET a REST resource, optionally with a preview ``Accept`` header."""
        headers = {"Accept": accept} if accept else None
        return await self._request("GET", path, headers=headers)

    # Internals

    async def _typed[T](
        self,
        query: str,
        operation_name: str,
        variables: dict[str, typ.Any],
        response_type: type[T],
    ) -> T | None:
        data = await self.graphql(
            query, operation_name=operation_name, variables=variables
        )
        if data is None:
            return None
        try:
            return msgspec.convert(data, type=response_type)
        except msgspec.ValidationError as exc:
            log_error(
                logger,
                "GraphQL %s returned malformed data (%s); variables were %s",
                operation_name,
                exc,
                variables,
            )
            return None

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: object | None = None,
        headers: dict[str, str] | None = None,
    ) -> object | None:
        started = time.monotonic()
        try:
            response = await self._client.request(
                method, path, json=json, headers=headers
            )
        except httpx.HTTPError as exc:
            elapsed_ms = int(1000 * (time.monotonic() - started))
            log_error(
                logger,
                "%s %s failed after %d ms: %s",
                method,
                path,
                elapsed_ms,
                exc,
                exc_info=exc,
            )
            return None

        elapsed_ms = int(1000 * (time.monotonic() - started))
        log_debug(
            logger, "%s %s: %d in %d ms", method, path, response.status_code, elapsed_ms
        )
        await self._pace(response.headers, path, elapsed_ms)
        if not _accept_status(response, method, path, elapsed_ms):
            return None

        try:
            return response.json()
        except ValueError as exc:
            log_error(logger, "%s %s returned a non-JSON body: %s", method, path, exc)
            return None

    async def _pace(
        self, headers: cabc.Mapping[str, str], path: str, elapsed_ms: int
    ) -> None:
        decision = plan_delay(
            headers,
            now=int(self._clock()),
            elapsed_ms=elapsed_ms,
            aggressiveness=self._config.aggressiveness,
        )
        if decision.status is QuotaStatus.MISSING:
            log_warning(logger, "No rate limiter headers for %s; not pacing", path)
            return
        if decision.status is QuotaStatus.INVALID:
            log_error(
                logger,
                "Bad rate limiter (%s calls left in %ss) for %s; not pacing",
                decision.calls_remaining,
                decision.seconds_remaining,
                path,
            )
            return
        if decision.should_sleep:
            log_debug(
                logger,
                "Sleeping %d ms (%s calls left for %ss)",
                decision.delay_ms,
                decision.calls_remaining,
                decision.seconds_remaining,
            )
            await self._sleep(decision.delay_ms / 1000)


def _accept_status(
    response: httpx.Response, method: str, path: str, elapsed_ms: int
) -> bool:
    """Classify the HTTP status; return False when the body must be ignored."""
    status = response.status_code
    if status == HTTPStatus.UNAUTHORIZED:
        log_error(
            logger,
            "401 while accessing %s. Likely cause: an invalid GitHub access token.",
            path,
        )
        return False
    if status in _EMPTY_RESULT_STATUSES:
        log_info(
            logger, "%d: %s not found or blocked; treating as empty", status, path
        )
        return False
    if status >= _HTTP_ERROR_STATUS_THRESHOLD:
        log_error(
            logger,
            "%d: %s %s error after %d ms; server response: %s",
            status,
            method,
            path,
            elapsed_ms,
            response.text[:_MAX_LOGGED_BODY],
        )
        return False
    if status != HTTPStatus.OK:
        log_warning(logger, "Status is not 200 for %s %s: %d", method, path, status)
    return True


def _graphql_data(
    payload: object, operation_name: str, variables: dict[str, typ.Any]
) -> dict[str, typ.Any] | None:
    """Return the ``data`` object of a GraphQL payload, or None when unusable."""
    if not isinstance(payload, dict):
        log_error(logger, "GraphQL %s: response is not an object", operation_name)
        return None

    errors = payload.get("errors")
    data = payload.get("data")
    if errors:
        log_error(logger, "GraphQL %s errors: %s", operation_name, errors)
    elif not isinstance(data, dict):
        log_error(logger, "GraphQL %s: missing data in the response", operation_name)
    else:
        return data

    log_info(
        logger,
        "The failing query was %s with variables %s",
        operation_name,
        msgspec.json.encode(variables).decode("utf-8"),
    )
    return None
