"""Unit tests for the rate-limited GitHub client."""

from __future__ import annotations

import json
import secrets
import typing as typ

import httpx
import pytest

from costar.github.client import GitHubClientConfig, RateLimitedClient
from costar.github.errors import GitHubConfigError

_TOKEN = secrets.token_hex(8)
_NOW = 1_700_000_000
_HTTP_SERVER_ERROR = 502


def _quota(remaining: int = 500, reset_in: int = 990) -> dict[str, str]:
    return {
        "x-ratelimit-limit": "5000",
        "x-ratelimit-remaining": str(remaining),
        "x-ratelimit-reset": str(_NOW + reset_in),
    }


class _Harness:
    """Client wired to a scripted transport and a recording sleep."""

    def __init__(self, responses: list[httpx.Response]) -> None:
        self.requests: list[httpx.Request] = []
        self.sleeps: list[float] = []
        self._responses = responses

        def handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return self._responses[len(self.requests) - 1]

        async def sleep(seconds: float) -> None:
            self.sleeps.append(seconds)

        self.http = httpx.AsyncClient(
            transport=httpx.MockTransport(handler),
            base_url="https://example.test",
        )
        self.client = RateLimitedClient(
            GitHubClientConfig(token=_TOKEN, base_url="https://example.test"),
            http_client=self.http,
            sleep=sleep,
            clock=lambda: float(_NOW),
        )

    def body(self, index: int = 0) -> dict[str, typ.Any]:
        return json.loads(self.requests[index].content.decode("utf-8"))


def _stars_count_response(count: int) -> httpx.Response:
    return httpx.Response(
        200,
        json={"data": {"repository": {"stargazerCount": count}}},
        headers=_quota(),
    )


@pytest.mark.asyncio
async def test_graphql_posts_named_operation() -> None:
    """Typed helpers send the query, its operation name and the variables."""
    harness = _Harness([_stars_count_response(1234)])

    result = await harness.client.repo_stars_count("octo", "reef")

    assert result is not None
    assert result.repository is not None
    assert result.repository.stargazer_count == 1234
    request = harness.requests[0]
    assert request.url.path == "/graphql"
    assert request.method == "POST"
    body = harness.body()
    assert body["operationName"] == "RepoStarsCount"
    assert body["variables"] == {"owner": "octo", "name": "reef"}
    assert "stargazerCount" in body["query"]
    await harness.http.aclose()


@pytest.mark.asyncio
async def test_client_sleeps_for_planned_interval() -> None:
    """The quota headers translate into an awaited pause after each call."""
    harness = _Harness([_stars_count_response(1)])

    await harness.client.repo_stars_count("octo", "reef")

    assert len(harness.sleeps) == 1
    # 1000 s for 500 calls at aggressiveness 2, minus the call duration
    assert 0 < harness.sleeps[0] <= 1.0
    await harness.http.aclose()


@pytest.mark.asyncio
async def test_missing_quota_headers_skip_pacing() -> None:
    """Without quota headers the client does not sleep."""
    harness = _Harness(
        [httpx.Response(200, json={"data": {"repository": None}})]
    )

    result = await harness.client.repo_stars_count("octo", "gone")

    assert result is not None
    assert result.repository is None
    assert harness.sleeps == []
    await harness.http.aclose()


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [401, 404, 451, _HTTP_SERVER_ERROR])
async def test_error_statuses_become_none(status: int) -> None:
    """Error statuses are logged and reported as an empty result."""
    harness = _Harness(
        [httpx.Response(status, json={"message": "nope"}, headers=_quota())]
    )

    assert await harness.client.repo_stars_count("octo", "reef") is None
    await harness.http.aclose()


@pytest.mark.asyncio
async def test_graphql_errors_become_none() -> None:
    """A payload carrying ``errors`` is not converted."""
    payload = {"data": None, "errors": [{"message": "Something went wrong"}]}
    harness = _Harness([httpx.Response(200, json=payload, headers=_quota())])

    assert await harness.client.user_list_starred_repos(["U1"]) is None
    await harness.http.aclose()


@pytest.mark.asyncio
async def test_malformed_data_becomes_none() -> None:
    """Data that does not match the response shape is rejected."""
    payload = {"data": {"repository": {"stargazerCount": "many"}}}
    harness = _Harness([httpx.Response(200, json=payload, headers=_quota())])

    assert await harness.client.repo_stars_count("octo", "reef") is None
    await harness.http.aclose()


@pytest.mark.asyncio
async def test_transport_errors_become_none() -> None:
    """Network failures are soft failures too."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    http = httpx.AsyncClient(
        transport=httpx.MockTransport(handler), base_url="https://example.test"
    )
    client = RateLimitedClient(GitHubClientConfig(token=_TOKEN), http_client=http)

    assert await client.repo_list_details(["R1"]) is None
    await http.aclose()


@pytest.mark.asyncio
async def test_rest_get_sends_preview_accept_header() -> None:
    """REST reads may override the Accept header."""
    harness = _Harness(
        [httpx.Response(200, json=[{"starred_at": "x"}], headers=_quota())]
    )

    result = await harness.client.rest_get(
        "/repos/octo/reef/stargazers", accept="application/vnd.github.v3.star+json"
    )

    assert result == [{"starred_at": "x"}]
    assert harness.requests[0].headers["accept"] == (
        "application/vnd.github.v3.star+json"
    )
    await harness.http.aclose()


@pytest.mark.asyncio
async def test_user_starred_repos_parses_connection() -> None:
    """Starred repository pages convert into typed edges."""
    payload = {
        "data": {
            "user": {
                "starredRepositories": {
                    "totalCount": 1,
                    "pageInfo": {"hasNextPage": False, "endCursor": "c1"},
                    "edges": [
                        {
                            "starredAt": "2024-01-01T00:00:00Z",
                            "node": {
                                "id": "R1",
                                "nameWithOwner": "octo/kelp",
                                "isArchived": False,
                                "isFork": False,
                                "createdAt": "2020-01-01T00:00:00Z",
                                "pushedAt": None,
                                "stargazerCount": 7,
                            },
                        },
                        None,
                    ],
                }
            }
        }
    }
    harness = _Harness([httpx.Response(200, json=payload, headers=_quota())])

    result = await harness.client.user_starred_repos("mika", "c0")

    assert result is not None
    assert result.user is not None
    connection = result.user.starred_repositories
    assert connection.total_count == 1
    assert connection.edges[0] is not None
    assert connection.edges[0].node is not None
    assert connection.edges[0].node.name_with_owner == "octo/kelp"
    assert connection.edges[1] is None
    assert harness.body()["variables"] == {"login": "mika", "after": "c0"}
    await harness.http.aclose()


def test_config_from_env_prefers_costar_token(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """COSTAR_GITHUB_TOKEN wins over the legacy variable."""
    monkeypatch.setenv("COSTAR_GITHUB_TOKEN", "new")
    monkeypatch.setenv("GITHUB_PA_TOKEN", "old")
    monkeypatch.delenv("COSTAR_RATE_AGGRESSIVENESS", raising=False)

    config = GitHubClientConfig.from_env()

    assert config.token == "new"
    assert config.aggressiveness == 2.0


def test_config_from_env_accepts_legacy_token(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """GITHUB_PA_TOKEN is still honoured."""
    monkeypatch.delenv("COSTAR_GITHUB_TOKEN", raising=False)
    monkeypatch.setenv("GITHUB_PA_TOKEN", "old")
    monkeypatch.setenv("COSTAR_RATE_AGGRESSIVENESS", "4")

    config = GitHubClientConfig.from_env()

    assert config.token == "old"
    assert config.aggressiveness == 4.0


def test_config_from_env_requires_token(monkeypatch: pytest.MonkeyPatch) -> None:
    """A missing token is a configuration error."""
    monkeypatch.delenv("COSTAR_GITHUB_TOKEN", raising=False)
    monkeypatch.delenv("GITHUB_PA_TOKEN", raising=False)

    with pytest.raises(GitHubConfigError, match="COSTAR_GITHUB_TOKEN"):
        GitHubClientConfig.from_env()


@pytest.mark.parametrize("raw", ["fast", "0", "-1"])
def test_config_from_env_rejects_bad_aggressiveness(
    monkeypatch: pytest.MonkeyPatch, raw: str
) -> None:
    """The pacing divisor must be a positive number."""
    monkeypatch.setenv("COSTAR_GITHUB_TOKEN", "token")
    monkeypatch.setenv("COSTAR_RATE_AGGRESSIVENESS", raw)

    with pytest.raises(ValueError, match="COSTAR_RATE_AGGRESSIVENESS"):
        GitHubClientConfig.from_env()


def test_blank_token_is_rejected() -> None:
    """The client refuses to start without a usable credential."""
    with pytest.raises(GitHubConfigError, match="non-empty"):
        RateLimitedClient(GitHubClientConfig(token="  "))
