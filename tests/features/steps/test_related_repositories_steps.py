"""Behavioural coverage for the related-repository crawl."""

from __future__ import annotations

import asyncio
import typing as typ

import pytest
from pytest_bdd import given, parsers, scenario, then, when

from costar.analysis.errors import CrawlAbortedError
from costar.analysis.pipeline import CrawlPipeline, CrawlResult
from costar.cache.store import ResultCache
from tests.helpers.fakes import NOW, FakeGitHub, FakeValkey, daily_stargazers
from tests.helpers.scenarios import SEED, related_graph


class CrawlContext(typ.TypedDict, total=False):
    """Shared mutable scenario state."""

    github: FakeGitHub
    backend: FakeValkey
    seed: str
    result: CrawlResult
    error: CrawlAbortedError


@scenario("../related_repositories.feature", "Ranking co-starred repositories")
def test_ranking_co_starred_repositories() -> None:
    """Wrap the pytest-bdd scenario for a full crawl."""


@scenario(
    "../related_repositories.feature",
    "Raising the per-user cap widens the audience",
)
def test_raising_the_cap() -> None:
    """Wrap the pytest-bdd scenario for the per-user cap override."""


@scenario(
    "../related_repositories.feature",
    "A repeated crawl is answered from the cache",
)
def test_repeated_crawl_uses_cache() -> None:
    """Wrap the pytest-bdd scenario for cached crawls."""


@scenario("../related_repositories.feature", "A seed with too few stargazers aborts")
def test_small_seed_aborts() -> None:
    """Wrap the pytest-bdd scenario for an unusable seed."""


@pytest.fixture
def crawl_context() -> CrawlContext:
    """Start each scenario with an empty cache."""
    return {"backend": FakeValkey()}


def _crawl(context: CrawlContext, max_stars_per_user: int | None = None) -> None:
    pipeline = CrawlPipeline(
        context["github"],  # type: ignore[arg-type]
        ResultCache(context["backend"]),
        clock=lambda: NOW,
    )
    try:
        context["result"] = asyncio.run(
            pipeline.run(context["seed"], max_stars_per_user=max_stars_per_user)
        )
    except CrawlAbortedError as exc:
        context["error"] = exc


def _names(text: str) -> list[str]:
    return [name.strip() for name in text.split(",")]


@given("a seed repository whose twelve stargazers star a small graph")
def given_related_graph(crawl_context: CrawlContext) -> None:
    """Serve the shared twelve-user graph."""
    crawl_context["github"] = related_graph()
    crawl_context["seed"] = SEED


@given(parsers.parse("a seed repository with {count:d} stargazers"))
def given_small_seed(crawl_context: CrawlContext, count: int) -> None:
    """Serve a seed with only ``count`` stargazers."""
    github = FakeGitHub()
    github.add_history("octo/tiny", daily_stargazers("U", count))
    crawl_context["github"] = github
    crawl_context["seed"] = "octo/tiny"


@given("the crawl has already run once")
def given_crawl_ran(crawl_context: CrawlContext) -> None:
    """Warm the cache, then forget the requests that did it."""
    _crawl(crawl_context)
    crawl_context["github"].calls.clear()


@when("I crawl the related repositories")
def when_crawl(crawl_context: CrawlContext) -> None:
    """Run the pipeline with the default per-user cap."""
    _crawl(crawl_context)


@when(
    parsers.parse("I crawl the related repositories allowing {cap:d} stars per user")
)
def when_crawl_with_cap(crawl_context: CrawlContext, cap: int) -> None:
    """Run the pipeline with an explicit per-user cap."""
    _crawl(crawl_context, max_stars_per_user=cap)


@then(parsers.parse('the related repositories are ranked "{names}"'))
def then_related_ranked(crawl_context: CrawlContext, names: str) -> None:
    """Assert the full ranking, most relevant first."""
    related = [repo.full_name for repo in crawl_context["result"].related]
    assert related == _names(names), f"unexpected ranking {related}"


@then(parsers.parse('the relevant repositories are "{names}"'))
def then_relevant(crawl_context: CrawlContext, names: str) -> None:
    """Assert which repositories survived filtering."""
    relevant = [repo.full_name for repo in crawl_context["result"].relevant]
    assert relevant == _names(names), f"unexpected survivors {relevant}"


@then(parsers.parse('star statistics are computed for "{names}"'))
def then_statistics(crawl_context: CrawlContext, names: str) -> None:
    """Assert which repositories have a long enough star history."""
    measured = [repo.full_name for repo in crawl_context["result"].with_statistics]
    assert measured == _names(names), f"unexpected statistics {measured}"


@then(
    parsers.parse(
        "{count:d} stargazers are excluded for starring too many repositories"
    )
)
def then_excluded(crawl_context: CrawlContext, count: int) -> None:
    """Assert how many heavy starrers were dropped."""
    audience = crawl_context["result"].audience
    assert audience.users_exceeding_max == count, (
        f"expected {count} excluded, got {audience.users_exceeding_max}"
    )


@then(parsers.parse('"{name}" is starred by {count:d} stargazers'))
def then_starred_by(crawl_context: CrawlContext, name: str, count: int) -> None:
    """Assert one repository's co-star count."""
    repo = next(r for r in crawl_context["result"].related if r.full_name == name)
    assert repo.users_stars == count, f"expected {count}, got {repo.users_stars}"


@then("no GitHub requests are made")
def then_no_requests(crawl_context: CrawlContext) -> None:
    """Assert the cache answered everything."""
    assert crawl_context["github"].calls == [], "crawl should hit the cache only"
    assert "result" in crawl_context, "crawl should still complete"


@then(parsers.parse('the crawl aborts during "{phase}"'))
def then_aborts(crawl_context: CrawlContext, phase: str) -> None:
    """Assert the crawl gave up in the named phase."""
    assert "error" in crawl_context, "crawl should have aborted"
    assert crawl_context["error"].phase == phase, "aborted in the wrong phase"
