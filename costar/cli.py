"""Command-line entry point for one-off related-repository crawls.

Usage
-----
::

    costar related --repo octo/reef --max-stars-per-user 200 --output-dir out

The command needs ``COSTAR_GITHUB_TOKEN`` (or ``GITHUB_PA_TOKEN``) and a
reachable Valkey at ``COSTAR_VALKEY_URL``. It writes the related and
statistics CSV files into ``--output-dir`` and exits non-zero when the crawl
cannot start or aborts for lack of signal.
"""

from __future__ import annotations

import asyncio
import sys
import time
import typing as typ
from pathlib import Path

from cyclopts import App, Parameter

from costar.analysis.config import AnalysisConfig
from costar.analysis.errors import CrawlAbortedError
from costar.analysis.export import CsvResultSink
from costar.analysis.observability import CrawlEventLogger
from costar.analysis.pipeline import CrawlPipeline, CrawlResult
from costar.cache.store import CacheConfig, ResultCache
from costar.common.slug import parse_repo_slug
from costar.github.client import GitHubClientConfig, RateLimitedClient
from costar.github.errors import GitHubConfigError
from costar.jobs.models import DEFAULT_MAX_STARS_PER_USER
from costar.logging import (
    configure_logging,
    get_logger,
    log_error,
    log_info,
    verbosity_level,
)

logger = get_logger(__name__)

app = App(
    name="costar",
    help="Find repositories whose stargazers overlap with a seed repository.",
    version="0.1.0",
)


async def _crawl(
    repo: str, *, max_stars_per_user: int, output_dir: Path
) -> CrawlResult:
    # Settings are read before anything that needs closing is opened.
    client_config = GitHubClientConfig.from_env()
    cache_config = CacheConfig.from_env()
    analysis_config = AnalysisConfig.from_env()

    cache = ResultCache.from_config(cache_config)
    client = RateLimitedClient(client_config)
    try:
        pipeline = CrawlPipeline(
            client,
            cache,
            config=analysis_config,
            sink=CsvResultSink(output_dir),
            event_logger=CrawlEventLogger(),
        )
        return await pipeline.run(repo, max_stars_per_user=max_stars_per_user)
    finally:
        await client.aclose()
        await cache.aclose()


@app.command
def related(
    *,
    repo: typ.Annotated[str, Parameter(env_var="COSTAR_REPO")],
    max_stars_per_user: typ.Annotated[
        int, Parameter(env_var="COSTAR_MAX_STARS_PER_USER")
    ] = DEFAULT_MAX_STARS_PER_USER,
    output_dir: typ.Annotated[
        Path, Parameter(env_var="COSTAR_OUTPUT_DIR")
    ] = Path(),
    verbose: bool = False,
) -> int:
    """Crawl the repositories related to a seed repository.

    Parameters
    ----------
    repo
        Seed repository as ``owner/name``.
    max_stars_per_user
        Stargazers who starred more repositories than this are ignored.
    output_dir
        Directory that receives the CSV tables.
    verbose
        Log per-request detail.

    Returns
    -------
    int
        Exit code (0 for success, 1 when the crawl could not complete).

    """
    configure_logging(verbosity_level(verbose=verbose), force=True)
    try:
        parse_repo_slug(repo)
    except ValueError as exc:
        log_error(logger, "Invalid --repo value: %s", exc)
        return 1
    if max_stars_per_user <= 0:
        log_error(
            logger,
            "--max-stars-per-user must be positive, got %d",
            max_stars_per_user,
        )
        return 1

    started = time.monotonic()
    try:
        result = asyncio.run(
            _crawl(repo, max_stars_per_user=max_stars_per_user, output_dir=output_dir)
        )
    except GitHubConfigError as exc:
        log_error(logger, "Cannot start the crawl: %s", exc)
        return 1
    except CrawlAbortedError as exc:
        log_error(logger, "Crawl of %s aborted: %s", repo, exc)
        return 1
    except ValueError as exc:
        log_error(logger, "Invalid configuration: %s", exc)
        return 1

    log_info(
        logger,
        "Done with %s: %d related, %d relevant, %d with statistics in %.1f s",
        repo,
        len(result.related),
        len(result.relevant),
        len(result.with_statistics),
        time.monotonic() - started,
    )
    for path in (result.related_file, result.statistics_file):
        if path is not None:
            log_info(logger, "Wrote %s", path)
    return 0


def main() -> int:
    """Entry point for the CLI."""
    return app()


if __name__ == "__main__":
    sys.exit(main())
