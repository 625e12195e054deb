"""Build the full application dependency graph from the environment.

One GitHub client, one cache connection, one pipeline and one scheduler are
shared by the whole process; they are built here, wired together, and handed
to :func:`costar.api.app.create_app` together with their shutdown hooks.

Usage
-----
::

    from costar.api.factory import build_app_dependencies

    app = create_app(build_app_dependencies())

"""

from __future__ import annotations

import os
from pathlib import Path

from costar.analysis.config import AnalysisConfig
from costar.analysis.export import CsvResultSink, ResultSink
from costar.analysis.observability import CrawlEventLogger
from costar.analysis.pipeline import CrawlPipeline
from costar.api.app import AppDependencies
from costar.api.channel import ChannelHub
from costar.cache.store import CacheConfig, ResultCache
from costar.github.client import GitHubClientConfig, RateLimitedClient
from costar.jobs.scheduler import JobScheduler, SchedulerConfig

__all__ = ["build_app_dependencies", "output_sink_from_env"]


def output_sink_from_env() -> ResultSink | None:
    """Return a CSV sink under ``COSTAR_OUTPUT_DIR``, or None when unset."""
    raw = os.environ.get("COSTAR_OUTPUT_DIR", "")
    if not raw.strip():
        return None
    return CsvResultSink(Path(raw.strip()))


def build_app_dependencies() -> AppDependencies:
    """Build the scheduler, channel hub and shutdown hooks.

    Raises
    ------
    GitHubConfigError
        If no GitHub token is configured.
    ValueError
        If a numeric override in the environment is invalid.

    """
    client = RateLimitedClient(GitHubClientConfig.from_env())
    cache = ResultCache.from_config(CacheConfig.from_env())
    pipeline = CrawlPipeline(
        client,
        cache,
        config=AnalysisConfig.from_env(),
        sink=output_sink_from_env(),
        event_logger=CrawlEventLogger(),
    )
    hub = ChannelHub()
    scheduler = JobScheduler(pipeline, hub, config=SchedulerConfig.from_env())
    return AppDependencies(
        scheduler=scheduler,
        hub=hub,
        closers=(scheduler.aclose, client.aclose, cache.aclose),
    )
