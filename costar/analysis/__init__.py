"""Co-star analysis: crawl, score, filter, enrich and measure candidates."""

from __future__ import annotations

from .config import AnalysisConfig, StatWindow
from .errors import CrawlAbortedError
from .export import CsvResultSink, ResultSink, RunLabel
from .models import RepoCandidate, StarringEvent, TimeSeriesPoint
from .observability import CrawlEventLogger, ErrorCategory, categorize_error
from .pipeline import CrawlPipeline, CrawlResult
from .progress import CrawlPhase, CrawlProgress, ProgressReporter

__all__ = [
    "AnalysisConfig",
    "CrawlAbortedError",
    "CrawlEventLogger",
    "CrawlPhase",
    "CrawlPipeline",
    "CrawlProgress",
    "CrawlResult",
    "CsvResultSink",
    "ErrorCategory",
    "ProgressReporter",
    "RepoCandidate",
    "ResultSink",
    "RunLabel",
    "StarringEvent",
    "StatWindow",
    "TimeSeriesPoint",
    "categorize_error",
]
