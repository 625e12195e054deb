"""Structured run events for crawl observability.

Every run emits one ``started`` line and exactly one terminal line
(``completed``, ``aborted`` or ``failed``), with key=value fields that log
aggregators can parse.
"""

from __future__ import annotations

import dataclasses
import enum
import typing as typ

import httpx
from valkey.exceptions import ConnectionError as ValkeyConnectionError
from valkey.exceptions import TimeoutError as ValkeyTimeoutError
from valkey.exceptions import ValkeyError

from costar.github.errors import GitHubConfigError, GitHubResponseShapeError
from costar.logging import get_logger, log_error, log_info, log_warning

from .errors import CrawlAbortedError

if typ.TYPE_CHECKING:
    import datetime as dt

    from .progress import CrawlPhase

logger = get_logger(__name__)


class CrawlEventType(enum.StrEnum):
    """Structured log event types for crawl observability."""

    RUN_STARTED = "crawl.run.started"
    RUN_COMPLETED = "crawl.run.completed"
    RUN_ABORTED = "crawl.run.aborted"
    RUN_FAILED = "crawl.run.failed"
    STAGE_COMPLETED = "crawl.stage.completed"


class ErrorCategory(enum.StrEnum):
    """Categories for terminal run failures."""

    INSUFFICIENT_SIGNAL = "insufficient_signal"
    TRANSIENT = "transient"
    SCHEMA_DRIFT = "schema_drift"
    CONFIGURATION = "configuration"
    CACHE_CONNECTIVITY = "cache_connectivity"
    CACHE_ERROR = "cache_error"
    UNKNOWN = "unknown"


@dataclasses.dataclass(frozen=True, slots=True)
class CrawlRunContext:
    """Shared context for a single crawl."""

    seed: str
    max_stars_per_user: int
    started_at: dt.datetime


_EXCEPTION_CATEGORY_MAP: tuple[tuple[type[BaseException], ErrorCategory], ...] = (
    (CrawlAbortedError, ErrorCategory.INSUFFICIENT_SIGNAL),
    (GitHubResponseShapeError, ErrorCategory.SCHEMA_DRIFT),
    (GitHubConfigError, ErrorCategory.CONFIGURATION),
    (httpx.TransportError, ErrorCategory.TRANSIENT),
    (ValkeyConnectionError, ErrorCategory.CACHE_CONNECTIVITY),
    (ValkeyTimeoutError, ErrorCategory.CACHE_CONNECTIVITY),
    (ValkeyError, ErrorCategory.CACHE_ERROR),
)


def categorize_error(exc: BaseException) -> ErrorCategory:
    """Categorize an exception for alerting purposes."""
    for exc_type, category in _EXCEPTION_CATEGORY_MAP:
        if isinstance(exc, exc_type):
            return category
    return ErrorCategory.UNKNOWN


class CrawlEventLogger:
    """Emit structured crawl events through femtologging."""

    def log_run_started(self, context: CrawlRunContext) -> None:
        """Log crawl start."""
        log_info(
            logger,
            "[%s] seed=%s max_stars_per_user=%d started_at=%s",
            CrawlEventType.RUN_STARTED,
            context.seed,
            context.max_stars_per_user,
            context.started_at.isoformat(),
        )

    def log_stage_completed(
        self,
        context: CrawlRunContext,
        phase: CrawlPhase,
        items: int,
    ) -> None:
        """Log the number of items a stage produced."""
        log_info(
            logger,
            "[%s] seed=%s stage=%s items=%d",
            CrawlEventType.STAGE_COMPLETED,
            context.seed,
            phase,
            items,
        )

    def log_run_completed(
        self,
        context: CrawlRunContext,
        *,
        related: int,
        relevant: int,
        with_statistics: int,
        duration: dt.timedelta,
    ) -> None:
        """Log successful crawl completion with counts."""
        log_info(
            logger,
            "[%s] seed=%s duration_seconds=%.3f related=%d relevant=%d "
            "with_statistics=%d",
            CrawlEventType.RUN_COMPLETED,
            context.seed,
            duration.total_seconds(),
            related,
            relevant,
            with_statistics,
        )

    def log_run_aborted(
        self,
        context: CrawlRunContext,
        error: CrawlAbortedError,
        duration: dt.timedelta,
    ) -> None:
        """Log a run that stopped for lack of signal."""
        log_warning(
            logger,
            "[%s] seed=%s duration_seconds=%.3f stage=%s reason=%s",
            CrawlEventType.RUN_ABORTED,
            context.seed,
            duration.total_seconds(),
            error.phase,
            str(error),
        )

    def log_run_failed(
        self,
        context: CrawlRunContext,
        error: BaseException,
        duration: dt.timedelta,
    ) -> None:
        """Log a failed run with error categorization."""
        log_error(
            logger,
            "[%s] seed=%s duration_seconds=%.3f error_type=%s "
            "error_category=%s error_message=%s",
            CrawlEventType.RUN_FAILED,
            context.seed,
            duration.total_seconds(),
            type(error).__name__,
            categorize_error(error),
            str(error),
            exc_info=error,
        )
