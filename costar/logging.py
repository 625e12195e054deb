"""femtologging helpers shared by every costar module.

Messages are formatted here, percent-style, before they reach femtologging,
so call sites read like the standard library's ``logger.info(fmt, *args)``.
The crawler is chatty by nature (one line per batch, page and repository):
DEBUG carries per-request detail and INFO the operator-facing narrative.

Example:
>>> from costar.logging import get_logger, log_info
>>> logger = get_logger(__name__)
>>> log_info(logger, "Resolving %d stargazers of %s", 120, "octo/reef")

"""

from __future__ import annotations

import enum
import typing as typ

from femtologging import basicConfig, get_logger

__all__ = [
    "LogLevel",
    "configure_logging",
    "format_log_message",
    "get_logger",
    "log_debug",
    "log_error",
    "log_exception",
    "log_info",
    "log_warning",
    "normalize_log_level",
    "verbosity_level",
]

_FALLBACK_LEVEL = "INFO"


class LogLevel(enum.StrEnum):
    """Level names femtologging accepts."""

    TRACE = "TRACE"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class _SupportsLog(typ.Protocol):
    """The slice of the femtologging logger API the helpers need."""

    def log(
        self,
        level: str,
        message: str,
        /,
        *,
        exc_info: object | None = None,
        stack_info: bool = False,
    ) -> str | None: ...


def normalize_log_level(level: str | None) -> tuple[str, bool]:
    """Return ``(level, invalid)`` with unknown or empty input mapped to INFO.

    Examples
    --------
    >>> normalize_log_level(" debug ")
    ('DEBUG', False)
    >>> normalize_log_level("chatty")
    ('INFO', True)

    """
    candidate = (level or "").strip().upper()
    if candidate in LogLevel.__members__:
        return (candidate, False)
    return (_FALLBACK_LEVEL, True)


def configure_logging(level: str, *, force: bool = False) -> tuple[str, bool]:
    """Install the root femtologging handler at ``level``.

    Parameters
    ----------
    level : str
        Raw level name, typically from ``COSTAR_LOG_LEVEL``.
    force : bool, optional
        Replace an existing handler configuration.

    Returns
    -------
    tuple[str, bool]
        The level actually applied, and whether ``level`` had to be replaced.
        Callers warn about the latter once logging works.

    """
    normalized, invalid = normalize_log_level(level)
    basicConfig(level=normalized, force=force)
    return (normalized, invalid)


def verbosity_level(*, verbose: bool) -> str:
    """Map the CLI ``--verbose`` flag onto a level name."""
    return LogLevel.DEBUG.value if verbose else LogLevel.INFO.value


def format_log_message(template: str, *args: object) -> str:
    """Interpolate ``args`` into a percent-style ``template``."""
    return template % args if args else template


def _emit(
    logger: _SupportsLog,
    level: LogLevel,
    message: str,
    exc_info: object | None = None,
) -> None:
    logger.log(level.value, message, exc_info=exc_info, stack_info=False)


def log_debug(logger: _SupportsLog, template: str, *args: object) -> None:
    """Log at DEBUG."""
    _emit(logger, LogLevel.DEBUG, format_log_message(template, *args))


def log_info(
    logger: _SupportsLog,
    template: str,
    *args: object,
    exc_info: object | None = None,
) -> None:
    """Log at INFO."""
    _emit(logger, LogLevel.INFO, format_log_message(template, *args), exc_info)


def log_warning(
    logger: _SupportsLog,
    template: str,
    *args: object,
    exc_info: object | None = None,
) -> None:
    """Log at WARNING, optionally with the exception that caused it."""
    _emit(logger, LogLevel.WARNING, format_log_message(template, *args), exc_info)


def log_error(
    logger: _SupportsLog,
    template: str,
    *args: object,
    exc_info: object | None = None,
) -> None:
    """Log at ERROR, optionally with the exception that caused it."""
    _emit(logger, LogLevel.ERROR, format_log_message(template, *args), exc_info)


def log_exception(logger: _SupportsLog, message: str, exc: BaseException) -> None:
    """Log a pre-formatted ``message`` at ERROR with ``exc`` as exc_info."""
    _emit(logger, LogLevel.ERROR, message, exc)
