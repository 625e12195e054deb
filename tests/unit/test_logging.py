"""Unit tests for the femtologging helpers."""

from __future__ import annotations

import pytest

from costar.logging import (
    configure_logging,
    format_log_message,
    log_debug,
    log_error,
    log_exception,
    log_info,
    log_warning,
    normalize_log_level,
    verbosity_level,
)


class _FakeLogger:
    """Collects log calls for assertions."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, object | None, bool]] = []

    def log(
        self,
        level: str,
        message: str,
        /,
        *,
        exc_info: object | None = None,
        stack_info: bool = False,
    ) -> str:
        self.calls.append((level, message, exc_info, stack_info))
        return message


@pytest.mark.parametrize(
    ("raw", "expected", "invalid"),
    [
        ("debug", "DEBUG", False),
        (" Warn ", "WARN", False),
        ("CRITICAL", "CRITICAL", False),
        (None, "INFO", True),
        ("", "INFO", True),
        ("chatty", "INFO", True),
    ],
)
def test_normalize_log_level(raw: str | None, expected: str, *, invalid: bool) -> None:
    """Known levels are upper-cased; anything else falls back to INFO."""
    assert normalize_log_level(raw) == (expected, invalid)


@pytest.mark.parametrize(("verbose", "expected"), [(True, "DEBUG"), (False, "INFO")])
def test_verbosity_level_maps_cli_flag(*, verbose: bool, expected: str) -> None:
    """The CLI verbose flag selects DEBUG, otherwise INFO."""
    assert verbosity_level(verbose=verbose) == expected


def test_format_log_message_interpolates_arguments() -> None:
    """Percent placeholders are filled in order."""
    message = format_log_message("%d users starred %s", 42, "octo/reef")
    assert message == "42 users starred octo/reef"


def test_level_helpers_emit_formatted_messages() -> None:
    """Each helper forwards its level and the formatted message."""
    logger = _FakeLogger()
    exc = RuntimeError("quota")

    log_debug(logger, "page %d", 3)
    log_info(logger, "batch %s", "1/4")
    log_warning(logger, "skipping %s", "ghost", exc_info=exc)
    log_error(logger, "%d: %s", 502, "/graphql")

    assert logger.calls == [
        ("DEBUG", "page 3", None, False),
        ("INFO", "batch 1/4", None, False),
        ("WARNING", "skipping ghost", exc, False),
        ("ERROR", "502: /graphql", None, False),
    ]


def test_log_exception_attaches_exception() -> None:
    """log_exception logs at ERROR with the exception as exc_info."""
    logger = _FakeLogger()
    exc = ValueError("boom")

    log_exception(logger, "crawl failed", exc)

    assert logger.calls == [("ERROR", "crawl failed", exc, False)]


@pytest.mark.parametrize("force", [True, False])
def test_configure_logging_passes_normalized_level(
    monkeypatch: pytest.MonkeyPatch, *, force: bool
) -> None:
    """configure_logging hands the normalized level to basicConfig."""
    captured: dict[str, object] = {}

    def fake_basic_config(**kwargs: object) -> None:
        captured.update(kwargs)

    monkeypatch.setattr("costar.logging.basicConfig", fake_basic_config)

    normalized, invalid = configure_logging("nope", force=force)

    assert (normalized, invalid) == ("INFO", True)
    assert captured == {"level": "INFO", "force": force}
