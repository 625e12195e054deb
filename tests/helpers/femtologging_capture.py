"""Collect femtologging records emitted under one logger name.

femtologging dispatches to handlers from a worker thread, so tests call
``wait_for_count`` before inspecting ``records``.
"""

from __future__ import annotations

import contextlib
import dataclasses
import threading
import typing as typ

from femtologging import get_logger


@dataclasses.dataclass(slots=True, frozen=True)
class FemtoLogRecord:
    """A record as seen by the capture handler."""

    logger: str
    level: str
    message: str
    exc_info: object | None = None


@dataclasses.dataclass(slots=True)
class FemtoLogCapture:
    """femtologging handler appending every record it receives."""

    records: list[FemtoLogRecord] = dataclasses.field(default_factory=list)
    _arrived: threading.Condition = dataclasses.field(
        default_factory=threading.Condition
    )

    def handle(self, logger: str, level: str, message: str) -> None:
        """Accept a record without exception details."""
        self._push(FemtoLogRecord(str(logger), str(level), message))

    def handle_record(self, record: dict[str, object]) -> None:
        """Accept a structured record, keeping ``exc_info`` when present."""
        self._push(
            FemtoLogRecord(
                str(record.get("logger", "")),
                str(record.get("level", "")),
                str(record.get("message", "")),
                record.get("exc_info"),
            )
        )

    def _push(self, record: FemtoLogRecord) -> None:
        with self._arrived:
            self.records.append(record)
            self._arrived.notify_all()

    def wait_for_count(self, count: int, timeout: float = 1.0) -> None:
        """Fail unless ``count`` records arrive within ``timeout`` seconds."""
        with self._arrived:
            arrived = self._arrived.wait_for(
                lambda: len(self.records) >= count, timeout=timeout
            )
        assert arrived, f"expected {count} log records, saw {len(self.records)}"


@contextlib.contextmanager
def capture_femto_logs(
    logger_name: str, *, level: str = "TRACE"
) -> typ.Iterator[FemtoLogCapture]:
    """Attach a capture to ``logger_name`` and detach it on exit."""
    logger = get_logger(logger_name)
    saved = (logger.level, logger.propagate)
    capture = FemtoLogCapture()
    logger.set_level(level)
    logger.set_propagate(False)
    logger.add_handler(capture)
    try:
        yield capture
    finally:
        logger.remove_handler(capture)
        logger.set_level(saved[0])
        logger.set_propagate(saved[1])
