r"""Result sinks for crawl output.

A run produces up to two tables, both keyed by seed and ``maxStarsPerUser``::

    {base_path}/out-{owner}_{name}-{maxStars}-related.csv
    {base_path}/out-{owner}_{name}-{maxStars}-stats.csv

The first is the unfiltered co-star ranking, written as soon as accumulation
finishes; the second holds the enriched candidates that received star-history
statistics. A file already written stays on disk when a later stage aborts.
"""

from __future__ import annotations

import asyncio
import csv
import dataclasses as dc
import typing as typ

import msgspec

from costar.common.slug import file_safe_slug

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    from pathlib import Path

    from .models import RepoCandidate

STATISTICS_DROPPED_COLUMNS: frozenset[str] = frozenset({"id", "isArchived"})
_NESTED_COLUMNS = ("slopes", "monthly")


@dc.dataclass(frozen=True, slots=True)
class RunLabel:
    """Identifies the outputs of one crawl."""

    seed: str
    max_stars_per_user: int

    @property
    def file_stem(self) -> str:
        """Return the shared file-name prefix of this run's outputs."""
        return f"out-{file_safe_slug(self.seed)}-{self.max_stars_per_user}"


@typ.runtime_checkable
class ResultSink(typ.Protocol):
    """Persists crawl tables; returns where each one went."""

    async def write_related(
        self, run: RunLabel, candidates: cabc.Sequence[RepoCandidate]
    ) -> str | None:
        """Write the unfiltered ranking."""
        ...

    async def write_statistics(
        self, run: RunLabel, candidates: cabc.Sequence[RepoCandidate]
    ) -> str | None:
        """Write the candidates that carry statistics."""
        ...


def candidate_row(
    candidate: RepoCandidate,
    *,
    drop: cabc.Container[str] = frozenset(),
) -> dict[str, object]:
    """Flatten a candidate into one CSV row with camelCase columns.

    Slope windows and monthly samples become top-level columns after the
    scalar fields; topics are joined with ``", "``.
    """
    data = msgspec.to_builtins(candidate)
    row: dict[str, object] = {
        key: value
        for key, value in data.items()
        if key not in _NESTED_COLUMNS and key not in drop
    }
    row["topics"] = ", ".join(candidate.topics)
    row.update(candidate.slopes)
    row.update(candidate.monthly)
    return row


def _fieldnames(rows: cabc.Sequence[dict[str, object]]) -> list[str]:
    names: dict[str, None] = {}
    for row in rows:
        names.update(dict.fromkeys(row))
    return list(names)


def _write_csv(path: Path, rows: cabc.Sequence[dict[str, object]]) -> None:
    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.DictWriter(handle, fieldnames=_fieldnames(rows))
        writer.writeheader()
        writer.writerows(rows)


class CsvResultSink:
    """Write crawl tables as CSV files under ``base_path``."""

    def __init__(self, base_path: Path) -> None:
        """Initialise the sink with an output directory."""
        self._base_path = base_path

    async def write_related(
        self, run: RunLabel, candidates: cabc.Sequence[RepoCandidate]
    ) -> str | None:
        """Write ``{stem}-related.csv`` with every accumulated candidate."""
        rows = [candidate_row(candidate) for candidate in candidates]
        return await self._write(f"{run.file_stem}-related.csv", rows)

    async def write_statistics(
        self, run: RunLabel, candidates: cabc.Sequence[RepoCandidate]
    ) -> str | None:
        """Write ``{stem}-stats.csv`` without the internal columns."""
        rows = [
            candidate_row(candidate, drop=STATISTICS_DROPPED_COLUMNS)
            for candidate in candidates
        ]
        return await self._write(f"{run.file_stem}-stats.csv", rows)

    async def _write(
        self, file_name: str, rows: cabc.Sequence[dict[str, object]]
    ) -> str | None:
        if not rows:
            return None
        await asyncio.to_thread(self._base_path.mkdir, parents=True, exist_ok=True)
        path = self._base_path / file_name
        await asyncio.to_thread(_write_csv, path, rows)
        return str(path)
