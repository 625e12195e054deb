"""Unit tests for the CSV result sink."""

from __future__ import annotations

import csv
import typing as typ

import pytest

from costar.analysis.export import (
    CsvResultSink,
    ResultSink,
    RunLabel,
    candidate_row,
)
from costar.analysis.models import RepoCandidate

if typ.TYPE_CHECKING:
    from pathlib import Path


def _candidate() -> RepoCandidate:
    return RepoCandidate(
        id="R_1",
        full_name="octo/kelp",
        description="Seaweed tooling",
        stars_total=1000,
        topics=["ocean", "tools"],
        users_stars=10,
        left_share=100.0,
        right_share=1.2,
        relevance=5.24,
        slopes={"T1W": 2.5, "TI": None},
        monthly={"T0": 990, "T-1": 950},
    )


def _read(path: str) -> list[dict[str, str]]:
    with open(path, encoding="utf-8", newline="") as handle:  # noqa: PTH123
        return list(csv.DictReader(handle))


def test_run_label_file_stem_is_file_safe() -> None:
    """Slashes and dots in the seed do not leak into file names."""
    assert RunLabel("vercel/next.js", 200).file_stem == "out-vercel_next_js-200"


def test_candidate_row_flattens_statistics() -> None:
    """Slopes and monthly samples become trailing camelCase columns."""
    row = candidate_row(_candidate())

    assert row["fullName"] == "octo/kelp"
    assert row["topics"] == "ocean, tools"
    assert "slopes" not in row
    assert "monthly" not in row
    assert list(row)[-4:] == ["T1W", "TI", "T0", "T-1"]
    assert row["T1W"] == 2.5


def test_candidate_row_drops_requested_columns() -> None:
    """Internal columns can be left out."""
    row = candidate_row(_candidate(), drop={"id", "isArchived"})
    assert "id" not in row
    assert "isArchived" not in row
    assert "isFork" in row


def test_csv_sink_satisfies_protocol(tmp_path: Path) -> None:
    """CsvResultSink is a ResultSink."""
    assert isinstance(CsvResultSink(tmp_path), ResultSink)


@pytest.mark.asyncio
async def test_csv_sink_writes_both_tables(tmp_path: Path) -> None:
    """Each table lands in its own file named after the run."""
    sink = CsvResultSink(tmp_path / "out")
    run = RunLabel("octo/reef", 200)

    related = await sink.write_related(run, [_candidate()])
    stats = await sink.write_statistics(run, [_candidate()])

    assert related == str(tmp_path / "out" / "out-octo_reef-200-related.csv")
    assert stats == str(tmp_path / "out" / "out-octo_reef-200-stats.csv")
    related_rows = _read(related)
    stats_rows = _read(stats)
    assert related_rows[0]["id"] == "R_1"
    assert related_rows[0]["TI"] == ""
    assert "id" not in stats_rows[0]
    assert stats_rows[0]["fullName"] == "octo/kelp"
    assert stats_rows[0]["T0"] == "990"


@pytest.mark.asyncio
async def test_csv_sink_skips_empty_tables(tmp_path: Path) -> None:
    """No file is produced for an empty table."""
    sink = CsvResultSink(tmp_path)

    assert await sink.write_statistics(RunLabel("octo/reef", 50), []) is None
    assert list(tmp_path.iterdir()) == []
