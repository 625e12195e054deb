"""Shared fixtures for unit and feature tests."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

# Settings read by ``from_env`` constructors; a developer's shell must not
# leak into test runs.
_ISOLATED_PREFIXES = ("COSTAR_",)
_ISOLATED_NAMES = ("GITHUB_PA_TOKEN",)


def _find_repo_root(start: Path) -> Path:
    for parent in (start, *start.parents):
        if (parent / "pyproject.toml").exists():
            return parent
    raise RuntimeError


@pytest.fixture(scope="session")
def repo_root() -> Path:
    """Return the repository root directory."""
    return _find_repo_root(Path(__file__).resolve())


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove costar settings inherited from the calling shell."""
    for name in list(os.environ):
        if name.startswith(_ISOLATED_PREFIXES) or name in _ISOLATED_NAMES:
            monkeypatch.delenv(name)
