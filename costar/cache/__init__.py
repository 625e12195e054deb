"""Valkey-backed result cache."""

from __future__ import annotations

from .store import CacheBackend, CacheConfig, ResultCache

__all__ = ["CacheBackend", "CacheConfig", "ResultCache"]
