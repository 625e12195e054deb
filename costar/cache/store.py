"""Cache-aside storage for GitHub query results.

Entries live in Valkey under ``{scope}:{uid}`` as JSON strings with a native
expiry. Earlier deployments stored a hash under ``cache:{scope}:{uid}`` with
the write time in ``ts`` and the JSON document in ``object``; such entries are
migrated lazily the first time they are read while still fresh.

Usage
-----
>>> cache = ResultCache.from_config(CacheConfig.from_env())
>>> count = await cache.get_or_compute(
...     "repo-stars-count", "octo/reef", resolve_count, type=RepoStarsCount
... )

"""

from __future__ import annotations

import dataclasses
import os
import time
import typing as typ

import msgspec
import valkey.asyncio as valkey

from costar.logging import get_logger, log_debug, log_info, log_warning

if typ.TYPE_CHECKING:
    import collections.abc as cabc

logger = get_logger(__name__)

DEFAULT_TTL_SECONDS = 14 * 24 * 60 * 60
DEFAULT_VALKEY_URL = "valkey://127.0.0.1:6379/0"
LEGACY_KEY_PREFIX = "cache"
_LEGACY_TIMESTAMP_FIELD = "ts"
_LEGACY_OBJECT_FIELD = "object"


@dataclasses.dataclass(frozen=True, slots=True)
class CacheConfig:
    """Connection and expiry settings for :class:`ResultCache`."""

    url: str = DEFAULT_VALKEY_URL
    ttl_seconds: int = DEFAULT_TTL_SECONDS

    @classmethod
    def from_env(cls) -> CacheConfig:
        """Build configuration from ``COSTAR_VALKEY_URL`` and the TTL override.

        Raises
        ------
        ValueError
            If the TTL override is not a positive integer.

        """
        url = os.environ.get("COSTAR_VALKEY_URL", "").strip() or DEFAULT_VALKEY_URL
        raw_ttl = os.environ.get("COSTAR_CACHE_TTL_SECONDS", "").strip()
        if not raw_ttl:
            return cls(url=url)
        try:
            ttl = int(raw_ttl)
        except ValueError as exc:
            msg = f"COSTAR_CACHE_TTL_SECONDS must be an integer, got: {raw_ttl!r}"
            raise ValueError(msg) from exc
        if ttl <= 0:
            msg = f"COSTAR_CACHE_TTL_SECONDS must be positive, got: {raw_ttl!r}"
            raise ValueError(msg)
        return cls(url=url, ttl_seconds=ttl)


class CacheBackend(typ.Protocol):
    """Subset of the Valkey asyncio client used by the cache."""

    async def get(self, name: str) -> str | bytes | None: ...

    async def set(self, name: str, value: str | bytes, *, ex: int) -> object: ...

    async def hgetall(self, name: str) -> cabc.Mapping[typ.Any, typ.Any]: ...

    async def delete(self, *names: str) -> int: ...

    async def aclose(self) -> None: ...


def _is_empty(value: object) -> bool:
    if value is None:
        return True
    return isinstance(value, list | tuple | dict | str | bytes) and not value


def _text(value: object) -> str | None:
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


class ResultCache:
    """Cache-aside wrapper around an async resolver.

    A resolver result of ``None`` (or an empty collection) is returned to the
    caller but never stored, so a failed API call is retried on the next read
    instead of being pinned for the whole TTL.
    """

    def __init__(
        self,
        backend: CacheBackend,
        *,
        default_ttl: int = DEFAULT_TTL_SECONDS,
        clock: cabc.Callable[[], float] = time.time,
        owns_backend: bool = False,
    ) -> None:
        """Wrap ``backend``; ``owns_backend`` makes :meth:`aclose` close it."""
        self._backend = backend
        self._default_ttl = default_ttl
        self._clock = clock
        self._owns_backend = owns_backend

    @classmethod
    def from_config(cls, config: CacheConfig) -> ResultCache:
        """Connect to Valkey using ``config``; the connection is lazy."""
        backend = valkey.Valkey.from_url(config.url, decode_responses=True)
        return cls(
            typ.cast("CacheBackend", backend),
            default_ttl=config.ttl_seconds,
            owns_backend=True,
        )

    async def aclose(self) -> None:
        """Close the backend connection when this cache created it."""
        if self._owns_backend:
            await self._backend.aclose()

    async def get_or_compute[T](
        self,
        scope: str,
        uid: str,
        resolver: cabc.Callable[[], cabc.Awaitable[T | None]],
        *,
        ttl: int | None = None,
        type: type[T] | typ.Any = typ.Any,  # noqa: A002
    ) -> T | None:
        """Return the cached value for ``scope``/``uid`` or compute it.

        Parameters
        ----------
        scope
            Namespace for the key, usually one per query kind.
        uid
            Identifier unique within ``scope``.
        resolver
            Coroutine factory invoked only on a miss.
        ttl
            Expiry in seconds; defaults to the cache-wide TTL.
        type
            msgspec decode target for stored JSON.

        Returns
        -------
        T | None
            The cached, migrated, or freshly resolved value.

        """
        ttl_seconds = ttl or self._default_ttl
        key = f"{scope}:{uid}"

        cached = _text(await self._backend.get(key))
        if cached is not None:
            try:
                return msgspec.json.decode(cached, type=type)
            except (msgspec.DecodeError, msgspec.ValidationError) as exc:
                log_warning(
                    logger, "Discarding unreadable cache entry %s: %s", key, exc
                )
                await self._backend.delete(key)
        else:
            migrated = await self._migrate_legacy(scope, uid, key, ttl_seconds, type)
            if migrated is not None:
                return migrated

        result = await resolver()
        if _is_empty(result):
            log_debug(logger, "Not caching empty result for %s", key)
            return result

        await self._backend.set(key, msgspec.json.encode(result), ex=ttl_seconds)
        return result

    async def _migrate_legacy[T](
        self,
        scope: str,
        uid: str,
        key: str,
        ttl_seconds: int,
        decode_type: type[T] | typ.Any,
    ) -> T | None:
        legacy_key = f"{LEGACY_KEY_PREFIX}:{scope}:{uid}"
        fields = await self._backend.hgetall(legacy_key)
        if not fields:
            return None

        entry = {_text(name): _text(value) for name, value in fields.items()}
        stored_at = entry.get(_LEGACY_TIMESTAMP_FIELD)
        document = entry.get(_LEGACY_OBJECT_FIELD)
        remaining = 0
        if stored_at is not None:
            try:
                remaining = int(float(stored_at)) + ttl_seconds - int(self._clock())
            except ValueError:
                remaining = 0

        if remaining <= 0 or document is None:
            log_debug(logger, "Dropping expired legacy cache entry %s", legacy_key)
            await self._backend.delete(legacy_key)
            return None

        try:
            value = msgspec.json.decode(document, type=decode_type)
        except (msgspec.DecodeError, msgspec.ValidationError) as exc:
            log_warning(
                logger, "Dropping unreadable legacy cache entry %s: %s", legacy_key, exc
            )
            await self._backend.delete(legacy_key)
            return None

        await self._backend.set(key, document, ex=remaining)
        await self._backend.delete(legacy_key)
        log_info(
            logger, "Migrated legacy cache entry %s (%ds left)", legacy_key, remaining
        )
        return value
