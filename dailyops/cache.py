"""
In-process read cache with a bounded TTL.

Keys are plain strings; entries for one (site, day) share the prefix returned
by ``day_prefix`` so a mutation can drop every projection of that day at once.
The cache is an injected component: each ServiceContainer owns one, and tests
pass their own clock.
"""
import logging
import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple

from dailyops.monitoring import cache_events_total

logger = logging.getLogger(__name__)

_MISSING = object()


def day_prefix(site_id: str, day: str) -> str:
    return f"site:{site_id}:day:{day}:"


def instance_key(instance_id: int) -> str:
    return f"instance:{instance_id}"


class TTLCache:
    """Thread-safe key/value cache whose entries expire after ``ttl_seconds``."""

    def __init__(
        self,
        ttl_seconds: float = 60.0,
        clock: Optional[Callable[[], float]] = None,
        max_entries: int = 10000,
    ):
        if ttl_seconds < 0:
            raise ValueError("ttl_seconds must be >= 0")
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock or time.monotonic
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._lock = threading.Lock()
        # Invalidation bookkeeping; only kept while a load is in flight
        self._generation = 0
        self._loads_in_flight = 0
        self._cleared_at = 0
        self._key_invalidated_at: Dict[str, int] = {}
        self._prefix_invalidated_at: Dict[str, int] = {}

    def get(self, key: str, default: Any = None) -> Any:
        """Return a live entry or ``default``."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry[0] > now:
                cache_events_total.labels(event="hit").inc()
                return entry[1]
            if entry is not None:
                del self._entries[key]
        cache_events_total.labels(event="miss").inc()
        return default

    def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None:
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        if ttl <= 0:
            return
        expires_at = self._clock() + ttl
        with self._lock:
            self._store_locked(key, expires_at, value)

    def _store_locked(self, key: str, expires_at: float, value: Any) -> None:
        if len(self._entries) >= self.max_entries and key not in self._entries:
            self._evict_expired_locked()
            if len(self._entries) >= self.max_entries:
                # Oldest expiry goes first
                oldest = min(self._entries, key=lambda k: self._entries[k][0])
                del self._entries[oldest]
        self._entries[key] = (expires_at, value)

    def _invalidated_since_locked(self, key: str, generation: int) -> bool:
        if self._cleared_at > generation:
            return True
        if self._key_invalidated_at.get(key, 0) > generation:
            return True
        return any(
            at > generation and key.startswith(prefix)
            for prefix, at in self._prefix_invalidated_at.items()
        )

    def _finish_load_locked(self) -> None:
        self._loads_in_flight -= 1
        if self._loads_in_flight == 0:
            self._key_invalidated_at.clear()
            self._prefix_invalidated_at.clear()

    def get_or_load(self, key: str, loader: Callable[[], Any]) -> Any:
        """
        Return the cached value for ``key``, calling ``loader`` on a miss.

        The loaded value is only stored if nothing invalidated ``key`` while
        the loader ran; otherwise it may predate a committed write.
        """
        value = self.get(key, _MISSING)
        if value is not _MISSING:
            return value

        with self._lock:
            started_at = self._generation
            self._loads_in_flight += 1
        try:
            value = loader()
        except BaseException:
            with self._lock:
                self._finish_load_locked()
            raise

        ttl = self.ttl_seconds
        expires_at = self._clock() + ttl
        with self._lock:
            if self._invalidated_since_locked(key, started_at):
                logger.debug(f"Cache key {key} invalidated during load; result not stored")
            elif ttl > 0:
                self._store_locked(key, expires_at, value)
            self._finish_load_locked()
        return value

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)
            self._generation += 1
            if self._loads_in_flight:
                self._key_invalidated_at[key] = self._generation

    def invalidate_prefix(self, prefix: str) -> int:
        """Drop every entry whose key starts with ``prefix``; returns the count."""
        with self._lock:
            keys = [k for k in self._entries if k.startswith(prefix)]
            for k in keys:
                del self._entries[k]
            self._generation += 1
            if self._loads_in_flight:
                self._prefix_invalidated_at[prefix] = self._generation
        if keys:
            logger.debug(f"Invalidated {len(keys)} cache entries for prefix {prefix}")
        return len(keys)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._generation += 1
            self._cleared_at = self._generation

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _evict_expired_locked(self) -> None:
        now = self._clock()
        expired = [k for k, (expires_at, _) in self._entries.items() if expires_at <= now]
        for k in expired:
            del self._entries[k]


def safe_invalidate(cache: Optional[TTLCache], *prefixes: str, keys: Tuple[str, ...] = ()) -> None:
    """
    Invalidate after a mutation. A failure here must never fail the mutation
    itself, so it is logged and readers may see a stale entry until it expires.
    """
    if cache is None:
        return
    try:
        for prefix in prefixes:
            cache.invalidate_prefix(prefix)
        for key in keys:
            cache.invalidate(key)
    except Exception as e:
        logger.warning(f"Cache invalidation failed, serving possibly stale reads: {e}", exc_info=True)
