"""In-memory TTL cache for idempotent upstream reads."""

import json
import logging
import threading
import time
from collections.abc import Callable
from typing import Any

from tgw.core.constants import CacheTTL
from tgw.models.cache import CacheEntry, CacheEntryInfo, CacheStats

logger = logging.getLogger(__name__)


def make_key(resource: str, **params: Any) -> str:
    """Build a deterministic cache key from a resource name and query params.

    ``None`` values are dropped and params are sorted, so equivalent queries
    map to the same key regardless of argument order.
    """
    normalized = sorted((name, str(value)) for name, value in params.items() if value is not None)
    if not normalized:
        return resource
    query = "&".join(f"{name}={value}" for name, value in normalized)
    return f"{resource}?{query}"


class ResponseCache:
    """Process-wide key/value cache with per-entry TTL.

    :meth:`get` is authoritative for expiry; the background sweep only bounds
    memory between reads.
    """

    def __init__(
        self,
        default_ttl: float = CacheTTL.DEFAULT,
        sweep_interval: float = CacheTTL.SWEEP_INTERVAL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the cache.

        Args:
            default_ttl: TTL in seconds used when ``set`` is called without one
            sweep_interval: Seconds between background sweeps
            clock: Time source, returns seconds

        """
        self.default_ttl = float(default_ttl)
        self.sweep_interval = float(sweep_interval)
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._sweeper: threading.Thread | None = None

    def get(self, key: str) -> Any | None:
        """Return a cached value, or None on miss or expiry."""
        try:
            with self._lock:
                entry = self._entries.get(key)
                if entry is None:
                    logger.debug(f"Cache miss for {key}")
                    return None
                if entry.is_expired(self._clock()):
                    del self._entries[key]
                    logger.debug(f"Cache entry expired for {key}")
                    return None
            logger.debug(f"Cache hit for {key}")
            return entry.value
        except Exception as e:
            logger.error(f"Error reading cache key {key}: {e}")
            return None

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Store a value for ``ttl`` seconds."""
        ttl = self.default_ttl if ttl is None else float(ttl)
        try:
            now = self._clock()
            with self._lock:
                self._entries[key] = CacheEntry(key=key, value=value, stored_at=now, expires_at=now + ttl)
            logger.debug(f"Cached {key} (TTL: {ttl:.0f}s)")
        except Exception as e:
            logger.error(f"Error caching data with key {key}: {e}")

    def delete(self, key: str) -> bool:
        """Remove an entry; True if it existed."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def sweep(self) -> int:
        """Remove every expired entry and return how many were dropped."""
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.info(f"Cleared {len(expired)} expired cache entries")
        return len(expired)

    def clear(self) -> int:
        """Drop all entries and return how many there were."""
        with self._lock:
            size = len(self._entries)
            self._entries.clear()
        logger.info(f"Cache cleared ({size} entries)")
        return size

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> CacheStats:
        """Per-entry age, remaining TTL and approximate size."""
        now = self._clock()
        with self._lock:
            entries = list(self._entries.values())

        infos = []
        for entry in entries:
            try:
                size = len(json.dumps(entry.value, default=str))
            except (TypeError, ValueError):
                size = 0
            infos.append(
                CacheEntryInfo(
                    key=entry.key,
                    age_seconds=int(now - entry.stored_at),
                    ttl_seconds=int(entry.expires_at - now),
                    size_bytes=size,
                )
            )
        infos.sort(key=lambda info: info.ttl_seconds)

        return CacheStats(
            total_entries=len(infos),
            total_size_bytes=sum(info.size_bytes for info in infos),
            entries=infos,
        )

    def start_sweeper(self) -> None:
        """Start the periodic background sweep (idempotent)."""
        if self._sweeper and self._sweeper.is_alive():
            return
        self._stop.clear()
        self._sweeper = threading.Thread(target=self._sweep_loop, name="tgw-cache-sweeper", daemon=True)
        self._sweeper.start()
        logger.debug(f"Cache sweeper started (interval: {self.sweep_interval:.0f}s)")

    def shutdown_sweeper(self) -> None:
        """Stop the background sweep and wait for it to exit."""
        self._stop.set()
        if self._sweeper:
            self._sweeper.join()
            self._sweeper = None
            logger.debug("Cache sweeper stopped")

    def _sweep_loop(self) -> None:
        while not self._stop.wait(self.sweep_interval):
            try:
                self.sweep()
            except Exception as e:
                logger.error(f"Cache sweep failed: {e}")
