"""
Layered caching for upstream readings.

``MultiTierCache`` keeps a process-local memory layer in front of a durable
store (Redis in production, see ``utils.kv``).  Lookups name a
``CacheTier`` which decides how old an entry may be and still count as a hit;
any tier accepts any entry younger than its window, whichever caller wrote
it.  Expired entries stay put until ``sweep`` runs.

``TTLCache`` is the single-window cache used for the 24 hour region lookups
and the 5 minute report cache.

All time decisions go through an injectable ``clock`` (seconds since the
epoch, ``time.time`` by default) so expiry can be tested without sleeping.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Hashable, Optional, Protocol, Tuple

from .errors import CacheIOError

logger = logging.getLogger(__name__)

Clock = Callable[[], float]

REGION_CACHE_TTL_SECONDS = 24 * 3600


class CacheTier(Enum):
    """Named validity windows, shortest first (seconds)."""

    ULTRA_FRESH = 5
    FRESH = 2 * 60
    VALID = 10 * 60
    STALE_ACCEPTABLE = 30 * 60

    @property
    def window(self) -> int:
        return self.value


class DurableStore(Protocol):
    def read(self, key: str) -> Optional[str]: ...

    def write(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def keys(self) -> list: ...


@dataclass(frozen=True)
class CacheEntry:
    key: str
    payload: str  # serialized JSON; decoded fresh for every caller
    stored_at: float

    def age(self, now: float) -> float:
        return now - self.stored_at

    def to_json(self) -> str:
        return json.dumps({"payload": self.payload, "stored_at": self.stored_at})

    @classmethod
    def from_json(cls, key: str, raw: str) -> "CacheEntry":
        data = json.loads(raw)
        return cls(key=key, payload=data["payload"], stored_at=float(data["stored_at"]))


class TTLCache:
    """
    Fixed-window cache keyed by any hashable value.

    Each value is stored alongside the timestamp when it was stored.  A value
    is returned only while ``now - stored_at < seconds``.
    """

    def __init__(self, seconds: float, clock: Clock = time.time):
        self.seconds = seconds
        self.clock = clock
        self._data: Dict[Hashable, Tuple[Any, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> Optional[Any]:
        with self._lock:
            item = self._data.get(key)
        if item is None:
            return None
        val, ts = item
        if self.clock() - ts < self.seconds:
            return val
        return None

    def put(self, key: Hashable, value: Any) -> None:
        with self._lock:
            self._data[key] = (value, self.clock())

    def sweep(self) -> int:
        now = self.clock()
        with self._lock:
            expired = [k for k, (_, ts) in self._data.items() if now - ts >= self.seconds]
            for k in expired:
                del self._data[k]
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        return len(self._data)


def region_key(lat: float, lon: float) -> str:
    return f"region_{lat:.4f}_{lon:.4f}"


class MultiTierCache:
    """
    Memory layer plus an optional durable layer.

    Parameters
    ----------
    store : DurableStore, optional
        Slow layer, e.g. ``RedisStore``.  Any ``CacheIOError`` it raises is
        logged and treated as a miss.  ``None`` runs memory-only.
    clock : callable, optional
        Returns the current time in seconds.
    """

    def __init__(self, store: Optional[DurableStore] = None, clock: Clock = time.time):
        self.store = store
        self.clock = clock
        self.regions = TTLCache(REGION_CACHE_TTL_SECONDS, clock=clock)
        self._memory: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._counts = {"hits": 0, "misses": 0, "memory_hits": 0, "durable_hits": 0}

    def _count(self, *names: str) -> None:
        with self._lock:
            for n in names:
                self._counts[n] += 1

    def _read_durable(self, key: str) -> Optional[CacheEntry]:
        if self.store is None:
            return None
        try:
            raw = self.store.read(key)
            if raw is None:
                return None
            return CacheEntry.from_json(key, raw)
        except CacheIOError as e:
            logger.warning("Durable cache read failed for %s: %s", key, e)
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Discarding unreadable cache entry %s: %s", key, e)
        return None

    def get(self, key: str, tier: CacheTier = CacheTier.FRESH) -> Optional[Any]:
        """Return a fresh copy of the payload stored under ``key``, or None."""
        now = self.clock()

        entry = self._memory.get(key)
        if entry is not None and entry.age(now) < tier.window:
            self._count("hits", "memory_hits")
            logger.debug("Memory cache hit %s (%.0fs old, %s)", key, entry.age(now), tier.name)
            return json.loads(entry.payload)

        entry = self._read_durable(key)
        if entry is not None and entry.age(now) < tier.window:
            with self._lock:
                self._memory[key] = entry
            self._count("hits", "durable_hits")
            logger.debug("Durable cache hit %s (%.0fs old, %s)", key, entry.age(now), tier.name)
            return json.loads(entry.payload)

        self._count("misses")
        return None

    def put(self, key: str, payload: Any) -> None:
        entry = CacheEntry(key=key, payload=json.dumps(payload, sort_keys=True), stored_at=self.clock())
        with self._lock:
            self._memory[key] = entry
        if self.store is None:
            return
        try:
            self.store.write(key, entry.to_json())
        except CacheIOError as e:
            logger.warning("Durable cache write failed for %s: %s", key, e)

    def sweep(self) -> int:
        """
        Drop entries older than the STALE_ACCEPTABLE window from both layers,
        plus expired region lookups.  Returns how many entries were removed.
        """
        now = self.clock()
        max_age = CacheTier.STALE_ACCEPTABLE.window
        removed = 0

        with self._lock:
            expired = [k for k, e in self._memory.items() if e.age(now) > max_age]
            for k in expired:
                del self._memory[k]
        removed += len(expired)

        if self.store is not None:
            try:
                for key in self.store.keys():
                    try:
                        raw = self.store.read(key)
                        stale = raw is not None and CacheEntry.from_json(key, raw).age(now) > max_age
                    except (ValueError, KeyError, TypeError):
                        stale = True
                    if stale:
                        self.store.delete(key)
                        removed += 1
            except CacheIOError as e:
                logger.warning("Durable cache sweep aborted: %s", e)

        removed += self.regions.sweep()
        logger.info("Cache sweep removed %d entries", removed)
        return removed

    def invalidate_all(self) -> None:
        with self._lock:
            self._memory.clear()
        self.regions.clear()
        if self.store is None:
            return
        try:
            for key in self.store.keys():
                self.store.delete(key)
        except CacheIOError as e:
            logger.warning("Durable cache clear failed: %s", e)

    def stats(self) -> Dict[str, Any]:
        durable_entries: Optional[int] = None
        if self.store is not None:
            try:
                durable_entries = len(self.store.keys())
            except CacheIOError as e:
                logger.warning("Durable cache stats unavailable: %s", e)
        with self._lock:
            counts = dict(self._counts)
            memory_entries = len(self._memory)
        return {
            "memory_entries": memory_entries,
            "durable_entries": durable_entries,
            "region_entries": len(self.regions),
            **counts,
        }
