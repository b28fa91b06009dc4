import os
from typing import List, Optional

import redis

from .errors import CacheIOError

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
FLOOD_CACHE_PREFIX = os.getenv("FLOOD_CACHE_PREFIX", "floodrisk:")
REDIS_SOCKET_TIMEOUT_S = float(os.getenv("REDIS_SOCKET_TIMEOUT_S", "2"))


class RedisStore:
    """
    Durable key/value layer behind the in-process cache.

    Keys are namespaced with ``prefix``.  Every Redis failure is re-raised as
    ``CacheIOError`` so the cache can treat it as a miss.
    """

    def __init__(self, client: Optional[redis.Redis] = None, prefix: str = FLOOD_CACHE_PREFIX):
        self.r = client if client is not None else redis.Redis.from_url(
            REDIS_URL,
            decode_responses=True,
            socket_timeout=REDIS_SOCKET_TIMEOUT_S,
            socket_connect_timeout=REDIS_SOCKET_TIMEOUT_S,
        )
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def read(self, key: str) -> Optional[str]:
        try:
            return self.r.get(self._key(key))
        except redis.exceptions.RedisError as e:
            raise CacheIOError(f"read {key!r} failed: {e}") from e

    def write(self, key: str, value: str) -> None:
        try:
            self.r.set(self._key(key), value)
        except redis.exceptions.RedisError as e:
            raise CacheIOError(f"write {key!r} failed: {e}") from e

    def delete(self, key: str) -> None:
        try:
            self.r.delete(self._key(key))
        except redis.exceptions.RedisError as e:
            raise CacheIOError(f"delete {key!r} failed: {e}") from e

    def keys(self) -> List[str]:
        """Return every key under this store's prefix, with the prefix stripped."""
        try:
            return [k[len(self.prefix):] for k in self.r.scan_iter(match=f"{self.prefix}*")]
        except redis.exceptions.RedisError as e:
            raise CacheIOError(f"scan failed: {e}") from e

    def close(self) -> None:
        self.r.close()
