import logging
from abc import ABC, abstractmethod
from typing import Optional

import redis

from config import settings
from errors import CacheError

logger = logging.getLogger(__name__)

_redis_client: Optional[redis.Redis] = None

def get_redis_client() -> Optional[redis.Redis]:
    global _redis_client
    if _redis_client is not None:
        return _redis_client

    if settings.REDIS_URL:
        _redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)
        return _redis_client

    return None


class BookCache(ABC):
    """Key/value store with TTL used read-aside for the book listing."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None on a miss."""

    @abstractmethod
    def set(self, key: str, value: str, ttl: int) -> None:
        """Store ``value`` under ``key`` for ``ttl`` seconds."""

    @abstractmethod
    def delete_prefix(self, prefix: str) -> int:
        """Drop every key starting with ``prefix``; return how many were removed."""

    def ping(self) -> bool:
        return True


class RedisBookCache(BookCache):
    def __init__(self, client: redis.Redis):
        self.client = client

    def get(self, key: str) -> Optional[str]:
        try:
            return self.client.get(key)
        except redis.RedisError as exc:
            raise CacheError(f"Failed to read cache key {key}: {exc}") from exc

    def set(self, key: str, value: str, ttl: int) -> None:
        try:
            self.client.setex(key, ttl, value)
        except redis.RedisError as exc:
            raise CacheError(f"Failed to write cache key {key}: {exc}") from exc

    def delete_prefix(self, prefix: str) -> int:
        try:
            keys = list(self.client.scan_iter(match=f"{prefix}*", count=200))
            if keys:
                return self.client.delete(*keys)
            return 0
        except redis.RedisError as exc:
            raise CacheError(f"Failed to invalidate cache prefix {prefix}: {exc}") from exc

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except redis.RedisError as exc:
            logger.error(f"Redis ping failed: {exc}")
            return False


def get_book_cache() -> Optional[BookCache]:
    client = get_redis_client()
    if client is None:
        return None
    return RedisBookCache(client)
