"""
Shared string cache.

Supports an in-memory fallback for tests/local runs and a Redis-backed
implementation for production.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol

import redis
from redis import exceptions as redis_exceptions

logger = logging.getLogger(__name__)


class CacheClient(Protocol):
    """Minimal key/value interface for cached strings."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


@dataclass
class InMemoryCacheClient:
    """Dict-backed cache for testing/dev."""

    values: dict[str, str] = field(default_factory=dict)

    def get(self, key: str) -> Optional[str]:
        return self.values.get(key)

    def set(self, key: str, value: str) -> None:
        self.values[key] = value

    def delete(self, key: str) -> None:
        self.values.pop(key, None)

    def reset(self) -> None:
        self.values.clear()


@dataclass
class RedisCacheClient:
    """Redis-backed cache with namespaced keys."""

    url: str
    key_prefix: str = "conference"

    def __post_init__(self):
        self.client = self._connect()

    def _connect(self) -> redis.Redis:
        return redis.Redis.from_url(self.url, decode_responses=True)

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}:{key}" if self.key_prefix else key

    def get(self, key: str) -> Optional[str]:
        try:
            return self.client.get(self._key(key))
        except redis_exceptions.ConnectionError:
            # A dropped connection reads as a miss; reconnect for the next call.
            logger.warning("Redis unavailable reading %s; treating as cache miss", key)
            self.client = self._connect()
            return None

    def set(self, key: str, value: str) -> None:
        self.client.set(self._key(key), value)

    def delete(self, key: str) -> None:
        self.client.delete(self._key(key))
