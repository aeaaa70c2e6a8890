"""
Task queue for deferred work (e.g., confirmation emails).

Supports an in-memory fallback for tests/local runs and a Redis-backed
implementation for production.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Optional, Protocol

import redis
from redis import exceptions as redis_exceptions

SEND_CONFIRMATION_EMAIL = "send_confirmation_email"
CACHE_ANNOUNCEMENT = "cache_announcement"


@dataclass(frozen=True)
class Task:
    name: str
    params: dict[str, str] = field(default_factory=dict)

    def to_json(self) -> str:
        return json.dumps({"name": self.name, "params": self.params})

    @classmethod
    def from_json(cls, raw: str | bytes) -> "Task":
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        data = json.loads(raw)
        return cls(name=data["name"], params=dict(data.get("params") or {}))


class TaskQueue(Protocol):
    """Minimal fire-and-forget queue interface."""

    def enqueue(self, task: Task) -> None:
        ...

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[Task]:
        ...


@dataclass
class InMemoryTaskQueue:
    """Simple FIFO queue for testing/dev."""

    items: list[Task] = field(default_factory=list)

    def enqueue(self, task: Task) -> None:
        self.items.append(task)

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[Task]:
        if not self.items:
            return None
        return self.items.pop(0)

    def reset(self) -> None:
        self.items.clear()


@dataclass
class RedisTaskQueue:
    """Redis-backed queue using list push/pop operations."""

    url: str
    queue_key: str = "conference:tasks"

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    def enqueue(self, task: Task) -> None:
        self.client.rpush(self.queue_key, task.to_json())

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[Task]:
        try:
            if block:
                result = self.client.blpop(self.queue_key, timeout=timeout or 0)
                if result is None:
                    return None
                _, raw = result
            else:
                raw = self.client.lpop(self.queue_key)
                if raw is None:
                    return None
            return Task.from_json(raw)
        except redis_exceptions.ConnectionError:
            # Connection resets can happen on managed Redis. Treat as empty queue
            # and allow the worker loop to retry.
            self.client = redis.Redis.from_url(self.url)
            return None
