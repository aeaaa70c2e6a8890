"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

from fastapi import Depends

from conference_central.cache import CacheClient, InMemoryCacheClient, RedisCacheClient
from conference_central.config import get_settings
from conference_central.db import DbClient, InMemoryDbClient, SqlAlchemyDbClient
from conference_central.queue import InMemoryTaskQueue, RedisTaskQueue, TaskQueue
from conference_central.service import ConferenceService

_db_client: DbClient | None = None
_cache_client: CacheClient | None = None
_queue_client: TaskQueue | None = None


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so records persist across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _db_client = InMemoryDbClient()
    else:
        _db_client = SqlAlchemyDbClient(
            settings.database_url, max_attempts=settings.db_max_attempts
        )
    return _db_client


def get_cache_client() -> CacheClient:
    global _cache_client
    if _cache_client:
        return _cache_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.redis_url:
        _cache_client = InMemoryCacheClient()
    else:
        _cache_client = RedisCacheClient(
            url=settings.redis_url,
            key_prefix=settings.redis_cache_prefix,
        )
    return _cache_client


def get_queue_client() -> TaskQueue:
    """
    Return a singleton queue client for dispatching deferred tasks.
    """
    global _queue_client
    if _queue_client:
        return _queue_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.redis_url:
        _queue_client = InMemoryTaskQueue()
    else:
        _queue_client = RedisTaskQueue(
            url=settings.redis_url,
            queue_key=settings.redis_queue_key,
        )
    return _queue_client


def get_conference_service(
    db: DbClient = Depends(get_db_client),
    cache: CacheClient = Depends(get_cache_client),
    queue: TaskQueue = Depends(get_queue_client),
) -> ConferenceService:
    return ConferenceService(db=db, cache=cache, queue=queue)
