"""
Worker loop for deferred tasks queued by the API.

Confirmation emails are handed off to an external mailer; here they are
only logged. Announcement refreshes recompute the cached announcement.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from conference_central.announcements import cache_announcement
from conference_central.cache import CacheClient
from conference_central.config import get_settings
from conference_central.db import DbClient
from conference_central.dependencies import (
    get_cache_client,
    get_db_client,
    get_queue_client,
)
from conference_central.queue import (
    CACHE_ANNOUNCEMENT,
    SEND_CONFIRMATION_EMAIL,
    Task,
    TaskQueue,
)

logger = logging.getLogger(__name__)


def send_confirmation_email(task: Task) -> None:
    email = task.params.get("email")
    if not email:
        logger.warning("Confirmation task without recipient: %s", task.params)
        return
    logger.info(
        "Sending confirmation to %s: You created a new Conference! %s",
        email,
        task.params.get("conference_info", ""),
    )


def handle_task(task: Task, db: DbClient, cache: CacheClient) -> bool:
    """Run one task. Returns False for task names this worker does not know."""
    if task.name == SEND_CONFIRMATION_EMAIL:
        send_confirmation_email(task)
    elif task.name == CACHE_ANNOUNCEMENT:
        cache_announcement(db, cache)
    else:
        logger.warning("Dropping unknown task %s", task.name)
        return False
    return True


def process_next(
    *,
    db: Optional[DbClient] = None,
    cache: Optional[CacheClient] = None,
    queue: Optional[TaskQueue] = None,
    block: bool = True,
    timeout: Optional[int] = None,
) -> bool:
    """
    Fetch and process one task from the queue. Returns True if a task was handled.
    """
    db = db or get_db_client()
    cache = cache or get_cache_client()
    queue = queue or get_queue_client()

    task = queue.dequeue(block=block, timeout=timeout)
    if task is None:
        return False
    try:
        return handle_task(task, db, cache)
    except Exception:
        logger.exception("Task %s failed", task.name)
        return False


def run_loop(poll_interval_seconds: float = 2.0) -> None:
    """
    Blocking loop over the task queue. Intended to be run under systemd/supervisor.
    """
    db = get_db_client()
    cache = get_cache_client()
    queue = get_queue_client()
    while True:
        processed = process_next(
            db=db, cache=cache, queue=queue, block=True, timeout=int(poll_interval_seconds)
        )
        if not processed:
            time.sleep(poll_interval_seconds)


if __name__ == "__main__":
    logging.basicConfig(level=get_settings().log_level.upper())
    run_loop()
