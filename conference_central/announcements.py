"""
Announcement of nearly sold-out conferences, kept in the shared cache.
"""

from __future__ import annotations

import logging
from typing import Optional

from conference_central.cache import CacheClient
from conference_central.db import DbClient
from conference_central.queries import build_query

logger = logging.getLogger(__name__)

MEMCACHE_ANNOUNCEMENTS_KEY = "RECENT_ANNOUNCEMENTS"
ANNOUNCEMENT_TPL = (
    "Last chance to attend! The following conferences "
    "are nearly sold out: %s"
)
NEARLY_SOLD_OUT_SEATS = 5


def get_announcement(cache: CacheClient) -> Optional[str]:
    return cache.get(MEMCACHE_ANNOUNCEMENTS_KEY)


def cache_announcement(db: DbClient, cache: CacheClient) -> str:
    """Compute the announcement and store it, or clear it if there is none.

    Returns the announcement text ("" when cleared).
    """
    query = build_query(
        [
            {"field": "SEATS_AVAILABLE", "operator": "LTEQ", "value": NEARLY_SOLD_OUT_SEATS},
            {"field": "SEATS_AVAILABLE", "operator": "GT", "value": 0},
        ]
    )
    conferences = db.query_conferences(query)
    if conferences:
        announcement = ANNOUNCEMENT_TPL % ", ".join(c.name for c in conferences)
        cache.set(MEMCACHE_ANNOUNCEMENTS_KEY, announcement)
    else:
        announcement = ""
        cache.delete(MEMCACHE_ANNOUNCEMENTS_KEY)
    logger.info("Announcement refreshed (%d nearly sold out)", len(conferences))
    return announcement
