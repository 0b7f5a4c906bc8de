# backend/slotengine/services/slots/invalidator.py
"""
Cache invalidation for month previews.

Triggers:
✓ Rule saved → invalidate all months of the provider
✓ Lock / release / custom slot / leave → invalidate the affected month

Redis failures are logged and swallowed: the cache is optional and
the ledger is authoritative.
"""

import logging
from datetime import date
from redis import Redis
from redis.exceptions import RedisError

from .redis_store import PreviewRedisStore

logger = logging.getLogger(__name__)


def invalidate_preview_cache(
    redis: Redis | None,
    provider_id: int,
    dates: list[date] | None = None,
) -> int:
    """
    Invalidate cached previews for provider.

    Args:
        redis: Redis client (None = caching disabled, no-op)
        provider_id: Provider ID
        dates: Dates whose months are affected,
               or None to invalidate every cached month

    Returns:
        Number of deleted cache keys
    """
    if redis is None:
        return 0
    store = PreviewRedisStore(redis)
    try:
        return store.delete_months(provider_id, get_affected_months(dates) if dates else None)
    except RedisError as e:
        logger.warning(f"Preview cache invalidation failed for provider {provider_id}: {e}")
        return 0


def get_affected_months(dates: list[date]) -> list[tuple[int, int]]:
    """
    Distinct (year, month) pairs covering the given dates, sorted.
    """
    return sorted({(d.year, d.month) for d in dates})
