# backend/slotengine/redis_client.py

from redis import Redis

from .config import settings


def make_redis(url: str, timeout: float) -> Redis | None:
    """Redis client, or None when no URL is configured."""
    if not url:
        return None
    return Redis.from_url(
        url,
        decode_responses=True,
        socket_timeout=timeout,
        socket_connect_timeout=timeout,
    )


redis_client = make_redis(settings.redis_url, settings.db_timeout_seconds)
