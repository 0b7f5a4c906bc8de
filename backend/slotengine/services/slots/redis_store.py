# backend/slotengine/services/slots/redis_store.py
"""
Redis cache for month previews.

Key format: slots:month:{provider_id}:{YYYY-MM}
Value: JSON list of slot dicts (date, start, end, status, custom_duration).

The ledger stays authoritative; this is a read-through cache for
calendar rendering only. Every ledger write invalidates the month
it touches (see invalidator.py). Single-date views never use it.
"""

import json
from redis import Redis

from .config import SchedulingConfig, get_scheduling_config


class PreviewRedisStore:
    """Redis storage wrapper for cached month previews."""

    KEY_PREFIX = "slots:month"

    def __init__(self, redis: Redis, config: SchedulingConfig | None = None):
        self.redis = redis
        self.config = config or get_scheduling_config()

    def _key(self, provider_id: int, year: int, month: int) -> str:
        return f"{self.KEY_PREFIX}:{provider_id}:{year:04d}-{month:02d}"

    # ── Write ────────────────────────────────────────────────────────────

    def store_month(
        self,
        provider_id: int,
        year: int,
        month: int,
        slots: list[dict],
    ) -> None:
        """Store a month preview with the configured TTL."""
        self.redis.setex(
            self._key(provider_id, year, month),
            self.config.preview_cache_ttl_seconds,
            json.dumps(slots),
        )

    # ── Read ─────────────────────────────────────────────────────────────

    def get_month(
        self,
        provider_id: int,
        year: int,
        month: int,
    ) -> list[dict] | None:
        """
        Get a cached month preview.

        Returns:
            List of slot dicts, or None on cache miss.
        """
        raw = self.redis.get(self._key(provider_id, year, month))
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode()
        return json.loads(raw)

    # ── Delete ───────────────────────────────────────────────────────────

    def delete_months(
        self,
        provider_id: int,
        months: list[tuple[int, int]] | None = None,
    ) -> int:
        """
        Delete cached previews.

        Args:
            provider_id: Provider ID
            months: Specific (year, month) pairs, or None to delete all for provider.

        Returns:
            Number of deleted keys.
        """
        if months:
            keys = [self._key(provider_id, y, m) for y, m in months]
        else:
            pattern = f"{self.KEY_PREFIX}:{provider_id}:*"
            keys = self.redis.keys(pattern)

        if not keys:
            return 0

        return self.redis.delete(*keys)
