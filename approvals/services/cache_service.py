"""Redis cache for resolved role permission sets."""

import json
import logging
from typing import Optional, Any
import redis

from approvals.core.config import settings

logger = logging.getLogger("approvals")


class CacheService:
    """Redis-backed caching service.

    Cache failures are non-fatal: reads fall through to the database and
    writes are dropped.
    """

    def __init__(self):
        self._client: Optional[redis.Redis] = None

    @property
    def enabled(self) -> bool:
        return settings.PERMISSION_CACHE_ENABLED

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(
                settings.REDIS_URL,
                decode_responses=True,
                max_connections=100,
            )
        return self._client

    def get_json(self, key: str) -> Optional[Any]:
        """Get and parse a JSON cached value."""
        if not self.enabled:
            return None
        try:
            raw = self.client.get(key)
        except redis.RedisError as e:
            logger.warning("Permission cache read failed for %s: %s", key, e)
            return None
        if raw:
            return json.loads(raw)
        return None

    def set_json(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        """Serialize and cache a JSON value."""
        if not self.enabled:
            return
        ttl = ttl_seconds or settings.PERMISSION_CACHE_TTL_SECONDS
        try:
            self.client.setex(key, ttl, json.dumps(value, default=str))
        except redis.RedisError as e:
            logger.warning("Permission cache write failed for %s: %s", key, e)

    def get_generation(self, key: str) -> Optional[int]:
        """Current value of a generation counter, 0 if never bumped.

        Returns ``None`` when the cache is disabled or unreachable, in which
        case callers must not read or write entries under it.
        """
        if not self.enabled:
            return None
        try:
            raw = self.client.get(key)
        except redis.RedisError as e:
            logger.warning("Permission cache generation read failed for %s: %s", key, e)
            return None
        return int(raw) if raw else 0

    def bump_generation(self, key: str) -> None:
        """Advance a generation counter, orphaning entries written under older values."""
        if not self.enabled:
            return
        try:
            self.client.incr(key)
        except redis.RedisError as e:
            logger.warning("Permission cache invalidation failed for %s: %s", key, e)

    def health_check(self) -> bool:
        """Check if Redis is reachable."""
        if not self.enabled:
            return False
        try:
            return bool(self.client.ping())
        except redis.RedisError:
            return False


def permissions_generation_key(role_code: str) -> str:
    return f"permissions:{role_code}:generation"


def permissions_key(role_code: str, generation: int) -> str:
    return f"permissions:{role_code}:{generation}"


cache_service = CacheService()
