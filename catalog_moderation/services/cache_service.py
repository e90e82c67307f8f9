"""Redis cache service for statistics and shared client access."""

import json
from typing import Optional, Any
import redis

from catalog_moderation.core.config import settings


class CacheService:
    """Redis-backed caching service. Cache failures are never fatal."""

    def __init__(self, client: Optional[redis.Redis] = None):
        self._client = client

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(
                settings.REDIS_URL,
                decode_responses=True,
                max_connections=100,
            )
        return self._client

    def get(self, key: str) -> Optional[str]:
        try:
            return self.client.get(key)
        except (redis.ConnectionError, redis.TimeoutError):
            return None

    def set(self, key: str, value: str, ttl_seconds: int = 600) -> None:
        try:
            self.client.setex(key, ttl_seconds, value)
        except (redis.ConnectionError, redis.TimeoutError):
            pass  # Cache failures are non-fatal

    def get_json(self, key: str) -> Optional[Any]:
        """Get and parse a JSON cached value."""
        raw = self.get(key)
        if raw:
            return json.loads(raw)
        return None

    def set_json(self, key: str, value: Any, ttl_seconds: int = 600) -> None:
        """Serialize and cache a JSON value."""
        self.set(key, json.dumps(value, default=str), ttl_seconds)

    def health_check(self) -> bool:
        """Check if Redis is reachable."""
        try:
            return bool(self.client.ping())
        except (redis.ConnectionError, redis.TimeoutError):
            return False
