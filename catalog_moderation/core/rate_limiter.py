"""Redis-backed fixed-window rate limiter."""

import logging
from dataclasses import dataclass
from typing import Optional

import redis

from catalog_moderation.core.config import settings
from catalog_moderation.core.exceptions import RateLimitedError

logger = logging.getLogger("catalog_moderation")


@dataclass
class RateLimitStatus:
    scope: str
    count: int
    limit: int
    remaining: int
    retry_after: int
    allowed: bool = True


def reset_hint(seconds: int) -> str:
    minutes = max(1, (seconds + 59) // 60)
    unit = "minute" if minutes == 1 else "minutes"
    return f"Try again in {minutes} {unit}"


def window_label(seconds: int) -> str:
    if seconds < 60:
        return f"{seconds} second" if seconds == 1 else f"{seconds} seconds"
    minutes = (seconds + 59) // 60
    return "1 minute" if minutes == 1 else f"{minutes} minutes"


class RateLimiter:
    """Counts hits per (scope, key) in Redis with a server-side TTL window.

    The counter is created with ``SET NX EX`` and bumped with ``INCR`` inside
    one MULTI/EXEC pipeline, so two concurrent requests can never both observe
    the last free slot. If Redis is unreachable the request is allowed and a
    warning is logged.
    """

    def __init__(self, client: redis.Redis, enabled: bool = True,
                 window_seconds: Optional[int] = None):
        self.client = client
        self.enabled = enabled
        self.window_seconds = window_seconds or settings.RATE_LIMIT_WINDOW_SECONDS

    @staticmethod
    def key_for(scope: str, key: str) -> str:
        return f"rate_limit:{scope}:{key}"

    def hit(self, scope: str, key: str, limit: int,
            window_seconds: Optional[int] = None) -> RateLimitStatus:
        """Record one hit; raise RateLimitedError when it exceeds ``limit``."""
        window = window_seconds or self.window_seconds
        if not self.enabled:
            return RateLimitStatus(scope, 0, limit, limit, 0)

        redis_key = self.key_for(scope, key)
        try:
            pipe = self.client.pipeline(transaction=True)
            pipe.set(redis_key, 0, ex=window, nx=True)
            pipe.incr(redis_key)
            pipe.ttl(redis_key)
            _, count, ttl = pipe.execute()
        except (redis.ConnectionError, redis.TimeoutError) as e:
            logger.warning("Rate limiter unavailable for %s, allowing request: %s", scope, e)
            return RateLimitStatus(scope, 0, limit, limit, 0)

        retry_after = ttl if ttl and ttl > 0 else window
        if count > limit:
            logger.info("Rate limit exceeded: scope=%s count=%s limit=%s", scope, count, limit)
            raise RateLimitedError(
                f"Rate limit exceeded. Maximum {limit} requests per {window_label(window)}.",
                retry_after=retry_after,
                limit=limit,
                reset_hint=reset_hint(retry_after),
            )
        return RateLimitStatus(scope, count, limit, limit - count, retry_after)

    def status(self, scope: str, key: str, limit: int) -> RateLimitStatus:
        """Current counter state without recording a hit."""
        redis_key = self.key_for(scope, key)
        try:
            raw = self.client.get(redis_key)
            ttl = self.client.ttl(redis_key)
        except (redis.ConnectionError, redis.TimeoutError) as e:
            logger.warning("Rate limiter unavailable for %s: %s", scope, e)
            return RateLimitStatus(scope, 0, limit, limit, 0)
        count = int(raw) if raw else 0
        return RateLimitStatus(
            scope, count, limit, max(0, limit - count),
            ttl if ttl and ttl > 0 else 0, allowed=count < limit,
        )

    def reset(self, scope: str, key: str) -> None:
        try:
            self.client.delete(self.key_for(scope, key))
        except (redis.ConnectionError, redis.TimeoutError) as e:
            logger.warning("Rate limiter reset failed for %s: %s", scope, e)

    # Scope helpers

    def check_submission(self, actor_token: str) -> RateLimitStatus:
        return self.hit("submission", actor_token, settings.RATE_LIMIT_SUBMISSIONS_PER_HOUR)

    def check_email_request(self, email: str, resend: bool = False) -> RateLimitStatus:
        """Magic-link style limits, keyed on the normalized address."""
        normalized = email.strip().lower()
        if resend:
            return self.hit("magic_link_resend", normalized,
                            settings.RATE_LIMIT_MAGIC_LINK_RESEND_PER_HOUR)
        return self.hit("magic_link", normalized, settings.RATE_LIMIT_MAGIC_LINK_PER_HOUR)
