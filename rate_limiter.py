"""
Rate Limiter - fixed request window per client address, counted in Redis.

RESPONSIBILITY:
    Reject clients that request sentences faster than the configured rate
    with 429 SC_TOO_MANY_REQUESTS. Counters live in Redis, so every API
    instance shares the same windows.

ALGORITHM:
    One counter per client per window. The first request of a window creates
    the key with a TTL of window_seconds; every request INCRs it. The
    create, increment and TTL read run in a single MULTI/EXEC, so concurrent
    requests never observe the same count. A count above max_requests is
    rejected until the key expires.

FAILURE MODE:
    Redis down or erroring -> request allowed (fail-open), same as the cache.
"""

import logging
import time
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class FixedWindowRateLimiter:
    """
    Fixed-window rate limiter with Redis backing.

    Redis keys:
    - `ratelimit:{client}` = requests seen in the current window, expires with it
    """

    def __init__(
        self,
        redis_client: Optional[redis.Redis],
        max_requests: int = 100,
        window_seconds: int = 60,
        key_prefix: str = "ratelimit:"
    ):
        """
        Args:
            redis_client: Redis connection (shared with the sentence cache)
            max_requests: Requests allowed per window
            window_seconds: Window length, counted from a client's first request
            key_prefix: Redis key prefix for rate limit data
        """
        if max_requests <= 0 or window_seconds <= 0:
            raise ValueError("max_requests and window_seconds must be positive")
        self.redis = redis_client
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.key_prefix = key_prefix

    def _allow_all(self) -> tuple[bool, dict]:
        return True, {"remaining": self.max_requests, "reset_at": 0, "limit": self.max_requests}

    async def check_rate_limit(self, client_key: str) -> tuple[bool, dict]:
        """
        Count one request for client_key in its current window.

        Returns:
            (allowed, info) where info = {"remaining": int, "reset_at": int, "limit": int}
        """
        if not self.redis:
            logger.warning("Redis unavailable, rate limiting disabled (fail-open)")
            return self._allow_all()

        key = f"{self.key_prefix}{client_key}"
        try:
            pipe = self.redis.pipeline(transaction=True)
            pipe.set(key, 0, ex=self.window_seconds, nx=True)
            pipe.incr(key)
            pipe.ttl(key)
            _, count, ttl = await pipe.execute()
        except (RedisError, OSError) as e:
            logger.error(f"Rate limiter error: {e}, failing open")
            return self._allow_all()

        count = int(count)
        # -1 (no expiry) or -2 (gone) should not happen inside MULTI; fall back to a full window
        seconds_left = ttl if ttl and ttl > 0 else self.window_seconds
        info = {
            "remaining": max(0, self.max_requests - count),
            "reset_at": int(time.time()) + seconds_left,
            "limit": self.max_requests,
        }
        return count <= self.max_requests, info
