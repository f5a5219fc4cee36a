"""Sentence Redis Cache Layer - id -> SentenceDto entries with a fixed TTL."""

import logging
import os
from typing import Optional, Sequence

import redis.asyncio as redis
from pydantic import ValidationError

import metrics
from models import SentenceDto
from validation import Threshold

logger = logging.getLogger(__name__)


class SentenceCache:
    """
    Redis-backed cache of SentenceDto values keyed by sentence id.

    Every public method is fail-open: a Redis error, a missing connection or a
    corrupt entry is logged and reported as a miss (or a skipped write). No
    Redis exception ever reaches the caller.
    """

    def __init__(
        self,
        redis_url: str | None = None,
        ttl_minutes: int = Threshold.CACHE_DURATION_MINUTE,
        key_prefix: str = "sentence:cache:",
    ) -> None:
        """Initialize Redis cache with URL, TTL in minutes, and key prefix."""
        self.redis_url = redis_url or os.getenv("REDIS_URL")
        if not self.redis_url:
            raise ValueError("Redis URL required. Set REDIS_URL env var or pass redis_url parameter.")
        if ttl_minutes <= 0:
            raise ValueError(f"ttl_minutes must be positive, got {ttl_minutes}")
        self.ttl_seconds = int(ttl_minutes) * 60
        self.key_prefix = key_prefix
        self.client: Optional[redis.Redis] = None

    async def connect(self) -> None:
        """Establish Redis connection."""
        try:
            self.client = await redis.from_url(self.redis_url, encoding="utf-8", decode_responses=True)
            if self.client:
                await self.client.ping()
            logger.info("Connected to Redis")
        except Exception as e:
            logger.error(f"Redis connection failed: {e}")
            raise

    def _make_key(self, sentence_id: int) -> str:
        """Create Redis key from sentence id with prefix."""
        return f"{self.key_prefix}{sentence_id}"

    def _decode(self, sentence_id: int, raw) -> Optional[SentenceDto]:
        if raw is None:
            return None
        try:
            return SentenceDto.decode(raw)
        except ValidationError as e:
            logger.warning(f"Discarding undecodable cache entry for sentence {sentence_id}: {e}")
            return None

    async def get(self, sentence_id: int) -> Optional[SentenceDto]:
        """Retrieve one cached sentence, or None on miss."""
        if not self.client:
            return None

        try:
            raw = await self.client.get(self._make_key(sentence_id))
        except Exception as e:
            logger.error(f"Redis GET error: {e}")
            metrics.record_cache_error("get")
            return None
        return self._decode(sentence_id, raw)

    async def multi_get(self, sentence_ids: Sequence[int]) -> list[tuple[int, Optional[SentenceDto]]]:
        """
        Look up many ids in one MGET round-trip.

        Returns one (id, dto-or-None) pair per requested id, in request order.
        If Redis is down, errors, or answers with the wrong number of values,
        every pair is a miss.
        """
        ids = list(sentence_ids)
        if not ids:
            return []
        all_missing = [(sentence_id, None) for sentence_id in ids]

        if not self.client:
            return all_missing

        try:
            values = await self.client.mget([self._make_key(sentence_id) for sentence_id in ids])
        except Exception as e:
            logger.error(f"Redis MGET error: {e}")
            metrics.record_cache_error("multi_get")
            return all_missing

        if values is None or len(values) != len(ids):
            logger.warning(f"Redis MGET returned no usable data for {len(ids)} keys")
            return all_missing

        return [(sentence_id, self._decode(sentence_id, raw)) for sentence_id, raw in zip(ids, values)]

    async def set(self, sentence_id: int, sentence: SentenceDto) -> None:
        """Store one sentence with the cache TTL."""
        if not self.client:
            return

        try:
            await self.client.setex(self._make_key(sentence_id), self.ttl_seconds, sentence.encode())
        except Exception as e:
            logger.error(f"Redis SET error: {e}")
            metrics.record_cache_error("set")

    async def count_entries(self) -> int:
        """Number of sentence keys currently stored."""
        if not self.client:
            return 0

        stored_items = 0
        try:
            pattern = f"{self.key_prefix}*"
            cursor = 0
            while True:
                cursor, keys = await self.client.scan(cursor, match=pattern, count=100)
                stored_items += len(keys)
                if cursor == 0:
                    break
        except Exception as e:
            logger.error(f"Error counting Redis keys: {e}")
        return stored_items

    async def disconnect(self) -> None:
        """Close Redis connection."""
        if self.client:
            await self.client.aclose()
            logger.info("Redis connection closed")
