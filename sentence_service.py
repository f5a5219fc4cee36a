"""
Sentence Service - Cache-aside retrieval of sentences by id and by random sample.

RESPONSIBILITY:
    Resolve sentence ids (given directly, drawn at random, or sampled from the
    database by language / category sort), then read them through the Redis
    cache with the database as fallback. Misses are written back to the cache.

LAYERS:
    - API layer (main.py) handles HTTP: routing, query params, status codes
    - Service layer (this file) decides cache vs database and builds the result
    - Data layer (cache_redis.py, repositories.py) talks to Redis and SQL

FAILURE POLICY:
    Two separate paths, never one shared try/except:
    - Redis faults are absorbed inside SentenceCache and show up here as misses.
    - Database faults arrive as StoreUnavailableError and are not caught here;
      they fail the request.

CONCURRENCY:
    The service holds no mutable state. Two requests missing the same id at
    the same moment both query the database and both write the cache; the
    writes carry identical values, so the last one simply wins.
"""

import logging
import random
from typing import Optional, Sequence

from cache_redis import SentenceCache
from exceptions import SentenceNotFoundError
from models import SentenceDto
from random_ids import RandomIdGenerator
from repositories import CategoryRepository, SentenceRepository
from validation import validate_count, validate_language, validate_sort
import metrics

logger = logging.getLogger(__name__)


class SentenceService:
    """
    Service layer for sentence lookups.

    Dependencies are injected so tests can pass fake repositories and a
    SentenceCache wrapping a fake Redis client.
    """

    def __init__(
        self,
        cache: SentenceCache,
        sentence_repository: SentenceRepository,
        category_repository: CategoryRepository,
        random_id_generator: RandomIdGenerator,
        rng: Optional[random.Random] = None,
    ):
        self.cache = cache
        self.sentence_repository = sentence_repository
        self.category_repository = category_repository
        self.random_id_generator = random_id_generator
        self._rng = rng or random.Random()

    async def get_sentence_by_id(self, sentence_id: int) -> SentenceDto:
        """
        Single-id cache-aside read.

        Hit: returned without touching the database.
        Miss: loaded from the database, cached, returned.
        Unknown id: SentenceNotFoundError, and nothing is cached.
        """
        cached = await self.cache.get(sentence_id)
        if cached is not None:
            metrics.record_cache_lookup("hit")
            return cached

        metrics.record_cache_lookup("miss")
        sentence = await self.sentence_repository.find_by_id(sentence_id)
        if sentence is None:
            raise SentenceNotFoundError(f"Sentence {sentence_id} not found")

        dto = SentenceDto.of(sentence)
        await self.cache.set(sentence_id, dto)
        return dto

    async def get_random_sentences(self, count: int) -> list[SentenceDto]:
        validate_count(count)

        random_ids = await self.random_id_generator.generate(count)
        return await self._get_sentences_by_ids(random_ids)

    async def get_random_sentences_by_language(self, language: str, count: int) -> list[SentenceDto]:
        validate_language(language)
        validate_count(count)

        random_ids = await self.category_repository.find_random_sentence_ids_by_language(language, count)
        return await self._get_sentences_by_ids(random_ids)

    async def get_random_sentences_by_category_sort(self, sort: str, count: int) -> list[SentenceDto]:
        validate_sort(sort)
        validate_count(count)

        random_ids = await self.category_repository.find_random_sentence_ids_by_sort(sort, count)
        return await self._get_sentences_by_ids(random_ids)

    async def _get_sentences_by_ids(self, sentence_ids: Sequence[int]) -> list[SentenceDto]:
        """
        Batch cache-aside read.

        FLOW:
        1. One MGET for every id -> (id, dto-or-None) pairs in input order
        2. Split pairs into hits and missing ids
        3. One batched database query for the missing ids
        4. Cache each sentence the database returned, one SETEX per sentence
        5. Shuffle hits and loaded sentences together

        Ids found in neither Redis nor the database are left out; the result
        can be shorter than the input but never contains an id twice unless
        the input did.
        """
        if not sentence_ids:
            return []

        pairs = await self.cache.multi_get(sentence_ids)
        result, missing_ids = self._split_cached(pairs)

        metrics.record_cache_lookup("hit", len(result))
        metrics.record_cache_lookup("miss", len(missing_ids))

        if missing_ids:
            result.extend(await self._load_and_cache(missing_ids))

        # Order must not reveal which items came from the cache
        self._rng.shuffle(result)
        logger.debug(
            f"Resolved {len(result)}/{len(sentence_ids)} sentences "
            f"({len(sentence_ids) - len(missing_ids)} cached)"
        )
        return result

    @staticmethod
    def _split_cached(
        pairs: Sequence[tuple[int, Optional[SentenceDto]]],
    ) -> tuple[list[SentenceDto], list[int]]:
        hits: list[SentenceDto] = []
        missing_ids: list[int] = []
        for sentence_id, dto in pairs:
            if dto is None:
                missing_ids.append(sentence_id)
            else:
                hits.append(dto)
        return hits, missing_ids

    async def _load_and_cache(self, missing_ids: list[int]) -> list[SentenceDto]:
        sentences = await self.sentence_repository.find_all_by_id(missing_ids)

        loaded = []
        for sentence in sentences:
            dto = SentenceDto.of(sentence)
            await self.cache.set(sentence.id, dto)
            loaded.append(dto)

        if len(loaded) < len(missing_ids):
            logger.info(f"{len(missing_ids) - len(loaded)} requested sentence id(s) not found in database")
        return loaded
