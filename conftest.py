"""
Shared pytest fixtures: an in-memory stand-in for the redis.asyncio client,
fake repositories that count database access, and a wired SentenceService.
"""

import asyncio
import os
import random
import time

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")

from cache_redis import SentenceCache
from db import Category, Sentence
from exceptions import StoreUnavailableError
from models import SentenceDto
from random_ids import RandomIdGenerator
from sentence_service import SentenceService


class FakePipeline:
    """Queues commands; execute() applies them together, like MULTI/EXEC."""

    def __init__(self, redis):
        self.redis = redis
        self.ops = []

    def get(self, key):
        self.ops.append((self.redis._get, (key,), {}))
        return self

    def set(self, key, value, ex=None, nx=False):
        self.ops.append((self.redis._set, (key, value), {"ex": ex, "nx": nx}))
        return self

    def incr(self, key):
        self.ops.append((self.redis._incr, (key,), {}))
        return self

    def ttl(self, key):
        self.ops.append((self.redis._ttl, (key,), {}))
        return self

    async def execute(self):
        await self.redis._round_trip()
        results = [op(*args, **kwargs) for op, args, kwargs in self.ops]
        self.ops = []
        return results


class FakeRedis:
    """
    Minimal async Redis: string values with expiry, plus call recording.

    Every command yields to the event loop once before it runs, so concurrent
    callers interleave between commands the way they do against a server.
    Set fail=True to make every command raise redis ConnectionError.
    """

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.data: dict[str, str] = {}
        self.expiry: dict[str, float] = {}
        self.get_calls: list[str] = []
        self.mget_calls: list[list[str]] = []
        self.setex_calls: list[tuple[str, int, str]] = []

    async def _round_trip(self):
        await asyncio.sleep(0)
        if self.fail:
            raise RedisConnectionError("Connection refused")

    def _alive(self, key):
        deadline = self.expiry.get(key)
        if deadline is not None and deadline <= time.time():
            self.data.pop(key, None)
            self.expiry.pop(key, None)
        return key in self.data

    def _get(self, key):
        return self.data[key] if self._alive(key) else None

    def _set(self, key, value, ex=None, nx=False):
        if nx and self._alive(key):
            return None
        self.data[key] = str(value)
        self.expiry.pop(key, None)
        if ex:
            self.expiry[key] = time.time() + ex
        return True

    def _incr(self, key):
        value = int(self._get(key) or 0) + 1
        self.data[key] = str(value)
        return value

    def _ttl(self, key):
        if not self._alive(key):
            return -2
        deadline = self.expiry.get(key)
        return -1 if deadline is None else max(0, round(deadline - time.time()))

    async def ping(self):
        await self._round_trip()
        return True

    async def get(self, key):
        self.get_calls.append(key)
        await self._round_trip()
        return self._get(key)

    async def mget(self, keys):
        self.mget_calls.append(list(keys))
        await self._round_trip()
        return [self._get(key) for key in keys]

    async def setex(self, key, seconds, value):
        self.setex_calls.append((key, seconds, value))
        await self._round_trip()
        return self._set(key, value, ex=seconds)

    async def set(self, key, value, ex=None, nx=False):
        await self._round_trip()
        return self._set(key, value, ex=ex, nx=nx)

    async def incr(self, key):
        await self._round_trip()
        return self._incr(key)

    async def ttl(self, key):
        await self._round_trip()
        return self._ttl(key)

    async def scan(self, cursor, match=None, count=None):
        await self._round_trip()
        prefix = match.rstrip("*") if match else ""
        return 0, [key for key in list(self.data) if key.startswith(prefix) and self._alive(key)]

    async def delete(self, *keys):
        await self._round_trip()
        return sum(1 for key in keys if self.data.pop(key, None) is not None)

    def pipeline(self, transaction=True):
        return FakePipeline(self)

    async def aclose(self):
        pass


def make_sentence(sentence_id: int, text: str, language: str = "en", sort: str = "proverb",
                  author: str | None = None) -> Sentence:
    category = Category(language=language, type="saying", sort=sort)
    return Sentence(id=sentence_id, text=text, author=author, category=category)


def dto(sentence_id: int, text: str, language: str = "en", sort: str = "proverb") -> SentenceDto:
    return SentenceDto(id=sentence_id, text=text, author=None, language=language, type="saying", sort=sort)


class FakeSentenceRepository:
    """Dictionary-backed SentenceRepository that records every call."""

    def __init__(self, sentences=(), fail: bool = False):
        self.sentences = {s.id: s for s in sentences}
        self.fail = fail
        self.find_by_id_calls: list[int] = []
        self.find_all_by_id_calls: list[list[int]] = []

    @property
    def access_count(self) -> int:
        return len(self.find_by_id_calls) + len(self.find_all_by_id_calls)

    async def find_by_id(self, sentence_id):
        self.find_by_id_calls.append(sentence_id)
        if self.fail:
            raise StoreUnavailableError("database down")
        return self.sentences.get(sentence_id)

    async def find_all_by_id(self, sentence_ids):
        ids = list(sentence_ids)
        self.find_all_by_id_calls.append(ids)
        if self.fail:
            raise StoreUnavailableError("database down")
        # Unordered on purpose, like a real IN (...) query
        return [self.sentences[i] for i in sorted(set(ids), reverse=True) if i in self.sentences]

    async def find_max_id(self):
        return max(self.sentences, default=0)


class FakeCategoryRepository:
    """Returns canned sampler results per language / sort."""

    def __init__(self, by_language=None, by_sort=None):
        self.by_language = by_language or {}
        self.by_sort = by_sort or {}
        self.calls: list[tuple[str, str, int]] = []

    async def find_random_sentence_ids_by_language(self, language, count):
        self.calls.append(("language", language, count))
        return list(self.by_language.get(language, []))[:count]

    async def find_random_sentence_ids_by_sort(self, sort, count):
        self.calls.append(("sort", sort, count))
        return list(self.by_sort.get(sort, []))[:count]


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def cache(fake_redis):
    sentence_cache = SentenceCache(redis_url="redis://fake", ttl_minutes=10)
    sentence_cache.client = fake_redis
    return sentence_cache


@pytest.fixture
def sentences():
    return [
        make_sentence(1, "a"),
        make_sentence(2, "b"),
        make_sentence(3, "c", language="ko", sort="quote"),
        make_sentence(4, "d", language="ko", sort="quote"),
    ]


@pytest.fixture
def sentence_repository(sentences):
    return FakeSentenceRepository(sentences)


@pytest.fixture
def category_repository():
    return FakeCategoryRepository(
        by_language={"en": [1, 2], "ko": [3, 4]},
        by_sort={"proverb": [1, 2], "quote": [3, 4]},
    )


@pytest.fixture
def service(cache, sentence_repository, category_repository):
    return SentenceService(
        cache=cache,
        sentence_repository=sentence_repository,
        category_repository=category_repository,
        random_id_generator=RandomIdGenerator(sentence_repository.find_max_id, rng=random.Random(7)),
        rng=random.Random(7),
    )
