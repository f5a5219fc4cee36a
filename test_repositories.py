"""Repository tests on an in-memory SQLite database (aiosqlite driver)."""

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from db import Base, Category, Sentence, create_session_factory
from exceptions import StoreUnavailableError
from repositories import CategoryRepository, SentenceRepository


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session_factory(engine):
    factory = create_session_factory(engine)
    async with factory() as session:
        english = Category(language="en", type="saying", sort="proverb")
        korean = Category(language="ko", type="saying", sort="quote")
        english.sentences = [
            Sentence(id=1, text="a"),
            Sentence(id=2, text="b", author="someone"),
        ]
        korean.sentences = [
            Sentence(id=3, text="c"),
            Sentence(id=4, text="d"),
            Sentence(id=5, text="e"),
        ]
        session.add_all([english, korean])
        await session.commit()
    return factory


class BrokenSessionFactory:
    """Session factory whose sessions fail to open, like an unreachable database."""

    def __call__(self):
        return self

    async def __aenter__(self):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    async def __aexit__(self, *exc):
        return False


class TestSentenceRepository:

    async def test_find_by_id_loads_category(self, session_factory):
        sentence = await SentenceRepository(session_factory).find_by_id(2)

        assert sentence.text == "b"
        assert sentence.author == "someone"
        assert sentence.category.language == "en"
        assert sentence.category.sort == "proverb"

    async def test_find_by_id_unknown(self, session_factory):
        assert await SentenceRepository(session_factory).find_by_id(99) is None

    async def test_find_all_by_id_omits_unknown(self, session_factory):
        sentences = await SentenceRepository(session_factory).find_all_by_id([5, 1, 99])

        assert sorted(s.id for s in sentences) == [1, 5]
        assert {s.id: s.category.language for s in sentences} == {1: "en", 5: "ko"}

    async def test_find_all_by_id_empty(self, session_factory):
        assert await SentenceRepository(session_factory).find_all_by_id([]) == []

    async def test_find_max_id(self, session_factory):
        assert await SentenceRepository(session_factory).find_max_id() == 5

    async def test_find_max_id_empty_table(self, engine):
        assert await SentenceRepository(create_session_factory(engine)).find_max_id() == 0

    async def test_store_failure_raises_domain_error(self):
        repository = SentenceRepository(BrokenSessionFactory())

        with pytest.raises(StoreUnavailableError) as exc_info:
            await repository.find_all_by_id([1])
        assert isinstance(exc_info.value.__cause__, OperationalError)

        with pytest.raises(StoreUnavailableError):
            await repository.find_by_id(1)


class TestCategoryRepository:

    async def test_random_ids_by_language(self, session_factory):
        ids = await CategoryRepository(session_factory).find_random_sentence_ids_by_language("ko", 2)

        assert len(ids) == 2
        assert len(set(ids)) == 2
        assert set(ids) <= {3, 4, 5}

    async def test_random_ids_by_language_short_population(self, session_factory):
        ids = await CategoryRepository(session_factory).find_random_sentence_ids_by_language("en", 10)

        assert sorted(ids) == [1, 2]

    async def test_random_ids_by_sort(self, session_factory):
        ids = await CategoryRepository(session_factory).find_random_sentence_ids_by_sort("quote", 10)

        assert sorted(ids) == [3, 4, 5]

    async def test_random_ids_no_match(self, session_factory):
        assert await CategoryRepository(session_factory).find_random_sentence_ids_by_sort("poem", 3) == []

    async def test_sampler_failure_raises_domain_error(self):
        with pytest.raises(StoreUnavailableError):
            await CategoryRepository(BrokenSessionFactory()).find_random_sentence_ids_by_sort("quote", 1)


async def test_deleting_category_removes_its_sentences(session_factory):
    async with session_factory() as session:
        category = (await session.execute(select(Category).where(Category.language == "ko"))).scalar_one()
        await session.delete(category)
        await session.commit()

    remaining = await SentenceRepository(session_factory).find_all_by_id([1, 2, 3, 4, 5])
    assert sorted(s.id for s in remaining) == [1, 2]
