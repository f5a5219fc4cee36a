"""
Sentence repositories - database access for sentences and categories.

Every query opens its own session from the injected factory. SQLAlchemy
errors are logged and re-raised as StoreUnavailableError; nothing is retried.
"""

import logging
from typing import Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

import metrics
from db import Category, Sentence
from exceptions import StoreUnavailableError

logger = logging.getLogger(__name__)


class SentenceRepository:
    """Point, batch and max-id queries on the sentence table."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def find_by_id(self, sentence_id: int) -> Optional[Sentence]:
        metrics.record_store_query("find_by_id")
        try:
            async with self.session_factory() as session:
                return await session.get(Sentence, sentence_id)
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Repository: failed to get sentence {sentence_id}: {e}", exc_info=True)
            raise StoreUnavailableError(f"Failed to load sentence {sentence_id}") from e

    async def find_all_by_id(self, sentence_ids: Iterable[int]) -> list[Sentence]:
        """
        Load every existing sentence among sentence_ids in one query.

        Result order is unspecified and unknown ids are simply absent.
        """
        ids = list(set(sentence_ids))
        if not ids:
            return []

        metrics.record_store_query("find_all_by_id")
        try:
            async with self.session_factory() as session:
                result = await session.execute(select(Sentence).where(Sentence.id.in_(ids)))
                return list(result.scalars().unique().all())
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Repository: failed to batch-load {len(ids)} sentences: {e}", exc_info=True)
            raise StoreUnavailableError("Failed to load sentences") from e

    async def find_max_id(self) -> int:
        """Largest sentence id, or 0 for an empty table."""
        metrics.record_store_query("find_max_id")
        try:
            async with self.session_factory() as session:
                result = await session.execute(select(func.max(Sentence.id)))
                return result.scalar_one_or_none() or 0
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Repository: failed to read max sentence id: {e}", exc_info=True)
            raise StoreUnavailableError("Failed to read sentence id range") from e


class CategoryRepository:
    """Random sentence-id sampling filtered through the owning category."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def _random_sentence_ids(self, operation: str, condition, count: int) -> list[int]:
        metrics.record_store_query(operation)
        stmt = (
            select(Sentence.id)
            .join(Category, Sentence.category_id == Category.id)
            .where(condition)
            .order_by(func.random())
            .limit(count)
        )
        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                return list(result.scalars().all())
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Repository: {operation} failed: {e}", exc_info=True)
            raise StoreUnavailableError("Failed to sample sentence ids") from e

    async def find_random_sentence_ids_by_language(self, language: str, count: int) -> list[int]:
        """Up to count distinct random sentence ids whose category has this language."""
        return await self._random_sentence_ids(
            "find_random_sentence_ids_by_language", Category.language == language, count
        )

    async def find_random_sentence_ids_by_sort(self, sort: str, count: int) -> list[int]:
        """Up to count distinct random sentence ids whose category has this sort."""
        return await self._random_sentence_ids(
            "find_random_sentence_ids_by_sort", Category.sort == sort, count
        )
