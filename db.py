"""
Sentence API Database Models

SQLAlchemy async engine setup and the two tables the service reads:
categories and the sentences they own.
"""

import logging
import os
from typing import Optional

from sqlalchemy import ForeignKey, Integer, String, Text
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "postgresql+asyncpg://localhost:5432/sentence"


class Base(DeclarativeBase):
    """Canonical Base class for all database models."""

    pass


class Category(Base):
    """Category grouping: language, type and sort. Owns its sentences."""

    __tablename__ = "category"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    language: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    sort: Mapped[str] = mapped_column(String(50), nullable=False, index=True)

    sentences: Mapped[list["Sentence"]] = relationship(
        "Sentence", back_populates="category", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Category(id={self.id}, language={self.language}, sort={self.sort})>"


class Sentence(Base):
    """A single sentence. Belongs to exactly one category."""

    __tablename__ = "sentence"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    author: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    category_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("category.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Eager: SentenceDto.of() reads category fields after the session closes
    category: Mapped[Category] = relationship("Category", back_populates="sentences", lazy="joined")

    def __repr__(self) -> str:
        return f"<Sentence(id={self.id}, category_id={self.category_id})>"


def create_engine(database_url: str | None = None) -> AsyncEngine:
    """Create async engine from URL or DATABASE_URL env var."""
    url = database_url or os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)
    echo = os.getenv("SQL_ECHO", "false").lower() == "true"
    engine = create_async_engine(url, echo=echo, pool_pre_ping=True)
    logger.info(f"Database engine created ({engine.url.drivername})")
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Session factory used by the repositories. One session per query."""
    return async_sessionmaker(engine, expire_on_commit=False)
