"""
Sentence API Models
Transfer and response schemas using Pydantic.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SentenceDto(BaseModel):
    """
    Transfer shape of a sentence: what clients receive and what Redis stores.

    The JSON produced by encode() is the cache wire format. decode() is its
    inverse and raises pydantic.ValidationError on malformed input.
    """

    id: int
    text: str
    author: Optional[str] = None
    language: str
    type: str
    sort: str

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "id": 42,
                "text": "Rome was not built in a day.",
                "author": None,
                "language": "en",
                "type": "saying",
                "sort": "proverb",
            }
        },
    )

    @classmethod
    def of(cls, sentence) -> "SentenceDto":
        """Build from a db.Sentence, flattening its category."""
        category = sentence.category
        return cls(
            id=sentence.id,
            text=sentence.text,
            author=sentence.author,
            language=category.language,
            type=category.type,
            sort=category.sort,
        )

    def encode(self) -> str:
        return self.model_dump_json()

    @classmethod
    def decode(cls, raw: str | bytes) -> "SentenceDto":
        return cls.model_validate_json(raw)


class ErrorResponse(BaseModel):
    """Body of every error response."""

    http_status: int
    error_msg: str


class HealthResponse(BaseModel):
    """Schema for GET /health responses."""

    status: str
    version: str


class MetricsResponse(BaseModel):
    """Schema for GET /v1/metrics responses."""

    cache_hits: int
    cache_misses: int
    hit_rate_percent: float
    cache_errors: int
    stored_items: int = Field(ge=0)
