"""Request parameter checks shared by the random-sampling endpoints."""

import os
from enum import IntEnum
from typing import Iterable

from exceptions import LanguageNotFoundError, RangeOutOfBoundError, SortNotFoundError

DEFAULT_LANGUAGES = "ko,en"
DEFAULT_SORTS = "proverb,quote,lyrics,poem,speech"


class Threshold(IntEnum):
    """Policy numbers for counts and cache lifetime."""

    MIN_COUNT = 1
    MAX_COUNT = 100
    CACHE_DURATION_MINUTE = 10


def _parse_csv(raw: str) -> frozenset[str]:
    return frozenset(item.strip() for item in raw.split(",") if item.strip())


def supported_languages() -> frozenset[str]:
    return _parse_csv(os.getenv("SUPPORTED_LANGUAGES", DEFAULT_LANGUAGES))


def supported_sorts() -> frozenset[str]:
    return _parse_csv(os.getenv("SUPPORTED_SORTS", DEFAULT_SORTS))


def validate_count(count: int) -> None:
    # bool is an int subclass; True must not pass as a count of 1
    if isinstance(count, bool) or not isinstance(count, int):
        raise RangeOutOfBoundError(f"count must be an integer, got {count!r}")
    if not Threshold.MIN_COUNT <= count <= Threshold.MAX_COUNT:
        raise RangeOutOfBoundError(
            f"count must be between {int(Threshold.MIN_COUNT)} and {int(Threshold.MAX_COUNT)}, got {count}"
        )


def validate_language(language: str, allowed: Iterable[str] | None = None) -> None:
    allowed = supported_languages() if allowed is None else allowed
    if language not in allowed:
        raise LanguageNotFoundError(f"Unknown language: {language!r}")


def validate_sort(sort: str, allowed: Iterable[str] | None = None) -> None:
    allowed = supported_sorts() if allowed is None else allowed
    if sort not in allowed:
        raise SortNotFoundError(f"Unknown category sort: {sort!r}")
