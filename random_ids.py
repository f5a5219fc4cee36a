"""Random sentence-id generation for the unfiltered sampling path."""

import logging
import random
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


class RandomIdGenerator:
    """
    Draws distinct ids uniformly from 1..max_id.

    Sentence ids are assigned sequentially by the database and sentences are
    never deleted by this service, so every id in that range is a valid
    candidate. An id that was removed out-of-band is dropped later by the batch
    lookup rather than failing the request.

    max_id is read from the store on every call (one SELECT max(id)), so
    sentences inserted while the service runs are part of the population.
    """

    def __init__(self, max_id_provider: Callable[[], Awaitable[int]], rng: random.Random | None = None):
        self._max_id_provider = max_id_provider
        self._rng = rng or random.Random()

    async def generate(self, count: int) -> list[int]:
        """Return min(count, max_id) distinct ids in random order."""
        if count <= 0:
            return []
        max_id = await self._max_id_provider()
        if max_id < 0:
            raise ValueError(f"max_id must be >= 0, got {max_id}")
        if max_id == 0:
            return []
        if count > max_id:
            logger.warning(f"Requested {count} ids but only {max_id} sentences exist")
            count = max_id
        return self._rng.sample(range(1, max_id + 1), count)
