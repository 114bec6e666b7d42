from __future__ import annotations
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Hashable

from ..errors import NotFoundError, ValidationError
from ..repository.base import Repository
from .models import VoteAggregate

log = logging.getLogger("catalog.votes")


class KeyedLock:
    """
    One asyncio.Lock per key, created on demand and dropped once no task
    holds or waits on it. Distinct keys never contend.
    """

    def __init__(self):
        self._locks: Dict[Hashable, asyncio.Lock] = {}
        self._users: Dict[Hashable, int] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


class VoteAggregator:
    """
    Applies one voter's vote to a movie's aggregate exactly once.

    The per-movie critical section covers the existence check and the
    repository's atomic upsert, so concurrent voters on the same movie are
    serialized within this process while other movies proceed in parallel.
    """

    def __init__(self, repository: Repository, *, min_value: int, max_value: int):
        if min_value > max_value:
            raise ValueError(f"min_value {min_value} exceeds max_value {max_value}")
        self.repository = repository
        self.min_value = min_value
        self.max_value = max_value
        self._locks = KeyedLock()

    def _check_value(self, value: int) -> None:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(f"Vote value must be an integer, got {value!r}", key="value")
        if not self.min_value <= value <= self.max_value:
            raise ValidationError(
                f"Vote value must be between {self.min_value} and {self.max_value}, got {value}",
                key="value",
            )

    async def record_vote(self, movie_id: str, voter_id: str, value: int) -> VoteAggregate:
        self._check_value(value)
        async with self._locks.hold(movie_id):
            if await self.repository.get(movie_id) is None:
                raise NotFoundError(f"Movie not found with uuid: {movie_id}")
            aggregate = await self.repository.upsert_vote_atomic(movie_id, voter_id, value)
        log.info(
            "vote recorded movie=%s voter=%s value=%s count=%s sum=%s",
            movie_id, voter_id, value, aggregate.count, aggregate.sum,
        )
        return aggregate

