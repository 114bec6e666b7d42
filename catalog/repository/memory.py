from __future__ import annotations
import dataclasses
import logging
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from ..errors import ConflictError, NotFoundError
from ..filters.models import FilterExpression, Pagination
from ..movies.models import Movie
from ..query.memory import compile_predicates, order_records, page
from ..registry import EntityConfig
from ..votes.models import VoteAggregate, VoteRecord

log = logging.getLogger("catalog.memory")

TIEBREAK = ("created_at", "id")


def _copy(movie: Movie) -> Movie:
    return dataclasses.replace(movie, actors=list(movie.actors))


class InMemoryMovieRepository:
    """
    Process-local repository. Each coroutine body runs without awaiting, so
    every method is atomic with respect to the event loop.
    """

    def __init__(self, entity: EntityConfig):
        self.entity = entity
        self._movies: Dict[str, Movie] = {}
        self._votes: Dict[Tuple[str, str], VoteRecord] = {}

    async def query(self, predicates: Sequence[FilterExpression], pagination: Pagination) -> List[Movie]:
        match = compile_predicates(self.entity, predicates)
        hits = [m for m in self._movies.values() if match(m)]
        ordered = order_records(self.entity, hits, pagination, TIEBREAK)
        return [_copy(m) for m in page(ordered, pagination)]

    async def count(self, predicates: Sequence[FilterExpression]) -> int:
        match = compile_predicates(self.entity, predicates)
        return sum(1 for m in self._movies.values() if match(m))

    async def get(self, movie_id: str) -> Optional[Movie]:
        movie = self._movies.get(movie_id)
        return _copy(movie) if movie else None

    async def exists(self, criteria: Mapping[str, str]) -> bool:
        return any(
            all(getattr(m, k, None) == v for k, v in criteria.items())
            for m in self._movies.values()
        )

    async def save(self, movie: Movie) -> Movie:
        if any(m.name == movie.name and m.id != movie.id for m in self._movies.values()):
            raise ConflictError(f"Movie already exists with name: {movie.name}")
        self._movies[movie.id] = _copy(movie)
        return _copy(movie)

    async def get_vote_aggregate(self, movie_id: str) -> Optional[VoteAggregate]:
        movie = self._movies.get(movie_id)
        if movie is None:
            raise NotFoundError(f"Movie not found with uuid: {movie_id}")
        return movie.votes

    async def upsert_vote_atomic(self, movie_id: str, voter_id: str, value: int) -> VoteAggregate:
        movie = self._movies.get(movie_id)
        if movie is None:
            raise NotFoundError(f"Movie not found with uuid: {movie_id}")

        current = self._votes.get((movie_id, voter_id))
        previous = current.value if current else None
        aggregate = (movie.votes or VoteAggregate()).apply(previous, value)
        if previous != value:
            self._votes[(movie_id, voter_id)] = VoteRecord(movie_id, voter_id, value)
            movie.votes = aggregate
            log.debug("vote %s/%s: %s -> %s", movie_id, voter_id, previous, value)
        return aggregate
