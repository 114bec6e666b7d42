from __future__ import annotations
import logging
from typing import Any, Dict, List, NamedTuple

from ..errors import ConflictError, NotFoundError
from ..filters.models import Pagination
from ..filters.translator import FilterTranslator, RawQuery
from ..registry import EntityConfig
from ..repository.base import Repository
from ..votes.aggregator import VoteAggregator
from ..votes.models import VoteAggregate
from .models import Movie
from .schemas import MovieToSave

log = logging.getLogger("catalog.movies")


class MoviePage(NamedTuple):
    items: List[Movie]
    pagination: Pagination
    total: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [m.to_dict() for m in self.items],
            "page": self.pagination.page,
            "limit": self.pagination.limit,
            "total": self.total,
        }


class MovieService:
    """List/get/create/vote over movies; HTTP concerns stay in catalog.main."""

    def __init__(self, repository: Repository, entity: EntityConfig):
        self.repository = repository
        self.entity = entity
        self.translator = FilterTranslator(entity)
        self.aggregator = VoteAggregator(
            repository, min_value=entity.vote_min, max_value=entity.vote_max
        )

    async def list(self, raw_query: RawQuery) -> MoviePage:
        predicates, pagination = self.translator.translate(raw_query)
        items = await self.repository.query(predicates, pagination)
        total = await self.repository.count(predicates)
        return MoviePage(items, pagination, total)

    async def get(self, movie_id: str) -> Movie:
        movie = await self.repository.get(movie_id)
        if movie is None:
            raise NotFoundError(f"Movie not found with uuid: {movie_id}")
        return movie

    async def create(self, payload: MovieToSave) -> Movie:
        if await self.repository.exists({"name": payload.name}):
            raise ConflictError(f"Movie already exists with name: {payload.name}")
        movie = await self.repository.save(
            Movie.new(payload.name, payload.director, payload.gender, payload.actors)
        )
        log.info("movie created id=%s name=%s", movie.id, movie.name)
        return movie

    async def vote(self, movie_id: str, voter_id: str, value: int) -> VoteAggregate:
        return await self.aggregator.record_vote(movie_id, voter_id, value)

    async def votes_for(self, movie_id: str) -> VoteAggregate:
        return await self.repository.get_vote_aggregate(movie_id) or VoteAggregate()
