from __future__ import annotations
from typing import List, Mapping, Optional, Protocol, Sequence, runtime_checkable

from ..filters.models import FilterExpression, Pagination
from ..movies.models import Movie
from ..votes.models import VoteAggregate


@runtime_checkable
class Repository(Protocol):
    """Storage capability the catalog core depends on.

    Implementations compile predicates with their own backend compiler and
    must apply `upsert_vote_atomic` as a single all-or-nothing unit.
    """

    async def query(self, predicates: Sequence[FilterExpression], pagination: Pagination) -> List[Movie]:
        ...

    async def count(self, predicates: Sequence[FilterExpression]) -> int:
        ...

    async def get(self, movie_id: str) -> Optional[Movie]:
        ...

    async def exists(self, criteria: Mapping[str, str]) -> bool:
        ...

    async def save(self, movie: Movie) -> Movie:
        ...

    async def get_vote_aggregate(self, movie_id: str) -> Optional[VoteAggregate]:
        ...

    async def upsert_vote_atomic(self, movie_id: str, voter_id: str, value: int) -> VoteAggregate:
        """Insert or revise one voter's vote and shift the aggregate to match."""
        ...
