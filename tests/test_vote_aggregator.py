"""Tests for the vote write path: dedup, revision, validation and concurrency."""

import asyncio

import pytest

from catalog.errors import NotFoundError, ValidationError
from catalog.votes.aggregator import KeyedLock, VoteAggregator
from catalog.votes.models import VoteAggregate, vote_delta

from conftest import run, seed_movies


@pytest.fixture
def aggregator(memory_repo, entity):
    return VoteAggregator(memory_repo, min_value=entity.vote_min, max_value=entity.vote_max)


def test_vote_delta():
    assert vote_delta(None, 3) == (1, 3)
    assert vote_delta(3, 1) == (0, -2)
    assert vote_delta(2, 2) == (0, 0)


def test_average_of_empty_aggregate_is_none():
    assert VoteAggregate().average is None
    assert VoteAggregate().to_dict() == {"count": 0, "sum": 0, "average": None, "distribution": {}}


def test_first_vote(memory_repo, aggregator):
    movie = seed_movies(memory_repo)["Up"]
    agg = run(aggregator.record_vote(movie.id, "ana", 3))
    assert (agg.count, agg.sum, agg.average) == (1, 3, 3.0)


def test_same_vote_twice_changes_nothing(memory_repo, aggregator):
    movie = seed_movies(memory_repo)["Up"]
    first = run(aggregator.record_vote(movie.id, "ana", 3))
    second = run(aggregator.record_vote(movie.id, "ana", 3))
    assert first == second
    assert (second.count, second.sum) == (1, 3)


def test_revision_moves_sum_not_count(memory_repo):
    aggregator = VoteAggregator(memory_repo, min_value=1, max_value=5)
    movie = seed_movies(memory_repo)["Up"]
    run(aggregator.record_vote(movie.id, "bo", 2))
    run(aggregator.record_vote(movie.id, "ana", 3))

    agg = run(aggregator.record_vote(movie.id, "ana", 5))

    assert (agg.count, agg.sum) == (2, 7)
    assert agg.distribution == {2: 1, 5: 1}


@pytest.mark.parametrize("value", [-1, 5, 100, True, 2.0, "3", None])
def test_invalid_values_leave_aggregate_untouched(memory_repo, aggregator, value):
    movie = seed_movies(memory_repo)["Up"]
    run(aggregator.record_vote(movie.id, "ana", 2))

    with pytest.raises(ValidationError) as exc:
        run(aggregator.record_vote(movie.id, "bo", value))

    assert exc.value.key == "value"
    agg = run(memory_repo.get_vote_aggregate(movie.id))
    assert (agg.count, agg.sum) == (1, 2)


def test_bounds_are_inclusive(memory_repo, aggregator):
    movie = seed_movies(memory_repo)["Up"]
    run(aggregator.record_vote(movie.id, "ana", 0))
    agg = run(aggregator.record_vote(movie.id, "bo", 4))
    assert (agg.count, agg.sum) == (2, 4)


def test_unknown_movie(aggregator):
    with pytest.raises(NotFoundError):
        run(aggregator.record_vote("missing", "ana", 1))


def test_inverted_range_is_rejected(memory_repo):
    with pytest.raises(ValueError):
        VoteAggregator(memory_repo, min_value=5, max_value=1)


def test_concurrent_distinct_voters(repo, entity):
    aggregator = VoteAggregator(repo, min_value=entity.vote_min, max_value=entity.vote_max)
    movie = seed_movies(repo)["Toy Story"]

    async def burst():
        return await asyncio.gather(
            *(aggregator.record_vote(movie.id, f"voter-{i}", i % 5) for i in range(50))
        )

    run(burst())

    agg = run(repo.get_vote_aggregate(movie.id))
    assert agg.count == 50
    assert agg.sum == sum(i % 5 for i in range(50))
    assert sum(agg.distribution.values()) == 50
    assert len(aggregator._locks) == 0


def test_concurrent_revisions_by_one_voter(repo, entity):
    aggregator = VoteAggregator(repo, min_value=entity.vote_min, max_value=entity.vote_max)
    movie = seed_movies(repo)["Up"]

    async def burst():
        return await asyncio.gather(
            *(aggregator.record_vote(movie.id, "ana", v) for v in (1, 4, 2, 4, 0, 3))
        )

    results = run(burst())

    agg = run(repo.get_vote_aggregate(movie.id))
    assert agg.count == 1
    assert agg.sum == 3
    assert results[-1] == agg


class RacyRepository:
    """Upsert that yields between reading and writing the aggregate."""

    def __init__(self, inner):
        self.inner = inner
        self.votes = {}
        self.aggregate = VoteAggregate()

    async def get(self, movie_id):
        return await self.inner.get(movie_id)

    async def upsert_vote_atomic(self, movie_id, voter_id, value):
        previous = self.votes.get(voter_id)
        current = self.aggregate
        await asyncio.sleep(0)
        self.votes[voter_id] = value
        self.aggregate = current.apply(previous, value)
        return self.aggregate


def test_racy_upsert_loses_votes_without_serialization(memory_repo):
    movie = seed_movies(memory_repo)["Up"]
    racy = RacyRepository(memory_repo)

    async def burst():
        await asyncio.gather(*(racy.upsert_vote_atomic(movie.id, f"v{i}", 1) for i in range(20)))

    run(burst())
    assert racy.aggregate.count < 20


def test_per_movie_lock_serializes_racy_upserts(memory_repo):
    movie = seed_movies(memory_repo)["Up"]
    racy = RacyRepository(memory_repo)
    aggregator = VoteAggregator(racy, min_value=0, max_value=4)

    async def burst():
        await asyncio.gather(*(aggregator.record_vote(movie.id, f"v{i}", 1) for i in range(20)))

    run(burst())
    assert (racy.aggregate.count, racy.aggregate.sum) == (20, 20)


def test_keyed_lock_blocks_same_key_only():
    locks = KeyedLock()

    async def scenario():
        async with locks.hold("a"):
            same = asyncio.ensure_future(_enter(locks, "a"))
            other = asyncio.ensure_future(_enter(locks, "b"))
            await asyncio.wait_for(other, timeout=1)
            await asyncio.sleep(0)
            assert not same.done()
            assert len(locks) == 1
        await asyncio.wait_for(same, timeout=1)

    run(scenario())
    assert len(locks) == 0


async def _enter(locks, key):
    async with locks.hold(key):
        return key


def test_keyed_lock_releases_on_error():
    locks = KeyedLock()

    async def scenario():
        with pytest.raises(RuntimeError):
            async with locks.hold("a"):
                raise RuntimeError("boom")
        async with locks.hold("a"):
            pass

    run(scenario())
    assert len(locks) == 0
