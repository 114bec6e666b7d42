"""Pytest configuration and fixtures."""

import asyncio
import datetime as dt
import sqlite3

import pytest

from catalog.database import sqlite_connect_for
from catalog.filters.translator import FilterTranslator
from catalog.movies.models import Movie
from catalog.registry import Registry
from catalog.repository import InMemoryMovieRepository, SqlMovieRepository
from catalog.settings import DEFAULT_FIELDS_FILE

SEED = [
    ("The Avengers", "Joss Whedon", "action", ["Robert Downey Jr.", "Chris Evans"]),
    ("Avengers: Endgame", "Russo Brothers", "action", ["Robert Downey Jr.", "Chris Hemsworth"]),
    ("Up", "Pete Docter", "animation", ["Ed Asner"]),
    ("Toy Story", "John Lasseter", "animation", ["Tom Hanks", "Tim Allen"]),
    ("Cast Away", "Robert Zemeckis", "drama", ["Tom Hanks"]),
]


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def entity():
    registry = Registry(DEFAULT_FIELDS_FILE)
    registry.load()
    return registry.ensure_entity("movies")


@pytest.fixture
def translator(entity):
    return FilterTranslator(entity)


@pytest.fixture
def memory_repo(entity):
    return InMemoryMovieRepository(entity)


@pytest.fixture
def sqlite_repo(entity, tmp_path):
    connect = sqlite_connect_for(str(tmp_path / "catalog.db"))
    return SqlMovieRepository(
        entity,
        connect,
        paramstyle="qmark",
        integrity_errors=(sqlite3.IntegrityError,),
    )


@pytest.fixture(params=["memory", "sqlite"])
def repo(request):
    """Each backend in turn; tests using it must pass on both."""
    return request.getfixturevalue(f"{request.param}_repo")


def seed_movies(repo):
    """Save the SEED movies one day apart; returns them keyed by name."""
    base = dt.datetime(2020, 1, 1, tzinfo=dt.timezone.utc)
    saved = {}
    for i, (name, director, gender, actors) in enumerate(SEED):
        movie = Movie.new(name, director, gender, actors)
        movie.created_at = base + dt.timedelta(days=i)
        saved[name] = run(repo.save(movie))
    return saved


@pytest.fixture
def jwt_secret(monkeypatch):
    monkeypatch.setenv("APP_JWT_SECRET", "test-secret-with-enough-length-for-hs256")
    monkeypatch.delenv("APP_JWT_ISS", raising=False)
    monkeypatch.delenv("APP_JWT_AUD", raising=False)
    monkeypatch.delenv("ACCESS_TOKEN_TTL_SECONDS", raising=False)
    return "test-secret-with-enough-length-for-hs256"
