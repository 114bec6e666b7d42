"""Tests for loading and validating the field registry."""

import json

import jsonschema
import pytest
import yaml

from catalog.registry import Registry
from catalog.settings import DEFAULT_FIELDS_FILE


def minimal(**entity):
    base = {"table": "movies", "fields": {"name": {"type": "TEXT", "column": "name"}}}
    base.update(entity)
    return {"entities": {"movies": base}}


def test_default_registry(entity):
    assert entity.table == "movies"
    assert entity.vote_min == 0 and entity.vote_max == 4
    assert entity.field("actors").many
    assert entity.field("votes.count").relation.table == "movie_vote_aggregates"
    assert entity.field("votes.average").expression
    assert entity.field("name").sortable
    assert not entity.field("actors").sortable
    assert entity.field("votes.sum").path == ("votes", "sum")


def test_unknown_entity():
    registry = Registry(DEFAULT_FIELDS_FILE)
    registry.load()
    with pytest.raises(KeyError):
        registry.ensure_entity("books")


def test_missing_file(tmp_path):
    with pytest.raises(RuntimeError):
        Registry(tmp_path / "nope.yaml").load()


def test_json_registry(tmp_path):
    path = tmp_path / "fields.json"
    path.write_text(json.dumps(minimal(votes={"minValue": 1, "maxValue": 5})))
    registry = Registry(path)
    registry.load()
    movies = registry.ensure_entity("movies")
    assert (movies.vote_min, movies.vote_max) == (1, 5)


def test_yaml_registry_round_trip(tmp_path):
    path = tmp_path / "fields.yml"
    path.write_text(yaml.safe_dump(minimal()))
    registry = Registry(path)
    registry.load()
    assert list(registry.ensure_entity("movies").fields) == ["name"]


@pytest.mark.parametrize("cfg", [
    {},
    {"entities": {}},
    minimal(fields={}),
    minimal(fields={"name": {"type": "STRING", "column": "name"}}),
    minimal(fields={"name": {"type": "TEXT"}}),
    minimal(fields={"name": {"type": "TEXT", "column": "name", "expression": "1"}}),
    minimal(fields={"bad-name": {"type": "TEXT", "column": "x"}}),
    minimal(fields={"a": {"type": "TEXT", "column": "a", "relation": {"table": "t"}}}),
    minimal(maxPageSize=0),
    minimal(colour="red"),
])
def test_schema_violations(cfg):
    with pytest.raises(jsonschema.ValidationError):
        Registry(DEFAULT_FIELDS_FILE).parse(cfg)


def test_inverted_vote_range():
    with pytest.raises(RuntimeError):
        Registry(DEFAULT_FIELDS_FILE).parse(minimal(votes={"minValue": 5, "maxValue": 1}))


def test_page_sizes_are_capped():
    registry = Registry(DEFAULT_FIELDS_FILE, global_max_page_size=50, default_page_size=20)
    movies = registry.parse(minimal(maxPageSize=500, defaultPageSize=80))["movies"]
    assert movies.max_page_size == 50
    assert movies.default_page_size == 50

    movies = registry.parse(minimal())["movies"]
    assert (movies.max_page_size, movies.default_page_size) == (50, 20)
