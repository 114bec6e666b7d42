"""HTTP tests against the FastAPI app with an in-memory repository."""

import pytest
from fastapi.testclient import TestClient

from catalog.main import create_app
from catalog.repository import InMemoryMovieRepository
from catalog.session import issue_access_token
from catalog.settings import Settings

from conftest import SEED


def bearer(sub, *roles):
    return {"Authorization": f"Bearer {issue_access_token(sub, list(roles), email=f'{sub}@example.com')}"}


@pytest.fixture
def client(entity, jwt_secret):
    app = create_app(Settings(), repository=InMemoryMovieRepository(entity))
    with TestClient(app) as c:
        yield c


@pytest.fixture
def admin():
    return bearer("admin-1", "admin")


@pytest.fixture
def seeded(client, admin):
    out = {}
    for name, director, gender, actors in SEED:
        r = client.post(
            "/movies",
            json={"name": name, "director": director, "gender": gender, "actors": actors},
            headers=admin,
        )
        assert r.status_code == 200, r.text
        out[name] = r.json()
    return out


def test_healthz(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.json() == {"ok": True, "backend": "memory", "entity": "movies"}


def test_me_echoes_claims(client):
    r = client.get("/me", headers=bearer("ana", "user"))
    assert r.status_code == 200
    assert r.json() == {"sub": "ana", "email": "ana@example.com", "roles": ["user"]}


def test_me_requires_token(client):
    r = client.get("/me")
    assert r.status_code == 401
    assert r.json()["detail"] == "Missing bearer token"


def test_garbage_token_is_rejected(client):
    r = client.get("/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401
    assert r.json()["detail"] == "Invalid or expired token"


def test_create_requires_admin(client):
    payload = {"name": "Up", "director": "Pete Docter", "gender": "animation", "actors": []}
    assert client.post("/movies", json=payload).status_code == 401
    r = client.post("/movies", json=payload, headers=bearer("ana", "user"))
    assert r.status_code == 403
    assert r.json()["detail"] == "Forbidden: missing role"


def test_create_returns_movie(client, admin):
    r = client.post(
        "/movies",
        json={"name": "Up", "director": "Pete Docter", "gender": "animation", "actors": ["Ed Asner"]},
        headers=admin,
    )
    assert r.status_code == 200
    body = r.json()
    assert body["name"] == "Up"
    assert body["actors"] == ["Ed Asner"]
    assert body["votes"] == {"count": 0, "sum": 0, "average": None, "distribution": {}}
    assert body["id"] and body["createdAt"]


def test_create_duplicate_name(client, admin, seeded):
    r = client.post(
        "/movies",
        json={"name": "Up", "director": "X", "gender": "drama", "actors": []},
        headers=admin,
    )
    assert r.status_code == 409
    assert r.json()["detail"] == "Movie already exists with name: Up"


@pytest.mark.parametrize("payload", [
    {"director": "X", "gender": "drama"},
    {"name": "", "director": "X", "gender": "drama"},
    {"name": "Y", "director": "X", "gender": "drama", "actors": "Tom Hanks"},
])
def test_create_rejects_bad_payload(client, admin, payload):
    assert client.post("/movies", json=payload, headers=admin).status_code == 422


def test_get_movie(client, seeded):
    movie_id = seeded["Cast Away"]["id"]
    r = client.get(f"/movies/{movie_id}")
    assert r.status_code == 200
    assert r.json()["director"] == "Robert Zemeckis"


def test_get_unknown_movie(client):
    r = client.get("/movies/nope")
    assert r.status_code == 404
    assert r.json()["detail"] == "Movie not found with uuid: nope"


def test_list_envelope_and_filters(client, seeded):
    r = client.get("/movies", params={"name__contains": "avenger", "gender": "action", "limit": "1"})
    assert r.status_code == 200
    body = r.json()
    assert body["page"] == 1
    assert body["limit"] == 1
    assert body["total"] == 2
    assert [m["name"] for m in body["items"]] == ["The Avengers"]


def test_list_comma_separated_and_repeated_keys(client, seeded):
    by_comma = client.get("/movies?actors__in=Tom%20Hanks,Ed%20Asner").json()
    by_repeat = client.get("/movies", params=[("actors__in", "Tom Hanks"), ("actors__in", "Ed Asner")]).json()
    assert [m["name"] for m in by_comma["items"]] == ["Up", "Toy Story", "Cast Away"]
    assert by_repeat["items"] == by_comma["items"]


def test_list_orders_descending(client, seeded):
    body = client.get("/movies", params={"gender": "animation", "order": "-name"}).json()
    assert [m["name"] for m in body["items"]] == ["Up", "Toy Story"]


@pytest.mark.parametrize("query", [
    "password__contains=x",
    "name__like=Up",
    "name__contains__x=1",
    "name=Up&name=Cars",
    "page=0",
    "limit=abc",
    "votes.count__gt=lots",
    "order=actors",
])
def test_list_rejects_bad_queries(client, seeded, query):
    r = client.get(f"/movies?{query}")
    assert r.status_code == 422
    assert isinstance(r.json()["detail"], str)


def test_vote_flow(client, seeded):
    movie_id = seeded["Up"]["id"]
    ana, bo = bearer("ana", "user"), bearer("bo", "user")

    r = client.put(f"/movies/{movie_id}/votes", json={"value": 3}, headers=ana)
    assert r.status_code == 200
    assert r.json() == {"count": 1, "sum": 3, "average": 3.0, "distribution": {"3": 1}}

    r = client.put(f"/movies/{movie_id}/votes", json={"value": 3}, headers=ana)
    assert r.json()["count"] == 1

    client.put(f"/movies/{movie_id}/votes", json={"value": 1}, headers=bo)
    r = client.put(f"/movies/{movie_id}/votes", json={"value": 4}, headers=ana)
    assert r.json() == {"count": 2, "sum": 5, "average": 2.5, "distribution": {"1": 1, "4": 1}}

    assert client.get(f"/movies/{movie_id}/votes").json() == r.json()
    assert client.get(f"/movies/{movie_id}").json()["votes"] == r.json()

    listed = client.get("/movies", params={"votes.average__gte": "2.5"}).json()
    assert [m["name"] for m in listed["items"]] == ["Up"]


def test_vote_requires_user_role(client, seeded, admin):
    movie_id = seeded["Up"]["id"]
    assert client.put(f"/movies/{movie_id}/votes", json={"value": 3}).status_code == 401
    assert client.put(f"/movies/{movie_id}/votes", json={"value": 3}, headers=admin).status_code == 403


@pytest.mark.parametrize("payload", [{"value": 9}, {"value": -1}, {"value": "3"}, {"value": True}, {"value": 2.5}, {}])
def test_vote_rejects_bad_values(client, seeded, payload):
    movie_id = seeded["Up"]["id"]
    r = client.put(f"/movies/{movie_id}/votes", json=payload, headers=bearer("ana", "user"))
    assert r.status_code == 422
    assert client.get(f"/movies/{movie_id}/votes").json()["count"] == 0


def test_vote_on_unknown_movie(client):
    r = client.put("/movies/nope/votes", json={"value": 1}, headers=bearer("ana", "user"))
    assert r.status_code == 404


def test_votes_of_unknown_movie(client):
    assert client.get("/movies/nope/votes").status_code == 404
