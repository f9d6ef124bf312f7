"""Test the HTTP surface: routes, acting user, error mapping."""
import httpx
import pytest
import pytest_asyncio

from api.main import create_app
from patterns.domain_config import BookSwapConfig

from tests.support import RecordingNotifier

PREFIX = "/api/bookswap"


@pytest_asyncio.fixture
async def client(database):
    # ASGITransport does not run the lifespan; the database fixture already
    # created the tables
    app = create_app(database=database, config=BookSwapConfig.default(), notifier=RecordingNotifier())
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    await app.state.dispatcher.drain()


def _as(user):
    return {"X-User-ID": user["id"]}


async def _register(client, username):
    resp = await client.post(f"{PREFIX}/users", json={"username": username, "email": f"{username}@example.com"})
    assert resp.status_code == 201
    return resp.json()


async def _add_book(client, user, kind, title, author, **extra):
    body = {"kind": kind, "title": title, "author": author, **extra}
    if kind == "offered":
        body.setdefault("condition", "good")
    resp = await client.post(f"{PREFIX}/books", json=body, headers=_as(user))
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest_asyncio.fixture
async def swap(client):
    alice = await _register(client, "alice")
    bob = await _register(client, "bob")
    dune = await _add_book(client, alice, "offered", "Dune", "Frank Herbert")
    await _add_book(client, alice, "wanted", "1984", "George Orwell")
    await _add_book(client, bob, "offered", "1984", "George Orwell")
    await _add_book(client, bob, "wanted", "Dune", "Frank Herbert")

    resp = await client.get(f"{PREFIX}/matches", headers=_as(alice))
    assert resp.status_code == 200
    assert resp.json()["count"] == 1
    return {"alice": alice, "bob": bob, "dune": dune, "match": resp.json()["data"][0]}


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_catalog_write_creates_match(swap):
    match = swap["match"]
    assert match["status"] == "pending"
    assert match["allowed_actions"] == ["accept", "decline"]
    assert match["unread_count"] == 0
    assert match["counterpart_id"] == swap["bob"]["id"]


@pytest.mark.asyncio
async def test_find_matches_is_idempotent(client, swap):
    first = await client.post(f"{PREFIX}/matches/find")
    second = await client.post(f"{PREFIX}/matches/find")
    assert first.json()["count"] == second.json()["count"] == 1


@pytest.mark.asyncio
async def test_missing_user_header(client, swap):
    resp = await client.post(f"{PREFIX}/matches/{swap['match']['id']}/accept")
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_full_lifecycle(client, swap):
    alice, bob = swap["alice"], swap["bob"]
    match_id = swap["match"]["id"]

    resp = await client.post(f"{PREFIX}/matches/{match_id}/accept", headers=_as(alice))
    assert resp.status_code == 200
    assert resp.json()["status"] == "accepted"

    resp = await client.post(
        f"{PREFIX}/matches/{match_id}/messages",
        json={"content": "when can we meet?"},
        headers=_as(bob),
    )
    assert resp.status_code == 201
    assert resp.json()["seq"] == 1

    resp = await client.get(f"{PREFIX}/matches/{match_id}", headers=_as(alice))
    assert resp.json()["unread_count"] == 1
    resp = await client.post(f"{PREFIX}/matches/{match_id}/read", headers=_as(alice))
    assert resp.json()["marked_read"] == 1

    resp = await client.post(f"{PREFIX}/matches/{match_id}/complete", headers=_as(alice))
    assert resp.json()["status"] == "completed"

    resp = await client.post(
        f"{PREFIX}/matches/{match_id}/messages",
        json={"content": "thanks!"},
        headers=_as(alice),
    )
    assert resp.status_code == 201

    resp = await client.post(f"{PREFIX}/matches/{match_id}/decline", headers=_as(bob))
    assert resp.status_code == 409
    body = resp.json()
    assert body["error"] == "invalid_transition"
    assert body["match"]["status"] == "completed"

    resp = await client.get(f"{PREFIX}/swaps", headers=_as(bob))
    assert resp.json()["count"] == 1

    resp = await client.get(f"{PREFIX}/users/{alice['id']}/summary")
    assert resp.json()["completed_swaps"] == 1

    resp = await client.get(f"{PREFIX}/matches/{match_id}/messages", headers=_as(bob))
    assert [m["content"] for m in resp.json()["data"]] == ["when can we meet?", "thanks!"]


@pytest.mark.asyncio
async def test_error_mapping(client, swap):
    alice, bob = swap["alice"], swap["bob"]
    match_id = swap["match"]["id"]
    carol = await _register(client, "carol")

    resp = await client.post(f"{PREFIX}/matches/{match_id}/accept", headers=_as(carol))
    assert resp.status_code == 403
    assert resp.json()["error"] == "not_participant"

    resp = await client.post(f"{PREFIX}/matches/nope/accept", headers=_as(alice))
    assert resp.status_code == 404

    resp = await client.post(
        f"{PREFIX}/matches/{match_id}/messages", json={"content": "   "}, headers=_as(alice)
    )
    assert resp.status_code == 422
    assert resp.json()["error"] == "invalid_message"

    await client.post(f"{PREFIX}/matches/{match_id}/decline", headers=_as(bob))
    resp = await client.post(
        f"{PREFIX}/matches/{match_id}/messages", json={"content": "wait"}, headers=_as(alice)
    )
    assert resp.status_code == 409
    assert resp.json()["error"] == "match_closed"


@pytest.mark.asyncio
async def test_duplicate_username(client):
    await _register(client, "alice")
    resp = await client.post(f"{PREFIX}/users", json={"username": "alice", "email": "a@example.com"})
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_book_ownership(client, swap):
    alice, bob = swap["alice"], swap["bob"]
    book_id = swap["dune"]["id"]

    resp = await client.delete(f"{PREFIX}/books/{book_id}", headers=_as(bob))
    assert resp.status_code == 403

    resp = await client.patch(
        f"{PREFIX}/books/{book_id}/availability", json={"is_available": False}, headers=_as(alice)
    )
    assert resp.status_code == 200
    assert resp.json()["is_available"] is False

    resp = await client.get(f"{PREFIX}/matches/{swap['match']['id']}", headers=_as(alice))
    assert resp.json()["is_stale"] is True

    resp = await client.delete(f"{PREFIX}/books/{book_id}", headers=_as(alice))
    assert resp.status_code == 204

    resp = await client.get(f"{PREFIX}/users/{alice['id']}/books")
    assert resp.json()["offered"] == []
    assert [b["title"] for b in resp.json()["wanted"]] == ["1984"]


@pytest.mark.asyncio
async def test_book_kind_is_validated(client):
    alice = await _register(client, "alice")
    resp = await client.post(
        f"{PREFIX}/books",
        json={"kind": "offered", "title": "Dune", "author": "Frank Herbert"},
        headers=_as(alice),
    )
    assert resp.status_code == 422

    resp = await client.post(
        f"{PREFIX}/books",
        json={"kind": "borrowed", "title": "Dune", "author": "Frank Herbert"},
        headers=_as(alice),
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_school_book_fields(client):
    alice = await _register(client, "alice")
    book = await _add_book(
        client, alice, "offered", "Calculus", "Michael Spivak",
        is_school_book=True, educational_level="university", subject="mathematics",
    )
    assert book["is_school_book"] is True
    assert book["educational_level"] == "university"
    assert book["subject"] == "mathematics"

    plain = await _add_book(client, alice, "wanted", "Dune", "Frank Herbert")
    assert plain["is_school_book"] is False
    assert plain["educational_level"] is None

    resp = await client.post(
        f"{PREFIX}/books",
        json={"kind": "wanted", "title": "Dune", "author": "Frank Herbert", "educational_level": "kindergarten"},
        headers=_as(alice),
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_list_matches_filter(client, swap):
    alice = swap["alice"]
    resp = await client.get(f"{PREFIX}/matches", params={"status": "accepted"}, headers=_as(alice))
    assert resp.json()["count"] == 0
    resp = await client.get(f"{PREFIX}/matches", params={"status": "bogus"}, headers=_as(alice))
    assert resp.status_code == 422
