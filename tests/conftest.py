"""Shared fixtures: a fresh SQLite database per test and services."""
from dataclasses import replace

import pytest
import pytest_asyncio

from core.database import Database, DatabaseSettings
from patterns.domain_config import BookSwapConfig, MatchingConfig
from verticals.bookswap.notifications import NotificationDispatcher
from verticals.bookswap.service import CatalogService, MatchService

from tests.support import RecordingNotifier, offer, want


@pytest_asyncio.fixture
async def database(tmp_path):
    db = Database(DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'bookswap.db'}"))
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
def config():
    # Tests call find_matches() explicitly unless they test recomputation
    return replace(
        BookSwapConfig.default(),
        matching=MatchingConfig(recompute_on_catalog_write=False),
    )


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def dispatcher(notifier):
    return NotificationDispatcher(notifier)


@pytest.fixture
def match_service(database, config, dispatcher):
    return MatchService(database, config, dispatcher)


@pytest.fixture
def catalog_service(database, match_service):
    return CatalogService(database, match_service)


@pytest_asyncio.fixture
async def alice(catalog_service):
    return await catalog_service.register_user("alice", "alice@example.com")


@pytest_asyncio.fixture
async def bob(catalog_service):
    return await catalog_service.register_user("bob", "bob@example.com")


@pytest_asyncio.fixture
async def carol(catalog_service):
    return await catalog_service.register_user("carol", "carol@example.com")


@pytest_asyncio.fixture
async def dune_swap(catalog_service, alice, bob):
    """Alice offers Dune and wants 1984; Bob offers 1984 and wants Dune."""
    dune = await offer(catalog_service, alice, "Dune", "Frank Herbert")
    await want(catalog_service, alice, "1984", "George Orwell")
    nineteen = await offer(catalog_service, bob, "1984", "George Orwell")
    await want(catalog_service, bob, "Dune", "Frank Herbert")
    return {"alice": alice, "bob": bob, "dune": dune, "1984": nineteen}


@pytest_asyncio.fixture
async def match(match_service, dune_swap, notifier):
    """The pending match between Alice and Bob, with match_found cleared."""
    matches = await match_service.find_matches()
    assert len(matches) == 1
    await match_service.dispatcher.drain()
    notifier.events.clear()
    return matches[0]
