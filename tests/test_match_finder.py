"""Test reciprocal matching, both the pure candidate search and the finder."""
import pytest

from patterns.domain_config import BookSwapConfig, MatchingConfig
from patterns.workflow_states import MatchStatus
from verticals.bookswap.catalog import SqlBookCatalog, SqlUserDirectory
from verticals.bookswap.errors import DependencyUnavailable
from verticals.bookswap.matcher import find_candidates
from verticals.bookswap.models.db_models import OfferedBook, WantedBook, make_pair_key
from verticals.bookswap.notifications import EventKind
from verticals.bookswap.service import CatalogService, MatchService

from tests.support import offer, want


def _offered(book_id, owner_id, title, author, available=True, accepts_swap=True, isbn=None):
    return OfferedBook(
        id=book_id, owner_id=owner_id, title=title, author=author, isbn=isbn,
        is_available=available, accepts_swap=accepts_swap,
    )


def _wanted(book_id, owner_id, title, author, isbn=None):
    return WantedBook(id=book_id, owner_id=owner_id, title=title, author=author, isbn=isbn)


# ---------------------------------------------------------------------------
# Pure candidate search
# ---------------------------------------------------------------------------

def test_reciprocal_pair_found():
    offered = [_offered("x", "u1", "Dune", "Frank Herbert"), _offered("y", "u2", "1984", "George Orwell")]
    wanted = [_wanted("w1", "u1", "1984", "George Orwell"), _wanted("w2", "u2", "dune", "frank herbert")]
    candidates = find_candidates(offered, wanted)
    assert len(candidates) == 1
    c = candidates[0]
    assert (c.user_a_id, c.user_b_id) == ("u1", "u2")
    assert (c.book_from_a.id, c.book_from_b.id) == ("x", "y")
    assert c.pair_key == make_pair_key("y", "x")


def test_orientation_independent_of_input_order():
    offered = [_offered("y", "u2", "1984", "George Orwell"), _offered("x", "u1", "Dune", "Frank Herbert")]
    wanted = [_wanted("w2", "u2", "Dune", "Frank Herbert"), _wanted("w1", "u1", "1984", "George Orwell")]
    c = find_candidates(offered, wanted)[0]
    assert c.user_a_id == "u1"
    assert c.book_from_a.id == "x"


def test_one_directional_interest_is_not_a_match():
    offered = [_offered("x", "u1", "Dune", "Frank Herbert"), _offered("y", "u2", "1984", "George Orwell")]
    wanted = [_wanted("w2", "u2", "Dune", "Frank Herbert")]
    assert find_candidates(offered, wanted) == []


def test_own_wishlist_ignored():
    offered = [_offered("x", "u1", "Dune", "Frank Herbert")]
    wanted = [_wanted("w1", "u1", "Dune", "Frank Herbert")]
    assert find_candidates(offered, wanted) == []


def test_unavailable_books_excluded():
    offered = [
        _offered("x", "u1", "Dune", "Frank Herbert", available=False),
        _offered("y", "u2", "1984", "George Orwell"),
    ]
    wanted = [_wanted("w1", "u1", "1984", "George Orwell"), _wanted("w2", "u2", "Dune", "Frank Herbert")]
    assert find_candidates(offered, wanted) == []


def test_sale_only_books_excluded_when_configured():
    offered = [
        _offered("x", "u1", "Dune", "Frank Herbert", accepts_swap=False),
        _offered("y", "u2", "1984", "George Orwell"),
    ]
    wanted = [_wanted("w1", "u1", "1984", "George Orwell"), _wanted("w2", "u2", "Dune", "Frank Herbert")]
    assert len(find_candidates(offered, wanted)) == 1
    assert find_candidates(offered, wanted, MatchingConfig(require_accepts_swap=True)) == []


def test_every_combination_is_a_candidate():
    offered = [
        _offered("x1", "u1", "Dune", "Frank Herbert"),
        _offered("x2", "u1", "Emma", "Jane Austen"),
        _offered("y", "u2", "1984", "George Orwell"),
    ]
    wanted = [
        _wanted("w1", "u1", "1984", "George Orwell"),
        _wanted("w2", "u2", "Dune", "Frank Herbert"),
        _wanted("w3", "u2", "Emma", "Jane Austen"),
    ]
    keys = {c.pair_key for c in find_candidates(offered, wanted)}
    assert keys == {make_pair_key("x1", "y"), make_pair_key("x2", "y")}


def test_isbn_match_across_titles():
    offered = [
        _offered("x", "u1", "Dune", "Frank Herbert", isbn="9780441013593"),
        _offered("y", "u2", "1984", "George Orwell"),
    ]
    wanted = [
        _wanted("w1", "u1", "1984", "George Orwell"),
        _wanted("w2", "u2", "Dune: Deluxe Edition", "F. Herbert", isbn="0441013597"),
    ]
    assert len(find_candidates(offered, wanted)) == 1


# ---------------------------------------------------------------------------
# Finder against the database
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_find_matches_is_idempotent(match_service, dune_swap):
    first = await match_service.find_matches()
    second = await match_service.find_matches()
    assert len(first) == 1
    assert len(second) == 1
    assert first[0].id == second[0].id
    assert first[0].status == MatchStatus.PENDING.value


@pytest.mark.asyncio
async def test_match_found_notifies_both_users_once(match_service, dune_swap, notifier):
    await match_service.find_matches()
    await match_service.find_matches()
    await match_service.dispatcher.drain()
    for user in (dune_swap["alice"], dune_swap["bob"]):
        assert [kind for kind, _ in notifier.for_user(user.id)] == [EventKind.MATCH_FOUND]


@pytest.mark.asyncio
async def test_match_references_offered_books(match_service, dune_swap):
    match = (await match_service.find_matches())[0]
    books_by_owner = {
        match.user_a_id: match.book_from_a_id,
        match.user_b_id: match.book_from_b_id,
    }
    assert books_by_owner[dune_swap["alice"].id] == dune_swap["dune"].id
    assert books_by_owner[dune_swap["bob"].id] == dune_swap["1984"].id
    assert match.user_a_id < match.user_b_id


@pytest.mark.asyncio
async def test_different_editions_match_on_title_and_author(
    match_service, catalog_service, alice, bob
):
    await offer(catalog_service, alice, "Dune", "Frank Herbert", isbn="9780441013593")
    await want(catalog_service, alice, "1984", "George Orwell")
    await offer(catalog_service, bob, "1984", "George Orwell")
    await want(catalog_service, bob, "Dune", "Frank Herbert", isbn="9780340960196")
    matches = await match_service.find_matches()
    assert len(matches) == 1
    assert matches[0].to_dict(include_messages=False)["book_from_a"]["title"] in {"Dune", "1984"}


@pytest.mark.asyncio
async def test_no_match_without_reciprocity(match_service, catalog_service, alice, bob):
    await offer(catalog_service, alice, "Dune", "Frank Herbert")
    await want(catalog_service, bob, "Dune", "Frank Herbert")
    assert await match_service.find_matches() == []


@pytest.mark.asyncio
async def test_finder_never_changes_existing_status(match_service, match, dune_swap):
    await match_service.decline_match(match.id, dune_swap["alice"].id)
    again = await match_service.find_matches()
    assert [m.id for m in again] == [match.id]
    assert again[0].status == MatchStatus.DECLINED.value


@pytest.mark.asyncio
async def test_new_combination_adds_second_match(match_service, catalog_service, match, dune_swap):
    await offer(catalog_service, dune_swap["alice"], "Emma", "Jane Austen")
    await want(catalog_service, dune_swap["bob"], "Emma", "Jane Austen")
    matches = await match_service.find_matches()
    assert len(matches) == 2
    assert match.id in {m.id for m in matches}


class _DirectoryWithout:
    def __init__(self, session, missing):
        self.inner = SqlUserDirectory(session)
        self.missing = missing

    async def get_user(self, user_id):
        if user_id in self.missing:
            return None
        return await self.inner.get_user(user_id)


@pytest.mark.asyncio
async def test_missing_owner_is_skipped(database, config, dispatcher, dune_swap):
    bob_id = dune_swap["bob"].id
    service = MatchService(
        database, config, dispatcher,
        directory_factory=lambda session: _DirectoryWithout(session, {bob_id}),
    )
    assert await service.find_matches() == []


class _BrokenCatalog(SqlBookCatalog):
    async def list_all_offered(self):
        raise DependencyUnavailable("book catalog", "connection refused")


@pytest.mark.asyncio
async def test_catalog_failure_is_reported(database, config, dispatcher, dune_swap):
    service = MatchService(database, config, dispatcher, catalog_factory=_BrokenCatalog)
    with pytest.raises(DependencyUnavailable):
        await service.find_matches()


@pytest.mark.asyncio
async def test_withdrawn_book_marks_match_stale(match_service, catalog_service, match, dune_swap):
    assert not (await match_service.get_match(match.id)).is_stale
    await catalog_service.set_book_availability(dune_swap["dune"].id, dune_swap["alice"].id, False)
    refreshed = await match_service.get_match(match.id)
    assert refreshed.is_stale
    assert refreshed.status == MatchStatus.PENDING.value


@pytest.mark.asyncio
async def test_deleted_book_marks_match_stale(match_service, catalog_service, match, dune_swap):
    await catalog_service.delete_book(dune_swap["1984"].id, dune_swap["bob"].id)
    refreshed = await match_service.get_match(match.id)
    assert refreshed.is_stale
    assert refreshed.to_dict()["is_stale"] is True


@pytest.mark.asyncio
async def test_catalog_write_triggers_recompute(database, dispatcher, alice, bob):
    service = MatchService(database, BookSwapConfig.default(), dispatcher)
    catalog = CatalogService(database, service)
    await offer(catalog, alice, "Dune", "Frank Herbert")
    await want(catalog, alice, "1984", "George Orwell")
    await offer(catalog, bob, "1984", "George Orwell")
    await want(catalog, bob, "Dune", "Frank Herbert")
    assert len(await service.list_matches(alice.id)) == 1
