"""Match Finder: reciprocal matching over the catalog.

Two users u and v match on (X, Y) when u offers X and v wants X, and v
offers Y and u wants Y. Every such (X, Y) combination becomes exactly one
Match, identified by its pair key. Recomputation only ever inserts: it
never changes the status of, or deletes, an existing match.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging import get_logger
from patterns.domain_config import MatchingConfig
from patterns.rules_engine import find_wanted_match
from patterns.workflow_states import MatchStatus
from verticals.bookswap.catalog import BookCatalog, UserDirectory
from verticals.bookswap.models.db_models import Match, OfferedBook, WantedBook, make_pair_key
from verticals.bookswap.repository import MatchRepository

logger = get_logger(__name__)


@dataclass(frozen=True)
class Candidate:
    """One reciprocal pairing found in the catalog."""

    user_a_id: str
    user_b_id: str
    book_from_a: OfferedBook
    book_from_b: OfferedBook

    @property
    def pair_key(self) -> str:
        return make_pair_key(self.book_from_a.id, self.book_from_b.id)


@dataclass
class FinderResult:
    matches: list[Match] = field(default_factory=list)
    created: list[Match] = field(default_factory=list)
    skipped: list[Candidate] = field(default_factory=list)


def _offered_set(
    offered: Sequence[OfferedBook], config: MatchingConfig
) -> dict[str, list[OfferedBook]]:
    by_owner: dict[str, list[OfferedBook]] = defaultdict(list)
    for book in offered:
        if not book.is_available:
            continue
        if config.require_accepts_swap and book.accepts_swap is False:
            continue
        by_owner[book.owner_id].append(book)
    return by_owner


def find_candidates(
    offered: Sequence[OfferedBook],
    wanted: Sequence[WantedBook],
    config: MatchingConfig | None = None,
) -> list[Candidate]:
    """Pure reciprocity check over a catalog snapshot.

    Users in each candidate are ordered by id, so a pair is always oriented
    the same way regardless of input order.
    """
    config = config or MatchingConfig()
    offered_by = _offered_set(offered, config)
    wanted_by: dict[str, list[WantedBook]] = defaultdict(list)
    for entry in wanted:
        wanted_by[entry.owner_id].append(entry)

    # For each owner, which other users want which of their books
    wanted_from: dict[str, dict[str, list[OfferedBook]]] = defaultdict(lambda: defaultdict(list))
    for owner_id, books in offered_by.items():
        for book in books:
            for user_id, wishlist in wanted_by.items():
                if user_id == owner_id:
                    continue
                if find_wanted_match(wishlist, book).passed:
                    wanted_from[owner_id][user_id].append(book)

    candidates: list[Candidate] = []
    for u in sorted(wanted_from):
        for v in sorted(wanted_from[u]):
            if v <= u:
                continue
            books_u_gives = wanted_from[u][v]
            books_v_gives = wanted_from.get(v, {}).get(u, [])
            for x in books_u_gives:
                for y in books_v_gives:
                    candidates.append(Candidate(u, v, x, y))
    return candidates


class MatchFinder:
    """Materializes reciprocal candidates as pending matches."""

    def __init__(
        self,
        session: AsyncSession,
        catalog: BookCatalog,
        directory: UserDirectory,
        config: MatchingConfig | None = None,
    ):
        self.session = session
        self.catalog = catalog
        self.directory = directory
        self.config = config or MatchingConfig()
        self.matches = MatchRepository(session)

    async def run(self) -> FinderResult:
        offered = await self.catalog.list_all_offered()
        wanted = await self.catalog.list_all_wanted()
        candidates = find_candidates(offered, wanted, self.config)

        result = FinderResult()
        known_users: dict[str, bool] = {}
        viable: list[Candidate] = []
        for candidate in candidates:
            if await self._users_exist(candidate, known_users):
                viable.append(candidate)
            else:
                logger.warning(
                    "skipping candidate %s: owner missing from user directory",
                    candidate.pair_key,
                )
                result.skipped.append(candidate)

        existing = await self.matches.existing_pair_keys([c.pair_key for c in viable])
        for candidate in viable:
            if candidate.pair_key in existing:
                continue
            match = await self._insert(candidate)
            if match is not None:
                result.created.append(match)
                existing.add(candidate.pair_key)

        result.matches = await self.matches.get_by_pair_keys([c.pair_key for c in viable])
        if result.created:
            logger.info(
                "match finder created %d new match(es) from %d candidate(s)",
                len(result.created), len(candidates),
            )
        return result

    async def _users_exist(self, candidate: Candidate, known: dict[str, bool]) -> bool:
        for user_id in (candidate.user_a_id, candidate.user_b_id):
            if user_id not in known:
                known[user_id] = await self.directory.get_user(user_id) is not None
            if not known[user_id]:
                return False
        return True

    async def _insert(self, candidate: Candidate) -> Match | None:
        """Insert inside a savepoint; losing a concurrent race is not an error."""
        match = Match(
            user_a_id=candidate.user_a_id,
            user_b_id=candidate.user_b_id,
            book_from_a_id=candidate.book_from_a.id,
            book_from_b_id=candidate.book_from_b.id,
            status=MatchStatus.PENDING.value,
            pair_key=candidate.pair_key,
        )
        try:
            async with self.session.begin_nested():
                self.session.add(match)
        except IntegrityError:
            logger.info("match %s already created concurrently", candidate.pair_key)
            return None
        return match
