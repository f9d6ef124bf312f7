"""BookSwap repositories: async database access per aggregate.

Extends BaseRepository with the queries the core needs. The two writes
that must be linearized per match are single statements here:

- ``MatchRepository.compare_and_set_status`` (status transitions)
- ``MatchRepository.allocate_message_seq`` (ledger append gate + ordering)
"""

from typing import Sequence

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import selectinload

from core.models.base import utcnow
from patterns.repository import BaseRepository
from patterns.workflow_states import MatchStatus
from verticals.bookswap.models.db_models import (
    Book,
    Match,
    Message,
    OfferedBook,
    Swap,
    UserProfile,
    WantedBook,
)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

class UserRepository(BaseRepository[UserProfile]):
    model = UserProfile

    async def get_by_username(self, username: str) -> UserProfile | None:
        stmt = select(UserProfile).where(UserProfile.username == username)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Books
# ---------------------------------------------------------------------------

class BookRepository(BaseRepository[Book]):
    """Repository for both catalog variants."""

    model = Book

    async def list_offered(
        self, owner_id: str | None = None, available_only: bool = True
    ) -> list[OfferedBook]:
        stmt = select(OfferedBook)
        if owner_id is not None:
            stmt = stmt.where(OfferedBook.owner_id == owner_id)
        if available_only:
            stmt = stmt.where(OfferedBook.is_available.is_(True))
        result = await self.session.execute(stmt.order_by(OfferedBook.created_at))
        return list(result.scalars().all())

    async def list_wanted(self, owner_id: str | None = None) -> list[WantedBook]:
        stmt = select(WantedBook)
        if owner_id is not None:
            stmt = stmt.where(WantedBook.owner_id == owner_id)
        result = await self.session.execute(stmt.order_by(WantedBook.created_at))
        return list(result.scalars().all())

    async def set_availability(self, book: OfferedBook, available: bool) -> OfferedBook:
        book.is_available = available
        await self.session.flush()
        return book


# ---------------------------------------------------------------------------
# Matches
# ---------------------------------------------------------------------------

def _match_loaders(include_messages: bool = True) -> list:
    loaders = [
        selectinload(Match.user_a),
        selectinload(Match.user_b),
        selectinload(Match.book_from_a),
        selectinload(Match.book_from_b),
    ]
    if include_messages:
        loaders.append(selectinload(Match.messages))
    return loaders


class MatchRepository(BaseRepository[Match]):
    """Repository for matches and their status."""

    model = Match

    async def get_full(self, match_id: str, include_messages: bool = True) -> Match | None:
        """Load a match with participants, books and (optionally) messages.

        Always re-reads from the database so a status changed by another
        session is visible.
        """
        stmt = (
            select(Match)
            .where(Match.id == match_id)
            .options(*_match_loaders(include_messages))
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_status(self, match_id: str) -> MatchStatus | None:
        stmt = select(Match.status).where(Match.id == match_id)
        result = await self.session.execute(stmt)
        value = result.scalar_one_or_none()
        return MatchStatus(value) if value is not None else None

    async def get_by_pair_keys(self, pair_keys: Sequence[str]) -> list[Match]:
        if not pair_keys:
            return []
        stmt = (
            select(Match)
            .where(Match.pair_key.in_(list(pair_keys)))
            .options(*_match_loaders(include_messages=False))
            .order_by(Match.created_at.desc())
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def existing_pair_keys(self, pair_keys: Sequence[str]) -> set[str]:
        if not pair_keys:
            return set()
        stmt = select(Match.pair_key).where(Match.pair_key.in_(list(pair_keys)))
        result = await self.session.execute(stmt)
        return set(result.scalars().all())

    async def list_for_user(
        self, user_id: str, status: MatchStatus | None = None
    ) -> list[Match]:
        stmt = (
            select(Match)
            .where(or_(Match.user_a_id == user_id, Match.user_b_id == user_id))
            .options(*_match_loaders(include_messages=False))
            .order_by(Match.updated_at.desc())
            .execution_options(populate_existing=True)
        )
        if status is not None:
            stmt = stmt.where(Match.status == status.value)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def compare_and_set_status(
        self, match_id: str, expected: MatchStatus, new: MatchStatus
    ) -> bool:
        """Atomically move ``expected`` -> ``new``.

        Returns False (and changes nothing) when the stored status is no
        longer ``expected``.
        """
        stmt = (
            update(Match)
            .where(Match.id == match_id, Match.status == expected.value)
            .values(status=new.value, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def allocate_message_seq(self, match_id: str) -> int | None:
        """Reserve the next message sequence number for an open match.

        Returns None when the match is missing or declined. The increment
        and the declined check are one statement, so a decline that commits
        first always wins.
        """
        stmt = (
            update(Match)
            .where(Match.id == match_id, Match.status != MatchStatus.DECLINED.value)
            .values(message_count=Match.message_count + 1)
            .returning(Match.message_count)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------

class MessageRepository(BaseRepository[Message]):
    """Repository for the per-match conversation ledger."""

    model = Message

    async def history(self, match_id: str) -> list[Message]:
        stmt = select(Message).where(Message.match_id == match_id).order_by(Message.seq)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_by_client_token(self, match_id: str, client_token: str) -> Message | None:
        stmt = select(Message).where(
            Message.match_id == match_id,
            Message.client_token == client_token,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def mark_read(self, match_id: str, reader_id: str) -> int:
        """Flip ``read`` on every unread message the reader did not send."""
        stmt = (
            update(Message)
            .where(
                Message.match_id == match_id,
                Message.sender_id != reader_id,
                Message.read.is_(False),
            )
            .values(read=True, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0

    async def unread_count(self, match_id: str, viewer_id: str) -> int:
        stmt = select(func.count()).select_from(Message).where(
            Message.match_id == match_id,
            Message.sender_id != viewer_id,
            Message.read.is_(False),
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def unread_counts(self, viewer_id: str, match_ids: Sequence[str]) -> dict[str, int]:
        """Unread counts for ``viewer_id`` per match (zero entries included)."""
        counts = {match_id: 0 for match_id in match_ids}
        if not counts:
            return counts
        stmt = (
            select(Message.match_id, func.count())
            .where(
                Message.match_id.in_(list(counts)),
                Message.sender_id != viewer_id,
                Message.read.is_(False),
            )
            .group_by(Message.match_id)
        )
        result = await self.session.execute(stmt)
        for match_id, count in result.all():
            counts[match_id] = count
        return counts


# ---------------------------------------------------------------------------
# Swaps
# ---------------------------------------------------------------------------

class SwapRepository(BaseRepository[Swap]):
    model = Swap

    async def record(self, match: Match) -> Swap:
        return await self.create(
            {
                "match_id": match.id,
                "user_a_id": match.user_a_id,
                "user_b_id": match.user_b_id,
                "book_from_a_id": match.book_from_a_id,
                "book_from_b_id": match.book_from_b_id,
            }
        )

    async def list_for_user(self, user_id: str) -> list[Swap]:
        stmt = (
            select(Swap)
            .where(or_(Swap.user_a_id == user_id, Swap.user_b_id == user_id))
            .order_by(Swap.completed_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
