"""BookSwap application services.

``MatchService`` is the Match API: every public coroutine opens its own
unit of work, runs one of the core components inside it, commits, and only
then fires notifications. ``CatalogService`` is the catalog glue that lets
users register and list books; its writes trigger match recomputation.

Both are built once per process (see ``api.main.create_app``) and passed
around explicitly.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.exc import IntegrityError

from core.database import Database
from core.logging import get_logger
from patterns.domain_config import BookSwapConfig
from patterns.workflow_states import MatchAction, MatchStatus
from verticals.bookswap.catalog import (
    CatalogFactory,
    DirectoryFactory,
    SqlBookCatalog,
    SqlUserDirectory,
)
from verticals.bookswap.errors import (
    AlreadyExists,
    DependencyUnavailable,
    NotFound,
    NotOwner,
)
from verticals.bookswap.ledger import ConversationLedger
from verticals.bookswap.matcher import MatchFinder
from verticals.bookswap.models.db_models import (
    Book,
    Match,
    Message,
    OfferedBook,
    Swap,
    UserProfile,
    WantedBook,
)
from verticals.bookswap.notifications import (
    EventKind,
    LoggingNotifier,
    NotificationDispatcher,
)
from verticals.bookswap.participants import participant_ids, require_role
from verticals.bookswap.repository import (
    BookRepository,
    MatchRepository,
    MessageRepository,
    SwapRepository,
    UserRepository,
)
from verticals.bookswap.state_machine import MatchStateMachine

logger = get_logger(__name__)


class MatchService:
    """Match API over a Database handle."""

    def __init__(
        self,
        database: Database,
        config: BookSwapConfig | None = None,
        dispatcher: NotificationDispatcher | None = None,
        catalog_factory: CatalogFactory = SqlBookCatalog,
        directory_factory: DirectoryFactory = SqlUserDirectory,
    ):
        self.database = database
        self.config = config or BookSwapConfig.default()
        self.dispatcher = dispatcher or NotificationDispatcher(LoggingNotifier())
        self.catalog_factory = catalog_factory
        self.directory_factory = directory_factory

    # -- Match Finder --

    async def find_matches(self) -> list[Match]:
        """Materialize every reciprocal match; returns current candidates' matches."""
        async with self.database.session() as session:
            finder = MatchFinder(
                session,
                self.catalog_factory(session),
                self.directory_factory(session),
                self.config.matching,
            )
            result = await finder.run()

        for match in result.created:
            for user_id in participant_ids(match):
                self.dispatcher.fire(user_id, EventKind.MATCH_FOUND, match.id)
        return result.matches

    # -- Match State Machine --

    async def _transition(self, match_id: str, actor_id: str, action: MatchAction) -> Match:
        async with self.database.session() as session:
            outcome = await MatchStateMachine(session).apply(match_id, actor_id, action)
        self.dispatcher.fire(outcome.notify_user_id, outcome.event, match_id)
        return outcome.match

    async def accept_match(self, match_id: str, acting_user_id: str) -> Match:
        return await self._transition(match_id, acting_user_id, MatchAction.ACCEPT)

    async def decline_match(self, match_id: str, acting_user_id: str) -> Match:
        return await self._transition(match_id, acting_user_id, MatchAction.DECLINE)

    async def complete_match(self, match_id: str, acting_user_id: str) -> Match:
        return await self._transition(match_id, acting_user_id, MatchAction.COMPLETE)

    # -- Conversation Ledger --

    async def send_message(
        self,
        match_id: str,
        sender_id: str,
        content: str,
        client_token: str | None = None,
    ) -> Message:
        try:
            async with self.database.session() as session:
                ledger = ConversationLedger(session, self.config.messaging)
                outcome = await ledger.append(match_id, sender_id, content, client_token)
        except IntegrityError:
            if not client_token:
                raise
            # A concurrent retry with the same token committed first
            async with self.database.session() as session:
                earlier = await MessageRepository(session).get_by_client_token(
                    match_id, client_token
                )
            if earlier is None:
                raise
            return earlier

        if outcome.created:
            self.dispatcher.fire(outcome.recipient_id, EventKind.MESSAGE_RECEIVED, match_id)
        return outcome.message

    async def list_messages(self, match_id: str, viewer_id: str) -> list[Message]:
        async with self.database.session() as session:
            return await ConversationLedger(session, self.config.messaging).history(
                match_id, viewer_id
            )

    async def mark_messages_read(self, match_id: str, reader_id: str) -> int:
        async with self.database.session() as session:
            return await ConversationLedger(session, self.config.messaging).mark_read(
                match_id, reader_id
            )

    async def unread_count(self, match_id: str, viewer_id: str) -> int:
        async with self.database.session() as session:
            return await ConversationLedger(session, self.config.messaging).unread_count(
                match_id, viewer_id
            )

    async def unread_counts(self, viewer_id: str) -> dict[str, int]:
        """Unread messages per match for every match the viewer is part of."""
        async with self.database.session() as session:
            matches = await MatchRepository(session).list_for_user(viewer_id)
            return await MessageRepository(session).unread_counts(
                viewer_id, [m.id for m in matches]
            )

    # -- Read side --

    async def list_matches(
        self, user_id: str, status: MatchStatus | None = None
    ) -> list[Match]:
        async with self.database.session() as session:
            return await MatchRepository(session).list_for_user(user_id, status)

    async def get_match(self, match_id: str, viewer_id: str | None = None) -> Match:
        """Load one match with its messages; restricted to participants when
        ``viewer_id`` is given."""
        async with self.database.session() as session:
            match = await MatchRepository(session).get_full(match_id)
        if match is None:
            raise NotFound("match", match_id)
        if viewer_id is not None:
            require_role(match, viewer_id)
        return match

    async def list_completed_swaps(self, user_id: str) -> list[Swap]:
        async with self.database.session() as session:
            return await SwapRepository(session).list_for_user(user_id)

    async def get_user_summary(self, user_id: str) -> dict[str, Any]:
        async with self.database.session() as session:
            user = await UserRepository(session).get(user_id)
            if user is None:
                raise NotFound("user", user_id)
            books = BookRepository(session)
            _, owned = await books.list(limit=1, filters={"owner_id": user_id, "kind": "offered"})
            _, wanted = await books.list(limit=1, filters={"owner_id": user_id, "kind": "wanted"})
            matches = await MatchRepository(session).list_for_user(user_id)
            swaps = await SwapRepository(session).list_for_user(user_id)

        summary = user.to_dict()
        summary.update(
            books_owned=owned,
            books_wanted=wanted,
            matches=len(matches),
            completed_swaps=len(swaps),
        )
        return summary


class CatalogService:
    """Profiles and books, plus recomputation after catalog writes."""

    def __init__(self, database: Database, matches: MatchService):
        self.database = database
        self.matches = matches

    @property
    def recompute_enabled(self) -> bool:
        return self.matches.config.matching.recompute_on_catalog_write

    async def _recompute(self) -> None:
        if not self.recompute_enabled:
            return
        try:
            await self.matches.find_matches()
        except DependencyUnavailable as exc:
            # The catalog write already committed; the next write or an
            # explicit find retries
            logger.warning("match recomputation skipped: %s", exc)

    async def register_user(
        self, username: str, email: str, location: str | None = None
    ) -> UserProfile:
        async with self.database.session() as session:
            users = UserRepository(session)
            if await users.get_by_username(username) is not None:
                raise AlreadyExists("user", username)
            user = await users.create(
                {"username": username, "email": email, "location": location}
            )
        logger.info("registered user %s (%s)", user.id, username)
        return user

    async def add_book(self, owner_id: str, data: dict[str, Any]) -> Book:
        """Add an offered or wanted book; ``data["kind"]`` picks which."""
        fields = dict(data)
        kind = fields.pop("kind", "offered")
        model = WantedBook if kind == "wanted" else OfferedBook
        async with self.database.session() as session:
            if await UserRepository(session).get(owner_id) is None:
                raise NotFound("user", owner_id)
            book = model(owner_id=owner_id, **fields)
            session.add(book)
            await session.flush()
        logger.info("user %s added %s book %s", owner_id, kind, book.id)
        await self._recompute()
        return book

    async def _owned_book(self, session, book_id: str, user_id: str) -> Book:
        book = await BookRepository(session).get(book_id)
        if book is None:
            raise NotFound("book", book_id)
        if book.owner_id != user_id:
            raise NotOwner(book_id, user_id)
        return book

    async def set_book_availability(
        self, book_id: str, user_id: str, available: bool
    ) -> OfferedBook:
        async with self.database.session() as session:
            book = await self._owned_book(session, book_id, user_id)
            if not isinstance(book, OfferedBook):
                raise NotFound("offered book", book_id)
            await BookRepository(session).set_availability(book, available)
        await self._recompute()
        return book

    async def delete_book(self, book_id: str, user_id: str) -> None:
        async with self.database.session() as session:
            await self._owned_book(session, book_id, user_id)
            await BookRepository(session).delete(book_id)
        logger.info("user %s deleted book %s", user_id, book_id)

    async def list_user_books(self, user_id: str) -> dict[str, list[Book]]:
        async with self.database.session() as session:
            if await UserRepository(session).get(user_id) is None:
                raise NotFound("user", user_id)
            books = BookRepository(session)
            offered = await books.list_offered(owner_id=user_id, available_only=False)
            wanted = await books.list_wanted(owner_id=user_id)
        return {"offered": offered, "wanted": wanted}
