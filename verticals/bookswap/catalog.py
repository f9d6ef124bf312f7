"""Read-only boundaries to the book catalog and the user directory.

The core only reads from these collaborators. The default implementations
query the local ``books`` and ``profiles`` tables through the session of
the current unit of work; another backend can be plugged in by passing a
different factory to ``MatchService``.
"""

from __future__ import annotations

from typing import Callable, Protocol, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from verticals.bookswap.errors import DependencyUnavailable
from verticals.bookswap.models.db_models import OfferedBook, UserProfile, WantedBook
from verticals.bookswap.repository import BookRepository, UserRepository


class BookCatalog(Protocol):
    async def list_offered(self, user_id: str) -> Sequence[OfferedBook]: ...

    async def list_wanted(self, user_id: str) -> Sequence[WantedBook]: ...

    async def list_all_offered(self) -> Sequence[OfferedBook]: ...

    async def list_all_wanted(self) -> Sequence[WantedBook]: ...


class UserDirectory(Protocol):
    async def get_user(self, user_id: str) -> UserProfile | None: ...


CatalogFactory = Callable[[AsyncSession], BookCatalog]
DirectoryFactory = Callable[[AsyncSession], UserDirectory]


class SqlBookCatalog:
    """Catalog backed by the ``books`` table."""

    def __init__(self, session: AsyncSession):
        self.books = BookRepository(session)

    async def list_offered(self, user_id: str) -> list[OfferedBook]:
        return await self._read(self.books.list_offered(owner_id=user_id))

    async def list_wanted(self, user_id: str) -> list[WantedBook]:
        return await self._read(self.books.list_wanted(owner_id=user_id))

    async def list_all_offered(self) -> list[OfferedBook]:
        return await self._read(self.books.list_offered())

    async def list_all_wanted(self) -> list[WantedBook]:
        return await self._read(self.books.list_wanted())

    @staticmethod
    async def _read(query):
        try:
            return await query
        except SQLAlchemyError as exc:
            raise DependencyUnavailable("book catalog", str(exc)) from exc


class SqlUserDirectory:
    """User directory backed by the ``profiles`` table."""

    def __init__(self, session: AsyncSession):
        self.users = UserRepository(session)

    async def get_user(self, user_id: str) -> UserProfile | None:
        try:
            return await self.users.get(user_id)
        except SQLAlchemyError as exc:
            raise DependencyUnavailable("user directory", str(exc)) from exc
