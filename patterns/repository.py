"""Async repository pattern for database access.

Provides a generic base repository with get/list/create/delete operations
and pagination. Verticals subclass this to add domain-specific queries.

Repositories never commit: the caller owns the unit of work
(``Database.session()``) and decides when it ends.
"""

from typing import Any, Generic, Sequence, TypeVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.models.base import Base

# ---------------------------------------------------------------------------
# Type variable for model classes
# ---------------------------------------------------------------------------

ModelT = TypeVar("ModelT", bound=Base)


# ---------------------------------------------------------------------------
# Base repository
# ---------------------------------------------------------------------------

class BaseRepository(Generic[ModelT]):
    """Generic async repository with CRUD + pagination.

    Subclass and set `model` to your SQLAlchemy model::

        class BookRepository(BaseRepository[Book]):
            model = Book

            async def list_for_owner(self, owner_id: str):
                stmt = select(self.model).where(self.model.owner_id == owner_id)
                result = await self.session.execute(stmt)
                return list(result.scalars().all())
    """

    model: type[ModelT]

    def __init__(self, session: AsyncSession):
        self.session = session

    # -- List with pagination --

    async def list(
        self,
        page: int = 1,
        limit: int = 50,
        filters: dict[str, Any] | None = None,
    ) -> tuple[Sequence[ModelT], int]:
        """List rows with pagination and optional equality filters.

        Returns (rows, total_count).
        """
        stmt = select(self.model)
        count_stmt = select(func.count()).select_from(self.model)

        if filters:
            for col_name, value in filters.items():
                if hasattr(self.model, col_name) and value is not None:
                    stmt = stmt.where(getattr(self.model, col_name) == value)
                    count_stmt = count_stmt.where(getattr(self.model, col_name) == value)

        offset = (page - 1) * limit
        stmt = stmt.offset(offset).limit(limit)

        result = await self.session.execute(stmt)
        rows = result.scalars().all()

        count_result = await self.session.execute(count_stmt)
        total = count_result.scalar() or 0

        return rows, total

    # -- Get by ID --

    async def get(self, item_id: str) -> ModelT | None:
        """Get a single row by primary key."""
        stmt = select(self.model).where(self.model.id == item_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    # -- Create --

    async def create(self, data: dict[str, Any]) -> ModelT:
        """Create and flush a new row."""
        item = self.model(**data)
        self.session.add(item)
        await self.session.flush()
        return item

    # -- Delete --

    async def delete(self, item_id: str) -> bool:
        """Delete a row. Returns True if deleted, False if not found."""
        item = await self.get(item_id)
        if not item:
            return False

        await self.session.delete(item)
        await self.session.flush()
        return True
