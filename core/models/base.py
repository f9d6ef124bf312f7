"""Base model and mixins for all SQLAlchemy models.

Provides:
- Base: Declarative base class for all models
- RecordMixin: Adds a string UUID primary key and audit timestamps

Timestamps are assigned on the Python side so that a freshly flushed row
can be serialised without a round trip (async sessions cannot lazy-load
server defaults).
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, DateTime
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Declarative base for all BookSwap models."""
    pass


class RecordMixin:
    """Mixin providing a primary key and standard audit columns.

    Adds:
    - id: UUID string primary key (auto-generated)
    - created_at: Timestamp set on insert
    - updated_at: Timestamp updated on every ORM change
    """

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=new_id,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )
