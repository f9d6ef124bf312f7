"""SQLAlchemy models for the BookSwap vertical.

Each model inherits from Base and uses RecordMixin for ids and timestamps.
Books use single-table inheritance on ``kind`` so that a row is either an
OfferedBook or a WantedBook, never both. The to_dict() methods provide the
serialisation used by services, routers and MCP tools.

Relationships are never lazy-loaded (async sessions cannot); repositories
load what they need with selectinload().
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.models.base import Base, RecordMixin, utcnow
from patterns.workflow_states import MatchStatus, allowed_actions
from verticals.bookswap.participants import counterpart_id, role


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class UserProfile(RecordMixin, Base):
    """A user as seen by the core: identity from the external auth provider."""

    __tablename__ = "profiles"

    username: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    location: Mapped[str | None] = mapped_column(String(200), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "location": self.location,
            "created_at": _iso(self.created_at),
        }


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

class Book(RecordMixin, Base):
    """A catalog row. Concrete rows are OfferedBook or WantedBook."""

    __tablename__ = "books"

    kind: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    owner_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    author: Mapped[str] = mapped_column(String(200), nullable=False)
    genre: Mapped[str] = mapped_column(String(50), nullable=False, default="other")
    isbn: Mapped[str | None] = mapped_column(String(17), nullable=True, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_school_book: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    educational_level: Mapped[str | None] = mapped_column(String(20), nullable=True)
    subject: Mapped[str | None] = mapped_column(String(100), nullable=True)

    __mapper_args__ = {"polymorphic_on": "kind"}

    @property
    def is_wanted(self) -> bool:
        return self.kind == "wanted"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind,
            "owner_id": self.owner_id,
            "title": self.title,
            "author": self.author,
            "genre": self.genre,
            "isbn": self.isbn,
            "description": self.description,
            "is_school_book": bool(self.is_school_book),
            "educational_level": self.educational_level,
            "subject": self.subject,
            "is_wanted": self.is_wanted,
            "is_available": self.is_available,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class OfferedBook(Book):
    """A book its owner holds and offers for swap (or sale)."""

    # Single-table columns must stay nullable: wanted rows leave them empty
    condition: Mapped[str | None] = mapped_column(String(16), nullable=True)
    price: Mapped[float | None] = mapped_column(Float, nullable=True)
    accepts_swap: Mapped[bool | None] = mapped_column(Boolean, nullable=True, default=True)
    is_available: Mapped[bool | None] = mapped_column(
        Boolean, nullable=True, default=True, index=True
    )

    # Inline so relationships typed as Book load these columns too
    __mapper_args__ = {"polymorphic_identity": "offered", "polymorphic_load": "inline"}

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update(
            condition=self.condition,
            price=self.price,
            accepts_swap=bool(self.accepts_swap),
        )
        return data


class WantedBook(Book):
    """A wishlist entry: something the owner wants, not something they hold."""

    __mapper_args__ = {"polymorphic_identity": "wanted", "polymorphic_load": "inline"}

    @property
    def is_available(self) -> bool:
        return False


# ---------------------------------------------------------------------------
# Matches
# ---------------------------------------------------------------------------

def make_pair_key(book_id_1: str, book_id_2: str) -> str:
    """Order-independent identity of a match: its two offered book ids."""
    low, high = sorted((book_id_1, book_id_2))
    return f"{low}:{high}"


class Match(RecordMixin, Base):
    """A reciprocal pairing of two users and the two offered books."""

    __tablename__ = "matches"

    user_a_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id"), nullable=False, index=True
    )
    user_b_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id"), nullable=False, index=True
    )
    book_from_a_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("books.id", ondelete="SET NULL"), nullable=True
    )
    book_from_b_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("books.id", ondelete="SET NULL"), nullable=True
    )
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=MatchStatus.PENDING.value, index=True
    )
    pair_key: Mapped[str] = mapped_column(String(80), nullable=False, unique=True)
    message_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    user_a: Mapped["UserProfile"] = relationship(foreign_keys=[user_a_id], lazy="raise")
    user_b: Mapped["UserProfile"] = relationship(foreign_keys=[user_b_id], lazy="raise")
    book_from_a: Mapped[Optional["Book"]] = relationship(
        foreign_keys=[book_from_a_id], lazy="raise"
    )
    book_from_b: Mapped[Optional["Book"]] = relationship(
        foreign_keys=[book_from_b_id], lazy="raise"
    )
    messages: Mapped[list["Message"]] = relationship(
        back_populates="match",
        order_by="Message.seq",
        cascade="all, delete-orphan",
        lazy="raise",
    )

    @property
    def status_enum(self) -> MatchStatus:
        return MatchStatus(self.status)

    @property
    def is_stale(self) -> bool:
        """True when an offered book was deleted or withdrawn after matching."""
        for book in (self.book_from_a, self.book_from_b):
            if book is None or not book.is_available:
                return True
        return False

    def to_dict(self, viewer_id: str | None = None, include_messages: bool = True) -> dict:
        data = {
            "id": self.id,
            "status": self.status,
            "user_a": self.user_a.to_dict(),
            "user_b": self.user_b.to_dict(),
            "book_from_a": self.book_from_a.to_dict() if self.book_from_a else None,
            "book_from_b": self.book_from_b.to_dict() if self.book_from_b else None,
            "is_stale": self.is_stale,
            "allowed_actions": [a.value for a in allowed_actions(self.status_enum)],
            "message_count": self.message_count,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if include_messages:
            data["messages"] = [m.to_dict() for m in self.messages]
        side = role(self, viewer_id)
        if side is not None:
            data["your_role"] = side.value
            data["counterpart_id"] = counterpart_id(self, viewer_id)
        return data


class Message(RecordMixin, Base):
    """One chat entry in a match's conversation. Append-only."""

    __tablename__ = "messages"
    __table_args__ = (
        UniqueConstraint("match_id", "seq", name="uq_messages_match_seq"),
        UniqueConstraint("match_id", "client_token", name="uq_messages_match_token"),
    )

    match_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("matches.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sender_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id"), nullable=False
    )
    seq: Mapped[int] = mapped_column(Integer, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    client_token: Mapped[str | None] = mapped_column(String(64), nullable=True)

    match: Mapped["Match"] = relationship(back_populates="messages", lazy="raise")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "match_id": self.match_id,
            "sender_id": self.sender_id,
            "seq": self.seq,
            "content": self.content,
            "read": self.read,
            "created_at": _iso(self.created_at),
        }


class Swap(RecordMixin, Base):
    """A completed exchange, written when its match reaches ``completed``."""

    __tablename__ = "swaps"

    match_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("matches.id"), nullable=False, unique=True
    )
    user_a_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    user_b_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    book_from_a_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    book_from_b_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    completed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "match_id": self.match_id,
            "user_a_id": self.user_a_id,
            "user_b_id": self.user_b_id,
            "book_from_a_id": self.book_from_a_id,
            "book_from_b_id": self.book_from_b_id,
            "completed_at": _iso(self.completed_at),
        }
