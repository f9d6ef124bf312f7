"""Pydantic schemas for API request validation."""

from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Genre(str, Enum):
    FICTION = "fiction"
    NON_FICTION = "non-fiction"
    SCIENCE = "science"
    HISTORY = "history"
    BIOGRAPHY = "biography"
    CHILDREN = "children"
    MYSTERY = "mystery"
    ROMANCE = "romance"
    FANTASY = "fantasy"
    OTHER = "other"


class BookCondition(str, Enum):
    LIKE_NEW = "like-new"
    VERY_GOOD = "very-good"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class EducationalLevel(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"
    HIGH_SCHOOL = "high-school"
    UNIVERSITY = "university"
    OTHER = "other"


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class UserCreate(BaseModel):
    username: str = Field(..., min_length=1, max_length=64)
    email: str = Field(..., min_length=3, max_length=320)
    location: Optional[str] = Field(None, max_length=200)


class _BookFields(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    author: str = Field(..., min_length=1, max_length=200)
    genre: Genre = Genre.OTHER
    isbn: Optional[str] = Field(None, pattern=r"^[0-9Xx\- ]{10,17}$")
    description: Optional[str] = None
    is_school_book: bool = False
    educational_level: Optional[EducationalLevel] = None
    subject: Optional[str] = Field(None, max_length=100)


class OfferedBookCreate(_BookFields):
    kind: Literal["offered"]
    condition: BookCondition
    price: Optional[float] = Field(None, gt=0)
    accepts_swap: bool = True
    is_available: bool = True


class WantedBookCreate(_BookFields):
    kind: Literal["wanted"]


BookCreate = Annotated[
    Union[OfferedBookCreate, WantedBookCreate],
    Field(discriminator="kind"),
]


class AvailabilityUpdate(BaseModel):
    is_available: bool


class MessageCreate(BaseModel):
    # Length and blank checks happen in the ledger so every entry point
    # rejects the same content
    content: str
    client_token: Optional[str] = Field(None, min_length=1, max_length=64)
