"""Participant resolution for matches.

Every "which side of this match is this user" question goes through
``role()``; nothing else compares user ids against ``user_a_id`` /
``user_b_id`` directly.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Optional

from verticals.bookswap.errors import NotParticipant

if TYPE_CHECKING:
    from verticals.bookswap.models.db_models import Match


class Role(str, Enum):
    A = "a"
    B = "b"


def role(match: "Match", user_id: str | None) -> Optional[Role]:
    """Return the side ``user_id`` plays in ``match``, or None."""
    if user_id is None:
        return None
    if user_id == match.user_a_id:
        return Role.A
    if user_id == match.user_b_id:
        return Role.B
    return None


def require_role(match: "Match", user_id: str) -> Role:
    """Like ``role()`` but raises NotParticipant for outsiders."""
    side = role(match, user_id)
    if side is None:
        raise NotParticipant(match.id, user_id)
    return side


def counterpart_id(match: "Match", user_id: str) -> str:
    """The id of the other participant."""
    side = require_role(match, user_id)
    return match.user_b_id if side is Role.A else match.user_a_id


def participant_ids(match: "Match") -> tuple[str, str]:
    return match.user_a_id, match.user_b_id
