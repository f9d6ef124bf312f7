"""Enum-based workflow state machine for the match lifecycle.

Defines match states and participant actions as Python enums with an
explicit transition table. The table is pure data: persistence (and the
compare-and-set that makes a transition atomic) lives in the vertical's
state machine service, which asks this module what is legal.

    pending --accept--> accepted --complete--> completed
       \\
        --decline--> declined
"""

from enum import Enum


# ---------------------------------------------------------------------------
# State definitions
# ---------------------------------------------------------------------------

class MatchStatus(str, Enum):
    """Match lifecycle states."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    COMPLETED = "completed"


class MatchAction(str, Enum):
    """Actions a participant can take on a match."""

    ACCEPT = "accept"
    DECLINE = "decline"
    COMPLETE = "complete"


# ---------------------------------------------------------------------------
# Transition rules
# ---------------------------------------------------------------------------

# {action: (required_current_state, resulting_state)}
_MATCH_TRANSITIONS: dict[MatchAction, tuple[MatchStatus, MatchStatus]] = {
    MatchAction.ACCEPT: (MatchStatus.PENDING, MatchStatus.ACCEPTED),
    MatchAction.DECLINE: (MatchStatus.PENDING, MatchStatus.DECLINED),
    MatchAction.COMPLETE: (MatchStatus.ACCEPTED, MatchStatus.COMPLETED),
}

TERMINAL_STATES: frozenset[MatchStatus] = frozenset(
    {MatchStatus.DECLINED, MatchStatus.COMPLETED}
)


def transition_for(action: MatchAction) -> tuple[MatchStatus, MatchStatus]:
    """Return ``(from_state, to_state)`` for an action."""
    return _MATCH_TRANSITIONS[action]


def can_transition(current: MatchStatus, action: MatchAction) -> bool:
    """Check if an action is allowed from the current state."""
    from_state, _ = _MATCH_TRANSITIONS[action]
    return current == from_state


def allowed_actions(current: MatchStatus) -> list[MatchAction]:
    """Actions that are legal from ``current`` (empty for terminal states)."""
    return [a for a, (src, _) in _MATCH_TRANSITIONS.items() if src == current]


def is_terminal(status: MatchStatus) -> bool:
    return status in TERMINAL_STATES

