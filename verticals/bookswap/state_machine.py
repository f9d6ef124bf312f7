"""Match State Machine: persisted, compare-and-set transitions.

The transition table lives in ``patterns.workflow_states``. This module
applies it to stored matches: the stored status is checked and changed by
one conditional UPDATE, so two participants acting at once can never both
succeed, and the loser sees the winner's state.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from core.logging import get_logger
from patterns.workflow_states import MatchAction, MatchStatus, transition_for
from verticals.bookswap.errors import InvalidTransition, NotFound
from verticals.bookswap.models.db_models import Match
from verticals.bookswap.notifications import EventKind
from verticals.bookswap.participants import counterpart_id, require_role
from verticals.bookswap.repository import MatchRepository, SwapRepository

logger = get_logger(__name__)

TRANSITION_EVENTS: dict[MatchAction, EventKind] = {
    MatchAction.ACCEPT: EventKind.MATCH_ACCEPTED,
    MatchAction.DECLINE: EventKind.MATCH_DECLINED,
    MatchAction.COMPLETE: EventKind.MATCH_COMPLETED,
}


@dataclass
class TransitionOutcome:
    match: Match
    action: MatchAction
    from_state: MatchStatus
    to_state: MatchStatus
    actor_id: str
    event: EventKind
    notify_user_id: str


class MatchStateMachine:
    def __init__(self, session: AsyncSession):
        self.matches = MatchRepository(session)
        self.swaps = SwapRepository(session)

    async def apply(self, match_id: str, actor_id: str, action: MatchAction) -> TransitionOutcome:
        """Apply ``action`` for ``actor_id``.

        Raises NotFound, NotParticipant, or InvalidTransition (carrying the
        match as currently stored). Nothing is written on failure.
        """
        match = await self.matches.get_full(match_id, include_messages=False)
        if match is None:
            raise NotFound("match", match_id)
        require_role(match, actor_id)

        from_state, to_state = transition_for(action)
        committed = await self.matches.compare_and_set_status(match_id, from_state, to_state)
        if not committed:
            current = await self.matches.get_full(match_id)
            logger.info(
                "rejected %s on match %s by %s: status is %s",
                action.value, match_id, actor_id, current.status,
            )
            raise InvalidTransition(current, action.value, viewer_id=actor_id)

        if action is MatchAction.COMPLETE:
            await self.swaps.record(match)

        updated = await self.matches.get_full(match_id)
        logger.info(
            "match %s %s -> %s by %s", match_id, from_state.value, to_state.value, actor_id
        )
        return TransitionOutcome(
            match=updated,
            action=action,
            from_state=from_state,
            to_state=to_state,
            actor_id=actor_id,
            event=TRANSITION_EVENTS[action],
            notify_user_id=counterpart_id(updated, actor_id),
        )
