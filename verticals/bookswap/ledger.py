"""Conversation Ledger: the append-only message log of one match.

Messages are ordered by a per-match ``seq`` allocated from the match row
in the same statement that checks the match is not declined. Unread
counts are always computed from the stored ``read`` flags.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from patterns.domain_config import MessagingConfig
from patterns.workflow_states import MatchStatus
from verticals.bookswap.errors import InvalidMessage, MatchClosed, NotFound
from verticals.bookswap.models.db_models import Match, Message
from verticals.bookswap.participants import counterpart_id, require_role
from verticals.bookswap.repository import MatchRepository, MessageRepository


@dataclass
class AppendOutcome:
    message: Message
    created: bool
    recipient_id: str


class ConversationLedger:
    def __init__(self, session: AsyncSession, config: MessagingConfig | None = None):
        self.config = config or MessagingConfig()
        self.matches = MatchRepository(session)
        self.messages = MessageRepository(session)

    async def _participant_match(self, match_id: str, user_id: str) -> Match:
        match = await self.matches.get(match_id)
        if match is None:
            raise NotFound("match", match_id)
        require_role(match, user_id)
        return match

    def _clean(self, content: str) -> str:
        text = (content or "").strip()
        if not text:
            raise InvalidMessage("Message content is empty")
        if len(text) > self.config.max_length:
            raise InvalidMessage(
                f"Message is {len(text)} characters; the limit is {self.config.max_length}",
                max_length=self.config.max_length,
            )
        return text

    async def append(
        self,
        match_id: str,
        sender_id: str,
        content: str,
        client_token: str | None = None,
    ) -> AppendOutcome:
        match = await self._participant_match(match_id, sender_id)
        recipient_id = counterpart_id(match, sender_id)

        # A retried send returns the stored message, even once the match is closed
        if client_token:
            earlier = await self.messages.get_by_client_token(match_id, client_token)
            if earlier is not None:
                return AppendOutcome(earlier, created=False, recipient_id=recipient_id)

        if match.status == MatchStatus.DECLINED.value:
            raise MatchClosed(match_id)
        text = self._clean(content)

        seq = await self.matches.allocate_message_seq(match_id)
        if seq is None:
            if await self.matches.get_status(match_id) is None:
                raise NotFound("match", match_id)
            raise MatchClosed(match_id)

        message = await self.messages.create(
            {
                "match_id": match_id,
                "sender_id": sender_id,
                "seq": seq,
                "content": text,
                "read": False,
                "client_token": client_token,
            }
        )
        return AppendOutcome(message, created=True, recipient_id=recipient_id)

    async def history(self, match_id: str, viewer_id: str) -> list[Message]:
        await self._participant_match(match_id, viewer_id)
        return await self.messages.history(match_id)

    async def mark_read(self, match_id: str, reader_id: str) -> int:
        """Mark everything the reader received as read. Idempotent."""
        await self._participant_match(match_id, reader_id)
        return await self.messages.mark_read(match_id, reader_id)

    async def unread_count(self, match_id: str, viewer_id: str) -> int:
        await self._participant_match(match_id, viewer_id)
        return await self.messages.unread_count(match_id, viewer_id)
