"""BookSwap MCP Server: the Match API as tools.

Each tool takes the acting user's id explicitly (there is no request
header over MCP) and returns a plain dict. Domain errors come back as
``{"error": kind, "detail": message, ...}`` so an agent can read why an
action was rejected.
"""

from functools import wraps
from typing import Any, Awaitable, Callable

from fastmcp import FastMCP

from core.mcp.server_template import create_mcp_server
from patterns.workflow_states import MatchStatus
from verticals.bookswap.errors import BookSwapError, InvalidTransition
from verticals.bookswap.service import MatchService


def _as_result(fn: Callable[..., Awaitable[dict]]) -> Callable[..., Awaitable[dict]]:
    @wraps(fn)
    async def wrapper(*args, **kwargs) -> dict[str, Any]:
        try:
            return await fn(*args, **kwargs)
        except InvalidTransition as exc:
            return {**exc.to_dict(), "match": exc.current}
        except BookSwapError as exc:
            return exc.to_dict()

    return wrapper


class BookSwapTools:
    """Tool implementations bound to one MatchService."""

    def __init__(self, service: MatchService):
        self.service = service

    # ---------------------------------------------------------------------
    # Matching
    # ---------------------------------------------------------------------

    @_as_result
    async def find_matches(self) -> dict[str, Any]:
        """Recompute reciprocal matches across the catalog."""
        matches = await self.service.find_matches()
        return {
            "match_count": len(matches),
            "matches": [m.to_dict(include_messages=False) for m in matches],
        }

    @_as_result
    async def list_matches(self, user_id: str, status: str | None = None) -> dict[str, Any]:
        """List a user's matches, optionally filtered by status."""
        known = [s.value for s in MatchStatus]
        if status and status not in known:
            return {"error": "invalid_status", "detail": f"status must be one of {known}"}
        wanted_status = MatchStatus(status) if status else None
        matches = await self.service.list_matches(user_id, wanted_status)
        unread = await self.service.unread_counts(user_id)
        return {
            "user_id": user_id,
            "match_count": len(matches),
            "matches": [
                {
                    **m.to_dict(viewer_id=user_id, include_messages=False),
                    "unread_count": unread.get(m.id, 0),
                }
                for m in matches
            ],
        }

    @_as_result
    async def get_match(self, match_id: str, user_id: str) -> dict[str, Any]:
        """Get one match with its conversation."""
        match = await self.service.get_match(match_id, viewer_id=user_id)
        return match.to_dict(viewer_id=user_id)

    # ---------------------------------------------------------------------
    # Lifecycle
    # ---------------------------------------------------------------------

    @_as_result
    async def accept_match(self, match_id: str, user_id: str) -> dict[str, Any]:
        """Accept a pending match."""
        match = await self.service.accept_match(match_id, user_id)
        return match.to_dict(viewer_id=user_id, include_messages=False)

    @_as_result
    async def decline_match(self, match_id: str, user_id: str) -> dict[str, Any]:
        """Decline a pending match. Closes its conversation."""
        match = await self.service.decline_match(match_id, user_id)
        return match.to_dict(viewer_id=user_id, include_messages=False)

    @_as_result
    async def complete_match(self, match_id: str, user_id: str) -> dict[str, Any]:
        """Mark an accepted match as swapped."""
        match = await self.service.complete_match(match_id, user_id)
        return match.to_dict(viewer_id=user_id, include_messages=False)

    # ---------------------------------------------------------------------
    # Conversation
    # ---------------------------------------------------------------------

    @_as_result
    async def send_message(
        self,
        match_id: str,
        user_id: str,
        content: str,
        client_token: str | None = None,
    ) -> dict[str, Any]:
        """Append a message to a match's conversation."""
        message = await self.service.send_message(match_id, user_id, content, client_token)
        return message.to_dict()

    @_as_result
    async def mark_messages_read(self, match_id: str, user_id: str) -> dict[str, Any]:
        """Mark every message the user received in a match as read."""
        marked = await self.service.mark_messages_read(match_id, user_id)
        return {"match_id": match_id, "marked_read": marked}

    @_as_result
    async def user_summary(self, user_id: str) -> dict[str, Any]:
        """Books, matches and completed swaps for one user."""
        return await self.service.get_user_summary(user_id)


TOOL_NAMES = (
    "find_matches",
    "list_matches",
    "get_match",
    "accept_match",
    "decline_match",
    "complete_match",
    "send_message",
    "mark_messages_read",
    "user_summary",
)


def create_bookswap_server(service: MatchService) -> FastMCP:
    server = create_mcp_server(
        name="bookswap",
        instructions="Reciprocal book matching, swap lifecycle and match chat.",
    )
    tools = BookSwapTools(service)
    for name in TOOL_NAMES:
        server.tool()(getattr(tools, name))
    return server
