"""BookSwap error taxonomy.

Every error is recoverable: it reports why an operation was rejected and
leaves stored state untouched. The API layer maps each class to an HTTP
status (see ``STATUS_CODES``).
"""

from __future__ import annotations

from typing import Any


class BookSwapError(Exception):
    """Base class for all domain errors."""

    kind = "bookswap_error"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.kind, "detail": self.message, **self.details}


class NotFound(BookSwapError):
    kind = "not_found"

    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity} {entity_id!r} not found", entity=entity, id=entity_id)
        self.entity = entity
        self.entity_id = entity_id


class InvalidTransition(BookSwapError):
    """The requested action is illegal from the match's current state.

    ``current`` is the match as it is now, serialised when the error is
    raised so it outlives the rolled-back session.
    """

    kind = "invalid_transition"

    def __init__(self, match: Any, action: str, viewer_id: str | None = None):
        super().__init__(
            f"Cannot {action} match {match.id} in state {match.status}",
            match_id=match.id,
            action=action,
            current_status=match.status,
        )
        self.match_id = match.id
        self.action = action
        self.current_status = match.status
        self.current = match.to_dict(viewer_id=viewer_id)


class NotParticipant(BookSwapError):
    kind = "not_participant"

    def __init__(self, match_id: str, user_id: str):
        super().__init__(
            f"User {user_id!r} is not a participant of match {match_id}",
            match_id=match_id,
            user_id=user_id,
        )


class MatchClosed(BookSwapError):
    kind = "match_closed"

    def __init__(self, match_id: str):
        super().__init__(f"Match {match_id} was declined; messaging is closed", match_id=match_id)


class InvalidMessage(BookSwapError):
    kind = "invalid_message"


class AlreadyExists(BookSwapError):
    kind = "already_exists"

    def __init__(self, entity: str, key: str):
        super().__init__(f"{entity} {key!r} already exists", entity=entity, key=key)


class NotOwner(BookSwapError):
    kind = "not_owner"

    def __init__(self, book_id: str, user_id: str):
        super().__init__(
            f"User {user_id!r} does not own book {book_id}", book_id=book_id, user_id=user_id
        )


class DependencyUnavailable(BookSwapError):
    """An external collaborator (catalog, directory) could not be reached."""

    kind = "dependency_unavailable"

    def __init__(self, dependency: str, reason: str):
        super().__init__(f"{dependency} unavailable: {reason}", dependency=dependency)


STATUS_CODES: dict[type[BookSwapError], int] = {
    NotFound: 404,
    InvalidTransition: 409,
    NotParticipant: 403,
    MatchClosed: 409,
    InvalidMessage: 422,
    NotOwner: 403,
    AlreadyExists: 409,
    DependencyUnavailable: 503,
}


def status_code_for(exc: BookSwapError) -> int:
    for cls in type(exc).__mro__:
        if cls in STATUS_CODES:
            return STATUS_CODES[cls]
    return 400
