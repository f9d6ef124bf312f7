"""BookSwap API router: matches, messages, swaps, and catalog glue.

Route handlers stay thin: they read the acting user (X-User-ID, see
api.middleware), call MatchService / CatalogService from app.state, and
serialise with the models' to_dict(). Domain errors propagate to the
BookSwapError handler registered in api.main.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request

from api.middleware import get_current_user_id, require_user
from patterns.workflow_states import MatchStatus
from verticals.bookswap.models.db_models import Match
from verticals.bookswap.models.schemas import (
    AvailabilityUpdate,
    BookCreate,
    MessageCreate,
    UserCreate,
)
from verticals.bookswap.service import CatalogService, MatchService

router = APIRouter()


def get_match_service(request: Request) -> MatchService:
    return request.app.state.match_service


def get_catalog_service(request: Request) -> CatalogService:
    return request.app.state.catalog_service


def _match_list(matches: list[Match], viewer_id: Optional[str] = None, unread=None) -> dict:
    data = []
    for match in matches:
        item = match.to_dict(viewer_id=viewer_id, include_messages=False)
        if unread is not None:
            item["unread_count"] = unread.get(match.id, 0)
        data.append(item)
    return {"data": data, "count": len(data)}


# ============================================================================
# Match Endpoints
# ============================================================================

@router.post("/matches/find")
async def find_matches(service: MatchService = Depends(get_match_service)):
    """Recompute reciprocal matches over the whole catalog."""
    matches = await service.find_matches()
    return _match_list(matches, viewer_id=get_current_user_id())


@router.get("/matches")
async def list_matches(
    status: Optional[MatchStatus] = None,
    user_id: str = Depends(require_user),
    service: MatchService = Depends(get_match_service),
):
    """List the acting user's matches, most recently updated first."""
    matches = await service.list_matches(user_id, status)
    unread = await service.unread_counts(user_id)
    return _match_list(matches, viewer_id=user_id, unread=unread)


@router.get("/matches/{match_id}")
async def get_match(
    match_id: str,
    user_id: str = Depends(require_user),
    service: MatchService = Depends(get_match_service),
):
    match = await service.get_match(match_id, viewer_id=user_id)
    data = match.to_dict(viewer_id=user_id)
    data["unread_count"] = await service.unread_count(match_id, user_id)
    return data


@router.post("/matches/{match_id}/accept")
async def accept_match(
    match_id: str,
    user_id: str = Depends(require_user),
    service: MatchService = Depends(get_match_service),
):
    match = await service.accept_match(match_id, user_id)
    return match.to_dict(viewer_id=user_id)


@router.post("/matches/{match_id}/decline")
async def decline_match(
    match_id: str,
    user_id: str = Depends(require_user),
    service: MatchService = Depends(get_match_service),
):
    match = await service.decline_match(match_id, user_id)
    return match.to_dict(viewer_id=user_id)


@router.post("/matches/{match_id}/complete")
async def complete_match(
    match_id: str,
    user_id: str = Depends(require_user),
    service: MatchService = Depends(get_match_service),
):
    match = await service.complete_match(match_id, user_id)
    return match.to_dict(viewer_id=user_id)


# ============================================================================
# Message Endpoints
# ============================================================================

@router.get("/matches/{match_id}/messages")
async def list_messages(
    match_id: str,
    user_id: str = Depends(require_user),
    service: MatchService = Depends(get_match_service),
):
    """Conversation history in send order."""
    messages = await service.list_messages(match_id, user_id)
    return {"data": [m.to_dict() for m in messages], "count": len(messages)}


@router.post("/matches/{match_id}/messages", status_code=201)
async def send_message(
    match_id: str,
    request: MessageCreate,
    user_id: str = Depends(require_user),
    service: MatchService = Depends(get_match_service),
):
    message = await service.send_message(
        match_id, user_id, request.content, client_token=request.client_token
    )
    return message.to_dict()


@router.post("/matches/{match_id}/read")
async def mark_read(
    match_id: str,
    user_id: str = Depends(require_user),
    service: MatchService = Depends(get_match_service),
):
    marked = await service.mark_messages_read(match_id, user_id)
    return {"match_id": match_id, "marked_read": marked, "unread_count": 0}


# ============================================================================
# Swap & User Endpoints
# ============================================================================

@router.get("/swaps")
async def list_swaps(
    user_id: str = Depends(require_user),
    service: MatchService = Depends(get_match_service),
):
    """Completed swaps the acting user took part in."""
    swaps = await service.list_completed_swaps(user_id)
    return {"data": [s.to_dict() for s in swaps], "count": len(swaps)}


@router.get("/users/{user_id}/summary")
async def user_summary(
    user_id: str,
    service: MatchService = Depends(get_match_service),
):
    return await service.get_user_summary(user_id)


@router.post("/users", status_code=201)
async def register_user(
    request: UserCreate,
    catalog: CatalogService = Depends(get_catalog_service),
):
    user = await catalog.register_user(request.username, request.email, request.location)
    return user.to_dict()


# ============================================================================
# Catalog Endpoints
# ============================================================================

@router.post("/books", status_code=201)
async def add_book(
    request: BookCreate,
    user_id: str = Depends(require_user),
    catalog: CatalogService = Depends(get_catalog_service),
):
    """List an offered or wanted book for the acting user."""
    book = await catalog.add_book(user_id, request.model_dump(mode="json"))
    return book.to_dict()


@router.get("/users/{user_id}/books")
async def list_user_books(
    user_id: str,
    catalog: CatalogService = Depends(get_catalog_service),
):
    books = await catalog.list_user_books(user_id)
    return {
        "offered": [b.to_dict() for b in books["offered"]],
        "wanted": [b.to_dict() for b in books["wanted"]],
    }


@router.patch("/books/{book_id}/availability")
async def set_availability(
    book_id: str,
    request: AvailabilityUpdate,
    user_id: str = Depends(require_user),
    catalog: CatalogService = Depends(get_catalog_service),
):
    book = await catalog.set_book_availability(book_id, user_id, request.is_available)
    return book.to_dict()


@router.delete("/books/{book_id}", status_code=204)
async def delete_book(
    book_id: str,
    user_id: str = Depends(require_user),
    catalog: CatalogService = Depends(get_catalog_service),
):
    """Remove a book. Matches referencing it remain and read as stale."""
    await catalog.delete_book(book_id, user_id)
