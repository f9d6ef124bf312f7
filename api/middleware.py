"""Acting-user middleware using ContextVar.

The upstream auth gateway authenticates the caller and forwards their id
in the X-User-ID request header. The id is stored in a ContextVar so that
route handlers can call get_current_user_id() without threading the
request object through.
"""

from contextvars import ContextVar
from typing import Optional

from fastapi import HTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

USER_HEADER = "X-User-ID"

# ---------------------------------------------------------------------------
# Context variable for the acting user (task-safe)
# ---------------------------------------------------------------------------

_current_user: ContextVar[Optional[str]] = ContextVar("current_user", default=None)


def get_current_user_id() -> Optional[str]:
    """Return the acting user's id for the current request, if any."""
    return _current_user.get()


async def require_user() -> str:
    """FastAPI dependency: the acting user's id, or 401 when absent::

        @router.post("/matches/{match_id}/accept")
        async def accept(match_id: str, user_id: str = Depends(require_user)):
            ...
    """
    user_id = _current_user.get()
    if not user_id:
        raise HTTPException(status_code=401, detail=f"{USER_HEADER} header required")
    return user_id


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

class ActingUserMiddleware(BaseHTTPMiddleware):
    """Copy the X-User-ID header into the request context."""

    async def dispatch(self, request: Request, call_next) -> Response:
        user_id = request.headers.get(USER_HEADER, "").strip() or None
        token = _current_user.set(user_id)
        try:
            response = await call_next(request)
            return response
        finally:
            _current_user.reset(token)
