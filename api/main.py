"""BookSwap API: FastAPI entry point.

Builds the app: database handle, services, middleware, routers, error
mapping and lifecycle hooks. Verticals add their router under
/api/{vertical}/.
"""

import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.middleware import ActingUserMiddleware
from core.database import Database
from core.logging import get_logger
from patterns.domain_config import BookSwapConfig
from verticals.bookswap.config import config as default_config
from verticals.bookswap.errors import BookSwapError, InvalidTransition, status_code_for
from verticals.bookswap.notifications import (
    NotificationDispatcher,
    Notifier,
    build_notifier,
)
from verticals.bookswap.router import router as bookswap_router
from verticals.bookswap.service import CatalogService, MatchService

logger = get_logger("bookswap.api")

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

CORS_ORIGINS = os.getenv(
    "CORS_ORIGINS", "http://localhost:3000,http://localhost:3001"
).split(",")


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup/shutdown hooks."""
    await app.state.database.create_all()
    logger.info("BookSwap API started")
    yield
    logger.info("BookSwap API shutting down")
    await app.state.dispatcher.drain()
    await app.state.database.dispose()


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------

async def bookswap_error_handler(request: Request, exc: BookSwapError) -> JSONResponse:
    body = exc.to_dict()
    if isinstance(exc, InvalidTransition):
        body["match"] = exc.current
    return JSONResponse(status_code=status_code_for(exc), content=body)


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------

def create_app(
    database: Optional[Database] = None,
    config: Optional[BookSwapConfig] = None,
    notifier: Optional[Notifier] = None,
) -> FastAPI:
    config = config or default_config
    database = database or Database()
    dispatcher = NotificationDispatcher(notifier or build_notifier(config.notifications))
    match_service = MatchService(database, config, dispatcher)

    app = FastAPI(
        title="BookSwap",
        description="Peer-to-peer book exchange: reciprocal matching, swap lifecycle and chat",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.database = database
    app.state.dispatcher = dispatcher
    app.state.match_service = match_service
    app.state.catalog_service = CatalogService(database, match_service)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(ActingUserMiddleware)

    app.add_exception_handler(BookSwapError, bookswap_error_handler)

    # -- Routers (verticals register here) --
    app.include_router(bookswap_router, prefix="/api/bookswap", tags=["BookSwap"])

    # -- Health & root --

    @app.get("/health")
    async def health():
        return {"status": "healthy", "version": VERSION}

    @app.get("/")
    async def root():
        return {
            "name": "BookSwap",
            "version": VERSION,
            "docs": "/docs",
            "verticals": ["bookswap"],
        }

    return app


app = create_app()
