"""
FastAPI application entrypoint for the music API.

Routes:
- POST /users/register, POST /users/login (public)
- GET/PATCH/DELETE /users/me (bearer token)
- /tracks and /playlists CRUD (bearer token; updates/deletes owner only)
- GET /exports (bearer token)

CORS is enabled for local development (http://localhost:3000) and can be extended
via environment variables.
"""

from __future__ import annotations

import logging
import os as _os
from contextlib import asynccontextmanager
from typing import AsyncGenerator, List, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.db import Database
from src.api.errors import install_error_handlers
from src.api.routes_exports import router as exports_router
from src.api.routes_playlists import router as playlists_router
from src.api.routes_tracks import router as tracks_router
from src.api.routes_users import router as users_router

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "Users", "description": "Registration, login and the caller's own profile."},
    {"name": "Tracks", "description": "Caller-owned tracks."},
    {"name": "Playlists", "description": "Caller-owned playlists of track references."},
    {"name": "Export", "description": "Download the caller's playlists."},
    {"name": "Health", "description": "Service health and basic runtime info."},
]


def _configure_logging() -> None:
    level = _os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def _cors_origins() -> List[str]:
    # Note: credentials=true requires explicit origins (not '*') in browsers.
    # Extra origins come from CORS_ALLOW_ORIGINS or ALLOWED_ORIGINS (comma separated).
    origins = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
    raw = _os.getenv("CORS_ALLOW_ORIGINS") or _os.getenv("ALLOWED_ORIGINS", "")
    origins.extend(o.strip() for o in raw.split(",") if o.strip())
    return origins


# PUBLIC_INTERFACE
def create_app(database: Optional[Database] = None) -> FastAPI:
    """
    Build the application.

    Args:
        database: an existing handle (tests, embedding). When omitted, a handle is
            built from the environment at startup and disposed at shutdown.
    """
    _configure_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        owned = app.state.db is None
        if owned:
            app.state.db = Database.from_env()
        app.state.db.create_all()
        logger.info("application_started: owns_db=%s", owned)
        try:
            yield
        finally:
            if owned:
                app.state.db.dispose()
                app.state.db = None
            logger.info("application_stopped")

    app = FastAPI(
        title="Music API",
        description=(
            "User accounts, tracks and playlists.\n\n"
            "Authentication: `Authorization: Bearer <token>` from POST /users/login.\n\n"
            "Only the owner of a track or playlist may update or delete it."
        ),
        version="1.0.0",
        openapi_tags=openapi_tags,
        lifespan=lifespan,
    )
    app.state.db = database

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    install_error_handlers(app)

    app.include_router(users_router)
    app.include_router(tracks_router)
    app.include_router(playlists_router)
    app.include_router(exports_router)

    @app.get(
        "/",
        summary="Health check",
        description="Simple health check endpoint.",
        tags=["Health"],
    )
    def health_check():
        """Return basic service health information."""
        return {"status": "ok"}

    return app


app = create_app()
