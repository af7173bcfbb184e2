"""
Export endpoint:
- GET /exports -> the caller's playlists as a downloadable JSON document
"""

from __future__ import annotations

import json
import logging
import os

from fastapi import APIRouter, Depends
from starlette.responses import Response
from sqlalchemy.orm import Session

from src.api.auth import Identity, require_identity
from src.api.db import db_session_dep
from src.api.models import Playlist
from src.api.queries import ListFilter, list_owned
from src.api.serializers import playlist_to_response

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Export"])


def _export_filename() -> str:
    name = os.getenv("EXPORT_FILENAME", "data.json").strip()
    return name.replace('"', "").replace("/", "_") or "data.json"


@router.get(
    "/exports",
    summary="Export my playlists",
    description="Downloads the caller's playlists as a JSON file.",
    operation_id="export_playlists",
    responses={200: {"content": {"application/json": {}}}},
)
def export_playlists(
    identity: Identity = Depends(require_identity),
    db: Session = Depends(db_session_dep),
) -> Response:
    """Return every playlist owned by the caller; an empty export is an empty array."""
    playlists = list_owned(db, Playlist, identity, ListFilter())
    document = [playlist_to_response(p).model_dump(mode="json", by_alias=True) for p in playlists]

    logger.info("playlists_exported: user_id=%s count=%s", identity.id, len(document))
    return Response(
        content=json.dumps(document, indent=2),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{_export_filename()}"'},
    )
