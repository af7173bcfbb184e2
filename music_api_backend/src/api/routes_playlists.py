"""
Playlist endpoints (bearer token required on every route):
- GET /playlists (caller's playlists, filterable)
- GET /playlists/{playlist_id}
- POST /playlists
- PATCH /playlists/{playlist_id} (owner only)
- DELETE /playlists/{playlist_id} (owner only)

`trackIds` holds references to tracks; listing another user's track in a
playlist gives no rights over that track.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Set

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.api.auth import Identity, require_identity
from src.api.db import db_session_dep
from src.api.errors import NotFound
from src.api.models import Playlist
from src.api.ownership import delete_owned, load_owned, owner_id, parse_id, update_owned
from src.api.queries import ListFilter, list_owned
from src.api.schemas import MessageResponse, PlaylistCreateRequest, PlaylistResponse, PlaylistUpdateRequest
from src.api.serializers import playlist_to_response
from src.api.validators import (
    DESCRIPTION_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    normalize_tags,
    validate_text,
    validate_track_ids,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/playlists", tags=["Playlists"], dependencies=[Depends(require_identity)])


def _playlist_values(req: PlaylistCreateRequest, fields: Set[str]) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    if "title" in fields:
        values["title"] = validate_text(req.title, "Title", TITLE_MAX_LENGTH)
    if "description" in fields:
        values["description"] = validate_text(req.description, "Description", DESCRIPTION_MAX_LENGTH)
    if "tags" in fields:
        values["tags"] = normalize_tags(req.tags)
    if "track_ids" in fields:
        values["track_ids"] = validate_track_ids(req.track_ids)
    return values


@router.get(
    "",
    response_model=List[PlaylistResponse],
    summary="List my playlists",
    description=(
        "Returns the caller's playlists, newest first, filtered like GET /tracks "
        "(title, description, tags, createdAt, updatedAt)."
    ),
    operation_id="list_playlists",
)
def list_playlists(
    title: Optional[str] = Query(None),
    description: Optional[str] = Query(None),
    tags: Optional[str] = Query(None, description="Comma separated tags."),
    created_at: Optional[str] = Query(None, alias="createdAt"),
    updated_at: Optional[str] = Query(None, alias="updatedAt"),
    identity: Identity = Depends(require_identity),
    db: Session = Depends(db_session_dep),
) -> List[PlaylistResponse]:
    filters = ListFilter.from_query(
        {"title": title, "description": description},
        tags=tags,
        created_at=created_at,
        updated_at=updated_at,
    )
    playlists = list_owned(db, Playlist, identity, filters)
    if not playlists:
        raise NotFound("No playlists found")
    return [playlist_to_response(p) for p in playlists]


@router.get(
    "/{playlist_id}",
    response_model=PlaylistResponse,
    summary="Get a playlist",
    operation_id="get_playlist",
)
def get_playlist(
    playlist_id: str,
    identity: Identity = Depends(require_identity),
    db: Session = Depends(db_session_dep),
) -> PlaylistResponse:
    playlist = load_owned(db, Playlist, parse_id(playlist_id), identity, "view")
    return playlist_to_response(playlist)


@router.post(
    "",
    response_model=PlaylistResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a playlist",
    description="Creates a playlist owned by the caller; any owner field in the body is ignored.",
    operation_id="create_playlist",
)
def create_playlist(
    req: PlaylistCreateRequest,
    identity: Identity = Depends(require_identity),
    db: Session = Depends(db_session_dep),
) -> PlaylistResponse:
    values = _playlist_values(req, {"title", "description", "tags", "track_ids"})
    playlist = Playlist(user_id=owner_id(identity), **values)
    db.add(playlist)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise NotFound("User not found")
    logger.info(
        "playlist_created: playlist_id=%s user_id=%s tracks=%s",
        playlist.id,
        identity.id,
        len(playlist.track_ids),
    )
    return playlist_to_response(playlist)


@router.patch(
    "/{playlist_id}",
    response_model=PlaylistResponse,
    summary="Update a playlist",
    description="Updates the fields present in the body. Only the owner may update; the owner never changes.",
    operation_id="update_playlist",
)
def update_playlist(
    playlist_id: str,
    req: PlaylistUpdateRequest,
    identity: Identity = Depends(require_identity),
    db: Session = Depends(db_session_dep),
) -> PlaylistResponse:
    resource_id = parse_id(playlist_id)
    playlist = update_owned(
        db, Playlist, resource_id, identity, lambda: _playlist_values(req, req.model_fields_set)
    )
    return playlist_to_response(playlist)


@router.delete(
    "/{playlist_id}",
    response_model=MessageResponse,
    summary="Delete a playlist",
    operation_id="delete_playlist",
)
def delete_playlist(
    playlist_id: str,
    identity: Identity = Depends(require_identity),
    db: Session = Depends(db_session_dep),
) -> MessageResponse:
    delete_owned(db, Playlist, parse_id(playlist_id), identity)
    return MessageResponse(message="Playlist deleted successfully")
