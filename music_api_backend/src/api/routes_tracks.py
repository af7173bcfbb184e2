"""
Track endpoints (bearer token required on every route):
- GET /tracks (caller's tracks, filterable)
- GET /tracks/{track_id}
- POST /tracks
- PATCH /tracks/{track_id} (owner only)
- DELETE /tracks/{track_id} (owner only)
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
from src.api.models import Track
from src.api.ownership import delete_owned, load_owned, owner_id, parse_id, update_owned
from src.api.queries import ListFilter, list_owned
from src.api.schemas import MessageResponse, TrackCreateRequest, TrackResponse, TrackUpdateRequest
from src.api.serializers import track_to_response
from src.api.validators import (
    DESCRIPTION_MAX_LENGTH,
    GENRE_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    normalize_tags,
    validate_text,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tracks", tags=["Tracks"], dependencies=[Depends(require_identity)])


def _track_values(req: TrackCreateRequest, fields: Set[str]) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    if "title" in fields:
        values["title"] = validate_text(req.title, "Title", TITLE_MAX_LENGTH)
    if "description" in fields:
        values["description"] = validate_text(req.description, "Description", DESCRIPTION_MAX_LENGTH)
    if "genre" in fields:
        values["genre"] = validate_text(req.genre, "Genre", GENRE_MAX_LENGTH)
    if "tags" in fields:
        values["tags"] = normalize_tags(req.tags)
    return values


@router.get(
    "",
    response_model=List[TrackResponse],
    summary="List my tracks",
    description=(
        "Returns the caller's tracks, newest first. title/description/genre match as "
        "case-insensitive substrings, tags (comma separated) must all be present, and "
        "createdAt/updatedAt select tracks at or after the given date."
    ),
    operation_id="list_tracks",
)
def list_tracks(
    title: Optional[str] = Query(None),
    description: Optional[str] = Query(None),
    genre: Optional[str] = Query(None),
    tags: Optional[str] = Query(None, description="Comma separated tags."),
    created_at: Optional[str] = Query(None, alias="createdAt"),
    updated_at: Optional[str] = Query(None, alias="updatedAt"),
    identity: Identity = Depends(require_identity),
    db: Session = Depends(db_session_dep),
) -> List[TrackResponse]:
    filters = ListFilter.from_query(
        {"title": title, "description": description, "genre": genre},
        tags=tags,
        created_at=created_at,
        updated_at=updated_at,
    )
    tracks = list_owned(db, Track, identity, filters)
    if not tracks:
        raise NotFound("No tracks found")
    return [track_to_response(t) for t in tracks]


@router.get(
    "/{track_id}",
    response_model=TrackResponse,
    summary="Get a track",
    operation_id="get_track",
)
def get_track(
    track_id: str,
    identity: Identity = Depends(require_identity),
    db: Session = Depends(db_session_dep),
) -> TrackResponse:
    track = load_owned(db, Track, parse_id(track_id), identity, "view")
    return track_to_response(track)


@router.post(
    "",
    response_model=TrackResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a track",
    description="Creates a track owned by the caller; any owner field in the body is ignored.",
    operation_id="create_track",
)
def create_track(
    req: TrackCreateRequest,
    identity: Identity = Depends(require_identity),
    db: Session = Depends(db_session_dep),
) -> TrackResponse:
    values = _track_values(req, {"title", "description", "genre", "tags"})
    track = Track(user_id=owner_id(identity), **values)
    db.add(track)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise NotFound("User not found")
    logger.info("track_created: track_id=%s user_id=%s", track.id, identity.id)
    return track_to_response(track)


@router.patch(
    "/{track_id}",
    response_model=TrackResponse,
    summary="Update a track",
    description="Updates the fields present in the body. Only the owner may update; the owner never changes.",
    operation_id="update_track",
)
def update_track(
    track_id: str,
    req: TrackUpdateRequest,
    identity: Identity = Depends(require_identity),
    db: Session = Depends(db_session_dep),
) -> TrackResponse:
    resource_id = parse_id(track_id)
    track = update_owned(db, Track, resource_id, identity, lambda: _track_values(req, req.model_fields_set))
    return track_to_response(track)


@router.delete(
    "/{track_id}",
    response_model=MessageResponse,
    summary="Delete a track",
    operation_id="delete_track",
)
def delete_track(
    track_id: str,
    identity: Identity = Depends(require_identity),
    db: Session = Depends(db_session_dep),
) -> MessageResponse:
    delete_owned(db, Track, parse_id(track_id), identity)
    return MessageResponse(message="Track deleted successfully")
