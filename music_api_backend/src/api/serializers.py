"""Row -> response model conversion. The password hash never leaves this layer."""

from __future__ import annotations

from src.api.models import Playlist, Track, User
from src.api.schemas import PlaylistResponse, TrackResponse, UserResponse


def user_to_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        username=user.username,
        email=user.email,
        phone_number=user.phone_number,
        birth_date=user.birth_date,
        gender=user.gender,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def track_to_response(track: Track) -> TrackResponse:
    return TrackResponse(
        id=track.id,
        user_id=track.user_id,
        title=track.title,
        description=track.description,
        genre=track.genre,
        tags=list(track.tags or []),
        created_at=track.created_at,
        updated_at=track.updated_at,
    )


def playlist_to_response(playlist: Playlist) -> PlaylistResponse:
    return PlaylistResponse(
        id=playlist.id,
        user_id=playlist.user_id,
        title=playlist.title,
        description=playlist.description,
        tags=list(playlist.tags or []),
        track_ids=list(playlist.track_ids or []),
        created_at=playlist.created_at,
        updated_at=playlist.updated_at,
    )
