"""
Field rules for users, tracks and playlists.

Each function takes a raw value, returns the normalized value to persist, and
raises BadRequest with the rule's message on the first violation. They are
called by the route handlers before a row is created or changed.
"""

from __future__ import annotations

import re
import uuid
from datetime import date
from typing import Iterable, List, Optional

from src.api.errors import BadRequest

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 20
PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 30
MAX_AGE_YEARS = 120

TITLE_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500
GENRE_MAX_LENGTH = 50
TAG_MAX_LENGTH = 30
MAX_TAGS = 20

GENDERS = ("male", "female", "other", "prefer_not_to_say")

_USERNAME_RE = re.compile(r"^[A-Za-z0-9_]+$")
_PHONE_RE = re.compile(r"^\+?[0-9]{7,15}$")


def validate_username(value: str) -> str:
    username = value.strip()
    if not USERNAME_MIN_LENGTH <= len(username) <= USERNAME_MAX_LENGTH:
        raise BadRequest(
            f"Username must be between {USERNAME_MIN_LENGTH} and {USERNAME_MAX_LENGTH} characters long"
        )
    if not _USERNAME_RE.match(username):
        raise BadRequest("Username may only contain letters, numbers and underscores")
    return username


def validate_password(value: Optional[str]) -> str:
    if not value:
        raise BadRequest("Password is required")
    if len(value) < PASSWORD_MIN_LENGTH:
        raise BadRequest(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long")
    if len(value) > PASSWORD_MAX_LENGTH:
        raise BadRequest(f"Password must be at most {PASSWORD_MAX_LENGTH} characters long")
    return value


def normalize_email(value: str) -> str:
    return value.strip().lower()


def validate_phone_number(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    phone = re.sub(r"[\s\-()]", "", value)
    if not _PHONE_RE.match(phone):
        raise BadRequest("Invalid phone number")
    return phone


def _years_before(day: date, years: int) -> date:
    try:
        return day.replace(year=day.year - years)
    except ValueError:
        # Feb 29 -> Feb 28
        return day.replace(year=day.year - years, day=28)


def validate_birth_date(value: Optional[date], today: Optional[date] = None) -> Optional[date]:
    """A birth date must lie in the past and at most 120 years back."""
    if value is None:
        return None
    today = today or date.today()
    if value >= today or value < _years_before(today, MAX_AGE_YEARS):
        raise BadRequest("Invalid birthdate")
    return value


def validate_gender(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    gender = value.strip().lower()
    if gender not in GENDERS:
        raise BadRequest(f"Gender must be one of: {', '.join(GENDERS)}")
    return gender


def validate_text(value: Optional[str], field: str, max_length: int) -> Optional[str]:
    """Optional free-text field: absent is fine, present must be non-empty and bounded."""
    if value is None:
        return None
    text = value.strip()
    if not text:
        raise BadRequest(f"{field} cannot be empty")
    if len(text) > max_length:
        raise BadRequest(f"{field} must be at most {max_length} characters long")
    return text


def normalize_tags(values: Optional[Iterable[str]]) -> List[str]:
    if values is None:
        return []
    tags: List[str] = []
    for raw in values:
        tag = raw.strip()
        if not tag:
            raise BadRequest("Tags cannot be empty")
        if len(tag) > TAG_MAX_LENGTH:
            raise BadRequest(f"Tags must be at most {TAG_MAX_LENGTH} characters long")
        if tag not in tags:
            tags.append(tag)
    if len(tags) > MAX_TAGS:
        raise BadRequest(f"A maximum of {MAX_TAGS} tags is allowed")
    return tags


def validate_track_ids(values: Optional[Iterable[str]]) -> List[str]:
    """Track references must be well-formed ids; order is preserved."""
    if values is None:
        return []
    track_ids: List[str] = []
    for raw in values:
        try:
            track_ids.append(str(uuid.UUID(str(raw))))
        except ValueError:
            raise BadRequest("Invalid track ID")
    return track_ids
