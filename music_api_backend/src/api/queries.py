"""
Listing queries for caller-owned tracks and playlists.

Supported filters:
- text fields (title, description, genre): case-insensitive substring
- tags: comma separated; a row must carry every listed tag (case-insensitive)
- createdAt / updatedAt: ISO date or datetime; rows at or after that instant
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Type, Union

from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from src.api.auth import Identity
from src.api.errors import BadRequest
from src.api.models import Playlist, Track
from src.api.ownership import owner_id

Listable = Union[Type[Track], Type[Playlist]]


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


# PUBLIC_INTERFACE
def parse_since(raw: Optional[str], name: str) -> Optional[datetime]:
    """Parse an ISO date/datetime query value; naive values are taken as UTC."""
    if raw is None or not raw.strip():
        return None
    value = raw.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise BadRequest(f"Invalid {name} date")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


# PUBLIC_INTERFACE
def parse_tags(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [tag.strip().lower() for tag in raw.split(",") if tag.strip()]


@dataclass
class ListFilter:
    """Filters accepted by GET /tracks and GET /playlists."""

    text: Dict[str, str] = field(default_factory=dict)
    tags: List[str] = field(default_factory=list)
    created_since: Optional[datetime] = None
    updated_since: Optional[datetime] = None

    @classmethod
    def from_query(
        cls,
        text: Dict[str, Optional[str]],
        tags: Optional[str] = None,
        created_at: Optional[str] = None,
        updated_at: Optional[str] = None,
    ) -> "ListFilter":
        return cls(
            text={name: value.strip() for name, value in text.items() if value and value.strip()},
            tags=parse_tags(tags),
            created_since=parse_since(created_at, "createdAt"),
            updated_since=parse_since(updated_at, "updatedAt"),
        )


def _has_all_tags(row_tags: Optional[Sequence[str]], wanted: List[str]) -> bool:
    present = {tag.lower() for tag in (row_tags or [])}
    return all(tag in present for tag in wanted)


# PUBLIC_INTERFACE
def list_owned(db: Session, model: Listable, identity: Identity, filters: ListFilter) -> list:
    """Return the caller's rows matching `filters`, newest first."""
    stmt = select(model).where(model.user_id == owner_id(identity))
    for name, value in filters.text.items():
        column = getattr(model, name)
        stmt = stmt.where(column.ilike(f"%{_escape_like(value)}%", escape="\\"))
    if filters.created_since is not None:
        stmt = stmt.where(model.created_at >= filters.created_since)
    if filters.updated_since is not None:
        stmt = stmt.where(model.updated_at >= filters.updated_since)
    stmt = stmt.order_by(desc(model.created_at))

    rows = db.execute(stmt).scalars().all()
    # tags are a JSON column; matched in Python
    if filters.tags:
        rows = [row for row in rows if _has_all_tags(row.tags, filters.tags)]
    return list(rows)
