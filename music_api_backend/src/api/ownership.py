"""
Ownership enforcement for track and playlist mutations.

update/delete first load the row to tell "absent" (404) from "someone else's"
(403), then mutate with one statement conditioned on both id and owner. If the
row disappears or changes hands between the two steps the statement matches
nothing and the caller gets 404 instead of a write to a row it no longer owns.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Callable, Dict, Type, TypeVar, Union

from sqlalchemy import delete, update
from sqlalchemy.orm import Session

from src.api.auth import Identity
from src.api.errors import BadRequest, Forbidden, NotFound, Unauthorized
from src.api.models import Playlist, Track

logger = logging.getLogger(__name__)

OwnedModel = TypeVar("OwnedModel", Track, Playlist)

# Columns a request can never write.
_PROTECTED_COLUMNS = frozenset({"id", "user_id", "created_at", "updated_at"})


def _kind(model: Type[Union[Track, Playlist]]) -> str:
    return model.__name__.lower()


# PUBLIC_INTERFACE
def parse_id(raw: str) -> uuid.UUID:
    """Parse a path id, rejecting malformed values with 400."""
    try:
        return uuid.UUID(str(raw))
    except ValueError:
        raise BadRequest("Invalid ID supplied")


# PUBLIC_INTERFACE
def owner_id(identity: Identity) -> uuid.UUID:
    """The caller's id as stored in owner columns."""
    try:
        return uuid.UUID(identity.id)
    except ValueError:
        raise Unauthorized("User is not authorized")


def _not_found(model: Type[Union[Track, Playlist]]) -> NotFound:
    return NotFound(f"{_kind(model).capitalize()} not found")


def is_owner(row: Union[Track, Playlist], identity: Identity) -> bool:
    return str(row.user_id) == identity.id


# PUBLIC_INTERFACE
def load_owned(
    db: Session,
    model: Type[OwnedModel],
    resource_id: uuid.UUID,
    identity: Identity,
    action: str,
) -> OwnedModel:
    """
    Return the row if it exists and belongs to the caller.

    Raises:
        NotFound: no row with this id.
        Forbidden: the row belongs to another user.
    """
    row = db.get(model, resource_id)
    if row is None:
        raise _not_found(model)

    if not is_owner(row, identity):
        kind = _kind(model)
        logger.warning(
            "ownership_denied: kind=%s id=%s action=%s caller=%s",
            kind,
            resource_id,
            action,
            identity.id,
        )
        raise Forbidden(f"User does not have permission to {action} another user's {kind}")
    return row


# PUBLIC_INTERFACE
def update_owned(
    db: Session,
    model: Type[OwnedModel],
    resource_id: uuid.UUID,
    identity: Identity,
    build_values: Callable[[], Dict[str, Any]],
) -> OwnedModel:
    """
    Apply the values from `build_values` to a caller-owned row and return the refreshed row.

    `build_values` is called only after the ownership check passes.
    """
    row = load_owned(db, model, resource_id, identity, "update")
    changes = {key: value for key, value in build_values().items() if key not in _PROTECTED_COLUMNS}

    if changes:
        result = db.execute(
            update(model)
            .where(model.id == resource_id, model.user_id == row.user_id)
            .values(**changes)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            db.rollback()
            logger.info("conditional_update_missed: kind=%s id=%s", _kind(model), resource_id)
            raise _not_found(model)
        db.commit()
        db.refresh(row)

    logger.info("resource_updated: kind=%s id=%s fields=%s", _kind(model), resource_id, sorted(changes))
    return row


# PUBLIC_INTERFACE
def delete_owned(
    db: Session,
    model: Type[OwnedModel],
    resource_id: uuid.UUID,
    identity: Identity,
) -> None:
    """Delete a caller-owned row."""
    row = load_owned(db, model, resource_id, identity, "delete")
    result = db.execute(
        delete(model)
        .where(model.id == resource_id, model.user_id == row.user_id)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.rollback()
        logger.info("conditional_delete_missed: kind=%s id=%s", _kind(model), resource_id)
        raise _not_found(model)
    db.commit()
    logger.info("resource_deleted: kind=%s id=%s", _kind(model), resource_id)
