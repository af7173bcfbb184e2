"""
User endpoints:
- POST /users/register
- POST /users/login
- GET/PATCH/DELETE /users/me (bearer token; the caller's own record only)
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.api.auth import Identity, hash_password, issue_token, require_identity, verify_password
from src.api.db import db_session_dep
from src.api.errors import BadRequest, Conflict, NotFound, Unauthorized
from src.api.models import User
from src.api.schemas import (
    AccessTokenResponse,
    MessageResponse,
    RegisteredUserResponse,
    UserLoginRequest,
    UserRegisterRequest,
    UserResponse,
    UserUpdateRequest,
)
from src.api.serializers import user_to_response
from src.api.validators import (
    normalize_email,
    validate_birth_date,
    validate_gender,
    validate_password,
    validate_phone_number,
    validate_username,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])

USERNAME_TAKEN = "Username already taken"
EMAIL_IN_USE = "Email already in use"


def _find_by_username(db: Session, username: str) -> Optional[User]:
    return db.execute(select(User).where(User.username == username)).scalar_one_or_none()


def _find_by_email(db: Session, email: str) -> Optional[User]:
    return db.execute(select(User).where(User.email == email)).scalar_one_or_none()


def _unique_conflict(db: Session, username: str, exclude_id: Optional[uuid.UUID] = None) -> Conflict:
    """The 409 for a unique-constraint failure, username reported before email."""
    other = _find_by_username(db, username)
    if other is not None and other.id != exclude_id:
        return Conflict(USERNAME_TAKEN)
    return Conflict(EMAIL_IN_USE)


def _current_user(db: Session, identity: Identity) -> User:
    try:
        user_id = uuid.UUID(identity.id)
    except ValueError:
        raise NotFound("User not found")
    user = db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    return user


@router.post(
    "/register",
    response_model=RegisteredUserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user",
    description="Creates a user account. Username uniqueness is checked before email uniqueness.",
    operation_id="register_user",
)
def register(req: UserRegisterRequest, db: Session = Depends(db_session_dep)) -> RegisteredUserResponse:
    """Register a new user; the password is stored only as a bcrypt hash."""
    if not (req.username and req.email and req.password):
        raise BadRequest("All fields are mandatory")

    username = validate_username(req.username)
    email = normalize_email(req.email)
    password = validate_password(req.password)
    phone_number = validate_phone_number(req.phone_number)
    birth_date = validate_birth_date(req.birth_date)
    gender = validate_gender(req.gender)

    if _find_by_username(db, username):
        raise Conflict(USERNAME_TAKEN)
    if _find_by_email(db, email):
        raise Conflict(EMAIL_IN_USE)

    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password),
        phone_number=phone_number,
        birth_date=birth_date,
        gender=gender,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # lost a race with a concurrent registration of the same username/email
        db.rollback()
        raise _unique_conflict(db, username)

    logger.info("user_registered: user_id=%s", user.id)
    return RegisteredUserResponse(id=user.id, email=user.email)


@router.post(
    "/login",
    response_model=AccessTokenResponse,
    summary="Login",
    description="Validates credentials and returns a JWT access token.",
    operation_id="login_user",
)
def login(req: UserLoginRequest, db: Session = Depends(db_session_dep)) -> AccessTokenResponse:
    """Login an existing user. Unknown email and wrong password look the same."""
    if not (req.email and req.password):
        raise BadRequest("All fields are mandatory")

    user = _find_by_email(db, normalize_email(req.email))
    if not user or not verify_password(req.password, user.password_hash):
        logger.info("login_failed")
        raise Unauthorized("Invalid credentials")

    token = issue_token(Identity(id=str(user.id), username=user.username, email=user.email))
    logger.info("login_succeeded: user_id=%s", user.id)
    return AccessTokenResponse(access_token=token)


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Current user",
    description="Returns the authenticated user's profile (never the password hash).",
    operation_id="get_current_user",
)
def get_me(
    identity: Identity = Depends(require_identity),
    db: Session = Depends(db_session_dep),
) -> UserResponse:
    return user_to_response(_current_user(db, identity))


@router.patch(
    "/me",
    response_model=UserResponse,
    summary="Update current user",
    description="Partially updates the authenticated user's profile. A new password is re-hashed.",
    operation_id="update_current_user",
)
def update_me(
    req: UserUpdateRequest,
    identity: Identity = Depends(require_identity),
    db: Session = Depends(db_session_dep),
) -> UserResponse:
    """Apply only the fields present in the request body."""
    user = _current_user(db, identity)
    fields = req.model_fields_set

    if "username" in fields:
        if req.username is None:
            raise BadRequest("Username is required")
        username = validate_username(req.username)
        other = _find_by_username(db, username)
        if other is not None and other.id != user.id:
            raise Conflict(USERNAME_TAKEN)
        user.username = username

    if "email" in fields:
        if req.email is None:
            raise BadRequest("Email is required")
        email = normalize_email(req.email)
        other = _find_by_email(db, email)
        if other is not None and other.id != user.id:
            raise Conflict(EMAIL_IN_USE)
        user.email = email

    if "password" in fields:
        user.password_hash = hash_password(validate_password(req.password))

    if "phone_number" in fields:
        user.phone_number = validate_phone_number(req.phone_number)
    if "birth_date" in fields:
        user.birth_date = validate_birth_date(req.birth_date)
    if "gender" in fields:
        user.gender = validate_gender(req.gender)

    user_id, username = user.id, user.username
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise _unique_conflict(db, username, exclude_id=user_id)
    db.refresh(user)

    logger.info("user_updated: user_id=%s fields=%s", user.id, sorted(fields))
    return user_to_response(user)


@router.delete(
    "/me",
    response_model=MessageResponse,
    summary="Delete current user",
    description="Deletes the authenticated user together with their tracks and playlists.",
    operation_id="delete_current_user",
)
def delete_me(
    identity: Identity = Depends(require_identity),
    db: Session = Depends(db_session_dep),
) -> MessageResponse:
    user = _current_user(db, identity)
    db.delete(user)
    db.commit()
    logger.info("user_deleted: user_id=%s", user.id)
    return MessageResponse(message="User removed successfully")
