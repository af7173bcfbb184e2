"""
Authentication utilities: password hashing, JWT issue/verify, and the bearer gate.

Clients authenticate with:
- POST /users/login -> {"accessToken": "<jwt>"}
- Authorization: Bearer <jwt> on every protected route

Token claims:
  - sub: user id
  - user: {id, username, email}
  - iat, exp
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Dict, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel, ConfigDict

from src.api.errors import InternalError, Unauthorized

logger = logging.getLogger(__name__)

MISSING_TOKEN_MESSAGE = "User is not authorized or token is missing"
INVALID_TOKEN_MESSAGE = "User is not authorized"

_DEFAULT_EXPIRES_MINUTES = 10
_DEFAULT_BCRYPT_ROUNDS = 12

_bearer_scheme = HTTPBearer(auto_error=False)


class Identity(BaseModel):
    """The authenticated caller as carried by the token."""

    model_config = ConfigDict(frozen=True)

    id: str
    username: Optional[str] = None
    email: Optional[str] = None

    def claims(self) -> Dict[str, Optional[str]]:
        return self.model_dump()


def _jwt_secret() -> str:
    secret = os.getenv("JWT_SECRET") or os.getenv("ACCESS_TOKEN_SECRET")
    if not secret:
        raise RuntimeError("JWT_SECRET env var is required.")
    return secret


def _jwt_algorithm() -> str:
    return os.getenv("JWT_ALGORITHM", "HS256")


def _jwt_exp_minutes() -> int:
    try:
        return int(os.getenv("JWT_EXPIRES_MINUTES", str(_DEFAULT_EXPIRES_MINUTES)))
    except ValueError:
        return _DEFAULT_EXPIRES_MINUTES


@lru_cache(maxsize=None)
def _pwd_context(rounds: int) -> CryptContext:
    return CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)


def _bcrypt_rounds() -> int:
    try:
        return int(os.getenv("BCRYPT_ROUNDS", str(_DEFAULT_BCRYPT_ROUNDS)))
    except ValueError:
        return _DEFAULT_BCRYPT_ROUNDS


# PUBLIC_INTERFACE
def hash_password(password: str) -> str:
    """Hash a plain-text password (bcrypt, cost 12 unless BCRYPT_ROUNDS says otherwise)."""
    return _pwd_context(_bcrypt_rounds()).hash(password)


# PUBLIC_INTERFACE
def verify_password(password: str, password_hash: str) -> bool:
    """Verify a plain-text password against a hash."""
    return _pwd_context(_bcrypt_rounds()).verify(password, password_hash)


# PUBLIC_INTERFACE
def issue_token(
    identity: Identity,
    secret: Optional[str] = None,
    ttl_minutes: Optional[int] = None,
) -> str:
    """
    Create a signed, time-limited JWT access token for the identity.

    Raises:
        InternalError: if the token cannot be signed.
    """
    now = datetime.now(timezone.utc)
    ttl = _jwt_exp_minutes() if ttl_minutes is None else ttl_minutes
    payload: Dict[str, Any] = {
        "sub": identity.id,
        "user": identity.claims(),
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=ttl)).timestamp()),
    }
    try:
        return jwt.encode(payload, secret or _jwt_secret(), algorithm=_jwt_algorithm())
    except JWTError as exc:
        logger.error("token_signing_failed: user_id=%s exc=%s", identity.id, exc.__class__.__name__)
        raise InternalError()


# PUBLIC_INTERFACE
def verify_token(token: str, secret: Optional[str] = None) -> Identity:
    """
    Decode a token and return the identity it carries.

    Raises:
        Unauthorized: if the token is malformed, expired, signed with another
        secret, or has no user id claim.
    """
    try:
        payload = jwt.decode(token, secret or _jwt_secret(), algorithms=[_jwt_algorithm()])
    except JWTError as exc:
        logger.info("token_rejected: reason=%s", exc.__class__.__name__)
        raise Unauthorized(INVALID_TOKEN_MESSAGE)

    user = payload.get("user")
    if not isinstance(user, dict):
        user = {"id": payload.get("sub")}
    user_id = user.get("id")
    if not user_id:
        logger.info("token_rejected: reason=missing_user_id")
        raise Unauthorized(INVALID_TOKEN_MESSAGE)

    return Identity(id=str(user_id), username=user.get("username"), email=user.get("email"))


# PUBLIC_INTERFACE
def require_identity(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> Identity:
    """
    FastAPI dependency guarding protected routes.

    A missing or non-Bearer Authorization header and a token that fails
    verification are both rejected with 401; on success the identity is
    attached to `request.state.identity` and returned.
    """
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        raise Unauthorized(MISSING_TOKEN_MESSAGE)

    identity = verify_token(credentials.credentials)
    request.state.identity = identity
    return identity
