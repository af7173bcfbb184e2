"""
Shared fixtures: an in-memory SQLite Database, a TestClient around the app,
and helpers to create users and bearer headers.
"""

import os

os.environ["JWT_SECRET"] = "test-secret-key-do-not-use-in-production"
os.environ["BCRYPT_ROUNDS"] = "4"

from typing import Any, Callable, Dict, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool

from src.api.auth import Identity, issue_token
from src.api.db import Database
from src.api.main import create_app

TEST_SECRET = os.environ["JWT_SECRET"]
DEFAULT_PASSWORD = "ValidPassword123!"


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def token_for(user_id: str, username: Optional[str] = None, email: Optional[str] = None) -> str:
    return issue_token(Identity(id=user_id, username=username, email=email))


@pytest.fixture
def database():
    db = Database(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def client(database):
    app = create_app(database)
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


@pytest.fixture
def register_user(client) -> Callable[..., Dict[str, Any]]:
    """Register a user through the API and return {id, username, email, headers}."""

    def _register(
        username: str = "testuser",
        email: str = "test@example.com",
        password: str = DEFAULT_PASSWORD,
        **extra: Any,
    ) -> Dict[str, Any]:
        response = client.post(
            "/users/register",
            json={"username": username, "email": email, "password": password, **extra},
        )
        assert response.status_code == 201, response.text
        user_id = response.json()["_id"]
        return {
            "id": user_id,
            "username": username,
            "email": email,
            "headers": bearer(token_for(user_id, username, email)),
        }

    return _register


@pytest.fixture
def alice(register_user) -> Dict[str, Any]:
    return register_user(username="alice", email="alice@example.com")


@pytest.fixture
def bob(register_user) -> Dict[str, Any]:
    return register_user(username="bob", email="bob@example.com")
