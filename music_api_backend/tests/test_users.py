"""
Tests for registration, login, and the /users/me self-service routes.
"""

import uuid
from datetime import date, timedelta

from jose import jwt
from sqlalchemy import select
from sqlalchemy.orm import Session

from conftest import DEFAULT_PASSWORD, TEST_SECRET, bearer, token_for
from src.api import routes_users
from src.api.auth import verify_password
from src.api.models import Playlist, Track, User


def _stored_user(database, user_id: str) -> User:
    with database.session() as db:
        return db.get(User, uuid.UUID(user_id))


def _miss_first_lookup(monkeypatch, name: str) -> None:
    """Make the pre-insert uniqueness check find nothing, as if the row landed concurrently."""
    real_lookup = getattr(routes_users, name)
    calls = []

    def lookup(db, value):
        calls.append(value)
        return None if len(calls) == 1 else real_lookup(db, value)

    monkeypatch.setattr(routes_users, name, lookup)


# ============================================================================
# REGISTRATION
# ============================================================================


class TestRegister:
    def test_register_with_valid_data(self, client, database):
        body = {
            "username": "testuser",
            "email": "test@example.com",
            "password": DEFAULT_PASSWORD,
            "phoneNumber": "+1234567890",
            "birthDate": "1990-01-01",
            "gender": "male",
        }
        response = client.post("/users/register", json=body)

        assert response.status_code == 201
        payload = response.json()
        assert set(payload) == {"_id", "email"}
        assert payload["email"] == "test@example.com"

        stored = _stored_user(database, payload["_id"])
        assert stored.username == "testuser"
        assert stored.password_hash != DEFAULT_PASSWORD
        assert verify_password(DEFAULT_PASSWORD, stored.password_hash)
        assert stored.phone_number == "+1234567890"
        assert stored.birth_date == date(1990, 1, 1)
        assert stored.gender == "male"

    def test_missing_required_fields(self, client):
        response = client.post("/users/register", json={"username": "testuser", "email": "test@example.com"})
        assert response.status_code == 400
        assert response.json()["message"] == "All fields are mandatory"

    def test_username_taken(self, client, register_user):
        register_user(username="testuser", email="other@example.com")
        response = client.post(
            "/users/register",
            json={"username": "testuser", "email": "test@example.com", "password": DEFAULT_PASSWORD},
        )
        assert response.status_code == 409
        assert response.json()["message"] == "Username already taken"

    def test_email_in_use(self, client, register_user):
        register_user(username="otheruser", email="test@example.com")
        response = client.post(
            "/users/register",
            json={"username": "testuser", "email": "test@example.com", "password": DEFAULT_PASSWORD},
        )
        assert response.status_code == 409
        assert response.json()["message"] == "Email already in use"

    def test_username_conflict_reported_before_email_conflict(self, client, register_user):
        register_user(username="testuser", email="test@example.com")
        response = client.post(
            "/users/register",
            json={"username": "testuser", "email": "test@example.com", "password": DEFAULT_PASSWORD},
        )
        assert response.status_code == 409
        assert response.json()["message"] == "Username already taken"

    def test_concurrent_username_conflict(self, client, register_user, monkeypatch):
        register_user(username="testuser", email="other@example.com")
        _miss_first_lookup(monkeypatch, "_find_by_username")

        response = client.post(
            "/users/register",
            json={"username": "testuser", "email": "test@example.com", "password": DEFAULT_PASSWORD},
        )
        assert response.status_code == 409
        assert response.json() == {"message": "Username already taken"}

    def test_concurrent_email_conflict(self, client, register_user, monkeypatch):
        register_user(username="otheruser", email="test@example.com")
        _miss_first_lookup(monkeypatch, "_find_by_email")

        response = client.post(
            "/users/register",
            json={"username": "testuser", "email": "test@example.com", "password": DEFAULT_PASSWORD},
        )
        assert response.status_code == 409
        assert response.json() == {"message": "Email already in use"}

    def test_concurrent_conflict_on_both_reports_username(self, client, register_user, monkeypatch):
        register_user(username="testuser", email="test@example.com")
        _miss_first_lookup(monkeypatch, "_find_by_username")
        _miss_first_lookup(monkeypatch, "_find_by_email")

        response = client.post(
            "/users/register",
            json={"username": "testuser", "email": "test@example.com", "password": DEFAULT_PASSWORD},
        )
        assert response.status_code == 409
        assert response.json() == {"message": "Username already taken"}

    def test_password_too_short(self, client):
        response = client.post(
            "/users/register",
            json={"username": "testuser", "email": "test@example.com", "password": "short"},
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Password must be at least 8 characters long"

    def test_password_too_long(self, client):
        response = client.post(
            "/users/register",
            json={"username": "testuser", "email": "test@example.com", "password": "a" * 31},
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Password must be at most 30 characters long"

    def test_birth_date_in_future(self, client):
        tomorrow = (date.today() + timedelta(days=1)).isoformat()
        response = client.post(
            "/users/register",
            json={
                "username": "testuser",
                "email": "test@example.com",
                "password": DEFAULT_PASSWORD,
                "birthDate": tomorrow,
            },
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid birthdate"

    def test_birth_date_too_old(self, client):
        response = client.post(
            "/users/register",
            json={
                "username": "testuser",
                "email": "test@example.com",
                "password": DEFAULT_PASSWORD,
                "birthDate": "1800-01-01",
            },
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid birthdate"

    def test_invalid_email_syntax(self, client):
        response = client.post(
            "/users/register",
            json={"username": "testuser", "email": "not-an-email", "password": DEFAULT_PASSWORD},
        )
        assert response.status_code == 400
        assert "email" in response.json()["message"]

    def test_invalid_username(self, client):
        response = client.post(
            "/users/register",
            json={"username": "bad name!", "email": "test@example.com", "password": DEFAULT_PASSWORD},
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Username may only contain letters, numbers and underscores"

    def test_hashing_failure_is_internal_error(self, client, monkeypatch):
        def boom(password):
            raise ValueError("Hashing error")

        monkeypatch.setattr("src.api.routes_users.hash_password", boom)
        response = client.post(
            "/users/register",
            json={"username": "testuser", "email": "test@example.com", "password": DEFAULT_PASSWORD},
        )
        assert response.status_code == 500
        assert response.json() == {"message": "Internal server error"}


# ============================================================================
# LOGIN
# ============================================================================


class TestLogin:
    def test_login_with_valid_credentials(self, client, register_user):
        user = register_user()
        response = client.post("/users/login", json={"email": "test@example.com", "password": DEFAULT_PASSWORD})

        assert response.status_code == 200
        token = response.json()["accessToken"]
        decoded = jwt.decode(token, TEST_SECRET, algorithms=["HS256"])
        assert decoded["user"]["id"] == user["id"]
        assert decoded["user"]["email"] == "test@example.com"
        assert decoded["user"]["username"] == "testuser"

    def test_login_token_opens_protected_routes(self, client, register_user):
        register_user()
        token = client.post(
            "/users/login", json={"email": "test@example.com", "password": DEFAULT_PASSWORD}
        ).json()["accessToken"]

        response = client.get("/users/me", headers=bearer(token))
        assert response.status_code == 200
        assert response.json()["username"] == "testuser"

    def test_missing_fields(self, client):
        response = client.post("/users/login", json={"email": "test@example.com"})
        assert response.status_code == 400
        assert response.json()["message"] == "All fields are mandatory"

    def test_wrong_password(self, client, register_user):
        register_user()
        response = client.post("/users/login", json={"email": "test@example.com", "password": "WrongPassword1!"})
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid credentials"

    def test_unknown_email_gives_same_answer(self, client, register_user):
        register_user()
        response = client.post("/users/login", json={"email": "wrong@example.com", "password": DEFAULT_PASSWORD})
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid credentials"

    def test_database_error(self, client, register_user, monkeypatch):
        register_user()

        def boom(self, *args, **kwargs):
            raise RuntimeError("Database error")

        monkeypatch.setattr(Session, "execute", boom)
        response = client.post("/users/login", json={"email": "test@example.com", "password": DEFAULT_PASSWORD})
        assert response.status_code == 500
        assert response.json()["message"] == "Internal server error"


# ============================================================================
# /users/me
# ============================================================================


class TestMe:
    def test_fetch_current_user(self, client, register_user):
        user = register_user(birthDate="1990-01-01")
        response = client.get("/users/me", headers=user["headers"])

        assert response.status_code == 200
        payload = response.json()
        assert payload["_id"] == user["id"]
        assert payload["username"] == "testuser"
        assert payload["email"] == "test@example.com"
        assert payload["birthDate"] == "1990-01-01"
        assert "passwordHash" not in payload
        assert "password_hash" not in payload
        assert "password" not in payload

    def test_fetch_missing_user(self, client):
        response = client.get("/users/me", headers=bearer(token_for(str(uuid.uuid4()))))
        assert response.status_code == 404
        assert response.json()["message"] == "User not found"

    def test_update_username_keeps_password(self, client, database, register_user):
        user = register_user()
        response = client.patch("/users/me", headers=user["headers"], json={"username": "updateduser"})

        assert response.status_code == 200
        assert response.json()["username"] == "updateduser"
        assert response.json()["email"] == "test@example.com"

        stored = _stored_user(database, user["id"])
        assert stored.username == "updateduser"
        assert verify_password(DEFAULT_PASSWORD, stored.password_hash)

    def test_update_password(self, client, database, register_user):
        user = register_user()
        response = client.patch("/users/me", headers=user["headers"], json={"password": "NewPassword123!"})

        assert response.status_code == 200
        assert "passwordHash" not in response.json()
        assert verify_password("NewPassword123!", _stored_user(database, user["id"]).password_hash)

    def test_update_empty_password(self, client, register_user):
        user = register_user()
        response = client.patch("/users/me", headers=user["headers"], json={"password": ""})
        assert response.status_code == 400
        assert response.json()["message"] == "Password is required"

    def test_update_to_taken_username(self, client, alice, bob):
        response = client.patch("/users/me", headers=alice["headers"], json={"username": "bob"})
        assert response.status_code == 409
        assert response.json()["message"] == "Username already taken"

    def test_update_to_email_in_use(self, client, alice, bob):
        response = client.patch("/users/me", headers=alice["headers"], json={"email": "bob@example.com"})
        assert response.status_code == 409
        assert response.json()["message"] == "Email already in use"

    def test_update_concurrent_email_conflict(self, client, alice, bob, monkeypatch):
        _miss_first_lookup(monkeypatch, "_find_by_email")

        response = client.patch(
            "/users/me", headers=alice["headers"], json={"username": "alice", "email": "bob@example.com"}
        )
        assert response.status_code == 409
        assert response.json() == {"message": "Email already in use"}

    def test_update_concurrent_username_conflict(self, client, alice, bob, monkeypatch):
        _miss_first_lookup(monkeypatch, "_find_by_username")

        response = client.patch("/users/me", headers=alice["headers"], json={"username": "bob"})
        assert response.status_code == 409
        assert response.json() == {"message": "Username already taken"}

    def test_update_missing_user(self, client):
        response = client.patch(
            "/users/me", headers=bearer(token_for(str(uuid.uuid4()))), json={"username": "updateduser"}
        )
        assert response.status_code == 404
        assert response.json()["message"] == "User not found"

    def test_delete_current_user(self, client, database, register_user):
        user = register_user()
        response = client.delete("/users/me", headers=user["headers"])

        assert response.status_code == 200
        assert response.json()["message"] == "User removed successfully"
        assert _stored_user(database, user["id"]) is None

    def test_delete_cascades_to_owned_resources(self, client, database, alice, bob):
        client.post("/tracks", headers=alice["headers"], json={"title": "Alice Track"})
        client.post("/playlists", headers=alice["headers"], json={"title": "Alice List"})
        client.post("/tracks", headers=bob["headers"], json={"title": "Bob Track"})

        assert client.delete("/users/me", headers=alice["headers"]).status_code == 200

        with database.session() as db:
            assert [t.title for t in db.execute(select(Track)).scalars()] == ["Bob Track"]
            assert db.execute(select(Playlist)).scalars().all() == []

    def test_delete_missing_user(self, client):
        response = client.delete("/users/me", headers=bearer(token_for(str(uuid.uuid4()))))
        assert response.status_code == 404
        assert response.json()["message"] == "User not found"
