"""
Tests for session issuance endpoints (signup, login, logout).

These tests verify:
  - Signup creates a user, sends the welcome email and returns a session
  - Duplicate email signup is rejected (409 Conflict)
  - Mismatched or short passwords are rejected (400 Invalid input)
  - Login returns 200 + token for correct credentials
  - Wrong password / unknown email return the same 401 (anti-enumeration)
  - Missing email or password returns 400
  - The "jwt" cookie carries the session and logout overwrites it
  - Responses never include password material
"""

from sqlalchemy import select

from webauth.config import settings
from webauth.models.user import User
from webauth.services import auth_service


SIGNUP_URL = "/api/v1/users/signup"
LOGIN_URL = "/api/v1/users/login"
LOGOUT_URL = "/api/v1/users/logout"
ME_URL = "/api/v1/users/me"


def signup_body(email="newuser@example.com", password="StrongPass99!", **overrides):
    body = {
        "name": "Jane Doe",
        "email": email,
        "password": password,
        "passwordConfirm": password,
    }
    body.update(overrides)
    return body


# ---------------------------------------------------------------------------
# Signup Tests
# ---------------------------------------------------------------------------

class TestSignup:
    """Tests for POST /api/v1/users/signup."""

    async def test_signup_success(self, client):
        """A valid signup should return 201 with the session token and user."""
        response = await client.post(SIGNUP_URL, json=signup_body())
        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "success"
        assert data["token"]
        user = data["data"]["user"]
        assert user["email"] == "newuser@example.com"
        assert user["name"] == "Jane Doe"
        assert user["role"] == "user"
        assert user["photo"] == "default.jpg"

    async def test_signup_sets_session_cookie(self, client):
        response = await client.post(SIGNUP_URL, json=signup_body())
        assert response.cookies.get("jwt") == response.json()["token"]
        set_cookie = response.headers["set-cookie"].lower()
        assert "httponly" in set_cookie
        assert "secure" not in set_cookie  # development environment

    async def test_signup_sends_welcome_email(self, client, outbox):
        await client.post(SIGNUP_URL, json=signup_body())
        assert len(outbox.messages) == 1
        message = outbox.last
        assert message["To"] == "newuser@example.com"
        assert message["Subject"] == "Welcome to the family!"
        text = outbox.text_of(message)
        assert "Hi Jane," in text
        assert "http://test/me" in text
        assert "/api/v1/users/me" not in text

    async def test_welcome_link_uses_frontend_url(self, client, outbox, monkeypatch):
        monkeypatch.setattr(settings, "FRONTEND_URL", "https://tours.example.com/")
        await client.post(SIGNUP_URL, json=signup_body())
        assert "https://tours.example.com/me" in outbox.text_of(outbox.last)

    async def test_signup_response_has_no_password_fields(self, client):
        response = await client.post(SIGNUP_URL, json=signup_body())
        user = response.json()["data"]["user"]
        for field in ("password", "hashed_password", "password_reset_token",
                      "password_reset_expires", "password_changed_at"):
            assert field not in user

    async def test_signup_stores_hashed_password(self, client, session_factory):
        await client.post(SIGNUP_URL, json=signup_body())
        async with session_factory() as session:
            user = (await session.execute(select(User))).scalar_one()
        assert user.hashed_password != "StrongPass99!"
        assert user.hashed_password.startswith("$argon2")
        assert user.password_changed_at is None

    async def test_signup_lowercases_email(self, client):
        response = await client.post(SIGNUP_URL, json=signup_body(email="MiXeD@Example.COM"))
        assert response.status_code == 201
        assert response.json()["data"]["user"]["email"] == "mixed@example.com"

    async def test_signup_ignores_role_in_body(self, client):
        """Users cannot grant themselves a role at signup."""
        response = await client.post(SIGNUP_URL, json=signup_body(role="admin"))
        assert response.status_code == 201
        assert response.json()["data"]["user"]["role"] == "user"

    async def test_signup_duplicate_email(self, client):
        """Signing up with an already-registered email should return 409."""
        response1 = await client.post(SIGNUP_URL, json=signup_body(email="dup@example.com"))
        assert response1.status_code == 201

        response2 = await client.post(SIGNUP_URL, json=signup_body(email="dup@example.com"))
        assert response2.status_code == 409
        assert response2.json()["status"] == "fail"
        assert "already registered" in response2.json()["message"]

    async def test_signup_duplicate_caught_by_unique_index(self, client, monkeypatch):
        """A racing signup that passes the lookup still gets 409, not 500."""
        response1 = await client.post(SIGNUP_URL, json=signup_body(email="race@example.com"))
        assert response1.status_code == 201

        async def not_found(db, email):
            return None

        monkeypatch.setattr(auth_service, "get_user_by_email", not_found)
        response2 = await client.post(SIGNUP_URL, json=signup_body(email="race@example.com"))

        assert response2.status_code == 409
        assert response2.json()["error_type"] == "duplicate_email"
        me = await client.get(ME_URL, headers={"Authorization": f"Bearer {response1.json()['token']}"})
        assert me.status_code == 200

    async def test_signup_password_mismatch(self, client):
        response = await client.post(
            SIGNUP_URL,
            json=signup_body(passwordConfirm="SomethingElse99!"),
        )
        assert response.status_code == 400
        assert "Passwords are not the same" in response.json()["message"]

    async def test_signup_short_password(self, client):
        """Passwords shorter than 8 characters should be rejected."""
        response = await client.post(SIGNUP_URL, json=signup_body(password="short"))
        assert response.status_code == 400
        assert response.json()["error_type"] == "validation_error"

    async def test_signup_invalid_email(self, client):
        response = await client.post(SIGNUP_URL, json=signup_body(email="not-an-email"))
        assert response.status_code == 400

    async def test_signup_missing_fields(self, client, outbox):
        response = await client.post(SIGNUP_URL, json={"email": "missing@example.com"})
        assert response.status_code == 400
        assert outbox.messages == []


# ---------------------------------------------------------------------------
# Login Tests
# ---------------------------------------------------------------------------

class TestLogin:
    """Tests for POST /api/v1/users/login."""

    async def test_login_success(self, client, create_user):
        await create_user("login@example.com", password="CorrectPass123!")

        response = await client.post(
            LOGIN_URL,
            json={"email": "login@example.com", "password": "CorrectPass123!"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "success"
        assert data["token"]
        assert data["data"]["user"]["email"] == "login@example.com"
        assert response.cookies.get("jwt") == data["token"]

    async def test_login_is_case_insensitive_on_email(self, client, create_user):
        await create_user("case@example.com", password="CorrectPass123!")
        response = await client.post(
            LOGIN_URL,
            json={"email": "CASE@example.com", "password": "CorrectPass123!"},
        )
        assert response.status_code == 200

    async def test_login_wrong_password(self, client, create_user):
        await create_user("wrongpw@example.com", password="CorrectPass123!")

        response = await client.post(
            LOGIN_URL,
            json={"email": "wrongpw@example.com", "password": "WrongPassword!"},
        )
        assert response.status_code == 401
        assert response.json()["message"] == "Incorrect email or password"

    async def test_login_nonexistent_email(self, client):
        """Unknown email gets exactly the wrong-password error."""
        response = await client.post(
            LOGIN_URL,
            json={"email": "nobody@example.com", "password": "SomePassword123!"},
        )
        assert response.status_code == 401
        assert response.json()["message"] == "Incorrect email or password"

    async def test_login_missing_password(self, client):
        response = await client.post(LOGIN_URL, json={"email": "someone@example.com"})
        assert response.status_code == 400
        assert response.json()["error_type"] == "missing_credentials"

    async def test_login_missing_email(self, client):
        response = await client.post(LOGIN_URL, json={"password": "SomePassword123!"})
        assert response.status_code == 400
        assert response.json()["message"] == "Please provide email and password"

    async def test_login_empty_body(self, client):
        response = await client.post(LOGIN_URL, json={})
        assert response.status_code == 400

    async def test_login_token_works_for_protected_endpoint(self, client, create_user):
        await create_user("protected@example.com", password="ValidPass123!")
        login_response = await client.post(
            LOGIN_URL,
            json={"email": "protected@example.com", "password": "ValidPass123!"},
        )
        token = login_response.json()["token"]

        response = await client.get(ME_URL, headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200
        assert response.json()["data"]["user"]["email"] == "protected@example.com"


# ---------------------------------------------------------------------------
# Cookie session and logout
# ---------------------------------------------------------------------------

class TestCookieSession:
    """The "jwt" cookie alone is enough to reach protected routes."""

    async def test_cookie_from_login_grants_access(self, client, create_user):
        await create_user("cookie@example.com", password="ValidPass123!")
        client.cookies.clear()

        await client.post(
            LOGIN_URL,
            json={"email": "cookie@example.com", "password": "ValidPass123!"},
        )
        assert "Authorization" not in client.headers

        response = await client.get(ME_URL)
        assert response.status_code == 200
        assert response.json()["data"]["user"]["email"] == "cookie@example.com"

    async def test_logout_overwrites_cookie(self, client, create_user):
        await create_user("logout@example.com")

        response = await client.get(LOGOUT_URL)
        assert response.status_code == 200
        assert response.json() == {"status": "success"}
        assert response.cookies.get("jwt") == "loggedout"
        assert "httponly" in response.headers["set-cookie"].lower()

    async def test_protected_route_rejected_after_logout(self, client, create_user):
        await create_user("logout2@example.com")
        assert (await client.get(ME_URL)).status_code == 200

        await client.get(LOGOUT_URL)

        response = await client.get(ME_URL)
        assert response.status_code == 401

    async def test_logout_without_session(self, client):
        response = await client.get(LOGOUT_URL)
        assert response.status_code == 200
