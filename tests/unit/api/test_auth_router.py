"""Tests for /api/auth."""

from unittest.mock import patch

SIGNUP = {"email": "New.User@Example.com", "password": "secret123", "name": "New User"}


class TestSignup:
    """Tests for POST /api/auth/signup."""

    def test_signup(self, client):
        """Signup returns the public user and opens a free subscription."""
        response = client.post("/api/auth/signup", json=SIGNUP)

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "User created successfully"
        assert data["user"]["email"] == "new.user@example.com"
        assert "passwordHash" not in data["user"]

        sub = client.get("/api/subscription", params={"userId": data["user"]["id"]}).json()
        assert sub["subscription"]["plan"] == "free"
        assert sub["subscription"]["tokensAllowed"] == 150

    def test_name_defaults_to_email_local_part(self, client):
        """Without a name the local part of the email is used."""
        response = client.post("/api/auth/signup", json={"email": "ada@example.com", "password": "secret123"})

        assert response.json()["user"]["name"] == "ada"

    def test_duplicate_email(self, client):
        """A second signup with the same email is rejected."""
        client.post("/api/auth/signup", json=SIGNUP)

        response = client.post("/api/auth/signup", json=SIGNUP)

        assert response.status_code == 400

    def test_short_password(self, client):
        """Passwords shorter than six characters are rejected."""
        response = client.post("/api/auth/signup", json={"email": "a@example.com", "password": "12345"})

        assert response.status_code == 400
        assert response.json()["error"] == "Validation error"

    def test_invalid_email(self, client):
        """Malformed emails are rejected."""
        response = client.post("/api/auth/signup", json={"email": "not-an-email", "password": "secret123"})

        assert response.status_code == 400

    def test_overlong_password(self, client):
        """Passwords beyond bcrypt's 72-byte limit get a field error, not a 500."""
        response = client.post("/api/auth/signup", json={"email": "a@example.com", "password": "p" * 100})

        assert response.status_code == 400
        detail = response.json()["details"][0]
        assert detail["field"] == "body -> password"
        assert "72 bytes" in detail["message"]

    def test_password_limit_counts_bytes(self, client):
        """Multi-byte characters count toward the limit by their encoded size."""
        response = client.post("/api/auth/signup", json={"email": "a@example.com", "password": "é" * 40})

        assert response.status_code == 400

    def test_failed_subscription_leaves_no_user(self, client):
        """User and subscription are written together, so a retry can succeed."""
        with patch(
            "src.db.repositories.user_repository.SubscriptionModel",
            side_effect=RuntimeError("subscriptions table unavailable"),
        ):
            failed = client.post("/api/auth/signup", json=SIGNUP)

        assert failed.status_code == 500

        retried = client.post("/api/auth/signup", json=SIGNUP)
        assert retried.status_code == 200


class TestLogin:
    """Tests for login, me and logout."""

    def test_login_sets_cookie(self, client):
        """Login sets an httpOnly strict session cookie usable by /me."""
        client.post("/api/auth/signup", json=SIGNUP)

        response = client.post("/api/auth/login", json={"email": "new.user@example.com", "password": "secret123"})

        assert response.status_code == 200
        assert response.json()["user"]["email"] == "new.user@example.com"
        set_cookie = response.headers["set-cookie"].lower()
        assert "auth-token=" in set_cookie
        assert "httponly" in set_cookie
        assert "samesite=strict" in set_cookie
        assert "max-age=3600" in set_cookie

        me = client.get("/api/auth/me")
        assert me.status_code == 200
        assert me.json()["user"]["email"] == "new.user@example.com"

    def test_email_is_case_insensitive(self, client):
        """Login lowercases the email like signup does."""
        client.post("/api/auth/signup", json=SIGNUP)

        response = client.post("/api/auth/login", json={"email": "NEW.USER@example.com", "password": "secret123"})

        assert response.status_code == 200

    def test_wrong_password(self, client):
        """A wrong password returns 401 without a cookie."""
        client.post("/api/auth/signup", json=SIGNUP)

        response = client.post("/api/auth/login", json={"email": "new.user@example.com", "password": "nope-nope"})

        assert response.status_code == 401
        assert response.json()["error"] == "Invalid email or password"
        assert "set-cookie" not in response.headers

    def test_unknown_user(self, client):
        """Unknown emails get the same 401 as wrong passwords."""
        response = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": "secret123"})

        assert response.status_code == 401
        assert response.json()["error"] == "Invalid email or password"

    def test_missing_secret(self, client, monkeypatch):
        """Login fails with 503 when JWT_SECRET is not configured."""
        client.post("/api/auth/signup", json=SIGNUP)
        monkeypatch.delenv("JWT_SECRET")

        response = client.post("/api/auth/login", json={"email": "new.user@example.com", "password": "secret123"})

        assert response.status_code == 503

    def test_me_requires_cookie(self, client):
        """/me without a cookie is 401."""
        response = client.get("/api/auth/me")

        assert response.status_code == 401
        assert response.json()["error"] == "Authentication required"

    def test_me_with_expired_cookie(self, client, seed_user, expired_cookie):
        """Expired cookies are rejected with the reason."""
        user, _ = seed_user(plan=None)
        client.cookies.set("auth-token", expired_cookie(user))

        response = client.get("/api/auth/me")

        assert response.status_code == 401
        assert response.json()["error"] == "Token expired"

    def test_logout_clears_cookie(self, client):
        """Logout expires the session cookie."""
        response = client.post("/api/auth/logout")

        assert response.status_code == 200
        assert response.json() == {"message": "Logout successful"}
        assert "max-age=0" in response.headers["set-cookie"].lower()
