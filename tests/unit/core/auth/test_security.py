"""Tests for password hashing and session tokens."""

from datetime import datetime, timedelta, timezone

import jwt
import pytest


USER = {"id": "user-1", "email": "dev@example.com", "role": "user"}


class TestPasswords:
    """Tests for hash_password and verify_password."""

    def test_round_trip(self):
        """A hashed password verifies; a wrong one does not."""
        from src.core.auth import hash_password, verify_password

        hashed = hash_password("password123")

        assert hashed != "password123"
        assert verify_password("password123", hashed) is True
        assert verify_password("wrong-password", hashed) is False

    def test_missing_or_malformed_hash(self):
        """Missing and malformed hashes never verify."""
        from src.core.auth import verify_password

        assert verify_password("password123", None) is False
        assert verify_password("password123", "not-a-bcrypt-hash") is False

    def test_overlong_password_never_verifies(self, caplog):
        """Passwords past bcrypt's 72-byte limit are refused without a hash warning."""
        from src.core.auth import hash_password, verify_password

        hashed = hash_password("password123")

        with caplog.at_level("WARNING", logger="src.core.auth.security"):
            assert verify_password("p" * 100, hashed) is False

        assert "malformed" not in caplog.text


class TestAccessTokens:
    """Tests for create_access_token and decode_access_token."""

    def test_claims(self):
        """Tokens carry userId, email, role and exp."""
        from src.core.auth import create_access_token, decode_access_token

        claims = decode_access_token(create_access_token(USER))

        assert claims["userId"] == "user-1"
        assert claims["email"] == "dev@example.com"
        assert claims["role"] == "user"
        assert "exp" in claims

    def test_default_lifetime_is_one_hour(self):
        """exp is one hour after issue by default."""
        from src.core.auth import create_access_token, get_auth_settings

        now = datetime(2030, 1, 1, tzinfo=timezone.utc)
        token = create_access_token(USER, now=now)
        claims = jwt.decode(token, get_auth_settings().secret, algorithms=["HS256"], options={"verify_exp": False})

        assert claims["exp"] == int((now + timedelta(hours=1)).timestamp())

    def test_expired(self):
        """Expired tokens are rejected with a specific message."""
        from src.core.auth import InvalidTokenError, create_access_token, decode_access_token

        token = create_access_token(USER, now=datetime.now(timezone.utc) - timedelta(hours=2))

        with pytest.raises(InvalidTokenError, match="Token expired"):
            decode_access_token(token)

    def test_wrong_signature(self):
        """Tokens signed with another secret are invalid."""
        from src.core.auth import InvalidTokenError, decode_access_token

        forged = jwt.encode(
            {"userId": "user-1", "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
            "some-other-secret-that-is-long-enough",
            algorithm="HS256",
        )

        with pytest.raises(InvalidTokenError, match="Invalid token"):
            decode_access_token(forged)

    def test_missing_user_id(self):
        """A valid signature without userId is still invalid."""
        from src.core.auth import InvalidTokenError, decode_access_token, get_auth_settings

        token = jwt.encode(
            {"email": "x@example.com", "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
            get_auth_settings().secret,
            algorithm="HS256",
        )

        with pytest.raises(InvalidTokenError):
            decode_access_token(token)

    def test_empty_token(self):
        """An empty token is reported as missing."""
        from src.core.auth import InvalidTokenError, decode_access_token

        with pytest.raises(InvalidTokenError, match="No authentication token found"):
            decode_access_token("")


class TestAuthSettings:
    """Tests for AuthSettings."""

    def test_missing_secret(self, monkeypatch):
        """No JWT_SECRET means tokens can be neither issued nor verified."""
        from src.core.auth import AuthConfigurationError, create_access_token, decode_access_token

        monkeypatch.delenv("JWT_SECRET")

        with pytest.raises(AuthConfigurationError):
            create_access_token(USER)
        with pytest.raises(AuthConfigurationError):
            decode_access_token("anything")

    def test_env_overrides(self, monkeypatch):
        """Lifetime and cookie flags come from the environment."""
        from src.core.auth import get_auth_settings

        monkeypatch.setenv("AUTH_TOKEN_MAX_AGE", "120")
        monkeypatch.setenv("COOKIE_SECURE", "true")

        settings = get_auth_settings()
        assert settings.max_age == 120
        assert settings.cookie_secure is True
        assert settings.algorithm == "HS256"
