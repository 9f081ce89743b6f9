"""Fixtures for API router tests."""

from unittest.mock import patch

import pytest


@pytest.fixture
def ai_client(client, mock_gateway):
    """TestClient with the billed routers' gateway replaced by mock_gateway."""
    with patch("src.api.routers.ai_helpers.get_ai_gateway", return_value=mock_gateway):
        yield client


@pytest.fixture
def sign_in(client, auth_cookie):
    """Attach a session cookie for ``user`` to the shared client."""
    from src.constants import AUTH_COOKIE_NAME

    def _sign_in(user):
        client.cookies.set(AUTH_COOKIE_NAME, auth_cookie(user))

    return _sign_in
