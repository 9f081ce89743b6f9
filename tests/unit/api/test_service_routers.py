"""Tests for health, model catalogue and assistant chat endpoints."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest


class TestHealth:
    """Tests for GET /health and GET /."""

    def test_healthy(self, client):
        """A reachable database reports healthy."""
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["version"] == "1.0.0"
        assert data["components"]["database"]["status"] == "healthy"

    def test_database_disabled(self, monkeypatch):
        """A disabled database degrades the service."""
        from fastapi.testclient import TestClient
        from src.api import create_app
        from src.db.connection import db

        monkeypatch.setenv("DATABASE_ENABLED", "false")
        db.reset()
        try:
            data = TestClient(create_app()).get("/health").json()
        finally:
            monkeypatch.delenv("DATABASE_ENABLED")
            db.reset()

        assert data["status"] == "degraded"
        assert data["components"]["database"]["status"] == "disabled"

    def test_database_unreachable(self, client):
        """A failed connection test reports unhealthy."""
        with patch("src.api.routers.health.db.test_connection", AsyncMock(return_value=False)):
            data = client.get("/health").json()

        assert data["status"] == "unhealthy"

    def test_root(self, client):
        """The root lists the service and its docs."""
        data = client.get("/").json()

        assert data["service"] == "IMPECKS-AI"
        assert data["docs"] == "/docs"

    def test_request_id_header(self, client):
        """Every response carries a request id."""
        response = client.get("/")

        assert len(response.headers["X-Request-ID"]) == 8


class TestModels:
    """Tests for /api/ai/models."""

    @pytest.fixture
    def catalog(self):
        catalog = MagicMock()
        catalog.list_models = AsyncMock(return_value=[
            {"id": "zhipuai/glm-4-6b", "name": "GLM"},
            {"id": "meta/llama-3", "name": "Llama"},
        ])
        catalog.get_model = AsyncMock(return_value=None)
        catalog.get_usage = AsyncMock(return_value={"credits": 12.5})
        with patch("src.api.routers.models.get_model_catalog", return_value=catalog):
            yield catalog

    def test_list(self, client, catalog):
        """Only supported model families are listed."""
        data = client.get("/api/ai/models").json()

        assert data["success"] is True
        assert data["totalModels"] == 1
        assert data["defaultModels"]["chat"] == "zhipuai/glm-4-6b"

    def test_details(self, client, catalog):
        """A known model is described."""
        catalog.get_model.return_value = {"id": "zhipuai/glm-4-6b", "name": "GLM", "capabilities": ["chat"]}

        data = client.post("/api/ai/models", json={"model": "zhipuai/glm-4-6b"}).json()

        assert data["model"]["name"] == "GLM"
        assert data["model"]["capabilities"] == ["chat"]

    def test_details_not_found(self, client, catalog):
        """Unknown models return 404."""
        response = client.post("/api/ai/models", json={"model": "nope"})

        assert response.status_code == 404

    def test_usage(self, client, catalog):
        """Provider account usage is passed through."""
        assert client.get("/api/ai/models/usage").json() == {"success": True, "usage": {"credits": 12.5}}

    def test_provider_down(self, client, catalog):
        """Provider failures map to 502."""
        from src.ai.gateway import AIProviderError

        catalog.list_models.side_effect = AIProviderError("Provider returned 503", status_code=503)

        assert client.get("/api/ai/models").status_code == 502


class TestAssistantChat:
    """Tests for POST /api/chat."""

    def test_requires_session(self, client):
        """The assistant is only for signed-in users."""
        response = client.post("/api/chat", json={"message": "hi"})

        assert response.status_code == 401

    def test_reply(self, client, seed_user, sign_in, mock_gateway):
        """The reply is returned with a UTC timestamp and is not billed."""
        user, _ = seed_user(plan="free", tokens_used=150)
        sign_in(user)

        with patch("src.api.routers.chat.get_ai_gateway", return_value=mock_gateway):
            response = client.post("/api/chat", json={
                "message": "How do I use getServerSideProps?",
                "conversationHistory": [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}],
            })

        assert response.status_code == 200
        data = response.json()
        assert data["response"] == "Hello from the model"
        assert data["timestamp"].endswith("Z")

        messages = mock_gateway.complete.call_args.args[0]
        assert user["email"] in messages[0]["content"]
        assert len(messages) == 4
        assert mock_gateway.complete.call_args.kwargs["operation"] == "assistant_chat"
