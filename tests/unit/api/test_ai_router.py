"""Tests for the metered /api/ai endpoints.

The database is a temporary SQLite file; the model gateway is mocked.
"""


def _chat(content="Hello there", **extra):
    return {"messages": [{"role": "user", "content": content}], **extra}


class TestChatBilling:
    """Tests for POST /api/ai/chat billing."""

    def test_success_bills_actual_usage(self, ai_client, seed_user, mock_gateway):
        """A successful chat charges the provider-reported total."""
        user, _ = seed_user(plan="basic")

        response = ai_client.post("/api/ai/chat", json=_chat(userId=user["id"]))

        assert response.status_code == 200
        data = response.json()
        assert data["content"] == "Hello from the model"
        assert data["usage"]["tokensUsed"] == 42
        assert data["usage"]["tokensRemaining"] == 25_000 - 42
        assert data["usage"]["modelUsage"]["total_tokens"] == 42
        mock_gateway.complete.assert_awaited_once()

        summary = ai_client.get("/api/ai/chat", params={"userId": user["id"]}).json()
        assert summary["subscription"]["tokensUsed"] == 42
        assert summary["usage"]["chat"]["count"] == 1

    def test_quota_exceeded(self, ai_client, seed_user, mock_gateway):
        """An estimate above the remaining allowance returns 429 with an upgrade hint."""
        user, _ = seed_user(plan="free", tokens_used=140)

        response = ai_client.post("/api/ai/chat", json=_chat("x" * 100, userId=user["id"]))

        assert response.status_code == 429
        data = response.json()
        assert data["success"] is False
        assert data["tokensRemaining"] == 10
        assert data["tokensNeeded"] == 25
        assert data["upgrade"]["plan"] == "basic"
        mock_gateway.complete.assert_not_awaited()

        summary = ai_client.get("/api/ai/chat", params={"userId": user["id"]}).json()
        assert summary["subscription"]["tokensUsed"] == 140
        assert summary["usage"] == {}

    def test_provider_failure_refunds(self, ai_client, seed_user, mock_gateway):
        """A provider error returns 502, refunds the estimate and logs a failure."""
        from src.ai.gateway import AIProviderError

        user, _ = seed_user(plan="basic", tokens_used=100)
        mock_gateway.complete.side_effect = AIProviderError("Provider returned 500", status_code=500)

        response = ai_client.post("/api/ai/chat", json=_chat(userId=user["id"]))

        assert response.status_code == 502
        summary = ai_client.get("/api/ai/chat", params={"userId": user["id"]}).json()
        assert summary["subscription"]["tokensUsed"] == 100
        assert summary["usage"]["chat"]["count"] == 1
        assert summary["usage"]["chat"]["tokensUsed"] == 0

    def test_provider_not_configured(self, ai_client, seed_user, mock_gateway):
        """A missing provider key returns 503."""
        from src.ai.gateway import AIConfigurationError

        user, _ = seed_user(plan="basic")
        mock_gateway.complete.side_effect = AIConfigurationError("OPENROUTER_API_KEY is not configured")

        response = ai_client.post("/api/ai/chat", json=_chat(userId=user["id"]))

        assert response.status_code == 503

    def test_estimate_used_when_usage_unreported(self, ai_client, seed_user, mock_gateway, make_result):
        """Without provider usage the estimate is charged."""
        user, _ = seed_user(plan="basic")
        mock_gateway.complete.return_value = make_result("ok", total_tokens=None)

        response = ai_client.post("/api/ai/chat", json=_chat("y" * 40, userId=user["id"]))

        assert response.status_code == 200
        assert response.json()["usage"]["tokensUsed"] == 10
        assert response.json()["usage"]["modelUsage"] is None

    def test_no_subscription(self, ai_client, seed_user):
        """Users without a subscription are refused with 403."""
        user, _ = seed_user(plan=None)

        response = ai_client.post("/api/ai/chat", json=_chat(userId=user["id"]))

        assert response.status_code == 403
        assert response.json()["error"] == "No subscription found"

    def test_duplicate_idempotency_key(self, ai_client, seed_user, mock_gateway):
        """Replaying a successful Idempotency-Key returns 409 without billing."""
        user, _ = seed_user(plan="basic")
        headers = {"Idempotency-Key": "chat-1"}

        first = ai_client.post("/api/ai/chat", json=_chat(userId=user["id"]), headers=headers)
        second = ai_client.post("/api/ai/chat", json=_chat(userId=user["id"]), headers=headers)

        assert first.status_code == 200
        assert second.status_code == 409
        assert mock_gateway.complete.await_count == 1

    def test_empty_messages_rejected(self, ai_client, seed_user):
        """An empty conversation is a validation error."""
        user, _ = seed_user(plan="basic")

        response = ai_client.post("/api/ai/chat", json={"userId": user["id"], "messages": []})

        assert response.status_code == 400
        assert response.json()["error"] == "Validation error"


class TestIdentity:
    """Tests for resolving the billed user."""

    def test_missing_user(self, ai_client):
        """No userId and no cookie returns 401."""
        response = ai_client.post("/api/ai/chat", json=_chat())

        assert response.status_code == 401

    def test_cookie_user_is_billed(self, ai_client, seed_user, sign_in):
        """The session user is billed when userId is omitted."""
        user, _ = seed_user(plan="basic")
        sign_in(user)

        response = ai_client.post("/api/ai/chat", json=_chat())

        assert response.status_code == 200
        assert response.json()["usage"]["tokensUsed"] == 42

    def test_mismatched_user(self, ai_client, seed_user, sign_in, mock_gateway):
        """A userId other than the session user returns 403."""
        alice, _ = seed_user("alice@example.com", plan="basic")
        bob, _ = seed_user("bob@example.com", plan="basic")
        sign_in(alice)

        response = ai_client.post("/api/ai/chat", json=_chat(userId=bob["id"]))

        assert response.status_code == 403
        mock_gateway.complete.assert_not_awaited()


class TestUsageSummary:
    """Tests for GET /api/ai/chat."""

    def test_requires_user_id(self, client):
        """userId is required."""
        assert client.get("/api/ai/chat").status_code == 400

    def test_unknown_subscription(self, client, seed_user):
        """Users without a subscription get 404."""
        user, _ = seed_user(plan=None)

        assert client.get("/api/ai/chat", params={"userId": user["id"]}).status_code == 404


class TestCodeEndpoints:
    """Tests for generate, quick refactor, docs and optimize."""

    def test_generate(self, ai_client, seed_user, mock_gateway, make_result):
        """Generated code is the raw completion."""
        user, _ = seed_user(plan="basic")
        mock_gateway.complete.return_value = make_result("def add(a, b):\n    return a + b", total_tokens=60)

        response = ai_client.post("/api/ai/generate", json={
            "userId": user["id"],
            "prompt": "add two numbers",
            "language": "python",
        })

        assert response.status_code == 200
        data = response.json()
        assert data["code"].startswith("def add")
        assert data["language"] == "python"
        assert data["usage"]["tokensUsed"] == 60
        assert mock_gateway.complete.call_args.kwargs["operation"] == "code_generation"

    def test_generate_options_forwarded(self, ai_client, seed_user, mock_gateway):
        """Temperature and maxTokens reach the gateway."""
        user, _ = seed_user(plan="basic")

        ai_client.post("/api/ai/generate", json={
            "userId": user["id"],
            "prompt": "hello world",
            "language": "go",
            "model": "openai/gpt-4o",
            "options": {"temperature": 0.0, "maxTokens": 256},
        })

        kwargs = mock_gateway.complete.call_args.kwargs
        assert kwargs["model"] == "openai/gpt-4o"
        assert kwargs["temperature"] == 0.0
        assert kwargs["max_tokens"] == 256

    def test_invalid_temperature(self, ai_client, seed_user):
        """Out-of-range sampling options are rejected."""
        user, _ = seed_user(plan="basic")

        response = ai_client.post("/api/ai/generate", json={
            "userId": user["id"],
            "prompt": "hello",
            "language": "go",
            "options": {"temperature": 5},
        })

        assert response.status_code == 400

    def test_quick_refactor(self, ai_client, seed_user, mock_gateway, make_result):
        """PUT /generate refactors with the refactoring settings."""
        user, _ = seed_user(plan="basic")
        mock_gateway.complete.return_value = make_result("const x = 1;", total_tokens=20)

        response = ai_client.put("/api/ai/generate", json={
            "userId": user["id"],
            "code": "var x = 1;",
            "instruction": "use const",
            "language": "javascript",
        })

        assert response.status_code == 200
        assert response.json()["code"] == "const x = 1;"
        assert mock_gateway.complete.call_args.kwargs["operation"] == "refactoring"

    def test_docs(self, ai_client, seed_user, mock_gateway, make_result):
        """Documentation is returned with the model name."""
        user, _ = seed_user(plan="basic")
        mock_gateway.complete.return_value = make_result("# add\nAdds numbers.", total_tokens=30)

        response = ai_client.post("/api/ai/docs", json={
            "userId": user["id"],
            "code": "function add(a, b) { return a + b }",
            "language": "javascript",
        })

        assert response.status_code == 200
        data = response.json()
        assert data["documentation"].startswith("# add")
        assert data["model"] == "zhipuai/glm-4-6b"

    def test_optimize_extracts_last_block(self, ai_client, seed_user, mock_gateway, make_result):
        """The optimized code is the last fenced block of the analysis."""
        user, _ = seed_user(plan="basic")
        analysis = "Bottleneck: nested loop.\n```python\nold()\n```\nBetter:\n```python\nfast()\n```"
        mock_gateway.complete.return_value = make_result(analysis, total_tokens=80)

        response = ai_client.post("/api/ai/optimize", json={
            "userId": user["id"],
            "code": "for i in x:\n    for j in x:\n        pass",
            "language": "python",
        })

        assert response.status_code == 200
        data = response.json()
        assert data["optimizedCode"] == "fast()"
        assert data["analysis"] == analysis
        assert mock_gateway.complete.call_args.kwargs["operation"] == "performance_optimization"

    def test_optimize_without_block(self, ai_client, seed_user, mock_gateway, make_result):
        """No fenced block means empty optimized code."""
        user, _ = seed_user(plan="basic")
        mock_gateway.complete.return_value = make_result("It is already optimal.", total_tokens=10)

        response = ai_client.post("/api/ai/optimize", json={
            "userId": user["id"],
            "code": "x = 1",
            "language": "python",
        })

        assert response.json()["optimizedCode"] == ""
