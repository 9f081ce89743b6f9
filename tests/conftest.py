"""Shared test fixtures and configuration."""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import create_engine

TEST_JWT_SECRET = "test-secret-key-with-enough-length-for-hs256"


# =============================================================================
# Environment Fixtures
# =============================================================================

@pytest.fixture(autouse=True)
def test_env(monkeypatch):
    """Auth and provider settings every test can rely on."""
    monkeypatch.setenv("JWT_SECRET", TEST_JWT_SECRET)
    monkeypatch.setenv("OPENROUTER_API_KEY", "test-openrouter-key")
    monkeypatch.setenv("COOKIE_SECURE", "false")
    monkeypatch.setenv("LLM_MAX_RETRIES", "1")


@pytest.fixture(autouse=True)
def reset_quota_cache():
    """The quota cache is process-wide; start every test empty."""
    from src.core.usage.quota_checker import get_quota_checker

    get_quota_checker().clear_cache()
    yield
    get_quota_checker().clear_cache()


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture
def database(tmp_path, monkeypatch):
    """
    Point the global DatabaseManager at a fresh SQLite file.

    The schema is created synchronously so the fixture works for both
    async tests and TestClient tests (which run their own event loops).
    """
    from src.db.connection import db
    from src.db.models import Base

    db_file = tmp_path / "impecks-test.db"
    monkeypatch.setenv("DATABASE_ENABLED", "true")
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{db_file}")
    monkeypatch.setenv("DB_CREATE_TABLES", "false")

    engine = create_engine(f"sqlite:///{db_file}")
    Base.metadata.create_all(engine)
    engine.dispose()

    db.reset()
    yield db
    db.reset()


@pytest.fixture
def run():
    """Run a coroutine to completion from synchronous test code."""
    return lambda coro: asyncio.run(coro)


async def _create_user_with_plan(email, plan, tokens_used, billing_cycle="monthly"):
    from src.core.auth import hash_password
    from src.core.usage import get_subscription_manager
    from src.db.repositories import subscription_repository, user_repository

    user = await user_repository.create_user(
        email=email,
        password_hash=hash_password("password123"),
        name=email.split("@")[0],
    )
    subscription = None
    if plan:
        subscription = await get_subscription_manager().create_subscription(
            user["id"], plan, billing_cycle=billing_cycle
        )
        if tokens_used:
            subscription = await subscription_repository.adjust_tokens(user["id"], tokens_used)
    return user, subscription


@pytest.fixture
def seed_user(database, run):
    """
    Create a user (and optionally a subscription) from synchronous tests.

    Usage:
        user, subscription = seed_user("a@example.com", plan="free", tokens_used=140)
    """
    def _seed(email="dev@example.com", plan="basic", tokens_used=0, billing_cycle="monthly"):
        return run(_create_user_with_plan(email, plan, tokens_used, billing_cycle))

    return _seed


@pytest.fixture
def create_user(database):
    """Async counterpart of seed_user for @pytest.mark.asyncio tests."""
    async def _create(email="dev@example.com", plan="basic", tokens_used=0, billing_cycle="monthly"):
        return await _create_user_with_plan(email, plan, tokens_used, billing_cycle)

    return _create


# =============================================================================
# API Fixtures
# =============================================================================

@pytest.fixture
def client(database):
    """TestClient against a fresh app and database."""
    from fastapi.testclient import TestClient
    from src.api import create_app

    return TestClient(create_app())


@pytest.fixture
def auth_cookie():
    """Build a session cookie value for a user dict."""
    from src.core.auth import create_access_token

    return lambda user: create_access_token(user)


@pytest.fixture
def expired_cookie():
    from datetime import datetime, timezone
    from src.core.auth import create_access_token

    def _build(user):
        return create_access_token(user, now=datetime.now(timezone.utc) - timedelta(hours=2))

    return _build


# =============================================================================
# AI Gateway Mocks
# =============================================================================

@pytest.fixture
def mock_gateway():
    """
    Gateway double whose ``complete`` returns a fixed AIResult.

    Set ``mock_gateway.complete.return_value`` or ``side_effect`` per test.
    """
    from src.ai.gateway import AIResult
    from src.core.usage.schemas import TokenUsage

    gateway = MagicMock()
    gateway.complete = AsyncMock(return_value=AIResult(
        content="Hello from the model",
        model="zhipuai/glm-4-6b",
        usage=TokenUsage(input_tokens=30, output_tokens=12, total_tokens=42, model="zhipuai/glm-4-6b"),
    ))
    return gateway


@pytest.fixture
def make_result():
    """Build an AIResult; total_tokens=None means the provider reported no usage."""
    from src.ai.gateway import AIResult
    from src.core.usage.schemas import TokenUsage

    def _build(content, total_tokens=None, model="zhipuai/glm-4-6b"):
        usage = None
        if total_tokens is not None:
            usage = TokenUsage(
                input_tokens=total_tokens // 2,
                output_tokens=total_tokens - total_tokens // 2,
                total_tokens=total_tokens,
                model=model,
            )
        return AIResult(content=content, model=model, usage=usage)

    return _build
