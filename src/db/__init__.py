"""
Database package for IMPECKS-AI.

Provides:
- SQLAlchemy 2.0 async ORM models
- Connection management (PostgreSQL or SQLite)
- Repository layer for users, subscriptions, usage logs and posts
"""

from .connection import DatabaseManager, DatabaseUnavailableError, db
from .models import (
    Base,
    UserModel,
    SubscriptionModel,
    UsageLogModel,
    IdempotencyKeyModel,
    PostModel,
    utc_now,
)

__all__ = [
    # Connection management
    "DatabaseManager",
    "DatabaseUnavailableError",
    "db",
    # Models
    "Base",
    "UserModel",
    "SubscriptionModel",
    "UsageLogModel",
    "IdempotencyKeyModel",
    "PostModel",
    "utc_now",
]
