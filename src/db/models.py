"""
SQLAlchemy 2.0 models for the IMPECKS-AI service.

Tables:
- users: Accounts that sign in with email/password
- subscriptions: One per user; plan, token allowance and usage counters
- usage_logs: Append-only record of every metered AI operation
- idempotency_keys: Idempotency-Key claims of billed requests
- posts: Blog-style posts owned by a user

Timestamps are stored as naive UTC datetimes so the same schema works on
PostgreSQL and SQLite.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


def utc_now() -> datetime:
    """Current UTC time without tzinfo."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid.uuid4())


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class UserModel(Base):
    """Registered user."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    role: Mapped[str] = mapped_column(String(50), nullable=False, default="user")
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utc_now, onupdate=utc_now
    )

    posts: Mapped[List["PostModel"]] = relationship(back_populates="author")

    def to_dict(self) -> Dict[str, Any]:
        """Public representation (never includes the password hash)."""
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }

    def __repr__(self) -> str:
        return f"<UserModel(id={self.id}, email={self.email})>"


class SubscriptionModel(Base):
    """
    Per-user subscription with token counters.

    tokens_remaining is denormalized and always rewritten in the same
    statement that changes tokens_used.
    """

    __tablename__ = "subscriptions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    plan: Mapped[str] = mapped_column(String(50), nullable=False, default="free")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")

    tokens_allowed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tokens_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tokens_remaining: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    price: Mapped[float] = mapped_column(Numeric(10, 2), nullable=False, default=0)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    billing_cycle: Mapped[str] = mapped_column(String(20), nullable=False, default="monthly")

    paystack_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    google_pay_token: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)

    current_period_start: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
    current_period_end: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utc_now, onupdate=utc_now
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "plan": self.plan,
            "status": self.status,
            "tokensAllowed": self.tokens_allowed,
            "tokensUsed": self.tokens_used,
            "tokensRemaining": self.tokens_remaining,
            "price": float(self.price) if self.price is not None else 0.0,
            "currency": self.currency,
            "billingCycle": self.billing_cycle,
            "paystackEmail": self.paystack_email,
            "googlePayToken": self.google_pay_token,
            "currentPeriodStart": _iso(self.current_period_start),
            "currentPeriodEnd": _iso(self.current_period_end),
            "cancelledAt": _iso(self.cancelled_at),
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }

    def __repr__(self) -> str:
        return (
            f"<SubscriptionModel(user_id={self.user_id}, plan={self.plan}, "
            f"used={self.tokens_used}/{self.tokens_allowed})>"
        )


class UsageLogModel(Base):
    """Write-once record of one AI operation's cost and outcome."""

    __tablename__ = "usage_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    # Idempotency key; a failed attempt may be retried under the same key
    request_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    tokens_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    operation: Mapped[str] = mapped_column(String(64), nullable=False)
    endpoint: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    request_type: Mapped[str] = mapped_column(String(64), nullable=False, default="unknown")
    complexity: Mapped[str] = mapped_column(String(16), nullable=False, default="simple")
    response_time: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    model: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    extra: Mapped[Optional[Dict[str, Any]]] = mapped_column("metadata", JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)

    __table_args__ = (
        Index("idx_usage_logs_user_request", "user_id", "request_id"),
        Index("idx_usage_logs_user_created", "user_id", "created_at"),
        Index("idx_usage_logs_user_operation", "user_id", "operation"),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "requestId": self.request_id,
            "tokensUsed": self.tokens_used,
            "operation": self.operation,
            "endpoint": self.endpoint,
            "requestType": self.request_type,
            "complexity": self.complexity,
            "responseTime": self.response_time,
            "success": self.success,
            "errorMessage": self.error_message,
            "model": self.model,
            "metadata": self.extra or {},
            "createdAt": _iso(self.created_at),
        }


class IdempotencyKeyModel(Base):
    """
    One row per (user, Idempotency-Key) claimed by a billed request.

    The composite primary key makes the claim atomic: a second insert for
    the same key fails. Pending rows are deleted when the request fails so
    the key can be retried; completed rows stay.
    """

    __tablename__ = "idempotency_keys"

    user_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    request_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    claimed_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "userId": self.user_id,
            "requestId": self.request_id,
            "status": self.status,
            "claimedAt": _iso(self.claimed_at),
        }


class PostModel(Base):
    """Blog-style post."""

    __tablename__ = "posts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    author_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utc_now, onupdate=utc_now
    )

    author: Mapped[UserModel] = relationship(back_populates="posts", lazy="selectin")

    def to_dict(self) -> Dict[str, Any]:
        author = None
        if self.author is not None:
            author = {
                "id": self.author.id,
                "name": self.author.name,
                "email": self.author.email,
            }
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "published": self.published,
            "authorId": self.author_id,
            "author": author,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


__all__ = [
    "Base",
    "UserModel",
    "SubscriptionModel",
    "UsageLogModel",
    "IdempotencyKeyModel",
    "PostModel",
    "utc_now",
    "new_id",
]
