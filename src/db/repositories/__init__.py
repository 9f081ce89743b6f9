"""
Repository layer for database operations.

Provides:
- user_repository: Accounts and credentials
- subscription_repository: Plans and atomic token counters
- usage_log_repository: Append-only usage records and stats
- idempotency_repository: Idempotency-Key claims
- post_repository: Post CRUD
"""

from . import user_repository
from . import subscription_repository
from . import usage_log_repository
from . import idempotency_repository
from . import post_repository
from .user_repository import DuplicateEmailError

__all__ = [
    "user_repository",
    "subscription_repository",
    "usage_log_repository",
    "idempotency_repository",
    "post_repository",
    "DuplicateEmailError",
]
