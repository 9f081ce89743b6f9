"""
TokenLogger - Handles usage log writes.

Single responsibility: Recording the outcome of metered operations.
"""

import logging
from typing import Optional, Dict, Any

from src.db.repositories import usage_log_repository

from .quota_checker import get_quota_checker

logger = logging.getLogger(__name__)


class TokenLogger:
    """
    Writes usage log rows and invalidates the quota cache.

    Responsibilities:
    - Record successful operations with their actual token cost
    - Record failed operations with zero tokens, without ever raising
    """

    async def log_success(
        self,
        user_id: str,
        operation: str,
        tokens_used: int,
        endpoint: str,
        request_type: str,
        complexity: str,
        response_time: int,
        model: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        request_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        log = await usage_log_repository.create_usage_log(
            user_id=user_id,
            operation=operation,
            tokens_used=tokens_used,
            endpoint=endpoint,
            request_type=request_type,
            complexity=complexity,
            response_time=response_time,
            success=True,
            model=model,
            metadata=metadata,
            request_id=request_id,
        )
        get_quota_checker().invalidate_cache(user_id)

        logger.info(
            f"Logged usage: user={user_id}, operation={operation}, "
            f"tokens={tokens_used}, complexity={complexity}, {response_time}ms"
        )
        return log

    async def log_failure(
        self,
        user_id: str,
        operation: str,
        endpoint: str,
        request_type: str,
        response_time: int,
        error: BaseException,
        model: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        request_id: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Record a failed operation (tokens_used=0, success=False).

        Never raises: a failure to write the log must not mask the original
        error.
        """
        try:
            return await usage_log_repository.create_usage_log(
                user_id=user_id,
                operation=operation,
                tokens_used=0,
                endpoint=endpoint,
                request_type=request_type,
                complexity="simple",
                response_time=response_time,
                success=False,
                error_message=f"{type(error).__name__}: {error}"[:1000],
                model=model,
                metadata=metadata,
                request_id=request_id,
            )
        except Exception as e:
            logger.error(f"Failed to log usage failure for user {user_id}: {e}")
            return None


_token_logger: Optional[TokenLogger] = None


def get_token_logger() -> TokenLogger:
    global _token_logger
    if _token_logger is None:
        _token_logger = TokenLogger()
    return _token_logger
