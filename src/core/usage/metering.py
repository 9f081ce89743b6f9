"""
Token metering - estimate, reserve, settle and release.

A billed request goes through:

    1. estimate_tokens(prompt text)
    2. claim_request(): the Idempotency-Key, when sent, is claimed with one
       INSERT under a unique (user_id, request_id) key (409 if taken)
    3. reserve(): one conditional UPDATE adds the estimate to tokens_used only
       if it still fits tokens_allowed (429 otherwise, nothing written)
    4. the provider call
    5. settle(): tokens_used is corrected by (actual - estimate), a success
       usage log is appended and the key is marked completed
       or, on any error or cancellation, release(): the estimate is
       refunded, a failure usage log (tokens_used=0, success=False) is
       appended and the key is freed for a retry

Usage:
    async with get_token_meter().metered_operation(
        user_id=user_id,
        operation="chat",
        request_type="chat",
        endpoint="/api/ai/chat",
        estimated_tokens=estimate_tokens(text),
    ) as call:
        result = await gateway.complete(...)
        call.record(result.usage, result.model)

    return {"usage": call.usage_dict()}
"""

import asyncio
import logging
import math
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Optional, Tuple

from src.constants import CHARS_PER_TOKEN
from src.db.repositories import idempotency_repository, subscription_repository
from src.utils.timer_utils import elapsed_ms, start_clock

from .exceptions import DuplicateRequestError
from .quota_checker import get_quota_checker
from .schemas import TokenUsage
from .token_logger import get_token_logger

logger = logging.getLogger(__name__)

# (medium above, complex above) per request type
COMPLEXITY_THRESHOLDS: Dict[str, Tuple[int, int]] = {
    "chat": (500, 1000),
    "code_generation": (1000, 2000),
    "refactoring": (1000, 2000),
    "performance_optimization": (1000, 2000),
    "documentation": (625, 1250),
    "auto_refactor": (1500, 3000),
    "bug_detection": (2000, 4000),
    "multi_file_refactor": (3000, 6000),
}
DEFAULT_COMPLEXITY_THRESHOLDS = (1000, 2000)


def estimate_tokens(text: str) -> int:
    """Rough token estimate: one token per four characters, rounded up."""
    return math.ceil(len(text or "") / CHARS_PER_TOKEN)


def classify_complexity(tokens: int, request_type: str) -> str:
    medium, complex_ = COMPLEXITY_THRESHOLDS.get(request_type, DEFAULT_COMPLEXITY_THRESHOLDS)
    if tokens > complex_:
        return "complex"
    if tokens > medium:
        return "medium"
    return "simple"


@dataclass
class MeteredCall:
    """State of one billed operation, filled in by the caller and the meter."""

    user_id: str
    operation: str
    request_type: str
    endpoint: str
    estimated_tokens: int
    request_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    model: Optional[str] = None
    provider_usage: Optional[TokenUsage] = None
    tokens_used: int = 0
    tokens_remaining: int = 0
    response_time: int = 0
    complexity: str = "simple"

    def record(self, usage: Optional[TokenUsage], model: Optional[str] = None) -> None:
        """Attach the provider's reported usage and model to this call."""
        self.provider_usage = usage
        if model:
            self.model = model

    @property
    def billed_tokens(self) -> int:
        """Actual provider total when reported, otherwise the estimate."""
        if self.provider_usage and self.provider_usage.total_tokens > 0:
            return self.provider_usage.total_tokens
        return self.estimated_tokens

    def usage_dict(self) -> Dict[str, Any]:
        usage = {
            "tokensUsed": self.tokens_used,
            "tokensRemaining": self.tokens_remaining,
            "responseTime": self.response_time,
        }
        if self.provider_usage:
            usage["modelUsage"] = self.provider_usage.to_model_usage()
        return usage


class TokenMeter:
    """
    Reserves, settles and releases token allowances.

    All counter changes are single conditional UPDATE statements, so
    concurrent requests for the same user can never jointly exceed the
    allowance.
    """

    def __init__(self, quota_checker=None, token_logger=None):
        self.quota_checker = quota_checker or get_quota_checker()
        self.token_logger = token_logger or get_token_logger()

    async def reserve(self, user_id: str, amount: int) -> Dict[str, Any]:
        """
        Reserve ``amount`` tokens.

        Raises:
            SubscriptionNotFoundError: No subscription (403)
            SubscriptionInactiveError: Subscription cancelled (403)
            QuotaExceededException: Estimate exceeds remaining tokens (429)
        """
        # Fresh read: rolls over an expired period and rejects early
        status = await self.quota_checker.check_quota(user_id, amount, use_cache=False)
        if not status.allowed:
            logger.info(
                f"Token limit reached for user {user_id}: "
                f"needed={amount}, remaining={status.tokens_remaining}"
            )
            raise self.quota_checker.exceeded(status, amount)

        subscription = await subscription_repository.reserve_tokens(user_id, amount)
        if subscription is None:
            # Lost a race with a concurrent reservation or cancellation
            status = await self.quota_checker.check_quota(user_id, amount, use_cache=False)
            raise self.quota_checker.exceeded(status, amount)

        self.quota_checker.invalidate_cache(user_id)
        self.quota_checker.warn_if_near_limit(
            user_id, self.quota_checker.evaluate(subscription)
        )
        return subscription

    async def settle(self, user_id: str, reserved: int, actual: int) -> Dict[str, Any]:
        """Correct a reservation to the actual usage."""
        subscription = await subscription_repository.adjust_tokens(user_id, actual - reserved)
        self.quota_checker.invalidate_cache(user_id)
        return subscription

    async def release(self, user_id: str, reserved: int) -> Optional[Dict[str, Any]]:
        """Refund a reservation after a failed operation."""
        subscription = await subscription_repository.adjust_tokens(user_id, -reserved)
        self.quota_checker.invalidate_cache(user_id)
        return subscription

    async def claim_request(self, user_id: str, request_id: Optional[str]) -> None:
        """
        Claim the idempotency key before anything is reserved.

        Raises:
            DuplicateRequestError: The key was already billed or another
                request holding it is still running (409)
        """
        if not request_id:
            return
        if not await idempotency_repository.claim_key(user_id, request_id):
            raise DuplicateRequestError(request_id)

    async def _release_request(self, user_id: str, request_id: Optional[str]) -> None:
        if not request_id:
            return
        try:
            await idempotency_repository.release_key(user_id, request_id)
        except Exception as e:
            logger.error(f"Failed to release idempotency key {request_id} for user {user_id}: {e}")

    async def _complete_request(self, user_id: str, request_id: Optional[str]) -> None:
        if not request_id:
            return
        try:
            await idempotency_repository.complete_key(user_id, request_id)
        except Exception as e:
            logger.error(f"Failed to complete idempotency key {request_id} for user {user_id}: {e}")

    async def _abort(self, call: MeteredCall, error: BaseException) -> None:
        """Refund the reservation, write the failure log, free the key."""
        try:
            await self.release(call.user_id, call.estimated_tokens)
        except Exception as e:
            logger.error(
                f"Failed to release {call.estimated_tokens} tokens for user {call.user_id}: {e}"
            )

        await self.token_logger.log_failure(
            user_id=call.user_id,
            operation=call.operation,
            endpoint=call.endpoint,
            request_type=call.request_type,
            response_time=call.response_time,
            error=error,
            model=call.model,
            metadata=call.metadata,
            request_id=call.request_id,
        )
        await self._release_request(call.user_id, call.request_id)

    async def _finish(self, call: MeteredCall, reserved: Dict[str, Any]) -> None:
        """Settle to the actual usage and write the success log."""
        call.tokens_used = call.billed_tokens
        try:
            subscription = await self.settle(call.user_id, call.estimated_tokens, call.tokens_used)
        except Exception as e:
            # The reservation stands as the charge
            logger.error(
                f"Failed to settle {call.operation} for user {call.user_id}; "
                f"billing the {call.estimated_tokens}-token estimate: {e}"
            )
            call.tokens_used = call.estimated_tokens
            call.metadata["settled"] = False
            subscription = reserved

        call.complexity = classify_complexity(call.tokens_used, call.request_type)
        call.tokens_remaining = subscription["tokensRemaining"] if subscription else 0

        try:
            await self.token_logger.log_success(
                user_id=call.user_id,
                operation=call.operation,
                tokens_used=call.tokens_used,
                endpoint=call.endpoint,
                request_type=call.request_type,
                complexity=call.complexity,
                response_time=call.response_time,
                model=call.model,
                metadata=call.metadata,
                request_id=call.request_id,
            )
        except Exception as e:
            logger.error(f"Failed to write usage log for user {call.user_id}: {e}")

        await self._complete_request(call.user_id, call.request_id)

    @asynccontextmanager
    async def metered_operation(
        self,
        user_id: str,
        operation: str,
        request_type: str,
        endpoint: str,
        estimated_tokens: int,
        request_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AsyncIterator[MeteredCall]:
        """
        Bill the enclosed block.

        The original exception from the block is always re-raised; the
        refund and failure log are best-effort. Cancellation counts as a
        failure. Refund and settlement run shielded, so a cancelled request
        still finishes its bookkeeping.
        """
        await self.claim_request(user_id, request_id)
        try:
            reserved = await self.reserve(user_id, estimated_tokens)
        except (Exception, asyncio.CancelledError):
            await self._release_request(user_id, request_id)
            raise

        call = MeteredCall(
            user_id=user_id,
            operation=operation,
            request_type=request_type,
            endpoint=endpoint,
            estimated_tokens=estimated_tokens,
            request_id=request_id,
            metadata=dict(metadata or {}),
        )
        start_time = start_clock()

        try:
            yield call
        except (Exception, asyncio.CancelledError) as e:
            call.response_time = int(elapsed_ms(start_time))
            logger.error(
                f"{operation} failed for user {user_id} after {call.response_time}ms: "
                f"{type(e).__name__}: {e}"
            )
            await asyncio.shield(self._abort(call, e))
            raise

        call.response_time = int(elapsed_ms(start_time))
        await asyncio.shield(self._finish(call, reserved))


_token_meter: Optional[TokenMeter] = None


def get_token_meter() -> TokenMeter:
    global _token_meter
    if _token_meter is None:
        _token_meter = TokenMeter()
    return _token_meter
