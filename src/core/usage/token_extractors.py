"""
Token extraction from LangChain chat model responses.

OpenAI-compatible providers (OpenRouter included) report usage either as
``AIMessage.usage_metadata`` or in ``response_metadata["token_usage"]``.
Providers may omit both, in which case callers fall back to an estimate.
"""

import logging
from typing import Any, Optional

from .schemas import TokenUsage

logger = logging.getLogger(__name__)


def extract_from_usage_metadata(response: Any) -> Optional[TokenUsage]:
    """
    Extract tokens from ``AIMessage.usage_metadata``.

    Structure:
    - input_tokens
    - output_tokens
    - total_tokens
    """
    usage = getattr(response, "usage_metadata", None)
    if not usage:
        return None

    input_tokens = usage.get("input_tokens", 0) or 0
    output_tokens = usage.get("output_tokens", 0) or 0
    total_tokens = usage.get("total_tokens", 0) or (input_tokens + output_tokens)
    if total_tokens <= 0:
        return None

    return TokenUsage(
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        total_tokens=total_tokens,
    )


def extract_from_token_usage(response: Any) -> Optional[TokenUsage]:
    """
    Extract tokens from the raw OpenAI ``usage`` block.

    Structure (``response_metadata["token_usage"]``):
    - prompt_tokens
    - completion_tokens
    - total_tokens
    """
    metadata = getattr(response, "response_metadata", None) or {}
    usage = metadata.get("token_usage") or metadata.get("usage")
    if not usage:
        return None

    input_tokens = usage.get("prompt_tokens", 0) or 0
    output_tokens = usage.get("completion_tokens", 0) or 0
    total_tokens = usage.get("total_tokens", 0) or (input_tokens + output_tokens)
    if total_tokens <= 0:
        return None

    return TokenUsage(
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        total_tokens=total_tokens,
    )


def extract_token_usage(response: Any) -> Optional[TokenUsage]:
    """
    Extract actual token usage from a chat model response.

    Args:
        response: AIMessage returned by ``BaseChatModel.ainvoke``

    Returns:
        TokenUsage with the response model name, or None if the provider
        did not report usage
    """
    usage = extract_from_usage_metadata(response) or extract_from_token_usage(response)
    if usage is None:
        logger.debug("No token usage reported in model response")
        return None

    metadata = getattr(response, "response_metadata", None) or {}
    usage.model = metadata.get("model_name") or metadata.get("model")
    return usage
