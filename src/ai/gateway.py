"""
LLM gateway - chat completions against the OpenAI-compatible provider.

Models are created with LangChain's ``init_chat_model`` pointed at the
OpenRouter base URL, one client per model; sampling settings are bound per
call. Transient failures (timeouts, connection errors, rate limits, 5xx) are
retried with exponential backoff; anything left over is raised as
AIProviderError.
"""

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import openai
from langchain.chat_models import init_chat_model
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

from src.core.usage.schemas import TokenUsage
from src.core.usage.token_extractors import extract_token_usage

from .config import AIConfig, get_operation_settings

logger = logging.getLogger(__name__)

RETRYABLE_PROVIDER_ERRORS = (
    openai.APITimeoutError,
    openai.APIConnectionError,
    openai.RateLimitError,
    openai.InternalServerError,
    TimeoutError,
    ConnectionError,
)


class AIProviderError(Exception):
    """The provider call failed after retries or was rejected."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class AIConfigurationError(AIProviderError):
    """The provider is not configured (missing API key)."""


@dataclass
class AIResult:
    content: str
    model: str
    usage: Optional[TokenUsage] = None


class AIGateway:
    """
    Thin wrapper over a LangChain chat model.

    Usage:
        gateway = get_ai_gateway()
        result = await gateway.complete(
            [{"role": "user", "content": "Hello"}],
            operation="chat",
        )
        print(result.content, result.usage)
    """

    def __init__(self, config: Optional[AIConfig] = None):
        self.config = config or AIConfig()
        self._llms: "OrderedDict[str, Any]" = OrderedDict()
        self._lock = threading.Lock()

    def _get_llm(self, model: str):
        """Get or create the chat model client for ``model``, LRU-bounded."""
        if not self.config.api_key:
            raise AIConfigurationError("OPENROUTER_API_KEY is not configured")

        with self._lock:
            if model in self._llms:
                self._llms.move_to_end(model)
                return self._llms[model]

            if len(self._llms) >= self.config.max_cached_models:
                evicted, _ = self._llms.popitem(last=False)
                logger.debug(f"Evicted LLM client for {evicted}")

            self._llms[model] = init_chat_model(
                model=model,
                model_provider="openai",
                base_url=self.config.base_url,
                api_key=self.config.api_key,
                default_headers=self.config.default_headers,
                timeout=self.config.timeout_seconds,
                max_retries=0,
            )
            logger.info(f"Initialized LLM: {model}")
            return self._llms[model]

    def _retry(self):
        return retry(
            stop=stop_after_attempt(self.config.max_retries),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception_type(RETRYABLE_PROVIDER_ERRORS),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    async def complete(
        self,
        messages: List[Dict[str, str]],
        operation: str = "chat",
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> AIResult:
        """
        Run one chat completion.

        Args:
            messages: [{"role": "system"|"user"|"assistant", "content": str}]
            operation: Key into the per-operation sampling defaults
            model: Model id; defaults to the configured default model
            temperature: Overrides the operation default
            max_tokens: Overrides the operation default

        Raises:
            AIConfigurationError: API key missing
            AIProviderError: Provider failure after retries
        """
        model = model or self.config.default_model
        settings = get_operation_settings(operation, temperature, max_tokens)
        llm = self._get_llm(model).bind(
            temperature=settings.temperature,
            max_tokens=settings.max_tokens,
        )

        @self._retry()
        async def _invoke():
            return await llm.ainvoke(messages)

        try:
            response = await _invoke()
        except openai.APIStatusError as e:
            raise AIProviderError(f"Provider returned {e.status_code}", status_code=e.status_code) from e
        except RETRYABLE_PROVIDER_ERRORS as e:
            raise AIProviderError(f"Provider unavailable: {type(e).__name__}") from e
        except openai.OpenAIError as e:
            raise AIProviderError(f"Provider error: {type(e).__name__}") from e

        content = response.content if isinstance(response.content, str) else str(response.content)
        usage = extract_token_usage(response)
        response_model = (usage.model if usage else None) or model

        logger.debug(
            f"{operation} completion via {response_model}: "
            f"{usage.total_tokens if usage else 'unreported'} tokens"
        )
        return AIResult(content=content, model=response_model, usage=usage)


_ai_gateway: Optional[AIGateway] = None


def get_ai_gateway() -> AIGateway:
    """Get singleton AIGateway instance."""
    global _ai_gateway
    if _ai_gateway is None:
        _ai_gateway = AIGateway()
    return _ai_gateway
