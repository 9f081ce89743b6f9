"""Configuration for the LLM provider (OpenRouter, OpenAI-compatible API).

Per-operation sampling defaults live here so every endpoint builds its
request the same way.
"""

import os
from dataclasses import dataclass
from typing import Dict, Optional

from pydantic import BaseModel, Field, field_validator


class AIModels:
    """Model identifiers available through OpenRouter."""

    GLM4_6 = "zhipuai/glm-4-6b"
    GLM4_9B = "zhipuai/glm-4-9b-chat"
    CLAUDE3_5_SONNET = "anthropic/claude-3.5-sonnet"
    GPT4_TURBO = "openai/gpt-4-turbo"
    GPT4O = "openai/gpt-4o"
    GEMINI_PRO = "google/gemini-pro"
    MISTRAL_LARGE = "mistralai/mistral-large"


@dataclass(frozen=True)
class OperationSettings:
    temperature: float
    max_tokens: int


OPERATION_SETTINGS: Dict[str, OperationSettings] = {
    "chat": OperationSettings(0.7, 2000),
    "assistant_chat": OperationSettings(0.7, 1000),
    "code_generation": OperationSettings(0.3, 4000),
    "refactoring": OperationSettings(0.2, 4000),
    "auto_refactor": OperationSettings(0.2, 6000),
    "bug_detection": OperationSettings(0.1, 8000),
    "documentation": OperationSettings(0.5, 2500),
    "performance_optimization": OperationSettings(0.3, 3500),
    "multi_file_refactor": OperationSettings(0.2, 12000),
}


class AIConfig(BaseModel):
    """Provider connection settings, read from the environment."""

    api_key: Optional[str] = Field(
        default_factory=lambda: os.getenv("OPENROUTER_API_KEY") or None,
        description="OpenRouter API key"
    )
    base_url: str = Field(
        default_factory=lambda: os.getenv("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1"),
        description="OpenAI-compatible API base URL"
    )
    referer: str = Field(
        default_factory=lambda: os.getenv("OPENROUTER_REFERER", "http://localhost:3000"),
        description="Sent as HTTP-Referer for provider attribution"
    )
    title: str = Field(
        default_factory=lambda: os.getenv("OPENROUTER_TITLE", "IMPECKS-AI"),
        description="Sent as X-Title for provider attribution"
    )
    default_model: str = Field(
        default_factory=lambda: os.getenv("DEFAULT_MODEL", AIModels.GLM4_6),
    )
    timeout_seconds: int = Field(
        default_factory=lambda: int(os.getenv("LLM_TIMEOUT_SECONDS", "120")),
    )
    max_retries: int = Field(
        default_factory=lambda: int(os.getenv("LLM_MAX_RETRIES", "3")),
    )
    max_cached_models: int = Field(
        default_factory=lambda: int(os.getenv("LLM_MAX_CACHED_MODELS", "8")),
        ge=1,
        description="Chat model clients kept per gateway, least recently used evicted first"
    )

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: int) -> int:
        if not 5 <= v <= 600:
            raise ValueError("Timeout must be between 5 and 600 seconds")
        return v

    @field_validator("max_retries")
    @classmethod
    def validate_retries(cls, v: int) -> int:
        if not 1 <= v <= 10:
            raise ValueError("max_retries must be between 1 and 10")
        return v

    @property
    def default_headers(self) -> Dict[str, str]:
        return {"HTTP-Referer": self.referer, "X-Title": self.title}


def get_operation_settings(
    operation: str,
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
) -> OperationSettings:
    """Operation defaults with request overrides applied."""
    base = OPERATION_SETTINGS.get(operation, OPERATION_SETTINGS["chat"])
    return OperationSettings(
        temperature=base.temperature if temperature is None else temperature,
        max_tokens=base.max_tokens if max_tokens is None else max_tokens,
    )
