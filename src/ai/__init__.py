"""
LLM access for IMPECKS-AI.

Provider configuration, the chat-completion gateway, the model catalogue,
prompt templates and response parsing.
"""

from .config import AIConfig, AIModels, OPERATION_SETTINGS, get_operation_settings
from .gateway import (
    AIConfigurationError,
    AIGateway,
    AIProviderError,
    AIResult,
    get_ai_gateway,
)
from .catalog import ModelCatalog, describe_model, get_model_catalog, summarize_models
from .prompts import Prompt, PromptBuilder, get_prompt_builder
from .parser import (
    BugReport,
    MultiFileResult,
    RefactorResult,
    ResponseParser,
    extract_last_code_block,
    get_response_parser,
    improvement_score,
)

__all__ = [
    "AIConfig",
    "AIModels",
    "OPERATION_SETTINGS",
    "get_operation_settings",
    "AIConfigurationError",
    "AIGateway",
    "AIProviderError",
    "AIResult",
    "get_ai_gateway",
    "ModelCatalog",
    "describe_model",
    "get_model_catalog",
    "summarize_models",
    "Prompt",
    "PromptBuilder",
    "get_prompt_builder",
    "BugReport",
    "MultiFileResult",
    "RefactorResult",
    "ResponseParser",
    "extract_last_code_block",
    "get_response_parser",
    "improvement_score",
]
