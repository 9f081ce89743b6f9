"""Request and response schemas for the AI endpoints."""

from typing import Any, Dict, List, Literal, Optional

from pydantic import Field

from src.constants import MAX_MULTI_FILE_COUNT

from .common import CamelModel, GenerationOptions, UsageInfo


# =============================================================================
# Requests
# =============================================================================

class ChatMessage(CamelModel):
    role: Literal["system", "user", "assistant"]
    content: str


class BilledRequest(CamelModel):
    """
    Base for metered requests.

    ``user_id`` may be omitted when the caller is signed in; the session
    user is billed instead.
    """
    user_id: Optional[str] = Field(default=None, examples=["6f1c..."])
    model: Optional[str] = Field(default=None, examples=["zhipuai/glm-4-6b"])
    options: Optional[GenerationOptions] = None


class ChatRequest(BilledRequest):
    messages: List[ChatMessage] = Field(..., min_length=1)
    operation: str = "chat"


class GenerateRequest(BilledRequest):
    prompt: str = Field(..., min_length=1)
    language: str = Field(..., min_length=1)
    context: str = ""
    operation: str = "code_generation"


class QuickRefactorRequest(BilledRequest):
    code: str = Field(..., min_length=1)
    instruction: str = Field(..., min_length=1)
    language: str = Field(..., min_length=1)
    operation: str = "refactoring"


class DocsRequest(BilledRequest):
    code: str = Field(..., min_length=1)
    language: str = Field(..., min_length=1)
    operation: str = "documentation"


class OptimizeRequest(BilledRequest):
    code: str = Field(..., min_length=1)
    language: str = Field(..., min_length=1)


class RefactorRequest(BilledRequest):
    code: str = Field(..., min_length=1)
    instruction: str = Field(..., min_length=1)
    language: Optional[str] = None


class SourceFile(CamelModel):
    name: str = Field(..., min_length=1)
    content: str
    language: Optional[str] = None


class MultiFileRefactorRequest(BilledRequest):
    files: List[SourceFile] = Field(..., min_length=1, max_length=MAX_MULTI_FILE_COUNT)
    instruction: str = Field(..., min_length=1)


class BugDetectRequest(BilledRequest):
    code: str = Field(..., min_length=1)
    language: Optional[str] = None


class ModelLookupRequest(CamelModel):
    model: str = Field(..., min_length=1)


class AssistantChatRequest(CamelModel):
    message: str = Field(..., min_length=1)
    conversation_history: List[ChatMessage] = Field(default_factory=list)


# =============================================================================
# Responses
# =============================================================================

class ChatResponse(CamelModel):
    content: str
    model: str
    usage: UsageInfo


class CodeResponse(CamelModel):
    code: str
    language: str
    usage: UsageInfo


class DocsResponse(CamelModel):
    documentation: str
    language: str
    model: str
    usage: UsageInfo


class OptimizeResponse(CamelModel):
    optimized_code: str
    analysis: str
    language: str
    model: str
    usage: UsageInfo


class RefactorResponse(CamelModel):
    success: bool = True
    original_code: str
    refactored_code: str
    changes_made: str
    performance_improvements: str
    breaking_changes: str
    recommendations: str
    analysis: str
    model: str
    usage: UsageInfo
    metadata: Dict[str, Any]


class BugDetectResponse(CamelModel):
    success: bool = True
    original_code: str
    fixed_code: str
    critical_issues: List[str]
    warnings: List[str]
    suggestions: List[str]
    code_quality_score: int
    security_issues: List[str]
    performance_issues: List[str]
    total_issues: int
    analysis: str
    model: str
    usage: UsageInfo
    metadata: Dict[str, Any]


class MultiFileRefactorResponse(CamelModel):
    success: bool = True
    original_files: List[SourceFile]
    refactored_files: List[Dict[str, Any]]
    system_improvements: str
    breaking_changes: str
    migration_guide: str
    testing_recommendations: str
    cross_file_dependencies: str
    model: str
    usage: UsageInfo
    metadata: Dict[str, Any]


class AssistantChatResponse(CamelModel):
    response: str
    timestamp: str
