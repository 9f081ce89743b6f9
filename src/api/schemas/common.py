"""Common schema models shared across API endpoints."""

from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any, List

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.constants import MAX_COMPLETION_TOKENS, MAX_TEMPERATURE, MIN_TEMPERATURE


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys; snake_case names also accepted."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# Enums for Type Safety
# =============================================================================

class HealthStatusEnum(str, Enum):
    """Health status values for service components."""
    healthy = "healthy"
    unhealthy = "unhealthy"
    degraded = "degraded"


# =============================================================================
# Common Request / Response Models
# =============================================================================

class GenerationOptions(CamelModel):
    """Per-request overrides of the operation's sampling defaults."""
    temperature: Optional[float] = Field(default=None, ge=MIN_TEMPERATURE, le=MAX_TEMPERATURE)
    max_tokens: Optional[int] = Field(default=None, ge=1, le=MAX_COMPLETION_TOKENS)


class UsageInfo(CamelModel):
    """Billing outcome attached to every metered response."""
    tokens_used: int = Field(..., examples=[412])
    tokens_remaining: int = Field(..., examples=[24588])
    response_time: int = Field(..., description="Milliseconds", examples=[1830])
    model_usage: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Provider-reported prompt/completion/total tokens",
    )


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = Field(default=False, examples=[False])
    error: str = Field(..., examples=["Token limit exceeded"])
    message: Optional[str] = None
    details: Optional[List[Dict[str, Any]]] = None
    request_id: Optional[str] = Field(default=None, examples=["a1b2c3d4"])


class MessageResponse(BaseModel):
    message: str


class HealthStatus(BaseModel):
    """Health check response."""
    status: HealthStatusEnum
    version: str
    timestamp: datetime
    components: Dict[str, Dict[str, Any]]
