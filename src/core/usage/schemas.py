"""
Pydantic schemas for token usage and quota status.
"""

from typing import Optional, Dict, Any
from pydantic import BaseModel


class TokenUsage(BaseModel):
    """Token usage reported by the LLM provider."""
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    model: Optional[str] = None

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        """Accumulate token usage."""
        return TokenUsage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
            model=self.model or other.model,
        )

    def to_model_usage(self) -> Dict[str, int]:
        """OpenAI-style usage dict returned to API clients as ``modelUsage``."""
        return {
            "prompt_tokens": self.input_tokens,
            "completion_tokens": self.output_tokens,
            "total_tokens": self.total_tokens,
        }


class QuotaStatus(BaseModel):
    """Quota check result for a user."""
    allowed: bool
    plan: str
    tokens_used: int
    tokens_allowed: int
    tokens_remaining: int
    percentage_used: float
    is_near_limit: bool = False
    upgrade_plan: Optional[str] = None

    def to_response_dict(self) -> Dict[str, Any]:
        return {
            "plan": self.plan,
            "tokensUsed": self.tokens_used,
            "tokensAllowed": self.tokens_allowed,
            "tokensRemaining": self.tokens_remaining,
            "percentageUsed": self.percentage_used,
            "isNearLimit": self.is_near_limit,
        }
