"""Model catalogue and account usage lookups against the provider REST API."""

import logging
from typing import Any, Dict, List, Optional

import httpx

from .config import AIConfig, AIModels
from .gateway import AIConfigurationError, AIProviderError

logger = logging.getLogger(__name__)

SUPPORTED_FAMILIES = ("glm", "claude", "gpt", "gemini", "mistral")

CATEGORY_KEYWORDS = {
    "chat": ("chat", "instruct"),
    "code": ("code", "deepseek", "codellama"),
    "reasoning": ("claude", "o1", "reasoning"),
    "multimodal": ("vision", "image", "multimodal"),
}

DEFAULT_MODELS = {
    "chat": AIModels.GLM4_6,
    "code": AIModels.GLM4_6,
    "reasoning": AIModels.CLAUDE3_5_SONNET,
    "multimodal": AIModels.GEMINI_PRO,
}

DETAIL_FIELDS = (
    "id",
    "name",
    "description",
    "pricing",
    "context_length",
    "top_provider",
    "architecture",
    "modality",
)


def model_category(model_id: str) -> str:
    """Primary category for a model id."""
    if "glm" in model_id:
        return "chat"
    if "claude" in model_id:
        return "reasoning"
    if "gpt" in model_id:
        return "chat"
    if "gemini" in model_id:
        return "multimodal"
    return "general"


def summarize_models(models: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Filter to supported families, categorize and describe each model."""
    available = [
        m for m in models
        if m.get("id") and any(family in m["id"] for family in SUPPORTED_FAMILIES)
    ]

    categories = {
        category: [m for m in available if any(word in m["id"] for word in keywords)]
        for category, keywords in CATEGORY_KEYWORDS.items()
    }

    details = [
        {**{f: m.get(f) for f in DETAIL_FIELDS}, "category": model_category(m["id"])}
        for m in available
    ]

    return {
        "models": details,
        "categories": categories,
        "defaultModels": dict(DEFAULT_MODELS),
        "totalModels": len(available),
    }


def describe_model(model: Dict[str, Any]) -> Dict[str, Any]:
    details = {f: model.get(f) for f in DETAIL_FIELDS}
    details["capabilities"] = model.get("capabilities")
    return details


class ModelCatalog:
    """Reads ``/models`` and ``/usage`` from the provider."""

    def __init__(self, config: Optional[AIConfig] = None, timeout: float = 15.0):
        self.config = config or AIConfig()
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        if not self.config.api_key:
            raise AIConfigurationError("OPENROUTER_API_KEY is not configured")
        return {
            "Authorization": f"Bearer {self.config.api_key}",
            **self.config.default_headers,
        }

    async def _get(self, path: str) -> Dict[str, Any]:
        url = f"{self.config.base_url.rstrip('/')}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url, headers=self._headers())
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Provider GET {path} failed: {e.response.status_code}")
            raise AIProviderError(
                f"Provider returned {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"Provider GET {path} failed: {type(e).__name__}: {e}")
            raise AIProviderError(f"Provider unavailable: {type(e).__name__}") from e

    async def list_models(self) -> List[Dict[str, Any]]:
        payload = await self._get("/models")
        return payload.get("data", []) if isinstance(payload, dict) else []

    async def get_model(self, model_id: str) -> Optional[Dict[str, Any]]:
        for model in await self.list_models():
            if model.get("id") == model_id:
                return model
        return None

    async def get_usage(self) -> Dict[str, Any]:
        return await self._get("/usage")


_model_catalog: Optional[ModelCatalog] = None


def get_model_catalog() -> ModelCatalog:
    global _model_catalog
    if _model_catalog is None:
        _model_catalog = ModelCatalog()
    return _model_catalog
