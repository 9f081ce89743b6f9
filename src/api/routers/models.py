"""Model catalogue API endpoints."""

import logging
from typing import Any, Dict

from fastapi import APIRouter, HTTPException

from src.ai import describe_model, get_model_catalog, summarize_models

from ..schemas.ai import ModelLookupRequest
from ..schemas.errors import BASE_ERROR_RESPONSES

logger = logging.getLogger(__name__)
router = APIRouter()

MODEL_ERROR_RESPONSES = {
    **BASE_ERROR_RESPONSES,
    502: {"description": "AI provider request failed"},
}


@router.get(
    "",
    response_model=Dict[str, Any],
    responses=MODEL_ERROR_RESPONSES,
    operation_id="listModels",
    summary="List supported models by category",
)
async def list_models():
    """
    Models from the provider whose ids contain glm, claude, gpt, gemini or
    mistral, grouped into chat, code, reasoning and multimodal categories.
    """
    models = await get_model_catalog().list_models()
    return {"success": True, **summarize_models(models)}


@router.post(
    "",
    response_model=Dict[str, Any],
    responses={**MODEL_ERROR_RESPONSES, 404: {"description": "Model not found"}},
    operation_id="getModelDetails",
    summary="Get one model's details",
)
async def get_model_details(request: ModelLookupRequest):
    model = await get_model_catalog().get_model(request.model)
    if model is None:
        raise HTTPException(status_code=404, detail="Model not found")
    return {"success": True, "model": describe_model(model)}


@router.get(
    "/usage",
    response_model=Dict[str, Any],
    responses=MODEL_ERROR_RESPONSES,
    operation_id="getProviderUsage",
    summary="Provider account usage",
)
async def provider_usage():
    usage = await get_model_catalog().get_usage()
    return {"success": True, "usage": usage}
