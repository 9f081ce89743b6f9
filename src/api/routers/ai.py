"""AI API endpoints: chat, code generation, quick refactor, documentation and optimization.

Every POST/PUT here is billed through the token meter: the estimate is
reserved up front, settled to the provider's reported usage afterwards and
released if anything fails.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from src.ai import extract_last_code_block, get_prompt_builder
from src.core.usage import get_token_meter, get_usage_aggregator

from ..dependencies import get_idempotency_key, get_optional_user, resolve_user_id
from ..schemas.ai import (
    ChatRequest,
    ChatResponse,
    CodeResponse,
    DocsRequest,
    DocsResponse,
    GenerateRequest,
    OptimizeRequest,
    OptimizeResponse,
    QuickRefactorRequest,
)
from ..schemas.errors import BILLED_ERROR_RESPONSES, SUBSCRIPTION_ERROR_RESPONSES
from .ai_helpers import complete_metered

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post(
    "/chat",
    response_model=ChatResponse,
    responses=BILLED_ERROR_RESPONSES,
    operation_id="aiChat",
    summary="Chat completion",
)
async def chat(
    request: ChatRequest,
    session_user: Optional[Dict[str, Any]] = Depends(get_optional_user),
    idempotency_key: Optional[str] = Depends(get_idempotency_key),
):
    """
    Send a conversation to the model.

    The estimate is one token per four characters of each message, summed.
    """
    user_id = resolve_user_id(request.user_id, session_user)
    prompt = get_prompt_builder().chat([m.model_dump() for m in request.messages])

    async with get_token_meter().metered_operation(
        user_id=user_id,
        operation=request.operation,
        request_type="chat",
        endpoint="/api/ai/chat",
        estimated_tokens=prompt.estimated_tokens,
        request_id=idempotency_key,
        metadata={"messageCount": len(request.messages)},
    ) as call:
        result = await complete_metered(call, prompt, request.model, request.options)

    return ChatResponse(content=result.content, model=result.model, usage=call.usage_dict())


@router.get(
    "/chat",
    response_model=Dict[str, Any],
    responses=SUBSCRIPTION_ERROR_RESPONSES,
    operation_id="getAiUsage",
    summary="Subscription counters and usage grouped by operation",
)
async def get_usage(user_id: Optional[str] = Query(None, alias="userId")):
    if not user_id:
        raise HTTPException(status_code=400, detail="User ID required")

    summary = await get_usage_aggregator().get_usage_summary(user_id)
    if summary is None:
        raise HTTPException(status_code=404, detail="No subscription found")
    return summary


@router.post(
    "/generate",
    response_model=CodeResponse,
    responses=BILLED_ERROR_RESPONSES,
    operation_id="generateCode",
    summary="Generate code from a description",
)
async def generate_code(
    request: GenerateRequest,
    session_user: Optional[Dict[str, Any]] = Depends(get_optional_user),
    idempotency_key: Optional[str] = Depends(get_idempotency_key),
):
    user_id = resolve_user_id(request.user_id, session_user)
    prompt = get_prompt_builder().code_generation(request.prompt, request.language, request.context)

    async with get_token_meter().metered_operation(
        user_id=user_id,
        operation=request.operation,
        request_type="code_generation",
        endpoint="/api/ai/generate",
        estimated_tokens=prompt.estimated_tokens,
        request_id=idempotency_key,
        metadata={"language": request.language},
    ) as call:
        result = await complete_metered(call, prompt, request.model, request.options)

    return CodeResponse(code=result.content, language=request.language, usage=call.usage_dict())


@router.put(
    "/generate",
    response_model=CodeResponse,
    responses=BILLED_ERROR_RESPONSES,
    operation_id="quickRefactor",
    summary="Refactor a snippet and return the code only",
)
async def quick_refactor(
    request: QuickRefactorRequest,
    session_user: Optional[Dict[str, Any]] = Depends(get_optional_user),
    idempotency_key: Optional[str] = Depends(get_idempotency_key),
):
    user_id = resolve_user_id(request.user_id, session_user)
    prompt = get_prompt_builder().quick_refactor(request.code, request.instruction, request.language)

    async with get_token_meter().metered_operation(
        user_id=user_id,
        operation=request.operation,
        request_type="refactoring",
        endpoint="/api/ai/generate",
        estimated_tokens=prompt.estimated_tokens,
        request_id=idempotency_key,
        metadata={"language": request.language, "originalCodeLength": len(request.code)},
    ) as call:
        result = await complete_metered(call, prompt, request.model, request.options)

    return CodeResponse(code=result.content, language=request.language, usage=call.usage_dict())


@router.post(
    "/docs",
    response_model=DocsResponse,
    responses=BILLED_ERROR_RESPONSES,
    operation_id="generateDocs",
    summary="Write Markdown documentation for code",
)
async def generate_docs(
    request: DocsRequest,
    session_user: Optional[Dict[str, Any]] = Depends(get_optional_user),
    idempotency_key: Optional[str] = Depends(get_idempotency_key),
):
    user_id = resolve_user_id(request.user_id, session_user)
    prompt = get_prompt_builder().documentation(request.code, request.language)

    async with get_token_meter().metered_operation(
        user_id=user_id,
        operation=request.operation,
        request_type="documentation",
        endpoint="/api/ai/docs",
        estimated_tokens=prompt.estimated_tokens,
        request_id=idempotency_key,
        metadata={"language": request.language, "codeLength": len(request.code)},
    ) as call:
        result = await complete_metered(call, prompt, request.model, request.options)

    return DocsResponse(
        documentation=result.content,
        language=request.language,
        model=result.model,
        usage=call.usage_dict(),
    )


@router.post(
    "/optimize",
    response_model=OptimizeResponse,
    responses=BILLED_ERROR_RESPONSES,
    operation_id="optimizePerformance",
    summary="Analyze and optimize code performance",
)
async def optimize(
    request: OptimizeRequest,
    session_user: Optional[Dict[str, Any]] = Depends(get_optional_user),
    idempotency_key: Optional[str] = Depends(get_idempotency_key),
):
    """Returns the optimized code (last fenced block) and the full analysis."""
    user_id = resolve_user_id(request.user_id, session_user)
    prompt = get_prompt_builder().performance_optimization(request.code, request.language)

    async with get_token_meter().metered_operation(
        user_id=user_id,
        operation="performance_optimization",
        request_type="performance_optimization",
        endpoint="/api/ai/optimize",
        estimated_tokens=prompt.estimated_tokens,
        request_id=idempotency_key,
        metadata={"language": request.language, "originalCodeLength": len(request.code)},
    ) as call:
        result = await complete_metered(call, prompt, request.model, request.options)
        optimized = (extract_last_code_block(result.content) or "").strip()
        call.metadata["optimizedCodeLength"] = len(optimized)

    return OptimizeResponse(
        optimized_code=optimized,
        analysis=result.content,
        language=request.language,
        model=result.model,
        usage=call.usage_dict(),
    )

