"""Refactoring API endpoints: single-file and multi-file refactors with history."""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from src.ai import get_prompt_builder, get_response_parser, improvement_score
from src.constants import DEFAULT_LANGUAGE, MULTI_FILE_HISTORY_LIMIT, REFACTOR_HISTORY_LIMIT
from src.core.usage import get_token_meter

from ..dependencies import get_idempotency_key, get_optional_user, resolve_user_id
from ..schemas.ai import (
    MultiFileRefactorRequest,
    MultiFileRefactorResponse,
    RefactorRequest,
    RefactorResponse,
)
from ..schemas.errors import BILLED_ERROR_RESPONSES, BASE_ERROR_RESPONSES
from .ai_helpers import complete_metered, history_response

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post(
    "",
    response_model=RefactorResponse,
    responses=BILLED_ERROR_RESPONSES,
    operation_id="refactorCode",
    summary="Refactor code with a sectioned report",
)
async def refactor(
    request: RefactorRequest,
    session_user: Optional[Dict[str, Any]] = Depends(get_optional_user),
    idempotency_key: Optional[str] = Depends(get_idempotency_key),
):
    """
    Refactor one snippet.

    Returns the refactored code plus the changes, performance notes,
    breaking changes and recommendations the model reported, each with a
    default when the model left the section out.
    """
    user_id = resolve_user_id(request.user_id, session_user)
    language = request.language or DEFAULT_LANGUAGE
    prompt = get_prompt_builder().refactor(request.code, request.instruction, language)

    async with get_token_meter().metered_operation(
        user_id=user_id,
        operation="auto_refactor",
        request_type="auto_refactor",
        endpoint="/api/refactor",
        estimated_tokens=prompt.estimated_tokens,
        request_id=idempotency_key,
        metadata={"language": language, "originalCodeLength": len(request.code)},
    ) as call:
        result = await complete_metered(call, prompt, request.model, request.options)
        parsed = get_response_parser().parse_refactor(result.content)
        call.metadata["refactoredCodeLength"] = len(parsed.refactored_code)

    return RefactorResponse(
        original_code=request.code,
        **parsed.to_dict(),
        model=result.model,
        usage=call.usage_dict(),
        metadata={
            "language": language,
            "originalLength": len(request.code),
            "refactoredLength": len(parsed.refactored_code),
            "improvementScore": improvement_score(request.code, parsed.refactored_code),
        },
    )


@router.get(
    "",
    response_model=Dict[str, Any],
    responses=BASE_ERROR_RESPONSES,
    operation_id="getRefactorHistory",
    summary="Recent refactor operations",
)
async def refactor_history(user_id: Optional[str] = Query(None, alias="userId")):
    if not user_id:
        raise HTTPException(status_code=400, detail="User ID required")
    return await history_response(
        user_id, "auto_refactor", REFACTOR_HISTORY_LIMIT, "totalRefactoringOperations"
    )


@router.post(
    "/multi",
    response_model=MultiFileRefactorResponse,
    responses=BILLED_ERROR_RESPONSES,
    operation_id="refactorMultipleFiles",
    summary="Refactor several files together",
)
async def refactor_multi(
    request: MultiFileRefactorRequest,
    session_user: Optional[Dict[str, Any]] = Depends(get_optional_user),
    idempotency_key: Optional[str] = Depends(get_idempotency_key),
):
    """
    Refactor a set of files as one system.

    Files the model did not return are left out of ``refactoredFiles``;
    the improvement score still averages over every submitted file.
    """
    user_id = resolve_user_id(request.user_id, session_user)
    files = [
        {"name": f.name, "content": f.content, "language": f.language or DEFAULT_LANGUAGE}
        for f in request.files
    ]
    prompt = get_prompt_builder().multi_file_refactor(files, request.instruction)
    total_code_length = sum(len(f["content"]) for f in files)

    async with get_token_meter().metered_operation(
        user_id=user_id,
        operation="multi_file_refactor",
        request_type="multi_file_refactor",
        endpoint="/api/refactor/multi",
        estimated_tokens=prompt.estimated_tokens,
        request_id=idempotency_key,
        metadata={"fileCount": len(files), "totalCodeLength": total_code_length},
    ) as call:
        result = await complete_metered(call, prompt, request.model, request.options)
        parser = get_response_parser()
        parsed = parser.parse_multi_file(result.content, files)
        refactored_length = sum(len(f.refactored_code) for f in parsed.refactored_files)
        call.metadata["refactoredCodeLength"] = refactored_length

    return MultiFileRefactorResponse(
        original_files=files,
        **parsed.to_dict(),
        model=result.model,
        usage=call.usage_dict(),
        metadata={
            "fileCount": len(files),
            "totalCodeLength": total_code_length,
            "refactoredCodeLength": refactored_length,
            "improvementScore": parser.multi_file_score(files, parsed.refactored_files),
            "languages": ", ".join(dict.fromkeys(f["language"] for f in files)),
        },
    )


@router.get(
    "/multi",
    response_model=Dict[str, Any],
    responses=BASE_ERROR_RESPONSES,
    operation_id="getMultiFileRefactorHistory",
    summary="Recent multi-file refactor operations",
)
async def refactor_multi_history(user_id: Optional[str] = Query(None, alias="userId")):
    if not user_id:
        raise HTTPException(status_code=400, detail="User ID required")
    return await history_response(
        user_id, "multi_file_refactor", MULTI_FILE_HISTORY_LIMIT, "totalMultiFileOperations"
    )
