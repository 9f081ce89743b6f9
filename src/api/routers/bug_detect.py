"""Bug detection API endpoints."""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from src.ai import get_prompt_builder, get_response_parser
from src.constants import BUG_DETECTION_HISTORY_LIMIT, DEFAULT_LANGUAGE
from src.core.usage import get_token_meter

from ..dependencies import get_idempotency_key, get_optional_user, resolve_user_id
from ..schemas.ai import BugDetectRequest, BugDetectResponse
from ..schemas.errors import BASE_ERROR_RESPONSES, BILLED_ERROR_RESPONSES
from .ai_helpers import complete_metered, history_response

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post(
    "",
    response_model=BugDetectResponse,
    responses=BILLED_ERROR_RESPONSES,
    operation_id="detectBugs",
    summary="Analyze code for bugs, security and performance issues",
)
async def detect_bugs(
    request: BugDetectRequest,
    session_user: Optional[Dict[str, Any]] = Depends(get_optional_user),
    idempotency_key: Optional[str] = Depends(get_idempotency_key),
):
    user_id = resolve_user_id(request.user_id, session_user)
    language = request.language or DEFAULT_LANGUAGE
    prompt = get_prompt_builder().bug_detection(request.code, language)

    async with get_token_meter().metered_operation(
        user_id=user_id,
        operation="bug_detection",
        request_type="bug_detection",
        endpoint="/api/bug-detect",
        estimated_tokens=prompt.estimated_tokens,
        request_id=idempotency_key,
        metadata={"language": language, "codeLength": len(request.code)},
    ) as call:
        result = await complete_metered(call, prompt, request.model, request.options)
        report = get_response_parser().parse_bug_report(result.content)
        call.metadata.update({
            "issuesFound": report.total_issues,
            "criticalIssues": len(report.critical_issues),
            "securityIssues": len(report.security_issues),
        })

    return BugDetectResponse(
        original_code=request.code,
        **report.to_dict(),
        model=result.model,
        usage=call.usage_dict(),
        metadata={
            "language": language,
            "codeLength": len(request.code),
            "fixedCodeLength": len(report.fixed_code),
            "issuesFound": report.total_issues,
        },
    )


@router.get(
    "",
    response_model=Dict[str, Any],
    responses=BASE_ERROR_RESPONSES,
    operation_id="getBugDetectionHistory",
    summary="Recent bug detection operations",
)
async def bug_detection_history(user_id: Optional[str] = Query(None, alias="userId")):
    if not user_id:
        raise HTTPException(status_code=400, detail="User ID required")
    return await history_response(
        user_id, "bug_detection", BUG_DETECTION_HISTORY_LIMIT, "totalBugDetectionOperations"
    )
