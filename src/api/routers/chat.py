"""Assistant chat for signed-in users.

Not metered: the assistant is a free helper on the chat page.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends

from src.ai import get_ai_gateway, get_prompt_builder

from ..dependencies import get_current_user
from ..schemas.ai import AssistantChatRequest, AssistantChatResponse
from ..schemas.errors import AUTH_ERROR_RESPONSES

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post(
    "",
    response_model=AssistantChatResponse,
    responses=AUTH_ERROR_RESPONSES,
    operation_id="assistantChat",
    summary="Ask the web-development assistant",
)
async def assistant_chat(
    request: AssistantChatRequest,
    session_user: Dict[str, Any] = Depends(get_current_user),
):
    prompt = get_prompt_builder().assistant_chat(
        request.message,
        [m.model_dump() for m in request.conversation_history],
        session_user.get("email", ""),
    )
    result = await get_ai_gateway().complete(prompt.messages, operation="assistant_chat")

    return AssistantChatResponse(
        response=result.content,
        timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    )
