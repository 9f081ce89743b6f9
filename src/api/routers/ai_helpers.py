"""Helper functions shared by the billed AI routers."""

import logging
from typing import Any, Dict, Optional

from src.ai import AIResult, Prompt, get_ai_gateway
from src.core.usage import MeteredCall, get_usage_aggregator

from ..schemas.common import GenerationOptions

logger = logging.getLogger(__name__)


async def complete_metered(
    call: MeteredCall,
    prompt: Prompt,
    model: Optional[str] = None,
    options: Optional[GenerationOptions] = None,
) -> AIResult:
    """
    Run the completion for a billed call and record its usage on ``call``.

    Sampling defaults come from the call's request type; ``options`` override
    them.
    """
    result = await get_ai_gateway().complete(
        prompt.messages,
        operation=call.request_type,
        model=model,
        temperature=options.temperature if options else None,
        max_tokens=options.max_tokens if options else None,
    )
    call.record(result.usage, result.model)
    return result


async def history_response(user_id: str, operation: str, limit: int, total_key: str) -> Dict[str, Any]:
    """Recent usage rows for one operation, newest first."""
    history = await get_usage_aggregator().get_history(user_id, operation=operation, limit=limit)
    return {
        "success": True,
        "history": history,
        total_key: len(history),
    }
