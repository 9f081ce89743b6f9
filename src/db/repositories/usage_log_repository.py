"""Usage log repository - append-only record of AI operations."""

import logging
from typing import Optional, List, Dict, Any

from sqlalchemy import select, func, desc

from ..models import UsageLogModel
from ..connection import db
from ..utils import with_db_retry

logger = logging.getLogger(__name__)


@with_db_retry
async def create_usage_log(
    user_id: str,
    operation: str,
    tokens_used: int,
    endpoint: str = "",
    request_type: str = "unknown",
    complexity: str = "simple",
    response_time: int = 0,
    success: bool = True,
    error_message: Optional[str] = None,
    model: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    request_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Append one usage log row and return it."""
    async with db.session() as session:
        log = UsageLogModel(
            user_id=user_id,
            request_id=request_id,
            tokens_used=tokens_used,
            operation=operation,
            endpoint=endpoint,
            request_type=request_type,
            complexity=complexity,
            response_time=response_time,
            success=success,
            error_message=error_message,
            model=model,
            extra=metadata or {},
        )
        session.add(log)
        await session.flush()
        logger.debug(
            f"Usage log {log.id}: user={user_id} op={operation} "
            f"tokens={tokens_used} success={success}"
        )
        return log.to_dict()


@with_db_retry
async def list_usage_logs(
    user_id: str,
    operation: Optional[str] = None,
    limit: int = 50,
) -> List[Dict[str, Any]]:
    """Most recent logs for a user, newest first."""
    async with db.session() as session:
        stmt = select(UsageLogModel).where(UsageLogModel.user_id == user_id)
        if operation:
            stmt = stmt.where(UsageLogModel.operation == operation)
        stmt = stmt.order_by(desc(UsageLogModel.created_at)).limit(limit)

        result = await session.execute(stmt)
        return [log.to_dict() for log in result.scalars().all()]


@with_db_retry
async def get_stats_by_operation(user_id: str) -> Dict[str, Dict[str, Any]]:
    """
    Aggregate a user's usage per operation.

    Returns:
        {operation: {"count": int, "tokensUsed": int, "avgResponseTime": int}}
    """
    async with db.session() as session:
        result = await session.execute(
            select(
                UsageLogModel.operation,
                func.count(UsageLogModel.id),
                func.coalesce(func.sum(UsageLogModel.tokens_used), 0),
                func.coalesce(func.avg(UsageLogModel.response_time), 0),
            )
            .where(UsageLogModel.user_id == user_id)
            .group_by(UsageLogModel.operation)
        )

        return {
            operation: {
                "count": int(count),
                "tokensUsed": int(tokens),
                "avgResponseTime": round(float(avg_time)),
            }
            for operation, count, tokens, avg_time in result.all()
        }
