"""Health check API endpoint."""

import logging
from datetime import datetime, timezone
from typing import Dict, Any

from fastapi import APIRouter

from src.constants import APP_VERSION
from src.db.connection import db

from ..schemas.common import HealthStatus

logger = logging.getLogger(__name__)
router = APIRouter()

DB_HEALTH_TIMEOUT_SECONDS = 5.0


@router.get(
    "/health",
    response_model=HealthStatus,
    operation_id="getHealth",
    summary="Check service health",
)
async def health_check():
    """
    Check the health of the service components.

    **No authentication required.**

    Reports the database connection; a disabled database is reported as
    ``disabled`` and degrades the overall status.
    """
    components: Dict[str, Dict[str, Any]] = {}

    if not db.config.enabled:
        components["database"] = {"status": "disabled", "message": "Database disabled"}
    else:
        try:
            connected = await db.test_connection(timeout=DB_HEALTH_TIMEOUT_SECONDS)
            components["database"] = (
                {"status": "healthy", "message": "Connected"}
                if connected
                else {"status": "unhealthy", "message": "Connection failed"}
            )
        except Exception as e:
            logger.warning(f"Database health check failed: {type(e).__name__}: {e}")
            components["database"] = {"status": "unhealthy", "message": "Connection failed"}

    statuses = {c["status"] for c in components.values()}
    if "unhealthy" in statuses:
        overall = "unhealthy"
    elif "disabled" in statuses:
        overall = "degraded"
    else:
        overall = "healthy"

    return HealthStatus(
        status=overall,
        version=APP_VERSION,
        timestamp=datetime.now(timezone.utc),
        components=components,
    )


@router.get(
    "/",
    response_model=Dict[str, str],
    operation_id="getRoot",
    summary="Get API information",
)
async def root():
    """Service name, version and documentation links."""
    return {
        "service": "IMPECKS-AI",
        "version": APP_VERSION,
        "docs": "/docs",
        "health": "/health",
    }
