"""
Health Check Routes

FastAPI endpoints for service health, readiness and the tenant list.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from querygpt import __version__
from querygpt.config import get_settings
from querygpt.models.api import HealthResponse, ReadinessResponse, TenantsResponse
from querygpt.schema.tenants import TENANTS

logger = logging.getLogger(__name__)

router = APIRouter()


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/health", response_model=HealthResponse, status_code=status.HTTP_200_OK)
async def health() -> HealthResponse:
    """
    Basic liveness check.

    Returns 200 OK if the service is running.
    """
    return HealthResponse(status="healthy", version=__version__, timestamp=_timestamp())


@router.get("/ready", status_code=status.HTTP_200_OK)
async def readiness() -> JSONResponse:
    """
    Readiness check.

    Checks:
    - Schema context is loaded
    - Chat service client is configured

    Returns:
        200 OK if all checks pass
        503 Service Unavailable if any check fails
    """
    from querygpt.api.main import app_state

    checks = {
        "schema": app_state["store"] is not None and app_state["store"].is_loaded,
        "chat_service": app_state["client"] is not None,
    }
    for name, ok in checks.items():
        if not ok:
            logger.warning(f"Readiness check failed: {name}")

    all_ready = all(checks.values())
    response_data = ReadinessResponse(
        status="ready" if all_ready else "not_ready",
        version=__version__,
        timestamp=_timestamp(),
        checks=checks,
    )
    return JSONResponse(
        status_code=status.HTTP_200_OK if all_ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=response_data.model_dump(),
    )


@router.get("/tenants", response_model=TenantsResponse)
async def list_tenants() -> TenantsResponse:
    """Tenants selectable for a conversation."""
    return TenantsResponse(tenants=list(TENANTS), default_tenant=get_settings().default_tenant)
