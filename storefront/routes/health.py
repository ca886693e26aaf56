"""
Health check route for the Storefront AI assistant.

This endpoint is PUBLIC (no authentication required) and reports whether
the recommendation feature can currently reach Gemini:

- healthy:  at least one API key configured and healthy
- degraded: no keys configured, or every key is in cooldown / disabled
- error:    the snapshot could not be produced (HTTP 500)

Keys are masked; only counters and cooldowns are exposed.
"""

from datetime import datetime, timezone
from typing import Annotated, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from storefront.routes.dependencies import get_key_pool
from storefront.schemas.health import ApiKeysStatus, HealthResponse, KeyHealthResponse
from storefront.services.api_key_pool import ApiKeyPool, PoolHealthSnapshot
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()

NO_KEYS_WARNING = "No API keys configured. Set GEMINI_API_KEYS or GEMINI_API_KEY_1 in environment variables."
SINGLE_KEY_WARNING = "Only one API key configured. Consider adding more for redundancy."
ALL_UNHEALTHY_WARNING = "All API keys are currently in cooldown, rate-limited or disabled."


def api_keys_status(snapshot: Optional[PoolHealthSnapshot]) -> ApiKeysStatus:
    """Map a pool snapshot (or a missing pool) to the wire model."""
    if snapshot is None:
        return ApiKeysStatus(configured=0)

    return ApiKeysStatus(
        configured=snapshot.total_keys,
        active_index=snapshot.active_key_index,
        last_rotation=snapshot.last_rotation,
        keys=[
            KeyHealthResponse(
                index=key.index,
                masked_key=key.masked_key,
                call_count=key.call_count,
                is_active=key.is_active,
                is_healthy=key.is_healthy,
                rate_limited=key.rate_limited,
                cooldown_remaining=key.cooldown_remaining,
            )
            for key in snapshot.keys
        ],
    )


def build_health_response(key_pool: Optional[ApiKeyPool]) -> HealthResponse:
    """Derive status and warnings from the key pool."""
    snapshot = key_pool.get_health_status() if key_pool is not None else None
    status = "healthy"
    warnings = []

    if snapshot is None or snapshot.total_keys == 0:
        status = "degraded"
        warnings.append(NO_KEYS_WARNING)
    else:
        if snapshot.total_keys == 1:
            warnings.append(SINGLE_KEY_WARNING)
        if snapshot.healthy_keys == 0:
            status = "degraded"
            warnings.append(ALL_UNHEALTHY_WARNING)

    return HealthResponse(
        status=status,
        timestamp=datetime.now(timezone.utc),
        api_keys=api_keys_status(snapshot),
        warnings=warnings,
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check endpoint",
    description=(
        "Public health check endpoint (no authentication required). "
        "Reports the Gemini key pool: configured keys, active key, cooldowns."
    ),
    status_code=200,
)
async def health_check(
    key_pool: Annotated[Optional[ApiKeyPool], Depends(get_key_pool)],
) -> JSONResponse:
    """
    Public health check endpoint.

    Example response:
        {
            "status": "healthy",
            "timestamp": "2025-01-01T00:00:00Z",
            "apiKeys": {"configured": 2, "activeIndex": 0, "lastRotation": null, "keys": [...]},
            "warnings": []
        }
    """
    logger.debug("Health check endpoint called")

    try:
        response = build_health_response(key_pool)
        status_code = 200
    except Exception as e:
        logger.error(f"Health check failed: {e}", exc_info=True)
        response = HealthResponse(
            status="error",
            timestamp=datetime.now(timezone.utc),
            error="Health check failed",
        )
        status_code = 500

    return JSONResponse(
        status_code=status_code,
        content=response.model_dump(mode="json", by_alias=True, exclude_none=True),
    )
