"""
Health check endpoint schemas.

The health endpoint is PUBLIC (no authentication required) and reports the
state of the Gemini key pool. Keys are always masked.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field

from storefront.schemas.base import CamelModel


class KeyHealthResponse(CamelModel):
    """Health of a single API key."""
    index: int
    masked_key: str = Field(..., examples=["AIza****9xQk"])
    call_count: int
    is_active: bool
    is_healthy: bool
    rate_limited: bool
    cooldown_remaining: Optional[int] = Field(
        None,
        description="Seconds until the key leaves cooldown (None if never cooled down)"
    )


class ApiKeysStatus(CamelModel):
    """Key pool summary."""
    configured: int
    active_index: Optional[int] = None
    last_rotation: Optional[datetime] = None
    keys: List[KeyHealthResponse] = Field(default_factory=list)


class HealthResponse(CamelModel):
    """
    Response model for GET /health.

    - healthy: at least one key configured and healthy
    - degraded: no keys configured, or every key is unhealthy
    - error: the snapshot itself could not be produced
    """
    status: Literal["healthy", "degraded", "error"] = Field(
        "healthy",
        examples=["healthy"]
    )
    timestamp: datetime
    api_keys: Optional[ApiKeysStatus] = None
    warnings: List[str] = Field(default_factory=list)
    error: Optional[str] = None
