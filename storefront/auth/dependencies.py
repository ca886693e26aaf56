"""
FastAPI dependency functions for admin authentication.

Shopper-facing endpoints (/recommend, /health) are public. Admin endpoints
require the X-Admin-Token header to match ADMIN_API_TOKEN.
"""

import hmac
from typing import Annotated

from fastapi import Header, HTTPException, status

from storefront.config import settings
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


async def require_admin_token(
    x_admin_token: Annotated[str | None, Header()] = None
) -> None:
    """
    Verify the admin token header.

    Raises:
        HTTPException: 503 if no admin token is configured (admin API disabled),
            401 if the header is missing or wrong

    Usage:
        @router.post("/admin/api-keys/reset", dependencies=[Depends(require_admin_token)])
    """
    if not settings.ADMIN_API_TOKEN:
        logger.warning("Admin endpoint called but ADMIN_API_TOKEN is not configured")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"error": "admin_disabled", "details": "Admin API is not configured"}
        )

    if not x_admin_token:
        logger.warning("Missing X-Admin-Token header")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "unauthorized", "details": "Missing X-Admin-Token header"}
        )

    if not hmac.compare_digest(x_admin_token, settings.ADMIN_API_TOKEN):
        logger.warning("Invalid admin token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "unauthorized", "details": "Invalid admin token"}
        )
