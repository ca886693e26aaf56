"""
Shared FastAPI dependencies for route handlers.

The key pool is created once in the app lifespan and stored on app.state;
tests replace these dependencies through app.dependency_overrides.
"""

import logging
from typing import Optional

from fastapi import Request
from supabase import Client

from storefront.db.client import get_supabase_client
from storefront.services.api_key_pool import ApiKeyPool
from storefront.utils.exceptions import InternalError

logger = logging.getLogger(__name__)


def get_key_pool(request: Request) -> Optional[ApiKeyPool]:
    """Process-wide key pool, or None when no API keys are configured."""
    return getattr(request.app.state, "key_pool", None)


def get_catalog_client() -> Client:
    """
    Supabase client for catalog access.

    Raises:
        InternalError: If Supabase is not configured (mapped to a 500 by main.py)
    """
    try:
        return get_supabase_client()
    except ValueError as e:
        logger.error(f"Catalog client unavailable: {e}")
        raise InternalError() from e
