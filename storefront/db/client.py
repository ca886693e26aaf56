"""
Supabase client factory.

One server-side client is created lazily and shared by all requests. The
client is synchronous; services run its calls in a worker thread so a slow
query never blocks the event loop.

SECURITY RULES:
1. SUPABASE_SERVICE_KEY never leaves the server and is never logged
2. Only the catalog and product request tables are touched from here
"""

import logging
from typing import Optional

from storefront.config import settings
from supabase import Client, create_client

logger = logging.getLogger(__name__)

_supabase_client: Optional[Client] = None


def get_supabase_client() -> Client:
    """
    Return the process-wide Supabase client, creating it on first use.

    Used directly by services and as a FastAPI dependency by routes
    (tests override it with a mock).

    Raises:
        ValueError: If SUPABASE_URL or SUPABASE_SERVICE_KEY is missing.
    """
    global _supabase_client

    if _supabase_client is not None:
        return _supabase_client

    if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_KEY:
        raise ValueError(
            "SUPABASE_URL and SUPABASE_SERVICE_KEY must be configured "
            "to access the catalog."
        )

    _supabase_client = create_client(
        supabase_url=settings.SUPABASE_URL,
        supabase_key=settings.SUPABASE_SERVICE_KEY
    )
    logger.info("Supabase client initialized for catalog access")

    return _supabase_client
