"""
Database access layer for the Storefront AI assistant.

The catalog (products, categories) and product requests live in Supabase.
The assistant uses a server-side client: catalog data is shared by all
shoppers, there is no per-user row security to respect here.

Includes:
- Supabase client initialization (lazy, one per process)
"""

from .client import get_supabase_client

__all__ = ["get_supabase_client"]
