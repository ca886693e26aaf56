"""
Catalog and product request persistence service.

Thin adapter over the Supabase tables the assistant needs:
- products:         read-only candidate retrieval
- categories:       read-only list fed to the intent prompt
- product_requests: products shoppers asked for that the catalog lacks

The Supabase client is synchronous, so every query runs in a worker thread
(asyncio.to_thread). Callers add their own timeouts.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, cast

from supabase import Client

from storefront.utils.constants import (
    CATEGORIES_TABLE,
    MAX_CANDIDATES,
    PRODUCT_REQUEST_STATUSES,
    PRODUCT_REQUESTS_TABLE,
    PRODUCTS_TABLE,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProductFilter:
    """Catalog query built from the resolved intent and request context."""
    category_id: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    available_only: bool = True
    exclude_ids: Sequence[str] = ()
    limit: int = MAX_CANDIDATES


async def find_products(
    supabase_client: Client,
    product_filter: ProductFilter,
) -> List[Dict[str, Any]]:
    """
    Fetch candidate products matching a filter, in catalog insertion order.

    Args:
        supabase_client: Server-side Supabase client
        product_filter: Category / price band / availability constraints

    Returns:
        List of product rows (may be empty)
    """
    logger.debug(f"Fetching products with {product_filter}")

    query = supabase_client.table(PRODUCTS_TABLE).select("*")

    if product_filter.category_id:
        query = query.eq("category_id", product_filter.category_id)
    if product_filter.available_only:
        query = query.eq("is_available", True)
    if product_filter.min_price is not None:
        query = query.gte("price", product_filter.min_price)
    if product_filter.max_price is not None:
        query = query.lte("price", product_filter.max_price)

    query = query.order("created_at").limit(product_filter.limit)

    result = await asyncio.to_thread(query.execute)
    products = cast(List[Dict[str, Any]], result.data or [])

    if product_filter.exclude_ids:
        excluded = {str(pid) for pid in product_filter.exclude_ids}
        products = [p for p in products if str(p.get("id")) not in excluded]

    logger.info(f"Found {len(products)} candidate products (category={product_filter.category_id})")
    return products


async def get_categories(supabase_client: Client) -> List[Dict[str, Any]]:
    """Fetch all catalog categories (id, name), ordered by name."""
    query = supabase_client.table(CATEGORIES_TABLE).select("id, name").order("name")
    result = await asyncio.to_thread(query.execute)
    return cast(List[Dict[str, Any]], result.data or [])


async def create_product_request(
    supabase_client: Client,
    product_name: str,
    description: str = "",
    category: Optional[str] = None,
    max_budget: Optional[float] = None,
    specifications: Optional[List[str]] = None,
    user_contact: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Persist a product request with status "pending".

    Returns:
        The inserted row (includes "id")

    Raises:
        Exception: If the insert fails (the caller decides whether it matters)
    """
    payload = {
        "product_name": product_name,
        "description": description,
        "category": category,
        "max_budget": max_budget,
        "specifications": specifications or [],
        "status": PRODUCT_REQUEST_STATUSES["PENDING"],
        "created_at": datetime.now(timezone.utc).isoformat(),
        "user_contact": user_contact,
    }

    query = supabase_client.table(PRODUCT_REQUESTS_TABLE).insert(payload)
    result = await asyncio.to_thread(query.execute)

    if not result.data:
        raise RuntimeError("Product request insert returned no data")

    row = cast(Dict[str, Any], result.data[0])
    logger.info(f"Product request {row.get('id')} created for '{product_name}'")
    return row


async def get_product_requests(
    supabase_client: Client,
    status: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
) -> List[Dict[str, Any]]:
    """
    List product requests, newest first.

    Args:
        supabase_client: Server-side Supabase client
        status: Optional status filter (pending / reviewed / fulfilled)
        limit: Maximum rows to return
        offset: Rows to skip (pagination)
    """
    query = supabase_client.table(PRODUCT_REQUESTS_TABLE).select("*")
    if status:
        query = query.eq("status", status)
    query = query.order("created_at", desc=True).range(offset, offset + limit - 1)

    result = await asyncio.to_thread(query.execute)
    return cast(List[Dict[str, Any]], result.data or [])


async def update_product_request_status(
    supabase_client: Client,
    request_id: str,
    status: str,
) -> Optional[Dict[str, Any]]:
    """
    Change a product request's status.

    Returns:
        Updated row, or None if the request does not exist

    Raises:
        ValueError: If status is not a known product request status
    """
    if status not in PRODUCT_REQUEST_STATUSES.values():
        raise ValueError(f"Invalid product request status: {status}")

    query = (
        supabase_client.table(PRODUCT_REQUESTS_TABLE)
        .update({"status": status, "updated_at": datetime.now(timezone.utc).isoformat()})
        .eq("id", request_id)
    )
    result = await asyncio.to_thread(query.execute)

    if not result.data:
        logger.warning(f"Product request {request_id} not found for status update")
        return None

    logger.info(f"Product request {request_id} marked {status}")
    return cast(Dict[str, Any], result.data[0])


async def delete_product_request(supabase_client: Client, request_id: str) -> bool:
    """
    Delete a product request.

    Returns:
        True if a row was deleted, False if it did not exist
    """
    query = supabase_client.table(PRODUCT_REQUESTS_TABLE).delete().eq("id", request_id)
    result = await asyncio.to_thread(query.execute)

    deleted = bool(result.data)
    if deleted:
        logger.info(f"Product request {request_id} deleted")
    else:
        logger.warning(f"Product request {request_id} not found for deletion")
    return deleted
