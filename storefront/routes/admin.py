"""
Admin routes: Gemini key pool and product request review.

All endpoints require the X-Admin-Token header (see auth/dependencies.py).

Endpoints:
- GET    /admin/api-keys                 Key pool snapshot (masked)
- POST   /admin/api-keys/reset           Clear counters, cooldowns and disabled keys
- GET    /admin/product-requests         List logged product requests
- PATCH  /admin/product-requests/{id}    Change a request's status
- DELETE /admin/product-requests/{id}    Delete a request
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from supabase import Client

from storefront.auth.dependencies import require_admin_token
from storefront.routes.dependencies import get_catalog_client, get_key_pool
from storefront.routes.health import api_keys_status
from storefront.schemas.health import ApiKeysStatus
from storefront.schemas.product_requests import (
    ProductRequestDeleteResponse,
    ProductRequestListResponse,
    ProductRequestResponse,
    ProductRequestStatus,
    ProductRequestStatusUpdate,
)
from storefront.services.api_key_pool import ApiKeyPool
from storefront.services.catalog_service import (
    delete_product_request,
    get_product_requests,
    update_product_request_status,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin_token)],
)


# ============================================================================
# API KEY POOL
# ============================================================================

@router.get(
    "/api-keys",
    response_model=ApiKeysStatus,
    summary="Inspect the Gemini key pool",
)
async def get_api_keys_endpoint(
    key_pool: Annotated[Optional[ApiKeyPool], Depends(get_key_pool)],
) -> ApiKeysStatus:
    snapshot = key_pool.get_health_status() if key_pool is not None else None
    return api_keys_status(snapshot)


@router.post(
    "/api-keys/reset",
    response_model=ApiKeysStatus,
    summary="Reset the Gemini key pool",
    description=(
        "Clears call counters, cooldowns and auth failures of every key. "
        "Keys themselves are not reloaded; restart the service to change them."
    ),
)
async def reset_api_keys_endpoint(
    key_pool: Annotated[Optional[ApiKeyPool], Depends(get_key_pool)],
) -> ApiKeysStatus:
    if key_pool is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"error": "no_api_keys", "details": "No API keys are configured"}
        )

    key_pool.reset()
    logger.info("Key pool reset by admin")
    return api_keys_status(key_pool.get_health_status())


# ============================================================================
# PRODUCT REQUESTS
# ============================================================================

@router.get(
    "/product-requests",
    response_model=ProductRequestListResponse,
    summary="List product requests",
)
async def list_product_requests_endpoint(
    supabase_client: Annotated[Client, Depends(get_catalog_client)],
    request_status: Annotated[
        Optional[ProductRequestStatus], Query(alias="status", description="Filter by status")
    ] = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> ProductRequestListResponse:
    try:
        rows = await get_product_requests(
            supabase_client, status=request_status, limit=limit, offset=offset
        )
    except Exception as e:
        logger.error(f"Failed to list product requests: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "fetch_error", "details": "Failed to retrieve product requests"}
        )

    items = [ProductRequestResponse.model_validate(row) for row in rows]
    return ProductRequestListResponse(product_requests=items, count=len(items))


@router.patch(
    "/product-requests/{request_id}",
    response_model=ProductRequestResponse,
    summary="Update a product request's status",
)
async def update_product_request_endpoint(
    request_id: Annotated[str, Path(description="Product request ID")],
    body: ProductRequestStatusUpdate,
    supabase_client: Annotated[Client, Depends(get_catalog_client)],
) -> ProductRequestResponse:
    try:
        row = await update_product_request_status(supabase_client, request_id, body.status)
    except Exception as e:
        logger.error(f"Failed to update product request {request_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "update_error", "details": "Failed to update product request"}
        )

    if row is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "not_found", "details": "Product request not found"}
        )

    return ProductRequestResponse.model_validate(row)


@router.delete(
    "/product-requests/{request_id}",
    response_model=ProductRequestDeleteResponse,
    summary="Delete a product request",
)
async def delete_product_request_endpoint(
    request_id: Annotated[str, Path(description="Product request ID")],
    supabase_client: Annotated[Client, Depends(get_catalog_client)],
) -> ProductRequestDeleteResponse:
    try:
        deleted = await delete_product_request(supabase_client, request_id)
    except Exception as e:
        logger.error(f"Failed to delete product request {request_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "delete_error", "details": "Failed to delete product request"}
        )

    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "not_found", "details": "Product request not found"}
        )

    return ProductRequestDeleteResponse(
        product_request_id=request_id,
        message="Product request deleted successfully",
    )
