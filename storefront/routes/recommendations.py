"""
FastAPI routes for the shopping assistant recommendation endpoints.

These endpoints are PUBLIC (storefront shoppers are anonymous).

Endpoints:
- POST /recommend: Recommendation query with optional context
- GET /recommend: Read-only convenience form (?q=&budget=&category=)

Status codes:
- 200: success (including "nothing found" answers with an empty list)
- 400: invalid input (message safe to show)
- 500: upstream or internal failure (generic message)
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from supabase import Client

from storefront.routes.dependencies import get_catalog_client, get_key_pool
from storefront.schemas.recommendations import (
    RecommendationContext,
    RecommendationQueryRequest,
    RecommendationResponse,
)
from storefront.services.api_key_pool import ApiKeyPool
from storefront.services.recommendation_service import get_recommendations
from storefront.utils.constants import MAX_RECOMMENDATIONS
from storefront.utils.exceptions import ErrorCode

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/recommend",
    tags=["recommendations"]
)


def _to_http_response(response: RecommendationResponse) -> JSONResponse:
    """Map a RecommendationResponse to its HTTP status code."""
    status_code = 200
    if not response.success:
        status_code = 400 if response.error_code == ErrorCode.INVALID_INPUT else 500

    return JSONResponse(
        status_code=status_code,
        content=response.model_dump(mode="json", by_alias=True, exclude_none=True),
    )


# ============================================================================
# ENDPOINTS
# ============================================================================

@router.post(
    "",
    response_model=RecommendationResponse,
    status_code=200,
    summary="Get product recommendations",
    description="""
    Turns a natural language query into ranked catalog products.

    **Flow:**
    1. Query is validated (max 1000 characters, budget >= 0)
    2. Gemini extracts the shopper's intent (category, budget, requirements)
    3. Matching catalog products are ranked and capped at 5
    4. If nothing suitable is found, a product request may be logged for staff
       and the summary explains what happened

    A "nothing found" answer is still success=true with an empty list.
    """
)
async def recommend_endpoint(
    request: RecommendationQueryRequest,
    key_pool: Annotated[Optional[ApiKeyPool], Depends(get_key_pool)],
    supabase_client: Annotated[Client, Depends(get_catalog_client)],
) -> JSONResponse:
    """
    POST /recommend.

    - Parse: Pydantic RecommendationQueryRequest (shape only)
    - Validate + orchestrate: recommendation service
    - Map output: success flag / error code -> HTTP status
    """
    logger.info(f"POST /recommend called, query='{request.query[:50]}'")

    response = await get_recommendations(
        request,
        key_pool=key_pool,
        supabase_client=supabase_client,
    )

    logger.info(f"Returning response success={response.success}, results={len(response.recommendations)}")
    return _to_http_response(response)


@router.get(
    "",
    response_model=RecommendationResponse,
    status_code=200,
    summary="Get product recommendations (query string form)",
    description=(
        "Read-only convenience form of POST /recommend. "
        f"maxResults is fixed at {MAX_RECOMMENDATIONS}."
    ),
)
async def recommend_get_endpoint(
    key_pool: Annotated[Optional[ApiKeyPool], Depends(get_key_pool)],
    supabase_client: Annotated[Client, Depends(get_catalog_client)],
    q: Annotated[Optional[str], Query(description="Shopper query")] = None,
    query: Annotated[Optional[str], Query(description="Alias of q")] = None,
    budget: Annotated[Optional[float], Query(description="Maximum budget in INR")] = None,
    category: Annotated[Optional[str], Query(description="Category ID")] = None,
) -> JSONResponse:
    """GET /recommend?q=&budget=&category=."""
    text = q or query
    if not text:
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "Query parameter 'q' is required"},
        )

    logger.info(f"GET /recommend called, query='{text[:50]}'")

    request = RecommendationQueryRequest(
        query=text,
        context=RecommendationContext(budget=budget, category_id=category),
        max_results=MAX_RECOMMENDATIONS,
    )
    response = await get_recommendations(
        request,
        key_pool=key_pool,
        supabase_client=supabase_client,
    )
    return _to_http_response(response)
