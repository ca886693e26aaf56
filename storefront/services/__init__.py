"""
Service layer for the Storefront AI assistant.

Contains the business logic between routes (HTTP layer) and the outside world:
- api_key_pool: rotation and health of the Gemini API keys
- llm_client: one Gemini call with a given key
- catalog_service: Supabase catalog reads and product request writes
- recommendation_service: the recommendation pipeline
"""

from .api_key_pool import ApiKeyPool, build_api_key_pool
from .catalog_service import (
    ProductFilter,
    create_product_request,
    delete_product_request,
    find_products,
    get_categories,
    get_product_requests,
    update_product_request_status,
)
from .recommendation_service import RecommendationOptions, get_recommendations

__all__ = [
    "ApiKeyPool",
    "build_api_key_pool",
    "ProductFilter",
    "find_products",
    "get_categories",
    "create_product_request",
    "get_product_requests",
    "update_product_request_status",
    "delete_product_request",
    "RecommendationOptions",
    "get_recommendations",
]
