"""
Pydantic schemas for the recommendation endpoints.

These models define the request/response contracts of POST/GET /recommend
and the structured intent parsed from the language model.
"""

from typing import List, Optional, Union

from pydantic import ConfigDict, Field, field_validator

from storefront.schemas.base import CamelModel
from storefront.utils.exceptions import ErrorCode

# ============================================================================
# REQUEST MODELS
# ============================================================================

class RecommendationContext(CamelModel):
    """Optional shopper context sent along with the query."""
    budget: Optional[float] = Field(
        None,
        description="Maximum budget in INR. Must be zero or positive.",
        examples=[2000, 1000000]
    )
    category_id: Optional[str] = Field(
        None,
        description="Category the shopper is browsing; overrides the parsed category",
        examples=["audio", "home-appliances"]
    )
    exclude_product_ids: List[str] = Field(
        default_factory=list,
        description="Products the shopper has already seen or dismissed"
    )
    conversation: Optional[List[str]] = Field(
        None,
        description="Previous shopper messages in this session, oldest first"
    )
    user_contact: Optional[str] = Field(
        None,
        description="Contact stored with an auto-logged product request",
        max_length=200
    )


class RecommendationQueryRequest(CamelModel):
    """
    Request body for POST /recommend.

    Content rules (length, budget sign, maxResults) are enforced by the
    recommendation service so the same messages apply to every entry point.
    """
    query: str = Field(
        ...,
        description="Shopper's natural language query (max 1000 characters)",
        examples=["wireless earbuds under 2000", "red flying car under 10 lakhs"]
    )
    context: Optional[RecommendationContext] = Field(
        None,
        description="Optional budget / category hints"
    )
    max_results: Optional[int] = Field(
        None,
        description="Requested number of results; capped at 5",
        examples=[3, 5]
    )


# ============================================================================
# INTENT (parsed from the language model)
# ============================================================================

class IntentBudget(CamelModel):
    """Price band extracted from the query. None means unbounded."""
    min: Optional[float] = None
    max: Optional[float] = None


class ProductRequestData(CamelModel):
    """Product the shopper named that the store may not carry."""
    name: str
    category: Optional[str] = None
    max_budget: Optional[float] = None
    specifications: List[str] = Field(default_factory=list)


class Intent(CamelModel):
    """Structured interpretation of a shopper's query."""
    category: Optional[str] = None
    subcategory: Optional[str] = None
    requirements: List[str] = Field(default_factory=list)
    budget: IntentBudget = Field(default_factory=IntentBudget)
    preferences: List[str] = Field(default_factory=list)
    use_case: Optional[str] = None
    confidence: Optional[float] = Field(
        None,
        description="0-1; None when the model gave no confidence signal",
        ge=0,
        le=1
    )
    product_request_data: Optional[ProductRequestData] = None

    model_config = ConfigDict(frozen=True)


# ============================================================================
# RESPONSE MODELS
# ============================================================================

class Product(CamelModel):
    """
    Catalog product as returned to the UI.

    Owned by the catalog; unknown columns are passed through untouched.
    """
    id: Union[str, int]
    name: str
    description: Optional[str] = ""
    price: float
    category_id: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    featured: bool = False
    average_rating: Optional[float] = None
    is_available: bool = True

    model_config = ConfigDict(extra="allow")

    @field_validator("description", "tags", "featured", "is_available", mode="before")
    @classmethod
    def null_column_to_default(cls, value, info):
        """Nullable catalog columns arrive as None; read them as the field default."""
        if value is None:
            return cls.model_fields[info.field_name].get_default(call_default_factory=True)
        return value


class RecommendationResponse(CamelModel):
    """
    Result of a recommendation request. Always well-formed.

    success=False carries `error` (safe to show) and `error_code`.
    """
    success: bool
    recommendations: List[Product] = Field(
        default_factory=list,
        description="Ranked products, best first (max 5)"
    )
    summary: str = ""
    error: Optional[str] = None
    error_code: Optional[ErrorCode] = None
    intent: Optional[Intent] = None
    processing_time_ms: Optional[int] = None
