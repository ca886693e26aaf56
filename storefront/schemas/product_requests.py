"""
Schemas for product requests logged by the assistant and their admin review.
"""

from datetime import datetime
from typing import List, Literal, Optional, Union

from pydantic import Field

from storefront.schemas.base import CamelModel

ProductRequestStatus = Literal["pending", "reviewed", "fulfilled"]


class ProductRequestResponse(CamelModel):
    """A product the catalog could not supply, queued for staff follow-up."""
    id: Union[str, int]
    product_name: str
    description: str = ""
    category: Optional[str] = None
    max_budget: Optional[float] = None
    specifications: List[str] = Field(default_factory=list)
    status: ProductRequestStatus = "pending"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    user_contact: Optional[str] = None


class ProductRequestListResponse(CamelModel):
    """Response for GET /admin/product-requests."""
    product_requests: List[ProductRequestResponse]
    count: int


class ProductRequestStatusUpdate(CamelModel):
    """Request body for PATCH /admin/product-requests/{id}."""
    status: ProductRequestStatus


class ProductRequestDeleteResponse(CamelModel):
    """Response for DELETE /admin/product-requests/{id}."""
    status: Literal["DELETED"] = "DELETED"
    product_request_id: str
    message: str
