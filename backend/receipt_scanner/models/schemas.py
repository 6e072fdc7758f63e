"""Pydantic schemas for request and response models.

Pydantic models are used for validating and serialising data that
crosses the boundary of the API or moves between the extraction
backends and the persistence layer.  ``ReceiptDetails`` is the
transient result every extraction backend produces; ``ReceiptRead`` is
the public shape of a stored receipt.

Schemas are intentionally separate from the ORM models so that the
shape exposed through the API can differ from what is stored.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .enums import HealthStatus


# ---------------------------------------------------------------------------
# Domain schemas produced by the extraction chain


class ReceiptItem(BaseModel):
    """Individual line item on a receipt."""

    item_name: str
    item_cost: float


class ReceiptDetails(BaseModel):
    """Structured receipt details produced by an extraction backend.

    Values are not range-checked here: the upload pipeline validates a
    result against the persistence rules before anything is stored, and
    rejects it (deleting the uploaded image) when they do not hold.
    """

    date: str
    currency: str
    vendor_name: str
    receipt_items: List[ReceiptItem] = Field(default_factory=list)
    tax: float
    total: float


class ImageUpload(BaseModel):
    """Raw upload handed from the HTTP layer to the receipt service."""

    filename: str
    content_type: Optional[str] = None
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


# ---------------------------------------------------------------------------
# API request/response schemas


class ReceiptRead(BaseModel):
    id: str
    date: str
    currency: str
    vendor_name: str
    receipt_items: List[ReceiptItem]
    tax: float
    total: float
    image_url: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class HealthCheckResponse(BaseModel):
    status: HealthStatus
    timestamp: datetime
    service: str = "receipt-service"
