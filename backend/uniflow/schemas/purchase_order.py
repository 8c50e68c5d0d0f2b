"""Purchase order schemas."""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field

from uniflow.models.purchase_order import POStatus


class ConsolidateIn(BaseModel):
    pr_ids: list[int] = Field(min_length=1)
    client_po_number: str = Field(min_length=1, max_length=100)
    po_date: date


class AbsorbIn(BaseModel):
    pr_ids: list[int] = Field(min_length=1)


class POStatusIn(BaseModel):
    status: POStatus


class ShippingStatusResponse(BaseModel):
    po_id: int
    shipping_status: str
    total_lines: int
    shipped_lines: int
    delivered_lines: int


class PurchaseOrderResponse(BaseModel):
    id: int
    company_id: int
    supplier_id: int
    client_po_number: str
    po_date: date
    status: POStatus
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    pr_ids: list[int] = []
    shipping_status: Optional[str] = None

    model_config = {"from_attributes": True}


class ConsolidationResponse(BaseModel):
    purchase_orders: list[PurchaseOrderResponse]
