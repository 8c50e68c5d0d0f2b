"""Dispatch and delivery schemas."""

from __future__ import annotations

from datetime import date
from typing import Any, Optional

from pydantic import BaseModel, Field

from uniflow.models.purchase_request import TransportMode
from uniflow.schemas.purchase_request import PurchaseRequestResponse


class LineQuantityIn(BaseModel):
    line_id: int = Field(gt=0)
    # Cumulative quantity for the line, not an increment
    quantity: int = Field(ge=0)


class DispatchIn(BaseModel):
    lines: list[LineQuantityIn] = Field(min_length=1)
    dispatched_date: Optional[date] = None
    shipper_name: Optional[str] = None
    carrier_name: Optional[str] = None
    transport_mode: Optional[TransportMode] = None
    tracking_number: Optional[str] = None
    shipment_reference: Optional[str] = None
    expected_delivery_date: Optional[date] = None
    logistics_payload: Optional[dict[str, Any]] = None


class DeliveryIn(BaseModel):
    lines: list[LineQuantityIn] = Field(min_length=1)
    delivered_date: Optional[date] = None
    received_by: Optional[str] = None
    remarks: Optional[str] = None


class StockChangeResponse(BaseModel):
    product_id: int
    size: str
    previous_qty: int
    new_qty: int
    low_stock: bool


class FulfilmentResponse(BaseModel):
    changed: bool
    request: PurchaseRequestResponse
    stock_changes: list[StockChangeResponse] = []
    warnings: list[dict[str, Any]] = []
    restocked_return_id: Optional[int] = None
