"""Supplier inventory schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class SupplierInventoryResponse(BaseModel):
    id: int
    supplier_id: int
    product_id: int
    size_inventory: dict[str, int]
    low_stock_thresholds: dict[str, int]
    total_stock: int
    version: int
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class LowStockResponse(BaseModel):
    product_id: int
    sizes: dict[str, int]
