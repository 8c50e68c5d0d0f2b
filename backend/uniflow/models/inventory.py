"""Supplier inventory models: per-size stock counters and their ledger."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from uniflow.db.base import Base, TimestampMixin, VersionMixin


class MovementReason(str, Enum):
    """Reasons for inventory movements."""

    DISPATCH = "dispatch"  # Supplier dispatched a purchase request
    RETURN_RESTOCK = "return_restock"  # Returned unit restocked on replacement delivery
    ADJUSTMENT = "adjustment"  # Manual adjustment


class SupplierInventory(Base, TimestampMixin, VersionMixin):
    """Stock per size of one product held by one supplier.

    ``total_stock`` is the sum of ``size_inventory`` and is recomputed on
    every mutation.
    """

    __tablename__ = "supplier_inventory"
    __table_args__ = (
        UniqueConstraint("supplier_id", "product_id", name="uq_inventory_supplier_product"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    supplier_id: Mapped[int] = mapped_column(
        ForeignKey("suppliers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id: Mapped[int] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    size_inventory: Mapped[dict[str, int]] = mapped_column(JSON, default=dict, nullable=False)
    low_stock_thresholds: Mapped[dict[str, int]] = mapped_column(JSON, default=dict, nullable=False)
    total_stock: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)


class InventoryMovement(Base):
    """Ledger of all supplier inventory changes."""

    __tablename__ = "inventory_movements"

    id: Mapped[int] = mapped_column(primary_key=True)
    ts: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )
    inventory_id: Mapped[int] = mapped_column(
        ForeignKey("supplier_inventory.id", ondelete="CASCADE"), nullable=False, index=True
    )
    supplier_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    product_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    size: Mapped[str] = mapped_column(String(50), nullable=False)
    previous_qty: Mapped[int] = mapped_column(Integer, nullable=False)
    new_qty: Mapped[int] = mapped_column(Integer, nullable=False)
    qty_delta: Mapped[int] = mapped_column(Integer, nullable=False)
    # Requested decrement that could not be covered by stock
    shortfall: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    reason: Mapped[str] = mapped_column(String(50), nullable=False)
    ref_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)  # purchase_request, return_request
    ref_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
