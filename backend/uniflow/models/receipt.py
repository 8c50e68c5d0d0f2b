"""Goods receipt note (GRN) models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    CheckConstraint, Date, DateTime, Enum as SQLEnum, ForeignKey, Index, Integer, Numeric, String, Text,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from uniflow.db.base import Base, TimestampMixin


class GRNStatus(str, Enum):
    """Status of a goods receipt note."""

    RAISED = "raised"
    APPROVED = "approved"
    REJECTED = "rejected"


class GoodsReceipt(Base, TimestampMixin):
    """Confirmation that a purchase order's goods were fully received.

    At most one GRN that is not rejected exists per purchase order; a
    rejected GRN frees the PO for a corrected one.
    """

    __tablename__ = "goods_receipts"
    __table_args__ = (
        Index(
            "uq_goods_receipts_open_po",
            "po_id",
            unique=True,
            sqlite_where=text("status != 'REJECTED'"),
            postgresql_where=text("status != 'REJECTED'"),
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    po_id: Mapped[int] = mapped_column(
        ForeignKey("purchase_orders.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    company_id: Mapped[int] = mapped_column(
        ForeignKey("companies.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    supplier_id: Mapped[int] = mapped_column(
        ForeignKey("suppliers.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    grn_number: Mapped[str] = mapped_column(String(100), nullable=False)
    grn_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[GRNStatus] = mapped_column(
        SQLEnum(GRNStatus), default=GRNStatus.RAISED, nullable=False
    )
    created_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    approved_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    rejected_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    rejection_remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    lines: Mapped[list["GoodsReceiptLine"]] = relationship(
        "GoodsReceiptLine",
        back_populates="goods_receipt",
        cascade="all, delete-orphan",
        order_by="GoodsReceiptLine.id",
    )

    @property
    def pr_ids(self) -> list[int]:
        seen: list[int] = []
        for line in self.lines:
            if line.pr_id not in seen:
                seen.append(line.pr_id)
        return seen


class GoodsReceiptLine(Base):
    """Received quantities of one purchase request line."""

    __tablename__ = "goods_receipt_lines"
    __table_args__ = (
        CheckConstraint(
            "rejected_qty >= 0 AND rejected_qty <= delivered_qty",
            name="ck_grn_line_rejected_range",
        ),
        CheckConstraint(
            "accepted_qty + rejected_qty = delivered_qty",
            name="ck_grn_line_accepted_balance",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    grn_id: Mapped[int] = mapped_column(
        ForeignKey("goods_receipts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    pr_id: Mapped[int] = mapped_column(
        ForeignKey("purchase_requests.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    pr_line_id: Mapped[int] = mapped_column(
        ForeignKey("purchase_request_lines.id", ondelete="RESTRICT"), nullable=False
    )
    product_id: Mapped[int] = mapped_column(
        ForeignKey("products.id", ondelete="RESTRICT"), nullable=False
    )
    size: Mapped[str] = mapped_column(String(50), nullable=False)
    ordered_qty: Mapped[int] = mapped_column(Integer, nullable=False)
    delivered_qty: Mapped[int] = mapped_column(Integer, nullable=False)
    accepted_qty: Mapped[int] = mapped_column(Integer, nullable=False)
    rejected_qty: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    goods_receipt: Mapped["GoodsReceipt"] = relationship("GoodsReceipt", back_populates="lines")
