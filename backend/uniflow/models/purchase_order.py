"""Purchase order models."""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Optional

from sqlalchemy import Date, Enum as SQLEnum, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from uniflow.db.base import Base, TimestampMixin


class POStatus(str, Enum):
    """Status of a purchase order. Shipping progress is derived, never stored."""

    CREATED = "created"
    SENT_TO_SUPPLIER = "sent_to_supplier"
    ACKNOWLEDGED = "acknowledged"
    IN_FULFILMENT = "in_fulfilment"
    COMPLETED = "completed"


class PurchaseOrder(Base, TimestampMixin):
    """A supplier-facing consolidation of approved purchase requests."""

    __tablename__ = "purchase_orders"

    id: Mapped[int] = mapped_column(primary_key=True)
    company_id: Mapped[int] = mapped_column(
        ForeignKey("companies.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    supplier_id: Mapped[int] = mapped_column(
        ForeignKey("suppliers.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    client_po_number: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    po_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[POStatus] = mapped_column(
        SQLEnum(POStatus), default=POStatus.CREATED, nullable=False
    )
    created_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Relationships
    request_links: Mapped[list["PurchaseRequestPOLink"]] = relationship(
        "PurchaseRequestPOLink", back_populates="purchase_order", cascade="all, delete-orphan"
    )
    supplier: Mapped["Supplier"] = relationship("Supplier")


class PurchaseRequestPOLink(Base, TimestampMixin):
    """Join row between a purchase request and the PO that absorbed it."""

    __tablename__ = "purchase_request_po_links"
    __table_args__ = (
        UniqueConstraint("pr_id", "po_id", name="uq_pr_po_link"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    pr_id: Mapped[int] = mapped_column(
        ForeignKey("purchase_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    po_id: Mapped[int] = mapped_column(
        ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False, index=True
    )

    purchase_order: Mapped["PurchaseOrder"] = relationship("PurchaseOrder", back_populates="request_links")
    purchase_request: Mapped["PurchaseRequest"] = relationship("PurchaseRequest")


# Forward references
from uniflow.models.catalog import Supplier
from uniflow.models.purchase_request import PurchaseRequest
