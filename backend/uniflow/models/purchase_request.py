"""Purchase request models: one request per supplier per checkout."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from sqlalchemy import (
    JSON, CheckConstraint, Date, DateTime, Enum as SQLEnum, ForeignKey, Integer,
    Numeric, String, Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from uniflow.db.base import Base, TimestampMixin


class PRStatus(str, Enum):
    """Overall fulfilment status of a purchase request."""

    AWAITING_APPROVAL = "awaiting_approval"
    AWAITING_FULFILMENT = "awaiting_fulfilment"
    DISPATCHED = "dispatched"
    DELIVERED = "delivered"
    REJECTED = "rejected"


class ApprovalStage(str, Enum):
    """Position of a purchase request in the approval chain."""

    NONE = "none"  # Legacy direct-to-fulfilment path
    PENDING_SITE_APPROVAL = "pending_site_approval"
    SITE_APPROVED = "site_approved"
    PENDING_COMPANY_APPROVAL = "pending_company_approval"
    COMPANY_APPROVED = "company_approved"
    PO_CREATED = "po_created"
    REJECTED = "rejected"


class RequestType(str, Enum):
    """Kind of purchase request."""

    STANDARD = "standard"
    REPLACEMENT = "replacement"


class TransportMode(str, Enum):
    """Mode of transport recorded on dispatch."""

    ROAD = "road"
    AIR = "air"
    RAIL = "rail"
    COURIER = "courier"
    OTHER = "other"


class PurchaseRequest(Base, TimestampMixin):
    """A single-supplier procurement request.

    Requests split from one multi-supplier checkout share a
    ``parent_request_id`` and move through approval together.
    """

    __tablename__ = "purchase_requests"

    id: Mapped[int] = mapped_column(primary_key=True)
    parent_request_id: Mapped[Optional[str]] = mapped_column(String(32), nullable=True, index=True)
    requester_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    company_id: Mapped[int] = mapped_column(
        ForeignKey("companies.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    location_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("locations.id", ondelete="SET NULL"), nullable=True, index=True
    )
    supplier_id: Mapped[int] = mapped_column(
        ForeignKey("suppliers.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    status: Mapped[PRStatus] = mapped_column(
        SQLEnum(PRStatus), default=PRStatus.AWAITING_APPROVAL, nullable=False, index=True
    )
    approval_stage: Mapped[ApprovalStage] = mapped_column(
        SQLEnum(ApprovalStage), default=ApprovalStage.NONE, nullable=False, index=True
    )
    request_type: Mapped[RequestType] = mapped_column(
        SQLEnum(RequestType), default=RequestType.STANDARD, nullable=False
    )
    # Original request a replacement was raised against
    replacement_source_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("purchase_requests.id", ondelete="SET NULL"), nullable=True
    )

    # Client PR reference, captured at site approval
    pr_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    pr_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # Approval stamps
    site_approved_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    site_approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    company_approved_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    company_approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    rejected_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    rejection_remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Dispatch details
    shipper_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    carrier_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    transport_mode: Mapped[Optional[TransportMode]] = mapped_column(SQLEnum(TransportMode), nullable=True)
    tracking_number: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    shipment_reference: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    dispatched_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    expected_delivery_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    logistics_payload: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)

    # Delivery details
    delivered_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    received_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    delivery_remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Relationships
    lines: Mapped[list["PurchaseRequestLine"]] = relationship(
        "PurchaseRequestLine",
        back_populates="purchase_request",
        cascade="all, delete-orphan",
        order_by="PurchaseRequestLine.id",
    )
    requester: Mapped["Employee"] = relationship("Employee")
    supplier: Mapped["Supplier"] = relationship("Supplier")


class PurchaseRequestLine(Base):
    """A product/size line on a purchase request.

    Product, size and price are fixed at checkout; only the dispatched and
    delivered quantities change afterwards.
    """

    __tablename__ = "purchase_request_lines"
    __table_args__ = (
        CheckConstraint("ordered_qty > 0", name="ck_pr_line_ordered_positive"),
        CheckConstraint(
            "dispatched_qty >= 0 AND dispatched_qty <= ordered_qty",
            name="ck_pr_line_dispatched_range",
        ),
        CheckConstraint(
            "delivered_qty >= 0 AND delivered_qty <= dispatched_qty",
            name="ck_pr_line_delivered_range",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    pr_id: Mapped[int] = mapped_column(
        ForeignKey("purchase_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id: Mapped[int] = mapped_column(
        ForeignKey("products.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    size: Mapped[str] = mapped_column(String(50), nullable=False)
    ordered_qty: Mapped[int] = mapped_column(Integer, nullable=False)
    dispatched_qty: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    delivered_qty: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    purchase_request: Mapped["PurchaseRequest"] = relationship("PurchaseRequest", back_populates="lines")

    @property
    def is_shipped(self) -> bool:
        return self.dispatched_qty >= self.ordered_qty

    @property
    def is_delivered(self) -> bool:
        return self.delivered_qty >= self.ordered_qty


# Forward references
from uniflow.models.company import Employee
from uniflow.models.catalog import Supplier
