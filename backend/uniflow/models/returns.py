"""Return request model: size/item exchanges fulfilled by a replacement request."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Enum as SQLEnum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from uniflow.db.base import Base, TimestampMixin


class ReturnStatus(str, Enum):
    """Status of a return request."""

    REQUESTED = "requested"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"  # Replacement delivered and returned unit restocked


class ReturnRequest(Base, TimestampMixin):
    """An employee's request to exchange delivered units.

    Approval raises a replacement purchase request; the returned units are
    restocked under ``original_size`` only when that replacement is delivered.
    """

    __tablename__ = "return_requests"
    __table_args__ = (
        CheckConstraint("requested_qty > 0", name="ck_return_qty_positive"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    company_id: Mapped[int] = mapped_column(
        ForeignKey("companies.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    requester_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    original_pr_id: Mapped[int] = mapped_column(
        ForeignKey("purchase_requests.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    original_line_id: Mapped[int] = mapped_column(
        ForeignKey("purchase_request_lines.id", ondelete="RESTRICT"), nullable=False
    )
    product_id: Mapped[int] = mapped_column(
        ForeignKey("products.id", ondelete="RESTRICT"), nullable=False
    )
    original_size: Mapped[str] = mapped_column(String(50), nullable=False)
    replacement_size: Mapped[str] = mapped_column(String(50), nullable=False)
    requested_qty: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[ReturnStatus] = mapped_column(
        SQLEnum(ReturnStatus), default=ReturnStatus.REQUESTED, nullable=False, index=True
    )
    replacement_pr_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("purchase_requests.id", ondelete="SET NULL"), nullable=True, unique=True
    )
    decided_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    decided_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    rejection_remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
