"""Workflow audit models: approval history and rejections."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, Enum as SQLEnum, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from uniflow.db.base import Base


class WorkflowEntity(str, Enum):
    """Entities that move through an approval workflow."""

    PURCHASE_REQUEST = "purchase_request"
    PURCHASE_ORDER = "purchase_order"
    GOODS_RECEIPT = "goods_receipt"
    INVOICE = "invoice"
    RETURN_REQUEST = "return_request"


class ApprovalAction(str, Enum):
    APPROVE = "approve"
    AUTO_APPROVE = "auto_approve"


class RejectionReasonCode(str, Enum):
    """Mandatory reason codes for rejecting a workflow entity."""

    INCOMPLETE_INFORMATION = "incomplete_information"
    INVALID_DATA = "invalid_data"
    DUPLICATE_REQUEST = "duplicate_request"
    POLICY_VIOLATION = "policy_violation"
    BUDGET_EXCEEDED = "budget_exceeded"
    UNAUTHORIZED_REQUEST = "unauthorized_request"
    ELIGIBILITY_EXHAUSTED = "eligibility_exhausted"
    INVALID_QUANTITY = "invalid_quantity"
    PRODUCT_UNAVAILABLE = "product_unavailable"
    DELIVERY_ADDRESS_INVALID = "delivery_address_invalid"
    EMPLOYEE_NOT_ELIGIBLE = "employee_not_eligible"
    QUANTITY_MISMATCH = "quantity_mismatch"
    QUALITY_ISSUE = "quality_issue"
    DAMAGED_GOODS = "damaged_goods"
    WRONG_ITEMS = "wrong_items"
    MISSING_DOCUMENTATION = "missing_documentation"
    PRICING_DISCREPANCY = "pricing_discrepancy"
    TAX_CALCULATION_ERROR = "tax_calculation_error"
    PO_MISMATCH = "po_mismatch"
    GRN_NOT_APPROVED = "grn_not_approved"
    OTHER = "other"


class ApprovalAudit(Base):
    """One approval applied to a workflow entity."""

    __tablename__ = "approval_audits"

    id: Mapped[int] = mapped_column(primary_key=True)
    ts: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )
    entity_type: Mapped[WorkflowEntity] = mapped_column(SQLEnum(WorkflowEntity), nullable=False)
    entity_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    company_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    action: Mapped[ApprovalAction] = mapped_column(SQLEnum(ApprovalAction), nullable=False)
    from_stage: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    to_stage: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    previous_status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    new_status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    actor_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    actor_role: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class WorkflowRejection(Base):
    """A rejection of a workflow entity, with its mandatory reason code."""

    __tablename__ = "workflow_rejections"

    id: Mapped[int] = mapped_column(primary_key=True)
    ts: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )
    entity_type: Mapped[WorkflowEntity] = mapped_column(SQLEnum(WorkflowEntity), nullable=False)
    entity_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    company_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    reason_code: Mapped[RejectionReasonCode] = mapped_column(SQLEnum(RejectionReasonCode), nullable=False)
    remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    stage: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    previous_status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    new_status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    rejected_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    rejected_by_role: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
