"""Purchase request schemas."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from uniflow.models.purchase_request import ApprovalStage, PRStatus, RequestType
from uniflow.models.workflow import RejectionReasonCode


class CartLineIn(BaseModel):
    product_id: int = Field(gt=0)
    size: str = Field(min_length=1, max_length=50)
    quantity: int = Field(gt=0)


class CreateRequestsIn(BaseModel):
    """Checkout cart. Requester and company come from the caller's token."""

    lines: list[CartLineIn] = Field(min_length=1)


class PurchaseRequestLineResponse(BaseModel):
    id: int
    product_id: int
    size: str
    ordered_qty: int
    dispatched_qty: int
    delivered_qty: int
    unit_price: Decimal

    model_config = {"from_attributes": True}


class PurchaseRequestResponse(BaseModel):
    id: int
    parent_request_id: Optional[str] = None
    requester_id: int
    company_id: int
    location_id: Optional[int] = None
    supplier_id: int
    status: PRStatus
    approval_stage: ApprovalStage
    request_type: RequestType
    replacement_source_id: Optional[int] = None
    pr_number: Optional[str] = None
    pr_date: Optional[date] = None
    rejection_reason: Optional[str] = None
    rejection_remarks: Optional[str] = None
    tracking_number: Optional[str] = None
    dispatched_date: Optional[date] = None
    delivered_date: Optional[date] = None
    created_at: Optional[datetime] = None
    lines: list[PurchaseRequestLineResponse] = []

    model_config = {"from_attributes": True}


class SplitResponse(BaseModel):
    parent_request_id: Optional[str] = None
    requests: list[PurchaseRequestResponse]


class ApproveIn(BaseModel):
    pr_number: Optional[str] = None
    pr_date: Optional[date] = None
    remarks: Optional[str] = None
    # Approve the whole sibling group by its parent id instead of the path id's group
    parent_request_id: Optional[str] = None


class RejectIn(BaseModel):
    reason_code: RejectionReasonCode
    remarks: Optional[str] = None
    parent_request_id: Optional[str] = None


class ApprovalResponse(BaseModel):
    changed: bool
    approval_stage: ApprovalStage
    status: PRStatus
    pr_ids: list[int]


class NextApproverResponse(BaseModel):
    pr_id: int
    approval_stage: ApprovalStage
    required_role: Optional[str] = None
