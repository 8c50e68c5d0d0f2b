"""Return request schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from uniflow.models.returns import ReturnStatus
from uniflow.models.workflow import RejectionReasonCode


class ReturnCreateIn(BaseModel):
    pr_id: int = Field(gt=0)
    line_id: int = Field(gt=0)
    requested_qty: int = Field(gt=0)
    replacement_size: str = Field(min_length=1, max_length=50)
    reason: Optional[str] = None


class ReturnRejectIn(BaseModel):
    reason_code: RejectionReasonCode = RejectionReasonCode.OTHER
    remarks: Optional[str] = None


class ReturnResponse(BaseModel):
    id: int
    original_pr_id: int
    original_line_id: int
    product_id: int
    original_size: str
    replacement_size: str
    requested_qty: int
    status: ReturnStatus
    replacement_pr_id: Optional[int] = None
    rejection_reason: Optional[str] = None
    rejection_remarks: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
