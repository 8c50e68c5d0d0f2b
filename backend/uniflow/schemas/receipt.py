"""Goods receipt and invoice schemas."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from uniflow.models.invoice import InvoiceStatus
from uniflow.models.receipt import GRNStatus
from uniflow.models.workflow import RejectionReasonCode


class GRNCreateIn(BaseModel):
    grn_number: str = Field(min_length=1, max_length=100)
    grn_date: date
    # {pr_line_id: units refused on receipt}
    rejected_quantities: dict[int, int] = {}
    remarks: Optional[str] = None


class ApproveDocumentIn(BaseModel):
    remarks: Optional[str] = None


class RejectDocumentIn(BaseModel):
    reason_code: RejectionReasonCode
    remarks: Optional[str] = None


class GRNLineResponse(BaseModel):
    id: int
    pr_id: int
    pr_line_id: int
    product_id: int
    size: str
    ordered_qty: int
    delivered_qty: int
    accepted_qty: int
    rejected_qty: int
    unit_price: Decimal

    model_config = {"from_attributes": True}


class GRNResponse(BaseModel):
    id: int
    po_id: int
    company_id: int
    supplier_id: int
    grn_number: str
    grn_date: date
    status: GRNStatus
    created_by: Optional[int] = None
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    rejection_remarks: Optional[str] = None
    pr_ids: list[int] = []
    lines: list[GRNLineResponse] = []

    model_config = {"from_attributes": True}


class InvoiceCreateIn(BaseModel):
    invoice_number: str = Field(min_length=1, max_length=100)
    invoice_date: date
    supplier_invoice_ref: str = Field(min_length=1, max_length=100)
    tax_amount: Decimal = Field(default=Decimal("0"), ge=0)


class InvoiceLineResponse(BaseModel):
    id: int
    grn_line_id: int
    product_id: int
    size: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal

    model_config = {"from_attributes": True}


class InvoiceResponse(BaseModel):
    id: int
    grn_id: int
    po_id: int
    supplier_id: int
    invoice_number: str
    invoice_date: date
    supplier_invoice_ref: str
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal
    status: InvoiceStatus
    approved_by: Optional[int] = None
    rejection_reason: Optional[str] = None
    rejection_remarks: Optional[str] = None
    lines: list[InvoiceLineResponse] = []

    model_config = {"from_attributes": True}
