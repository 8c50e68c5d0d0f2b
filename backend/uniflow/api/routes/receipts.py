"""Goods receipt and invoice routes."""

from fastapi import APIRouter, Request

from uniflow.core.config import settings
from uniflow.core.rate_limit import limiter
from uniflow.core.rbac import (
    RequireCompanyAdmin,
    RequireSupplierOrCompanyAdmin,
    UserRole,
    ensure_company_scope,
    ensure_supplier_scope,
)
from uniflow.core.validators import PositiveIntId
from uniflow.db.session import DbSession
from uniflow.schemas.receipt import (
    ApproveDocumentIn,
    GRNResponse,
    InvoiceCreateIn,
    InvoiceResponse,
    RejectDocumentIn,
)
from uniflow.services.receipt_service import ReceiptService

router = APIRouter()


@router.post("/grns/{grn_id}/approve", response_model=GRNResponse)
@limiter.limit(settings.rate_limit_default)
def approve_grn(request: Request, db: DbSession, grn_id: PositiveIntId, body: ApproveDocumentIn,
                current_user: RequireCompanyAdmin):
    """Approve a GRN; completes its purchase order."""
    service = ReceiptService(db)
    ensure_company_scope(current_user, service.get_grn(grn_id).company_id)
    return service.approve_grn(grn_id, approver_id=current_user.user_id, remarks=body.remarks)


@router.post("/grns/{grn_id}/reject", response_model=GRNResponse)
@limiter.limit(settings.rate_limit_default)
def reject_grn(request: Request, db: DbSession, grn_id: PositiveIntId, body: RejectDocumentIn,
               current_user: RequireCompanyAdmin):
    """Reject a raised GRN; the PO stays open for a corrected one."""
    service = ReceiptService(db)
    ensure_company_scope(current_user, service.get_grn(grn_id).company_id)
    return service.reject_grn(
        grn_id, approver_id=current_user.user_id, reason_code=body.reason_code, remarks=body.remarks,
    )


@router.post("/grns/{grn_id}/invoice", response_model=InvoiceResponse, status_code=201)
@limiter.limit(settings.rate_limit_default)
def create_invoice(request: Request, db: DbSession, grn_id: PositiveIntId, body: InvoiceCreateIn,
                   current_user: RequireSupplierOrCompanyAdmin):
    """Raise the invoice of an approved GRN."""
    service = ReceiptService(db)
    grn = service.get_grn(grn_id)
    ensure_company_scope(current_user, grn.company_id)
    ensure_supplier_scope(current_user, grn.supplier_id)
    return service.create_invoice(
        grn_id=grn_id,
        invoice_number=body.invoice_number,
        invoice_date=body.invoice_date,
        supplier_invoice_ref=body.supplier_invoice_ref,
        tax_amount=body.tax_amount,
        raised_by=current_user.user_id,
        supplier_id=current_user.supplier_id if current_user.role == UserRole.SUPPLIER else None,
    )


@router.post("/invoices/{invoice_id}/approve", response_model=InvoiceResponse)
@limiter.limit(settings.rate_limit_default)
def approve_invoice(request: Request, db: DbSession, invoice_id: PositiveIntId, body: ApproveDocumentIn,
                    current_user: RequireCompanyAdmin):
    service = ReceiptService(db)
    ensure_company_scope(current_user, service.get_invoice(invoice_id).company_id)
    return service.approve_invoice(invoice_id, approver_id=current_user.user_id, remarks=body.remarks)


@router.post("/invoices/{invoice_id}/reject", response_model=InvoiceResponse)
@limiter.limit(settings.rate_limit_default)
def reject_invoice(request: Request, db: DbSession, invoice_id: PositiveIntId, body: RejectDocumentIn,
                   current_user: RequireCompanyAdmin):
    service = ReceiptService(db)
    ensure_company_scope(current_user, service.get_invoice(invoice_id).company_id)
    return service.reject_invoice(
        invoice_id, approver_id=current_user.user_id, reason_code=body.reason_code, remarks=body.remarks,
    )
