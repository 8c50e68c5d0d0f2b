"""Purchase order API routes: consolidation, status and goods receipt."""

import logging

from fastapi import APIRouter, Request

from uniflow.core.config import settings
from uniflow.core.rate_limit import limiter
from uniflow.core.rbac import (
    CurrentUser,
    RequireCompanyAdmin,
    RequireSupplierOrCompanyAdmin,
    TokenData,
    ensure_company_scope,
    ensure_supplier_scope,
)
from uniflow.core.validators import PositiveIntId
from uniflow.db.session import DbSession
from uniflow.models.purchase_order import PurchaseOrder
from uniflow.schemas.purchase_order import (
    AbsorbIn,
    ConsolidateIn,
    ConsolidationResponse,
    POStatusIn,
    PurchaseOrderResponse,
    ShippingStatusResponse,
)
from uniflow.schemas.receipt import GRNCreateIn, GRNResponse
from uniflow.services.fulfilment_service import FulfilmentService
from uniflow.services.purchase_order_service import PurchaseOrderService
from uniflow.services.receipt_service import ReceiptService

logger = logging.getLogger(__name__)

router = APIRouter()


def _load_po(db, po_id: int, current_user: TokenData) -> PurchaseOrder:
    po = PurchaseOrderService(db).get(po_id)
    ensure_company_scope(current_user, po.company_id)
    ensure_supplier_scope(current_user, po.supplier_id)
    return po


def _po_to_response(db, po: PurchaseOrder) -> PurchaseOrderResponse:
    """Convert a PO to its response, with derived shipping status."""
    shipping = FulfilmentService(db).derive_po_shipping_status(po.id)
    return PurchaseOrderResponse(
        id=po.id,
        company_id=po.company_id,
        supplier_id=po.supplier_id,
        client_po_number=po.client_po_number,
        po_date=po.po_date,
        status=po.status,
        created_by=po.created_by,
        created_at=po.created_at,
        pr_ids=sorted(link.pr_id for link in po.request_links),
        shipping_status=shipping.value,
    )


@router.post("/", response_model=ConsolidationResponse, status_code=201)
@limiter.limit(settings.rate_limit_default)
def consolidate_requests(request: Request, db: DbSession, body: ConsolidateIn,
                         current_user: RequireCompanyAdmin):
    """Consolidate approved requests into one PO per supplier."""
    result = PurchaseOrderService(db).consolidate(
        company_id=current_user.company_id,
        pr_ids=body.pr_ids,
        client_po_number=body.client_po_number,
        po_date=body.po_date,
        created_by=current_user.user_id,
    )
    return ConsolidationResponse(
        purchase_orders=[_po_to_response(db, po) for po in result.purchase_orders]
    )


@router.post("/{po_id}/requests", response_model=PurchaseOrderResponse)
@limiter.limit(settings.rate_limit_default)
def absorb_requests(request: Request, db: DbSession, po_id: PositiveIntId, body: AbsorbIn,
                    current_user: RequireCompanyAdmin):
    """Attach further approved requests to an open PO."""
    _load_po(db, po_id, current_user)
    po = PurchaseOrderService(db).absorb_requests(po_id, body.pr_ids)
    return _po_to_response(db, po)


@router.post("/{po_id}/status", response_model=PurchaseOrderResponse)
@limiter.limit(settings.rate_limit_default)
def update_po_status(request: Request, db: DbSession, po_id: PositiveIntId, body: POStatusIn,
                     current_user: RequireSupplierOrCompanyAdmin):
    _load_po(db, po_id, current_user)
    po = PurchaseOrderService(db).update_status(po_id, body.status)
    return _po_to_response(db, po)


@router.get("/{po_id}", response_model=PurchaseOrderResponse)
def get_purchase_order(db: DbSession, po_id: PositiveIntId, current_user: CurrentUser):
    po = _load_po(db, po_id, current_user)
    return _po_to_response(db, po)


@router.get("/{po_id}/shipping-status", response_model=ShippingStatusResponse)
def get_shipping_status(db: DbSession, po_id: PositiveIntId, current_user: CurrentUser):
    """Shipping status derived from the PO's request lines."""
    _load_po(db, po_id, current_user)
    summary = FulfilmentService(db).shipping_summary(po_id)
    return ShippingStatusResponse(
        po_id=po_id,
        shipping_status=summary.status.value,
        total_lines=summary.total_lines,
        shipped_lines=summary.shipped_lines,
        delivered_lines=summary.delivered_lines,
    )


@router.post("/{po_id}/grn", response_model=GRNResponse, status_code=201)
@limiter.limit(settings.rate_limit_default)
def create_grn(request: Request, db: DbSession, po_id: PositiveIntId, body: GRNCreateIn,
               current_user: RequireCompanyAdmin):
    """Raise the goods receipt of a fully delivered PO."""
    _load_po(db, po_id, current_user)
    return ReceiptService(db).create_grn(
        po_id=po_id,
        grn_number=body.grn_number,
        grn_date=body.grn_date,
        created_by=current_user.user_id,
        rejected_quantities=body.rejected_quantities,
        remarks=body.remarks,
    )
