"""Supplier dispatch and delivery reporting routes."""

import logging

from fastapi import APIRouter, Request

from uniflow.core.config import settings
from uniflow.core.rate_limit import limiter
from uniflow.core.rbac import RequireSupplier
from uniflow.core.validators import PositiveIntId
from uniflow.db.session import DbSession
from uniflow.schemas.fulfilment import (
    DeliveryIn,
    DispatchIn,
    FulfilmentResponse,
    StockChangeResponse,
)
from uniflow.schemas.purchase_request import PurchaseRequestResponse
from uniflow.services.fulfilment_service import (
    DeliveryMeta,
    DispatchMeta,
    FulfilmentResult,
    FulfilmentService,
    LineQuantity,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _fulfilment_response(result: FulfilmentResult) -> FulfilmentResponse:
    return FulfilmentResponse(
        changed=result.changed,
        request=PurchaseRequestResponse.model_validate(result.pr),
        stock_changes=[
            StockChangeResponse(
                product_id=change.product_id,
                size=change.size,
                previous_qty=change.previous_qty,
                new_qty=change.new_qty,
                low_stock=change.low_stock,
            )
            for change in result.stock_changes
        ],
        warnings=[warning.to_dict() for warning in result.warnings],
        restocked_return_id=result.restocked_return_id,
    )


@router.post("/{pr_id}/dispatch", response_model=FulfilmentResponse)
@limiter.limit(settings.rate_limit_default)
def record_dispatch(request: Request, db: DbSession, pr_id: PositiveIntId, body: DispatchIn,
                    current_user: RequireSupplier):
    """Report cumulative dispatched quantities for a request.

    Stock shortfalls do not fail the call; they come back in ``warnings``.
    """
    result = FulfilmentService(db).record_dispatch(
        pr_id=pr_id,
        supplier_id=current_user.supplier_id,
        line_quantities=[LineQuantity(line.line_id, line.quantity) for line in body.lines],
        meta=DispatchMeta(
            dispatched_date=body.dispatched_date,
            shipper_name=body.shipper_name,
            carrier_name=body.carrier_name,
            transport_mode=body.transport_mode,
            tracking_number=body.tracking_number,
            shipment_reference=body.shipment_reference,
            expected_delivery_date=body.expected_delivery_date,
            logistics_payload=body.logistics_payload,
        ),
    )
    return _fulfilment_response(result)


@router.post("/{pr_id}/delivery", response_model=FulfilmentResponse)
@limiter.limit(settings.rate_limit_default)
def record_delivery(request: Request, db: DbSession, pr_id: PositiveIntId, body: DeliveryIn,
                    current_user: RequireSupplier):
    result = FulfilmentService(db).record_delivery(
        pr_id=pr_id,
        supplier_id=current_user.supplier_id,
        line_quantities=[LineQuantity(line.line_id, line.quantity) for line in body.lines],
        meta=DeliveryMeta(
            delivered_date=body.delivered_date,
            received_by=body.received_by,
            remarks=body.remarks,
        ),
    )
    return _fulfilment_response(result)
