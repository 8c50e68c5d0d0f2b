"""Dispatch/Delivery Reconciler.

Suppliers report cumulative dispatched and delivered quantities per request
line. The reconciler:

1. Checks the request's stage/status and the reporting supplier
2. Checks every supplied quantity (0 <= delivered <= dispatched <= ordered,
   never lower than what was already reported)
3. Only then writes line quantities, request status and shipment details
4. Decrements supplier stock by the newly dispatched units
   (floored at zero; shortfalls come back as warnings, never errors)
5. On delivery of a replacement request, restocks the returned size once
   and completes the return

PO shipping status is derived from the linked request lines on every read
and never stored.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Iterable, Optional

from sqlalchemy.orm import Session

from uniflow.db.session import unit_of_work
from uniflow.models.purchase_order import PurchaseRequestPOLink
from uniflow.models.purchase_request import (
    ApprovalStage,
    PRStatus,
    PurchaseRequest,
    PurchaseRequestLine,
    RequestType,
    TransportMode,
)
from uniflow.models.returns import ReturnRequest, ReturnStatus
from uniflow.models.workflow import WorkflowEntity
from uniflow.services.errors import (
    InsufficientInventory,
    InvalidStateError,
    NotFoundError,
    SupplierMismatch,
    ValidationError,
)
from uniflow.services.inventory_ledger import InventoryLedger, StockChange
from uniflow.services.purchase_order_service import PurchaseOrderService
from uniflow.services.workflow_events import WorkflowEventType, emit

logger = logging.getLogger(__name__)


class POShippingStatus(str, Enum):
    AWAITING_SHIPMENT = "awaiting_shipment"
    PARTIALLY_SHIPPED = "partially_shipped"
    FULLY_SHIPPED = "fully_shipped"
    FULLY_DELIVERED = "fully_delivered"


@dataclass(frozen=True)
class ShippingSummary:
    total_lines: int
    shipped_lines: int
    delivered_lines: int
    dispatched_any: bool

    @property
    def status(self) -> POShippingStatus:
        if self.total_lines and self.delivered_lines == self.total_lines:
            return POShippingStatus.FULLY_DELIVERED
        if self.total_lines and self.shipped_lines == self.total_lines:
            return POShippingStatus.FULLY_SHIPPED
        if self.dispatched_any:
            return POShippingStatus.PARTIALLY_SHIPPED
        return POShippingStatus.AWAITING_SHIPMENT


def summarize_lines(lines: Iterable[PurchaseRequestLine]) -> ShippingSummary:
    """Classify request lines as shipped/delivered. Pure."""
    total = shipped = delivered = 0
    dispatched_any = False
    for line in lines:
        total += 1
        if line.is_shipped:
            shipped += 1
        if line.is_delivered:
            delivered += 1
        if line.dispatched_qty > 0:
            dispatched_any = True
    return ShippingSummary(total, shipped, delivered, dispatched_any)


@dataclass
class LineQuantity:
    """Cumulative quantity reported for one request line."""

    line_id: int
    quantity: int


@dataclass
class DispatchMeta:
    dispatched_date: Optional[date] = None
    shipper_name: Optional[str] = None
    carrier_name: Optional[str] = None
    transport_mode: Optional[TransportMode] = None
    tracking_number: Optional[str] = None
    shipment_reference: Optional[str] = None
    expected_delivery_date: Optional[date] = None
    # Opaque carrier/logistics provider data, stored verbatim
    logistics_payload: Optional[dict[str, Any]] = None


@dataclass
class DeliveryMeta:
    delivered_date: Optional[date] = None
    received_by: Optional[str] = None
    remarks: Optional[str] = None


@dataclass
class FulfilmentResult:
    pr: PurchaseRequest
    changed: bool
    stock_changes: list[StockChange] = field(default_factory=list)
    warnings: list[InsufficientInventory] = field(default_factory=list)
    restocked_return_id: Optional[int] = None

    @property
    def low_stock(self) -> list[StockChange]:
        return [change for change in self.stock_changes if change.low_stock]


class FulfilmentService:
    """Records dispatch and delivery against purchase requests."""

    DISPATCHABLE_STATUSES = {PRStatus.AWAITING_FULFILMENT, PRStatus.DISPATCHED}

    def __init__(self, db: Session, ledger: Optional[InventoryLedger] = None):
        self.db = db
        self.ledger = ledger or InventoryLedger(db)
        self.po_service = PurchaseOrderService(db)

    def _get_request(self, pr_id: int) -> PurchaseRequest:
        pr = self.db.get(PurchaseRequest, pr_id)
        if pr is None:
            raise NotFoundError(f"Purchase request {pr_id} not found", {"pr_id": pr_id})
        return pr

    @staticmethod
    def _check_supplier(pr: PurchaseRequest, supplier_id: Optional[int]) -> None:
        if supplier_id is not None and supplier_id != pr.supplier_id:
            raise SupplierMismatch(
                f"Purchase request {pr.id} is assigned to supplier {pr.supplier_id}",
                {"pr_id": pr.id, "supplier_id": supplier_id},
            )

    @staticmethod
    def _match_lines(
        pr: PurchaseRequest, quantities: list[LineQuantity]
    ) -> list[tuple[PurchaseRequestLine, int]]:
        if not quantities:
            raise ValidationError("No line quantities supplied", {"pr_id": pr.id})

        lines = {line.id: line for line in pr.lines}
        matched = []
        seen = set()
        for item in quantities:
            line = lines.get(item.line_id)
            if line is None:
                raise ValidationError(
                    f"Line {item.line_id} is not on purchase request {pr.id}",
                    {"pr_id": pr.id, "line_id": item.line_id},
                )
            if item.line_id in seen:
                raise ValidationError(
                    f"Line {item.line_id} supplied more than once",
                    {"pr_id": pr.id, "line_id": item.line_id},
                )
            seen.add(item.line_id)
            matched.append((line, item.quantity))
        return matched

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def record_dispatch(
        self,
        pr_id: int,
        supplier_id: Optional[int],
        line_quantities: list[LineQuantity],
        meta: Optional[DispatchMeta] = None,
    ) -> FulfilmentResult:
        """Record cumulative dispatched quantities and decrement stock."""
        meta = meta or DispatchMeta()

        with unit_of_work(self.db, "dispatch"):
            pr = self._get_request(pr_id)
            self._check_supplier(pr, supplier_id)
            if pr.approval_stage != ApprovalStage.PO_CREATED:
                raise InvalidStateError(
                    f"Purchase request {pr_id} is not on a purchase order (stage {pr.approval_stage.value})",
                    {"pr_id": pr_id, "stage": pr.approval_stage.value},
                )
            if pr.status not in self.DISPATCHABLE_STATUSES:
                raise InvalidStateError(
                    f"Purchase request {pr_id} cannot be dispatched (status {pr.status.value})",
                    {"pr_id": pr_id, "status": pr.status.value},
                )

            matched = self._match_lines(pr, line_quantities)
            if not any(quantity > 0 for _, quantity in matched):
                raise ValidationError(
                    "At least one line must have a dispatched quantity greater than zero",
                    {"pr_id": pr_id},
                )
            deltas = []
            for line, quantity in matched:
                if quantity < 0 or quantity > line.ordered_qty:
                    raise ValidationError(
                        f"Line {line.id}: dispatched quantity {quantity} must be between 0 and "
                        f"ordered quantity {line.ordered_qty}",
                        {"line_id": line.id, "quantity": quantity, "ordered_qty": line.ordered_qty},
                    )
                if quantity < line.dispatched_qty:
                    raise ValidationError(
                        f"Line {line.id}: dispatched quantity cannot go down from "
                        f"{line.dispatched_qty} to {quantity}",
                        {"line_id": line.id, "quantity": quantity, "dispatched_qty": line.dispatched_qty},
                    )
                deltas.append((line, quantity - line.dispatched_qty))

            if pr.status == PRStatus.DISPATCHED and all(delta == 0 for _, delta in deltas):
                logger.info(f"Dispatch of request {pr_id} repeated with no new quantities")
                return FulfilmentResult(pr=pr, changed=False)

            # All checks passed; write quantities, then stock
            for line, delta in deltas:
                line.dispatched_qty += delta
            pr.status = PRStatus.DISPATCHED
            self._apply_dispatch_meta(pr, meta)

            result = FulfilmentResult(pr=pr, changed=True)
            for line, delta in deltas:
                if delta == 0:
                    continue
                change = self.ledger.decrement(
                    pr.supplier_id, line.product_id, line.size, delta,
                    ref_type="purchase_request", ref_id=pr.id,
                )
                if change is None:
                    continue
                result.stock_changes.append(change)
                if change.warning is not None:
                    result.warnings.append(change.warning)

            self.po_service.start_fulfilment(self.po_service.po_ids_for_request(pr.id))

        logger.info(
            f"Request {pr_id} dispatched by supplier {pr.supplier_id}: "
            f"{[(line.id, line.dispatched_qty) for line in pr.lines]}"
            + (f" with {len(result.warnings)} stock warning(s)" if result.warnings else "")
        )
        emit(
            WorkflowEventType.DISPATCHED,
            WorkflowEntity.PURCHASE_REQUEST,
            pr.id,
            company_id=pr.company_id,
            new_status=pr.status,
            supplier_id=pr.supplier_id,
            tracking_number=pr.tracking_number,
            shortfalls=len(result.warnings),
        )
        return result

    @staticmethod
    def _apply_dispatch_meta(pr: PurchaseRequest, meta: DispatchMeta) -> None:
        pr.dispatched_date = meta.dispatched_date or pr.dispatched_date or date.today()
        for attr in (
            "shipper_name", "carrier_name", "transport_mode", "tracking_number",
            "shipment_reference", "expected_delivery_date", "logistics_payload",
        ):
            value = getattr(meta, attr)
            if value is not None:
                setattr(pr, attr, value)

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def record_delivery(
        self,
        pr_id: int,
        supplier_id: Optional[int],
        line_quantities: list[LineQuantity],
        meta: Optional[DeliveryMeta] = None,
    ) -> FulfilmentResult:
        """Record cumulative delivered quantities.

        The request becomes delivered once every line is delivered in full;
        partial deliveries are tracked on the lines only.
        """
        meta = meta or DeliveryMeta()

        with unit_of_work(self.db, "delivery"):
            pr = self._get_request(pr_id)
            self._check_supplier(pr, supplier_id)
            matched = self._match_lines(pr, line_quantities)

            deltas = []
            for line, quantity in matched:
                if quantity < 0 or quantity > line.dispatched_qty:
                    raise ValidationError(
                        f"Line {line.id}: delivered quantity {quantity} must be between 0 and "
                        f"dispatched quantity {line.dispatched_qty}",
                        {"line_id": line.id, "quantity": quantity, "dispatched_qty": line.dispatched_qty},
                    )
                if quantity < line.delivered_qty:
                    raise ValidationError(
                        f"Line {line.id}: delivered quantity cannot go down from "
                        f"{line.delivered_qty} to {quantity}",
                        {"line_id": line.id, "quantity": quantity, "delivered_qty": line.delivered_qty},
                    )
                deltas.append((line, quantity - line.delivered_qty))

            unchanged = all(delta == 0 for _, delta in deltas)
            if pr.status == PRStatus.DELIVERED and unchanged:
                return FulfilmentResult(pr=pr, changed=False)
            if pr.status != PRStatus.DISPATCHED:
                raise InvalidStateError(
                    f"Purchase request {pr_id} is not dispatched (status {pr.status.value})",
                    {"pr_id": pr_id, "status": pr.status.value},
                )
            if unchanged:
                return FulfilmentResult(pr=pr, changed=False)

            for line, delta in deltas:
                line.delivered_qty += delta
            if meta.received_by is not None:
                pr.received_by = meta.received_by
            if meta.remarks is not None:
                pr.delivery_remarks = meta.remarks

            result = FulfilmentResult(pr=pr, changed=True)
            if all(line.is_delivered for line in pr.lines):
                pr.status = PRStatus.DELIVERED
                pr.delivered_date = meta.delivered_date or date.today()
                if pr.request_type == RequestType.REPLACEMENT:
                    self._complete_return(pr, result)

        logger.info(
            f"Request {pr_id} delivery recorded: "
            f"{[(line.id, line.delivered_qty) for line in pr.lines]} status={pr.status.value}"
        )
        emit(
            WorkflowEventType.DELIVERED,
            WorkflowEntity.PURCHASE_REQUEST,
            pr.id,
            company_id=pr.company_id,
            new_status=pr.status,
            supplier_id=pr.supplier_id,
            fully_delivered=pr.status == PRStatus.DELIVERED,
        )
        return result

    def _complete_return(self, pr: PurchaseRequest, result: FulfilmentResult) -> None:
        ret = (
            self.db.query(ReturnRequest)
            .filter(ReturnRequest.replacement_pr_id == pr.id)
            .with_for_update()
            .first()
        )
        if ret is None:
            logger.warning(f"Replacement request {pr.id} has no linked return; nothing to restock")
            return
        if ret.status == ReturnStatus.COMPLETED:
            return
        if ret.status != ReturnStatus.APPROVED:
            raise InvalidStateError(
                f"Return {ret.id} linked to replacement {pr.id} is {ret.status.value}",
                {"return_id": ret.id, "status": ret.status.value},
            )

        original = self._get_request(ret.original_pr_id)
        change = self.ledger.increment(
            original.supplier_id, ret.product_id, ret.original_size, ret.requested_qty,
            ref_type="return_request", ref_id=ret.id,
        )
        result.stock_changes.append(change)
        ret.status = ReturnStatus.COMPLETED
        ret.completed_at = datetime.now(timezone.utc)
        result.restocked_return_id = ret.id
        logger.info(
            f"Return {ret.id} completed: restocked {ret.requested_qty} x size {ret.original_size} "
            f"of product {ret.product_id}"
        )

    # ------------------------------------------------------------------
    # Derived PO shipping status
    # ------------------------------------------------------------------

    def po_lines(self, po_id: int) -> list[PurchaseRequestLine]:
        return (
            self.db.query(PurchaseRequestLine)
            .join(PurchaseRequestPOLink, PurchaseRequestPOLink.pr_id == PurchaseRequestLine.pr_id)
            .filter(PurchaseRequestPOLink.po_id == po_id)
            .order_by(PurchaseRequestLine.id)
            .all()
        )

    def shipping_summary(self, po_id: int) -> ShippingSummary:
        self.po_service.get(po_id)
        return summarize_lines(self.po_lines(po_id))

    def derive_po_shipping_status(self, po_id: int) -> POShippingStatus:
        """Shipping status of a PO, recomputed from its request lines on every call."""
        return self.shipping_summary(po_id).status
