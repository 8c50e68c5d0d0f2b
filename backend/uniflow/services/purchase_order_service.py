"""Purchase-Order Consolidator.

Groups approved purchase requests by supplier and creates one purchase
order per supplier, linking every request to its PO. A PO can later absorb
requests from further approval batches until it is received.

PO status is forward-only:
    created -> sent_to_supplier -> acknowledged -> in_fulfilment -> completed
Skipping ahead is allowed (a supplier may dispatch before acknowledging),
going back is not. ``completed`` is reached only through GRN approval.
Shipping progress is never stored on the PO; see
FulfilmentService.derive_po_shipping_status.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Optional, Set

from sqlalchemy.orm import Session

from uniflow.db.session import unit_of_work
from uniflow.models.company import Company
from uniflow.models.purchase_order import POStatus, PurchaseOrder, PurchaseRequestPOLink
from uniflow.models.purchase_request import ApprovalStage, PRStatus, PurchaseRequest
from uniflow.models.receipt import GoodsReceipt, GRNStatus
from uniflow.models.workflow import WorkflowEntity
from uniflow.services.approval_policy import CONSOLIDATABLE_STAGES
from uniflow.services.errors import (
    InvalidStateError,
    InvariantViolation,
    MultipleSuppliersInvariantViolation,
    NotFoundError,
    ValidationError,
)
from uniflow.services.supplier_resolver import (
    DatabaseSupplierResolver,
    ResolutionOutcome,
    SupplierResolver,
)
from uniflow.services.workflow_events import WorkflowEventType, emit

logger = logging.getLogger(__name__)


class POStateMachine:
    """Valid purchase order status transitions."""

    TERMINAL_STATES = {POStatus.COMPLETED}

    TRANSITIONS: Dict[POStatus, Set[POStatus]] = {
        POStatus.CREATED: {POStatus.SENT_TO_SUPPLIER, POStatus.ACKNOWLEDGED, POStatus.IN_FULFILMENT},
        POStatus.SENT_TO_SUPPLIER: {POStatus.ACKNOWLEDGED, POStatus.IN_FULFILMENT},
        POStatus.ACKNOWLEDGED: {POStatus.IN_FULFILMENT},
        POStatus.IN_FULFILMENT: {POStatus.COMPLETED},
    }

    @classmethod
    def can_transition(cls, from_status: POStatus, to_status: POStatus) -> bool:
        # Staying in the same state is a no-op
        if from_status == to_status:
            return True
        if from_status in cls.TERMINAL_STATES:
            return False
        return to_status in cls.TRANSITIONS.get(from_status, set())

    @classmethod
    def validate_transition(cls, from_status: POStatus, to_status: POStatus) -> None:
        if not cls.can_transition(from_status, to_status):
            raise InvalidStateError(
                f"Purchase order cannot move from {from_status.value} to {to_status.value}",
                {"from_status": from_status.value, "to_status": to_status.value},
            )


@dataclass
class ConsolidationResult:
    purchase_orders: list[PurchaseOrder] = field(default_factory=list)

    @property
    def po_ids(self) -> list[int]:
        return [po.id for po in self.purchase_orders]


class PurchaseOrderService:
    """Creates purchase orders from approved requests and advances their status."""

    def __init__(self, db: Session, resolver: Optional[SupplierResolver] = None):
        self.db = db
        self.resolver = resolver or DatabaseSupplierResolver(db)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, po_id: int) -> PurchaseOrder:
        po = self.db.get(PurchaseOrder, po_id)
        if po is None:
            raise NotFoundError(f"Purchase order {po_id} not found", {"po_id": po_id})
        return po

    def linked_requests(self, po_id: int) -> list[PurchaseRequest]:
        return (
            self.db.query(PurchaseRequest)
            .join(PurchaseRequestPOLink, PurchaseRequestPOLink.pr_id == PurchaseRequest.id)
            .filter(PurchaseRequestPOLink.po_id == po_id)
            .order_by(PurchaseRequest.id)
            .all()
        )

    def po_ids_for_request(self, pr_id: int) -> list[int]:
        rows = (
            self.db.query(PurchaseRequestPOLink.po_id)
            .filter(PurchaseRequestPOLink.pr_id == pr_id)
            .all()
        )
        return [row[0] for row in rows]

    # ------------------------------------------------------------------
    # Consolidation
    # ------------------------------------------------------------------

    def consolidate(
        self,
        company_id: int,
        pr_ids: list[int],
        client_po_number: str,
        po_date: date,
        created_by: Optional[int] = None,
    ) -> ConsolidationResult:
        """Create one PO per supplier from a batch of approved requests."""
        client_po_number = (client_po_number or "").strip()
        if not client_po_number:
            raise ValidationError("Client PO number is required", {"field": "client_po_number"})
        if po_date is None:
            raise ValidationError("PO date is required", {"field": "po_date"})
        if not pr_ids:
            raise ValidationError("At least one purchase request is required", {"field": "pr_ids"})
        if self.db.get(Company, company_id) is None:
            raise NotFoundError(f"Company {company_id} not found", {"company_id": company_id})

        result = ConsolidationResult()
        with unit_of_work(self.db, "PO consolidation"):
            requests = self._load_requests(pr_ids)
            for pr in requests:
                self._validate_request(pr, company_id)

            groups: dict[int, list[PurchaseRequest]] = {}
            for pr in requests:
                groups.setdefault(pr.supplier_id, []).append(pr)

            for supplier_id, supplier_requests in groups.items():
                po = PurchaseOrder(
                    company_id=company_id,
                    supplier_id=supplier_id,
                    client_po_number=client_po_number,
                    po_date=po_date,
                    status=POStatus.CREATED,
                    created_by=created_by,
                )
                self.db.add(po)
                self.db.flush()
                for pr in supplier_requests:
                    self._link(po, pr)
                result.purchase_orders.append(po)

        for po in result.purchase_orders:
            self.db.refresh(po)
        logger.info(
            f"Consolidated requests {sorted(set(pr_ids))} into POs {result.po_ids} "
            f"(client PO {client_po_number}, company {company_id})"
        )
        for po in result.purchase_orders:
            emit(
                WorkflowEventType.PO_CREATED,
                WorkflowEntity.PURCHASE_ORDER,
                po.id,
                company_id=company_id,
                actor_id=created_by,
                new_status=po.status,
                supplier_id=po.supplier_id,
                client_po_number=client_po_number,
                pr_ids=[link.pr_id for link in po.request_links],
            )
        return result

    def absorb_requests(self, po_id: int, pr_ids: list[int]) -> PurchaseOrder:
        """Link a later batch of approved requests into an existing PO."""
        if not pr_ids:
            raise ValidationError("At least one purchase request is required", {"field": "pr_ids"})

        with unit_of_work(self.db, "PO absorb"):
            po = self.get(po_id)
            if po.status == POStatus.COMPLETED:
                raise InvalidStateError(f"Purchase order {po_id} is completed", {"po_id": po_id})
            open_grn = (
                self.db.query(GoodsReceipt.id)
                .filter(GoodsReceipt.po_id == po_id, GoodsReceipt.status != GRNStatus.REJECTED)
                .first()
            )
            if open_grn is not None:
                raise InvalidStateError(
                    f"Purchase order {po_id} already has a goods receipt", {"po_id": po_id}
                )

            requests = self._load_requests(pr_ids)
            for pr in requests:
                self._validate_request(pr, po.company_id)
                if pr.supplier_id != po.supplier_id:
                    raise ValidationError(
                        f"Purchase request {pr.id} is for supplier {pr.supplier_id}, "
                        f"PO {po_id} is for supplier {po.supplier_id}",
                        {"pr_id": pr.id, "po_id": po_id},
                    )
            for pr in requests:
                self._link(po, pr)

        self.db.refresh(po)
        logger.info(f"PO {po_id} absorbed requests {sorted(set(pr_ids))}")
        return po

    def _load_requests(self, pr_ids: list[int]) -> list[PurchaseRequest]:
        unique_ids = list(dict.fromkeys(pr_ids))
        requests = (
            self.db.query(PurchaseRequest)
            .filter(PurchaseRequest.id.in_(unique_ids))
            .order_by(PurchaseRequest.id)
            .with_for_update()
            .all()
        )
        missing = set(unique_ids) - {pr.id for pr in requests}
        if missing:
            raise NotFoundError(
                f"Purchase requests not found: {sorted(missing)}", {"pr_ids": sorted(missing)}
            )
        return requests

    def _validate_request(self, pr: PurchaseRequest, company_id: int) -> None:
        if pr.company_id != company_id:
            raise ValidationError(
                f"Purchase request {pr.id} does not belong to company {company_id}",
                {"pr_id": pr.id, "company_id": company_id},
            )
        if pr.approval_stage == ApprovalStage.PO_CREATED or self.po_ids_for_request(pr.id):
            raise InvariantViolation(
                f"Purchase request {pr.id} is already on a purchase order",
                {"pr_id": pr.id, "po_ids": self.po_ids_for_request(pr.id)},
            )
        if pr.approval_stage not in CONSOLIDATABLE_STAGES or pr.status != PRStatus.AWAITING_FULFILMENT:
            raise InvalidStateError(
                f"Purchase request {pr.id} is not approved for ordering "
                f"(stage {pr.approval_stage.value}, status {pr.status.value})",
                {"pr_id": pr.id, "stage": pr.approval_stage.value, "status": pr.status.value},
            )

        for line in pr.lines:
            resolution = self.resolver.resolve(line.product_id, company_id)
            if resolution.outcome == ResolutionOutcome.MULTIPLE:
                raise MultipleSuppliersInvariantViolation(
                    f"Product {line.product_id} has more than one supplier for company {company_id}",
                    {"product_id": line.product_id, "supplier_ids": list(resolution.candidates)},
                )
            if resolution.outcome == ResolutionOutcome.NONE or resolution.supplier_id != pr.supplier_id:
                raise InvariantViolation(
                    f"Product {line.product_id} on request {pr.id} no longer resolves to "
                    f"supplier {pr.supplier_id}",
                    {"pr_id": pr.id, "product_id": line.product_id, "resolved": resolution.supplier_id},
                )

    def _link(self, po: PurchaseOrder, pr: PurchaseRequest) -> None:
        self.db.add(PurchaseRequestPOLink(pr_id=pr.id, po_id=po.id))
        pr.approval_stage = ApprovalStage.PO_CREATED
        pr.status = PRStatus.AWAITING_FULFILMENT

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def update_status(self, po_id: int, new_status: POStatus) -> PurchaseOrder:
        """Advance a PO's status manually (send, acknowledge, start fulfilment)."""
        new_status = POStatus(new_status)
        if new_status == POStatus.COMPLETED:
            raise InvalidStateError(
                "Purchase orders are completed by approving their goods receipt",
                {"po_id": po_id},
            )
        with unit_of_work(self.db, "PO status"):
            po = self.get(po_id)
            POStateMachine.validate_transition(po.status, new_status)
            previous = po.status
            po.status = new_status

        if previous != new_status:
            logger.info(f"PO {po_id} status {previous.value} -> {new_status.value}")
        return po

    def start_fulfilment(self, po_ids: list[int]) -> None:
        """Move not-yet-started POs to in_fulfilment. Caller commits."""
        for po_id in po_ids:
            po = self.get(po_id)
            if po.status != POStatus.IN_FULFILMENT and POStateMachine.can_transition(
                po.status, POStatus.IN_FULFILMENT
            ):
                logger.info(f"PO {po_id} status {po.status.value} -> in_fulfilment on first dispatch")
                po.status = POStatus.IN_FULFILMENT

    def complete(self, po: PurchaseOrder) -> None:
        """Mark a PO completed once its GRN is approved. Caller commits."""
        if po.status == POStatus.COMPLETED:
            return
        if po.status != POStatus.IN_FULFILMENT:
            # Goods can arrive before anyone marked the PO as in fulfilment
            po.status = POStatus.IN_FULFILMENT
        POStateMachine.validate_transition(po.status, POStatus.COMPLETED)
        po.status = POStatus.COMPLETED
        logger.info(f"PO {po.id} completed")
