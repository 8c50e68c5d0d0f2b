"""Return requests and replacement orders.

An employee returns delivered units for another size. Approval raises a
replacement purchase request through the Request Splitter; the returned
units are restocked by the reconciler once that replacement is delivered.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from uniflow.db.session import unit_of_work
from uniflow.models.purchase_request import PRStatus, PurchaseRequest, PurchaseRequestLine
from uniflow.models.returns import ReturnRequest, ReturnStatus
from uniflow.models.workflow import RejectionReasonCode, WorkflowEntity
from uniflow.services.errors import InvalidStateError, NotFoundError, ValidationError
from uniflow.services.request_splitter import CartLine, ReplacementLink, RequestSplitter
from uniflow.services.workflow_audit import record_approval, record_rejection
from uniflow.services.workflow_events import WorkflowEventType, emit

logger = logging.getLogger(__name__)

# Returns still holding delivered units against the original line
OPEN_RETURN_STATUSES = (ReturnStatus.REQUESTED, ReturnStatus.APPROVED, ReturnStatus.COMPLETED)


class ReturnService:
    def __init__(self, db: Session, splitter: Optional[RequestSplitter] = None):
        self.db = db
        self.splitter = splitter or RequestSplitter(db)

    def get(self, return_id: int) -> ReturnRequest:
        ret = self.db.get(ReturnRequest, return_id)
        if ret is None:
            raise NotFoundError(f"Return request {return_id} not found", {"return_id": return_id})
        return ret

    def returnable_qty(self, line: PurchaseRequestLine) -> int:
        """Delivered units of a line not already claimed by another return."""
        claimed = (
            self.db.query(func.coalesce(func.sum(ReturnRequest.requested_qty), 0))
            .filter(
                ReturnRequest.original_line_id == line.id,
                ReturnRequest.status.in_(OPEN_RETURN_STATUSES),
            )
            .scalar()
        )
        return line.delivered_qty - int(claimed)

    def request_return(
        self,
        pr_id: int,
        line_id: int,
        requested_qty: int,
        replacement_size: str,
        requested_by: int,
        reason: Optional[str] = None,
    ) -> ReturnRequest:
        pr = self.db.get(PurchaseRequest, pr_id)
        if pr is None:
            raise NotFoundError(f"Purchase request {pr_id} not found", {"pr_id": pr_id})
        if pr.requester_id != requested_by:
            raise ValidationError(
                f"Only the requester can return items of purchase request {pr_id}",
                {"pr_id": pr_id, "requested_by": requested_by},
            )
        if pr.status != PRStatus.DELIVERED:
            raise InvalidStateError(
                f"Purchase request {pr_id} is not delivered (status {pr.status.value})",
                {"pr_id": pr_id, "status": pr.status.value},
            )
        line = next((line for line in pr.lines if line.id == line_id), None)
        if line is None:
            raise ValidationError(
                f"Line {line_id} is not on purchase request {pr_id}",
                {"pr_id": pr_id, "line_id": line_id},
            )
        replacement_size = (replacement_size or "").strip()
        if not replacement_size:
            raise ValidationError("Replacement size is required", {"field": "replacement_size"})
        if requested_qty is None or requested_qty <= 0:
            raise ValidationError("Return quantity must be positive", {"requested_qty": requested_qty})
        available = self.returnable_qty(line)
        if requested_qty > available:
            raise ValidationError(
                f"Only {available} unit(s) of line {line_id} can be returned",
                {"line_id": line_id, "requested_qty": requested_qty, "returnable_qty": available},
            )

        with unit_of_work(self.db, "return request"):
            ret = ReturnRequest(
                company_id=pr.company_id,
                requester_id=pr.requester_id,
                original_pr_id=pr.id,
                original_line_id=line.id,
                product_id=line.product_id,
                original_size=line.size,
                replacement_size=replacement_size,
                requested_qty=requested_qty,
                reason=reason,
                status=ReturnStatus.REQUESTED,
            )
            self.db.add(ret)

        self.db.refresh(ret)
        logger.info(
            f"Return {ret.id} requested for PR {pr_id} line {line_id}: "
            f"{requested_qty} x {line.size} -> {replacement_size}"
        )
        emit(
            WorkflowEventType.SUBMITTED,
            WorkflowEntity.RETURN_REQUEST,
            ret.id,
            company_id=ret.company_id,
            actor_id=requested_by,
            new_status=ret.status,
            pr_id=pr_id,
        )
        return ret

    def approve_return(
        self,
        return_id: int,
        approver_id: int,
        remarks: Optional[str] = None,
        approver_role: str = "company_admin",
    ) -> ReturnRequest:
        """Approve a return and raise its replacement request."""
        with unit_of_work(self.db, "return approval"):
            ret = self.get(return_id)
            if ret.status != ReturnStatus.REQUESTED:
                raise InvalidStateError(
                    f"Return {return_id} is {ret.status.value}, not requested",
                    {"return_id": return_id, "status": ret.status.value},
                )
            original_line = self.db.get(PurchaseRequestLine, ret.original_line_id)

            split = self.splitter.create_requests(
                ret.requester_id,
                ret.company_id,
                [CartLine(
                    product_id=ret.product_id,
                    size=ret.replacement_size,
                    quantity=ret.requested_qty,
                )],
                replacement=ReplacementLink(
                    return_request_id=ret.id,
                    original_pr_id=ret.original_pr_id,
                    unit_price=original_line.unit_price,
                ),
            )
            replacement = split.requests[0]

            ret.status = ReturnStatus.APPROVED
            ret.replacement_pr_id = replacement.id
            ret.decided_by = approver_id
            ret.decided_at = datetime.now(timezone.utc)
            record_approval(
                self.db,
                WorkflowEntity.RETURN_REQUEST,
                ret.id,
                actor_id=approver_id,
                actor_role=approver_role,
                company_id=ret.company_id,
                previous_status=ReturnStatus.REQUESTED,
                new_status=ReturnStatus.APPROVED,
                remarks=remarks,
            )

        logger.info(f"Return {return_id} approved; replacement request {ret.replacement_pr_id} raised")
        emit(
            WorkflowEventType.APPROVED,
            WorkflowEntity.RETURN_REQUEST,
            ret.id,
            company_id=ret.company_id,
            actor_id=approver_id,
            actor_role=approver_role,
            new_status=ret.status,
            replacement_pr_id=ret.replacement_pr_id,
        )
        return ret

    def reject_return(
        self,
        return_id: int,
        approver_id: int,
        reason_code: RejectionReasonCode = RejectionReasonCode.OTHER,
        remarks: Optional[str] = None,
        approver_role: str = "company_admin",
    ) -> ReturnRequest:
        reason_code = RejectionReasonCode(reason_code)
        with unit_of_work(self.db, "return rejection"):
            ret = self.get(return_id)
            if ret.status != ReturnStatus.REQUESTED:
                raise InvalidStateError(
                    f"Return {return_id} is {ret.status.value}, not requested",
                    {"return_id": return_id, "status": ret.status.value},
                )
            ret.status = ReturnStatus.REJECTED
            ret.decided_by = approver_id
            ret.decided_at = datetime.now(timezone.utc)
            ret.rejection_reason = reason_code.value
            ret.rejection_remarks = remarks
            record_rejection(
                self.db,
                WorkflowEntity.RETURN_REQUEST,
                ret.id,
                reason_code=reason_code,
                rejected_by=approver_id,
                rejected_by_role=approver_role,
                company_id=ret.company_id,
                previous_status=ReturnStatus.REQUESTED,
                new_status=ReturnStatus.REJECTED,
                remarks=remarks,
            )

        logger.info(f"Return {return_id} rejected by {approver_id}")
        emit(
            WorkflowEventType.REJECTED,
            WorkflowEntity.RETURN_REQUEST,
            ret.id,
            company_id=ret.company_id,
            actor_id=approver_id,
            actor_role=approver_role,
            new_status=ret.status,
            reason_code=reason_code.value,
        )
        return ret
