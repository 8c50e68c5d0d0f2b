"""Approval Router - moves sibling purchase requests through the approval chain.

A checkout spanning several suppliers yields sibling requests sharing a
parent id. Siblings are approved and rejected as one group:

1. Load the whole group (locked FOR UPDATE where the database supports it)
2. Check the group agrees on a single stage
3. Authorize the approver for the group's site or company, then for the stage
4. Validate every sibling
5. Write every sibling and its audit row, then commit once

Any failure rolls back the whole group, so siblings never end up in
different stages. An authorized approver re-approving a group that already
moved past their stage gets a no-op.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from uniflow.db.session import unit_of_work
from uniflow.models.company import Company
from uniflow.models.purchase_request import ApprovalStage, PRStatus, PurchaseRequest
from uniflow.models.workflow import RejectionReasonCode, WorkflowEntity
from uniflow.services.approval_policy import (
    PENDING_STAGES,
    ApprovalPolicy,
    ApproverRole,
    StageTransition,
    already_past,
    next_transition,
    required_role,
)
from uniflow.services.errors import (
    InvalidStateError,
    InvariantViolation,
    NotFoundError,
    UnauthorizedApprover,
    ValidationError,
)
from uniflow.services.supplier_resolver import ApproverAuthorizer, DatabaseApproverAuthorizer
from uniflow.services.workflow_audit import record_approval, record_rejection
from uniflow.services.workflow_events import WorkflowEventType, emit

logger = logging.getLogger(__name__)


@dataclass
class ApprovalResult:
    """Outcome of an approve/reject call on a request group."""

    changed: bool
    stage: ApprovalStage
    status: PRStatus
    requests: list[PurchaseRequest] = field(default_factory=list)

    @property
    def pr_ids(self) -> list[int]:
        return [pr.id for pr in self.requests]


class ApprovalRouter:
    """Executes approval-stage transitions across sibling request groups."""

    def __init__(self, db: Session, authorizer: Optional[ApproverAuthorizer] = None):
        self.db = db
        self.authorizer = authorizer or DatabaseApproverAuthorizer(db)

    # ------------------------------------------------------------------
    # Group resolution
    # ------------------------------------------------------------------

    def load_group(
        self,
        pr_id: Optional[int] = None,
        parent_request_id: Optional[str] = None,
        lock: bool = True,
    ) -> list[PurchaseRequest]:
        """All requests of the group containing *pr_id* or *parent_request_id*."""
        if pr_id is None and not parent_request_id:
            raise ValidationError("Either a request id or a parent request id is required")

        if pr_id is not None:
            pr = self.db.get(PurchaseRequest, pr_id)
            if pr is None:
                raise NotFoundError(f"Purchase request {pr_id} not found", {"pr_id": pr_id})
            if parent_request_id and pr.parent_request_id != parent_request_id:
                raise ValidationError(
                    f"Purchase request {pr_id} is not part of group {parent_request_id}",
                    {"pr_id": pr_id, "parent_request_id": parent_request_id},
                )
            parent_request_id = pr.parent_request_id
            if not parent_request_id:
                query = self.db.query(PurchaseRequest).filter(PurchaseRequest.id == pr_id)
                return (query.with_for_update() if lock else query).all()

        query = (
            self.db.query(PurchaseRequest)
            .filter(PurchaseRequest.parent_request_id == parent_request_id)
            .order_by(PurchaseRequest.id)
        )
        group = (query.with_for_update() if lock else query).all()
        if not group:
            raise NotFoundError(
                f"No purchase requests for parent {parent_request_id}",
                {"parent_request_id": parent_request_id},
            )
        return group

    def _group_stage(self, group: list[PurchaseRequest]) -> ApprovalStage:
        stages = {pr.approval_stage for pr in group}
        if len(stages) > 1:
            raise InvariantViolation(
                "Sibling requests are in different approval stages",
                {"stages": {pr.id: pr.approval_stage.value for pr in group}},
            )
        return stages.pop()

    def _policy_for(self, group: list[PurchaseRequest]) -> tuple[Company, ApprovalPolicy]:
        company_ids = {pr.company_id for pr in group}
        if len(company_ids) > 1:
            raise InvariantViolation("Sibling requests belong to different companies")
        company = self.db.get(Company, company_ids.pop())
        return company, ApprovalPolicy.from_company(company)

    def next_required_approver(self, pr_id: int) -> Optional[ApproverRole]:
        """Role whose action the request's group is waiting on, if any."""
        group = self.load_group(pr_id=pr_id, lock=False)
        return required_role(self._group_stage(group))

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------

    def _authorize_scope(
        self,
        group: list[PurchaseRequest],
        approver_role: ApproverRole,
        approver_id: int,
    ) -> None:
        """Check the approver administers every sibling's site, or the company."""
        if approver_role == ApproverRole.SITE_ADMIN:
            for pr in group:
                if not self.authorizer.can_approve_site(approver_id, pr.location_id):
                    raise UnauthorizedApprover(
                        f"Employee {approver_id} is not the site admin of location {pr.location_id}",
                        {"approver_id": approver_id, "location_id": pr.location_id, "pr_id": pr.id},
                    )
        else:
            company_id = group[0].company_id
            if not self.authorizer.can_approve_company(approver_id, company_id):
                raise UnauthorizedApprover(
                    f"Employee {approver_id} cannot approve orders for company {company_id}",
                    {"approver_id": approver_id, "company_id": company_id},
                )

    def _authorize_stage(self, stage: ApprovalStage, approver_role: ApproverRole) -> None:
        expected = required_role(stage)
        if expected != approver_role:
            raise UnauthorizedApprover(
                f"Stage {stage.value} requires {expected.value if expected else 'no'} approval, "
                f"not {approver_role.value}",
                {"stage": stage.value, "approver_role": approver_role.value},
            )

    # ------------------------------------------------------------------
    # Approval
    # ------------------------------------------------------------------

    def advance(
        self,
        approver_role: ApproverRole,
        approver_id: int,
        pr_id: Optional[int] = None,
        parent_request_id: Optional[str] = None,
        pr_number: Optional[str] = None,
        pr_date: Optional[date] = None,
        remarks: Optional[str] = None,
    ) -> ApprovalResult:
        """Approve the current stage for every sibling of the group.

        Site approval requires the client PR reference number and date.
        """
        approver_role = ApproverRole(approver_role)

        with unit_of_work(self.db, "approval"):
            group = self.load_group(pr_id, parent_request_id)
            stage = self._group_stage(group)
            self._authorize_scope(group, approver_role, approver_id)

            if already_past(stage, approver_role):
                logger.info(
                    f"Group {[pr.id for pr in group]} already past {approver_role.value} approval "
                    f"(stage {stage.value}); nothing to do"
                )
                return ApprovalResult(False, stage, group[0].status, group)
            if stage == ApprovalStage.REJECTED:
                raise InvalidStateError(
                    "Request group has been rejected",
                    {"pr_ids": [pr.id for pr in group]},
                )
            if stage not in PENDING_STAGES:
                raise InvalidStateError(
                    f"Request group is not awaiting approval (stage {stage.value})",
                    {"stage": stage.value, "pr_ids": [pr.id for pr in group]},
                )

            self._authorize_stage(stage, approver_role)
            company, policy = self._policy_for(group)
            transition = next_transition(stage, policy)

            if stage == ApprovalStage.PENDING_SITE_APPROVAL:
                pr_number = self._validate_pr_reference(group, company, pr_number, pr_date)

            now = datetime.now(timezone.utc)
            for pr in group:
                self._apply(pr, transition, approver_role, approver_id, pr_number, pr_date, now, remarks)

        logger.info(
            f"Group {[pr.id for pr in group]} advanced {transition.from_stage.value} -> "
            f"{transition.to_stage.value} by {approver_role.value} {approver_id}"
        )
        event_type = (
            WorkflowEventType.APPROVED_AT_STAGE
            if transition.to_stage in PENDING_STAGES
            else WorkflowEventType.APPROVED
        )
        for pr in group:
            emit(
                event_type,
                WorkflowEntity.PURCHASE_REQUEST,
                pr.id,
                company_id=pr.company_id,
                actor_id=approver_id,
                actor_role=approver_role,
                new_status=transition.status,
                stage=transition.to_stage,
                from_stage=transition.from_stage.value,
            )
        return ApprovalResult(True, transition.to_stage, transition.status, group)

    def _validate_pr_reference(
        self,
        group: list[PurchaseRequest],
        company: Company,
        pr_number: Optional[str],
        pr_date: Optional[date],
    ) -> str:
        pr_number = (pr_number or "").strip()
        if not pr_number:
            raise ValidationError("PR number is required for site approval", {"field": "pr_number"})
        if pr_date is None:
            raise ValidationError("PR date is required for site approval", {"field": "pr_date"})

        group_ids = [pr.id for pr in group]
        clash = (
            self.db.query(PurchaseRequest.id)
            .filter(
                PurchaseRequest.company_id == company.id,
                PurchaseRequest.pr_number == pr_number,
                PurchaseRequest.id.notin_(group_ids),
            )
            .first()
        )
        if clash is not None:
            raise ValidationError(
                f"PR number {pr_number} is already used in company {company.id}",
                {"field": "pr_number", "pr_number": pr_number, "existing_pr_id": clash[0]},
            )
        return pr_number

    def _apply(
        self,
        pr: PurchaseRequest,
        transition: StageTransition,
        approver_role: ApproverRole,
        approver_id: int,
        pr_number: Optional[str],
        pr_date: Optional[date],
        now: datetime,
        remarks: Optional[str],
    ) -> None:
        previous_status = pr.status
        pr.approval_stage = transition.to_stage
        pr.status = transition.status

        if approver_role == ApproverRole.SITE_ADMIN:
            pr.pr_number = pr_number
            pr.pr_date = pr_date
            pr.site_approved_by = approver_id
            pr.site_approved_at = now
        else:
            pr.company_approved_by = approver_id
            pr.company_approved_at = now

        record_approval(
            self.db,
            WorkflowEntity.PURCHASE_REQUEST,
            pr.id,
            actor_id=approver_id,
            actor_role=approver_role,
            company_id=pr.company_id,
            from_stage=transition.from_stage,
            to_stage=transition.to_stage,
            previous_status=previous_status,
            new_status=transition.status,
            remarks=remarks,
        )

    # ------------------------------------------------------------------
    # Rejection
    # ------------------------------------------------------------------

    def reject(
        self,
        approver_role: ApproverRole,
        approver_id: int,
        reason_code: Optional[RejectionReasonCode],
        pr_id: Optional[int] = None,
        parent_request_id: Optional[str] = None,
        remarks: Optional[str] = None,
    ) -> ApprovalResult:
        """Reject every sibling of a pending group with a mandatory reason code."""
        approver_role = ApproverRole(approver_role)
        if reason_code is None:
            raise ValidationError("A rejection reason code is required", {"field": "reason_code"})
        reason_code = RejectionReasonCode(reason_code)

        with unit_of_work(self.db, "rejection"):
            group = self.load_group(pr_id, parent_request_id)
            stage = self._group_stage(group)
            self._authorize_scope(group, approver_role, approver_id)

            if stage == ApprovalStage.REJECTED:
                return ApprovalResult(False, stage, PRStatus.REJECTED, group)
            if stage not in PENDING_STAGES:
                raise InvalidStateError(
                    f"Only pending requests can be rejected (stage {stage.value})",
                    {"stage": stage.value, "pr_ids": [pr.id for pr in group]},
                )

            self._authorize_stage(stage, approver_role)

            now = datetime.now(timezone.utc)
            for pr in group:
                previous_status = pr.status
                pr.approval_stage = ApprovalStage.REJECTED
                pr.status = PRStatus.REJECTED
                pr.rejected_by = approver_id
                pr.rejected_at = now
                pr.rejection_reason = reason_code.value
                pr.rejection_remarks = remarks
                record_rejection(
                    self.db,
                    WorkflowEntity.PURCHASE_REQUEST,
                    pr.id,
                    reason_code=reason_code,
                    rejected_by=approver_id,
                    rejected_by_role=approver_role,
                    company_id=pr.company_id,
                    stage=stage,
                    previous_status=previous_status,
                    new_status=PRStatus.REJECTED,
                    remarks=remarks,
                )

        logger.info(
            f"Group {[pr.id for pr in group]} rejected at {stage.value} by "
            f"{approver_role.value} {approver_id}: {reason_code.value}"
        )
        for pr in group:
            emit(
                WorkflowEventType.REJECTED,
                WorkflowEntity.PURCHASE_REQUEST,
                pr.id,
                company_id=pr.company_id,
                actor_id=approver_id,
                actor_role=approver_role,
                new_status=PRStatus.REJECTED,
                stage=stage,
                reason_code=reason_code.value,
            )
        return ApprovalResult(True, ApprovalStage.REJECTED, PRStatus.REJECTED, group)
