"""Tests for multi-stage approval of sibling purchase request groups."""

from datetime import date

import pytest
from sqlalchemy.orm import Session

from uniflow.models import (
    ApprovalAudit,
    ApprovalStage,
    CompanyAdmin,
    PRStatus,
    RejectionReasonCode,
    WorkflowRejection,
)
from uniflow.services.approval_policy import ApprovalPolicy, ApproverRole, already_past, next_transition
from uniflow.services.approval_router import ApprovalRouter
from uniflow.services.errors import (
    InvalidStateError,
    InvariantViolation,
    UnauthorizedApprover,
    ValidationError,
)


def _stages(db: Session, requests):
    for pr in requests:
        db.refresh(pr)
    return {pr.approval_stage for pr in requests}


class TestPolicyTransitions:
    """Pure stage transitions."""

    def test_site_then_company(self):
        policy = ApprovalPolicy(True, True, True)
        step = next_transition(ApprovalStage.PENDING_SITE_APPROVAL, policy)
        assert step.to_stage == ApprovalStage.PENDING_COMPANY_APPROVAL
        assert step.status == PRStatus.AWAITING_APPROVAL

    def test_site_only(self):
        policy = ApprovalPolicy(True, True, False)
        step = next_transition(ApprovalStage.PENDING_SITE_APPROVAL, policy)
        assert step.to_stage == ApprovalStage.SITE_APPROVED
        assert step.status == PRStatus.AWAITING_FULFILMENT

    def test_company_approval_finishes_chain(self):
        step = next_transition(ApprovalStage.PENDING_COMPANY_APPROVAL, ApprovalPolicy(True, True, True))
        assert step.to_stage == ApprovalStage.COMPANY_APPROVED
        assert step.status == PRStatus.AWAITING_FULFILMENT

    def test_non_pending_stage_has_no_transition(self):
        with pytest.raises(ValueError):
            next_transition(ApprovalStage.COMPANY_APPROVED, ApprovalPolicy(True, True, True))

    def test_already_past(self):
        assert already_past(ApprovalStage.PENDING_COMPANY_APPROVAL, ApproverRole.SITE_ADMIN)
        assert not already_past(ApprovalStage.PENDING_COMPANY_APPROVAL, ApproverRole.COMPANY_ADMIN)
        assert already_past(ApprovalStage.PO_CREATED, ApproverRole.COMPANY_ADMIN)
        assert not already_past(ApprovalStage.REJECTED, ApproverRole.SITE_ADMIN)


class TestAdvance:
    """ApprovalRouter.advance."""

    def test_full_chain_moves_all_siblings(self, db_session: Session, world, workflow):
        split = workflow.checkout((world.shirt, "M", 2), (world.trousers, "32", 1))
        first, second = split.requests

        result = workflow.site_approve(first, pr_number="PR-100")
        assert result.changed
        assert sorted(result.pr_ids) == sorted(pr.id for pr in split.requests)
        assert _stages(db_session, split.requests) == {ApprovalStage.PENDING_COMPANY_APPROVAL}
        assert {pr.pr_number for pr in split.requests} == {"PR-100"}
        assert all(pr.site_approved_by == world.site_admin.id for pr in split.requests)

        result = workflow.company_approve(second)
        assert result.stage == ApprovalStage.COMPANY_APPROVED
        assert _stages(db_session, split.requests) == {ApprovalStage.COMPANY_APPROVED}
        assert {pr.status for pr in split.requests} == {PRStatus.AWAITING_FULFILMENT}

    def test_approval_by_parent_id(self, db_session: Session, world, workflow):
        split = workflow.checkout((world.shirt, "M", 2), (world.trousers, "32", 1))

        ApprovalRouter(db_session).advance(
            ApproverRole.SITE_ADMIN, world.site_admin.id,
            parent_request_id=split.parent_request_id,
            pr_number="PR-200", pr_date=date(2026, 3, 1),
        )
        assert _stages(db_session, split.requests) == {ApprovalStage.PENDING_COMPANY_APPROVAL}

    def test_audit_row_per_sibling(self, db_session: Session, world, workflow):
        split = workflow.checkout((world.shirt, "M", 2), (world.trousers, "32", 1))
        workflow.site_approve(split.requests[0])

        audits = db_session.query(ApprovalAudit).all()
        assert sorted(a.entity_id for a in audits) == sorted(pr.id for pr in split.requests)
        assert {a.to_stage for a in audits} == {"pending_company_approval"}
        assert {a.actor_role for a in audits} == {"site_admin"}

    def test_site_only_policy_ends_at_site_approved(self, db_session: Session, world, workflow):
        world.company.company_approval_required = False
        db_session.commit()
        pr = workflow.checkout((world.shirt, "M", 1)).requests[0]

        result = workflow.site_approve(pr)

        assert result.stage == ApprovalStage.SITE_APPROVED
        assert result.status == PRStatus.AWAITING_FULFILMENT

    def test_company_only_policy(self, db_session: Session, world, workflow):
        world.company.site_approval_required = False
        db_session.commit()
        pr = workflow.checkout((world.shirt, "M", 1)).requests[0]
        assert pr.approval_stage == ApprovalStage.PENDING_COMPANY_APPROVAL

        result = workflow.company_approve(pr)
        assert result.stage == ApprovalStage.COMPANY_APPROVED

    def test_pr_reference_required_at_site_stage(self, db_session: Session, world, workflow):
        pr = workflow.checkout((world.shirt, "M", 1)).requests[0]

        with pytest.raises(ValidationError):
            ApprovalRouter(db_session).advance(
                ApproverRole.SITE_ADMIN, world.site_admin.id, pr_id=pr.id, pr_date=date(2026, 3, 1),
            )
        with pytest.raises(ValidationError):
            ApprovalRouter(db_session).advance(
                ApproverRole.SITE_ADMIN, world.site_admin.id, pr_id=pr.id, pr_number="PR-1",
            )
        assert _stages(db_session, [pr]) == {ApprovalStage.PENDING_SITE_APPROVAL}

    def test_pr_number_unique_within_company(self, db_session: Session, world, workflow):
        first = workflow.checkout((world.shirt, "M", 1)).requests[0]
        second = workflow.checkout((world.shirt, "L", 1)).requests[0]
        workflow.site_approve(first, pr_number="PR-DUP")

        with pytest.raises(ValidationError) as exc:
            workflow.site_approve(second, pr_number="PR-DUP")
        assert exc.value.details["existing_pr_id"] == first.id

    def test_wrong_role_for_stage(self, db_session: Session, world, workflow):
        pr = workflow.checkout((world.shirt, "M", 1)).requests[0]

        with pytest.raises(UnauthorizedApprover) as exc:
            workflow.company_approve(pr)
        assert exc.value.status_code == 403

    def test_site_admin_of_other_location(self, db_session: Session, world, workflow):
        pr = workflow.checkout((world.shirt, "M", 1)).requests[0]

        with pytest.raises(UnauthorizedApprover):
            workflow.site_approve(pr, approver=world.depot_admin)

    def test_company_admin_without_privilege(self, db_session: Session, world, workflow):
        db_session.query(CompanyAdmin).update({"can_approve_orders": False})
        db_session.commit()
        pr = workflow.checkout((world.shirt, "M", 1)).requests[0]
        workflow.site_approve(pr)

        with pytest.raises(UnauthorizedApprover):
            workflow.company_approve(pr)

    def test_reapproval_is_noop(self, db_session: Session, world, workflow):
        pr = workflow.checkout((world.shirt, "M", 1)).requests[0]
        workflow.site_approve(pr, pr_number="PR-1")
        audits_before = db_session.query(ApprovalAudit).count()

        result = workflow.site_approve(pr, pr_number="PR-OTHER")

        assert not result.changed
        assert result.stage == ApprovalStage.PENDING_COMPANY_APPROVAL
        db_session.refresh(pr)
        assert pr.pr_number == "PR-1"
        assert db_session.query(ApprovalAudit).count() == audits_before

    def test_reapproval_by_outsider_is_unauthorized(self, db_session: Session, world, workflow):
        pr = workflow.checkout((world.shirt, "M", 1)).requests[0]
        workflow.site_approve(pr, pr_number="PR-1")

        with pytest.raises(UnauthorizedApprover):
            workflow.site_approve(pr, approver=world.outsider, pr_number="PR-X")
        with pytest.raises(UnauthorizedApprover):
            workflow.site_approve(pr, approver=world.depot_admin, pr_number="PR-X")
        db_session.refresh(pr)
        assert pr.pr_number == "PR-1"

    def test_rejecting_rejected_group_by_outsider_is_unauthorized(self, db_session: Session, world, workflow):
        pr = workflow.checkout((world.shirt, "M", 1)).requests[0]
        router = ApprovalRouter(db_session)
        router.reject(ApproverRole.SITE_ADMIN, world.site_admin.id, RejectionReasonCode.BUDGET_EXCEEDED, pr_id=pr.id)

        with pytest.raises(UnauthorizedApprover):
            router.reject(
                ApproverRole.SITE_ADMIN, world.depot_admin.id, RejectionReasonCode.BUDGET_EXCEEDED, pr_id=pr.id,
            )

    def test_rejected_group_cannot_be_approved(self, db_session: Session, world, workflow):
        pr = workflow.checkout((world.shirt, "M", 1)).requests[0]
        ApprovalRouter(db_session).reject(
            ApproverRole.SITE_ADMIN, world.site_admin.id, RejectionReasonCode.BUDGET_EXCEEDED, pr_id=pr.id,
        )

        with pytest.raises(InvalidStateError):
            workflow.site_approve(pr)

    def test_mixed_stage_group_is_invariant_violation(self, db_session: Session, world, workflow):
        split = workflow.checkout((world.shirt, "M", 2), (world.trousers, "32", 1))
        split.requests[1].approval_stage = ApprovalStage.PENDING_COMPANY_APPROVAL
        db_session.commit()

        with pytest.raises(InvariantViolation):
            workflow.site_approve(split.requests[0])

    def test_group_spanning_sites_needs_admin_of_every_site(self, db_session: Session, world, workflow):
        split = workflow.checkout((world.shirt, "M", 2), (world.trousers, "32", 1))
        split.requests[1].location_id = world.depot.id
        db_session.commit()

        with pytest.raises(UnauthorizedApprover):
            workflow.site_approve(split.requests[0])
        assert _stages(db_session, split.requests) == {ApprovalStage.PENDING_SITE_APPROVAL}

    def test_failure_midway_rolls_back_every_sibling(self, db_session: Session, world, workflow, monkeypatch):
        split = workflow.checkout((world.shirt, "M", 2), (world.trousers, "32", 1))
        original_apply = ApprovalRouter._apply
        calls = []

        def failing_apply(self, pr, *args, **kwargs):
            calls.append(pr.id)
            if len(calls) == 2:
                raise RuntimeError("connection lost")
            return original_apply(self, pr, *args, **kwargs)

        monkeypatch.setattr(ApprovalRouter, "_apply", failing_apply)

        with pytest.raises(RuntimeError):
            workflow.site_approve(split.requests[0])

        assert _stages(db_session, split.requests) == {ApprovalStage.PENDING_SITE_APPROVAL}
        assert {pr.pr_number for pr in split.requests} == {None}
        assert db_session.query(ApprovalAudit).count() == 0

    def test_next_required_approver(self, db_session: Session, world, workflow):
        pr = workflow.checkout((world.shirt, "M", 1)).requests[0]
        router = ApprovalRouter(db_session)

        assert router.next_required_approver(pr.id) == ApproverRole.SITE_ADMIN
        workflow.site_approve(pr)
        assert router.next_required_approver(pr.id) == ApproverRole.COMPANY_ADMIN
        workflow.company_approve(pr)
        assert router.next_required_approver(pr.id) is None


class TestReject:
    """ApprovalRouter.reject."""

    def test_rejects_every_sibling(self, db_session: Session, world, workflow):
        split = workflow.checkout((world.shirt, "M", 2), (world.trousers, "32", 1))

        result = ApprovalRouter(db_session).reject(
            ApproverRole.SITE_ADMIN, world.site_admin.id, RejectionReasonCode.POLICY_VIOLATION,
            pr_id=split.requests[0].id, remarks="Not in season",
        )

        assert result.changed
        for pr in split.requests:
            db_session.refresh(pr)
            assert pr.approval_stage == ApprovalStage.REJECTED
            assert pr.status == PRStatus.REJECTED
            assert pr.rejected_by == world.site_admin.id
            assert pr.rejection_reason == RejectionReasonCode.POLICY_VIOLATION.value
            assert pr.rejection_remarks == "Not in season"
        rows = db_session.query(WorkflowRejection).all()
        assert len(rows) == 2
        assert {row.reason_code for row in rows} == {RejectionReasonCode.POLICY_VIOLATION}

    def test_reason_code_required(self, db_session: Session, world, workflow):
        pr = workflow.checkout((world.shirt, "M", 1)).requests[0]

        with pytest.raises(ValidationError):
            ApprovalRouter(db_session).reject(ApproverRole.SITE_ADMIN, world.site_admin.id, None, pr_id=pr.id)

    def test_repeat_rejection_is_noop(self, db_session: Session, world, workflow):
        pr = workflow.checkout((world.shirt, "M", 1)).requests[0]
        router = ApprovalRouter(db_session)
        router.reject(ApproverRole.SITE_ADMIN, world.site_admin.id, RejectionReasonCode.OTHER, pr_id=pr.id)

        result = router.reject(ApproverRole.SITE_ADMIN, world.site_admin.id, RejectionReasonCode.OTHER, pr_id=pr.id)

        assert not result.changed
        assert db_session.query(WorkflowRejection).count() == 1

    def test_approved_request_cannot_be_rejected(self, db_session: Session, world, workflow):
        pr = workflow.checkout((world.shirt, "M", 1)).requests[0]
        workflow.approve(pr)

        with pytest.raises(InvalidStateError):
            ApprovalRouter(db_session).reject(
                ApproverRole.COMPANY_ADMIN, world.company_admin.id, RejectionReasonCode.OTHER, pr_id=pr.id,
            )

    def test_company_admin_rejects_at_company_stage(self, db_session: Session, world, workflow):
        pr = workflow.checkout((world.shirt, "M", 1)).requests[0]
        workflow.site_approve(pr)

        result = ApprovalRouter(db_session).reject(
            ApproverRole.COMPANY_ADMIN, world.company_admin.id, RejectionReasonCode.BUDGET_EXCEEDED, pr_id=pr.id,
        )
        assert result.stage == ApprovalStage.REJECTED
        row = db_session.query(WorkflowRejection).one()
        assert row.stage == "pending_company_approval"
