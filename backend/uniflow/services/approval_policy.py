"""Approval routing policy.

Pure decision functions mapping a request's approval stage and its
company's policy flags to the initial stage, the next stage and the
approver role the request is waiting on. No database access happens here;
the policy is built once from the company record and passed in.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from uniflow.models.purchase_request import ApprovalStage, PRStatus


class ApproverRole(str, Enum):
    SITE_ADMIN = "site_admin"
    COMPANY_ADMIN = "company_admin"


@dataclass(frozen=True)
class ApprovalPolicy:
    """Company approval policy flags."""

    multi_stage_approval_enabled: bool = False
    site_approval_required: bool = True
    company_approval_required: bool = True

    @classmethod
    def from_company(cls, company) -> "ApprovalPolicy":
        return cls(
            multi_stage_approval_enabled=bool(company.multi_stage_approval_enabled),
            site_approval_required=bool(company.site_approval_required),
            company_approval_required=bool(company.company_approval_required),
        )


@dataclass(frozen=True)
class StageTransition:
    """Result of one approval step."""

    from_stage: ApprovalStage
    to_stage: ApprovalStage
    status: PRStatus


# Stages an approver can act on, and the role each one waits for
PENDING_STAGES = {
    ApprovalStage.PENDING_SITE_APPROVAL: ApproverRole.SITE_ADMIN,
    ApprovalStage.PENDING_COMPANY_APPROVAL: ApproverRole.COMPANY_ADMIN,
}

# Order of the approval chain, used to tell whether a group already moved past a stage
STAGE_ORDER = {
    ApprovalStage.PENDING_SITE_APPROVAL: 1,
    ApprovalStage.SITE_APPROVED: 2,
    ApprovalStage.PENDING_COMPANY_APPROVAL: 3,
    ApprovalStage.COMPANY_APPROVED: 4,
    ApprovalStage.PO_CREATED: 5,
}

# Stages the consolidator accepts when building purchase orders
CONSOLIDATABLE_STAGES = frozenset({
    ApprovalStage.COMPANY_APPROVED,
    ApprovalStage.SITE_APPROVED,
    ApprovalStage.NONE,
})


def initial_state(policy: ApprovalPolicy) -> tuple[ApprovalStage, PRStatus]:
    """Stage and status a new request starts in."""
    if not policy.multi_stage_approval_enabled:
        return ApprovalStage.NONE, PRStatus.AWAITING_FULFILMENT
    if policy.site_approval_required:
        return ApprovalStage.PENDING_SITE_APPROVAL, PRStatus.AWAITING_APPROVAL
    if policy.company_approval_required:
        return ApprovalStage.PENDING_COMPANY_APPROVAL, PRStatus.AWAITING_APPROVAL
    # Multi-stage enabled but no stage required: nothing to wait for
    return ApprovalStage.NONE, PRStatus.AWAITING_FULFILMENT


def required_role(stage: ApprovalStage) -> Optional[ApproverRole]:
    """Approver role a request in *stage* is waiting on, or None."""
    return PENDING_STAGES.get(stage)


def next_transition(stage: ApprovalStage, policy: ApprovalPolicy) -> StageTransition:
    """Transition applied when the approver of *stage* approves.

    Raises ValueError for stages that are not awaiting approval.
    """
    if stage == ApprovalStage.PENDING_SITE_APPROVAL:
        if policy.company_approval_required:
            return StageTransition(stage, ApprovalStage.PENDING_COMPANY_APPROVAL, PRStatus.AWAITING_APPROVAL)
        return StageTransition(stage, ApprovalStage.SITE_APPROVED, PRStatus.AWAITING_FULFILMENT)
    if stage == ApprovalStage.PENDING_COMPANY_APPROVAL:
        return StageTransition(stage, ApprovalStage.COMPANY_APPROVED, PRStatus.AWAITING_FULFILMENT)
    raise ValueError(f"Stage {stage.value} is not awaiting approval")


def already_past(stage: ApprovalStage, role: ApproverRole) -> bool:
    """True when a group in *stage* has already moved beyond *role*'s step."""
    position = STAGE_ORDER.get(stage)
    if position is None:
        return False
    if role == ApproverRole.SITE_ADMIN:
        return position > STAGE_ORDER[ApprovalStage.PENDING_SITE_APPROVAL]
    return position > STAGE_ORDER[ApprovalStage.PENDING_COMPANY_APPROVAL]
