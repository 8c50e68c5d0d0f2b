"""Workflow audit trail.

Writes approval and rejection rows inside the caller's session so they
commit or roll back together with the transition they describe.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from uniflow.models.workflow import (
    ApprovalAction,
    ApprovalAudit,
    RejectionReasonCode,
    WorkflowEntity,
    WorkflowRejection,
)

logger = logging.getLogger("audit")


def _value(value) -> Optional[str]:
    if value is None:
        return None
    return getattr(value, "value", value)


def record_approval(
    db: Session,
    entity_type: WorkflowEntity,
    entity_id: int,
    actor_id: Optional[int],
    actor_role: Optional[str],
    company_id: Optional[int] = None,
    from_stage=None,
    to_stage=None,
    previous_status=None,
    new_status=None,
    remarks: Optional[str] = None,
    action: ApprovalAction = ApprovalAction.APPROVE,
) -> ApprovalAudit:
    """Add an approval audit row to the session.

    Args:
        db: Session of the enclosing unit of work.
        entity_type: Kind of entity approved.
        entity_id: Id of the approved entity.
        actor_id: Approving employee or user id.
        actor_role: Role the actor approved in.
        from_stage / to_stage: Approval stage before and after.
        previous_status / new_status: Entity status before and after.
        remarks: Free-text approver remarks.
    """
    entry = ApprovalAudit(
        entity_type=entity_type,
        entity_id=entity_id,
        company_id=company_id,
        action=action,
        from_stage=_value(from_stage),
        to_stage=_value(to_stage),
        previous_status=_value(previous_status),
        new_status=_value(new_status),
        actor_id=actor_id,
        actor_role=_value(actor_role),
        remarks=remarks,
    )
    db.add(entry)
    logger.info(
        f"{_value(action)} {entity_type.value}:{entity_id} by {_value(actor_role)}:{actor_id} "
        f"({_value(previous_status)} -> {_value(new_status)})"
    )
    return entry


def record_rejection(
    db: Session,
    entity_type: WorkflowEntity,
    entity_id: int,
    reason_code: RejectionReasonCode,
    rejected_by: Optional[int],
    rejected_by_role: Optional[str],
    company_id: Optional[int] = None,
    stage=None,
    previous_status=None,
    new_status=None,
    remarks: Optional[str] = None,
) -> WorkflowRejection:
    """Add a rejection row to the session."""
    entry = WorkflowRejection(
        entity_type=entity_type,
        entity_id=entity_id,
        company_id=company_id,
        reason_code=reason_code,
        remarks=remarks,
        stage=_value(stage),
        previous_status=_value(previous_status),
        new_status=_value(new_status),
        rejected_by=rejected_by,
        rejected_by_role=_value(rejected_by_role),
    )
    db.add(entry)
    logger.info(
        f"reject {entity_type.value}:{entity_id} by {_value(rejected_by_role)}:{rejected_by} "
        f"reason={reason_code.value}"
    )
    return entry
