"""Return and replacement routes."""

import logging

from fastapi import APIRouter, Request

from uniflow.core.config import settings
from uniflow.core.rate_limit import limiter
from uniflow.core.rbac import RequireApprover, RequireEmployee, ensure_company_scope
from uniflow.core.validators import PositiveIntId
from uniflow.db.session import DbSession
from uniflow.schemas.receipt import ApproveDocumentIn
from uniflow.schemas.returns import ReturnCreateIn, ReturnRejectIn, ReturnResponse
from uniflow.services.return_service import ReturnService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/", response_model=ReturnResponse, status_code=201)
@limiter.limit(settings.rate_limit_default)
def request_return(request: Request, db: DbSession, body: ReturnCreateIn, current_user: RequireEmployee):
    """Ask to exchange delivered units for another size."""
    return ReturnService(db).request_return(
        pr_id=body.pr_id,
        line_id=body.line_id,
        requested_qty=body.requested_qty,
        replacement_size=body.replacement_size,
        requested_by=current_user.user_id,
        reason=body.reason,
    )


@router.post("/{return_id}/approve", response_model=ReturnResponse)
@limiter.limit(settings.rate_limit_default)
def approve_return(request: Request, db: DbSession, return_id: PositiveIntId, body: ApproveDocumentIn,
                   current_user: RequireApprover):
    """Approve a return; raises its replacement request."""
    service = ReturnService(db)
    ensure_company_scope(current_user, service.get(return_id).company_id)
    return service.approve_return(
        return_id,
        approver_id=current_user.user_id,
        remarks=body.remarks,
        approver_role=current_user.role.value,
    )


@router.post("/{return_id}/reject", response_model=ReturnResponse)
@limiter.limit(settings.rate_limit_default)
def reject_return(request: Request, db: DbSession, return_id: PositiveIntId, body: ReturnRejectIn,
                  current_user: RequireApprover):
    service = ReturnService(db)
    ensure_company_scope(current_user, service.get(return_id).company_id)
    return service.reject_return(
        return_id,
        approver_id=current_user.user_id,
        reason_code=body.reason_code,
        remarks=body.remarks,
        approver_role=current_user.role.value,
    )
