"""Purchase request API routes: checkout, approval and rejection."""

import logging

from fastapi import APIRouter, HTTPException, Request

from uniflow.core.config import settings
from uniflow.core.rate_limit import limiter
from uniflow.core.rbac import (
    CurrentUser,
    RequireApprover,
    RequireEmployee,
    TokenData,
    UserRole,
    ensure_company_scope,
    ensure_supplier_scope,
)
from uniflow.core.validators import PositiveIntId
from uniflow.db.session import DbSession
from uniflow.models.purchase_request import PurchaseRequest
from uniflow.schemas.purchase_request import (
    ApprovalResponse,
    ApproveIn,
    CreateRequestsIn,
    NextApproverResponse,
    PurchaseRequestResponse,
    RejectIn,
    SplitResponse,
)
from uniflow.services.approval_policy import ApproverRole
from uniflow.services.approval_router import ApprovalResult, ApprovalRouter
from uniflow.services.request_splitter import CartLine, RequestSplitter

logger = logging.getLogger(__name__)

router = APIRouter()


def load_visible_request(db, pr_id: int, current_user: TokenData) -> PurchaseRequest:
    """Fetch a request the caller is allowed to see."""
    pr = db.get(PurchaseRequest, pr_id)
    if pr is None:
        raise HTTPException(status_code=404, detail="Purchase request not found")
    if current_user.role == UserRole.SUPPLIER:
        ensure_supplier_scope(current_user, pr.supplier_id)
    else:
        ensure_company_scope(current_user, pr.company_id)
        if current_user.role == UserRole.EMPLOYEE and pr.requester_id != current_user.user_id:
            raise HTTPException(status_code=404, detail="Purchase request not found")
    return pr


def _approval_response(result: ApprovalResult) -> ApprovalResponse:
    return ApprovalResponse(
        changed=result.changed,
        approval_stage=result.stage,
        status=result.status,
        pr_ids=result.pr_ids,
    )


@router.post("/", response_model=SplitResponse, status_code=201)
@limiter.limit(settings.rate_limit_default)
def create_requests(request: Request, db: DbSession, body: CreateRequestsIn, current_user: RequireEmployee):
    """Check out a cart: one purchase request per supplier."""
    result = RequestSplitter(db).split_cart(
        requester_id=current_user.user_id,
        company_id=current_user.company_id,
        lines=[
            CartLine(product_id=line.product_id, size=line.size, quantity=line.quantity)
            for line in body.lines
        ],
    )
    return SplitResponse(
        parent_request_id=result.parent_request_id,
        requests=[PurchaseRequestResponse.model_validate(pr) for pr in result.requests],
    )


@router.get("/{pr_id}", response_model=PurchaseRequestResponse)
def get_request(db: DbSession, pr_id: PositiveIntId, current_user: CurrentUser):
    return load_visible_request(db, pr_id, current_user)


@router.get("/{pr_id}/next-approver", response_model=NextApproverResponse)
def get_next_approver(db: DbSession, pr_id: PositiveIntId, current_user: CurrentUser):
    """Which approver role the request's group is waiting on."""
    pr = load_visible_request(db, pr_id, current_user)
    role = ApprovalRouter(db).next_required_approver(pr.id)
    return NextApproverResponse(
        pr_id=pr.id,
        approval_stage=pr.approval_stage,
        required_role=role.value if role else None,
    )


@router.post("/{pr_id}/approve", response_model=ApprovalResponse)
@limiter.limit(settings.rate_limit_default)
def approve_request(request: Request, db: DbSession, pr_id: PositiveIntId, body: ApproveIn,
                    current_user: RequireApprover):
    """Approve the current stage for the request and all its siblings."""
    load_visible_request(db, pr_id, current_user)
    result = ApprovalRouter(db).advance(
        approver_role=ApproverRole(current_user.role.value),
        approver_id=current_user.user_id,
        pr_id=pr_id,
        parent_request_id=body.parent_request_id,
        pr_number=body.pr_number,
        pr_date=body.pr_date,
        remarks=body.remarks,
    )
    return _approval_response(result)


@router.post("/{pr_id}/reject", response_model=ApprovalResponse)
@limiter.limit(settings.rate_limit_default)
def reject_request(request: Request, db: DbSession, pr_id: PositiveIntId, body: RejectIn,
                   current_user: RequireApprover):
    """Reject the request and all its siblings."""
    load_visible_request(db, pr_id, current_user)
    result = ApprovalRouter(db).reject(
        approver_role=ApproverRole(current_user.role.value),
        approver_id=current_user.user_id,
        reason_code=body.reason_code,
        pr_id=pr_id,
        parent_request_id=body.parent_request_id,
        remarks=body.remarks,
    )
    return _approval_response(result)
