"""Request Splitter - turns a checkout cart into per-supplier purchase requests.

Flow:
1. Validate the whole cart (quantities, sizes, requester, eligibility)
2. Resolve exactly one supplier per product for the company
3. Group lines by supplier, keeping cart order
4. Create one purchase request per supplier group, sharing a generated
   parent id when the cart spans more than one supplier
5. Set the initial approval stage from the company's ApprovalPolicy

Nothing is written until every line has passed validation and supplier
resolution. Inventory is not touched at checkout.
"""

import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from uniflow.db.session import unit_of_work
from uniflow.models.catalog import Product
from uniflow.models.company import Company, Employee
from uniflow.models.purchase_request import (
    ApprovalStage,
    PRStatus,
    PurchaseRequest,
    PurchaseRequestLine,
    RequestType,
)
from uniflow.models.workflow import WorkflowEntity
from uniflow.services.approval_policy import ApprovalPolicy, initial_state
from uniflow.services.errors import (
    MultipleSuppliersInvariantViolation,
    NotFoundError,
    ValidationError,
)
from uniflow.services.supplier_resolver import (
    AllowAllEligibility,
    DatabaseSupplierResolver,
    EligibilityGate,
    ResolutionOutcome,
    SupplierResolver,
)
from uniflow.services.workflow_events import WorkflowEventType, emit

logger = logging.getLogger(__name__)


@dataclass
class CartLine:
    """One checkout line. Lines are always priced from the catalog."""

    product_id: int
    size: str
    quantity: int


@dataclass(frozen=True)
class ReplacementLink:
    """Marks a cart as the replacement for an approved return."""

    return_request_id: int
    original_pr_id: int
    # Price carried over from the returned line
    unit_price: Optional[Decimal] = None


@dataclass
class SplitResult:
    parent_request_id: Optional[str]
    requests: list[PurchaseRequest] = field(default_factory=list)

    @property
    def is_split(self) -> bool:
        return len(self.requests) > 1


class RequestSplitter:
    """Partitions carts into single-supplier purchase requests."""

    def __init__(
        self,
        db: Session,
        resolver: Optional[SupplierResolver] = None,
        eligibility: Optional[EligibilityGate] = None,
    ):
        self.db = db
        self.resolver = resolver or DatabaseSupplierResolver(db)
        self.eligibility = eligibility or AllowAllEligibility()

    def split_cart(
        self,
        requester_id: int,
        company_id: int,
        lines: list[CartLine],
        replacement: Optional[ReplacementLink] = None,
    ) -> SplitResult:
        """Validate, split and persist a cart in one transaction."""
        with unit_of_work(self.db, "split cart"):
            result = self.create_requests(requester_id, company_id, lines, replacement)

        for pr in result.requests:
            self.db.refresh(pr)
        logger.info(
            f"Cart of employee {requester_id} split into {len(result.requests)} request(s) "
            f"{[pr.id for pr in result.requests]} parent={result.parent_request_id}"
        )
        for pr in result.requests:
            emit(
                WorkflowEventType.SUBMITTED,
                WorkflowEntity.PURCHASE_REQUEST,
                pr.id,
                company_id=company_id,
                actor_id=requester_id,
                new_status=pr.status,
                stage=pr.approval_stage,
                parent_request_id=result.parent_request_id,
                supplier_id=pr.supplier_id,
            )
        return result

    def create_requests(
        self,
        requester_id: int,
        company_id: int,
        lines: list[CartLine],
        replacement: Optional[ReplacementLink] = None,
    ) -> SplitResult:
        """Build and flush the requests without committing.

        Used by callers that fold the split into a larger unit of work.
        """
        company = self.db.get(Company, company_id)
        if company is None:
            raise NotFoundError(f"Company {company_id} not found", {"company_id": company_id})
        if not company.is_active:
            raise ValidationError(f"Company {company_id} is not active", {"company_id": company_id})

        requester = self.db.get(Employee, requester_id)
        if requester is None or requester.company_id != company_id:
            raise ValidationError(
                f"Employee {requester_id} does not belong to company {company_id}",
                {"requester_id": requester_id, "company_id": company_id},
            )
        if not requester.is_active:
            raise ValidationError(f"Employee {requester_id} is not active", {"requester_id": requester_id})

        products = self._validate_lines(requester_id, company_id, lines)
        groups = self._group_by_supplier(company_id, lines)

        parent_request_id = uuid.uuid4().hex if len(groups) > 1 else None
        if replacement is not None:
            # An approved return is already authorized; the replacement skips approval
            stage, status = ApprovalStage.NONE, PRStatus.AWAITING_FULFILMENT
            request_type = RequestType.REPLACEMENT
        else:
            stage, status = initial_state(ApprovalPolicy.from_company(company))
            request_type = RequestType.STANDARD

        requests = []
        for supplier_id, supplier_lines in groups.items():
            pr = PurchaseRequest(
                parent_request_id=parent_request_id,
                requester_id=requester_id,
                company_id=company_id,
                location_id=requester.location_id,
                supplier_id=supplier_id,
                status=status,
                approval_stage=stage,
                request_type=request_type,
                replacement_source_id=replacement.original_pr_id if replacement else None,
            )
            for line in supplier_lines:
                price = products[line.product_id].price
                if replacement is not None and replacement.unit_price is not None:
                    price = replacement.unit_price
                pr.lines.append(PurchaseRequestLine(
                    product_id=line.product_id,
                    size=line.size.strip(),
                    ordered_qty=line.quantity,
                    unit_price=Decimal(str(price)),
                ))
            self.db.add(pr)
            requests.append(pr)

        self.db.flush()
        return SplitResult(parent_request_id=parent_request_id, requests=requests)

    def _validate_lines(self, requester_id: int, company_id: int, lines: list[CartLine]) -> dict[int, Product]:
        if not lines:
            raise ValidationError("Cart has no lines")

        products: dict[int, Product] = {}
        for index, line in enumerate(lines):
            if line.quantity is None or line.quantity <= 0:
                raise ValidationError(
                    f"Line {index}: quantity must be positive",
                    {"line": index, "quantity": line.quantity},
                )
            if not line.size or not line.size.strip():
                raise ValidationError(f"Line {index}: size is required", {"line": index})

            product = products.get(line.product_id) or self.db.get(Product, line.product_id)
            if product is None or not product.is_active:
                raise ValidationError(
                    f"Line {index}: product {line.product_id} is not available",
                    {"line": index, "product_id": line.product_id},
                )
            if product.company_id is not None and product.company_id != company_id:
                raise ValidationError(
                    f"Line {index}: product {line.product_id} is not in the company catalog",
                    {"line": index, "product_id": line.product_id},
                )
            products[line.product_id] = product

            if not self.eligibility.is_eligible(requester_id, line.product_id, line.size, line.quantity):
                raise ValidationError(
                    f"Line {index}: employee {requester_id} is not eligible for product {line.product_id}",
                    {"line": index, "product_id": line.product_id, "reason": "eligibility"},
                )
        return products

    def _group_by_supplier(self, company_id: int, lines: list[CartLine]) -> dict[int, list[CartLine]]:
        groups: dict[int, list[CartLine]] = {}
        resolved: dict[int, int] = {}

        for index, line in enumerate(lines):
            supplier_id = resolved.get(line.product_id)
            if supplier_id is None:
                resolution = self.resolver.resolve(line.product_id, company_id)
                if resolution.outcome == ResolutionOutcome.MULTIPLE:
                    raise MultipleSuppliersInvariantViolation(
                        f"Product {line.product_id} has more than one supplier for company {company_id}",
                        {"product_id": line.product_id, "supplier_ids": list(resolution.candidates)},
                    )
                if resolution.outcome == ResolutionOutcome.NONE:
                    raise ValidationError(
                        f"Line {index}: no supplier fulfils product {line.product_id}",
                        {"line": index, "product_id": line.product_id},
                    )
                supplier_id = resolution.supplier_id
                resolved[line.product_id] = supplier_id
            groups.setdefault(supplier_id, []).append(line)

        return groups
