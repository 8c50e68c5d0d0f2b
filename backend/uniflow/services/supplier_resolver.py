"""Collaborator interfaces consumed by the workflow engine.

- SupplierResolver: which supplier fulfils a product for a company.
- EligibilityGate: whether an employee may order a cart line.
- ApproverAuthorizer: whether an actor may approve at a given stage.

Each has a database-backed (or permissive) default implementation; other
implementations can be injected into the services.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

from sqlalchemy.orm import Session

from uniflow.models.catalog import ProductSupplier, Supplier
from uniflow.models.company import CompanyAdmin, Employee, LocationAdmin

logger = logging.getLogger(__name__)


class ResolutionOutcome(str, Enum):
    FOUND = "found"
    NONE = "none"
    MULTIPLE = "multiple"


@dataclass(frozen=True)
class SupplierResolution:
    outcome: ResolutionOutcome
    supplier_id: Optional[int] = None
    candidates: tuple[int, ...] = ()


class SupplierResolver(Protocol):
    def resolve(self, product_id: int, company_id: int) -> SupplierResolution:
        ...


class DatabaseSupplierResolver:
    """Resolves suppliers from active ProductSupplier assignments."""

    def __init__(self, db: Session):
        self.db = db

    def resolve(self, product_id: int, company_id: int) -> SupplierResolution:
        rows = (
            self.db.query(ProductSupplier.supplier_id)
            .join(Supplier, Supplier.id == ProductSupplier.supplier_id)
            .filter(
                ProductSupplier.product_id == product_id,
                ProductSupplier.company_id == company_id,
                ProductSupplier.is_active.is_(True),
                Supplier.is_active.is_(True),
            )
            .distinct()
            .all()
        )
        supplier_ids = tuple(sorted(row[0] for row in rows))

        if not supplier_ids:
            return SupplierResolution(ResolutionOutcome.NONE)
        if len(supplier_ids) > 1:
            logger.warning(
                f"Product {product_id} has {len(supplier_ids)} suppliers for company {company_id}: {supplier_ids}"
            )
            return SupplierResolution(ResolutionOutcome.MULTIPLE, candidates=supplier_ids)
        return SupplierResolution(ResolutionOutcome.FOUND, supplier_id=supplier_ids[0], candidates=supplier_ids)


class EligibilityGate(Protocol):
    def is_eligible(self, employee_id: int, product_id: int, size: str, quantity: int) -> bool:
        ...


class AllowAllEligibility:
    """Default gate: quota computation happens outside this service."""

    def is_eligible(self, employee_id: int, product_id: int, size: str, quantity: int) -> bool:
        return True


class ApproverAuthorizer(Protocol):
    def can_approve_site(self, approver_id: int, location_id: Optional[int]) -> bool:
        ...

    def can_approve_company(self, approver_id: int, company_id: int) -> bool:
        ...


class DatabaseApproverAuthorizer:
    """Checks site-admin assignments and company order-approval privileges."""

    def __init__(self, db: Session):
        self.db = db

    def can_approve_site(self, approver_id: int, location_id: Optional[int]) -> bool:
        if location_id is None:
            return False
        return (
            self.db.query(LocationAdmin.id)
            .join(Employee, Employee.id == LocationAdmin.employee_id)
            .filter(
                LocationAdmin.location_id == location_id,
                LocationAdmin.employee_id == approver_id,
                Employee.is_active.is_(True),
            )
            .first()
            is not None
        )

    def can_approve_company(self, approver_id: int, company_id: int) -> bool:
        return (
            self.db.query(CompanyAdmin.id)
            .join(Employee, Employee.id == CompanyAdmin.employee_id)
            .filter(
                CompanyAdmin.company_id == company_id,
                CompanyAdmin.employee_id == approver_id,
                CompanyAdmin.can_approve_orders.is_(True),
                Employee.is_active.is_(True),
            )
            .first()
            is not None
        )
