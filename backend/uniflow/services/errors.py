"""Workflow error taxonomy.

Every failure surfaced by the workflow services is a ``WorkflowError``
carrying a machine-readable ``kind``, a human message and optional
details. The API layer renders them as structured error objects; nothing
in this module knows about HTTP beyond the suggested status code.
"""

from dataclasses import dataclass
from typing import Any, Optional


class WorkflowError(Exception):
    """Base class for workflow failures."""

    kind = "workflow_error"
    status_code = 400

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.message, "details": self.details}


class ValidationError(WorkflowError):
    """Malformed input or a missing mandatory field. Never retried."""

    kind = "validation_error"
    status_code = 422


class InvalidStateError(ValidationError):
    """Operation attempted while the entity is in the wrong lifecycle state."""

    kind = "invalid_state"
    status_code = 409


class NotFoundError(WorkflowError):
    kind = "not_found"
    status_code = 404


class InvariantViolation(WorkflowError):
    """A structural invariant would be broken. The whole operation aborts."""

    kind = "invariant_violation"
    status_code = 409


class MultipleSuppliersInvariantViolation(InvariantViolation):
    """More than one supplier is assigned to a product for a company."""

    kind = "multiple_suppliers"


class UnauthorizedApprover(WorkflowError):
    """The actor may not act on the entity's current stage. Terminal."""

    kind = "unauthorized_approver"
    status_code = 403


class SupplierMismatch(UnauthorizedApprover):
    """A supplier tried to act on a request assigned to another supplier."""

    kind = "supplier_mismatch"


@dataclass(frozen=True)
class InsufficientInventory:
    """Non-fatal warning: a dispatch exceeded the recorded stock for a size.

    Dispatch still proceeds and the stock floors at zero.
    """

    supplier_id: int
    product_id: int
    size: str
    requested: int
    available: int

    @property
    def shortfall(self) -> int:
        return max(0, self.requested - self.available)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": "insufficient_inventory",
            "supplier_id": self.supplier_id,
            "product_id": self.product_id,
            "size": self.size,
            "requested": self.requested,
            "available": self.available,
            "shortfall": self.shortfall,
        }
