"""SQLAlchemy models."""

from uniflow.models.company import Company, Location, Employee, LocationAdmin, CompanyAdmin
from uniflow.models.catalog import Supplier, Product, ProductSupplier
from uniflow.models.purchase_request import (
    PurchaseRequest,
    PurchaseRequestLine,
    PRStatus,
    ApprovalStage,
    RequestType,
    TransportMode,
)
from uniflow.models.purchase_order import PurchaseOrder, PurchaseRequestPOLink, POStatus
from uniflow.models.inventory import SupplierInventory, InventoryMovement, MovementReason
from uniflow.models.receipt import GoodsReceipt, GoodsReceiptLine, GRNStatus
from uniflow.models.invoice import Invoice, InvoiceLine, InvoiceStatus
from uniflow.models.returns import ReturnRequest, ReturnStatus
from uniflow.models.workflow import (
    ApprovalAudit,
    WorkflowRejection,
    WorkflowEntity,
    ApprovalAction,
    RejectionReasonCode,
)

__all__ = [
    "Company",
    "Location",
    "Employee",
    "LocationAdmin",
    "CompanyAdmin",
    "Supplier",
    "Product",
    "ProductSupplier",
    "PurchaseRequest",
    "PurchaseRequestLine",
    "PRStatus",
    "ApprovalStage",
    "RequestType",
    "TransportMode",
    "PurchaseOrder",
    "PurchaseRequestPOLink",
    "POStatus",
    "SupplierInventory",
    "InventoryMovement",
    "MovementReason",
    "GoodsReceipt",
    "GoodsReceiptLine",
    "GRNStatus",
    "Invoice",
    "InvoiceLine",
    "InvoiceStatus",
    "ReturnRequest",
    "ReturnStatus",
    "ApprovalAudit",
    "WorkflowRejection",
    "WorkflowEntity",
    "ApprovalAction",
    "RejectionReasonCode",
]
