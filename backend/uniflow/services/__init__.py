# Services module

from uniflow.services.errors import (
    WorkflowError,
    ValidationError,
    InvalidStateError,
    NotFoundError,
    InvariantViolation,
    MultipleSuppliersInvariantViolation,
    UnauthorizedApprover,
    SupplierMismatch,
    InsufficientInventory,
)
from uniflow.services.approval_policy import ApprovalPolicy, ApproverRole
from uniflow.services.request_splitter import RequestSplitter, CartLine, SplitResult
from uniflow.services.approval_router import ApprovalRouter, ApprovalResult
from uniflow.services.purchase_order_service import PurchaseOrderService, POStateMachine
from uniflow.services.inventory_ledger import InventoryLedger, StockChange
from uniflow.services.fulfilment_service import (
    FulfilmentService,
    LineQuantity,
    DispatchMeta,
    DeliveryMeta,
    POShippingStatus,
)
from uniflow.services.receipt_service import ReceiptService
from uniflow.services.return_service import ReturnService
