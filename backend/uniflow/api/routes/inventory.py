"""Supplier stock views."""

from fastapi import APIRouter

from uniflow.core.rbac import RequireSupplier, ensure_supplier_scope
from uniflow.core.responses import list_response
from uniflow.core.validators import PositiveIntId
from uniflow.db.session import DbSession
from uniflow.schemas.inventory import LowStockResponse, SupplierInventoryResponse
from uniflow.services.inventory_ledger import InventoryLedger

router = APIRouter()


@router.get("/suppliers/{supplier_id}")
def list_supplier_inventory(db: DbSession, supplier_id: PositiveIntId, current_user: RequireSupplier):
    """Per-size stock of every product the supplier holds."""
    ensure_supplier_scope(current_user, supplier_id)
    records = InventoryLedger(db).stock_listing(supplier_id)
    return list_response(
        [SupplierInventoryResponse.model_validate(record).model_dump(mode="json") for record in records]
    )


@router.get("/suppliers/{supplier_id}/low-stock")
def list_low_stock(db: DbSession, supplier_id: PositiveIntId, current_user: RequireSupplier):
    ensure_supplier_scope(current_user, supplier_id)
    ledger = InventoryLedger(db)
    items = []
    for record in ledger.stock_listing(supplier_id):
        sizes = ledger.low_stock_sizes(record)
        if sizes:
            items.append(LowStockResponse(product_id=record.product_id, sizes=sizes).model_dump())
    return list_response(items)
