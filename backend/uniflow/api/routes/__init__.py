"""API routes."""

from fastapi import APIRouter

from uniflow.api.routes import fulfilment, inventory, purchase_orders, receipts, requests, returns

api_router = APIRouter()

# Dispatch/delivery live under /requests alongside checkout and approval
api_router.include_router(requests.router, prefix="/requests", tags=["purchase-requests"])
api_router.include_router(fulfilment.router, prefix="/requests", tags=["fulfilment"])
api_router.include_router(purchase_orders.router, prefix="/purchase-orders", tags=["purchase-orders"])
api_router.include_router(receipts.router, tags=["grn", "invoices"])
api_router.include_router(inventory.router, prefix="/inventory", tags=["inventory"])
api_router.include_router(returns.router, prefix="/returns", tags=["returns"])
