"""Inventory Ledger - per-size supplier stock counters.

Only the workflow engine mutates stock: dispatch decrements the dispatched
size, replacement delivery restocks the returned size. Each mutation:

- re-reads the record and computes the new size map
- writes it with ``UPDATE ... WHERE version = :seen`` (optimistic lock),
  retrying on conflict up to ``settings.inventory_update_max_retries``
- recomputes ``total_stock`` from the size map
- appends an InventoryMovement ledger row
- warns when a size drops to or below its low-stock threshold

Stock never goes negative. A decrement larger than the available stock
floors at zero and returns an InsufficientInventory warning instead of
failing.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from uniflow.core.config import settings
from uniflow.models.inventory import InventoryMovement, MovementReason, SupplierInventory
from uniflow.services.errors import InsufficientInventory, InvariantViolation, ValidationError

logger = logging.getLogger(__name__)


@dataclass
class StockChange:
    """Result of one size mutation."""

    inventory_id: int
    supplier_id: int
    product_id: int
    size: str
    previous_qty: int
    new_qty: int
    low_stock: bool = False
    warning: Optional[InsufficientInventory] = None

    @property
    def delta(self) -> int:
        return self.new_qty - self.previous_qty


class InventoryLedger:
    """Reads and mutates SupplierInventory records."""

    def __init__(
        self,
        db: Session,
        max_retries: Optional[int] = None,
        default_threshold: Optional[int] = None,
    ):
        self.db = db
        self.max_retries = max_retries or settings.inventory_update_max_retries
        self.default_threshold = (
            default_threshold if default_threshold is not None else settings.default_low_stock_threshold
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_record(self, supplier_id: int, product_id: int) -> Optional[SupplierInventory]:
        return (
            self.db.query(SupplierInventory)
            .filter(
                SupplierInventory.supplier_id == supplier_id,
                SupplierInventory.product_id == product_id,
            )
            .populate_existing()
            .first()
        )

    def stock_listing(self, supplier_id: int) -> list[SupplierInventory]:
        return (
            self.db.query(SupplierInventory)
            .filter(SupplierInventory.supplier_id == supplier_id)
            .order_by(SupplierInventory.product_id)
            .all()
        )

    def threshold_for(self, record: SupplierInventory, size: str) -> int:
        thresholds = record.low_stock_thresholds or {}
        return int(thresholds.get(size, self.default_threshold))

    def low_stock_sizes(self, record: SupplierInventory) -> dict[str, int]:
        """Sizes whose quantity is at or below their threshold."""
        return {
            size: int(qty)
            for size, qty in (record.size_inventory or {}).items()
            if int(qty) <= self.threshold_for(record, size)
        }

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def decrement(
        self,
        supplier_id: int,
        product_id: int,
        size: str,
        quantity: int,
        ref_type: Optional[str] = None,
        ref_id: Optional[int] = None,
    ) -> Optional[StockChange]:
        """Remove dispatched units from a size, flooring at zero.

        Returns None when the supplier has no inventory record for the
        product; dispatch proceeds regardless.
        """
        if quantity < 0:
            raise ValidationError("Decrement quantity cannot be negative", {"quantity": quantity})
        return self._apply(
            supplier_id, product_id, size, -quantity,
            MovementReason.DISPATCH, ref_type, ref_id, create_missing=False,
        )

    def increment(
        self,
        supplier_id: int,
        product_id: int,
        size: str,
        quantity: int,
        ref_type: Optional[str] = None,
        ref_id: Optional[int] = None,
        reason: MovementReason = MovementReason.RETURN_RESTOCK,
    ) -> StockChange:
        """Add units to a size, creating the record at zero stock if missing."""
        if quantity < 0:
            raise ValidationError("Increment quantity cannot be negative", {"quantity": quantity})
        return self._apply(
            supplier_id, product_id, size, quantity,
            reason, ref_type, ref_id, create_missing=True,
        )

    def _create_record(self, supplier_id: int, product_id: int) -> SupplierInventory:
        record = SupplierInventory(
            supplier_id=supplier_id,
            product_id=product_id,
            size_inventory={},
            low_stock_thresholds={},
            total_stock=0,
        )
        self.db.add(record)
        self.db.flush()
        logger.info(f"Created inventory record for supplier {supplier_id} product {product_id}")
        return record

    def _apply(
        self,
        supplier_id: int,
        product_id: int,
        size: str,
        delta: int,
        reason: MovementReason,
        ref_type: Optional[str],
        ref_id: Optional[int],
        create_missing: bool,
    ) -> Optional[StockChange]:
        for attempt in range(1, self.max_retries + 1):
            record = self.get_record(supplier_id, product_id)
            if record is None:
                if not create_missing:
                    logger.warning(
                        f"No inventory record for supplier {supplier_id} product {product_id}; "
                        f"skipping stock update of {delta} for size {size}"
                    )
                    return None
                record = self._create_record(supplier_id, product_id)

            sizes = {key: int(value) for key, value in (record.size_inventory or {}).items()}
            previous = sizes.get(size, 0)
            new = max(0, previous + delta)
            sizes[size] = new
            seen_version = record.version

            result = self.db.execute(
                update(SupplierInventory)
                .where(
                    SupplierInventory.id == record.id,
                    SupplierInventory.version == seen_version,
                )
                .values(
                    size_inventory=sizes,
                    total_stock=sum(sizes.values()),
                    version=seen_version + 1,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                logger.warning(
                    f"Inventory {record.id} changed concurrently (version {seen_version}), "
                    f"retry {attempt}/{self.max_retries}"
                )
                continue

            self.db.expire(record)
            return self._record_change(record.id, supplier_id, product_id, size, previous, new, delta,
                                       reason, ref_type, ref_id)

        raise InvariantViolation(
            f"Inventory for supplier {supplier_id} product {product_id} kept changing; "
            f"gave up after {self.max_retries} attempts",
            {"supplier_id": supplier_id, "product_id": product_id, "size": size},
        )

    def _record_change(
        self,
        inventory_id: int,
        supplier_id: int,
        product_id: int,
        size: str,
        previous: int,
        new: int,
        delta: int,
        reason: MovementReason,
        ref_type: Optional[str],
        ref_id: Optional[int],
    ) -> StockChange:
        warning = None
        shortfall = 0
        if delta < 0 and -delta > previous:
            warning = InsufficientInventory(
                supplier_id=supplier_id,
                product_id=product_id,
                size=size,
                requested=-delta,
                available=previous,
            )
            shortfall = warning.shortfall
            logger.warning(
                f"Insufficient stock for supplier {supplier_id} product {product_id} size {size}: "
                f"requested {-delta}, available {previous}; floored at 0"
            )

        self.db.add(InventoryMovement(
            inventory_id=inventory_id,
            supplier_id=supplier_id,
            product_id=product_id,
            size=size,
            previous_qty=previous,
            new_qty=new,
            qty_delta=new - previous,
            shortfall=shortfall,
            reason=reason.value,
            ref_type=ref_type,
            ref_id=ref_id,
        ))

        record = self.db.get(SupplierInventory, inventory_id)
        threshold = self.threshold_for(record, size)
        low_stock = new <= threshold
        if low_stock and previous > threshold:
            logger.warning(
                f"Low stock: supplier {supplier_id} product {product_id} size {size} "
                f"at {new} (threshold {threshold})"
            )

        return StockChange(
            inventory_id=inventory_id,
            supplier_id=supplier_id,
            product_id=product_id,
            size=size,
            previous_qty=previous,
            new_qty=new,
            low_stock=low_stock,
            warning=warning,
        )
