"""Tests for dispatch, delivery and derived PO shipping status."""

from datetime import date

import pytest
from sqlalchemy.orm import Session

from uniflow.models import (
    InventoryMovement,
    POStatus,
    PRStatus,
    PurchaseRequestLine,
    SupplierInventory,
    TransportMode,
)
from uniflow.services.errors import InvalidStateError, SupplierMismatch, ValidationError
from uniflow.services.fulfilment_service import (
    DeliveryMeta,
    DispatchMeta,
    FulfilmentService,
    LineQuantity,
    POShippingStatus,
    summarize_lines,
)


def _line(ordered, dispatched=0, delivered=0):
    return PurchaseRequestLine(ordered_qty=ordered, dispatched_qty=dispatched, delivered_qty=delivered)


def _ordered(world, workflow, *lines):
    pr = workflow.checkout(*lines).requests[0]
    workflow.approve(pr)
    po = workflow.consolidate(pr).purchase_orders[0]
    return pr, po


class TestSummarizeLines:
    """Shipping status derived from request lines."""

    def test_nothing_dispatched(self):
        assert summarize_lines([_line(2), _line(1)]).status == POShippingStatus.AWAITING_SHIPMENT

    def test_some_units_dispatched(self):
        assert summarize_lines([_line(2, 1), _line(1)]).status == POShippingStatus.PARTIALLY_SHIPPED

    def test_every_line_dispatched(self):
        assert summarize_lines([_line(2, 2), _line(1, 1)]).status == POShippingStatus.FULLY_SHIPPED

    def test_every_line_delivered(self):
        assert summarize_lines([_line(2, 2, 2), _line(1, 1, 1)]).status == POShippingStatus.FULLY_DELIVERED

    def test_partial_delivery_is_fully_shipped(self):
        assert summarize_lines([_line(2, 2, 1), _line(1, 1, 1)]).status == POShippingStatus.FULLY_SHIPPED

    def test_no_lines(self):
        assert summarize_lines([]).status == POShippingStatus.AWAITING_SHIPMENT


class TestDispatch:
    """FulfilmentService.record_dispatch."""

    def test_full_dispatch(self, db_session: Session, world, workflow):
        pr, po = _ordered(world, workflow, (world.shirt, "M", 4))

        result = workflow.dispatch(pr)

        assert result.changed
        db_session.refresh(pr)
        assert pr.status == PRStatus.DISPATCHED
        assert pr.lines[0].dispatched_qty == 4
        assert pr.dispatched_date == date.today()
        assert [change.new_qty for change in result.stock_changes] == [6]
        db_session.refresh(po)
        assert po.status == POStatus.IN_FULFILMENT

    def test_dispatch_meta_recorded(self, db_session: Session, world, workflow):
        pr, _ = _ordered(world, workflow, (world.shirt, "M", 1))

        FulfilmentService(db_session).record_dispatch(
            pr.id, world.supplier_a.id, [LineQuantity(pr.lines[0].id, 1)],
            DispatchMeta(
                dispatched_date=date(2026, 3, 5),
                carrier_name="FastFreight",
                transport_mode=TransportMode.ROAD,
                tracking_number="FF123",
                logistics_payload={"legs": [{"hub": "north"}]},
            ),
        )

        db_session.refresh(pr)
        assert pr.dispatched_date == date(2026, 3, 5)
        assert pr.carrier_name == "FastFreight"
        assert pr.transport_mode == TransportMode.ROAD
        assert pr.tracking_number == "FF123"
        assert pr.logistics_payload == {"legs": [{"hub": "north"}]}

    def test_shortfall_is_warning_not_error(self, db_session: Session, world, workflow):
        pr, _ = _ordered(world, workflow, (world.shirt, "L", 5))

        result = workflow.dispatch(pr)

        assert result.changed
        assert len(result.warnings) == 1
        assert result.warnings[0].shortfall == 2
        db_session.expire_all()
        stock = db_session.get(SupplierInventory, world.shirt_stock.id)
        assert stock.size_inventory["L"] == 0

    def test_low_stock_reported(self, db_session: Session, world, workflow):
        pr, _ = _ordered(world, workflow, (world.shirt, "M", 8))

        result = workflow.dispatch(pr)

        assert [change.size for change in result.low_stock] == ["M"]

    def test_missing_inventory_record_does_not_block(self, db_session: Session, world, workflow):
        pr, _ = _ordered(world, workflow, (world.jacket, "L", 1))

        result = workflow.dispatch(pr)

        assert result.changed
        assert result.stock_changes == []
        assert db_session.query(InventoryMovement).count() == 0

    def test_partial_then_rest(self, db_session: Session, world, workflow):
        pr, po = _ordered(world, workflow, (world.shirt, "M", 4), (world.shirt, "L", 2))
        m_line, l_line = pr.lines
        service = FulfilmentService(db_session)

        workflow.dispatch(pr, {m_line.id: 2, l_line.id: 0})
        assert service.derive_po_shipping_status(po.id) == POShippingStatus.PARTIALLY_SHIPPED

        result = workflow.dispatch(pr, {m_line.id: 4, l_line.id: 2})
        assert [(c.size, c.delta) for c in result.stock_changes] == [("M", -2), ("L", -2)]
        assert service.derive_po_shipping_status(po.id) == POShippingStatus.FULLY_SHIPPED

    def test_repeat_dispatch_is_noop(self, db_session: Session, world, workflow):
        pr, _ = _ordered(world, workflow, (world.shirt, "M", 2))
        workflow.dispatch(pr)

        result = workflow.dispatch(pr)

        assert not result.changed
        assert db_session.query(InventoryMovement).count() == 1
        db_session.expire_all()
        assert db_session.get(SupplierInventory, world.shirt_stock.id).size_inventory["M"] == 8

    def test_all_zero_rejected(self, db_session: Session, world, workflow):
        pr, _ = _ordered(world, workflow, (world.shirt, "M", 2))

        with pytest.raises(ValidationError):
            workflow.dispatch(pr, {pr.lines[0].id: 0})

    def test_over_ordered_rejected(self, db_session: Session, world, workflow):
        pr, _ = _ordered(world, workflow, (world.shirt, "M", 2))

        with pytest.raises(ValidationError):
            workflow.dispatch(pr, {pr.lines[0].id: 3})
        db_session.refresh(pr)
        assert pr.status == PRStatus.AWAITING_FULFILMENT

    def test_quantity_cannot_decrease(self, db_session: Session, world, workflow):
        pr, _ = _ordered(world, workflow, (world.shirt, "M", 2))
        workflow.dispatch(pr, {pr.lines[0].id: 2})

        with pytest.raises(ValidationError):
            workflow.dispatch(pr, {pr.lines[0].id: 1})

    def test_unknown_line_rejected(self, db_session: Session, world, workflow):
        pr, _ = _ordered(world, workflow, (world.shirt, "M", 2))

        with pytest.raises(ValidationError):
            workflow.dispatch(pr, {9999: 1})

    def test_one_bad_line_writes_nothing(self, db_session: Session, world, workflow):
        pr, _ = _ordered(world, workflow, (world.shirt, "M", 2), (world.shirt, "L", 1))
        m_line, l_line = pr.lines

        with pytest.raises(ValidationError):
            workflow.dispatch(pr, {m_line.id: 2, l_line.id: 5})

        db_session.refresh(m_line)
        assert m_line.dispatched_qty == 0
        assert db_session.query(InventoryMovement).count() == 0

    def test_request_not_on_po_rejected(self, db_session: Session, world, workflow):
        pr = workflow.checkout((world.shirt, "M", 1)).requests[0]
        workflow.approve(pr)

        with pytest.raises(InvalidStateError):
            workflow.dispatch(pr)

    def test_other_supplier_rejected(self, db_session: Session, world, workflow):
        pr, _ = _ordered(world, workflow, (world.shirt, "M", 1))

        with pytest.raises(SupplierMismatch) as exc:
            FulfilmentService(db_session).record_dispatch(
                pr.id, world.supplier_b.id, [LineQuantity(pr.lines[0].id, 1)],
            )
        assert exc.value.kind == "supplier_mismatch"


class TestDelivery:
    """FulfilmentService.record_delivery."""

    def test_full_delivery(self, db_session: Session, world, workflow):
        pr, po = _ordered(world, workflow, (world.shirt, "M", 2))
        workflow.dispatch(pr)

        result = FulfilmentService(db_session).record_delivery(
            pr.id, world.supplier_a.id, [LineQuantity(pr.lines[0].id, 2)],
            DeliveryMeta(delivered_date=date(2026, 3, 8), received_by="Front desk"),
        )

        assert result.changed
        db_session.refresh(pr)
        assert pr.status == PRStatus.DELIVERED
        assert pr.delivered_date == date(2026, 3, 8)
        assert pr.received_by == "Front desk"
        assert FulfilmentService(db_session).derive_po_shipping_status(po.id) == POShippingStatus.FULLY_DELIVERED

    def test_partial_delivery_keeps_dispatched(self, db_session: Session, world, workflow):
        pr, po = _ordered(world, workflow, (world.shirt, "M", 2), (world.shirt, "L", 1))
        m_line, l_line = pr.lines
        workflow.dispatch(pr)

        workflow.deliver(pr, {m_line.id: 2, l_line.id: 0})

        db_session.refresh(pr)
        assert pr.status == PRStatus.DISPATCHED
        assert pr.delivered_date is None
        assert FulfilmentService(db_session).derive_po_shipping_status(po.id) == POShippingStatus.FULLY_SHIPPED

        workflow.deliver(pr, {m_line.id: 2, l_line.id: 1})
        db_session.refresh(pr)
        assert pr.status == PRStatus.DELIVERED

    def test_cannot_deliver_more_than_dispatched(self, db_session: Session, world, workflow):
        pr, _ = _ordered(world, workflow, (world.shirt, "M", 2))
        workflow.dispatch(pr, {pr.lines[0].id: 1})

        with pytest.raises(ValidationError):
            workflow.deliver(pr, {pr.lines[0].id: 2})

    def test_delivery_before_dispatch_rejected(self, db_session: Session, world, workflow):
        pr, _ = _ordered(world, workflow, (world.shirt, "M", 2))

        with pytest.raises(InvalidStateError):
            FulfilmentService(db_session).record_delivery(
                pr.id, world.supplier_a.id, [LineQuantity(pr.lines[0].id, 0)],
            )

    def test_repeat_delivery_is_noop(self, db_session: Session, world, workflow):
        pr, _ = workflow.ordered_and_delivered((world.shirt, "M", 2))

        result = workflow.deliver(pr)

        assert not result.changed
        db_session.refresh(pr)
        assert pr.status == PRStatus.DELIVERED

    def test_other_supplier_rejected(self, db_session: Session, world, workflow):
        pr, _ = _ordered(world, workflow, (world.shirt, "M", 1))
        workflow.dispatch(pr)

        with pytest.raises(SupplierMismatch):
            FulfilmentService(db_session).record_delivery(
                pr.id, world.supplier_b.id, [LineQuantity(pr.lines[0].id, 1)],
            )

    def test_delivery_never_changes_stock(self, db_session: Session, world, workflow):
        pr, _ = _ordered(world, workflow, (world.shirt, "M", 2))
        workflow.dispatch(pr)
        movements = db_session.query(InventoryMovement).count()

        workflow.deliver(pr)

        assert db_session.query(InventoryMovement).count() == movements


class TestDerivedShippingStatus:
    """PO shipping status across several linked requests."""

    def test_status_tracks_every_linked_request(self, db_session: Session, world, workflow):
        first = workflow.checkout((world.shirt, "M", 1)).requests[0]
        second = workflow.checkout((world.jacket, "L", 1)).requests[0]
        workflow.approve(first)
        workflow.approve(second)
        po = workflow.consolidate(first, second).purchase_orders[0]
        service = FulfilmentService(db_session)

        assert service.derive_po_shipping_status(po.id) == POShippingStatus.AWAITING_SHIPMENT
        workflow.dispatch(first)
        assert service.derive_po_shipping_status(po.id) == POShippingStatus.PARTIALLY_SHIPPED
        workflow.dispatch(second)
        assert service.derive_po_shipping_status(po.id) == POShippingStatus.FULLY_SHIPPED
        workflow.deliver(first)
        assert service.derive_po_shipping_status(po.id) == POShippingStatus.FULLY_SHIPPED
        workflow.deliver(second)
        assert service.derive_po_shipping_status(po.id) == POShippingStatus.FULLY_DELIVERED

    def test_one_of_three_dispatched_is_partial(self, db_session: Session, world, workflow):
        requests = [
            workflow.checkout((world.shirt, "M", 1)).requests[0],
            workflow.checkout((world.shirt, "L", 1)).requests[0],
            workflow.checkout((world.jacket, "XL", 1)).requests[0],
        ]
        for pr in requests:
            workflow.approve(pr)
        po = workflow.consolidate(*requests).purchase_orders[0]

        workflow.dispatch(requests[0])

        assert FulfilmentService(db_session).derive_po_shipping_status(po.id) == POShippingStatus.PARTIALLY_SHIPPED
