"""End-to-end tests of the procurement API."""

from datetime import date

from fastapi.testclient import TestClient

from uniflow.models import ProductSupplier, PurchaseRequest
from uniflow.services.receipt_service import ReceiptService

API = "/api/v1"


def _checkout(client, headers, *lines):
    return client.post(
        f"{API}/requests/",
        json={"lines": [{"product_id": p.id, "size": size, "quantity": qty} for p, size, qty in lines]},
        headers=headers,
    )


def _full(pr_json):
    return [{"line_id": line["id"], "quantity": line["ordered_qty"]} for line in pr_json["lines"]]


class TestHealth:
    def test_health(self, client: TestClient):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestAuth:
    """Token and role checks."""

    def test_missing_token(self, client: TestClient, world):
        response = _checkout(client, {}, (world.shirt, "M", 1))
        assert response.status_code == 401

    def test_invalid_token(self, client: TestClient, world):
        response = _checkout(client, {"Authorization": "Bearer not-a-token"}, (world.shirt, "M", 1))
        assert response.status_code == 401

    def test_supplier_cannot_check_out(self, client: TestClient, world, supplier_a_headers):
        response = _checkout(client, supplier_a_headers, (world.shirt, "M", 1))
        assert response.status_code == 403

    def test_employee_cannot_approve(self, client: TestClient, world, employee_headers):
        pr = _checkout(client, employee_headers, (world.shirt, "M", 1)).json()["requests"][0]

        response = client.post(
            f"{API}/requests/{pr['id']}/approve",
            json={"pr_number": "PR-1", "pr_date": "2026-03-01"},
            headers=employee_headers,
        )
        assert response.status_code == 403


class TestFullWorkflow:
    """Cart to approved invoice over HTTP."""

    def test_checkout_to_invoice(
        self, client: TestClient, world,
        employee_headers, site_admin_headers, company_admin_headers, supplier_a_headers,
    ):
        # Checkout splits by supplier
        response = _checkout(client, employee_headers, (world.shirt, "M", 2), (world.trousers, "32", 1))
        assert response.status_code == 201
        split = response.json()
        assert len(split["requests"]) == 2
        assert split["parent_request_id"]
        assert {pr["parent_request_id"] for pr in split["requests"]} == {split["parent_request_id"]}
        pr_a = next(pr for pr in split["requests"] if pr["supplier_id"] == world.supplier_a.id)
        pr_b = next(pr for pr in split["requests"] if pr["supplier_id"] == world.supplier_b.id)

        response = client.get(f"{API}/requests/{pr_a['id']}/next-approver", headers=employee_headers)
        assert response.json()["required_role"] == "site_admin"

        # Site approval moves both siblings
        response = client.post(
            f"{API}/requests/{pr_a['id']}/approve",
            json={"pr_number": "PR-2026-001", "pr_date": "2026-03-01"},
            headers=site_admin_headers,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["changed"] is True
        assert body["approval_stage"] == "pending_company_approval"
        assert sorted(body["pr_ids"]) == sorted([pr_a["id"], pr_b["id"]])

        response = client.post(f"{API}/requests/{pr_b['id']}/approve", json={}, headers=company_admin_headers)
        assert response.json()["approval_stage"] == "company_approved"
        assert response.json()["status"] == "awaiting_fulfilment"

        # Consolidation: one PO per supplier
        response = client.post(
            f"{API}/purchase-orders/",
            json={"pr_ids": [pr_a["id"], pr_b["id"]], "client_po_number": "ACME-PO-77", "po_date": "2026-03-02"},
            headers=company_admin_headers,
        )
        assert response.status_code == 201
        pos = response.json()["purchase_orders"]
        assert len(pos) == 2
        po_a = next(po for po in pos if po["supplier_id"] == world.supplier_a.id)
        assert po_a["pr_ids"] == [pr_a["id"]]
        assert po_a["shipping_status"] == "awaiting_shipment"

        # Supplier A dispatches and delivers
        response = client.post(
            f"{API}/requests/{pr_a['id']}/dispatch",
            json={"lines": _full(pr_a), "carrier_name": "FastFreight", "transport_mode": "road"},
            headers=supplier_a_headers,
        )
        assert response.status_code == 200
        dispatched = response.json()
        assert dispatched["request"]["status"] == "dispatched"
        assert dispatched["stock_changes"][0]["new_qty"] == 8
        assert dispatched["warnings"] == []

        response = client.get(f"{API}/purchase-orders/{po_a['id']}", headers=company_admin_headers)
        assert response.json()["status"] == "in_fulfilment"
        assert response.json()["shipping_status"] == "fully_shipped"

        response = client.post(
            f"{API}/requests/{pr_a['id']}/delivery",
            json={"lines": _full(pr_a), "delivered_date": "2026-03-06"},
            headers=supplier_a_headers,
        )
        assert response.json()["request"]["status"] == "delivered"

        response = client.get(f"{API}/purchase-orders/{po_a['id']}/shipping-status", headers=supplier_a_headers)
        assert response.json()["shipping_status"] == "fully_delivered"

        # Goods receipt and invoice
        response = client.post(
            f"{API}/purchase-orders/{po_a['id']}/grn",
            json={"grn_number": "GRN-77", "grn_date": "2026-03-07"},
            headers=company_admin_headers,
        )
        assert response.status_code == 201
        grn = response.json()
        assert grn["status"] == "raised"

        response = client.post(f"{API}/grns/{grn['id']}/approve", json={}, headers=company_admin_headers)
        assert response.json()["status"] == "approved"
        response = client.get(f"{API}/purchase-orders/{po_a['id']}", headers=company_admin_headers)
        assert response.json()["status"] == "completed"

        response = client.post(
            f"{API}/grns/{grn['id']}/invoice",
            json={
                "invoice_number": "INV-77",
                "invoice_date": "2026-03-08",
                "supplier_invoice_ref": "UW-5531",
                "tax_amount": "2.50",
            },
            headers=supplier_a_headers,
        )
        assert response.status_code == 201
        invoice = response.json()
        assert invoice["subtotal"] == "25.00"
        assert invoice["total"] == "27.50"

        response = client.post(f"{API}/invoices/{invoice['id']}/approve", json={}, headers=company_admin_headers)
        assert response.json()["status"] == "approved"

    def test_checkout_prices_from_catalog(
        self, client: TestClient, db_session, world, workflow, employee_headers, supplier_a_headers,
    ):
        response = client.post(
            f"{API}/requests/",
            json={"lines": [{"product_id": world.shirt.id, "size": "M", "quantity": 2, "unit_price": "0.01"}]},
            headers=employee_headers,
        )
        assert response.status_code == 201
        pr_json = response.json()["requests"][0]
        assert pr_json["lines"][0]["unit_price"] == "12.50"

        pr = db_session.get(PurchaseRequest, pr_json["id"])
        workflow.approve(pr)
        po = workflow.consolidate(pr).purchase_orders[0]
        workflow.dispatch(pr)
        workflow.deliver(pr)
        service = ReceiptService(db_session)
        grn = service.create_grn(po.id, "GRN-77", date(2026, 3, 10))
        service.approve_grn(grn.id, world.company_admin.id)

        response = client.post(
            f"{API}/grns/{grn.id}/invoice",
            json={
                "invoice_number": "INV-77",
                "invoice_date": "2026-03-12",
                "supplier_invoice_ref": "UW-77",
            },
            headers=supplier_a_headers,
        )
        assert response.status_code == 201
        assert response.json()["subtotal"] == "25.00"


class TestErrorResponses:
    """Workflow failures come back as structured error objects."""

    def test_multiple_suppliers(self, client: TestClient, db_session, world, employee_headers):
        db_session.add(ProductSupplier(
            product_id=world.shirt.id, supplier_id=world.supplier_b.id, company_id=world.company.id,
        ))
        db_session.commit()

        response = _checkout(client, employee_headers, (world.shirt, "M", 1))

        assert response.status_code == 409
        error = response.json()["error"]
        assert error["kind"] == "multiple_suppliers"
        assert error["details"]["product_id"] == world.shirt.id

    def test_missing_pr_number(self, client: TestClient, world, employee_headers, site_admin_headers):
        pr = _checkout(client, employee_headers, (world.shirt, "M", 1)).json()["requests"][0]

        response = client.post(f"{API}/requests/{pr['id']}/approve", json={}, headers=site_admin_headers)

        assert response.status_code == 422
        assert response.json()["error"]["kind"] == "validation_error"
        assert response.json()["error"]["details"]["field"] == "pr_number"

    def test_wrong_stage_approver(self, client: TestClient, world, employee_headers, company_admin_headers):
        pr = _checkout(client, employee_headers, (world.shirt, "M", 1)).json()["requests"][0]

        response = client.post(f"{API}/requests/{pr['id']}/approve", json={}, headers=company_admin_headers)

        assert response.status_code == 403
        assert response.json()["error"]["kind"] == "unauthorized_approver"

    def test_supplier_mismatch(self, client: TestClient, world, workflow, supplier_b_headers):
        pr = workflow.checkout((world.shirt, "M", 1)).requests[0]
        workflow.approve(pr)
        workflow.consolidate(pr)

        response = client.post(
            f"{API}/requests/{pr.id}/dispatch",
            json={"lines": [{"line_id": pr.lines[0].id, "quantity": 1}]},
            headers=supplier_b_headers,
        )

        assert response.status_code == 403
        assert response.json()["error"]["kind"] == "supplier_mismatch"

    def test_dispatch_shortfall_is_warning(self, client: TestClient, world, workflow, supplier_a_headers):
        pr = workflow.checkout((world.shirt, "L", 5)).requests[0]
        workflow.approve(pr)
        workflow.consolidate(pr)

        response = client.post(
            f"{API}/requests/{pr.id}/dispatch",
            json={"lines": [{"line_id": pr.lines[0].id, "quantity": 5}]},
            headers=supplier_a_headers,
        )

        assert response.status_code == 200
        warning = response.json()["warnings"][0]
        assert warning["kind"] == "insufficient_inventory"
        assert warning["shortfall"] == 2

    def test_grn_before_delivery(self, client: TestClient, world, workflow, company_admin_headers):
        pr = workflow.checkout((world.shirt, "M", 1)).requests[0]
        workflow.approve(pr)
        po = workflow.consolidate(pr).purchase_orders[0]

        response = client.post(
            f"{API}/purchase-orders/{po.id}/grn",
            json={"grn_number": "GRN-1", "grn_date": "2026-03-07"},
            headers=company_admin_headers,
        )

        assert response.status_code == 409
        assert response.json()["error"]["kind"] == "invalid_state"

    def test_schema_validation(self, client: TestClient, world, employee_headers):
        response = _checkout(client, employee_headers, (world.shirt, "M", 0))
        assert response.status_code == 422


class TestScoping:
    """Tenant and supplier isolation."""

    def test_employee_sees_only_own_requests(self, client: TestClient, world, workflow, employee_headers):
        other = workflow.checkout((world.shirt, "M", 1), requester=world.depot_employee).requests[0]

        response = client.get(f"{API}/requests/{other.id}", headers=employee_headers)
        assert response.status_code == 404

    def test_supplier_cannot_read_other_suppliers_po(self, client: TestClient, world, workflow, supplier_b_headers):
        pr = workflow.checkout((world.shirt, "M", 1)).requests[0]
        workflow.approve(pr)
        po = workflow.consolidate(pr).purchase_orders[0]

        response = client.get(f"{API}/purchase-orders/{po.id}", headers=supplier_b_headers)
        assert response.status_code == 403

    def test_supplier_inventory_scope(self, client: TestClient, world, supplier_a_headers):
        response = client.get(f"{API}/inventory/suppliers/{world.supplier_b.id}", headers=supplier_a_headers)
        assert response.status_code == 403


class TestInventoryViews:
    def test_stock_listing(self, client: TestClient, world, supplier_a_headers):
        response = client.get(f"{API}/inventory/suppliers/{world.supplier_a.id}", headers=supplier_a_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["items"][0]["size_inventory"] == {"M": 10, "L": 3}
        assert data["items"][0]["total_stock"] == 13

    def test_low_stock(self, client: TestClient, world, supplier_a_headers):
        response = client.get(
            f"{API}/inventory/suppliers/{world.supplier_a.id}/low-stock", headers=supplier_a_headers,
        )
        assert response.json()["items"] == [{"product_id": world.shirt.id, "sizes": {"L": 3}}]


class TestReturnsApi:
    def test_return_and_replacement(
        self, client: TestClient, world, workflow, employee_headers, company_admin_headers,
    ):
        pr, _ = workflow.ordered_and_delivered((world.shirt, "M", 2))

        response = client.post(
            f"{API}/returns/",
            json={"pr_id": pr.id, "line_id": pr.lines[0].id, "requested_qty": 1, "replacement_size": "L"},
            headers=employee_headers,
        )
        assert response.status_code == 201
        ret = response.json()
        assert ret["status"] == "requested"

        response = client.post(f"{API}/returns/{ret['id']}/approve", json={}, headers=company_admin_headers)
        assert response.status_code == 200
        approved = response.json()
        assert approved["status"] == "approved"
        assert approved["replacement_pr_id"] is not None

        response = client.get(f"{API}/requests/{approved['replacement_pr_id']}", headers=employee_headers)
        assert response.json()["request_type"] == "replacement"
        assert response.json()["status"] == "awaiting_fulfilment"

    def test_reject_return(self, client: TestClient, world, workflow, employee_headers, site_admin_headers):
        pr, _ = workflow.ordered_and_delivered((world.shirt, "M", 2))
        ret = client.post(
            f"{API}/returns/",
            json={"pr_id": pr.id, "line_id": pr.lines[0].id, "requested_qty": 1, "replacement_size": "L"},
            headers=employee_headers,
        ).json()

        response = client.post(
            f"{API}/returns/{ret['id']}/reject",
            json={"reason_code": "policy_violation", "remarks": "Worn"},
            headers=site_admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["status"] == "rejected"
        assert response.json()["rejection_reason"] == "policy_violation"
        assert response.json()["rejection_remarks"] == "Worn"


class TestReceiptRejectionApi:
    """Rejecting goods receipts and invoices over HTTP."""

    def test_reject_grn_and_raise_again(self, client: TestClient, world, workflow, company_admin_headers):
        _, po = workflow.ordered_and_delivered((world.shirt, "M", 2))
        grn = client.post(
            f"{API}/purchase-orders/{po.id}/grn",
            json={"grn_number": "GRN-1", "grn_date": "2026-03-07"},
            headers=company_admin_headers,
        ).json()

        response = client.post(
            f"{API}/grns/{grn['id']}/reject",
            json={"reason_code": "quantity_mismatch", "remarks": "Short delivery"},
            headers=company_admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["status"] == "rejected"
        assert response.json()["rejection_reason"] == "quantity_mismatch"
        assert response.json()["rejection_remarks"] == "Short delivery"

        response = client.post(
            f"{API}/purchase-orders/{po.id}/grn",
            json={"grn_number": "GRN-2", "grn_date": "2026-03-08"},
            headers=company_admin_headers,
        )
        assert response.status_code == 201
        assert response.json()["status"] == "raised"

    def test_reject_requires_reason_code(self, client: TestClient, db_session, world, workflow, company_admin_headers):
        _, po = workflow.ordered_and_delivered((world.shirt, "M", 1))
        grn = ReceiptService(db_session).create_grn(po.id, "GRN-1", date(2026, 3, 7))

        response = client.post(f"{API}/grns/{grn.id}/reject", json={"remarks": "No"}, headers=company_admin_headers)
        assert response.status_code == 422

    def test_supplier_cannot_reject_grn(self, client: TestClient, db_session, world, workflow, supplier_a_headers):
        _, po = workflow.ordered_and_delivered((world.shirt, "M", 1))
        grn = ReceiptService(db_session).create_grn(po.id, "GRN-1", date(2026, 3, 7))

        response = client.post(
            f"{API}/grns/{grn.id}/reject", json={"reason_code": "invalid_data"}, headers=supplier_a_headers,
        )
        assert response.status_code == 403

    def test_reject_invoice(self, client: TestClient, db_session, world, workflow, company_admin_headers):
        _, po = workflow.ordered_and_delivered((world.shirt, "M", 1))
        service = ReceiptService(db_session)
        grn = service.create_grn(po.id, "GRN-1", date(2026, 3, 7))
        service.approve_grn(grn.id, world.company_admin.id)
        invoice = service.create_invoice(grn.id, "INV-1", date(2026, 3, 8), "UW-1")

        response = client.post(
            f"{API}/invoices/{invoice.id}/reject",
            json={"reason_code": "invalid_data", "remarks": "Wrong VAT number"},
            headers=company_admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["status"] == "rejected"
        assert response.json()["rejection_reason"] == "invalid_data"

        response = client.post(
            f"{API}/invoices/{invoice.id}/reject",
            json={"reason_code": "invalid_data"},
            headers=company_admin_headers,
        )
        assert response.status_code == 409
        assert response.json()["error"]["kind"] == "invalid_state"
