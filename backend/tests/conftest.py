"""Pytest configuration and fixtures."""

import os

# Keep the application engine off the on-disk default database
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from datetime import date
from decimal import Decimal
from types import SimpleNamespace
from typing import Generator

from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from uniflow.core.rbac import UserRole
from uniflow.core.security import create_access_token
from uniflow.db.base import Base
from uniflow.db.session import get_db
from uniflow.main import app
# Import all models to ensure they're registered with Base.metadata
from uniflow.models import *
from uniflow.services.approval_policy import ApproverRole
from uniflow.services.approval_router import ApprovalRouter
from uniflow.services.fulfilment_service import FulfilmentService, LineQuantity
from uniflow.services.purchase_order_service import PurchaseOrderService
from uniflow.services.request_splitter import CartLine, RequestSplitter

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture(scope="function")
def db_engine():
    """Create a test database engine."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """Create a test database session."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(db_session: Session) -> Generator[TestClient, None, None]:
    """Create a test client with database override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    # Disable rate limiting during tests to avoid flaky failures
    from uniflow.core.rate_limit import limiter as global_limiter
    global_limiter.enabled = False
    # Don't raise server exceptions so we can test error status codes
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    global_limiter.enabled = True
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Master data
# ---------------------------------------------------------------------------


@pytest.fixture
def world(db_session: Session) -> SimpleNamespace:
    """A company with two sites, its admins, two suppliers and a catalog.

    Shirts and jackets are fulfilled by supplier A, trousers by supplier B.
    Multi-stage approval (site then company) is enabled.
    """
    company = Company(
        name="Acme Logistics",
        code="ACME",
        multi_stage_approval_enabled=True,
        site_approval_required=True,
        company_approval_required=True,
    )
    other_company = Company(name="Globex", code="GLOBEX")
    db_session.add_all([company, other_company])
    db_session.flush()

    hq = Location(company_id=company.id, name="Head Office")
    depot = Location(company_id=company.id, name="North Depot")
    db_session.add_all([hq, depot])
    db_session.flush()

    employee = Employee(company_id=company.id, location_id=hq.id, employee_code="E001", name="Dana Driver")
    depot_employee = Employee(company_id=company.id, location_id=depot.id, employee_code="E002", name="Sam Loader")
    site_admin = Employee(company_id=company.id, location_id=hq.id, employee_code="A001", name="Robin Site")
    depot_admin = Employee(company_id=company.id, location_id=depot.id, employee_code="A002", name="Kim Depot")
    company_admin = Employee(company_id=company.id, location_id=hq.id, employee_code="C001", name="Alex Chief")
    outsider = Employee(company_id=other_company.id, employee_code="G001", name="Lee Globex")
    db_session.add_all([employee, depot_employee, site_admin, depot_admin, company_admin, outsider])
    db_session.flush()

    db_session.add_all([
        LocationAdmin(location_id=hq.id, employee_id=site_admin.id),
        LocationAdmin(location_id=depot.id, employee_id=depot_admin.id),
        CompanyAdmin(company_id=company.id, employee_id=company_admin.id, can_approve_orders=True),
    ])

    supplier_a = Supplier(name="Uniform Works", contact_email="orders@uniformworks.test")
    supplier_b = Supplier(name="Trouser Co", contact_email="sales@trouserco.test")
    db_session.add_all([supplier_a, supplier_b])
    db_session.flush()

    shirt = Product(company_id=company.id, name="Polo Shirt", sku="SHIRT-01", price=Decimal("12.50"))
    trousers = Product(company_id=company.id, name="Cargo Trousers", sku="TROU-01", price=Decimal("30.00"))
    jacket = Product(company_id=company.id, name="Hi-Vis Jacket", sku="JKT-01", price=Decimal("45.00"))
    db_session.add_all([shirt, trousers, jacket])
    db_session.flush()

    db_session.add_all([
        ProductSupplier(product_id=shirt.id, supplier_id=supplier_a.id, company_id=company.id),
        ProductSupplier(product_id=jacket.id, supplier_id=supplier_a.id, company_id=company.id),
        ProductSupplier(product_id=trousers.id, supplier_id=supplier_b.id, company_id=company.id),
    ])

    shirt_stock = SupplierInventory(
        supplier_id=supplier_a.id,
        product_id=shirt.id,
        size_inventory={"M": 10, "L": 3},
        low_stock_thresholds={"M": 2},
        total_stock=13,
    )
    trouser_stock = SupplierInventory(
        supplier_id=supplier_b.id,
        product_id=trousers.id,
        size_inventory={"32": 5},
        low_stock_thresholds={},
        total_stock=5,
    )
    db_session.add_all([shirt_stock, trouser_stock])
    db_session.commit()

    return SimpleNamespace(
        company=company,
        other_company=other_company,
        hq=hq,
        depot=depot,
        employee=employee,
        depot_employee=depot_employee,
        site_admin=site_admin,
        depot_admin=depot_admin,
        company_admin=company_admin,
        outsider=outsider,
        supplier_a=supplier_a,
        supplier_b=supplier_b,
        shirt=shirt,
        trousers=trousers,
        jacket=jacket,
        shirt_stock=shirt_stock,
        trouser_stock=trouser_stock,
    )


class WorkflowDriver:
    """Moves requests through the workflow with the service layer."""

    def __init__(self, db: Session, world: SimpleNamespace):
        self.db = db
        self.world = world
        self._pr_numbers = 0
        self._po_numbers = 0

    def checkout(self, *lines, requester=None):
        """lines: (product, size, quantity) tuples."""
        requester = requester or self.world.employee
        return RequestSplitter(self.db).split_cart(
            requester_id=requester.id,
            company_id=requester.company_id,
            lines=[CartLine(product_id=product.id, size=size, quantity=qty) for product, size, qty in lines],
        )

    def site_approve(self, pr, approver=None, pr_number=None):
        self._pr_numbers += 1
        return ApprovalRouter(self.db).advance(
            ApproverRole.SITE_ADMIN,
            (approver or self.world.site_admin).id,
            pr_id=pr.id,
            pr_number=pr_number or f"PR-{self._pr_numbers:04d}",
            pr_date=date(2026, 3, 1),
        )

    def company_approve(self, pr):
        return ApprovalRouter(self.db).advance(
            ApproverRole.COMPANY_ADMIN, self.world.company_admin.id, pr_id=pr.id,
        )

    def approve(self, pr):
        self.site_approve(pr)
        return self.company_approve(pr)

    def consolidate(self, *prs):
        self._po_numbers += 1
        return PurchaseOrderService(self.db).consolidate(
            company_id=self.world.company.id,
            pr_ids=[pr.id for pr in prs],
            client_po_number=f"PO-{self._po_numbers:04d}",
            po_date=date(2026, 3, 2),
            created_by=self.world.company_admin.id,
        )

    def dispatch(self, pr, quantities=None):
        """quantities: {line_id: cumulative qty}; defaults to every line in full."""
        if quantities is None:
            quantities = {line.id: line.ordered_qty for line in pr.lines}
        return FulfilmentService(self.db).record_dispatch(
            pr.id, pr.supplier_id, [LineQuantity(line_id, qty) for line_id, qty in quantities.items()],
        )

    def deliver(self, pr, quantities=None):
        if quantities is None:
            quantities = {line.id: line.ordered_qty for line in pr.lines}
        return FulfilmentService(self.db).record_delivery(
            pr.id, pr.supplier_id, [LineQuantity(line_id, qty) for line_id, qty in quantities.items()],
        )

    def ordered_and_delivered(self, *lines):
        """Check out, approve, order, dispatch and deliver one single-supplier cart."""
        pr = self.checkout(*lines).requests[0]
        self.approve(pr)
        po = self.consolidate(pr).purchase_orders[0]
        self.dispatch(pr)
        self.deliver(pr)
        return pr, po


@pytest.fixture
def workflow(db_session: Session, world: SimpleNamespace) -> WorkflowDriver:
    return WorkflowDriver(db_session, world)


# ---------------------------------------------------------------------------
# Auth headers
# ---------------------------------------------------------------------------


def _headers(payload: dict) -> dict:
    token = create_access_token(data={k: v for k, v in payload.items() if v is not None})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def employee_headers(world) -> dict:
    return _headers({
        "sub": str(world.employee.id),
        "role": UserRole.EMPLOYEE.value,
        "company_id": world.company.id,
        "location_id": world.hq.id,
    })


@pytest.fixture
def site_admin_headers(world) -> dict:
    return _headers({
        "sub": str(world.site_admin.id),
        "role": UserRole.SITE_ADMIN.value,
        "company_id": world.company.id,
        "location_id": world.hq.id,
    })


@pytest.fixture
def company_admin_headers(world) -> dict:
    return _headers({
        "sub": str(world.company_admin.id),
        "role": UserRole.COMPANY_ADMIN.value,
        "company_id": world.company.id,
    })


@pytest.fixture
def supplier_a_headers(world) -> dict:
    return _headers({
        "sub": "900",
        "role": UserRole.SUPPLIER.value,
        "supplier_id": world.supplier_a.id,
    })


@pytest.fixture
def supplier_b_headers(world) -> dict:
    return _headers({
        "sub": "901",
        "role": UserRole.SUPPLIER.value,
        "supplier_id": world.supplier_b.id,
    })
