"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


# SQLAlchemy Enum columns persist member names
PR_STATUS = sa.Enum(
    "AWAITING_APPROVAL", "AWAITING_FULFILMENT", "DISPATCHED", "DELIVERED", "REJECTED",
    name="prstatus",
)
APPROVAL_STAGE = sa.Enum(
    "NONE", "PENDING_SITE_APPROVAL", "SITE_APPROVED", "PENDING_COMPANY_APPROVAL",
    "COMPANY_APPROVED", "PO_CREATED", "REJECTED",
    name="approvalstage",
)
REQUEST_TYPE = sa.Enum("STANDARD", "REPLACEMENT", name="requesttype")
TRANSPORT_MODE = sa.Enum("ROAD", "AIR", "RAIL", "COURIER", "OTHER", name="transportmode")
PO_STATUS = sa.Enum(
    "CREATED", "SENT_TO_SUPPLIER", "ACKNOWLEDGED", "IN_FULFILMENT", "COMPLETED",
    name="postatus",
)
GRN_STATUS = sa.Enum("RAISED", "APPROVED", "REJECTED", name="grnstatus")
INVOICE_STATUS = sa.Enum("RAISED", "APPROVED", "REJECTED", name="invoicestatus")
RETURN_STATUS = sa.Enum("REQUESTED", "APPROVED", "REJECTED", "COMPLETED", name="returnstatus")
WORKFLOW_ENTITY = sa.Enum(
    "PURCHASE_REQUEST", "PURCHASE_ORDER", "GOODS_RECEIPT", "INVOICE", "RETURN_REQUEST",
    name="workflowentity",
)
APPROVAL_ACTION = sa.Enum("APPROVE", "AUTO_APPROVE", name="approvalaction")
REJECTION_REASON = sa.Enum(
    "INCOMPLETE_INFORMATION", "INVALID_DATA", "DUPLICATE_REQUEST", "POLICY_VIOLATION",
    "BUDGET_EXCEEDED", "UNAUTHORIZED_REQUEST", "ELIGIBILITY_EXHAUSTED", "INVALID_QUANTITY",
    "PRODUCT_UNAVAILABLE", "DELIVERY_ADDRESS_INVALID", "EMPLOYEE_NOT_ELIGIBLE",
    "QUANTITY_MISMATCH", "QUALITY_ISSUE", "DAMAGED_GOODS", "WRONG_ITEMS",
    "MISSING_DOCUMENTATION", "PRICING_DISCREPANCY", "TAX_CALCULATION_ERROR", "PO_MISMATCH",
    "GRN_NOT_APPROVED", "OTHER",
    name="rejectionreasoncode",
)


def upgrade() -> None:
    # Companies table
    op.create_table(
        "companies",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("code", sa.String(50), unique=True, nullable=False, index=True),
        sa.Column("is_active", sa.Boolean(), default=True, nullable=False),
        sa.Column("multi_stage_approval_enabled", sa.Boolean(), server_default="0", nullable=False),
        sa.Column("site_approval_required", sa.Boolean(), server_default="1", nullable=False),
        sa.Column("company_approval_required", sa.Boolean(), server_default="1", nullable=False),
        *_timestamps(),
    )

    # Locations table
    op.create_table(
        "locations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id", ondelete="CASCADE"),
                  nullable=False, index=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("address", sa.String(500), nullable=True),
        sa.Column("is_active", sa.Boolean(), default=True, nullable=False),
        *_timestamps(),
    )

    # Employees table
    op.create_table(
        "employees",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id", ondelete="CASCADE"),
                  nullable=False, index=True),
        sa.Column("location_id", sa.Integer(), sa.ForeignKey("locations.id", ondelete="SET NULL"),
                  nullable=True, index=True),
        sa.Column("employee_code", sa.String(50), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("designation", sa.String(100), nullable=True),
        sa.Column("is_active", sa.Boolean(), default=True, nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "location_admins",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("location_id", sa.Integer(), sa.ForeignKey("locations.id", ondelete="CASCADE"),
                  nullable=False, index=True),
        sa.Column("employee_id", sa.Integer(), sa.ForeignKey("employees.id", ondelete="CASCADE"),
                  nullable=False, index=True),
        *_timestamps(),
        sa.UniqueConstraint("location_id", "employee_id", name="uq_location_admin"),
    )

    op.create_table(
        "company_admins",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id", ondelete="CASCADE"),
                  nullable=False, index=True),
        sa.Column("employee_id", sa.Integer(), sa.ForeignKey("employees.id", ondelete="CASCADE"),
                  nullable=False, index=True),
        sa.Column("can_approve_orders", sa.Boolean(), server_default="0", nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("company_id", "employee_id", name="uq_company_admin"),
    )

    # Suppliers and catalog
    op.create_table(
        "suppliers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False, index=True),
        sa.Column("contact_email", sa.String(255), nullable=True),
        sa.Column("is_active", sa.Boolean(), default=True, nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id", ondelete="CASCADE"),
                  nullable=True, index=True),
        sa.Column("name", sa.String(255), nullable=False, index=True),
        sa.Column("sku", sa.String(50), nullable=True, index=True),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("is_active", sa.Boolean(), default=True, nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "product_suppliers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id", ondelete="CASCADE"),
                  nullable=False, index=True),
        sa.Column("supplier_id", sa.Integer(), sa.ForeignKey("suppliers.id", ondelete="CASCADE"),
                  nullable=False, index=True),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id", ondelete="CASCADE"),
                  nullable=False, index=True),
        sa.Column("is_active", sa.Boolean(), default=True, nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("product_id", "supplier_id", "company_id", name="uq_product_supplier_company"),
    )

    # Purchase requests
    op.create_table(
        "purchase_requests",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("parent_request_id", sa.String(32), nullable=True, index=True),
        sa.Column("requester_id", sa.Integer(), sa.ForeignKey("employees.id", ondelete="RESTRICT"),
                  nullable=False, index=True),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id", ondelete="RESTRICT"),
                  nullable=False, index=True),
        sa.Column("location_id", sa.Integer(), sa.ForeignKey("locations.id", ondelete="SET NULL"),
                  nullable=True, index=True),
        sa.Column("supplier_id", sa.Integer(), sa.ForeignKey("suppliers.id", ondelete="RESTRICT"),
                  nullable=False, index=True),
        sa.Column("status", PR_STATUS, nullable=False, index=True),
        sa.Column("approval_stage", APPROVAL_STAGE, nullable=False, index=True),
        sa.Column("request_type", REQUEST_TYPE, nullable=False),
        sa.Column("replacement_source_id", sa.Integer(),
                  sa.ForeignKey("purchase_requests.id", ondelete="SET NULL"), nullable=True),
        sa.Column("pr_number", sa.String(100), nullable=True, index=True),
        sa.Column("pr_date", sa.Date(), nullable=True),
        sa.Column("site_approved_by", sa.Integer(), nullable=True),
        sa.Column("site_approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("company_approved_by", sa.Integer(), nullable=True),
        sa.Column("company_approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_by", sa.Integer(), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.String(50), nullable=True),
        sa.Column("rejection_remarks", sa.Text(), nullable=True),
        sa.Column("shipper_name", sa.String(255), nullable=True),
        sa.Column("carrier_name", sa.String(255), nullable=True),
        sa.Column("transport_mode", TRANSPORT_MODE, nullable=True),
        sa.Column("tracking_number", sa.String(255), nullable=True),
        sa.Column("shipment_reference", sa.String(255), nullable=True),
        sa.Column("dispatched_date", sa.Date(), nullable=True),
        sa.Column("expected_delivery_date", sa.Date(), nullable=True),
        sa.Column("logistics_payload", sa.JSON(), nullable=True),
        sa.Column("delivered_date", sa.Date(), nullable=True),
        sa.Column("received_by", sa.String(255), nullable=True),
        sa.Column("delivery_remarks", sa.Text(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "purchase_request_lines",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("pr_id", sa.Integer(), sa.ForeignKey("purchase_requests.id", ondelete="CASCADE"),
                  nullable=False, index=True),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id", ondelete="RESTRICT"),
                  nullable=False, index=True),
        sa.Column("size", sa.String(50), nullable=False),
        sa.Column("ordered_qty", sa.Integer(), nullable=False),
        sa.Column("dispatched_qty", sa.Integer(), server_default="0", nullable=False),
        sa.Column("delivered_qty", sa.Integer(), server_default="0", nullable=False),
        sa.Column("unit_price", sa.Numeric(10, 2), nullable=False),
        sa.CheckConstraint("ordered_qty > 0", name="ck_pr_line_ordered_positive"),
        sa.CheckConstraint(
            "dispatched_qty >= 0 AND dispatched_qty <= ordered_qty", name="ck_pr_line_dispatched_range"
        ),
        sa.CheckConstraint(
            "delivered_qty >= 0 AND delivered_qty <= dispatched_qty", name="ck_pr_line_delivered_range"
        ),
    )

    # Purchase orders
    op.create_table(
        "purchase_orders",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id", ondelete="RESTRICT"),
                  nullable=False, index=True),
        sa.Column("supplier_id", sa.Integer(), sa.ForeignKey("suppliers.id", ondelete="RESTRICT"),
                  nullable=False, index=True),
        sa.Column("client_po_number", sa.String(100), nullable=False, index=True),
        sa.Column("po_date", sa.Date(), nullable=False),
        sa.Column("status", PO_STATUS, nullable=False),
        sa.Column("created_by", sa.Integer(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "purchase_request_po_links",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("pr_id", sa.Integer(), sa.ForeignKey("purchase_requests.id", ondelete="CASCADE"),
                  nullable=False, index=True),
        sa.Column("po_id", sa.Integer(), sa.ForeignKey("purchase_orders.id", ondelete="CASCADE"),
                  nullable=False, index=True),
        *_timestamps(),
        sa.UniqueConstraint("pr_id", "po_id", name="uq_pr_po_link"),
    )

    # Supplier inventory
    op.create_table(
        "supplier_inventory",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("supplier_id", sa.Integer(), sa.ForeignKey("suppliers.id", ondelete="CASCADE"),
                  nullable=False, index=True),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id", ondelete="CASCADE"),
                  nullable=False, index=True),
        sa.Column("size_inventory", sa.JSON(), nullable=False),
        sa.Column("low_stock_thresholds", sa.JSON(), nullable=False),
        sa.Column("total_stock", sa.Integer(), server_default="0", nullable=False),
        sa.Column("version", sa.Integer(), server_default="1", nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("supplier_id", "product_id", name="uq_inventory_supplier_product"),
    )

    op.create_table(
        "inventory_movements",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("ts", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False, index=True),
        sa.Column("inventory_id", sa.Integer(), sa.ForeignKey("supplier_inventory.id", ondelete="CASCADE"),
                  nullable=False, index=True),
        sa.Column("supplier_id", sa.Integer(), nullable=False, index=True),
        sa.Column("product_id", sa.Integer(), nullable=False, index=True),
        sa.Column("size", sa.String(50), nullable=False),
        sa.Column("previous_qty", sa.Integer(), nullable=False),
        sa.Column("new_qty", sa.Integer(), nullable=False),
        sa.Column("qty_delta", sa.Integer(), nullable=False),
        sa.Column("shortfall", sa.Integer(), server_default="0", nullable=False),
        sa.Column("reason", sa.String(50), nullable=False),
        sa.Column("ref_type", sa.String(50), nullable=True),
        sa.Column("ref_id", sa.Integer(), nullable=True),
        sa.Column("notes", sa.String(500), nullable=True),
    )

    # Goods receipts
    op.create_table(
        "goods_receipts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("po_id", sa.Integer(), sa.ForeignKey("purchase_orders.id", ondelete="RESTRICT"),
                  nullable=False, index=True),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id", ondelete="RESTRICT"),
                  nullable=False, index=True),
        sa.Column("supplier_id", sa.Integer(), sa.ForeignKey("suppliers.id", ondelete="RESTRICT"),
                  nullable=False, index=True),
        sa.Column("grn_number", sa.String(100), nullable=False),
        sa.Column("grn_date", sa.Date(), nullable=False),
        sa.Column("status", GRN_STATUS, nullable=False),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("approved_by", sa.Integer(), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_by", sa.Integer(), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.String(50), nullable=True),
        sa.Column("rejection_remarks", sa.Text(), nullable=True),
        sa.Column("remarks", sa.Text(), nullable=True),
        *_timestamps(),
    )
    # One GRN per PO, not counting rejected ones
    op.create_index(
        "uq_goods_receipts_open_po", "goods_receipts", ["po_id"], unique=True,
        sqlite_where=sa.text("status != 'REJECTED'"),
        postgresql_where=sa.text("status != 'REJECTED'"),
    )

    op.create_table(
        "goods_receipt_lines",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("grn_id", sa.Integer(), sa.ForeignKey("goods_receipts.id", ondelete="CASCADE"),
                  nullable=False, index=True),
        sa.Column("pr_id", sa.Integer(), sa.ForeignKey("purchase_requests.id", ondelete="RESTRICT"),
                  nullable=False, index=True),
        sa.Column("pr_line_id", sa.Integer(),
                  sa.ForeignKey("purchase_request_lines.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id", ondelete="RESTRICT"),
                  nullable=False),
        sa.Column("size", sa.String(50), nullable=False),
        sa.Column("ordered_qty", sa.Integer(), nullable=False),
        sa.Column("delivered_qty", sa.Integer(), nullable=False),
        sa.Column("accepted_qty", sa.Integer(), nullable=False),
        sa.Column("rejected_qty", sa.Integer(), server_default="0", nullable=False),
        sa.Column("unit_price", sa.Numeric(10, 2), nullable=False),
        sa.CheckConstraint(
            "rejected_qty >= 0 AND rejected_qty <= delivered_qty", name="ck_grn_line_rejected_range"
        ),
        sa.CheckConstraint(
            "accepted_qty + rejected_qty = delivered_qty", name="ck_grn_line_accepted_balance"
        ),
    )

    # Invoices
    op.create_table(
        "invoices",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("grn_id", sa.Integer(), sa.ForeignKey("goods_receipts.id", ondelete="RESTRICT"),
                  nullable=False, index=True),
        sa.Column("po_id", sa.Integer(), sa.ForeignKey("purchase_orders.id", ondelete="RESTRICT"),
                  nullable=False, index=True),
        sa.Column("supplier_id", sa.Integer(), sa.ForeignKey("suppliers.id", ondelete="RESTRICT"),
                  nullable=False, index=True),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id", ondelete="RESTRICT"),
                  nullable=False, index=True),
        sa.Column("invoice_number", sa.String(100), nullable=False),
        sa.Column("invoice_date", sa.Date(), nullable=False),
        sa.Column("supplier_invoice_ref", sa.String(100), nullable=False),
        sa.Column("subtotal", sa.Numeric(12, 2), nullable=False),
        sa.Column("tax_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("total", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", INVOICE_STATUS, nullable=False),
        sa.Column("raised_by", sa.Integer(), nullable=True),
        sa.Column("approved_by", sa.Integer(), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_by", sa.Integer(), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.String(50), nullable=True),
        sa.Column("rejection_remarks", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "uq_invoices_open_grn", "invoices", ["grn_id"], unique=True,
        sqlite_where=sa.text("status != 'REJECTED'"),
        postgresql_where=sa.text("status != 'REJECTED'"),
    )

    op.create_table(
        "invoice_lines",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("invoice_id", sa.Integer(), sa.ForeignKey("invoices.id", ondelete="CASCADE"),
                  nullable=False, index=True),
        sa.Column("grn_line_id", sa.Integer(),
                  sa.ForeignKey("goods_receipt_lines.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id", ondelete="RESTRICT"),
                  nullable=False),
        sa.Column("size", sa.String(50), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("line_total", sa.Numeric(12, 2), nullable=False),
    )

    # Returns
    op.create_table(
        "return_requests",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id", ondelete="RESTRICT"),
                  nullable=False, index=True),
        sa.Column("requester_id", sa.Integer(), sa.ForeignKey("employees.id", ondelete="RESTRICT"),
                  nullable=False, index=True),
        sa.Column("original_pr_id", sa.Integer(), sa.ForeignKey("purchase_requests.id", ondelete="RESTRICT"),
                  nullable=False, index=True),
        sa.Column("original_line_id", sa.Integer(),
                  sa.ForeignKey("purchase_request_lines.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id", ondelete="RESTRICT"),
                  nullable=False),
        sa.Column("original_size", sa.String(50), nullable=False),
        sa.Column("replacement_size", sa.String(50), nullable=False),
        sa.Column("requested_qty", sa.Integer(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("status", RETURN_STATUS, nullable=False, index=True),
        sa.Column("replacement_pr_id", sa.Integer(),
                  sa.ForeignKey("purchase_requests.id", ondelete="SET NULL"), nullable=True, unique=True),
        sa.Column("decided_by", sa.Integer(), nullable=True),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.String(50), nullable=True),
        sa.Column("rejection_remarks", sa.Text(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("requested_qty > 0", name="ck_return_qty_positive"),
    )

    # Workflow audit trail
    op.create_table(
        "approval_audits",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("ts", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False, index=True),
        sa.Column("entity_type", WORKFLOW_ENTITY, nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False, index=True),
        sa.Column("company_id", sa.Integer(), nullable=True, index=True),
        sa.Column("action", APPROVAL_ACTION, nullable=False),
        sa.Column("from_stage", sa.String(50), nullable=True),
        sa.Column("to_stage", sa.String(50), nullable=True),
        sa.Column("previous_status", sa.String(50), nullable=True),
        sa.Column("new_status", sa.String(50), nullable=True),
        sa.Column("actor_id", sa.Integer(), nullable=True),
        sa.Column("actor_role", sa.String(50), nullable=True),
        sa.Column("remarks", sa.Text(), nullable=True),
    )

    op.create_table(
        "workflow_rejections",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("ts", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False, index=True),
        sa.Column("entity_type", WORKFLOW_ENTITY, nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False, index=True),
        sa.Column("company_id", sa.Integer(), nullable=True, index=True),
        sa.Column("reason_code", REJECTION_REASON, nullable=False),
        sa.Column("remarks", sa.Text(), nullable=True),
        sa.Column("stage", sa.String(50), nullable=True),
        sa.Column("previous_status", sa.String(50), nullable=True),
        sa.Column("new_status", sa.String(50), nullable=True),
        sa.Column("rejected_by", sa.Integer(), nullable=True),
        sa.Column("rejected_by_role", sa.String(50), nullable=True),
    )


def downgrade() -> None:
    for table in (
        "workflow_rejections",
        "approval_audits",
        "return_requests",
        "invoice_lines",
        "invoices",
        "goods_receipt_lines",
        "goods_receipts",
        "inventory_movements",
        "supplier_inventory",
        "purchase_request_po_links",
        "purchase_orders",
        "purchase_request_lines",
        "purchase_requests",
        "product_suppliers",
        "products",
        "suppliers",
        "company_admins",
        "location_admins",
        "employees",
        "locations",
        "companies",
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for enum in (
        PR_STATUS, APPROVAL_STAGE, REQUEST_TYPE, TRANSPORT_MODE, PO_STATUS, GRN_STATUS,
        INVOICE_STATUS, RETURN_STATUS, WORKFLOW_ENTITY, APPROVAL_ACTION, REJECTION_REASON,
    ):
        enum.drop(bind, checkfirst=True)
