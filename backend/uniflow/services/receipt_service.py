"""Receipt & Billing Gate.

GRN and invoice creation are gated on upstream state:

- a GRN can be raised only when the PO's derived shipping status is
  fully_delivered, and only once per PO
- an invoice can be raised only against an approved GRN, and only once
  per GRN

A company admin approves or rejects each raised document. Rejection needs a
reason code and frees the parent, so a corrected GRN or invoice can be
raised in its place; approval is final.

The one-per-parent rules count only documents that are not rejected. They
are checked up front and also enforced by partial unique indexes, so a
concurrent duplicate fails with InvariantViolation rather than creating a
second record.
"""

import logging
from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from uniflow.db.session import unit_of_work
from uniflow.models.invoice import Invoice, InvoiceLine, InvoiceStatus
from uniflow.models.receipt import GoodsReceipt, GoodsReceiptLine, GRNStatus
from uniflow.models.workflow import RejectionReasonCode, WorkflowEntity
from uniflow.services.errors import (
    InvalidStateError,
    InvariantViolation,
    NotFoundError,
    SupplierMismatch,
    ValidationError,
)
from uniflow.services.fulfilment_service import FulfilmentService, POShippingStatus
from uniflow.services.purchase_order_service import PurchaseOrderService
from uniflow.services.workflow_audit import record_approval, record_rejection
from uniflow.services.workflow_events import WorkflowEventType, emit

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def _money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


class ReceiptService:
    """Raises, approves and rejects goods receipts and supplier invoices."""

    def __init__(self, db: Session):
        self.db = db
        self.po_service = PurchaseOrderService(db)
        self.fulfilment = FulfilmentService(db)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_grn(self, grn_id: int) -> GoodsReceipt:
        grn = self.db.get(GoodsReceipt, grn_id)
        if grn is None:
            raise NotFoundError(f"Goods receipt {grn_id} not found", {"grn_id": grn_id})
        return grn

    def get_invoice(self, invoice_id: int) -> Invoice:
        invoice = self.db.get(Invoice, invoice_id)
        if invoice is None:
            raise NotFoundError(f"Invoice {invoice_id} not found", {"invoice_id": invoice_id})
        return invoice

    def grn_for_po(self, po_id: int) -> Optional[GoodsReceipt]:
        """The PO's GRN that is not rejected, if any."""
        return (
            self.db.query(GoodsReceipt)
            .filter(GoodsReceipt.po_id == po_id, GoodsReceipt.status != GRNStatus.REJECTED)
            .first()
        )

    def invoice_for_grn(self, grn_id: int) -> Optional[Invoice]:
        """The GRN's invoice that is not rejected, if any."""
        return (
            self.db.query(Invoice)
            .filter(Invoice.grn_id == grn_id, Invoice.status != InvoiceStatus.REJECTED)
            .first()
        )

    # ------------------------------------------------------------------
    # Goods receipt
    # ------------------------------------------------------------------

    def create_grn(
        self,
        po_id: int,
        grn_number: str,
        grn_date: date,
        created_by: Optional[int] = None,
        rejected_quantities: Optional[dict[int, int]] = None,
        remarks: Optional[str] = None,
    ) -> GoodsReceipt:
        """Raise the GRN of a fully delivered PO.

        ``rejected_quantities`` maps request line ids to units refused on
        receipt; accepted quantity is delivered minus rejected.
        """
        grn_number = (grn_number or "").strip()
        if not grn_number:
            raise ValidationError("GRN number is required", {"field": "grn_number"})
        if grn_date is None:
            raise ValidationError("GRN date is required", {"field": "grn_date"})
        rejected_quantities = rejected_quantities or {}

        po = self.po_service.get(po_id)
        existing = self.grn_for_po(po_id)
        if existing is not None:
            raise InvariantViolation(
                f"Purchase order {po_id} already has goods receipt {existing.id}",
                {"po_id": po_id, "grn_id": existing.id},
            )

        summary = self.fulfilment.shipping_summary(po_id)
        if summary.status != POShippingStatus.FULLY_DELIVERED:
            raise InvalidStateError(
                f"Purchase order {po_id} is not fully delivered (status {summary.status.value})",
                {"po_id": po_id, "shipping_status": summary.status.value},
            )

        lines = self.fulfilment.po_lines(po_id)
        unknown = set(rejected_quantities) - {line.id for line in lines}
        if unknown:
            raise ValidationError(
                f"Rejected quantities given for lines not on PO {po_id}: {sorted(unknown)}",
                {"line_ids": sorted(unknown)},
            )

        grn = GoodsReceipt(
            po_id=po_id,
            company_id=po.company_id,
            supplier_id=po.supplier_id,
            grn_number=grn_number,
            grn_date=grn_date,
            status=GRNStatus.RAISED,
            created_by=created_by,
            remarks=remarks,
        )
        for line in lines:
            rejected = int(rejected_quantities.get(line.id, 0))
            if rejected < 0 or rejected > line.delivered_qty:
                raise ValidationError(
                    f"Line {line.id}: rejected quantity {rejected} must be between 0 and "
                    f"delivered quantity {line.delivered_qty}",
                    {"line_id": line.id, "rejected_qty": rejected},
                )
            grn.lines.append(GoodsReceiptLine(
                pr_id=line.pr_id,
                pr_line_id=line.id,
                product_id=line.product_id,
                size=line.size,
                ordered_qty=line.ordered_qty,
                delivered_qty=line.delivered_qty,
                accepted_qty=line.delivered_qty - rejected,
                rejected_qty=rejected,
                unit_price=line.unit_price,
            ))

        try:
            with unit_of_work(self.db, "GRN creation"):
                self.db.add(grn)
                self.db.flush()
        except IntegrityError as e:
            raise InvariantViolation(
                f"Purchase order {po_id} already has a goods receipt",
                {"po_id": po_id},
            ) from e

        self.db.refresh(grn)
        logger.info(f"GRN {grn.id} ({grn_number}) raised for PO {po_id} with {len(lines)} line(s)")
        emit(
            WorkflowEventType.SUBMITTED,
            WorkflowEntity.GOODS_RECEIPT,
            grn.id,
            company_id=grn.company_id,
            actor_id=created_by,
            new_status=grn.status,
            po_id=po_id,
            supplier_id=grn.supplier_id,
        )
        return grn

    def approve_grn(self, grn_id: int, approver_id: int, remarks: Optional[str] = None) -> GoodsReceipt:
        """Approve a raised GRN and complete its purchase order."""
        with unit_of_work(self.db, "GRN approval"):
            grn = self.get_grn(grn_id)
            if grn.status != GRNStatus.RAISED:
                raise InvalidStateError(
                    f"Goods receipt {grn_id} is {grn.status.value}, not raised",
                    {"grn_id": grn_id, "status": grn.status.value},
                )
            grn.status = GRNStatus.APPROVED
            grn.approved_by = approver_id
            grn.approved_at = datetime.now(timezone.utc)
            record_approval(
                self.db,
                WorkflowEntity.GOODS_RECEIPT,
                grn.id,
                actor_id=approver_id,
                actor_role="company_admin",
                company_id=grn.company_id,
                previous_status=GRNStatus.RAISED,
                new_status=GRNStatus.APPROVED,
                remarks=remarks,
            )
            self.po_service.complete(self.po_service.get(grn.po_id))

        logger.info(f"GRN {grn_id} approved by {approver_id}")
        emit(
            WorkflowEventType.APPROVED,
            WorkflowEntity.GOODS_RECEIPT,
            grn.id,
            company_id=grn.company_id,
            actor_id=approver_id,
            actor_role="company_admin",
            previous_status=GRNStatus.RAISED,
            new_status=grn.status,
            po_id=grn.po_id,
        )
        return grn

    def reject_grn(
        self,
        grn_id: int,
        approver_id: int,
        reason_code: Optional[RejectionReasonCode],
        remarks: Optional[str] = None,
    ) -> GoodsReceipt:
        """Reject a raised GRN. The PO stays open for a corrected GRN."""
        if reason_code is None:
            raise ValidationError("A rejection reason code is required", {"field": "reason_code"})
        reason_code = RejectionReasonCode(reason_code)

        with unit_of_work(self.db, "GRN rejection"):
            grn = self.get_grn(grn_id)
            if grn.status != GRNStatus.RAISED:
                raise InvalidStateError(
                    f"Goods receipt {grn_id} is {grn.status.value}, not raised",
                    {"grn_id": grn_id, "status": grn.status.value},
                )
            grn.status = GRNStatus.REJECTED
            grn.rejected_by = approver_id
            grn.rejected_at = datetime.now(timezone.utc)
            grn.rejection_reason = reason_code.value
            grn.rejection_remarks = remarks
            record_rejection(
                self.db,
                WorkflowEntity.GOODS_RECEIPT,
                grn.id,
                reason_code=reason_code,
                rejected_by=approver_id,
                rejected_by_role="company_admin",
                company_id=grn.company_id,
                stage="grn_approval",
                previous_status=GRNStatus.RAISED,
                new_status=GRNStatus.REJECTED,
                remarks=remarks,
            )

        logger.info(f"GRN {grn_id} rejected by {approver_id}: {reason_code.value}")
        emit(
            WorkflowEventType.REJECTED,
            WorkflowEntity.GOODS_RECEIPT,
            grn.id,
            company_id=grn.company_id,
            actor_id=approver_id,
            actor_role="company_admin",
            previous_status=GRNStatus.RAISED,
            new_status=grn.status,
            po_id=grn.po_id,
            reason_code=reason_code.value,
        )
        return grn

    # ------------------------------------------------------------------
    # Invoice
    # ------------------------------------------------------------------

    def create_invoice(
        self,
        grn_id: int,
        invoice_number: str,
        invoice_date: date,
        supplier_invoice_ref: str,
        tax_amount: Decimal = Decimal("0"),
        raised_by: Optional[int] = None,
        supplier_id: Optional[int] = None,
    ) -> Invoice:
        """Raise the invoice of an approved GRN.

        Line amount is accepted quantity times the catalog price captured at
        checkout; total is the subtotal plus the tax/charge amount.
        """
        invoice_number = (invoice_number or "").strip()
        supplier_invoice_ref = (supplier_invoice_ref or "").strip()
        if not invoice_number:
            raise ValidationError("Invoice number is required", {"field": "invoice_number"})
        if not supplier_invoice_ref:
            raise ValidationError("Supplier invoice reference is required", {"field": "supplier_invoice_ref"})
        if invoice_date is None:
            raise ValidationError("Invoice date is required", {"field": "invoice_date"})
        tax_amount = _money(tax_amount if tax_amount is not None else 0)
        if tax_amount < 0:
            raise ValidationError("Tax amount cannot be negative", {"field": "tax_amount"})

        grn = self.get_grn(grn_id)
        if supplier_id is not None and supplier_id != grn.supplier_id:
            raise SupplierMismatch(
                f"Goods receipt {grn_id} belongs to supplier {grn.supplier_id}",
                {"grn_id": grn_id, "supplier_id": supplier_id},
            )
        if grn.status != GRNStatus.APPROVED:
            raise InvalidStateError(
                f"Goods receipt {grn_id} is not approved",
                {"grn_id": grn_id, "status": grn.status.value},
            )
        existing = self.invoice_for_grn(grn_id)
        if existing is not None:
            raise InvariantViolation(
                f"Goods receipt {grn_id} already has invoice {existing.id}",
                {"grn_id": grn_id, "invoice_id": existing.id},
            )

        invoice = Invoice(
            grn_id=grn.id,
            po_id=grn.po_id,
            supplier_id=grn.supplier_id,
            company_id=grn.company_id,
            invoice_number=invoice_number,
            invoice_date=invoice_date,
            supplier_invoice_ref=supplier_invoice_ref,
            tax_amount=tax_amount,
            status=InvoiceStatus.RAISED,
            raised_by=raised_by,
        )
        subtotal = Decimal("0")
        for grn_line in grn.lines:
            line_total = _money(grn_line.accepted_qty * Decimal(str(grn_line.unit_price)))
            subtotal += line_total
            invoice.lines.append(InvoiceLine(
                grn_line_id=grn_line.id,
                product_id=grn_line.product_id,
                size=grn_line.size,
                quantity=grn_line.accepted_qty,
                unit_price=grn_line.unit_price,
                line_total=line_total,
            ))
        invoice.subtotal = _money(subtotal)
        invoice.total = _money(subtotal + tax_amount)

        try:
            with unit_of_work(self.db, "invoice creation"):
                self.db.add(invoice)
                self.db.flush()
        except IntegrityError as e:
            raise InvariantViolation(
                f"Goods receipt {grn_id} already has an invoice",
                {"grn_id": grn_id},
            ) from e

        self.db.refresh(invoice)
        logger.info(
            f"Invoice {invoice.id} ({invoice_number}) raised for GRN {grn_id}: "
            f"subtotal {invoice.subtotal}, tax {invoice.tax_amount}, total {invoice.total}"
        )
        emit(
            WorkflowEventType.SUBMITTED,
            WorkflowEntity.INVOICE,
            invoice.id,
            company_id=invoice.company_id,
            actor_id=raised_by,
            new_status=invoice.status,
            grn_id=grn_id,
            supplier_id=invoice.supplier_id,
            total=str(invoice.total),
        )
        return invoice

    def approve_invoice(self, invoice_id: int, approver_id: int, remarks: Optional[str] = None) -> Invoice:
        """Approve a raised invoice. Approved invoices are final."""
        with unit_of_work(self.db, "invoice approval"):
            invoice = self.get_invoice(invoice_id)
            if invoice.status != InvoiceStatus.RAISED:
                raise InvalidStateError(
                    f"Invoice {invoice_id} is {invoice.status.value}, not raised",
                    {"invoice_id": invoice_id, "status": invoice.status.value},
                )
            invoice.status = InvoiceStatus.APPROVED
            invoice.approved_by = approver_id
            invoice.approved_at = datetime.now(timezone.utc)
            record_approval(
                self.db,
                WorkflowEntity.INVOICE,
                invoice.id,
                actor_id=approver_id,
                actor_role="company_admin",
                company_id=invoice.company_id,
                previous_status=InvoiceStatus.RAISED,
                new_status=InvoiceStatus.APPROVED,
                remarks=remarks,
            )

        logger.info(f"Invoice {invoice_id} approved by {approver_id}")
        emit(
            WorkflowEventType.APPROVED,
            WorkflowEntity.INVOICE,
            invoice.id,
            company_id=invoice.company_id,
            actor_id=approver_id,
            actor_role="company_admin",
            previous_status=InvoiceStatus.RAISED,
            new_status=invoice.status,
            grn_id=invoice.grn_id,
        )
        return invoice

    def reject_invoice(
        self,
        invoice_id: int,
        approver_id: int,
        reason_code: Optional[RejectionReasonCode],
        remarks: Optional[str] = None,
    ) -> Invoice:
        """Reject a raised invoice. The supplier may raise a corrected one."""
        if reason_code is None:
            raise ValidationError("A rejection reason code is required", {"field": "reason_code"})
        reason_code = RejectionReasonCode(reason_code)

        with unit_of_work(self.db, "invoice rejection"):
            invoice = self.get_invoice(invoice_id)
            if invoice.status != InvoiceStatus.RAISED:
                raise InvalidStateError(
                    f"Invoice {invoice_id} is {invoice.status.value}, not raised",
                    {"invoice_id": invoice_id, "status": invoice.status.value},
                )
            invoice.status = InvoiceStatus.REJECTED
            invoice.rejected_by = approver_id
            invoice.rejected_at = datetime.now(timezone.utc)
            invoice.rejection_reason = reason_code.value
            invoice.rejection_remarks = remarks
            record_rejection(
                self.db,
                WorkflowEntity.INVOICE,
                invoice.id,
                reason_code=reason_code,
                rejected_by=approver_id,
                rejected_by_role="company_admin",
                company_id=invoice.company_id,
                stage="invoice_approval",
                previous_status=InvoiceStatus.RAISED,
                new_status=InvoiceStatus.REJECTED,
                remarks=remarks,
            )

        logger.info(f"Invoice {invoice_id} rejected by {approver_id}: {reason_code.value}")
        emit(
            WorkflowEventType.REJECTED,
            WorkflowEntity.INVOICE,
            invoice.id,
            company_id=invoice.company_id,
            actor_id=approver_id,
            actor_role="company_admin",
            previous_status=InvoiceStatus.RAISED,
            new_status=invoice.status,
            grn_id=invoice.grn_id,
            reason_code=reason_code.value,
        )
        return invoice
