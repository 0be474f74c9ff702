"""Invoice numbering, totals and lifecycle."""

from __future__ import annotations

import logging
import re
from typing import Any, Iterable, Optional

from sqlmodel import Session, col, select

from doula_crm import events
from doula_crm.core.context import RequestContext
from doula_crm.core.errors import InvalidOperationError
from doula_crm.core.models import apply_changes, to_dict, today, utcnow
from doula_crm.leads.service import get_org_lead

from .models import CLIENT_VISIBLE_STATUSES, Invoice, InvoicePayment, InvoiceStatus
from .schemas import InvoiceCreate, InvoicePaymentCreate, InvoiceUpdate, LineItem

logger = logging.getLogger(__name__)

_NUMBER_PATTERN = re.compile(r"^INV-(\d{4})-(\d+)$")


# =============================================================================
# Pure helpers
# =============================================================================


def next_invoice_number(existing: Iterable[str], year: int) -> str:
    """Next ``INV-YYYY-NNNN`` number after the highest one issued in ``year``."""
    highest = 0
    for number in existing:
        match = _NUMBER_PATTERN.match(number or "")
        if match and int(match.group(1)) == year:
            highest = max(highest, int(match.group(2)))
    return f"INV-{year}-{highest + 1:04d}"


def normalize_line_items(items: Iterable[LineItem | dict[str, Any]]) -> list[dict[str, Any]]:
    """Fill in missing line totals as quantity x unit_price."""
    normalized = []
    for item in items:
        if not isinstance(item, LineItem):
            item = LineItem.model_validate(item)
        total = item.total if item.total is not None else round(item.quantity * item.unit_price, 2)
        normalized.append({**item.model_dump(), "total": total})
    return normalized


def calculate_totals(
    line_items: list[dict[str, Any]],
    tax_rate: float,
    discount_amount: float,
    amount_paid: float = 0.0,
) -> dict[str, float]:
    subtotal = round(sum(float(item.get("total") or 0) for item in line_items), 2)
    tax_amount = round(subtotal * tax_rate, 2)
    total = round(subtotal + tax_amount - discount_amount, 2)
    return {
        "subtotal": subtotal,
        "tax_rate": tax_rate,
        "tax_amount": tax_amount,
        "discount_amount": discount_amount,
        "total": total,
        "balance_due": round(total - amount_paid, 2),
    }


# =============================================================================
# Service
# =============================================================================


class InvoiceService:
    """Invoice operations scoped to the caller's organization."""

    def __init__(self, session: Session, ctx: RequestContext):
        self.session = session
        self.ctx = ctx

    def get_invoice(self, invoice_id: str) -> Optional[Invoice]:
        invoice = self.session.get(Invoice, invoice_id)
        if not invoice or invoice.organization_id != self.ctx.organization_id:
            return None
        return invoice

    def list_invoices(self, client_id: Optional[str] = None, status: Optional[str] = None) -> list[Invoice]:
        statement = select(Invoice).where(Invoice.organization_id == self.ctx.organization_id)
        if client_id:
            statement = statement.where(Invoice.client_id == client_id)
        if status:
            statement = statement.where(Invoice.status == status)
        return list(self.session.exec(statement.order_by(col(Invoice.created_at).desc())).all())

    def client_visible_invoices(self, client_id: str) -> list[Invoice]:
        statement = select(Invoice).where(
            Invoice.organization_id == self.ctx.organization_id,
            Invoice.client_id == client_id,
            col(Invoice.status).in_(CLIENT_VISIBLE_STATUSES),
        )
        return list(self.session.exec(statement.order_by(col(Invoice.issue_date).desc())).all())

    def create_invoice(self, data: InvoiceCreate) -> Invoice:
        if not get_org_lead(self.session, self.ctx.organization_id, data.client_id):
            raise InvalidOperationError("Client not found")

        line_items = normalize_line_items(data.line_items)
        issue_date = today()
        invoice = Invoice(
            organization_id=self.ctx.organization_id,
            invoice_number=self._next_number(issue_date.year),
            client_id=data.client_id,
            service_id=data.service_id,
            status=InvoiceStatus.DRAFT.value,
            line_items=line_items,
            issue_date=issue_date,
            due_date=data.due_date,
            notes=data.notes,
            client_notes=data.client_notes,
            terms=data.terms,
            **calculate_totals(line_items, data.tax_rate, data.discount_amount),
        )
        self.session.add(invoice)
        self.session.commit()
        self.session.refresh(invoice)

        logger.info(
            "Invoice created",
            extra={"organization_id": invoice.organization_id, "record_id": invoice.id},
        )
        events.record_created(self.session, invoice.organization_id, "invoice", to_dict(invoice), "invoice.created")
        self.session.refresh(invoice)
        return invoice

    def update_invoice(self, invoice_id: str, data: InvoiceUpdate) -> Optional[Invoice]:
        invoice = self.get_invoice(invoice_id)
        if not invoice:
            return None
        changes = data.model_dump(exclude_unset=True)
        if "line_items" in changes and invoice.status != InvoiceStatus.DRAFT.value:
            raise InvalidOperationError("Line items can only be changed on draft invoices")

        previous = to_dict(invoice)
        line_items = invoice.line_items
        if changes.get("line_items") is not None:
            line_items = normalize_line_items(data.line_items or [])
            changes["line_items"] = line_items
        else:
            changes.pop("line_items", None)
        tax_rate = changes.pop("tax_rate", None)
        discount = changes.pop("discount_amount", None)
        changes.update(
            calculate_totals(
                line_items,
                invoice.tax_rate if tax_rate is None else tax_rate,
                invoice.discount_amount if discount is None else discount,
                invoice.amount_paid,
            )
        )
        apply_changes(invoice, changes)
        self.session.add(invoice)
        self.session.commit()
        self.session.refresh(invoice)
        events.record_updated(self.session, invoice.organization_id, "invoice", to_dict(invoice), previous)
        self.session.refresh(invoice)
        return invoice

    def delete_invoice(self, invoice_id: str) -> Optional[Invoice]:
        invoice = self.get_invoice(invoice_id)
        if not invoice:
            return None
        if invoice.status != InvoiceStatus.DRAFT.value:
            raise InvalidOperationError("Only draft invoices can be deleted")
        self.session.delete(invoice)
        self.session.commit()
        return invoice

    def send_invoice(self, invoice_id: str) -> Optional[Invoice]:
        invoice = self.get_invoice(invoice_id)
        if not invoice:
            return None
        if invoice.status != InvoiceStatus.DRAFT.value:
            raise InvalidOperationError("Invoice has already been sent")
        return self._transition(invoice, {"status": InvoiceStatus.SENT.value, "sent_at": utcnow()})

    def record_payment(self, invoice_id: str, data: InvoicePaymentCreate) -> Optional[InvoicePayment]:
        invoice = self.get_invoice(invoice_id)
        if not invoice:
            return None
        if invoice.status in (InvoiceStatus.DRAFT.value, InvoiceStatus.CANCELLED.value):
            raise InvalidOperationError(f"Cannot record a payment on a {invoice.status} invoice")

        payment = InvoicePayment(
            organization_id=invoice.organization_id,
            invoice_id=invoice.id,
            amount=data.amount,
            payment_method=data.payment_method,
            payment_reference=data.payment_reference,
            payment_date=data.payment_date or today(),
            notes=data.notes,
        )
        self.session.add(payment)

        amount_paid = round(invoice.amount_paid + data.amount, 2)
        paid = amount_paid >= invoice.total
        changes: dict[str, Any] = {
            "amount_paid": amount_paid,
            "balance_due": round(invoice.total - amount_paid, 2),
            "status": InvoiceStatus.PAID.value if paid else InvoiceStatus.PARTIAL.value,
            "payment_method": data.payment_method,
        }
        if paid:
            changes["paid_at"] = utcnow()
        self._transition(invoice, changes, "invoice.paid" if paid else None)
        self.session.refresh(payment)
        return payment

    def list_payments(self, invoice_id: str) -> list[InvoicePayment]:
        statement = select(InvoicePayment).where(
            InvoicePayment.invoice_id == invoice_id,
            InvoicePayment.organization_id == self.ctx.organization_id,
        )
        return list(self.session.exec(statement.order_by(col(InvoicePayment.payment_date).desc())).all())

    def cancel_invoice(self, invoice_id: str) -> Optional[Invoice]:
        invoice = self.get_invoice(invoice_id)
        if not invoice:
            return None
        if invoice.status == InvoiceStatus.PAID.value:
            raise InvalidOperationError("Cannot cancel a paid invoice. Process a refund instead.")
        return self._transition(invoice, {"status": InvoiceStatus.CANCELLED.value})

    def mark_overdue(self, invoice_id: str) -> Optional[Invoice]:
        invoice = self.get_invoice(invoice_id)
        if not invoice:
            return None
        if invoice.status not in (InvoiceStatus.SENT.value, InvoiceStatus.PARTIAL.value):
            raise InvalidOperationError("Only sent or partial invoices can be marked as overdue")
        return self._transition(invoice, {"status": InvoiceStatus.OVERDUE.value}, "invoice.overdue")

    def get_stats(self, client_id: Optional[str] = None) -> dict[str, Any]:
        """Totals over issued invoices. Drafts and cancelled invoices are excluded."""
        statement = select(Invoice).where(
            Invoice.organization_id == self.ctx.organization_id,
            col(Invoice.status).not_in([InvoiceStatus.DRAFT.value, InvoiceStatus.CANCELLED.value]),
        )
        if client_id:
            statement = statement.where(Invoice.client_id == client_id)

        stats: dict[str, Any] = {
            "total_invoiced": 0.0,
            "total_paid": 0.0,
            "total_outstanding": 0.0,
            "invoice_count": 0,
            "paid_count": 0,
            "pending_count": 0,
            "overdue_count": 0,
        }
        for invoice in self.session.exec(statement).all():
            stats["invoice_count"] += 1
            stats["total_invoiced"] += invoice.total
            stats["total_paid"] += invoice.amount_paid
            stats["total_outstanding"] += invoice.total - invoice.amount_paid
            if invoice.status == InvoiceStatus.PAID.value:
                stats["paid_count"] += 1
            elif invoice.status == InvoiceStatus.OVERDUE.value:
                stats["overdue_count"] += 1
            else:
                stats["pending_count"] += 1
        return stats

    def _next_number(self, year: int) -> str:
        numbers = self.session.exec(
            select(Invoice.invoice_number).where(
                Invoice.organization_id == self.ctx.organization_id,
                col(Invoice.invoice_number).startswith(f"INV-{year}-"),
            )
        ).all()
        return next_invoice_number(numbers, year)

    def _transition(self, invoice: Invoice, changes: dict[str, Any], webhook_event: Optional[str] = None) -> Invoice:
        previous = to_dict(invoice)
        apply_changes(invoice, changes)
        self.session.add(invoice)
        self.session.commit()
        self.session.refresh(invoice)
        logger.info(
            "Invoice status changed",
            extra={"record_id": invoice.id, "from": previous["status"], "to": invoice.status},
        )
        events.record_updated(
            self.session, invoice.organization_id, "invoice", to_dict(invoice), previous, webhook_event
        )
        self.session.refresh(invoice)
        return invoice
