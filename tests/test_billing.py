"""Tests for services, payments and invoices."""

import pytest

from conftest import auth
from doula_crm.client_services.models import ClientService
from doula_crm.client_services.service import recompute_payment_status
from doula_crm.core.context import RequestContext
from doula_crm.core.errors import InvalidOperationError
from doula_crm.core.models import today
from doula_crm.invoices.schemas import InvoiceCreate, InvoicePaymentCreate, InvoiceUpdate, LineItem
from doula_crm.invoices.service import InvoiceService, calculate_totals, next_invoice_number, normalize_line_items
from doula_crm.leads.schemas import LeadCreate
from doula_crm.leads.service import LeadService


@pytest.fixture
def maya(session, owner_ctx):
    return LeadService(session, owner_ctx).create_lead(LeadCreate(name="Maya Lopez", email="maya@example.com"))


@pytest.fixture
def invoices(session, owner_ctx):
    return InvoiceService(session, owner_ctx)


def draft(invoices, client_id, **kwargs):
    items = kwargs.pop("line_items", [LineItem(description="Birth doula package", unit_price=1500)])
    return invoices.create_invoice(InvoiceCreate(client_id=client_id, line_items=items, **kwargs))


# =============================================================================
# Invoice helpers
# =============================================================================


class TestInvoiceNumbers:
    def test_first_number_of_year(self):
        assert next_invoice_number([], 2026) == "INV-2026-0001"

    def test_continues_after_highest_in_year(self):
        existing = ["INV-2026-0002", "INV-2026-0010", "INV-2025-0099", "LEGACY-7"]
        assert next_invoice_number(existing, 2026) == "INV-2026-0011"

    def test_sequence_per_organization(self, session, invoices, maya, other_org):
        first = draft(invoices, maya.id)
        second = draft(invoices, maya.id)
        year = today().year
        assert first.invoice_number == f"INV-{year}-0001"
        assert second.invoice_number == f"INV-{year}-0002"

        other_ctx = RequestContext.for_user(other_org[1])
        outsider = LeadService(session, other_ctx).create_lead(LeadCreate(name="Ana", email="ana@example.com"))
        other = draft(InvoiceService(session, other_ctx), outsider.id)
        assert other.invoice_number == f"INV-{year}-0001"


class TestInvoiceTotals:
    def test_line_totals_default_to_quantity_times_price(self):
        items = normalize_line_items(
            [
                {"description": "Prenatal visit", "quantity": 3, "unit_price": 120},
                {"description": "Fee", "unit_price": 50, "total": 45},
            ]
        )
        assert [item["total"] for item in items] == [360, 45]

    def test_tax_and_discount(self):
        totals = calculate_totals([{"total": 1000}], tax_rate=0.08, discount_amount=50, amount_paid=200)
        assert totals == {
            "subtotal": 1000,
            "tax_rate": 0.08,
            "tax_amount": 80,
            "discount_amount": 50,
            "total": 1030,
            "balance_due": 830,
        }


# =============================================================================
# Invoice lifecycle
# =============================================================================


class TestInvoiceLifecycle:
    """Test the draft -> sent -> partial -> paid flow and its guards."""

    def test_create_as_draft(self, invoices, maya):
        invoice = draft(invoices, maya.id, tax_rate=0.1)
        assert invoice.status == "draft"
        assert invoice.issue_date == today()
        assert invoice.subtotal == 1500
        assert invoice.total == 1650
        assert invoice.balance_due == 1650

    def test_unknown_client(self, invoices):
        with pytest.raises(InvalidOperationError, match="Client not found"):
            draft(invoices, "missing")

    def test_update_recomputes_totals(self, invoices, maya):
        invoice = draft(invoices, maya.id)
        invoices.update_invoice(invoice.id, InvoiceUpdate(discount_amount=100))
        assert invoice.total == 1400

    def test_line_items_locked_after_send(self, invoices, maya):
        invoice = draft(invoices, maya.id)
        invoices.send_invoice(invoice.id)
        assert invoice.status == "sent"
        assert invoice.sent_at is not None
        with pytest.raises(InvalidOperationError, match="draft invoices"):
            invoices.update_invoice(invoice.id, InvoiceUpdate(line_items=[LineItem(description="X", unit_price=1)]))
        with pytest.raises(InvalidOperationError, match="already been sent"):
            invoices.send_invoice(invoice.id)

    def test_payments_move_to_partial_then_paid(self, invoices, maya):
        invoice = draft(invoices, maya.id)
        with pytest.raises(InvalidOperationError, match="draft invoice"):
            invoices.record_payment(invoice.id, InvoicePaymentCreate(amount=500, payment_method="card"))

        invoices.send_invoice(invoice.id)
        invoices.record_payment(invoice.id, InvoicePaymentCreate(amount=500, payment_method="card"))
        assert invoice.status == "partial"
        assert invoice.balance_due == 1000

        invoices.record_payment(invoice.id, InvoicePaymentCreate(amount=1000, payment_method="check"))
        assert invoice.status == "paid"
        assert invoice.paid_at is not None
        assert invoice.balance_due == 0
        assert len(invoices.list_payments(invoice.id)) == 2

        with pytest.raises(InvalidOperationError, match="refund"):
            invoices.cancel_invoice(invoice.id)

    def test_mark_overdue_requires_sent(self, invoices, maya):
        invoice = draft(invoices, maya.id)
        with pytest.raises(InvalidOperationError, match="sent or partial"):
            invoices.mark_overdue(invoice.id)
        invoices.send_invoice(invoice.id)
        assert invoices.mark_overdue(invoice.id).status == "overdue"

    def test_only_drafts_are_deleted(self, invoices, maya):
        invoice = draft(invoices, maya.id)
        invoices.send_invoice(invoice.id)
        with pytest.raises(InvalidOperationError, match="Only draft invoices"):
            invoices.delete_invoice(invoice.id)

    def test_stats_exclude_drafts_and_cancelled(self, invoices, maya):
        draft(invoices, maya.id)
        cancelled = draft(invoices, maya.id)
        invoices.cancel_invoice(cancelled.id)
        sent = draft(invoices, maya.id)
        invoices.send_invoice(sent.id)
        invoices.record_payment(sent.id, InvoicePaymentCreate(amount=600, payment_method="cash"))

        stats = invoices.get_stats()
        assert stats["invoice_count"] == 1
        assert stats["total_invoiced"] == 1500
        assert stats["total_paid"] == 600
        assert stats["total_outstanding"] == 900
        assert stats["pending_count"] == 1

    def test_client_visible_invoices(self, invoices, maya):
        draft(invoices, maya.id)
        sent = draft(invoices, maya.id)
        invoices.send_invoice(sent.id)
        assert [i.id for i in invoices.client_visible_invoices(maya.id)] == [sent.id]


# =============================================================================
# Services and payments
# =============================================================================


class TestPaymentStatusSync:
    """Test that completed payments drive the service payment status."""

    def test_recompute_thresholds(self, session, org):
        service = ClientService(organization_id=org.id, client_id="c1", total_amount=1000)
        assert recompute_payment_status(session, service, 0).payment_status == "unpaid"
        assert recompute_payment_status(session, service, 400).payment_status == "partial"
        assert recompute_payment_status(session, service, 1000).payment_status == "paid"

    def test_payments_update_service(self, client, owner, maya):
        service = client.post(
            "/services", json={"client_id": maya.id, "total_amount": 1200}, headers=auth(owner)
        ).json()
        assert service["payment_status"] == "unpaid"

        body = {"client_id": maya.id, "service_id": service["id"], "amount": 400, "status": "completed"}
        deposit = client.post("/payments", json=body, headers=auth(owner)).json()
        assert client.get(f"/services/{service['id']}", headers=auth(owner)).json()["payment_status"] == "partial"

        pending = client.post(
            "/payments",
            json={"client_id": maya.id, "service_id": service["id"], "amount": 800},
            headers=auth(owner),
        ).json()
        assert client.get(f"/services/{service['id']}", headers=auth(owner)).json()["payment_status"] == "partial"

        client.post(f"/payments/{pending['id']}/status", json={"status": "completed"}, headers=auth(owner))
        assert client.get(f"/services/{service['id']}", headers=auth(owner)).json()["payment_status"] == "paid"

        client.delete(f"/payments/{deposit['id']}", headers=auth(owner))
        assert client.get(f"/services/{service['id']}", headers=auth(owner)).json()["payment_status"] == "partial"

    def test_service_without_total_keeps_its_status(self, session, org, client, owner, maya):
        service = ClientService(organization_id=org.id, client_id="c1")
        assert recompute_payment_status(session, service, 500).payment_status == "unpaid"

        created = client.post("/services", json={"client_id": maya.id}, headers=auth(owner)).json()
        body = {"client_id": maya.id, "service_id": created["id"], "amount": 250, "status": "completed"}
        assert client.post("/payments", json=body, headers=auth(owner)).status_code == 201
        assert client.get(f"/services/{created['id']}", headers=auth(owner)).json()["payment_status"] == "unpaid"

    def test_status_change_moves_partial_to_paid(self, client, owner, maya):
        """Test that completing a pending payment through the status endpoint settles the service."""
        service = client.post(
            "/services", json={"client_id": maya.id, "total_amount": 500}, headers=auth(owner)
        ).json()
        deposit = {"client_id": maya.id, "service_id": service["id"], "amount": 200, "status": "completed"}
        client.post("/payments", json=deposit, headers=auth(owner))
        balance = {"client_id": maya.id, "service_id": service["id"], "amount": 300}
        pending = client.post("/payments", json=balance, headers=auth(owner)).json()
        assert client.get(f"/services/{service['id']}", headers=auth(owner)).json()["payment_status"] == "partial"

        response = client.post(f"/payments/{pending['id']}/status", json={"status": "completed"}, headers=auth(owner))
        assert response.status_code == 200
        assert client.get(f"/services/{service['id']}", headers=auth(owner)).json()["payment_status"] == "paid"

        client.post(f"/payments/{pending['id']}/status", json={"status": "refunded"}, headers=auth(owner))
        assert client.get(f"/services/{service['id']}", headers=auth(owner)).json()["payment_status"] == "partial"

    def test_client_payment_summary(self, client, owner, maya):
        client.post(
            "/payments", json={"client_id": maya.id, "amount": 300, "status": "completed"}, headers=auth(owner)
        )
        client.post("/payments", json={"client_id": maya.id, "amount": 200}, headers=auth(owner))
        summary = client.get(f"/payments/summary/{maya.id}", headers=auth(owner)).json()
        assert summary == {"total": 500, "paid": 300, "pending": 200, "outstanding": 200}

    def test_payment_for_other_org_client_rejected(self, client, maya, other_org):
        outsider = other_org[1]
        response = client.post("/payments", json={"client_id": maya.id, "amount": 100}, headers=auth(outsider))
        assert response.status_code == 400


class TestInvoiceAPI:
    def test_full_flow(self, client, owner, maya):
        body = {
            "client_id": maya.id,
            "line_items": [{"description": "Postpartum visits", "quantity": 4, "unit_price": 90}],
        }
        invoice = client.post("/invoices", json=body, headers=auth(owner)).json()
        assert invoice["total"] == 360

        assert client.post(f"/invoices/{invoice['id']}/send", headers=auth(owner)).json()["status"] == "sent"
        response = client.post(
            f"/invoices/{invoice['id']}/payments", json={"amount": 360, "payment_method": "card"}, headers=auth(owner)
        )
        assert response.status_code == 201
        assert client.get(f"/invoices/{invoice['id']}", headers=auth(owner)).json()["status"] == "paid"

    def test_zero_payment_is_rejected(self, client, owner, maya):
        invoice = client.post("/invoices", json={"client_id": maya.id}, headers=auth(owner)).json()
        response = client.post(
            f"/invoices/{invoice['id']}/payments", json={"amount": 0, "payment_method": "card"}, headers=auth(owner)
        )
        assert response.status_code == 422

    def test_cancel_paid_invoice_returns_400(self, client, owner, maya):
        body = {"client_id": maya.id, "line_items": [{"description": "Consult", "unit_price": 100}]}
        invoice = client.post("/invoices", json=body, headers=auth(owner)).json()
        client.post(f"/invoices/{invoice['id']}/send", headers=auth(owner))
        client.post(
            f"/invoices/{invoice['id']}/payments", json={"amount": 100, "payment_method": "card"}, headers=auth(owner)
        )
        assert client.post(f"/invoices/{invoice['id']}/cancel", headers=auth(owner)).status_code == 400

    def test_other_organization_gets_404(self, client, owner, maya, other_org):
        invoice = client.post("/invoices", json={"client_id": maya.id}, headers=auth(owner)).json()
        assert client.get(f"/invoices/{invoice['id']}", headers=auth(other_org[1])).status_code == 404
