"""Business logic for client payments."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import func
from sqlmodel import Session, col, select

from doula_crm import events
from doula_crm.client_services.models import ClientService
from doula_crm.client_services.service import recompute_payment_status
from doula_crm.core.context import RequestContext
from doula_crm.core.errors import InvalidOperationError
from doula_crm.core.models import apply_changes, to_dict
from doula_crm.leads.service import get_org_lead

from .models import Payment, PaymentRecordStatus
from .schemas import PaymentCreate, PaymentUpdate

logger = logging.getLogger(__name__)


def service_total_paid(session: Session, service_id: str) -> float:
    """Sum of completed payments recorded against a service."""
    total = session.exec(
        select(func.coalesce(func.sum(Payment.amount), 0.0)).where(
            Payment.service_id == service_id,
            Payment.status == PaymentRecordStatus.COMPLETED.value,
        )
    ).one()
    return float(total or 0)


class PaymentService:
    def __init__(self, session: Session, ctx: RequestContext):
        self.session = session
        self.ctx = ctx

    def list_payments(self, client_id: Optional[str] = None, service_id: Optional[str] = None) -> list[Payment]:
        statement = select(Payment).where(Payment.organization_id == self.ctx.organization_id)
        if client_id:
            statement = statement.where(Payment.client_id == client_id)
        if service_id:
            statement = statement.where(Payment.service_id == service_id)
        return list(self.session.exec(statement.order_by(col(Payment.created_at).desc())).all())

    def get_payment(self, payment_id: str) -> Optional[Payment]:
        payment = self.session.get(Payment, payment_id)
        if not payment or payment.organization_id != self.ctx.organization_id:
            return None
        return payment

    def add_payment(self, data: PaymentCreate) -> Payment:
        if not get_org_lead(self.session, self.ctx.organization_id, data.client_id):
            raise InvalidOperationError("Client not found")
        if data.service_id:
            self._get_service(data.service_id)

        payment = Payment(organization_id=self.ctx.organization_id, **data.model_dump())
        self.session.add(payment)
        self.session.flush()
        if payment.service_id and payment.status == PaymentRecordStatus.COMPLETED.value:
            self._sync_service(payment.service_id)
        self.session.commit()
        self.session.refresh(payment)

        logger.info(
            "Payment recorded",
            extra={"organization_id": payment.organization_id, "record_id": payment.id},
        )
        record = to_dict(payment)
        events.record_created(self.session, payment.organization_id, "payment", record)
        if payment.status == PaymentRecordStatus.COMPLETED.value:
            events.workflow_trigger(self.session, payment.organization_id, "payment", "payment_received", record)
        self.session.refresh(payment)
        return payment

    def update_payment(self, payment_id: str, data: PaymentUpdate) -> Optional[Payment]:
        payment = self.get_payment(payment_id)
        if not payment:
            return None
        previous = to_dict(payment)
        apply_changes(payment, data.model_dump(exclude_unset=True))
        self.session.add(payment)
        if payment.service_id:
            self.session.flush()
            self._sync_service(payment.service_id)
        self.session.commit()
        self.session.refresh(payment)
        events.record_updated(self.session, payment.organization_id, "payment", to_dict(payment), previous)
        self.session.refresh(payment)
        return payment

    def update_status(self, payment_id: str, status: str) -> Optional[Payment]:
        payment = self.get_payment(payment_id)
        if not payment:
            return None
        previous = to_dict(payment)
        apply_changes(payment, {"status": status})
        self.session.add(payment)
        if payment.service_id:
            self.session.flush()
            self._sync_service(payment.service_id)
        self.session.commit()
        self.session.refresh(payment)

        record = to_dict(payment)
        events.record_updated(self.session, payment.organization_id, "payment", record, previous)
        if status == PaymentRecordStatus.COMPLETED.value and previous["status"] != status:
            events.workflow_trigger(self.session, payment.organization_id, "payment", "payment_received", record)
        self.session.refresh(payment)
        return payment

    def delete_payment(self, payment_id: str) -> Optional[Payment]:
        payment = self.get_payment(payment_id)
        if not payment:
            return None
        service_id = payment.service_id
        self.session.delete(payment)
        self.session.flush()
        if service_id:
            self._sync_service(service_id)
        self.session.commit()
        return payment

    def client_summary(self, client_id: str) -> dict[str, float]:
        """Totals over every payment of a client. Outstanding is total minus paid."""
        summary = {"total": 0.0, "paid": 0.0, "pending": 0.0, "outstanding": 0.0}
        for payment in self.list_payments(client_id=client_id):
            amount = payment.amount or 0.0
            summary["total"] += amount
            if payment.status == PaymentRecordStatus.COMPLETED.value:
                summary["paid"] += amount
            elif payment.status == PaymentRecordStatus.PENDING.value:
                summary["pending"] += amount
        summary["outstanding"] = summary["total"] - summary["paid"]
        return summary

    def _get_service(self, service_id: str) -> ClientService:
        service = self.session.get(ClientService, service_id)
        if not service or service.organization_id != self.ctx.organization_id:
            raise InvalidOperationError("Service not found")
        return service

    def _sync_service(self, service_id: str) -> None:
        service = self.session.get(ClientService, service_id)
        if service:
            recompute_payment_status(self.session, service, service_total_paid(self.session, service_id))
