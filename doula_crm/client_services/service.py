"""Business logic for client services."""

from __future__ import annotations

import logging
from typing import Optional

from sqlmodel import Session, col, select

from doula_crm import events
from doula_crm.core.context import RequestContext
from doula_crm.core.errors import InvalidOperationError
from doula_crm.core.models import apply_changes, to_dict, utcnow
from doula_crm.leads.service import get_org_lead

from .models import ClientService, PaymentStatus, ServiceStatus
from .schemas import ServiceCreate, ServiceUpdate

logger = logging.getLogger(__name__)


class ClientServiceRepository:
    """CRUD and status changes for services sold to clients."""

    def __init__(self, session: Session, ctx: RequestContext):
        self.session = session
        self.ctx = ctx

    def list_for_client(self, client_id: str) -> list[ClientService]:
        statement = (
            select(ClientService)
            .where(ClientService.organization_id == self.ctx.organization_id, ClientService.client_id == client_id)
            .order_by(col(ClientService.created_at).desc())
        )
        return list(self.session.exec(statement).all())

    def get(self, service_id: str) -> Optional[ClientService]:
        service = self.session.get(ClientService, service_id)
        if not service or service.organization_id != self.ctx.organization_id:
            return None
        return service

    def add(self, data: ServiceCreate) -> ClientService:
        if not get_org_lead(self.session, self.ctx.organization_id, data.client_id):
            raise InvalidOperationError("Client not found")
        service = ClientService(organization_id=self.ctx.organization_id, **data.model_dump())
        self.session.add(service)
        self.session.commit()
        self.session.refresh(service)
        events.record_created(self.session, service.organization_id, "service", to_dict(service))
        self.session.refresh(service)
        return service

    def update(self, service_id: str, data: ServiceUpdate) -> Optional[ClientService]:
        service = self.get(service_id)
        if not service:
            return None
        previous = to_dict(service)
        apply_changes(service, data.model_dump(exclude_unset=True))
        self.session.add(service)
        self.session.commit()
        self.session.refresh(service)
        events.record_updated(self.session, service.organization_id, "service", to_dict(service), previous)
        self.session.refresh(service)
        return service

    def update_status(self, service_id: str, status: ServiceStatus) -> Optional[ClientService]:
        service = self.get(service_id)
        if not service:
            return None
        previous = to_dict(service)
        apply_changes(service, {"status": status.value})
        self.session.add(service)
        self.session.commit()
        self.session.refresh(service)
        events.record_updated(self.session, service.organization_id, "service", to_dict(service), previous)
        self.session.refresh(service)
        return service

    def update_payment_status(self, service_id: str, payment_status: PaymentStatus) -> Optional[ClientService]:
        service = self.get(service_id)
        if not service:
            return None
        apply_changes(service, {"payment_status": payment_status.value})
        self.session.add(service)
        self.session.commit()
        self.session.refresh(service)
        return service

    def mark_contract_signed(self, service_id: str, signature_id: str) -> Optional[ClientService]:
        service = self.get(service_id)
        if not service:
            return None
        mark_contract_signed(service, signature_id)
        self.session.add(service)
        self.session.commit()
        self.session.refresh(service)
        return service

    def delete(self, service_id: str) -> Optional[ClientService]:
        service = self.get(service_id)
        if not service:
            return None
        self.session.delete(service)
        self.session.commit()
        return service


def mark_contract_signed(service: ClientService, signature_id: str) -> ClientService:
    return apply_changes(
        service,
        {"contract_signed": True, "contract_signed_at": utcnow(), "contract_signature_id": signature_id},
    )


def recompute_payment_status(session: Session, service: ClientService, total_paid: float) -> ClientService:
    """Derive payment_status from completed payments against the service total."""
    if not service.total_amount:
        logger.debug("Service has no total; payment status left as is", extra={"record_id": service.id})
        return service
    if total_paid <= 0:
        status = PaymentStatus.UNPAID
    elif total_paid >= service.total_amount:
        status = PaymentStatus.PAID
    else:
        status = PaymentStatus.PARTIAL
    if service.payment_status != status.value:
        apply_changes(service, {"payment_status": status.value})
        session.add(service)
        logger.info(
            "Service payment status recomputed",
            extra={"record_id": service.id, "status": status.value},
        )
    return service
