"""API routes for invoices."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session

from doula_crm.core.context import RequestContext, get_request_context
from doula_crm.core.database import get_session

from .schemas import (
    InvoiceCreate,
    InvoicePaymentCreate,
    InvoicePaymentRead,
    InvoiceRead,
    InvoiceStats,
    InvoiceUpdate,
)
from .service import InvoiceService

router = APIRouter(prefix="/invoices", tags=["invoices"])


def get_service(
    session: Session = Depends(get_session),
    ctx: RequestContext = Depends(get_request_context),
) -> InvoiceService:
    return InvoiceService(session, ctx)


def _not_found(invoice_id: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Invoice '{invoice_id}' not found")


@router.get("", response_model=list[InvoiceRead])
def list_invoices(
    client_id: Optional[str] = None,
    status: Optional[str] = None,
    service: InvoiceService = Depends(get_service),
) -> list[InvoiceRead]:
    return [InvoiceRead.model_validate(i) for i in service.list_invoices(client_id=client_id, status=status)]


@router.get("/stats", response_model=InvoiceStats)
def invoice_stats(client_id: Optional[str] = None, service: InvoiceService = Depends(get_service)) -> InvoiceStats:
    return InvoiceStats(**service.get_stats(client_id))


@router.get("/client/{client_id}/visible", response_model=list[InvoiceRead])
def client_visible_invoices(client_id: str, service: InvoiceService = Depends(get_service)) -> list[InvoiceRead]:
    return [InvoiceRead.model_validate(i) for i in service.client_visible_invoices(client_id)]


@router.post("", response_model=InvoiceRead, status_code=status.HTTP_201_CREATED)
def create_invoice(data: InvoiceCreate, service: InvoiceService = Depends(get_service)) -> InvoiceRead:
    return InvoiceRead.model_validate(service.create_invoice(data))


@router.get("/{invoice_id}", response_model=InvoiceRead)
def get_invoice(invoice_id: str, service: InvoiceService = Depends(get_service)) -> InvoiceRead:
    invoice = service.get_invoice(invoice_id)
    if not invoice:
        raise _not_found(invoice_id)
    return InvoiceRead.model_validate(invoice)


@router.patch("/{invoice_id}", response_model=InvoiceRead)
def update_invoice(invoice_id: str, data: InvoiceUpdate, service: InvoiceService = Depends(get_service)) -> InvoiceRead:
    invoice = service.update_invoice(invoice_id, data)
    if not invoice:
        raise _not_found(invoice_id)
    return InvoiceRead.model_validate(invoice)


@router.delete("/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_invoice(invoice_id: str, service: InvoiceService = Depends(get_service)) -> None:
    if not service.delete_invoice(invoice_id):
        raise _not_found(invoice_id)


@router.post("/{invoice_id}/send", response_model=InvoiceRead)
def send_invoice(invoice_id: str, service: InvoiceService = Depends(get_service)) -> InvoiceRead:
    invoice = service.send_invoice(invoice_id)
    if not invoice:
        raise _not_found(invoice_id)
    return InvoiceRead.model_validate(invoice)


@router.post("/{invoice_id}/cancel", response_model=InvoiceRead)
def cancel_invoice(invoice_id: str, service: InvoiceService = Depends(get_service)) -> InvoiceRead:
    invoice = service.cancel_invoice(invoice_id)
    if not invoice:
        raise _not_found(invoice_id)
    return InvoiceRead.model_validate(invoice)


@router.post("/{invoice_id}/overdue", response_model=InvoiceRead)
def mark_invoice_overdue(invoice_id: str, service: InvoiceService = Depends(get_service)) -> InvoiceRead:
    invoice = service.mark_overdue(invoice_id)
    if not invoice:
        raise _not_found(invoice_id)
    return InvoiceRead.model_validate(invoice)


@router.get("/{invoice_id}/payments", response_model=list[InvoicePaymentRead])
def list_invoice_payments(invoice_id: str, service: InvoiceService = Depends(get_service)) -> list[InvoicePaymentRead]:
    if not service.get_invoice(invoice_id):
        raise _not_found(invoice_id)
    return [InvoicePaymentRead.model_validate(p) for p in service.list_payments(invoice_id)]


@router.post("/{invoice_id}/payments", response_model=InvoicePaymentRead, status_code=status.HTTP_201_CREATED)
def record_invoice_payment(
    invoice_id: str, data: InvoicePaymentCreate, service: InvoiceService = Depends(get_service)
) -> InvoicePaymentRead:
    payment = service.record_payment(invoice_id, data)
    if not payment:
        raise _not_found(invoice_id)
    return InvoicePaymentRead.model_validate(payment)
