"""API routes for client payments."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session

from doula_crm.core.context import RequestContext, get_request_context
from doula_crm.core.database import get_session

from .schemas import PaymentCreate, PaymentRead, PaymentStatusChange, PaymentSummary, PaymentUpdate
from .service import PaymentService

router = APIRouter(prefix="/payments", tags=["payments"])


def get_service(
    session: Session = Depends(get_session),
    ctx: RequestContext = Depends(get_request_context),
) -> PaymentService:
    return PaymentService(session, ctx)


def _not_found(payment_id: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Payment '{payment_id}' not found")


@router.get("", response_model=list[PaymentRead])
def list_payments(
    client_id: Optional[str] = None,
    service_id: Optional[str] = None,
    service: PaymentService = Depends(get_service),
) -> list[PaymentRead]:
    return [PaymentRead.model_validate(p) for p in service.list_payments(client_id=client_id, service_id=service_id)]


@router.get("/summary/{client_id}", response_model=PaymentSummary)
def client_payment_summary(client_id: str, service: PaymentService = Depends(get_service)) -> PaymentSummary:
    return PaymentSummary(**service.client_summary(client_id))


@router.post("", response_model=PaymentRead, status_code=status.HTTP_201_CREATED)
def add_payment(data: PaymentCreate, service: PaymentService = Depends(get_service)) -> PaymentRead:
    return PaymentRead.model_validate(service.add_payment(data))


@router.get("/{payment_id}", response_model=PaymentRead)
def get_payment(payment_id: str, service: PaymentService = Depends(get_service)) -> PaymentRead:
    payment = service.get_payment(payment_id)
    if not payment:
        raise _not_found(payment_id)
    return PaymentRead.model_validate(payment)


@router.patch("/{payment_id}", response_model=PaymentRead)
def update_payment(payment_id: str, data: PaymentUpdate, service: PaymentService = Depends(get_service)) -> PaymentRead:
    payment = service.update_payment(payment_id, data)
    if not payment:
        raise _not_found(payment_id)
    return PaymentRead.model_validate(payment)


@router.post("/{payment_id}/status", response_model=PaymentRead)
def update_payment_status(
    payment_id: str, data: PaymentStatusChange, service: PaymentService = Depends(get_service)
) -> PaymentRead:
    payment = service.update_status(payment_id, data.status)
    if not payment:
        raise _not_found(payment_id)
    return PaymentRead.model_validate(payment)


@router.delete("/{payment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_payment(payment_id: str, service: PaymentService = Depends(get_service)) -> None:
    if not service.delete_payment(payment_id):
        raise _not_found(payment_id)
