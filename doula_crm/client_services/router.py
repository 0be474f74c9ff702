"""API routes for client services."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session

from doula_crm.core.context import RequestContext, get_request_context
from doula_crm.core.database import get_session

from .schemas import PaymentStatusUpdate, ServiceCreate, ServiceRead, ServiceStatusUpdate, ServiceUpdate
from .service import ClientServiceRepository

router = APIRouter(prefix="/services", tags=["services"])


def get_repository(
    session: Session = Depends(get_session),
    ctx: RequestContext = Depends(get_request_context),
) -> ClientServiceRepository:
    return ClientServiceRepository(session, ctx)


def _not_found(service_id: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Service '{service_id}' not found")


@router.get("", response_model=list[ServiceRead])
def list_client_services(client_id: str, repo: ClientServiceRepository = Depends(get_repository)) -> list[ServiceRead]:
    return [ServiceRead.model_validate(s) for s in repo.list_for_client(client_id)]


@router.post("", response_model=ServiceRead, status_code=status.HTTP_201_CREATED)
def add_service(data: ServiceCreate, repo: ClientServiceRepository = Depends(get_repository)) -> ServiceRead:
    return ServiceRead.model_validate(repo.add(data))


@router.get("/{service_id}", response_model=ServiceRead)
def get_service(service_id: str, repo: ClientServiceRepository = Depends(get_repository)) -> ServiceRead:
    service = repo.get(service_id)
    if not service:
        raise _not_found(service_id)
    return ServiceRead.model_validate(service)


@router.patch("/{service_id}", response_model=ServiceRead)
def update_service(
    service_id: str, data: ServiceUpdate, repo: ClientServiceRepository = Depends(get_repository)
) -> ServiceRead:
    service = repo.update(service_id, data)
    if not service:
        raise _not_found(service_id)
    return ServiceRead.model_validate(service)


@router.post("/{service_id}/status", response_model=ServiceRead)
def update_service_status(
    service_id: str, data: ServiceStatusUpdate, repo: ClientServiceRepository = Depends(get_repository)
) -> ServiceRead:
    service = repo.update_status(service_id, data.status)
    if not service:
        raise _not_found(service_id)
    return ServiceRead.model_validate(service)


@router.post("/{service_id}/payment-status", response_model=ServiceRead)
def update_payment_status(
    service_id: str, data: PaymentStatusUpdate, repo: ClientServiceRepository = Depends(get_repository)
) -> ServiceRead:
    service = repo.update_payment_status(service_id, data.payment_status)
    if not service:
        raise _not_found(service_id)
    return ServiceRead.model_validate(service)


@router.delete("/{service_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_service(service_id: str, repo: ClientServiceRepository = Depends(get_repository)) -> None:
    if not repo.delete(service_id):
        raise _not_found(service_id)
