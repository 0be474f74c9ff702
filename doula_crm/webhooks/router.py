"""API routes for webhook administration."""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlmodel import Session

from doula_crm.core.context import RequestContext, require_admin
from doula_crm.core.database import get_session

from .dispatch import WEBHOOK_EVENTS
from .schemas import DeliveryRead, EventInfo, WebhookCreate, WebhookRead, WebhookUpdate
from .service import WebhookService

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def get_service(
    session: Session = Depends(get_session),
    ctx: RequestContext = Depends(require_admin),
) -> WebhookService:
    return WebhookService(session, ctx)


def _found(webhook, webhook_id: str):
    if not webhook:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Webhook '{webhook_id}' not found")
    return webhook


@router.get("/events", response_model=list[EventInfo])
def list_events() -> list[EventInfo]:
    return [EventInfo(event=name, description=text) for name, text in WEBHOOK_EVENTS.items()]


@router.get("", response_model=list[WebhookRead])
def list_webhooks(service: WebhookService = Depends(get_service)) -> list[WebhookRead]:
    return [WebhookRead.model_validate(w) for w in service.list_webhooks()]


@router.post("", response_model=WebhookRead, status_code=status.HTTP_201_CREATED)
def create_webhook(data: WebhookCreate, service: WebhookService = Depends(get_service)) -> WebhookRead:
    return WebhookRead.model_validate(service.create_webhook(data))


@router.get("/{webhook_id}", response_model=WebhookRead)
def get_webhook(webhook_id: str, service: WebhookService = Depends(get_service)) -> WebhookRead:
    return WebhookRead.model_validate(_found(service.get_webhook(webhook_id), webhook_id))


@router.patch("/{webhook_id}", response_model=WebhookRead)
def update_webhook(webhook_id: str, data: WebhookUpdate, service: WebhookService = Depends(get_service)) -> WebhookRead:
    return WebhookRead.model_validate(_found(service.update_webhook(webhook_id, data), webhook_id))


@router.delete("/{webhook_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_webhook(webhook_id: str, service: WebhookService = Depends(get_service)) -> None:
    _found(service.delete_webhook(webhook_id), webhook_id)


@router.post("/{webhook_id}/toggle", response_model=WebhookRead)
def toggle_webhook(webhook_id: str, service: WebhookService = Depends(get_service)) -> WebhookRead:
    return WebhookRead.model_validate(_found(service.toggle(webhook_id), webhook_id))


@router.post("/{webhook_id}/regenerate-secret", response_model=WebhookRead)
def regenerate_secret(webhook_id: str, service: WebhookService = Depends(get_service)) -> WebhookRead:
    return WebhookRead.model_validate(_found(service.regenerate_secret(webhook_id), webhook_id))


@router.get("/{webhook_id}/deliveries", response_model=list[DeliveryRead])
def list_deliveries(
    webhook_id: str,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    service: WebhookService = Depends(get_service),
) -> list[DeliveryRead]:
    _found(service.get_webhook(webhook_id), webhook_id)
    return [DeliveryRead.model_validate(d) for d in service.list_deliveries(webhook_id, limit, offset)]


@router.post("/{webhook_id}/test", response_model=DeliveryRead)
def test_webhook(webhook_id: str, service: WebhookService = Depends(get_service)) -> DeliveryRead:
    return DeliveryRead.model_validate(_found(service.send_test(webhook_id), webhook_id))
