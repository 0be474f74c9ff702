"""Signed webhook delivery.

Each subscribed webhook receives ``{"event", "timestamp", "data"}`` as JSON,
signed with HMAC-SHA256 over the exact request body:

    X-Webhook-Signature: sha256=<hex digest>

Every delivery is recorded in ``webhook_deliveries``. Failures are stored on
the delivery row and never raised to the caller.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import secrets
import time
from typing import Any, Optional

import requests
from sqlmodel import Session, select

from doula_crm.core.config import get_settings
from doula_crm.core.models import utcnow

from .models import DeliveryStatus, Webhook, WebhookDelivery

logger = logging.getLogger(__name__)

WEBHOOK_EVENTS: dict[str, str] = {
    "lead.created": "A new lead was created",
    "lead.updated": "A lead was updated",
    "lead.status_changed": "A lead changed status",
    "lead.converted": "A lead was converted to a client",
    "client.created": "A new client was created",
    "client.updated": "A client was updated",
    "appointment.scheduled": "An appointment was scheduled",
    "appointment.cancelled": "An appointment was cancelled",
    "appointment.completed": "An appointment was completed",
    "document.uploaded": "A document was uploaded",
    "document.signed": "A document was signed",
    "invoice.created": "An invoice was created",
    "invoice.paid": "An invoice was paid in full",
    "invoice.overdue": "An invoice became overdue",
    "contract.sent": "A contract was sent for signature",
    "contract.signed": "A contract was signed",
    "message.received": "A message was received",
}

TEST_EVENT = "webhook.test"


def generate_secret() -> str:
    return f"whsec_{secrets.token_hex(32)}"


def sign_payload(secret: str, body: str) -> str:
    return hmac.new(secret.encode("utf-8"), body.encode("utf-8"), hashlib.sha256).hexdigest()


def build_payload(event_type: str, data: dict[str, Any]) -> dict[str, Any]:
    return {"event": event_type, "timestamp": utcnow().isoformat() + "Z", "data": data}


def build_headers(webhook: Webhook, event_type: str, body: str) -> dict[str, str]:
    headers = {
        "Content-Type": "application/json",
        "X-Webhook-Signature": f"sha256={sign_payload(webhook.secret, body)}",
        "X-Webhook-Id": webhook.id,
        "X-Webhook-Event": event_type,
    }
    headers.update(webhook.custom_headers or {})
    return headers


def deliver(
    session: Session,
    webhook: Webhook,
    event_type: str,
    data: dict[str, Any],
    event_id: Optional[str] = None,
) -> WebhookDelivery:
    """POST one event to one webhook, retrying up to ``webhook.retry_count`` times."""
    settings = get_settings()
    payload = build_payload(event_type, data)
    body = json.dumps(payload, default=str)
    headers = build_headers(webhook, event_type, body)

    delivery = WebhookDelivery(
        organization_id=webhook.organization_id,
        webhook_id=webhook.id,
        event_type=event_type,
        event_id=event_id,
        request_url=webhook.url,
        request_headers=headers,
        request_body=json.loads(body),
    )
    session.add(delivery)

    max_attempts = 1 + max(webhook.retry_count, 0)
    timeout = webhook.timeout_seconds or settings.webhook_timeout_seconds
    start = time.monotonic()
    status = DeliveryStatus.FAILED
    response_status: Optional[int] = None
    response_body: Optional[str] = None
    error_message: Optional[str] = None
    attempts = 0

    while attempts < max_attempts:
        attempts += 1
        try:
            response = requests.post(webhook.url, data=body.encode("utf-8"), headers=headers, timeout=timeout)
            response_status = response.status_code
            response_body = response.text
            if response.ok:
                status = DeliveryStatus.SUCCESS
                error_message = None
                break
            error_message = f"HTTP {response.status_code}: {response.reason}"
        except requests.RequestException as exc:
            response_status = None
            response_body = None
            error_message = str(exc) or exc.__class__.__name__
        logger.warning(
            "Webhook delivery attempt failed",
            extra={"record_id": webhook.id, "event": event_type, "attempt": attempts, "error": error_message},
        )

    now = utcnow()
    delivery.status = status.value
    delivery.attempt_count = attempts
    delivery.response_status = response_status
    delivery.response_body = response_body[: settings.webhook_max_response_chars] if response_body else response_body
    delivery.error_message = error_message
    delivery.duration_ms = int((time.monotonic() - start) * 1000)
    delivery.completed_at = now

    webhook.total_deliveries += 1
    webhook.last_triggered_at = now
    if status == DeliveryStatus.SUCCESS:
        webhook.successful_deliveries += 1
        webhook.last_success_at = now
    else:
        webhook.failed_deliveries += 1
        webhook.last_failure_at = now
        webhook.last_failure_reason = error_message
    session.add(webhook)

    logger.info(
        "Webhook delivered",
        extra={
            "record_id": webhook.id,
            "event": event_type,
            "status": status.value,
            "duration_ms": delivery.duration_ms,
        },
    )
    return delivery


def subscribed_webhooks(session: Session, organization_id: str, event_type: str) -> list[Webhook]:
    statement = select(Webhook).where(
        Webhook.organization_id == organization_id,
        Webhook.is_active == True,  # noqa: E712
    )
    return [hook for hook in session.exec(statement).all() if event_type in (hook.events or [])]


def trigger_webhooks(
    session: Session,
    organization_id: str,
    event_type: str,
    data: dict[str, Any],
    event_id: Optional[str] = None,
) -> list[WebhookDelivery]:
    """Deliver an event to every active webhook of the organization subscribed to it."""
    deliveries = [
        deliver(session, webhook, event_type, data, event_id)
        for webhook in subscribed_webhooks(session, organization_id, event_type)
    ]
    if deliveries:
        session.commit()
    return deliveries
