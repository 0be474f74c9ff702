"""Webhook subscription management."""

from __future__ import annotations

import logging
from typing import Optional

from sqlmodel import Session, col, select

from doula_crm.core.context import RequestContext
from doula_crm.core.models import apply_changes, utcnow

from .dispatch import TEST_EVENT, deliver, generate_secret
from .models import Webhook, WebhookDelivery
from .schemas import WebhookCreate, WebhookUpdate

logger = logging.getLogger(__name__)


class WebhookService:
    def __init__(self, session: Session, ctx: RequestContext):
        self.session = session
        self.ctx = ctx

    def list_webhooks(self) -> list[Webhook]:
        statement = select(Webhook).where(Webhook.organization_id == self.ctx.organization_id)
        return list(self.session.exec(statement.order_by(col(Webhook.created_at).desc())).all())

    def get_webhook(self, webhook_id: str) -> Optional[Webhook]:
        webhook = self.session.get(Webhook, webhook_id)
        if not webhook or webhook.organization_id != self.ctx.organization_id:
            return None
        return webhook

    def create_webhook(self, data: WebhookCreate) -> Webhook:
        webhook = Webhook(
            organization_id=self.ctx.organization_id,
            secret=generate_secret(),
            created_by=self.ctx.user_id,
            **data.model_dump(),
        )
        self.session.add(webhook)
        self.session.commit()
        self.session.refresh(webhook)
        logger.info("Webhook created", extra={"organization_id": webhook.organization_id, "record_id": webhook.id})
        return webhook

    def update_webhook(self, webhook_id: str, data: WebhookUpdate) -> Optional[Webhook]:
        webhook = self.get_webhook(webhook_id)
        if not webhook:
            return None
        apply_changes(webhook, data.model_dump(exclude_unset=True, exclude_none=True))
        return self._save(webhook)

    def delete_webhook(self, webhook_id: str) -> Optional[Webhook]:
        webhook = self.get_webhook(webhook_id)
        if not webhook:
            return None
        self.session.delete(webhook)
        self.session.commit()
        return webhook

    def toggle(self, webhook_id: str) -> Optional[Webhook]:
        webhook = self.get_webhook(webhook_id)
        if not webhook:
            return None
        return self._save(apply_changes(webhook, {"is_active": not webhook.is_active}))

    def regenerate_secret(self, webhook_id: str) -> Optional[Webhook]:
        webhook = self.get_webhook(webhook_id)
        if not webhook:
            return None
        return self._save(apply_changes(webhook, {"secret": generate_secret()}))

    def list_deliveries(self, webhook_id: str, limit: int = 50, offset: int = 0) -> list[WebhookDelivery]:
        statement = (
            select(WebhookDelivery)
            .where(
                WebhookDelivery.organization_id == self.ctx.organization_id,
                WebhookDelivery.webhook_id == webhook_id,
            )
            .order_by(col(WebhookDelivery.created_at).desc())
            .offset(offset)
            .limit(limit)
        )
        return list(self.session.exec(statement).all())

    def send_test(self, webhook_id: str) -> Optional[WebhookDelivery]:
        webhook = self.get_webhook(webhook_id)
        if not webhook:
            return None
        delivery = deliver(
            self.session,
            webhook,
            TEST_EVENT,
            {"message": "This is a test webhook delivery", "webhook_id": webhook.id, "sent_at": utcnow().isoformat()},
        )
        self.session.commit()
        self.session.refresh(delivery)
        return delivery

    def _save(self, webhook: Webhook) -> Webhook:
        self.session.add(webhook)
        self.session.commit()
        self.session.refresh(webhook)
        return webhook
