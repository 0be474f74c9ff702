"""Outbound webhooks."""

from .models import DeliveryStatus, Webhook, WebhookDelivery

__all__ = ["DeliveryStatus", "Webhook", "WebhookDelivery"]
