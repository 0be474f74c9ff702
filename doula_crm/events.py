"""Record lifecycle events fanned out to workflows and webhooks.

Domain services call these after committing a change. Webhook subscribers get
the serialized record; workflows are matched on the singular object type
(``lead``, ``meeting``, ``invoice``...).
"""

from __future__ import annotations

import logging
from typing import Any

from sqlmodel import Session

from doula_crm.webhooks.dispatch import trigger_webhooks
from doula_crm.workflows.triggers import fire_trigger, handle_record_created, handle_record_updated

logger = logging.getLogger(__name__)


def emit(session: Session, organization_id: str, event_type: str, data: dict[str, Any]) -> None:
    """Deliver a webhook event to subscribers."""
    trigger_webhooks(session, organization_id, event_type, data, event_id=data.get("id"))


def record_created(
    session: Session,
    organization_id: str,
    object_type: str,
    record: dict[str, Any],
    webhook_event: str | None = None,
) -> None:
    logger.debug("record created", extra={"object_type": object_type, "record_id": record.get("id")})
    handle_record_created(session, organization_id, object_type, record)
    if webhook_event:
        emit(session, organization_id, webhook_event, record)


def record_updated(
    session: Session,
    organization_id: str,
    object_type: str,
    record: dict[str, Any],
    previous: dict[str, Any],
    webhook_event: str | None = None,
) -> None:
    logger.debug("record updated", extra={"object_type": object_type, "record_id": record.get("id")})
    handle_record_updated(session, organization_id, object_type, record, previous)
    if webhook_event:
        emit(session, organization_id, webhook_event, record)


def workflow_trigger(
    session: Session,
    organization_id: str,
    object_type: str,
    trigger_type: str,
    record: dict[str, Any],
) -> None:
    """Fire a non-CRUD workflow trigger such as ``payment_received``."""
    fire_trigger(session, organization_id, object_type, trigger_type, record)
