"""Notification log and client notification preferences.

Nothing is delivered from here. Emails the product would send are recorded as
``queued`` log entries for an external sender to pick up, or ``skipped`` when
the client's preferences rule them out.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlmodel import Session, col, select

from doula_crm.core.models import apply_changes, utcnow
from doula_crm.leads.models import Lead

from .models import NotificationChannel, NotificationLog, NotificationPreference, NotificationStatus
from .schemas import NotificationLogCreate, PreferencesUpdate

logger = logging.getLogger(__name__)

# Notification type prefix -> preference flag that must be on.
PREFERENCE_FOR_TYPE = {
    "meeting": "meeting_reminders",
    "payment": "payment_reminders",
    "invoice": "payment_reminders",
    "document": "document_notifications",
    "marketing": "marketing_emails",
}


def preference_flag(notification_type: str) -> Optional[str]:
    prefix = notification_type.replace("-", "_").split("_", 1)[0]
    return PREFERENCE_FOR_TYPE.get(prefix)


def get_or_create_preferences(session: Session, organization_id: str, client_id: str) -> NotificationPreference:
    prefs = session.exec(
        select(NotificationPreference).where(NotificationPreference.client_id == client_id)
    ).first()
    if prefs is None:
        prefs = NotificationPreference(organization_id=organization_id, client_id=client_id)
        session.add(prefs)
        session.flush()
    return prefs


def log_notification(session: Session, organization_id: str, data: NotificationLogCreate) -> NotificationLog:
    entry = NotificationLog(organization_id=organization_id, **data.model_dump())
    if entry.status == NotificationStatus.SENT.value:
        entry.sent_at = utcnow()
    session.add(entry)
    return entry


def queue_client_email(
    session: Session,
    organization_id: str,
    client_id: str,
    notification_type: str,
    subject: str,
    recipient: Optional[str] = None,
    metadata: Optional[dict[str, Any]] = None,
) -> Optional[NotificationLog]:
    """Record an email for a client, honouring their notification preferences.

    Args:
        session: Open database session (caller commits)
        organization_id: Tenant of the client
        client_id: Lead/client id the email is about
        notification_type: e.g. ``meeting_scheduled``, ``document_shared``
        subject: Email subject line
        recipient: Overrides the client's own email address
        metadata: Extra values stored on the log entry

    Returns:
        The log entry, or None when the client does not exist
    """
    client = session.get(Lead, client_id)
    if not client or client.organization_id != organization_id:
        return None

    prefs = get_or_create_preferences(session, organization_id, client_id)
    flag = preference_flag(notification_type)
    status = NotificationStatus.QUEUED
    if not prefs.email_enabled or (flag and not getattr(prefs, flag)):
        status = NotificationStatus.SKIPPED

    entry = log_notification(
        session,
        organization_id,
        NotificationLogCreate(
            client_id=client_id,
            notification_type=notification_type,
            channel=NotificationChannel.EMAIL,
            recipient=recipient or client.email,
            subject=subject,
            status=status,
            notification_metadata=metadata or {},
        ),
    )
    logger.info(
        "Client email recorded",
        extra={"record_id": client_id, "event": notification_type, "status": status.value},
    )
    return entry


class NotificationService:
    def __init__(self, session: Session, organization_id: str):
        self.session = session
        self.organization_id = organization_id

    def log(self, data: NotificationLogCreate) -> NotificationLog:
        entry = log_notification(self.session, self.organization_id, data)
        self.session.commit()
        self.session.refresh(entry)
        return entry

    def client_log(self, client_id: str, limit: int = 50) -> list[NotificationLog]:
        statement = (
            select(NotificationLog)
            .where(NotificationLog.organization_id == self.organization_id, NotificationLog.client_id == client_id)
            .order_by(col(NotificationLog.created_at).desc())
            .limit(limit)
        )
        return list(self.session.exec(statement).all())

    def get_preferences(self, client_id: str) -> NotificationPreference:
        prefs = get_or_create_preferences(self.session, self.organization_id, client_id)
        self.session.commit()
        self.session.refresh(prefs)
        return prefs

    def update_preferences(self, client_id: str, data: PreferencesUpdate) -> NotificationPreference:
        prefs = get_or_create_preferences(self.session, self.organization_id, client_id)
        apply_changes(prefs, data.model_dump(exclude_unset=True, exclude_none=True))
        self.session.add(prefs)
        self.session.commit()
        self.session.refresh(prefs)
        return prefs

    def queue_email(
        self, client_id: str, notification_type: str, subject: str, metadata: Optional[dict[str, Any]] = None
    ) -> Optional[NotificationLog]:
        entry = queue_client_email(
            self.session, self.organization_id, client_id, notification_type, subject, None, metadata
        )
        if entry is None:
            return None
        self.session.commit()
        self.session.refresh(entry)
        return entry
