"""Tests for meetings, documents and client notifications."""

from datetime import timedelta

import pytest

from conftest import auth
from doula_crm.core.models import utcnow
from doula_crm.leads.schemas import LeadCreate
from doula_crm.leads.service import LeadService
from doula_crm.notifications.schemas import PreferencesUpdate
from doula_crm.notifications.service import NotificationService, preference_flag, queue_client_email


@pytest.fixture
def maya(session, owner_ctx):
    return LeadService(session, owner_ctx).create_lead(LeadCreate(name="Maya Lopez", email="maya@example.com"))


def schedule(client, user, client_id, when, **body):
    body = {"client_id": client_id, "title": "Prenatal visit", "scheduled_at": when, **body}
    return client.post("/meetings", json=body, headers=auth(user))


# =============================================================================
# Notifications
# =============================================================================


class TestNotificationPreferences:
    def test_preference_flag(self):
        assert preference_flag("meeting_scheduled") == "meeting_reminders"
        assert preference_flag("invoice-sent") == "payment_reminders"
        assert preference_flag("document_shared") == "document_notifications"
        assert preference_flag("welcome") is None

    def test_defaults_created_on_first_read(self, client, owner, maya):
        prefs = client.get(f"/notifications/clients/{maya.id}/preferences", headers=auth(owner)).json()
        assert prefs["email_enabled"] is True
        assert prefs["marketing_emails"] is False
        assert prefs["reminder_hours_before"] == 24

    def test_unknown_client_returns_404(self, client, owner):
        assert client.get("/notifications/clients/missing/preferences", headers=auth(owner)).status_code == 404

    def test_queue_respects_preferences(self, session, org, maya):
        service = NotificationService(session, org.id)
        assert service.queue_email(maya.id, "meeting_reminder", "See you soon").status == "queued"

        service.update_preferences(maya.id, PreferencesUpdate(meeting_reminders=False))
        assert service.queue_email(maya.id, "meeting_reminder", "See you soon").status == "skipped"
        assert service.queue_email(maya.id, "welcome", "Welcome").status == "queued"

        service.update_preferences(maya.id, PreferencesUpdate(email_enabled=False))
        assert service.queue_email(maya.id, "welcome", "Welcome").status == "skipped"

    def test_queue_for_other_organization_client(self, session, other_org, maya):
        assert queue_client_email(session, other_org[0].id, maya.id, "welcome", "Hi") is None

    def test_manual_log_entry(self, client, owner, maya):
        body = {"client_id": maya.id, "notification_type": "sms_reminder", "channel": "sms", "recipient": "555-0100"}
        response = client.post("/notifications/log", json=body, headers=auth(owner))
        assert response.status_code == 201
        log = client.get(f"/notifications/clients/{maya.id}/log", headers=auth(owner)).json()
        assert [(e["channel"], e["recipient"]) for e in log] == [("sms", "555-0100")]


# =============================================================================
# Meetings
# =============================================================================


class TestMeetings:
    """Test scheduling, status changes and the upcoming list."""

    def test_schedule_normalizes_timezone_and_logs_email(self, client, owner, maya):
        response = schedule(client, owner, maya.id, "2030-05-01T15:00:00-04:00", meeting_type="prenatal")
        assert response.status_code == 201
        assert response.json()["scheduled_at"] == "2030-05-01T19:00:00"
        assert response.json()["status"] == "scheduled"

        log = client.get(f"/notifications/clients/{maya.id}/log", headers=auth(owner)).json()
        assert log[0]["notification_type"] == "meeting_scheduled"
        assert log[0]["subject"] == "Your appointment is confirmed - Prenatal"
        assert log[0]["recipient"] == "maya@example.com"

    def test_unknown_client(self, client, owner):
        response = schedule(client, owner, "missing", "2030-05-01T15:00:00")
        assert response.status_code == 400

    def test_upcoming_excludes_past_and_cancelled(self, client, owner, maya):
        soon = (utcnow() + timedelta(days=2)).isoformat()
        later = (utcnow() + timedelta(days=9)).isoformat()
        past = (utcnow() - timedelta(days=1)).isoformat()
        first = schedule(client, owner, maya.id, later, title="Birth plan review").json()
        second = schedule(client, owner, maya.id, soon, title="Prenatal visit").json()
        schedule(client, owner, maya.id, past, title="Consultation")
        cancelled = schedule(client, owner, maya.id, soon, title="Cancelled").json()
        client.post(f"/meetings/{cancelled['id']}/cancel", headers=auth(owner))

        upcoming = client.get("/meetings/upcoming", headers=auth(owner)).json()
        assert [m["id"] for m in upcoming] == [second["id"], first["id"]]

    def test_complete_with_notes(self, client, owner, maya):
        meeting = schedule(client, owner, maya.id, "2030-05-01T15:00:00").json()
        response = client.post(
            f"/meetings/{meeting['id']}/complete", json={"notes": "Discussed positions"}, headers=auth(owner)
        )
        assert response.json()["status"] == "completed"
        assert response.json()["notes"] == "Discussed positions"
        assert response.json()["completed_at"] is not None

    def test_invalid_status(self, client, owner, maya):
        meeting = schedule(client, owner, maya.id, "2030-05-01T15:00:00").json()
        response = client.post(f"/meetings/{meeting['id']}/status", json={"status": "postponed"}, headers=auth(owner))
        assert response.status_code == 422

    def test_list_for_client(self, client, owner, maya):
        schedule(client, owner, maya.id, "2030-05-01T15:00:00")
        schedule(client, owner, maya.id, "2030-06-01T15:00:00")
        meetings = client.get("/meetings", params={"client_id": maya.id}, headers=auth(owner)).json()
        assert [m["scheduled_at"][:7] for m in meetings] == ["2030-06", "2030-05"]


# =============================================================================
# Documents
# =============================================================================


class TestDocuments:
    def add(self, client, owner, maya, **body):
        body = {
            "client_id": maya.id,
            "title": "Birth plan",
            "document_type": "birth_plan",
            "file_url": "https://files.example.com/plan.pdf",
            **body,
        }
        return client.post("/documents", json=body, headers=auth(owner))

    def test_add_records_uploader(self, client, owner, maya):
        response = self.add(client, owner, maya)
        assert response.status_code == 201
        assert response.json()["uploaded_by"] == owner.id
        assert response.json()["is_visible_to_client"] is False

    def test_sharing_writes_notification(self, client, owner, maya):
        document = self.add(client, owner, maya).json()

        shared = client.post(f"/documents/{document['id']}/toggle-visibility", headers=auth(owner)).json()
        assert shared["is_visible_to_client"] is True
        log = client.get(f"/notifications/clients/{maya.id}/log", headers=auth(owner)).json()
        assert log[0]["notification_type"] == "document_shared"
        assert log[0]["subject"] == "A new document has been shared with you: Birth plan"

        hidden = client.post(f"/documents/{document['id']}/toggle-visibility", headers=auth(owner)).json()
        assert hidden["is_visible_to_client"] is False
        assert len(client.get(f"/notifications/clients/{maya.id}/log", headers=auth(owner)).json()) == 1

    def test_filters(self, client, owner, maya):
        self.add(client, owner, maya)
        self.add(client, owner, maya, title="Welcome packet", document_type="resource", is_visible_to_client=True)

        params = {"client_id": maya.id, "document_type": "resource"}
        assert [d["title"] for d in client.get("/documents", params=params, headers=auth(owner)).json()] == [
            "Welcome packet"
        ]
        params = {"client_id": maya.id, "visible_only": True}
        assert [d["title"] for d in client.get("/documents", params=params, headers=auth(owner)).json()] == [
            "Welcome packet"
        ]

    def test_other_organization_gets_404(self, client, owner, maya, other_org):
        document = self.add(client, owner, maya).json()
        assert client.get(f"/documents/{document['id']}", headers=auth(other_org[1])).status_code == 404
