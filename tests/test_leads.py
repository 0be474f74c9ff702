"""Tests for the leads and clients API."""

import pytest

from conftest import auth
from doula_crm.core.errors import InvalidOperationError
from doula_crm.leads.models import LeadStatus
from doula_crm.leads.schemas import LeadCreate, LeadUpdate
from doula_crm.leads.service import LeadService, email_domain


@pytest.fixture
def leads(session, owner_ctx):
    return LeadService(session, owner_ctx)


class TestLeadService:
    """Test lead lifecycle operations."""

    def test_create_sets_email_domain(self, leads):
        lead = leads.create_lead(LeadCreate(name="Maya Lopez", email="Maya@Example.COM"))
        assert lead.email_domain == "example.com"
        assert lead.status == "new"
        assert lead.lifecycle_stage == "lead"

    def test_email_domain_without_at(self):
        assert email_domain("not-an-email") is None

    def test_create_as_client_marks_converted(self, leads):
        lead = leads.create_lead(LeadCreate(name="Ana", email="ana@example.com", status=LeadStatus.CLIENT))
        assert lead.lifecycle_stage == "active_client"
        assert lead.converted_at is not None

    def test_status_change_logs_activity(self, leads):
        lead = leads.create_lead(LeadCreate(name="Bea", email="bea@example.com"))
        leads.update_status(lead.id, LeadStatus.SCHEDULED, note="Consult on Friday")

        assert lead.lifecycle_stage == "consultation_scheduled"
        activities = leads.list_activities(lead.id)
        assert len(activities) == 1
        assert activities[0].activity_type == "status_change"
        assert activities[0].content == "Status changed from new to scheduled: Consult on Friday"
        assert activities[0].activity_metadata == {"from": "new", "to": "scheduled"}

    def test_same_status_is_a_no_op(self, leads):
        lead = leads.create_lead(LeadCreate(name="Cy", email="cy@example.com"))
        leads.update_status(lead.id, LeadStatus.NEW)
        assert leads.list_activities(lead.id) == []

    def test_convert_lost_lead_fails(self, leads):
        lead = leads.create_lead(LeadCreate(name="Di", email="di@example.com", status=LeadStatus.LOST))
        with pytest.raises(InvalidOperationError, match="reopened"):
            leads.convert_to_client(lead.id)

    def test_convert_twice_fails(self, leads):
        lead = leads.create_lead(LeadCreate(name="Em", email="em@example.com"))
        leads.convert_to_client(lead.id)
        assert lead.status == "client"
        with pytest.raises(InvalidOperationError, match="already been converted"):
            leads.convert_to_client(lead.id)

    def test_stats(self, leads):
        leads.create_lead(LeadCreate(name="A", email="a@example.com", source="contact_form"))
        leads.create_lead(LeadCreate(name="B", email="b@example.com", source="contact_form"))
        leads.create_lead(LeadCreate(name="C", email="c@example.com", status=LeadStatus.CLIENT))
        stats = leads.get_stats()
        assert stats["total"] == 3
        assert stats["by_status"] == {"new": 2, "client": 1}
        assert stats["by_source"] == {"contact_form": 2, "manual": 1}

    def test_assignee_must_belong_to_organization(self, leads, staff, other_org):
        lead = leads.create_lead(LeadCreate(name="Fay", email="fay@example.com", assigned_to_user_id=staff.id))
        assert lead.assigned_to_user_id == staff.id

        outsider = other_org[1].id
        with pytest.raises(InvalidOperationError, match="Assigned user not found"):
            leads.create_lead(LeadCreate(name="Gus", email="gus@example.com", assigned_to_user_id=outsider))
        with pytest.raises(InvalidOperationError, match="Assigned user not found"):
            leads.update_lead(lead.id, LeadUpdate(assigned_to_user_id=outsider))


class TestLeadAPI:
    """Test the HTTP surface and organization scoping."""

    def test_requires_user_header(self, client):
        assert client.get("/leads").status_code == 401

    def test_unknown_user_rejected(self, client, org):
        assert client.get("/leads", headers={"X-User-Id": "nobody"}).status_code == 401

    def test_create_list_and_search(self, client, owner):
        for name, email in (("Maya Lopez", "maya@example.com"), ("Nina Park", "nina@example.com")):
            response = client.post("/leads", json={"name": name, "email": email}, headers=auth(owner))
            assert response.status_code == 201

        response = client.get("/leads", params={"search": "park"}, headers=auth(owner))
        assert response.status_code == 200
        assert [lead["name"] for lead in response.json()] == ["Nina Park"]

    def test_search_wildcards_match_literally(self, client, owner):
        for name, email in (("Ana Half_Moon", "ana@example.com"), ("Bea HalfxMoon", "bea@example.com")):
            client.post("/leads", json={"name": name, "email": email}, headers=auth(owner))

        response = client.get("/leads", params={"search": "f_M"}, headers=auth(owner))
        assert [lead["name"] for lead in response.json()] == ["Ana Half_Moon"]
        assert client.get("/leads", params={"search": "%"}, headers=auth(owner)).json() == []

    def test_invalid_email_is_rejected(self, client, owner):
        response = client.post("/leads", json={"name": "X", "email": "nope"}, headers=auth(owner))
        assert response.status_code == 422

    def test_convert_and_list_clients(self, client, owner):
        lead = client.post("/leads", json={"name": "Maya", "email": "maya@example.com"}, headers=auth(owner)).json()

        response = client.post(f"/leads/{lead['id']}/convert", headers=auth(owner))
        assert response.status_code == 200
        assert response.json()["status"] == "client"

        clients = client.get("/clients", headers=auth(owner)).json()
        assert [c["id"] for c in clients] == [lead["id"]]

    def test_convert_twice_returns_400(self, client, owner):
        lead = client.post("/leads", json={"name": "Maya", "email": "maya@example.com"}, headers=auth(owner)).json()
        client.post(f"/leads/{lead['id']}/convert", headers=auth(owner))
        response = client.post(f"/leads/{lead['id']}/convert", headers=auth(owner))
        assert response.status_code == 400
        assert response.json()["detail"] == "Lead has already been converted to a client"

    def test_action_items(self, client, owner):
        lead = client.post("/leads", json={"name": "Maya", "email": "maya@example.com"}, headers=auth(owner)).json()
        response = client.post(
            f"/clients/{lead['id']}/action-items", json={"title": "Send birth plan template"}, headers=auth(owner)
        )
        assert response.status_code == 201
        item = response.json()

        response = client.post(f"/clients/action-items/{item['id']}/complete", headers=auth(owner))
        assert response.json()["status"] == "completed"
        assert response.json()["completed_at"] is not None

    def test_other_organization_cannot_see_lead(self, client, owner, other_org):
        lead = client.post("/leads", json={"name": "Maya", "email": "maya@example.com"}, headers=auth(owner)).json()
        outsider = other_org[1]

        assert client.get(f"/leads/{lead['id']}", headers=auth(outsider)).status_code == 404
        assert client.get("/leads", headers=auth(outsider)).json() == []
        assert client.delete(f"/leads/{lead['id']}", headers=auth(outsider)).status_code == 404
