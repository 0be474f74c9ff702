"""Tests for organizations, users and the practice team."""

from datetime import date, timedelta

import pytest

from conftest import auth
from doula_crm.core.errors import ConflictError, InvalidOperationError
from doula_crm.core.models import today
from doula_crm.leads.schemas import LeadCreate
from doula_crm.leads.service import LeadService
from doula_crm.organizations.schemas import OrganizationBootstrap
from doula_crm.organizations.service import bootstrap_organization, slugify
from doula_crm.team.models import TimeEntry
from doula_crm.team.schemas import AssignmentCreate, OnCallCreate, OnCallUpdate, TeamMemberCreate, TimeEntryCreate
from doula_crm.team.service import TeamService, summarize_time


@pytest.fixture
def team(session, owner_ctx):
    return TeamService(session, owner_ctx)


@pytest.fixture
def maya(session, owner_ctx):
    return LeadService(session, owner_ctx).create_lead(LeadCreate(name="Maya Lopez", email="maya@example.com"))


@pytest.fixture
def jo(team):
    return team.create_member(TeamMemberCreate(display_name="Jo Provider", email="jo@harbor.example.com"))


# =============================================================================
# Organizations
# =============================================================================


class TestBootstrap:
    def test_slugify(self):
        assert slugify("Harbor Doulas, LLC") == "harbor-doulas-llc"
        assert slugify("!!!") == "org"

    def test_duplicate_slug(self, session, org):
        with pytest.raises(ConflictError, match="harbor-doulas"):
            bootstrap_organization(session, OrganizationBootstrap(name="Harbor Doulas", owner_email="x@y.example.com"))

    def test_bootstrap_over_http(self, client):
        body = {"name": "Willow Birth Co", "owner_email": "Owner@Willow.example.com", "owner_name": "Wren"}
        response = client.post("/organizations", json=body)
        assert response.status_code == 201
        assert response.json()["organization"]["slug"] == "willow-birth-co"
        assert response.json()["owner"]["email"] == "owner@willow.example.com"
        assert response.json()["owner"]["role"] == "owner"

        owner_id = response.json()["owner"]["id"]
        me = client.get("/organizations/current/me", headers={"X-User-Id": owner_id}).json()
        assert me["full_name"] == "Wren"
        assert client.post("/organizations", json=body).status_code == 409

    def test_missing_user_header(self, client):
        assert client.get("/organizations/current").status_code == 401
        assert client.get("/organizations/current", headers={"X-User-Id": "missing"}).status_code == 401


class TestUsers:
    """Test role grants and owner protection."""

    def test_create_user(self, client, owner):
        body = {"email": "New@Harbor.example.com", "role": "provider"}
        response = client.post("/organizations/current/users", json=body, headers=auth(owner))
        assert response.status_code == 201
        assert response.json()["email"] == "new@harbor.example.com"
        assert client.post("/organizations/current/users", json=body, headers=auth(owner)).status_code == 409

    def test_staff_cannot_create_users(self, client, staff):
        body = {"email": "new@harbor.example.com"}
        assert client.post("/organizations/current/users", json=body, headers=auth(staff)).status_code == 403

    def test_admin_cannot_grant_owner(self, client, admin, staff):
        response = client.patch(
            f"/organizations/current/users/{staff.id}", json={"role": "owner"}, headers=auth(admin)
        )
        assert response.status_code == 403
        assert response.json()["detail"] == "Cannot grant role 'owner'"

    def test_last_owner_is_kept(self, client, owner):
        response = client.patch(f"/organizations/current/users/{owner.id}", json={"role": "admin"}, headers=auth(owner))
        assert response.status_code == 400
        assert response.json()["detail"] == "An organization must keep at least one active owner"

    def test_cannot_deactivate_self(self, client, owner):
        response = client.patch(
            f"/organizations/current/users/{owner.id}", json={"is_active": False}, headers=auth(owner)
        )
        assert response.status_code == 400

    def test_deactivate_and_list(self, client, owner, staff):
        client.patch(f"/organizations/current/users/{staff.id}", json={"is_active": False}, headers=auth(owner))
        everyone = client.get("/organizations/current/users", headers=auth(owner)).json()
        active = client.get("/organizations/current/users?active_only=true", headers=auth(owner)).json()
        assert staff.id in [u["id"] for u in everyone]
        assert staff.id not in [u["id"] for u in active]

    def test_other_organization_user_is_404(self, client, owner, other_org):
        response = client.patch(
            f"/organizations/current/users/{other_org[1].id}", json={"full_name": "X"}, headers=auth(owner)
        )
        assert response.status_code == 404


# =============================================================================
# Team members and assignments
# =============================================================================


class TestMembers:
    def test_create_requires_admin(self, client, owner, staff):
        body = {"display_name": "Jo", "email": "jo@harbor.example.com"}
        assert client.post("/team/members", json=body, headers=auth(staff)).status_code == 403
        response = client.post("/team/members", json=body, headers=auth(owner))
        assert response.status_code == 201
        assert response.json()["role"] == "provider"

    def test_inactive_members_are_hidden(self, client, owner, jo):
        client.post(f"/team/members/{jo.id}/deactivate", headers=auth(owner))
        assert client.get("/team/members", headers=auth(owner)).json() == []
        members = client.get("/team/members?include_inactive=true", headers=auth(owner)).json()
        assert [m["id"] for m in members] == [jo.id]

        client.post(f"/team/members/{jo.id}/reactivate", headers=auth(owner))
        assert len(client.get("/team/members", headers=auth(owner)).json()) == 1

    def test_other_organization_gets_404(self, client, jo, other_org):
        assert client.get(f"/team/members/{jo.id}", headers=auth(other_org[1])).status_code == 404


class TestAssignments:
    def test_assign_once(self, team, maya, jo):
        assignment = team.assign(AssignmentCreate(client_id=maya.id, team_member_id=jo.id))
        assert assignment.assignment_role == "primary"
        with pytest.raises(ConflictError, match="already assigned"):
            team.assign(AssignmentCreate(client_id=maya.id, team_member_id=jo.id, assignment_role="backup"))

    def test_inactive_member_cannot_be_assigned(self, team, maya, jo):
        team.set_active(jo.id, False)
        with pytest.raises(InvalidOperationError, match="not found or inactive"):
            team.assign(AssignmentCreate(client_id=maya.id, team_member_id=jo.id))

    def test_unknown_client(self, team, jo):
        with pytest.raises(InvalidOperationError, match="Client not found"):
            team.assign(AssignmentCreate(client_id="missing", team_member_id=jo.id))

    def test_assignment_api(self, client, owner, maya, jo):
        body = {"client_id": maya.id, "team_member_id": jo.id}
        created = client.post("/team/assignments", json=body, headers=auth(owner)).json()
        assert client.post("/team/assignments", json=body, headers=auth(owner)).status_code == 409

        listed = client.get(f"/team/assignments?client_id={maya.id}", headers=auth(owner)).json()
        assert [a["id"] for a in listed] == [created["id"]]
        stats = client.get(f"/team/members/{jo.id}/stats", headers=auth(owner)).json()
        assert stats["active_client_count"] == 1

        assert client.delete(f"/team/assignments/{created['id']}", headers=auth(owner)).status_code == 204
        assert client.get(f"/team/members/{jo.id}/assignments", headers=auth(owner)).json() == []


# =============================================================================
# Time tracking and on-call
# =============================================================================


class TestTimeEntries:
    def test_summarize(self):
        entries = [
            TimeEntry(team_member_id="m", entry_date=date(2026, 5, 1), hours=2.5, entry_type="client_visit"),
            TimeEntry(team_member_id="m", entry_date=date(2026, 5, 2), hours=1, entry_type="admin", billable=False),
            TimeEntry(team_member_id="m", entry_date=date(2026, 5, 3), hours=1.5, entry_type="client_visit"),
        ]
        assert summarize_time(entries) == {
            "total_hours": 5.0,
            "billable_hours": 4.0,
            "by_type": {"client_visit": 4.0, "admin": 1.0},
        }

    def test_summary_by_range(self, client, owner, jo):
        for day, hours in ((1, 3), (10, 2), (20, 4)):
            body = {"team_member_id": jo.id, "entry_date": f"2026-03-{day:02d}", "hours": hours}
            assert client.post("/team/time-entries", json=body, headers=auth(owner)).status_code == 201

        params = {"team_member_id": jo.id, "start_date": "2026-03-05", "end_date": "2026-03-31"}
        summary = client.get("/team/time-entries/summary", params=params, headers=auth(owner)).json()
        assert summary["total_hours"] == 6

        entries = client.get(f"/team/time-entries?team_member_id={jo.id}", headers=auth(owner)).json()
        assert [e["entry_date"] for e in entries] == ["2026-03-20", "2026-03-10", "2026-03-01"]

    def test_hours_must_fit_a_day(self, client, owner, jo):
        body = {"team_member_id": jo.id, "entry_date": "2026-03-01", "hours": 25}
        assert client.post("/team/time-entries", json=body, headers=auth(owner)).status_code == 422

    def test_monthly_stats(self, team, jo):
        team.create_time_entry(TimeEntryCreate(team_member_id=jo.id, entry_date=today(), hours=3))
        team.create_time_entry(TimeEntryCreate(team_member_id=jo.id, entry_date=today(), hours=1, billable=False))
        stats = team.member_stats(jo.id)
        assert stats["hours_this_month"] == 4
        assert stats["billable_hours_this_month"] == 3


class TestOnCall:
    def test_create_rejects_reversed_range(self, client, owner, jo):
        body = {"team_member_id": jo.id, "start_date": "2026-05-10", "end_date": "2026-05-01"}
        assert client.post("/team/on-call", json=body, headers=auth(owner)).status_code == 422

    def test_update_rejects_reversed_range(self, client, owner, jo):
        body = {"team_member_id": jo.id, "start_date": "2026-05-01", "end_date": "2026-05-10"}
        schedule = client.post("/team/on-call", json=body, headers=auth(owner)).json()
        response = client.patch(f"/team/on-call/{schedule['id']}", json={"end_date": "2026-04-01"}, headers=auth(owner))
        assert response.status_code == 400
        assert response.json()["detail"] == "end_date must not be before start_date"

    def test_overview_shows_current_on_call(self, client, owner, jo, team):
        now = today()
        for start, end in ((-1, 0), (3, 5)):
            body = {
                "team_member_id": jo.id,
                "start_date": str(now + timedelta(days=start)),
                "end_date": str(now + timedelta(days=end)),
            }
            client.post("/team/on-call", json=body, headers=auth(owner))
        overview = client.get("/team/overview", headers=auth(owner)).json()
        assert [m["id"] for m in overview["members"]] == [jo.id]
        assert len(overview["current_on_call"]) == 1

        upcoming = team.list_on_call(start_date=now + timedelta(days=4))
        assert [s.start_date for s in upcoming] == [now + timedelta(days=3)]

    def test_update_in_service(self, team, jo):
        schedule = team.create_on_call(
            OnCallCreate(team_member_id=jo.id, start_date=date(2026, 5, 1), end_date=date(2026, 5, 2))
        )
        updated = team.update_on_call(schedule.id, OnCallUpdate(notes="Backup: Ana"))
        assert updated.notes == "Backup: Ana"
        assert team.update_on_call("missing", OnCallUpdate(notes="x")) is None
