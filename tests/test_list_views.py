"""Tests for the list query engine and saved list views."""

from dataclasses import replace
from datetime import date, datetime

import pytest

from conftest import auth
from doula_crm.core.errors import InvalidOperationError
from doula_crm.leads.models import Lead
from doula_crm.list_views.query import escape_like, execute_query, period_start, target_for
from doula_crm.list_views.service import default_columns, quick_filters


@pytest.fixture
def leads(session, org):
    rows = [
        Lead(organization_id=org.id, name="Maya Lopez", email="maya@example.com", status="new",
             source="contact_form", expected_due_date=date(2026, 3, 1), custom_fields={"parity": 1}),
        Lead(organization_id=org.id, name="Nina Park", email="nina@sample.org", status="contacted",
             source="newsletter", expected_due_date=date(2026, 5, 20), custom_fields={"parity": 2}),
        Lead(organization_id=org.id, name="Olga 100%", email="olga@example.com", status="client",
             source="manual", phone="555-0100"),
    ]
    session.add_all(rows)
    session.commit()
    return rows


def names(session, org, filters, **kwargs):
    result = execute_query(
        session, org.id, target_for("leads"), filters, {"field": "name", "direction": "asc"}, **kwargs
    )
    return [row.name for row in result.rows]


# =============================================================================
# Query engine
# =============================================================================


class TestPeriodStart:
    """Test relative date boundaries."""

    NOW = datetime(2026, 10, 14, 15, 30)  # a Wednesday

    def test_week_starts_on_sunday(self):
        assert period_start("this_week", now=self.NOW) == datetime(2026, 10, 11)

    def test_sunday_is_its_own_week_start(self):
        assert period_start("this_week", now=datetime(2026, 10, 18, 9)) == datetime(2026, 10, 18)

    def test_month_and_quarter(self):
        assert period_start("this_month", now=self.NOW) == datetime(2026, 10, 1)
        assert period_start("this_quarter", now=datetime(2026, 8, 9)) == datetime(2026, 7, 1)

    def test_last_n_days(self):
        assert period_start("last_n_days", "7", now=self.NOW) == datetime(2026, 10, 7, 15, 30)

    def test_last_n_days_needs_a_number(self):
        with pytest.raises(InvalidOperationError):
            period_start("last_n_days", "soon", now=self.NOW)


class TestExecuteQuery:
    """Test filter operators against real rows."""

    def test_equals_and_not_equals(self, session, org, leads):
        assert names(session, org, [{"field": "status", "operator": "equals", "value": "new"}]) == ["Maya Lopez"]
        assert names(session, org, [{"field": "status", "operator": "not_equals", "value": "new"}]) == [
            "Nina Park",
            "Olga 100%",
        ]

    def test_text_operators_are_case_insensitive(self, session, org, leads):
        assert names(session, org, [{"field": "name", "operator": "contains", "value": "PARK"}]) == ["Nina Park"]
        assert names(session, org, [{"field": "email", "operator": "ends_with", "value": "example.com"}]) == [
            "Maya Lopez",
            "Olga 100%",
        ]
        assert names(session, org, [{"field": "name", "operator": "starts_with", "value": "ma"}]) == ["Maya Lopez"]

    def test_like_wildcards_match_literally(self, session, org, leads):
        assert escape_like("100%_") == "100\\%\\_"
        assert names(session, org, [{"field": "name", "operator": "contains", "value": "0%"}]) == ["Olga 100%"]

    def test_null_operators(self, session, org, leads):
        assert names(session, org, [{"field": "phone", "operator": "is_not_null"}]) == ["Olga 100%"]
        assert len(names(session, org, [{"field": "phone", "operator": "is_null"}])) == 2

    def test_in_accepts_comma_separated(self, session, org, leads):
        filters = [{"field": "source", "operator": "in", "value": "newsletter, manual"}]
        assert names(session, org, filters) == ["Nina Park", "Olga 100%"]
        filters = [{"field": "source", "operator": "not_in", "value": ["newsletter", "manual"]}]
        assert names(session, org, filters) == ["Maya Lopez"]

    def test_date_comparisons(self, session, org, leads):
        filters = [{"field": "expected_due_date", "operator": "greater_than", "value": "2026-04-01"}]
        assert names(session, org, filters) == ["Nina Park"]
        filters = [{"field": "expected_due_date", "operator": "between", "value": ["2026-01-01", "2026-03-31"]}]
        assert names(session, org, filters) == ["Maya Lopez"]

    def test_or_logic(self, session, org, leads):
        filters = [
            {"field": "status", "operator": "equals", "value": "new"},
            {"field": "status", "operator": "equals", "value": "client", "logic": "OR"},
        ]
        assert names(session, org, filters) == ["Maya Lopez", "Olga 100%"]

    def test_custom_json_field(self, session, org, leads):
        target = replace(target_for("leads"), json_fields={"parity": "number"})
        result = execute_query(
            session, org.id, target, [{"field": "parity", "operator": "greater_or_equal", "value": 2}]
        )
        assert [row.name for row in result.rows] == ["Nina Park"]

    def test_clients_target_is_pre_filtered(self, session, org, leads):
        result = execute_query(session, org.id, target_for("clients"))
        assert [row.name for row in result.rows] == ["Olga 100%"]

    def test_pagination_keeps_total(self, session, org, leads):
        result = execute_query(session, org.id, target_for("leads"), limit=2, offset=2)
        assert result.total == 3
        assert len(result.rows) == 1
        assert result.total_pages == 2

    def test_unknown_operator(self, session, org, leads):
        with pytest.raises(InvalidOperationError, match="Unknown filter operator: sounds_like"):
            names(session, org, [{"field": "name", "operator": "sounds_like", "value": "x"}])

    def test_unknown_field(self, session, org, leads):
        with pytest.raises(InvalidOperationError, match="cannot be filtered"):
            names(session, org, [{"field": "organization_id", "operator": "equals", "value": org.id}])

    def test_bad_value(self, session, org, leads):
        with pytest.raises(InvalidOperationError):
            names(session, org, [{"field": "expected_due_date", "operator": "equals", "value": "someday"}])

    def test_other_organization_rows_excluded(self, session, org, other_org, leads):
        assert execute_query(session, other_org[0].id, target_for("leads")).total == 0


class TestViewDefaults:
    def test_default_columns(self):
        columns = default_columns("leads")
        assert columns[0] == {"field": "name", "label": "Name", "visible": True, "sortable": True, "filterable": True}
        assert next(c for c in columns if c["field"] == "client_type")["visible"] is False

    def test_quick_filter_labels(self):
        options = quick_filters("leads")["status"]
        assert {"value": "new", "label": "New"} in options

    def test_unknown_object_type(self):
        with pytest.raises(InvalidOperationError):
            default_columns("spaceships")


# =============================================================================
# Saved views API
# =============================================================================


class TestListViewAPI:
    """Test saved view visibility and execution."""

    def test_private_views_are_only_visible_to_creator(self, client, owner, staff):
        body = {"object_type": "leads", "name": "My new leads", "filters": [{"field": "status", "value": "new"}]}
        view = client.post("/list-views", json=body, headers=auth(staff)).json()

        assert [v["name"] for v in client.get("/list-views?object_type=leads", headers=auth(staff)).json()] == [
            "My new leads"
        ]
        assert client.get("/list-views?object_type=leads", headers=auth(owner)).json() == []
        assert client.get(f"/list-views/{view['id']}", headers=auth(owner)).status_code == 404

    def test_shared_view_cannot_be_edited_by_others(self, client, staff, other_staff):
        body = {"object_type": "leads", "name": "Team view", "visibility": "org"}
        view = client.post("/list-views", json=body, headers=auth(staff)).json()

        assert client.get(f"/list-views/{view['id']}", headers=auth(other_staff)).status_code == 200
        response = client.patch(f"/list-views/{view['id']}", json={"name": "Mine now"}, headers=auth(other_staff))
        assert response.status_code == 403

    def test_execute_view(self, client, owner, leads):
        body = {
            "object_type": "leads",
            "name": "Example.com",
            "filters": [{"field": "email", "operator": "ends_with", "value": "@example.com"}],
            "sort_config": {"field": "name", "direction": "asc"},
        }
        view = client.post("/list-views", json=body, headers=auth(owner)).json()
        result = client.get(f"/list-views/{view['id']}/execute", headers=auth(owner)).json()
        assert result["count"] == 2
        assert [r["name"] for r in result["data"]] == ["Maya Lopez", "Olga 100%"]

    def test_ad_hoc_query_with_bad_operator(self, client, owner, leads):
        body = {"object_type": "leads", "filters": [{"field": "name", "operator": "near", "value": "x"}]}
        response = client.post("/list-views/query", json=body, headers=auth(owner))
        assert response.status_code == 400

    def test_one_default_per_object(self, client, owner):
        first = client.post(
            "/list-views", json={"object_type": "leads", "name": "A", "is_default": True}, headers=auth(owner)
        ).json()
        second = client.post("/list-views", json={"object_type": "leads", "name": "B"}, headers=auth(owner)).json()
        client.post(f"/list-views/{second['id']}/default", headers=auth(owner))

        assert client.get(f"/list-views/{first['id']}", headers=auth(owner)).json()["is_default"] is False
        assert client.get(f"/list-views/{second['id']}", headers=auth(owner)).json()["is_default"] is True

    def test_bulk_status_update(self, client, owner, leads):
        ids = [leads[0].id, leads[1].id]
        response = client.post(
            "/list-views/bulk/leads/status", json={"ids": ids, "status": "lost"}, headers=auth(owner)
        )
        assert response.json()["succeeded"] == ids

    def test_bulk_delete_requires_admin(self, client, staff, leads):
        response = client.post("/list-views/bulk/leads/delete", json={"ids": [leads[0].id]}, headers=auth(staff))
        assert response.status_code == 403
