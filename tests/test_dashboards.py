"""Tests for dashboards, widget layout and widget data."""

from types import SimpleNamespace

import pytest
from pydantic import ValidationError

from conftest import auth
from doula_crm.dashboards.schemas import WidgetCreate, WidgetPosition
from doula_crm.dashboards.widgets import fits_grid, next_row, palette, widget_defaults
from doula_crm.leads.models import Lead


@pytest.fixture
def leads(session, org):
    rows = [
        Lead(organization_id=org.id, name="Maya", email="maya@example.com", status="new", source="manual"),
        Lead(organization_id=org.id, name="Nina", email="nina@example.com", status="new", source="newsletter"),
        Lead(organization_id=org.id, name="Olga", email="olga@example.com", status="client", source="manual"),
    ]
    session.add_all(rows)
    session.commit()
    return rows


def create_dashboard(client, user, **body):
    body = {"name": "Practice overview", **body}
    response = client.post("/dashboards", json=body, headers=auth(user))
    assert response.status_code == 201
    return response.json()


def add_widget(client, user, dashboard_id, **body):
    return client.post(f"/dashboards/{dashboard_id}/widgets", json=body, headers=auth(user))


# =============================================================================
# Layout helpers
# =============================================================================


class TestWidgetLayout:
    def test_palette_covers_every_widget_type(self):
        entries = palette()
        assert {e["widget_type"] for e in entries} == {
            "metric",
            "chart",
            "table",
            "report",
            "list",
            "funnel",
            "gauge",
            "calendar",
        }
        chart = next(e for e in entries if e["widget_type"] == "chart")
        assert (chart["grid_width"], chart["grid_height"]) == (6, 4)

    def test_defaults_are_copies(self):
        defaults = widget_defaults("metric")
        defaults["config"]["format"] = "currency"
        assert widget_defaults("metric")["config"]["format"] == "number"

    def test_next_row(self):
        widgets = [SimpleNamespace(grid_y=0, grid_height=2), SimpleNamespace(grid_y=1, grid_height=4)]
        assert next_row(widgets) == 5
        assert next_row([]) == 0

    def test_fits_grid(self):
        assert fits_grid(0, 12)
        assert fits_grid(8, 4)
        assert not fits_grid(9, 4)
        assert not fits_grid(0, 0)


class TestWidgetCreate:
    """Test widget input validation."""

    def test_report_source_needs_report(self):
        with pytest.raises(ValidationError, match="Report widgets need a report_id"):
            WidgetCreate(data_source="report")

    def test_query_source_needs_object_type(self):
        with pytest.raises(ValidationError, match="query_config.object_type"):
            WidgetCreate(data_source="query", query_config={"groupings": ["status"]})

    def test_must_fit_twelve_columns(self):
        with pytest.raises(ValidationError, match="past column 12"):
            WidgetCreate(grid_x=10, grid_width=4)
        with pytest.raises(ValidationError):
            WidgetPosition(id="w1", grid_x=6, grid_y=0, grid_width=7, grid_height=2)


# =============================================================================
# API
# =============================================================================


class TestDashboardAPI:
    def test_widgets_get_palette_defaults_and_stack(self, client, owner):
        dashboard = create_dashboard(client, owner)

        first = add_widget(client, owner, dashboard["id"], widget_type="chart").json()
        second = add_widget(client, owner, dashboard["id"], widget_type="metric", title="Leads").json()

        assert first["title"] == "Chart"
        assert first["config"]["chartType"] == "bar"
        assert (first["grid_y"], first["grid_width"], first["grid_height"]) == (0, 6, 4)
        assert second["title"] == "Leads"
        assert second["grid_y"] == 4

        detail = client.get(f"/dashboards/{dashboard['id']}", headers=auth(owner)).json()
        assert [w["id"] for w in detail["widgets"]] == [first["id"], second["id"]]

        summaries = client.get("/dashboards", headers=auth(owner)).json()
        assert summaries[0]["widget_count"] == 2

    def test_invalid_widget_returns_422(self, client, owner):
        dashboard = create_dashboard(client, owner)
        response = add_widget(client, owner, dashboard["id"], grid_x=11, grid_width=2)
        assert response.status_code == 422

    def test_save_with_widgets(self, client, owner):
        body = {"name": "Home", "widgets": [{"widget_type": "gauge"}, {"widget_type": "list"}]}
        response = client.post("/dashboards/save", json=body, headers=auth(owner))
        assert response.status_code == 201
        widgets = response.json()["widgets"]
        assert [w["widget_type"] for w in widgets] == ["gauge", "list"]
        assert widgets[1]["grid_y"] == 3

    def test_replace_widgets(self, client, owner):
        dashboard = client.post(
            "/dashboards/save", json={"name": "Home", "widgets": [{"widget_type": "gauge"}]}, headers=auth(owner)
        ).json()
        body = {"name": "Home v2", "widgets": [{"widget_type": "table"}]}
        response = client.put(f"/dashboards/{dashboard['id']}", json=body, headers=auth(owner))
        assert response.json()["name"] == "Home v2"
        assert [w["widget_type"] for w in response.json()["widgets"]] == ["table"]

    def test_static_widget_data(self, client, owner):
        dashboard = create_dashboard(client, owner)
        widget = add_widget(client, owner, dashboard["id"], config={"value": 42}).json()
        data = client.get(f"/dashboards/widgets/{widget['id']}/data", headers=auth(owner)).json()
        assert data == {"widget_id": widget["id"], "data_source": "static", "data": 42}

    def test_query_widget_data(self, client, owner, leads):
        dashboard = create_dashboard(client, owner)
        widget = add_widget(
            client,
            owner,
            dashboard["id"],
            widget_type="chart",
            data_source="query",
            query_config={"object_type": "leads", "groupings": ["source"]},
        ).json()
        data = client.get(f"/dashboards/widgets/{widget['id']}/data", headers=auth(owner)).json()["data"]
        assert data["rows"] == [{"source": "manual", "count": 2}, {"source": "newsletter", "count": 1}]

    def test_query_widget_without_groupings_returns_totals(self, client, owner, leads):
        dashboard = create_dashboard(client, owner)
        widget = add_widget(
            client, owner, dashboard["id"], data_source="query", query_config={"object_type": "leads"}
        ).json()
        data = client.get(f"/dashboards/widgets/{widget['id']}/data", headers=auth(owner)).json()["data"]
        assert data["rows"] == [{"count": 3}]
        assert data["totals"] == {"count": 3}

    def test_report_widget_data_and_deleted_report(self, client, owner, leads):
        report = client.post(
            "/reports",
            json={"name": "By status", "report_type": "summary", "object_type": "leads", "groupings": ["status"]},
            headers=auth(owner),
        ).json()
        dashboard = create_dashboard(client, owner)
        widget = add_widget(
            client, owner, dashboard["id"], widget_type="report", data_source="report", report_id=report["id"]
        ).json()

        data = client.get(f"/dashboards/widgets/{widget['id']}/data", headers=auth(owner)).json()["data"]
        assert data["summary"]["totals"] == {"count": 3}

        client.delete(f"/reports/{report['id']}", headers=auth(owner))
        response = client.get(f"/dashboards/widgets/{widget['id']}/data", headers=auth(owner))
        assert response.status_code == 400
        assert response.json()["detail"] == "This widget's report has been deleted"

    def test_widget_with_unknown_report(self, client, owner):
        dashboard = create_dashboard(client, owner)
        response = add_widget(client, owner, dashboard["id"], data_source="report", report_id="missing")
        assert response.status_code == 400

    def test_update_positions(self, client, owner):
        dashboard = create_dashboard(client, owner)
        widget = add_widget(client, owner, dashboard["id"]).json()
        positions = [{"id": widget["id"], "grid_x": 6, "grid_y": 2, "grid_width": 6, "grid_height": 3}]
        response = client.put(f"/dashboards/{dashboard['id']}/widgets/positions", json=positions, headers=auth(owner))
        assert response.status_code == 200
        assert (response.json()[0]["grid_x"], response.json()[0]["grid_y"]) == (6, 2)

    def test_positions_reject_foreign_widget(self, client, owner):
        first = create_dashboard(client, owner)
        second = create_dashboard(client, owner, name="Other")
        widget = add_widget(client, owner, second["id"]).json()
        positions = [{"id": widget["id"], "grid_x": 0, "grid_y": 0, "grid_width": 3, "grid_height": 2}]
        response = client.put(f"/dashboards/{first['id']}/widgets/positions", json=positions, headers=auth(owner))
        assert response.status_code == 400

    def test_one_default_per_user(self, client, owner):
        first = create_dashboard(client, owner)
        second = create_dashboard(client, owner, name="Second")
        client.post(f"/dashboards/{first['id']}/default", headers=auth(owner))
        client.post(f"/dashboards/{second['id']}/default", headers=auth(owner))

        assert client.get(f"/dashboards/{first['id']}", headers=auth(owner)).json()["is_default"] is False
        assert client.get(f"/dashboards/{second['id']}", headers=auth(owner)).json()["is_default"] is True

    def test_private_dashboard_is_hidden(self, client, owner, staff):
        dashboard = create_dashboard(client, staff)
        assert client.get(f"/dashboards/{dashboard['id']}", headers=auth(owner)).status_code == 404

    def test_org_dashboard_is_read_only_to_others(self, client, staff, other_staff):
        dashboard = create_dashboard(client, staff, visibility="org")
        assert client.get(f"/dashboards/{dashboard['id']}", headers=auth(other_staff)).status_code == 200
        response = add_widget(client, other_staff, dashboard["id"])
        assert response.status_code == 403
