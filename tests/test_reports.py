"""Tests for the report engine, saved reports and practice analytics."""

from datetime import date, timedelta

import pytest

from conftest import auth
from doula_crm.core.errors import InvalidOperationError
from doula_crm.core.models import utcnow
from doula_crm.invoices.models import Invoice
from doula_crm.leads.models import Lead
from doula_crm.list_views.query import target_for
from doula_crm.payments.models import Payment
from doula_crm.reports import analytics
from doula_crm.reports.engine import (
    Aggregation,
    describe_report,
    grand_totals,
    grouped_rows,
    parse_aggregations,
    run_matrix,
    run_summary,
    validate_definition,
)


@pytest.fixture
def leads(session, org):
    today = utcnow().date()
    rows = [
        Lead(organization_id=org.id, name="Maya Lopez", email="maya@example.com", status="new", source="contact_form"),
        Lead(organization_id=org.id, name="Nina Park", email="nina@example.com", status="new", source="manual"),
        Lead(
            organization_id=org.id,
            name="Olga Reyes",
            email="olga@example.com",
            status="client",
            source="manual",
            expected_due_date=today + timedelta(days=10),
        ),
    ]
    session.add_all(rows)
    session.commit()
    return rows


@pytest.fixture
def invoices(session, org, leads):
    client_id = leads[2].id
    rows = [
        Invoice(organization_id=org.id, invoice_number="INV-1", client_id=client_id, status="sent", total=100.0),
        Invoice(organization_id=org.id, invoice_number="INV-2", client_id=client_id, status="paid", total=250.0),
        Invoice(organization_id=org.id, invoice_number="INV-3", client_id=client_id, status="paid", total=150.0),
        Invoice(
            organization_id=org.id,
            invoice_number="INV-4",
            client_id=client_id,
            status="overdue",
            total=80.0,
            balance_due=80.0,
            due_date=date(2026, 9, 1),
        ),
    ]
    session.add_all(rows)
    session.commit()
    return rows


# =============================================================================
# Engine
# =============================================================================


class TestAggregations:
    def test_key_and_display(self):
        assert Aggregation("sum", "total").key == "sum_total"
        assert Aggregation("sum", "total").display == "Sum of total"
        assert Aggregation("count").display == "Count of records"
        assert Aggregation("count_distinct", "source").display == "Count Distinct of source"
        assert Aggregation("avg", "total", label="Average invoice").display == "Average invoice"

    def test_defaults_to_record_count(self):
        assert parse_aggregations(None) == [Aggregation("count", label="Record Count")]
        assert parse_aggregations([{"type": "max", "field": "total"}]) == [Aggregation("max", "total")]


class TestValidateDefinition:
    """Test that unrunnable definitions are rejected before execution."""

    def test_summary_needs_grouping(self):
        with pytest.raises(InvalidOperationError, match="Summary reports need at least one grouping"):
            validate_definition(target_for("leads"), "summary", [], [], None)

    def test_matrix_needs_two_groupings(self):
        with pytest.raises(InvalidOperationError, match=r"exactly two groupings \(rows and columns\)"):
            validate_definition(target_for("leads"), "matrix", [], ["status"], None)

    def test_sum_needs_numeric_field(self):
        with pytest.raises(InvalidOperationError, match="sum needs a numeric field, 'name' is not"):
            validate_definition(target_for("leads"), "summary", [], ["status"], [{"type": "sum", "field": "name"}])

    def test_unknown_aggregation(self):
        with pytest.raises(InvalidOperationError, match="Unknown aggregation: x"):
            validate_definition(target_for("leads"), "summary", [], ["status"], [{"type": "x"}])

    def test_unknown_column(self):
        with pytest.raises(InvalidOperationError):
            validate_definition(target_for("leads"), "tabular", ["shoe_size"], [], None)

    def test_tabular_without_groupings_is_fine(self):
        validate_definition(target_for("leads"), "tabular", ["name", "status"], [], None)


class TestRunSummary:
    def test_grouped_sums_and_totals(self, session, org, invoices):
        aggregations = [{"type": "count"}, {"type": "sum", "field": "total"}]
        result = run_summary(session, org.id, target_for("invoices"), [], ["status"], aggregations)
        assert result["rows"] == [
            {"status": "overdue", "count": 1, "sum_total": 80.0},
            {"status": "paid", "count": 2, "sum_total": 400.0},
            {"status": "sent", "count": 1, "sum_total": 100.0},
        ]
        assert result["totals"] == {"count": 4, "sum_total": 580.0}
        assert [a["key"] for a in result["aggregations"]] == ["count", "sum_total"]

    def test_filters_apply_to_rows_and_totals(self, session, org, invoices):
        filters = [{"field": "status", "operator": "in", "value": ["paid", "sent"]}]
        aggregations = [{"type": "avg", "field": "total"}]
        result = run_summary(session, org.id, target_for("invoices"), filters, ["status"], aggregations)
        assert result["rows"] == [{"status": "paid", "avg_total": 200.0}, {"status": "sent", "avg_total": 100.0}]
        assert result["totals"] == {"avg_total": pytest.approx(500 / 3)}

    def test_other_organization_rows_are_excluded(self, session, other_org, invoices):
        result = run_summary(session, other_org[0].id, target_for("invoices"), [], ["status"], None)
        assert result["rows"] == []
        assert result["totals"] == {"count": 0}

    def test_single_aggregation_totals(self, session, org, leads):
        """Test that one aggregation with no groupings still yields keyed rows."""
        target = target_for("leads")
        [count] = parse_aggregations(None)
        assert grouped_rows(session, org.id, target, [], [], [count]) == [{"count": 3}]
        assert grand_totals(session, org.id, target, [], [count]) == {"count": 3}

        result = run_summary(session, org.id, target, [], ["status"], None)
        assert result["rows"] == [{"status": "client", "count": 1}, {"status": "new", "count": 2}]
        assert result["totals"] == {"count": 3}


class TestRunMatrix:
    def test_pivot_with_totals(self, session, org, leads):
        matrix = run_matrix(session, org.id, target_for("leads"), [], ["status", "source"], None)

        assert matrix["rows"] == ["client", "new"]
        assert matrix["columns"] == ["contact_form", "manual"]
        assert matrix["cells"] == {"client": {"manual": 1}, "new": {"contact_form": 1, "manual": 1}}
        assert matrix["row_totals"] == {"client": 1, "new": 2}
        assert matrix["column_totals"] == {"contact_form": 1, "manual": 2}
        assert matrix["grand_total"] == 3

    def test_requires_two_groupings(self, session, org, leads):
        with pytest.raises(InvalidOperationError):
            run_matrix(session, org.id, target_for("leads"), [], ["status"], None)


class TestDescribeReport:
    def test_tabular(self):
        assert describe_report("tabular", "Leads", ["name", "email"]) == "name, email from Leads"
        assert describe_report("tabular", "Leads") == "All fields from Leads"

    def test_summary_with_filters(self):
        text = describe_report(
            "summary",
            "Invoices",
            filters=[
                {"field": "status", "operator": "equals", "value": "paid"},
                {"field": "total", "operator": "is_not_null", "logic": "OR"},
            ],
            groupings=["status"],
            aggregations=[{"type": "sum", "field": "total"}],
        )
        assert text == "Sum of total from Invoices, grouped by status where status equals paid OR total is not null"

    def test_matrix(self):
        text = describe_report("matrix", "Leads", groupings=["status", "source"])
        assert text == "Record Count from Leads, grouped by status by source"


# =============================================================================
# Analytics
# =============================================================================


class TestAnalyticsHelpers:
    def test_month_start(self):
        assert analytics.month_start(date(2026, 1, 15)) == date(2026, 1, 1)
        assert analytics.month_start(date(2026, 1, 15), 1) == date(2025, 12, 1)
        assert analytics.month_start(date(2026, 12, 3), -1) == date(2027, 1, 1)

    def test_due_date_badge(self):
        assert analytics.due_date_badge(3) == "This week"
        assert analytics.due_date_badge(10) == "2 weeks"
        assert analytics.due_date_badge(30) == "5 weeks"

    def test_source_label(self):
        assert analytics.source_label("contact_form") == "Contact Form"
        assert analytics.source_label(None) == "Unknown"


class TestDashboardKpis:
    def test_kpis(self, session, org, invoices):
        client_id = invoices[0].client_id
        session.add(
            Payment(
                organization_id=org.id,
                client_id=client_id,
                amount=300.0,
                payment_date=utcnow().date(),
                status="completed",
            )
        )
        session.add(
            Payment(organization_id=org.id, client_id=client_id, amount=99.0, payment_date=utcnow().date())
        )
        session.commit()

        kpis = analytics.dashboard_kpis(session, org.id)

        assert kpis["totalLeads"] == 3
        assert kpis["newLeadsThisMonth"] == 3
        assert kpis["activeClients"] == 1
        assert kpis["conversionRate"] == pytest.approx(100 / 3)
        assert kpis["revenueThisMonth"] == 300.0
        assert kpis["revenueLastMonth"] == 0
        assert kpis["upcomingBirths"] == 1
        assert kpis["overdueInvoices"] == 1

    def test_empty_organization(self, session, org):
        kpis = analytics.dashboard_kpis(session, org.id)
        assert kpis["totalLeads"] == 0
        assert kpis["conversionRate"] == 0

    def test_lead_funnel_excludes_lost(self, session, org, leads):
        funnel = analytics.lead_funnel(session, org.id)
        assert funnel == [
            {"stage": "New", "count": 2},
            {"stage": "Contacted", "count": 0},
            {"stage": "Scheduled", "count": 0},
            {"stage": "Client", "count": 1},
        ]

    def test_upcoming_births_and_overdue_invoices(self, session, org, invoices):
        births = analytics.upcoming_births(session, org.id)
        assert [b["title"] for b in births] == ["Olga Reyes"]
        assert births[0]["badge"] == "2 weeks"

        overdue = analytics.overdue_invoices(session, org.id)
        assert overdue[0]["title"] == "#INV-4"
        assert overdue[0]["subtitle"] == "Olga Reyes - $80.00"


# =============================================================================
# API
# =============================================================================


class TestReportAPI:
    """Test saved reports over HTTP."""

    SUMMARY = {
        "name": "Revenue by status",
        "report_type": "summary",
        "object_type": "invoices",
        "groupings": ["status"],
        "aggregations": [{"type": "sum", "field": "total"}],
    }

    def test_create_and_run(self, client, owner, invoices):
        response = client.post("/reports", json=self.SUMMARY, headers=auth(owner))
        assert response.status_code == 201
        report = response.json()

        result = client.post(f"/reports/{report['id']}/run", headers=auth(owner)).json()
        assert result["description"] == "Sum of total from Invoices, grouped by status"
        assert result["total"] == 3
        assert result["summary"]["totals"] == {"sum_total": 580.0}

    def test_invalid_definition_is_rejected(self, client, owner):
        body = {**self.SUMMARY, "groupings": []}
        response = client.post("/reports", json=body, headers=auth(owner))
        assert response.status_code == 400
        assert response.json()["detail"] == "Summary reports need at least one grouping"

    def test_preview_tabular_projects_columns(self, client, owner, leads):
        body = {"object_type": "leads", "columns": ["name", "status"]}
        result = client.post("/reports/preview", json=body, headers=auth(owner)).json()
        assert result["total"] == 3
        assert all(set(row) == {"id", "name", "status"} for row in result["rows"])
        assert {row["name"] for row in result["rows"]} == {"Maya Lopez", "Nina Park", "Olga Reyes"}

    def test_preview_matrix(self, client, owner, leads):
        body = {"report_type": "matrix", "object_type": "leads", "groupings": ["status", "source"]}
        result = client.post("/reports/preview", json=body, headers=auth(owner)).json()
        assert result["matrix"]["grand_total"] == 3

    def test_describe_unsaved_definition(self, client, owner):
        body = {"object_type": "leads", "columns": ["name"]}
        response = client.post("/reports/describe", json=body, headers=auth(owner))
        assert response.json() == {"description": "name from Leads"}

    def test_private_reports_are_hidden(self, client, owner, staff):
        report = client.post("/reports", json=self.SUMMARY, headers=auth(staff)).json()
        assert client.get(f"/reports/{report['id']}", headers=auth(owner)).status_code == 404
        assert client.get("/reports", headers=auth(owner)).json() == []
        assert [r["id"] for r in client.get("/reports/available", headers=auth(staff)).json()] == [report["id"]]

    def test_only_creator_or_admin_edits(self, client, staff, other_staff, admin):
        report = client.post("/reports", json={**self.SUMMARY, "visibility": "org"}, headers=auth(staff)).json()
        response = client.patch(f"/reports/{report['id']}", json={"name": "Mine"}, headers=auth(other_staff))
        assert response.status_code == 403
        response = client.patch(f"/reports/{report['id']}", json={"name": "Renamed"}, headers=auth(admin))
        assert response.json()["name"] == "Renamed"

    def test_update_is_validated(self, client, owner):
        report = client.post("/reports", json=self.SUMMARY, headers=auth(owner)).json()
        response = client.patch(f"/reports/{report['id']}", json={"report_type": "matrix"}, headers=auth(owner))
        assert response.status_code == 400

    def test_delete(self, client, owner):
        report = client.post("/reports", json=self.SUMMARY, headers=auth(owner)).json()
        assert client.delete(f"/reports/{report['id']}", headers=auth(owner)).status_code == 204
        assert client.get(f"/reports/{report['id']}", headers=auth(owner)).status_code == 404

    def test_analytics_routes(self, client, owner, invoices):
        kpis = client.get("/reports/analytics/kpis", headers=auth(owner)).json()
        assert kpis["totalLeads"] == 3

        sources = client.get("/reports/analytics/lead-sources", headers=auth(owner)).json()
        assert sources[0] == {"name": "Manual", "value": 2.0}

        trend = client.get("/reports/analytics/revenue-trend", headers=auth(owner)).json()
        assert len(trend) == 6

        overdue = client.get("/reports/analytics/overdue-invoices", headers=auth(owner)).json()
        assert overdue[0]["status"] == "Overdue"
