"""Tests for the generic record API: CRUD, field security and sharing."""

import pytest

from conftest import auth
from doula_crm.metadata.schemas import CustomFieldInput, CustomObjectCreate
from doula_crm.metadata.service import MetadataService
from doula_crm.sharing.schemas import ManualShareCreate
from doula_crm.sharing.service import SharingService


def field_id(session, owner_ctx, api_name, field_name):
    fields = MetadataService(session, owner_ctx).fields_for_object(api_name)
    return next(f.id for f in fields if f.api_name == field_name)


def restrict_phone(session, owner_ctx, visible, editable):
    MetadataService(session, owner_ctx).set_permission(
        "staff", field_id(session, owner_ctx, "Lead", "phone"), visible, editable
    )


@pytest.fixture
def birth_plans(session, owner_ctx):
    """A private custom object with a picklist field."""
    return MetadataService(session, owner_ctx).create_custom_object(
        CustomObjectCreate(
            api_name="Birth_Plan",
            label="Birth Plan",
            plural_label="Birth Plans",
            fields=[
                CustomFieldInput(
                    api_name="setting", label="Setting", data_type="picklist", picklist_values=["home", "hospital"]
                ),
                CustomFieldInput(api_name="notes", label="Notes", data_type="textarea"),
            ],
        )
    )["object"]


# =============================================================================
# Standard objects
# =============================================================================


class TestStandardRecords:
    """Test CRUD against table-backed objects."""

    def test_create_and_get_lead(self, client, owner):
        response = client.post(
            "/records/Lead", json={"name": "Maya Lopez", "email": "maya@example.com"}, headers=auth(owner)
        )
        assert response.status_code == 201
        record = response.json()
        assert "email_domain" not in record
        assert record["assigned_to_user_id"] == owner.id

        response = client.get(f"/records/Lead/{record['id']}", headers=auth(owner))
        assert response.status_code == 200
        assert response.json()["name"] == "Maya Lopez"

    def test_client_records_are_leads_with_client_status(self, client, owner):
        created = client.post(
            "/records/Client", json={"name": "Ana", "email": "ana@example.com"}, headers=auth(owner)
        ).json()
        lead = client.post("/records/Lead", json={"name": "Bo", "email": "bo@example.com"}, headers=auth(owner)).json()

        page = client.get("/records/Client", headers=auth(owner)).json()
        assert [r["id"] for r in page["records"]] == [created["id"]]
        assert client.get(f"/records/Client/{lead['id']}", headers=auth(owner)).status_code == 404

    def test_assignee_from_other_organization_rejected(self, client, owner, other_org):
        body = {"name": "Maya", "email": "maya@example.com", "assigned_to_user_id": other_org[1].id}
        response = client.post("/records/Lead", json=body, headers=auth(owner))
        assert response.status_code == 400
        assert response.json()["detail"] == "Assigned user not found"

    def test_missing_required_field(self, client, owner):
        response = client.post("/records/Lead", json={"name": "No Email"}, headers=auth(owner))
        assert response.status_code == 400
        assert response.json()["detail"] == "Required field(s) missing: Email"

    def test_unknown_field(self, client, owner):
        response = client.post(
            "/records/Lead", json={"name": "X", "email": "x@example.com", "shoe_size": 9}, headers=auth(owner)
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Unknown field(s): shoe_size"

    def test_invalid_picklist_value(self, client, owner):
        response = client.post(
            "/records/Lead", json={"name": "X", "email": "x@example.com", "status": "dormant"}, headers=auth(owner)
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid value for Status: dormant"

    def test_invoices_are_read_only(self, client, owner):
        response = client.post("/records/Invoice", json={"invoice_number": "INV-1"}, headers=auth(owner))
        assert response.status_code == 400

    def test_read_only_field_cannot_be_edited(self, client, owner):
        lead = client.post("/records/Lead", json={"name": "X", "email": "x@example.com"}, headers=auth(owner)).json()
        response = client.patch(f"/records/Lead/{lead['id']}", json={"partner_name": "Hacked"}, headers=auth(owner))
        assert response.status_code == 403

    def test_unknown_object_returns_404(self, client, owner):
        assert client.get("/records/Spaceship", headers=auth(owner)).status_code == 404

    def test_search_and_sort(self, client, owner):
        for name in ("Cara", "Abby", "Bria"):
            client.post(
                "/records/Lead", json={"name": name, "email": f"{name.lower()}@example.com"}, headers=auth(owner)
            )
        page = client.get(
            "/records/Lead", params={"sort_field": "name", "sort_direction": "asc"}, headers=auth(owner)
        ).json()
        assert [r["name"] for r in page["records"]] == ["Abby", "Bria", "Cara"]
        assert page["total"] == 3

        response = client.post(
            "/records/Lead/query", json={"search": "bri", "search_fields": ["name"]}, headers=auth(owner)
        )
        assert [r["name"] for r in response.json()["records"]] == ["Bria"]

    def test_other_organization_cannot_read(self, client, owner, other_org):
        lead = client.post("/records/Lead", json={"name": "X", "email": "x@example.com"}, headers=auth(owner)).json()
        outsider = other_org[1]
        assert client.get(f"/records/Lead/{lead['id']}", headers=auth(outsider)).status_code == 404
        assert client.get("/records/Lead", headers=auth(outsider)).json()["total"] == 0

    def test_bulk_update_reports_failures(self, client, owner):
        lead = client.post("/records/Lead", json={"name": "X", "email": "x@example.com"}, headers=auth(owner)).json()
        response = client.post(
            "/records/Lead/bulk-update",
            json={"ids": [lead["id"], "missing"], "values": {"phone": "555-0100"}},
            headers=auth(owner),
        )
        assert response.json() == {"succeeded": [lead["id"]], "failed": {"missing": "Record not found"}}


# =============================================================================
# Field-level security
# =============================================================================


class TestFieldSecurity:
    """Test that per-role field permissions shape reads and writes."""

    def test_hidden_field_is_stripped(self, client, session, owner, owner_ctx, staff):
        restrict_phone(session, owner_ctx, visible=False, editable=False)
        lead = client.post(
            "/records/Lead", json={"name": "X", "email": "x@example.com", "phone": "555-0100"}, headers=auth(owner)
        ).json()

        record = client.get(f"/records/Lead/{lead['id']}", headers=auth(staff)).json()
        assert "phone" not in record
        assert record["name"] == "X"
        assert client.get(f"/records/Lead/{lead['id']}", headers=auth(owner)).json()["phone"] == "555-0100"

    def test_filtering_on_hidden_field_is_denied(self, client, session, owner_ctx, staff):
        restrict_phone(session, owner_ctx, visible=False, editable=False)
        response = client.post(
            "/records/Lead/query",
            json={"filters": [{"field": "phone", "operator": "is_not_null"}]},
            headers=auth(staff),
        )
        assert response.status_code == 403
        assert response.json()["detail"] == "You do not have access to: phone"

    def test_visible_but_not_editable(self, client, session, owner, owner_ctx, staff):
        restrict_phone(session, owner_ctx, visible=True, editable=False)
        lead = client.post("/records/Lead", json={"name": "X", "email": "x@example.com"}, headers=auth(owner)).json()
        response = client.patch(f"/records/Lead/{lead['id']}", json={"phone": "555"}, headers=auth(staff))
        assert response.status_code == 403
        assert response.json()["detail"] == "You do not have permission to edit: phone"

    def test_hidden_fields_are_never_editable(self, session, owner_ctx):
        permission = MetadataService(session, owner_ctx).set_permission(
            "staff", field_id(session, owner_ctx, "Lead", "phone"), False, True
        )
        assert permission.is_editable is False


# =============================================================================
# Custom objects and sharing
# =============================================================================


class TestCustomObjectSharing:
    """Test private custom object records under sharing."""

    def test_custom_record_round_trip(self, client, owner, birth_plans):
        response = client.post(
            "/records/Birth_Plan__c",
            json={"name": "Maya's plan", "setting__c": "home", "custom_fields": {"notes__c": "Water birth"}},
            headers=auth(owner),
        )
        assert response.status_code == 201
        record = response.json()
        assert record["custom_fields"] == {"setting__c": "home", "notes__c": "Water birth"}
        assert record["owner_id"] == owner.id

    def test_custom_record_needs_a_name(self, client, owner, birth_plans):
        response = client.post("/records/Birth_Plan__c", json={"setting__c": "home"}, headers=auth(owner))
        assert response.status_code == 400

    def test_owner_from_other_organization_rejected(self, client, owner, other_org, birth_plans):
        body = {"name": "Plan", "owner_id": other_org[1].id}
        response = client.post("/records/Birth_Plan__c", json=body, headers=auth(owner))
        assert response.status_code == 400
        assert response.json()["detail"] == "Assigned user not found"

    def test_custom_picklist_is_validated(self, client, owner, birth_plans):
        response = client.post(
            "/records/Birth_Plan__c", json={"name": "Plan", "setting__c": "moon"}, headers=auth(owner)
        )
        assert response.status_code == 400

    def test_private_records_hidden_from_peers(self, client, staff, other_staff, birth_plans):
        record = client.post("/records/Birth_Plan__c", json={"name": "Mine"}, headers=auth(staff)).json()

        assert client.get(f"/records/Birth_Plan__c/{record['id']}", headers=auth(other_staff)).status_code == 403
        assert client.get("/records/Birth_Plan__c", headers=auth(other_staff)).json()["total"] == 0
        assert client.get("/records/Birth_Plan__c", headers=auth(staff)).json()["total"] == 1

    def test_manual_share_grants_access(self, client, session, owner_ctx, staff, other_staff, birth_plans):
        record = client.post("/records/Birth_Plan__c", json={"name": "Mine"}, headers=auth(staff)).json()
        SharingService(session, owner_ctx).create_manual_share(
            ManualShareCreate(
                object_api_name="Birth_Plan__c",
                record_id=record["id"],
                share_with_id=other_staff.id,
                access_level="read",
            )
        )

        assert client.get(f"/records/Birth_Plan__c/{record['id']}", headers=auth(other_staff)).status_code == 200
        response = client.patch(
            f"/records/Birth_Plan__c/{record['id']}", json={"name": "Edited"}, headers=auth(other_staff)
        )
        assert response.status_code == 403

    def test_only_owner_or_admin_deletes(self, client, staff, other_staff, admin, session, owner_ctx, birth_plans):
        record = client.post("/records/Birth_Plan__c", json={"name": "Mine"}, headers=auth(staff)).json()
        SharingService(session, owner_ctx).create_manual_share(
            ManualShareCreate(
                object_api_name="Birth_Plan__c",
                record_id=record["id"],
                share_with_id=other_staff.id,
                access_level="full_access",
            )
        )
        assert client.delete(f"/records/Birth_Plan__c/{record['id']}", headers=auth(other_staff)).status_code == 403
        assert client.delete(f"/records/Birth_Plan__c/{record['id']}", headers=auth(admin)).status_code == 204

    def test_record_security_context(self, client, staff, birth_plans):
        record = client.post("/records/Birth_Plan__c", json={"name": "Mine"}, headers=auth(staff)).json()
        response = client.get(f"/records/Birth_Plan__c/{record['id']}/security", headers=auth(staff))
        assert response.status_code == 200
        body = response.json()
        assert body["is_owner"] is True
        assert body["access_level"] == "full_access"
