"""Tests for object metadata, field permissions and navigation."""

import pytest

from conftest import auth
from doula_crm.core.errors import InvalidOperationError
from doula_crm.metadata.models import FieldDefinition, FieldPermission
from doula_crm.metadata.security import filter_fields_by_permissions
from doula_crm.metadata.service import custom_api_name


def create_object(client, user, **body):
    body = {"api_name": "Birth_Plan", "label": "Birth Plan", "plural_label": "Birth Plans", **body}
    return client.post("/metadata/objects", json=body, headers=auth(user))


def lead_field(client, user, api_name):
    fields = client.get("/metadata/objects/by-name/Lead/fields", headers=auth(user)).json()
    return next(f for f in fields if f["api_name"] == api_name)


# =============================================================================
# Objects and fields
# =============================================================================


class TestCustomApiName:
    def test_suffix_added_once(self):
        assert custom_api_name("Birth_Plan") == "Birth_Plan__c"
        assert custom_api_name("Birth_Plan__c") == "Birth_Plan__c"

    @pytest.mark.parametrize("name", ["1plan", "birth plan", "plan-x", "_plan"])
    def test_invalid_names(self, name):
        with pytest.raises(InvalidOperationError, match="Invalid API name"):
            custom_api_name(name)


class TestObjects:
    """Test standard metadata seeding and custom object creation."""

    def test_standard_objects_seeded(self, client, owner):
        objects = client.get("/metadata/objects", headers=auth(owner)).json()
        assert {o["api_name"] for o in objects} == {
            "Lead",
            "Client",
            "Service",
            "Meeting",
            "Invoice",
            "Payment",
            "TeamMember",
        }
        assert all(o["is_standard"] for o in objects)

    def test_object_metadata_includes_picklists_and_layout(self, client, owner):
        metadata = client.get("/metadata/objects/by-name/Lead", headers=auth(owner)).json()
        status = next(f for f in metadata["fields"] if f["api_name"] == "status")
        assert [v["value"] for v in status["picklist_values"]] == ["new", "contacted", "scheduled", "client", "lost"]
        assert metadata["page_layout"]["is_default"] is True
        assert client.get("/metadata/objects/by-name/Nope", headers=auth(owner)).status_code == 404

    def test_create_custom_object(self, client, owner):
        pain_relief = {
            "api_name": "Pain_Relief",
            "label": "Pain relief",
            "data_type": "picklist",
            "picklist_values": ["none", "epidural"],
        }
        response = create_object(client, owner, fields=[{"api_name": "Hospital", "label": "Hospital"}, pain_relief])
        assert response.status_code == 201
        result = response.json()
        assert result["object"]["api_name"] == "Birth_Plan__c"
        assert result["object"]["is_custom"] is True
        assert [f["api_name"] for f in result["fields"]] == ["Name", "Hospital__c", "Pain_Relief__c"]
        assert result["fields"][0]["is_name_field"] is True
        assert result["page_layout"]["name"] == "Default Layout"

        pain = client.get(f"/metadata/fields/{result['fields'][2]['id']}", headers=auth(owner)).json()
        assert [v["value"] for v in pain["picklist_values"]] == ["none", "epidural"]

    def test_duplicate_object_conflicts(self, client, owner):
        create_object(client, owner)
        response = create_object(client, owner, api_name="Birth_Plan__c")
        assert response.status_code == 409

    def test_duplicate_field_names_rejected(self, client, owner):
        fields = [{"api_name": "Notes", "label": "Notes"}, {"api_name": "Notes__c", "label": "More notes"}]
        assert create_object(client, owner, fields=fields).status_code == 400

    def test_staff_cannot_create_objects(self, client, staff):
        assert create_object(client, staff).status_code == 403

    def test_standard_objects_are_locked(self, client, owner):
        lead = client.get("/metadata/objects/by-name/Lead", headers=auth(owner)).json()["object"]
        response = client.post(f"/metadata/objects/{lead['id']}/deactivate", headers=auth(owner))
        assert response.status_code == 400
        assert response.json()["detail"] == "Standard objects cannot be deactivated"

    def test_other_organization_objects_are_hidden(self, client, owner, other_org):
        created = create_object(client, owner).json()
        response = client.get(f"/metadata/objects/{created['object']['id']}", headers=auth(other_org[1]))
        assert response.status_code == 404


class TestFields:
    def test_add_field_appends_order(self, client, owner):
        created = create_object(client, owner, fields=[{"api_name": "Hospital", "label": "Hospital"}]).json()
        object_id = created["object"]["id"]
        response = client.post(
            f"/metadata/objects/{object_id}/fields",
            json={"api_name": "Due", "label": "Due date", "data_type": "date"},
            headers=auth(owner),
        )
        assert response.status_code == 201
        assert response.json()["display_order"] == 2

        again = client.post(
            f"/metadata/objects/{object_id}/fields", json={"api_name": "Due", "label": "Due"}, headers=auth(owner)
        )
        assert again.status_code == 409

    def test_standard_fields_cannot_be_deleted(self, client, owner):
        email = lead_field(client, owner, "email")
        assert client.delete(f"/metadata/fields/{email['id']}", headers=auth(owner)).status_code == 400

    def test_name_field_stays_required_and_active(self, client, owner):
        """Test that a custom object's Name field keeps the flags record creation relies on."""
        name_field = create_object(client, owner).json()["fields"][0]
        url = f"/metadata/fields/{name_field['id']}"

        response = client.patch(url, json={"is_required": False, "is_read_only": True}, headers=auth(owner))
        assert response.status_code == 400
        assert response.json()["detail"] == "The name field cannot change: is_read_only, is_required"
        assert client.post(f"{url}/deactivate", headers=auth(owner)).status_code == 400
        assert client.delete(url, headers=auth(owner)).status_code == 400

        renamed = client.patch(url, json={"label": "Plan name", "is_required": True}, headers=auth(owner))
        assert renamed.status_code == 200
        assert renamed.json()["label"] == "Plan name"

    def test_picklist_values(self, client, owner):
        status = lead_field(client, owner, "status")
        response = client.post(
            f"/metadata/fields/{status['id']}/picklist-values",
            json={"value": "waitlist", "is_default": True},
            headers=auth(owner),
        )
        assert response.status_code == 201
        assert response.json()["label"] == "waitlist"
        assert response.json()["display_order"] == 5

        duplicate = client.post(
            f"/metadata/fields/{status['id']}/picklist-values", json={"value": "new"}, headers=auth(owner)
        )
        assert duplicate.status_code == 409

        email = lead_field(client, owner, "email")
        wrong_type = client.post(
            f"/metadata/fields/{email['id']}/picklist-values", json={"value": "x"}, headers=auth(owner)
        )
        assert wrong_type.status_code == 400

    def test_default_layout_cannot_be_deleted(self, client, owner):
        lead = client.get("/metadata/objects/by-name/Lead", headers=auth(owner)).json()
        layout_id = lead["page_layout"]["id"]
        assert client.delete(f"/metadata/layouts/{layout_id}", headers=auth(owner)).status_code == 400


# =============================================================================
# Field permissions
# =============================================================================


class TestFieldPermissions:
    def test_hidden_field_is_never_editable(self, client, owner):
        phone = lead_field(client, owner, "phone")
        body = {"role": "staff", "field_definition_id": phone["id"], "is_visible": False, "is_editable": True}
        permission = client.put("/metadata/field-permissions", json=body, headers=auth(owner)).json()
        assert (permission["is_visible"], permission["is_editable"]) == (False, False)

    def test_filter_fields_by_permissions(self):
        phone = FieldDefinition(organization_id="o", object_definition_id="obj", api_name="phone", label="Phone")
        email = FieldDefinition(organization_id="o", object_definition_id="obj", api_name="email", label="Email")
        hidden = FieldPermission(organization_id="o", role="staff", field_definition_id=phone.id, is_visible=False)
        assert filter_fields_by_permissions([phone, email], [hidden]) == [email]
        assert filter_fields_by_permissions([phone, email], []) == [phone, email]

    def test_accessible_fields_follow_role(self, client, owner, staff):
        phone = lead_field(client, owner, "phone")
        email = lead_field(client, owner, "email")
        body = {
            "role": "staff",
            "permissions": [
                {"field_definition_id": phone["id"], "is_visible": False, "is_editable": False},
                {"field_definition_id": email["id"], "is_visible": True, "is_editable": False},
            ],
        }
        client.put("/metadata/field-permissions/bulk", json=body, headers=auth(owner))

        fields = client.get("/metadata/objects/by-name/Lead/accessible-fields", headers=auth(staff)).json()
        by_name = {f["api_name"]: f for f in fields}
        assert "phone" not in by_name
        assert by_name["email"]["can_edit"] is False
        assert by_name["name"]["can_edit"] is True

        matrix = client.get("/metadata/field-permissions/matrix/Lead?role=staff", headers=auth(owner)).json()
        rows = {row["api_name"]: row for row in matrix["fields"]}
        assert rows["phone"]["is_visible"] is False
        assert rows["expected_due_date"]["is_sensitive"] is True

    def test_copy_and_reset(self, client, owner):
        phone = lead_field(client, owner, "phone")
        body = {"role": "staff", "field_definition_id": phone["id"], "is_visible": False}
        client.put("/metadata/field-permissions", json=body, headers=auth(owner))

        copied = client.post(
            "/metadata/field-permissions/copy", json={"from_role": "staff", "to_role": "assistant"}, headers=auth(owner)
        ).json()
        assert [(p["role"], p["field_definition_id"]) for p in copied] == [("assistant", phone["id"])]

        reset = client.post("/metadata/field-permissions/reset?role=staff", headers=auth(owner)).json()
        assert reset == {"removed": 1}

    def test_copy_to_same_role(self, client, owner):
        body = {"from_role": "staff", "to_role": "staff"}
        assert client.post("/metadata/field-permissions/copy", json=body, headers=auth(owner)).status_code == 400

    def test_security_context(self, client, staff):
        context = client.get("/metadata/security-context", headers=auth(staff)).json()
        assert context == {"user_id": staff.id, "role": "staff", "hierarchy_level": 4, "is_admin": False}


# =============================================================================
# Navigation
# =============================================================================


class TestNavigation:
    """Test role-based navigation built from the seeded defaults."""

    def test_owner_sees_tabs_in_default_order(self, client, owner):
        config = client.get("/navigation", headers=auth(owner)).json()
        assert [i["item_key"] for i in config["primary_tabs"]] == [
            "Lead",
            "Client",
            "Service",
            "Meeting",
            "Invoice",
            "Payment",
            "TeamMember",
        ]
        assert [i["item_key"] for i in config["admin_menu"]] == ["team", "setup"]
        assert config["available"] == []

    def test_staff_gets_available_items(self, client, staff):
        config = client.get("/navigation", headers=auth(staff)).json()
        assert config["primary_tabs"] == []
        assert config["admin_menu"] == []
        assert "Lead" in [i["item_key"] for i in config["available"]]

    def test_custom_object_gets_a_tab(self, client, owner):
        create_object(client, owner)
        tabs = client.get("/navigation", headers=auth(owner)).json()["primary_tabs"]
        assert tabs[-1]["item_key"] == "Birth_Plan__c"
        assert tabs[-1]["href"] == "/objects/Birth_Plan__c"

    def test_required_items_stay_visible_to_admins(self, client, owner):
        items = client.get("/navigation/items", headers=auth(owner)).json()
        setup = next(i for i in items if i["item_key"] == "setup")
        assert setup["role_visibility"]["provider"] == "hidden"

        body = {"role": "admin", "visibility_state": "hidden"}
        response = client.put(f"/navigation/items/{setup['id']}/visibility", json=body, headers=auth(owner))
        assert response.status_code == 400
        assert client.delete(f"/navigation/items/{setup['id']}", headers=auth(owner)).status_code == 400

    def test_add_link_needs_href(self, client, owner):
        body = {"item_key": "handbook", "display_name": "Handbook"}
        assert client.post("/navigation/items", json=body, headers=auth(owner)).status_code == 400
        body["href"] = "https://handbook.example.com"
        created = client.post("/navigation/items", json=body, headers=auth(owner))
        assert created.status_code == 201
        assert client.post("/navigation/items", json=body, headers=auth(owner)).status_code == 409

    def test_reorder_and_reset(self, client, owner):
        tools = client.get("/navigation", headers=auth(owner)).json()["tools_menu"]
        reversed_ids = [i["id"] for i in reversed(tools)]
        body = {"nav_type": "tools_menu", "item_ids": reversed_ids}
        reordered = client.put("/navigation/items/order", json=body, headers=auth(owner)).json()
        assert [i["id"] for i in reordered] == reversed_ids

        client.post("/navigation/reset", headers=auth(owner))
        tools = client.get("/navigation", headers=auth(owner)).json()["tools_menu"]
        assert [i["item_key"] for i in tools] == ["messages", "reports", "dashboards", "workflows"]

    def test_staff_cannot_manage_navigation(self, client, staff):
        assert client.get("/navigation/items", headers=auth(staff)).status_code == 403
