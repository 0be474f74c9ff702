"""Tests for contract templates, signatures and referral partners."""

import pytest

from conftest import auth
from doula_crm.client_services.schemas import ServiceCreate
from doula_crm.client_services.service import ClientServiceRepository
from doula_crm.contracts.schemas import SignContractRequest, TemplateCreate, TemplateUpdate
from doula_crm.contracts.service import ContractService
from doula_crm.core.errors import InvalidOperationError
from doula_crm.core.text import render_placeholders
from doula_crm.leads.schemas import LeadCreate
from doula_crm.leads.service import LeadService
from doula_crm.referrals.service import generate_referral_code, referral_url


@pytest.fixture
def contracts(session, owner_ctx):
    return ContractService(session, owner_ctx)


@pytest.fixture
def maya(session, owner_ctx):
    return LeadService(session, owner_ctx).create_lead(LeadCreate(name="Maya Lopez", email="maya@example.com"))


@pytest.fixture
def birth_service(session, owner_ctx, maya):
    return ClientServiceRepository(session, owner_ctx).add(
        ServiceCreate(client_id=maya.id, package_name="Full Support", total_amount=1800)
    )


@pytest.fixture
def template(contracts):
    return contracts.create_template(
        TemplateCreate(
            name="Birth doula agreement",
            content=(
                "This agreement between {{client_name}} and the practice covers {{service_name}}. Signed {{date}}."
            ),
            service_type="birth_doula",
            is_default=True,
        )
    )


def sign(contracts, client_id, template_id, service_id=None):
    return contracts.sign(
        SignContractRequest(
            client_id=client_id,
            service_id=service_id,
            template_id=template_id,
            signer_name="Maya Lopez",
            signer_email="maya@example.com",
        ),
        ip_address="203.0.113.7",
    )


# =============================================================================
# Templates
# =============================================================================


class TestPlaceholders:
    def test_render(self):
        assert render_placeholders("Hi {{ name }}!", {"name": "Maya"}) == "Hi Maya!"

    def test_unknown_and_missing_values_are_kept(self):
        assert render_placeholders("{{name}} {{other}}", {"name": None}) == "{{name}} {{other}}"


class TestTemplates:
    def test_content_change_bumps_version(self, contracts, template):
        assert template.version == 1
        contracts.update_template(template.id, TemplateUpdate(name="Renamed"))
        assert template.version == 1
        contracts.update_template(template.id, TemplateUpdate(content="New terms for {{client_name}}."))
        assert template.version == 2

    def test_new_default_clears_previous(self, contracts, template):
        newer = contracts.create_template(
            TemplateCreate(name="2027 agreement", content="Terms", service_type="birth_doula", is_default=True)
        )
        assert template.is_default is False
        assert contracts.default_template("birth_doula").id == newer.id

    def test_default_falls_back(self, contracts, template):
        general = contracts.create_template(TemplateCreate(name="General", content="Terms"))
        assert contracts.default_template("lactation").id == template.id

        contracts.update_template(template.id, TemplateUpdate(is_default=False))
        assert contracts.default_template("lactation").id == general.id
        assert contracts.default_template("birth_doula").id == template.id

    def test_staff_cannot_create_templates(self, client, staff):
        response = client.post("/contracts/templates", json={"name": "X", "content": "Y"}, headers=auth(staff))
        assert response.status_code == 403


# =============================================================================
# Signatures
# =============================================================================


class TestSigning:
    """Test that signing snapshots content and links the service."""

    def test_snapshot_renders_placeholders(self, contracts, maya, birth_service, template):
        signature = sign(contracts, maya.id, template.id, birth_service.id)

        assert signature.content_snapshot.startswith(
            "This agreement between Maya Lopez and the practice covers Full Support. Signed "
        )
        assert "{{" not in signature.content_snapshot
        assert signature.template_version == 1
        assert signature.ip_address == "203.0.113.7"
        assert birth_service.contract_signed is True
        assert birth_service.contract_signature_id == signature.id

    def test_snapshot_survives_template_edits(self, contracts, maya, template):
        signature = sign(contracts, maya.id, template.id)
        contracts.update_template(template.id, TemplateUpdate(content="Completely different"))
        assert "Maya Lopez" in contracts.get_signature(signature.id).content_snapshot

    def test_void_resets_service(self, contracts, maya, birth_service, template):
        signature = sign(contracts, maya.id, template.id, birth_service.id)
        contracts.void(signature.id, "Client changed package")

        assert signature.status == "voided"
        assert signature.void_reason == "Client changed package"
        assert birth_service.contract_signed is False
        assert contracts.service_signature(birth_service.id) is None
        with pytest.raises(InvalidOperationError, match="already voided"):
            contracts.void(signature.id, "Again")

    def test_requirement(self, contracts, maya, birth_service, template):
        requirement = contracts.contract_requirement(birth_service.id)
        assert requirement == {"required": True, "signed": False, "signature": None}
        signature = sign(contracts, maya.id, template.id, birth_service.id)
        requirement = contracts.contract_requirement(birth_service.id)
        assert requirement["signed"] is True
        assert requirement["signature"].id == signature.id

    def test_unknown_template(self, contracts, maya):
        with pytest.raises(InvalidOperationError, match="Contract template not found"):
            sign(contracts, maya.id, "missing")

    def test_sign_over_http_records_forwarded_ip(self, client, owner, maya, template):
        body = {
            "client_id": maya.id,
            "template_id": template.id,
            "signer_name": "Maya Lopez",
            "signer_email": "maya@example.com",
        }
        headers = {**auth(owner), "X-Forwarded-For": "198.51.100.4, 10.0.0.1", "User-Agent": "pytest"}
        response = client.post("/contracts/sign", json=body, headers=headers)
        assert response.status_code == 201
        assert response.json()["ip_address"] == "198.51.100.4"
        assert response.json()["user_agent"] == "pytest"


# =============================================================================
# Referral partners
# =============================================================================


class TestReferralPartners:
    def test_referral_code(self):
        code = generate_referral_code("Dr. Jo Smith")
        assert code[:4] == "DRJO"
        assert len(code) == 8

    def test_referral_url(self):
        assert referral_url("https://harbor.test", "JANE1234") == "https://harbor.test?ref=JANE1234"

    def test_stats_from_linked_leads(self, client, owner):
        midwife = client.post(
            "/referral-partners", json={"name": "Jane Midwife", "partner_type": "midwife"}, headers=auth(owner)
        ).json()
        client.post("/referral-partners", json={"name": "Quiet Partner"}, headers=auth(owner))
        assert midwife["referral_url"].endswith(f"?ref={midwife['referral_code']}")

        for i, status in enumerate(("new", "client")):
            client.post(
                "/leads",
                json={
                    "name": f"Lead {i}",
                    "email": f"lead{i}@example.com",
                    "status": status,
                    "referral_partner_id": midwife["id"],
                },
                headers=auth(owner),
            )

        stats = client.get("/referral-partners/stats", headers=auth(owner)).json()
        assert stats["total_partners"] == 2
        assert stats["total_leads"] == 2
        assert stats["total_conversions"] == 1
        assert stats["top_partners"][0]["name"] == "Jane Midwife"
        assert stats["average_conversion_rate"] == 25.0

        partners = client.get("/referral-partners?search=jane", headers=auth(owner)).json()
        assert [(p["lead_count"], p["converted_count"]) for p in partners] == [(2, 1)]

    def test_toggle_and_delete_unlinks_leads(self, client, owner):
        partner = client.post("/referral-partners", json={"name": "Jane"}, headers=auth(owner)).json()
        lead = client.post(
            "/leads",
            json={"name": "Ana", "email": "ana@example.com", "referral_partner_id": partner["id"]},
            headers=auth(owner),
        ).json()
        assert lead["partner_name"] == "Jane"

        toggled = client.post(f"/referral-partners/{partner['id']}/toggle", headers=auth(owner)).json()
        assert toggled["is_active"] is False
        assert client.get("/referral-partners?active_only=true", headers=auth(owner)).json() == []

        assert client.delete(f"/referral-partners/{partner['id']}", headers=auth(owner)).status_code == 204
        assert client.get(f"/leads/{lead['id']}", headers=auth(owner)).json()["referral_partner_id"] is None
