"""Tests for record access evaluation and sharing administration."""

from datetime import timedelta

import pytest

from conftest import auth
from doula_crm.core.errors import InvalidOperationError
from doula_crm.core.models import utcnow
from doula_crm.sharing.access import (
    criteria_matches,
    evaluate_record_access,
    higher_level,
    satisfies_access,
    validate_criteria,
)
from doula_crm.sharing.models import ManualShare, SharingRule
from doula_crm.sharing.schemas import ManualShareCreate
from doula_crm.sharing.service import SharingService


def access(**overrides):
    params = {
        "user_id": "u-staff",
        "role": "staff",
        "user_organization_id": "org-1",
        "record_organization_id": "org-1",
        "owner_id": "u-owner",
        "sharing_model": "private",
    }
    params.update(overrides)
    return evaluate_record_access(**params)


# =============================================================================
# Levels and criteria
# =============================================================================


class TestLevels:
    def test_higher_level(self):
        assert higher_level("read", "read_write") == "read_write"
        assert higher_level("full_access", "read") == "full_access"
        assert higher_level(None, "read") == "read"

    def test_satisfies_access(self):
        assert satisfies_access("read", "read")
        assert not satisfies_access("read", "write")
        assert satisfies_access("full_access", "write")
        assert not satisfies_access(None, "read")


class TestCriteria:
    def test_criteria_match_all_and_any(self):
        record = {"status": "client", "total": 900}
        conditions = [
            {"field": "status", "operator": "equals", "value": "client"},
            {"field": "total", "operator": "greater_than", "value": 1000},
        ]
        assert not criteria_matches({"match_type": "all", "conditions": conditions}, record)
        assert criteria_matches({"match_type": "any", "conditions": conditions}, record)

    def test_unsupported_operator_never_matches(self):
        criteria = {"match_type": "all", "conditions": [{"field": "status", "operator": "ends_with", "value": "t"}]}
        assert not criteria_matches(criteria, {"status": "client"})

    @pytest.mark.parametrize(
        "criteria,error",
        [
            ([], "Criteria must be an object"),
            ({"match_type": "all"}, "Criteria must have conditions array"),
            ({"match_type": "some", "conditions": []}, 'match_type must be "all" or "any"'),
            ({"match_type": "all", "conditions": [{"operator": "equals"}]}, "Condition 0 must have a field"),
            (
                {"match_type": "all", "conditions": [{"field": "a", "operator": "like"}]},
                "Condition 0 has invalid operator",
            ),
        ],
    )
    def test_validate_criteria_errors(self, criteria, error):
        assert validate_criteria(criteria) == error

    def test_validate_criteria_ok(self):
        criteria = {"match_type": "any", "conditions": [{"field": "status", "operator": "in", "value": "a,b"}]}
        assert validate_criteria(criteria) is None


# =============================================================================
# Evaluation
# =============================================================================


class TestEvaluateRecordAccess:
    """Test that access sources combine and the highest level wins."""

    def test_owner_gets_full_access(self):
        result = access(user_id="u-owner")
        assert result.access_level == "full_access"
        assert result.access_source == "owner"

    def test_private_object_without_grants(self):
        result = access()
        assert not result.has_access
        assert not result.can_read

    def test_other_organization_gets_nothing(self):
        result = access(user_id="u-owner", record_organization_id="org-2")
        assert not result.has_access

    def test_org_wide_default(self):
        result = access(sharing_model="read")
        assert result.can_read
        assert not result.can_write
        assert result.access_source == "org_wide_default"

    def test_role_hierarchy_grants_read_write(self):
        result = access(role="provider", owner_role="staff")
        assert result.access_level == "read_write"
        assert result.access_source == "role_hierarchy"

    def test_junior_role_gets_no_hierarchy_access(self):
        assert not access(role="staff", owner_role="provider").has_access

    def test_criteria_rule_for_role(self):
        rule = SharingRule(
            organization_id="org-1",
            object_api_name="Lead",
            name="Clients to staff",
            criteria={
                "match_type": "all",
                "conditions": [{"field": "status", "operator": "equals", "value": "client"}],
            },
            share_with_type="role",
            share_with_id="staff",
            access_level="read_write",
        )
        assert access(rules=[rule], record={"status": "client"}).access_level == "read_write"
        assert not access(rules=[rule], record={"status": "new"}).has_access

    def test_owner_based_rule_checks_owner_role(self):
        rule = SharingRule(
            organization_id="org-1",
            object_api_name="Lead",
            name="Provider records",
            rule_type="owner_based",
            owner_role="provider",
            share_with_type="user",
            share_with_id="u-staff",
        )
        assert access(rules=[rule], owner_role="provider").access_level == "read"
        assert not access(rules=[rule], owner_role="assistant").has_access

    def test_inactive_rule_is_ignored(self):
        rule = SharingRule(
            organization_id="org-1",
            object_api_name="Lead",
            name="Off",
            share_with_type="role",
            share_with_id="staff",
            is_active=False,
        )
        assert not access(rules=[rule]).has_access

    def test_public_group_never_matches(self):
        rule = SharingRule(
            organization_id="org-1",
            object_api_name="Lead",
            name="Group",
            share_with_type="public_group",
            share_with_id="staff",
        )
        assert not access(rules=[rule]).has_access

    def test_expired_manual_share_is_ignored(self):
        now = utcnow()
        share = ManualShare(
            organization_id="org-1",
            object_api_name="Lead",
            record_id="r1",
            share_with_id="u-staff",
            access_level="read_write",
            expires_at=now - timedelta(days=1),
        )
        assert not access(manual_shares=[share], now=now).has_access
        share.expires_at = now + timedelta(days=1)
        assert access(manual_shares=[share], now=now).access_level == "read_write"

    def test_grants_are_recorded(self):
        result = access(user_id="u-owner", sharing_model="read")
        assert [g.source for g in result.grants] == ["owner", "org_wide_default"]
        assert result.access_source == "owner"


# =============================================================================
# Administration
# =============================================================================


class TestSharingAdministration:
    def test_manual_share_with_public_group_rejected(self, session, owner_ctx):
        service = SharingService(session, owner_ctx)
        with pytest.raises(InvalidOperationError):
            service.create_manual_share(
                ManualShareCreate(
                    object_api_name="Lead", record_id="r1", share_with_type="public_group", share_with_id="g1"
                )
            )

    def test_rule_with_invalid_criteria_returns_400(self, client, owner):
        response = client.post(
            "/sharing/rules",
            json={
                "object_api_name": "Lead",
                "name": "Broken",
                "criteria": {"match_type": "all", "conditions": [{"field": "status", "operator": "regex"}]},
                "share_with_type": "role",
                "share_with_id": "staff",
            },
            headers=auth(owner),
        )
        assert response.status_code == 400

    def test_staff_cannot_manage_rules(self, client, staff):
        assert client.get("/sharing/rules", headers=auth(staff)).status_code == 403

    def test_validate_criteria_endpoint(self, client, owner):
        response = client.post(
            "/sharing/rules/validate-criteria",
            json={"match_type": "any", "conditions": []},
            headers=auth(owner),
        )
        assert response.json() == {"valid": True, "error": None}
