"""Tests for in-memory condition evaluation."""

import pytest

from doula_crm.core.conditions import Condition, evaluate_condition, evaluate_criteria


RECORD = {
    "name": "Maya Lopez",
    "email": "maya@example.com",
    "status": "contacted",
    "total": 1200,
    "tags": ["vbac", "twins"],
    "phone": None,
    "notes": "",
    "is_priority": True,
}


class TestEvaluateCondition:
    """Test single-condition operators."""

    @pytest.mark.parametrize(
        "field,operator,value,expected",
        [
            ("status", "equals", "contacted", True),
            ("status", "equals", "new", False),
            ("status", "not_equals", "new", True),
            ("name", "contains", "LOPEZ", True),
            ("name", "not_contains", "smith", True),
            ("name", "starts_with", "maya", True),
            ("email", "ends_with", "@example.com", True),
            ("phone", "starts_with", "", False),
        ],
    )
    def test_text_operators(self, field, operator, value, expected):
        assert evaluate_condition({"field": field, "operator": operator, "value": value}, RECORD) is expected

    def test_numeric_comparison_accepts_strings(self):
        """Test that numbers stored as text still compare numerically."""
        assert evaluate_condition({"field": "total", "operator": "greater_than", "value": "999"}, RECORD)
        assert evaluate_condition({"field": "total", "operator": "less_or_equal", "value": 1200}, RECORD)
        assert not evaluate_condition({"field": "total", "operator": "less_than", "value": 1000}, RECORD)

    def test_comparison_with_missing_value_is_false(self):
        assert not evaluate_condition({"field": "phone", "operator": "greater_than", "value": 1}, RECORD)

    def test_null_and_empty(self):
        assert evaluate_condition({"field": "phone", "operator": "is_null"}, RECORD)
        assert evaluate_condition({"field": "missing", "operator": "is_null"}, RECORD)
        assert evaluate_condition({"field": "notes", "operator": "is_empty"}, RECORD)
        assert evaluate_condition({"field": "name", "operator": "is_not_empty"}, RECORD)
        assert not evaluate_condition({"field": "notes", "operator": "is_null"}, RECORD)

    def test_in_accepts_list_or_comma_separated(self):
        assert evaluate_condition({"field": "status", "operator": "in", "value": ["new", "contacted"]}, RECORD)
        assert evaluate_condition({"field": "status", "operator": "in_list", "value": "new, contacted"}, RECORD)
        assert evaluate_condition({"field": "status", "operator": "not_in", "value": "lost,client"}, RECORD)

    def test_contains_on_list_field(self):
        assert evaluate_condition({"field": "tags", "operator": "contains", "value": "vbac"}, RECORD)
        assert not evaluate_condition({"field": "tags", "operator": "contains", "value": "vb"}, RECORD)

    def test_boolean_equals_string(self):
        """Test that 'true' matches a boolean True."""
        assert evaluate_condition({"field": "is_priority", "operator": "equals", "value": "true"}, RECORD)

    def test_unknown_operator(self):
        condition = Condition(field="status", operator="sounds_like", value="contacted")
        assert evaluate_condition(condition, RECORD) is False
        assert evaluate_condition(condition, RECORD, unknown_operator_result=True) is True


class TestEvaluateCriteria:
    """Test grouped criteria."""

    def test_empty_criteria_matches(self):
        assert evaluate_criteria(None, RECORD)
        assert evaluate_criteria({"conditions": []}, RECORD)

    def test_all_requires_every_condition(self):
        criteria = {
            "match_type": "all",
            "conditions": [
                {"field": "status", "operator": "equals", "value": "contacted"},
                {"field": "total", "operator": "greater_than", "value": 5000},
            ],
        }
        assert not evaluate_criteria(criteria, RECORD)

    def test_any_requires_one_condition(self):
        criteria = {
            "match_type": "any",
            "conditions": [
                {"field": "status", "operator": "equals", "value": "lost"},
                {"field": "total", "operator": "greater_than", "value": 1000},
            ],
        }
        assert evaluate_criteria(criteria, RECORD)
