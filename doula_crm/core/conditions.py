"""In-memory evaluation of field conditions against a record.

Used by sharing-rule criteria, workflow entry criteria and workflow decision
steps. A condition is ``{"field", "operator", "value"}``; a criteria group is
``{"conditions": [...], "match_type": "all" | "any"}``.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from pydantic import BaseModel, Field


# =============================================================================
# Models
# =============================================================================


class Condition(BaseModel):
    """A single field comparison."""

    field: str
    operator: str = "equals"
    value: Any = None


class Criteria(BaseModel):
    """Grouped conditions with a match type."""

    conditions: list[Condition] = Field(default_factory=list)
    match_type: str = Field("all", pattern="^(all|any)$")


OPERATORS = (
    "equals",
    "not_equals",
    "contains",
    "not_contains",
    "starts_with",
    "ends_with",
    "is_null",
    "is_not_null",
    "is_empty",
    "is_not_empty",
    "greater_than",
    "less_than",
    "greater_or_equal",
    "less_or_equal",
    "in",
    "not_in",
    "in_list",
    "not_in_list",
)


# =============================================================================
# Helpers
# =============================================================================


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _same(actual: Any, expected: Any) -> bool:
    if actual is None or expected is None:
        return actual is expected
    if type(actual) is type(expected):
        return actual == expected
    return _text(actual) == _text(expected)


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        return list(value)
    return [item.strip() for item in str(value).split(",") if item.strip()]


def _compare(actual: Any, expected: Any) -> int | None:
    """Return -1/0/1 comparing numerically when possible, else as text."""
    if actual is None or expected is None:
        return None
    try:
        left, right = float(actual), float(expected)
    except (TypeError, ValueError):
        left, right = _text(actual), _text(expected)
    if left < right:
        return -1
    if left > right:
        return 1
    return 0


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == {}


# =============================================================================
# Evaluation
# =============================================================================


def evaluate_condition(
    condition: Condition | Mapping[str, Any],
    record: Mapping[str, Any],
    unknown_operator_result: bool = False,
) -> bool:
    """Evaluate one condition against ``record``.

    Args:
        condition: Condition model or mapping with field/operator/value
        record: Field values of the record
        unknown_operator_result: Result returned for operators not listed in OPERATORS

    Returns:
        True when the record satisfies the condition
    """
    if not isinstance(condition, Condition):
        condition = Condition.model_validate(condition)

    op = condition.operator
    expected = condition.value
    actual = record.get(condition.field)

    if op == "equals":
        return _same(actual, expected)
    if op == "not_equals":
        return not _same(actual, expected)
    if op in ("contains", "not_contains"):
        if isinstance(actual, (list, tuple)):
            found = any(_same(item, expected) for item in actual)
        elif actual is None:
            found = False
        else:
            found = _text(expected).lower() in _text(actual).lower()
        return found if op == "contains" else not found
    if op == "starts_with":
        return actual is not None and _text(actual).lower().startswith(_text(expected).lower())
    if op == "ends_with":
        return actual is not None and _text(actual).lower().endswith(_text(expected).lower())
    if op == "is_null":
        return actual is None
    if op == "is_not_null":
        return actual is not None
    if op == "is_empty":
        return _is_empty(actual)
    if op == "is_not_empty":
        return not _is_empty(actual)
    if op in ("greater_than", "less_than", "greater_or_equal", "less_or_equal"):
        result = _compare(actual, expected)
        if result is None:
            return False
        return {
            "greater_than": result > 0,
            "less_than": result < 0,
            "greater_or_equal": result >= 0,
            "less_or_equal": result <= 0,
        }[op]
    if op in ("in", "in_list"):
        return any(_same(actual, item) for item in _as_list(expected))
    if op in ("not_in", "not_in_list"):
        return not any(_same(actual, item) for item in _as_list(expected))

    return unknown_operator_result


def evaluate_criteria(
    criteria: Criteria | Mapping[str, Any] | None,
    record: Mapping[str, Any],
    unknown_operator_result: bool = False,
) -> bool:
    """Evaluate a criteria group. No conditions matches every record."""
    if not criteria:
        return True
    if not isinstance(criteria, Criteria):
        criteria = Criteria.model_validate(criteria)
    if not criteria.conditions:
        return True

    results: Iterable[bool] = (
        evaluate_condition(cond, record, unknown_operator_result) for cond in criteria.conditions
    )
    if criteria.match_type == "any":
        return any(results)
    return all(results)
