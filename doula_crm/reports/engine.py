"""Report execution: grouped aggregates, matrix pivots and grand totals.

Aggregates are computed in SQL over the same filtered statement the list-view
executor builds, so report filters accept every list-view operator.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional, Sequence

import sqlalchemy as sa
from sqlmodel import Session, distinct, func, select

from doula_crm.core.errors import InvalidOperationError
from doula_crm.list_views.query import QueryTarget, resolve_column, where_clauses

from .models import AggregateType, ReportType

NUMERIC_AGGREGATES = (AggregateType.SUM.value, AggregateType.AVG.value)
DEFAULT_AGGREGATION = {"type": AggregateType.COUNT.value, "label": "Record Count"}
VALUELESS_OPERATORS = ("is_null", "is_not_null", "this_week", "this_month", "this_quarter")


@dataclass(frozen=True)
class Aggregation:
    type: str
    field: Optional[str] = None
    label: Optional[str] = None

    @property
    def key(self) -> str:
        return f"{self.type}_{self.field}" if self.field else self.type

    @property
    def display(self) -> str:
        if self.label:
            return self.label
        name = self.type.replace("_", " ").title()
        return f"{name} of {self.field}" if self.field else f"{name} of records"


def parse_aggregations(raw: Iterable[Mapping[str, Any]] | None) -> list[Aggregation]:
    items = [
        Aggregation(type=a.get("type", "count"), field=a.get("field") or None, label=a.get("label"))
        for a in raw or []
    ]
    return items or [Aggregation(**DEFAULT_AGGREGATION)]


def _plain(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    return value


# =============================================================================
# Validation
# =============================================================================


def validate_definition(
    target: QueryTarget,
    report_type: str,
    columns: Sequence[str],
    groupings: Sequence[str],
    aggregations: Iterable[Mapping[str, Any]] | None,
) -> None:
    """Raise InvalidOperationError when a report definition cannot run."""
    for name in [*columns, *groupings]:
        resolve_column(target, name)
    if report_type in (ReportType.SUMMARY.value, ReportType.CHART.value) and not groupings:
        raise InvalidOperationError(f"{report_type.title()} reports need at least one grouping")
    if report_type == ReportType.MATRIX.value and len(groupings) != 2:
        raise InvalidOperationError("Matrix reports need exactly two groupings (rows and columns)")
    for aggregation in parse_aggregations(aggregations):
        aggregate_expression(target, aggregation)


def aggregate_expression(target: QueryTarget, aggregation: Aggregation) -> Any:
    kind = aggregation.type
    if kind not in {t.value for t in AggregateType}:
        raise InvalidOperationError(f"Unknown aggregation: {kind}")
    if kind == AggregateType.COUNT.value and not aggregation.field:
        return func.count().label(aggregation.key)
    if not aggregation.field:
        raise InvalidOperationError(f"{kind} aggregation needs a field")

    column = resolve_column(target, aggregation.field)
    if kind in NUMERIC_AGGREGATES and not isinstance(column.type, (sa.Integer, sa.Float, sa.Numeric)):
        raise InvalidOperationError(f"{kind} needs a numeric field, '{aggregation.field}' is not")
    expression = {
        AggregateType.COUNT.value: lambda c: func.count(c),
        AggregateType.SUM.value: lambda c: func.sum(c),
        AggregateType.AVG.value: lambda c: func.avg(c),
        AggregateType.MIN.value: lambda c: func.min(c),
        AggregateType.MAX.value: lambda c: func.max(c),
        AggregateType.COUNT_DISTINCT.value: lambda c: func.count(distinct(c)),
    }[kind](column)
    return expression.label(aggregation.key)


# =============================================================================
# Execution
# =============================================================================


def grouped_rows(
    session: Session,
    organization_id: str,
    target: QueryTarget,
    filters: Iterable[Mapping[str, Any]],
    groupings: Sequence[str],
    aggregations: Sequence[Aggregation],
) -> list[dict[str, Any]]:
    """One row per distinct combination of grouping values, ordered by those values."""
    group_columns = [resolve_column(target, name).label(name) for name in groupings]
    statement = (
        select(*group_columns, *(aggregate_expression(target, a) for a in aggregations))
        .select_from(target.model)
        .where(*where_clauses(target, organization_id, list(filters)))
    )
    if group_columns:
        statement = statement.group_by(*group_columns).order_by(*group_columns)
    keys = [*groupings, *(a.key for a in aggregations)]
    return [{key: _plain(value) for key, value in zip(keys, row)} for row in session.execute(statement).all()]


def grand_totals(
    session: Session,
    organization_id: str,
    target: QueryTarget,
    filters: Iterable[Mapping[str, Any]],
    aggregations: Sequence[Aggregation],
) -> dict[str, Any]:
    rows = grouped_rows(session, organization_id, target, filters, [], aggregations)
    return rows[0] if rows else {a.key: None for a in aggregations}


def run_summary(
    session: Session,
    organization_id: str,
    target: QueryTarget,
    filters: Iterable[Mapping[str, Any]],
    groupings: Sequence[str],
    aggregations: Iterable[Mapping[str, Any]] | None,
) -> dict[str, Any]:
    parsed = parse_aggregations(aggregations)
    filters = list(filters)
    return {
        "groupings": list(groupings),
        "aggregations": [{"key": a.key, "label": a.display, "type": a.type, "field": a.field} for a in parsed],
        "rows": grouped_rows(session, organization_id, target, filters, groupings, parsed),
        "totals": grand_totals(session, organization_id, target, filters, parsed),
    }


def run_matrix(
    session: Session,
    organization_id: str,
    target: QueryTarget,
    filters: Iterable[Mapping[str, Any]],
    groupings: Sequence[str],
    aggregations: Iterable[Mapping[str, Any]] | None,
) -> dict[str, Any]:
    """Pivot the first aggregation over two groupings with row, column and grand totals."""
    if len(groupings) != 2:
        raise InvalidOperationError("Matrix reports need exactly two groupings (rows and columns)")
    row_field, column_field = groupings
    aggregation = parse_aggregations(aggregations)[0]
    filters = list(filters)

    cells: dict[str, dict[str, Any]] = {}
    row_keys: list[Any] = []
    column_keys: list[Any] = []
    for row in grouped_rows(session, organization_id, target, filters, groupings, [aggregation]):
        row_key, column_key = row[row_field], row[column_field]
        if row_key not in row_keys:
            row_keys.append(row_key)
        if column_key not in column_keys:
            column_keys.append(column_key)
        cells.setdefault(str(row_key), {})[str(column_key)] = row[aggregation.key]

    def totals(field: str) -> dict[str, Any]:
        return {
            str(r[field]): r[aggregation.key]
            for r in grouped_rows(session, organization_id, target, filters, [field], [aggregation])
        }

    return {
        "row_field": row_field,
        "column_field": column_field,
        "aggregation": {"key": aggregation.key, "label": aggregation.display, "type": aggregation.type},
        "rows": row_keys,
        "columns": sorted(column_keys, key=lambda k: (k is None, str(k))),
        "cells": cells,
        "row_totals": totals(row_field),
        "column_totals": totals(column_field),
        "grand_total": grand_totals(session, organization_id, target, filters, [aggregation])[aggregation.key],
    }


# =============================================================================
# Description
# =============================================================================


def _describe_filter(condition: Mapping[str, Any]) -> str:
    operator = str(condition.get("operator", "equals")).replace("_", " ")
    value = condition.get("value")
    if value is None or condition.get("operator") in VALUELESS_OPERATORS:
        return f"{condition.get('field')} {operator}"
    if isinstance(value, (list, tuple)):
        value = ", ".join(str(v) for v in value)
    return f"{condition.get('field')} {operator} {value}"


def describe_report(
    report_type: str,
    object_label: str,
    columns: Sequence[str] = (),
    filters: Iterable[Mapping[str, Any]] = (),
    groupings: Sequence[str] = (),
    aggregations: Iterable[Mapping[str, Any]] | None = None,
) -> str:
    """Plain-language formula of a report, e.g. "Sum of total from Invoices, grouped by status"."""
    if report_type == ReportType.TABULAR.value:
        text = f"{', '.join(columns) if columns else 'All fields'} from {object_label}"
    else:
        measures = " and ".join(a.display for a in parse_aggregations(aggregations))
        text = f"{measures} from {object_label}"
        if groupings:
            joiner = " by " if report_type == ReportType.MATRIX.value else ", "
            text += f", grouped by {joiner.join(groupings)}"

    clauses = []
    for i, condition in enumerate(filters):
        part = _describe_filter(condition)
        if i:
            part = f"{str(condition.get('logic') or 'AND').upper()} {part}"
        clauses.append(part)
    if clauses:
        text += f" where {' '.join(clauses)}"
    return text
