"""Translate filter conditions into SQLAlchemy queries.

A filter is ``{"field", "operator", "value", "logic"}``. Conditions are folded
left to right: each one is ANDed onto the expression so far, or ORed when its
``logic`` is ``"OR"``. Only plain columns of the target table (and declared
JSON fields) can be filtered or sorted on.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Iterable, Mapping, Optional, Sequence

import sqlalchemy as sa
from sqlmodel import Session, SQLModel, and_, func, not_, or_, select

from doula_crm.client_services.models import ClientService
from doula_crm.core.errors import InvalidOperationError
from doula_crm.core.models import utcnow
from doula_crm.invoices.models import Invoice
from doula_crm.leads.models import Lead, LeadStatus
from doula_crm.meetings.models import Meeting
from doula_crm.payments.models import Payment
from doula_crm.team.models import TeamMember

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 50
HIDDEN_COLUMNS = frozenset({"organization_id"})
NUMERIC_TYPES = frozenset({"number", "currency", "percent"})

FILTER_OPERATORS = (
    "equals",
    "not_equals",
    "contains",
    "not_contains",
    "starts_with",
    "ends_with",
    "greater_than",
    "less_than",
    "greater_or_equal",
    "less_or_equal",
    "is_null",
    "is_not_null",
    "in",
    "not_in",
    "between",
    "this_week",
    "this_month",
    "this_quarter",
    "last_n_days",
)


@dataclass
class QueryTarget:
    """A table to query plus the constraints every query against it carries."""

    model: type[SQLModel]
    base_filters: tuple[Any, ...] = ()
    json_column: Optional[str] = None
    json_fields: dict[str, str] = field(default_factory=dict)
    search_fields: tuple[str, ...] = ()

    @property
    def columns(self) -> dict[str, sa.Column]:
        return {
            c.name: c
            for c in self.model.__table__.columns
            if c.name not in HIDDEN_COLUMNS and not isinstance(c.type, sa.JSON)
        }


@dataclass
class QueryResult:
    rows: list[Any]
    total: int
    limit: int
    offset: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


OBJECT_TARGETS: dict[str, QueryTarget] = {
    "leads": QueryTarget(Lead, json_column="custom_fields", search_fields=("name", "email", "phone")),
    "clients": QueryTarget(
        Lead,
        base_filters=(Lead.status == LeadStatus.CLIENT.value,),
        json_column="custom_fields",
        search_fields=("name", "email", "phone"),
    ),
    "invoices": QueryTarget(Invoice, search_fields=("invoice_number", "notes")),
    "meetings": QueryTarget(Meeting, search_fields=("title", "location", "notes")),
    "team_members": QueryTarget(TeamMember, search_fields=("display_name", "email", "title")),
    "payments": QueryTarget(Payment, search_fields=("transaction_id", "notes")),
    "services": QueryTarget(ClientService, search_fields=("package_name", "service_type", "description")),
}


def target_for(object_type: str) -> QueryTarget:
    target = OBJECT_TARGETS.get(object_type)
    if target is None:
        raise InvalidOperationError(f"Unknown object type: {object_type}")
    return target


def allowed_fields(target: QueryTarget) -> list[str]:
    return sorted([*target.columns, *target.json_fields])


# =============================================================================
# Values
# =============================================================================


def escape_like(value: Any) -> str:
    """Escape LIKE wildcards so user text matches literally."""
    return str(value).replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        return list(value)
    return [item.strip() for item in str(value).split(",") if item.strip()]


def coerce_value(column: Any, value: Any) -> Any:
    """Convert JSON filter values to the column's Python type."""
    if value is None or value == "":
        return value
    col_type = getattr(column, "type", None)
    try:
        if isinstance(col_type, sa.DateTime):
            if isinstance(value, datetime):
                return value
            if isinstance(value, date):
                return datetime.combine(value, datetime.min.time())
            return datetime.fromisoformat(str(value).replace("Z", "+00:00")).replace(tzinfo=None)
        if isinstance(col_type, sa.Date):
            if isinstance(value, datetime):
                return value.date()
            if isinstance(value, date):
                return value
            return date.fromisoformat(str(value)[:10])
        if isinstance(col_type, sa.Boolean):
            if isinstance(value, str):
                return value.strip().lower() in ("true", "1", "yes")
            return bool(value)
        if isinstance(col_type, sa.Integer):
            return int(value)
        if isinstance(col_type, sa.Float):
            return float(value)
    except (TypeError, ValueError) as exc:
        name = getattr(column, "key", "value")
        raise InvalidOperationError(f"Invalid value {value!r} for field '{name}'") from exc
    return value


def _boundary(column: Any, moment: datetime) -> Any:
    if isinstance(getattr(column, "type", None), sa.Date) and not isinstance(column.type, sa.DateTime):
        return moment.date()
    return moment


def period_start(operator: str, value: Any = None, now: Optional[datetime] = None) -> datetime:
    """Lower bound for the relative date operators. Weeks start on Sunday."""
    now = now or utcnow()
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if operator == "this_week":
        return midnight - timedelta(days=(midnight.weekday() + 1) % 7)
    if operator == "this_month":
        return midnight.replace(day=1)
    if operator == "this_quarter":
        return midnight.replace(month=3 * ((now.month - 1) // 3) + 1, day=1)
    try:
        days = int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidOperationError(f"last_n_days needs a number of days, got {value!r}") from exc
    return now - timedelta(days=days)


# =============================================================================
# Expressions
# =============================================================================


def resolve_column(target: QueryTarget, name: str) -> Any:
    columns = target.columns
    if name in columns:
        return getattr(target.model, name)
    if target.json_column and name in target.json_fields:
        element = getattr(target.model, target.json_column)[name]
        data_type = target.json_fields[name]
        if data_type in NUMERIC_TYPES:
            return element.as_float()
        if data_type == "checkbox":
            return element.as_boolean()
        return element.as_string()
    raise InvalidOperationError(f"Field '{name}' cannot be filtered or sorted on")


def condition_expression(target: QueryTarget, condition: Mapping[str, Any], now: Optional[datetime] = None) -> Any:
    """Build the SQL expression for one filter condition."""
    name = condition.get("field") or ""
    op = condition.get("operator") or "equals"
    value = condition.get("value")
    if op not in FILTER_OPERATORS:
        raise InvalidOperationError(f"Unknown filter operator: {op}")
    column = resolve_column(target, name)

    if op == "is_null":
        return column.is_(None)
    if op == "is_not_null":
        return column.is_not(None)
    if op in ("contains", "not_contains", "starts_with", "ends_with"):
        text = escape_like(value if value is not None else "")
        pattern = {
            "contains": f"%{text}%",
            "not_contains": f"%{text}%",
            "starts_with": f"{text}%",
            "ends_with": f"%{text}",
        }[op]
        expression = column.ilike(pattern, escape="\\")
        return not_(expression) if op == "not_contains" else expression
    if op in ("in", "not_in"):
        values = [coerce_value(column, v) for v in _as_list(value)]
        expression = column.in_(values)
        return not_(expression) if op == "not_in" else expression
    if op == "between":
        if not isinstance(value, (list, tuple)) or len(value) != 2:
            raise InvalidOperationError("between needs a [low, high] pair")
        return and_(column >= coerce_value(column, value[0]), column <= coerce_value(column, value[1]))
    if op in ("this_week", "this_month", "this_quarter", "last_n_days"):
        return column >= _boundary(column, period_start(op, value, now))

    value = coerce_value(column, value)
    if op == "equals":
        return column.is_(None) if value is None else column == value
    if op == "not_equals":
        return column.is_not(None) if value is None else column != value
    return {
        "greater_than": column > value,
        "less_than": column < value,
        "greater_or_equal": column >= value,
        "less_or_equal": column <= value,
    }[op]


def combine_filters(
    target: QueryTarget, filters: Iterable[Mapping[str, Any]], now: Optional[datetime] = None
) -> Optional[Any]:
    """Fold conditions left to right, ANDing unless a condition says ``logic: "OR"``."""
    expression = None
    for condition in filters:
        clause = condition_expression(target, condition, now)
        if expression is None:
            expression = clause
        elif str(condition.get("logic") or "AND").upper() == "OR":
            expression = or_(expression, clause)
        else:
            expression = and_(expression, clause)
    return expression


def search_expression(target: QueryTarget, search: Optional[str], fields: Sequence[str] = ()) -> Optional[Any]:
    term = (search or "").strip()
    names = list(fields) or list(target.search_fields)
    if not term or not names:
        return None
    pattern = f"%{escape_like(term)}%"
    return or_(*(resolve_column(target, name).ilike(pattern, escape="\\") for name in names))


def where_clauses(
    target: QueryTarget,
    organization_id: str,
    filters: Iterable[Mapping[str, Any]] = (),
    search: Optional[str] = None,
    search_fields: Sequence[str] = (),
    extra_where: Iterable[Any] = (),
) -> list[Any]:
    """Tenant scope, base filters, user filters and search as a list of WHERE clauses."""
    clauses = [target.model.organization_id == organization_id, *target.base_filters, *extra_where]
    expression = combine_filters(target, filters)
    if expression is not None:
        clauses.append(expression)
    searched = search_expression(target, search, search_fields)
    if searched is not None:
        clauses.append(searched)
    return clauses


def build_statement(
    target: QueryTarget,
    organization_id: str,
    filters: Iterable[Mapping[str, Any]] = (),
    search: Optional[str] = None,
    search_fields: Sequence[str] = (),
    extra_where: Iterable[Any] = (),
):
    return select(target.model).where(
        *where_clauses(target, organization_id, filters, search, search_fields, extra_where)
    )


def apply_sort(statement, target: QueryTarget, sort: Optional[Mapping[str, Any]] = None):
    name = (sort or {}).get("field") or "created_at"
    column = resolve_column(target, name)
    if str((sort or {}).get("direction", "desc")).lower() == "asc":
        return statement.order_by(column.asc(), target.model.id)
    return statement.order_by(column.desc(), target.model.id)


def execute_query(
    session: Session,
    organization_id: str,
    target: QueryTarget,
    filters: Iterable[Mapping[str, Any]] = (),
    sort: Optional[Mapping[str, Any]] = None,
    limit: int = DEFAULT_LIMIT,
    offset: int = 0,
    search: Optional[str] = None,
    search_fields: Sequence[str] = (),
    extra_where: Iterable[Any] = (),
) -> QueryResult:
    """Run a filtered, sorted, paginated query with an exact total count."""
    statement = build_statement(target, organization_id, list(filters), search, search_fields, list(extra_where))
    total = session.exec(select(func.count()).select_from(statement.subquery())).one()
    rows = session.exec(apply_sort(statement, target, sort).offset(offset).limit(limit)).all()
    logger.debug(
        "List query executed",
        extra={"organization_id": organization_id, "tables": target.model.__tablename__, "status": total},
    )
    return QueryResult(rows=list(rows), total=total, limit=limit, offset=offset)
