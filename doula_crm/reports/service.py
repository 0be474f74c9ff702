"""Saved reports: visibility, validation and execution."""

from __future__ import annotations

import logging
from typing import Any, Optional, Union

from sqlmodel import Session, col, or_, select

from doula_crm.core.context import RequestContext
from doula_crm.core.errors import AccessDeniedError
from doula_crm.core.models import apply_changes
from doula_crm.dashboards.models import DashboardWidget
from doula_crm.list_views.models import ViewVisibility
from doula_crm.metadata.security import unreadable_fields
from doula_crm.records.registry import api_name_for
from doula_crm.records.service import RecordService, ResolvedObject

from . import engine
from .models import Report, ReportType
from .schemas import ReportCreate, ReportDefinition, ReportRunOptions, ReportUpdate

logger = logging.getLogger(__name__)

DefinitionSource = Union[Report, ReportDefinition]


class ReportService:
    def __init__(self, session: Session, ctx: RequestContext):
        self.session = session
        self.ctx = ctx
        self.records = RecordService(session, ctx)

    # =========================================================================
    # Saved reports
    # =========================================================================

    def list_reports(self, object_type: Optional[str] = None) -> list[Report]:
        """The caller's own reports plus shared and org-wide reports, by name."""
        statement = select(Report).where(
            Report.organization_id == self.ctx.organization_id,
            or_(Report.created_by == self.ctx.user_id, Report.visibility != ViewVisibility.PRIVATE.value),
        )
        if object_type:
            statement = statement.where(Report.object_type == object_type)
        return list(self.session.exec(statement.order_by(col(Report.name))).all())

    def get_report(self, report_id: str) -> Optional[Report]:
        report = self.session.get(Report, report_id)
        if not report or report.organization_id != self.ctx.organization_id:
            return None
        if report.visibility == ViewVisibility.PRIVATE.value and report.created_by != self.ctx.user_id:
            return None
        return report

    def available_reports(self) -> list[dict[str, Any]]:
        return [
            {"id": r.id, "name": r.name, "report_type": r.report_type, "object_type": r.object_type}
            for r in self.list_reports()
        ]

    def create_report(self, data: ReportCreate) -> Report:
        self.validate(data)
        report = Report(
            organization_id=self.ctx.organization_id,
            created_by=self.ctx.user_id,
            **data.model_dump(),
        )
        self.session.add(report)
        self.session.commit()
        self.session.refresh(report)
        logger.info(
            "Report created",
            extra={
                "organization_id": report.organization_id,
                "record_id": report.id,
                "object_type": report.object_type,
            },
        )
        return report

    def update_report(self, report_id: str, data: ReportUpdate) -> Optional[Report]:
        report = self._editable(report_id)
        if not report:
            return None
        changes = data.model_dump(exclude_unset=True)
        merged = ReportDefinition.model_validate({**self._definition(report).model_dump(), **changes})
        self.validate(merged)
        apply_changes(report, changes)
        self.session.add(report)
        self.session.commit()
        self.session.refresh(report)
        return report

    def delete_report(self, report_id: str) -> bool:
        report = self._editable(report_id)
        if not report:
            return False
        for widget in self.session.exec(select(DashboardWidget).where(DashboardWidget.report_id == report.id)).all():
            widget.report_id = None
            self.session.add(widget)
        self.session.delete(report)
        self.session.commit()
        logger.info("Report deleted", extra={"organization_id": self.ctx.organization_id, "record_id": report_id})
        return True

    def _editable(self, report_id: str) -> Optional[Report]:
        report = self.get_report(report_id)
        if report and report.created_by != self.ctx.user_id and not self.ctx.is_admin:
            raise AccessDeniedError("Only the creator or an administrator can change this report")
        return report

    # =========================================================================
    # Validation and description
    # =========================================================================

    def validate(self, source: DefinitionSource) -> ResolvedObject:
        """Check fields, groupings and aggregations against the object and the caller's field access."""
        definition = self._definition(source)
        resolved = self.records.resolve(api_name_for(definition.object_type))
        referenced = [
            *definition.columns,
            *definition.groupings,
            *(f.field for f in definition.filters),
            *(a.field for a in definition.aggregations if a.field),
        ]
        hidden = unreadable_fields(referenced, resolved.access)
        if hidden:
            raise AccessDeniedError(f"You do not have access to: {', '.join(hidden)}")
        engine.validate_definition(
            resolved.target,
            definition.report_type,
            definition.columns,
            definition.groupings,
            self._aggregations(definition),
        )
        return resolved

    def describe(self, source: DefinitionSource) -> str:
        definition = self._definition(source)
        resolved = self.records.resolve(api_name_for(definition.object_type))
        return engine.describe_report(
            definition.report_type,
            resolved.obj.plural_label,
            definition.columns,
            self._filters(definition),
            definition.groupings,
            self._aggregations(definition),
        )

    # =========================================================================
    # Execution
    # =========================================================================

    def run_report(self, report_id: str, options: Optional[ReportRunOptions] = None) -> Optional[dict[str, Any]]:
        report = self.get_report(report_id)
        if not report:
            return None
        return self.run(report, options)

    def run(self, source: DefinitionSource, options: Optional[ReportRunOptions] = None) -> dict[str, Any]:
        """Run a saved report or an unsaved definition.

        Tabular reports page through the records the caller can read. Summary,
        chart and matrix reports aggregate over every matching record of the
        organization.
        """
        options = options or ReportRunOptions()
        definition = self._definition(source)
        resolved = self.validate(definition)
        filters = self._filters(definition)
        aggregations = self._aggregations(definition)
        result: dict[str, Any] = {
            "report_type": definition.report_type,
            "object_type": definition.object_type,
            "description": self.describe(definition),
            "chart_config": definition.chart_config,
        }

        if definition.report_type == ReportType.TABULAR.value:
            rows, total = self.records.fetch(
                resolved.obj.api_name,
                filters,
                options.sort.model_dump() if options.sort else None,
                limit=options.limit,
                offset=options.offset,
            )
            if definition.columns:
                keep = ["id", *definition.columns]
                rows = [{name: self._value(row, name) for name in keep} for row in rows]
            result.update(rows=rows, total=total)
        elif definition.report_type == ReportType.MATRIX.value:
            result["matrix"] = engine.run_matrix(
                self.session, self.ctx.organization_id, resolved.target, filters, definition.groupings, aggregations
            )
        else:
            summary = engine.run_summary(
                self.session, self.ctx.organization_id, resolved.target, filters, definition.groupings, aggregations
            )
            result.update(rows=summary["rows"], total=len(summary["rows"]), summary=summary)
        return result

    def aggregate(self, object_type: str, query_config: dict[str, Any]) -> dict[str, Any]:
        """Ad-hoc summary used by query-backed dashboard widgets."""
        definition = ReportDefinition(
            report_type=ReportType.SUMMARY if query_config.get("groupings") else ReportType.TABULAR,
            object_type=object_type,
            filters=query_config.get("filters") or [],
            groupings=query_config.get("groupings") or [],
            aggregations=query_config.get("aggregations") or [],
        )
        resolved = self.validate(definition)
        return engine.run_summary(
            self.session,
            self.ctx.organization_id,
            resolved.target,
            self._filters(definition),
            definition.groupings,
            self._aggregations(definition),
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _definition(source: DefinitionSource) -> ReportDefinition:
        if isinstance(source, ReportDefinition):
            return source
        return ReportDefinition.model_validate(source, from_attributes=True)

    @staticmethod
    def _filters(definition: ReportDefinition) -> list[dict[str, Any]]:
        return [f.model_dump() for f in definition.filters]

    @staticmethod
    def _aggregations(definition: ReportDefinition) -> list[dict[str, Any]]:
        return [a.model_dump() for a in definition.aggregations]

    @staticmethod
    def _value(row: dict[str, Any], name: str) -> Any:
        if name in row:
            return row[name]
        return (row.get("custom_fields") or {}).get(name)
