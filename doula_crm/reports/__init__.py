"""Reports built on the list-view query executor, plus practice analytics."""

from .models import AggregateType, Report, ReportType

__all__ = ["AggregateType", "Report", "ReportType"]
