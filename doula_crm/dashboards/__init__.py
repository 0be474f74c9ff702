"""Dashboards composed of widgets laid out on a 12-column grid."""

from .models import Dashboard, DashboardWidget, DataSource, WidgetType

__all__ = ["Dashboard", "DashboardWidget", "DataSource", "WidgetType"]
