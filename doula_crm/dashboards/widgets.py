"""Widget palette: the title, config and size a new widget of each type starts with."""

from typing import Any, Iterable

from .models import GRID_COLUMNS, WidgetType

PALETTE: dict[str, dict[str, Any]] = {
    WidgetType.METRIC.value: {
        "title": "Metric",
        "config": {"format": "number", "showTrend": False},
        "grid_width": 3,
        "grid_height": 2,
    },
    WidgetType.CHART.value: {
        "title": "Chart",
        "config": {"chartType": "bar", "showLegend": True, "showGrid": True},
        "grid_width": 6,
        "grid_height": 4,
    },
    WidgetType.TABLE.value: {
        "title": "Table",
        "config": {"pageSize": 10, "showPagination": True},
        "grid_width": 8,
        "grid_height": 5,
    },
    WidgetType.REPORT.value: {"title": "Report", "config": {}, "grid_width": 4, "grid_height": 3},
    WidgetType.LIST.value: {"title": "List", "config": {"maxItems": 5}, "grid_width": 4, "grid_height": 4},
    WidgetType.FUNNEL.value: {
        "title": "Funnel",
        "config": {"showPercentages": True},
        "grid_width": 6,
        "grid_height": 4,
    },
    WidgetType.GAUGE.value: {"title": "Gauge", "config": {"min": 0, "max": 100}, "grid_width": 3, "grid_height": 3},
    WidgetType.CALENDAR.value: {"title": "Calendar", "config": {"view": "month"}, "grid_width": 8, "grid_height": 5},
}


def palette() -> list[dict[str, Any]]:
    return [{"widget_type": widget_type, **defaults} for widget_type, defaults in PALETTE.items()]


def widget_defaults(widget_type: str) -> dict[str, Any]:
    defaults = PALETTE.get(widget_type, {"title": "Widget", "config": {}, "grid_width": 4, "grid_height": 3})
    return {**defaults, "config": dict(defaults["config"])}


def next_row(widgets: Iterable[Any]) -> int:
    """First grid row below every existing widget."""
    return max((w.grid_y + w.grid_height for w in widgets), default=0)


def fits_grid(grid_x: int, grid_width: int) -> bool:
    return grid_x >= 0 and 1 <= grid_width and grid_x + grid_width <= GRID_COLUMNS
