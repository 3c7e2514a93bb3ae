"""Closed registry of widget renderers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Mapping, Optional, Sequence

from app.dashboards import charts
from app.dashboards.date_range import DateRange
from app.dashboards.issues import IssueRule, rules_for
from app.dashboards.types import DashboardConfig, Row, Widget
from app.utils.exceptions import InvalidConfigException


@dataclass(frozen=True)
class WidgetContext:
    config: DashboardConfig
    window: DateRange
    rows: Sequence[Row]
    all_rows: Sequence[Row]
    tiles: Mapping[str, list[dict[str, Any]]]
    today: Optional[date] = None

    def rules(self, widget: Widget) -> list[IssueRule]:
        return rules_for(self.config.data_quality, widget.rules_key)


Renderer = Callable[[Widget, WidgetContext], Any]


def _cards(widget: Widget, context: WidgetContext) -> Any:
    return context.tiles.get(widget.group or "tiles", [])


def _area(widget: Widget, context: WidgetContext) -> Any:
    return charts.time_buckets(context.rows, context.window, widget.toggles, context.today)


def _bar(widget: Widget, context: WidgetContext) -> Any:
    if widget.rules_key:
        return charts.data_quality_counts(context.rows, context.rules(widget), widget.sort_by)
    return charts.bar_data(context.rows, widget.column, widget.sort_by, widget.limit)


def _by_status(widget: Widget, context: WidgetContext) -> Any:
    date_column = context.config.date_column or "order_date"
    return charts.status_windows(context.all_rows, widget.column or "status", date_column, context.today)


def _donut(widget: Widget, context: WidgetContext) -> Any:
    if widget.rules_key:
        counts = charts.data_quality_counts(context.rows, context.rules(widget))
        return [{"name": point["label"], "key": point["key"], "value": point["value"]} for point in counts]
    return charts.donut_data(context.rows, widget.column)


def _aggregate(widget: Widget, context: WidgetContext) -> Any:
    return charts.aggregate_data(
        context.rows, widget.column, widget.value_field, widget.metric, widget.sort_by, widget.limit
    )


WIDGET_RENDERERS: Mapping[str, Renderer] = {
    "SummaryCards": _cards,
    "SectionCards": _cards,
    "ChartAreaInteractive": _area,
    "ChartBarVertical": _bar,
    "ChartBarHorizontal": _bar,
    "ChartByStatus": _by_status,
    "ChartDonut": _donut,
    "ChartBarAggregate": _aggregate,
}

COLUMN_WIDGETS = frozenset({"ChartBarVertical", "ChartBarHorizontal", "ChartDonut", "ChartBarAggregate"})
TOGGLE_FIELD_TYPES = frozenset({*charts.DATE_ACCESSORS, "lateness"})


def widget_key(widget: Widget, index: int) -> str:
    return widget.key or f"{widget.component}-{index}"


def render_widget(widget: Widget, index: int, context: WidgetContext) -> dict[str, Any]:
    return {
        "key": widget_key(widget, index),
        "component": widget.component,
        "title": widget.title,
        "description": widget.description,
        "filterType": widget.filter_type,
        "clickable": widget.clickable,
        "data": WIDGET_RENDERERS[widget.component](widget, context),
    }


def validate_widgets(config: DashboardConfig) -> None:
    """Reject unknown tags and incomplete widget definitions when configs load."""
    rule_keys = {rule.rules_key for rule in config.data_quality}
    for index, widget in enumerate(config.widgets):
        label = f"Dashboard '{config.id}' widget '{widget_key(widget, index)}'"
        if widget.component not in WIDGET_RENDERERS:
            raise InvalidConfigException(f"{label} has unknown component '{widget.component}'")
        if widget.component in ("SummaryCards", "SectionCards") and widget.group not in ("summary", "trends", None):
            raise InvalidConfigException(f"{label} references unknown tile group '{widget.group}'")
        if widget.component == "ChartAreaInteractive":
            if not widget.toggles:
                raise InvalidConfigException(f"{label} has no toggles")
            for toggle in widget.toggles:
                for field in toggle.fields:
                    if field.type not in TOGGLE_FIELD_TYPES:
                        raise InvalidConfigException(f"{label} field '{field.key}' has unknown type '{field.type}'")
                    if field.type == "lateness" and (field.band or field.key) not in charts.LATENESS_BANDS:
                        raise InvalidConfigException(f"{label} field '{field.key}' has unknown lateness band")
        if widget.component in COLUMN_WIDGETS and not widget.column and not widget.rules_key:
            raise InvalidConfigException(f"{label} needs a column")
        if widget.rules_key and widget.rules_key not in rule_keys:
            raise InvalidConfigException(f"{label} references unknown rules '{widget.rules_key}'")
        if widget.component == "ChartBarAggregate" and widget.metric != "count" and not widget.value_field:
            raise InvalidConfigException(f"{label} aggregates without a value field")
