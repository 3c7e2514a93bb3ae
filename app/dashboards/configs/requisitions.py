"""Requisitions dashboard."""

from __future__ import annotations

from datetime import date
from typing import Any, Optional

from app.core.config import settings
from app.dashboards.configs.common import OPEN_STATUS, PAST_DUE, TIMELINE_TOGGLES, missing
from app.dashboards.date_range import previous_date_range, resolve_date_range
from app.dashboards.filters import evaluate_condition
from app.dashboards.issues import IssueRule
from app.dashboards.tiles import trend_metric
from app.dashboards.types import DashboardConfig, Row, TableColumn, Tile, Widget
from app.repositories.resource_repository import ResourceDataSource
from app.resources.registry import RESOURCES
from app.utils.coerce import to_date

REQUISITION_NUMBER_PATTERN = (
    r"^LUT[-/]REQ[-/](BP1|BP2|AMC|AM|BDI|CCW|RTZ|BC)[-/]([\d\-]+)[-/](\d{2})[-/](\d{2}|\d{4})(?:-\d{1,3})?$"
)
CLOSED_STATUS = "Closed - Pick Complete"


async def fetch_records(source: ResourceDataSource, range_: str) -> list[Row]:
    return await source.list_all(RESOURCES["requisitions"].config, settings.DASHBOARD_MAX_ROWS)


def _period_date(row: Row):
    return to_date(row.get("order_date")) or to_date(row.get("due_date"))


async def fetch_metrics(
    source: ResourceDataSource,
    range_: str,
    from_: Optional[str],
    to: Optional[str],
    *,
    today: Optional[date] = None,
) -> dict[str, Any]:
    """Trend cards comparing the selected window with the one before it."""
    window = resolve_date_range(range_, from_, to, today)
    previous = previous_date_range(window)
    rows = await source.list_all(RESOURCES["requisitions"].config, settings.DASHBOARD_MAX_ROWS)

    current = [row for row in rows if window.contains(_period_date(row))]
    prior = [row for row in rows if previous.contains(_period_date(row))]

    def closed(subset: list[Row]) -> int:
        return sum(1 for row in subset if row.get("status") == CLOSED_STATUS)

    def lacking(subset: list[Row], column: str) -> int:
        return sum(1 for row in subset if evaluate_condition(row, missing(column), today))

    return {
        "totalReqs": trend_metric(len(current), len(prior)),
        "closedReqs": trend_metric(closed(current), closed(prior)),
        "missingOrderDate": trend_metric(lacking(current, "order_date"), lacking(prior, "order_date")),
        "missingDueDate": trend_metric(lacking(current, "due_date"), lacking(prior, "due_date")),
    }


SUMMARY = (
    Tile(
        key="totalAllTime",
        title="Total Requisitions",
        subtitle="All Time",
        filter={"column": "requisition_order_number", "is_not_null": True},
        clickable=True,
        no_range_filter=True,
    ),
    Tile(
        key="issued",
        title="Issued",
        subtitle="All Time",
        filter={"column": "status", "contains": "issue"},
        clickable=True,
        no_range_filter=True,
    ),
    Tile(
        key="inProgress",
        title="In Progress",
        subtitle="All Time",
        filter={"column": "status", "contains": "in progress"},
        clickable=True,
        no_range_filter=True,
    ),
    Tile(
        key="completed",
        title="Completed",
        subtitle="All Time",
        filter={"column": "status", "contains": "complete"},
        clickable=True,
        no_range_filter=True,
    ),
    Tile(
        key="cancelled",
        title="Cancelled",
        subtitle="All Time",
        filter={"column": "status", "contains": "cancel"},
        clickable=True,
        no_range_filter=True,
    ),
    Tile(
        key="late",
        title="Late",
        subtitle="All Time",
        filter=PAST_DUE,
        thresholds={"danger": {"gt": 0}},
        clickable=True,
        no_range_filter=True,
    ),
    Tile(
        key="old_open_reqs",
        title="Previous Requisitions",
        subtitle="All Time",
        filter={
            "and": [
                {"column": "order_date", "lt": "2025-01-31"},
                {"column": "due_date", "is_not_null": True},
                {
                    "or": [
                        {"column": "status", "contains": "issued"},
                        {"column": "status", "contains": "in progress"},
                    ]
                },
            ]
        },
        thresholds={"danger": {"gt": 0}},
        no_range_filter=True,
    ),
    Tile(
        key="avgTimeToClose",
        title="Avg Time to Close",
        subtitle="Days between Order & Due",
        average={"start": "order_date", "end": "due_date"},
        filter={"and": [{"column": "order_date", "is_not_null": True}, {"column": "due_date", "is_not_null": True}]},
        thresholds={"warning": {"gt": 7}, "danger": {"gt": 14}},
        clickable=False,
        no_range_filter=True,
    ),
)

TRENDS = (
    Tile(key="totalReqs", title="Total Requisitions", pre_calculated=True),
    Tile(
        key="closedReqs",
        title="Closed Requisitions",
        filter={"column": "status", "contains": "closed"},
        clickable=True,
        pre_calculated=True,
    ),
    Tile(
        key="missingOrderDate",
        title="Missing Order Date",
        filter={"and": [missing("order_date"), OPEN_STATUS]},
        thresholds={"warning": {"gt": 0}},
        click_filter={"type": "issue", "value": "missing_order_date"},
        pre_calculated=True,
    ),
    Tile(
        key="missingDueDate",
        title="Missing Due Date",
        filter={"and": [missing("due_date"), OPEN_STATUS]},
        thresholds={"warning": {"gt": 0}},
        click_filter={"type": "issue", "value": "missing_due_date"},
        pre_calculated=True,
    ),
)

DATA_QUALITY = (
    IssueRule(key="missing_due_date", label="Missing Due Date", column="due_date", type="is_null"),
    IssueRule(key="missing_order_date", label="Missing Order Date", column="order_date", type="is_null"),
    IssueRule(key="missing_created_by", label="Missing Created By", column="created_by", type="is_null"),
    IssueRule(key="missing_project_number", label="Missing Project Number", column="project_number", type="is_null"),
    IssueRule(key="missing_warehouse", label="Missing Warehouse", column="warehouse", type="is_null"),
    IssueRule(
        key="invalid_requisition_order_number",
        label="Invalid Requisition Order Number",
        column="requisition_order_number",
        type="regex",
        pattern=REQUISITION_NUMBER_PATTERN,
    ),
)

WIDGETS = (
    Widget(component="SummaryCards", key="tiles", group="summary"),
    Widget(component="SectionCards", key="trends", group="trends"),
    Widget(
        component="ChartAreaInteractive",
        key="requisition_trends",
        title="Requisition Trends",
        toggles=TIMELINE_TOGGLES,
    ),
    Widget(
        component="ChartBarVertical",
        key="data_quality_chart",
        title="Data Quality Issues",
        description="Breakdown of validation issues found in current dataset",
        rules_key="default",
        filter_type="issue",
        sort_by="label-asc",
        clickable=True,
    ),
    Widget(
        component="ChartBarVertical",
        key="status_chart",
        title="Requisitions by Status",
        description="Status distribution of requisitions in current range",
        column="status",
        filter_type="status",
        sort_by="value-desc",
        clickable=True,
    ),
    Widget(
        component="ChartDonut",
        key="records_by_creator",
        title="Records by Creator",
        description="Breakdown of records grouped by created_by",
        column="created_by",
        filter_type="creator",
        clickable=True,
    ),
    Widget(
        component="ChartBarHorizontal",
        key="records_by_project",
        title="Records by Project",
        description="Breakdown by project number",
        column="project_number",
        filter_type="project",
        limit=15,
        clickable=True,
    ),
)

config = DashboardConfig(
    id="requisitions",
    title="Requisitions Dashboard",
    range="3m",
    row_id_key="requisition_order_number",
    fetch_records=fetch_records,
    fetch_metrics=fetch_metrics,
    filters={"status": "status", "creator": "created_by", "project": "project_number", "issue": True},
    summary=SUMMARY,
    trends=TRENDS,
    data_quality=DATA_QUALITY,
    widgets=WIDGETS,
    table_columns=(
        TableColumn("requisition_order_number", "Req Number"),
        TableColumn("status", "Status"),
        TableColumn("created_by", "Created By"),
        TableColumn("project_number", "Project"),
        TableColumn("order_date", "Order Date"),
        TableColumn("due_date", "Due Date"),
        TableColumn("warehouse", "Warehouse"),
    ),
    date_column="order_date",
)
