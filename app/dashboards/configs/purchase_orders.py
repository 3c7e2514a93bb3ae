"""Purchase orders dashboard."""

from __future__ import annotations

from datetime import date
from typing import Optional

from app.core.config import settings
from app.dashboards.configs.common import OPEN_STATUS, PAST_DUE, TIMELINE_TOGGLES
from app.dashboards.date_range import previous_date_range, resolve_date_range
from app.dashboards.issues import IssueRule
from app.dashboards.types import DashboardConfig, Row, TableColumn, Tile, Widget
from app.repositories.resource_repository import ResourceDataSource
from app.resources.registry import RESOURCES
from app.utils.list_params import FilterClause


async def fetch_records(
    source: ResourceDataSource,
    range_: str,
    from_: Optional[str],
    to: Optional[str],
    *,
    today: Optional[date] = None,
) -> list[Row]:
    """Orders placed since the start of the previous window."""
    previous = previous_date_range(resolve_date_range(range_, from_, to, today))
    return await source.list_all(
        RESOURCES["purchase-orders"].config,
        settings.DASHBOARD_MAX_ROWS,
        [FilterClause("order_date", "gte", previous.start)],
    )


SUMMARY = (
    Tile(key="totalPOs", title="Purchase Orders", subtitle="Selected range", clickable=True),
    Tile(key="openPOs", title="Open", filter=OPEN_STATUS, clickable=True),
    Tile(
        key="closedPOs",
        title="Closed",
        filter={"column": "status", "contains": "complete"},
        clickable=True,
    ),
    Tile(key="latePOs", title="Late", filter=PAST_DUE, thresholds={"danger": {"gt": 0}}),
    Tile(key="totalSpend", title="Total Spend", metric="sum", field="grand_total"),
    Tile(key="avgOrderValue", title="Average Order Value", metric="average", field="grand_total"),
    Tile(key="vendors", title="Vendors", subtitle="Distinct vendors ordered from", distinct_column="vendor_name"),
    Tile(
        key="avgLeadTime",
        title="Avg Lead Time",
        subtitle="Days between Order & Due",
        average={"start": "order_date", "end": "due_date"},
        thresholds={"warning": {"gt": 30}, "danger": {"gt": 60}},
    ),
    Tile(
        key="spendByWarehouse",
        title="Spend by Warehouse",
        group_by="warehouse",
        metric="sum",
        field="grand_total",
    ),
)

DATA_QUALITY = (
    IssueRule(key="missing_order_date", label="Missing Order Date", column="order_date", type="is_null"),
    IssueRule(key="missing_due_date", label="Missing Due Date", column="due_date", type="is_null"),
    IssueRule(key="missing_vendor", label="Missing Vendor", column="vendor_name", type="is_null"),
    IssueRule(key="missing_warehouse", label="Missing Warehouse", column="warehouse", type="is_null"),
    IssueRule(key="negative_total", label="Negative Total", column="grand_total", type="gte", value=0),
)

WIDGETS = (
    Widget(component="SummaryCards", key="tiles", group="summary"),
    Widget(component="ChartAreaInteractive", key="po_trends", title="Purchase Order Trends", toggles=TIMELINE_TOGGLES),
    Widget(
        component="ChartByStatus",
        key="status_windows",
        title="Orders by Status",
        column="status",
        filter_type="status",
        clickable=True,
    ),
    Widget(
        component="ChartBarAggregate",
        key="spend_by_vendor",
        title="Spend by Vendor",
        column="vendor_name",
        value_field="grand_total",
        metric="sum",
        sort_by="value-desc",
        limit=10,
        filter_type="vendor",
        clickable=True,
    ),
    Widget(
        component="ChartDonut",
        key="records_by_warehouse",
        title="Records by Warehouse",
        column="warehouse",
        filter_type="warehouse",
        clickable=True,
    ),
    Widget(
        component="ChartDonut",
        key="data_quality_donut",
        title="Data Quality Issues",
        rules_key="default",
        filter_type="issue",
        clickable=True,
    ),
)

config = DashboardConfig(
    id="purchase-orders",
    title="Purchase Orders Dashboard",
    range="3m",
    row_id_key="po_number",
    fetch_records=fetch_records,
    filters={"status": "status", "vendor": "vendor_name", "warehouse": "warehouse", "issue": True},
    summary=SUMMARY,
    data_quality=DATA_QUALITY,
    widgets=WIDGETS,
    table_columns=(
        TableColumn("po_number", "PO Number"),
        TableColumn("vendor_name", "Vendor"),
        TableColumn("status", "Status"),
        TableColumn("order_date", "Order Date"),
        TableColumn("due_date", "Due Date"),
        TableColumn("grand_total", "Total"),
        TableColumn("warehouse", "Warehouse"),
    ),
    date_column="order_date",
)
