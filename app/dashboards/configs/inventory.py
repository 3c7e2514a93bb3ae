"""Inventory dashboard over the current stock snapshot."""

from __future__ import annotations

from app.core.config import settings
from app.dashboards.issues import IssueRule
from app.dashboards.types import DashboardConfig, Row, TableColumn, Tile, Widget
from app.repositories.resource_repository import ResourceDataSource
from app.resources.registry import RESOURCES

LOW_STOCK = 5


async def fetch_records(source: ResourceDataSource, range_: str) -> list[Row]:
    return await source.list_all(RESOURCES["inventory-current"].config, settings.DASHBOARD_MAX_ROWS)


SUMMARY = (
    Tile(key="totalItems", title="Items", subtitle="Current snapshot", clickable=True),
    Tile(
        key="outOfStock",
        title="Out of Stock",
        filter={"column": "total_available", "eq": 0},
        thresholds={"warning": {"gt": 0}},
        click_filter={"type": "issue", "value": "oos"},
    ),
    Tile(
        key="lowStock",
        title="Low Stock",
        subtitle=f"Fewer than {LOW_STOCK} available",
        filter={"and": [{"column": "total_available", "gt": 0}, {"column": "total_available", "lt": LOW_STOCK}]},
        thresholds={"warning": {"gt": 0}},
    ),
    Tile(key="onOrder", title="On Order", metric="sum", field="on_order"),
    Tile(key="checkedOut", title="Checked Out", metric="sum", field="total_checked_out"),
    Tile(key="medianCost", title="Median Item Cost", metric="median", field="item_cost"),
    Tile(key="categories", title="Categories", distinct_column="category"),
    Tile(key="itemsByWarehouse", title="Items by Warehouse", group_by="warehouse"),
)

DATA_QUALITY = (
    IssueRule(key="oos", label="Out of Stock", column="total_available", type="not_equals", value=0),
    IssueRule(key="negative_available", label="Negative Availability", column="total_available", type="gte", value=0),
    IssueRule(key="missing_description", label="Missing Description", column="description", type="is_null"),
    IssueRule(key="missing_category", label="Missing Category", column="category", type="is_null"),
    IssueRule(key="missing_location", label="Missing Location", column="location", type="is_null"),
    IssueRule(key="missing_tally_card", label="Missing Tally Card", column="tally_card_number", type="is_null"),
)

WIDGETS = (
    Widget(component="SummaryCards", key="tiles", group="summary"),
    Widget(
        component="ChartBarVertical",
        key="data_quality_chart",
        title="Data Quality Issues",
        rules_key="default",
        filter_type="issue",
        sort_by="label-asc",
        clickable=True,
    ),
    Widget(
        component="ChartBarVertical",
        key="unit_chart",
        title="Records by Unit of Measure",
        column="unit_of_measure",
        sort_by="value-desc",
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
        component="ChartBarHorizontal",
        key="records_by_category",
        title="Records by Category",
        column="category",
        filter_type="category",
        clickable=True,
    ),
    Widget(
        component="ChartBarAggregate",
        key="available_by_location",
        title="Available by Location",
        column="location",
        value_field="total_available",
        metric="sum",
        sort_by="value-desc",
        limit=20,
    ),
)

config = DashboardConfig(
    id="inventory",
    title="Inventory Dashboard",
    range="3m",
    row_id_key="item_number",
    fetch_records=fetch_records,
    filters={"warehouse": "warehouse", "category": "category", "location": "location", "issue": True},
    summary=SUMMARY,
    data_quality=DATA_QUALITY,
    widgets=WIDGETS,
    table_columns=(
        TableColumn("item_number", "Item Number"),
        TableColumn("description", "Description"),
        TableColumn("total_available", "Total Available"),
        TableColumn("item_cost", "Cost"),
        TableColumn("category", "Category"),
        TableColumn("unit_of_measure", "Unit"),
        TableColumn("location", "Location"),
        TableColumn("warehouse", "Warehouse"),
    ),
    date_column=None,
)
