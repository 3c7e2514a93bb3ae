"""Service layer for config-driven dashboards."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Mapping, Optional, Sequence

from app.dashboards.date_range import previous_date_range, resolve_date_range
from app.dashboards.filters import ISSUES_KEY, apply_active_filters, filter_by_range
from app.dashboards.issues import get_issues
from app.dashboards.registry import DASHBOARDS, call_fetcher
from app.dashboards.tiles import TileInput, compute_tiles
from app.dashboards.types import DashboardConfig, Row
from app.dashboards.widgets import WidgetContext, render_widget
from app.repositories.resource_repository import ResourceDataSource
from app.utils.exceptions import NotFoundException
from app.utils.list_params import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, QueryItems

logger = logging.getLogger(__name__)


def parse_active_filters(params: QueryItems, config: DashboardConfig) -> list[dict[str, str]]:
    """``?status=open&issue=missing_due_date`` -> ``[{type, value}]`` for configured filter types."""
    items = params.multi_items() if hasattr(params, "multi_items") else (
        params.items() if isinstance(params, Mapping) else params
    )
    return [
        {"type": key, "value": str(value)}
        for key, value in items
        if key in config.filters and value is not None and str(value) != ""
    ]


class DashboardService:
    """Fetches dashboard records and assembles tiles, widgets and the table."""

    def __init__(
        self,
        source: ResourceDataSource,
        registry: Mapping[str, DashboardConfig] = DASHBOARDS,
        today: Optional[date] = None,
    ):
        """Initialize service with a data source for the dashboard fetchers."""
        self.source = source
        self.registry = registry
        self.today = today

    def get_config(self, dashboard_id: str) -> DashboardConfig:
        config = self.registry.get(dashboard_id)
        if config is None:
            raise NotFoundException(f"Unknown dashboard: {dashboard_id}")
        return config

    async def render(
        self,
        dashboard_id: str,
        range_: Optional[str] = None,
        from_: Optional[str] = None,
        to: Optional[str] = None,
        active_filters: Sequence[Mapping[str, str]] = (),
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> dict[str, Any]:
        config = self.get_config(dashboard_id)
        window = resolve_date_range(range_ or config.range, from_, to, self.today)
        previous = previous_date_range(window)

        records = await call_fetcher(config.fetch_records, self.source, window.preset, from_, to, self.today)
        metrics: Mapping[str, Any] = {}
        if config.fetch_metrics is not None:
            metrics = await call_fetcher(
                config.fetch_metrics, self.source, window.preset, from_, to, self.today
            ) or {}

        rows: list[Row] = [{**record, ISSUES_KEY: get_issues(record, config.data_quality)} for record in records or []]
        current = filter_by_range(rows, config.date_column, window)
        prior = filter_by_range(rows, config.date_column, previous)

        source = TileInput(current=current, previous=prior, all_rows=rows, metrics=metrics, today=self.today)
        tiles = {
            "summary": compute_tiles(config.summary, source),
            "trends": compute_tiles(config.trends, source),
            "tiles": compute_tiles(config.tiles, source),
        }

        active = [dict(item) for item in active_filters]
        filtered = apply_active_filters(current, active, config)
        context = WidgetContext(
            config=config,
            window=window,
            rows=filtered,
            all_rows=apply_active_filters(rows, active, config),
            tiles=tiles,
            today=self.today,
        )
        widgets = [render_widget(widget, index, context) for index, widget in enumerate(config.widgets)]

        page = max(page, 1)
        page_size = min(max(page_size, 1), MAX_PAGE_SIZE)
        start = (page - 1) * page_size

        logger.info(
            "Dashboard rendered",
            extra={
                "dashboard.id": config.id,
                "dashboard.range": window.preset,
                "dashboard.records": len(rows),
                "dashboard.filtered": len(filtered),
            },
        )
        return {
            "id": config.id,
            "title": config.title,
            "range": window.preset,
            "fromDate": window.from_date,
            "toDate": window.to_date,
            "tiles": [*tiles["summary"], *tiles["trends"], *tiles["tiles"]],
            "widgets": widgets,
            "table": {
                "columns": [{"accessorKey": c.accessor_key, "header": c.header} for c in config.table_columns],
                "rows": filtered[start : start + page_size],
                "total": len(filtered),
                "page": page,
                "pageSize": page_size,
                "rowIdKey": config.row_id_key,
            },
            "filters": {"available": list(config.filters), "active": active},
        }
