"""Declarative dashboard configuration types."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping, Optional, Union

from app.dashboards.issues import IssueRule

Row = dict[str, Any]
# Tile conditions are nested dicts: {"column": ..., "<op>": ...} or {"and"|"or": [...]}
Condition = Mapping[str, Any]
Fetcher = Callable[..., Awaitable[Any]]


@dataclass(frozen=True)
class Tile:
    key: str
    title: str
    subtitle: Optional[str] = None
    match_key: Optional[str] = None
    filter: Optional[Condition] = None
    # {"numerator": Condition, "denominator": Condition}
    percentage: Optional[Mapping[str, Condition]] = None
    # {"start": column, "end": column}
    average: Optional[Mapping[str, str]] = None
    metric: Optional[str] = None
    field: Optional[str] = None
    distinct_column: Optional[str] = None
    group_by: Optional[str] = None
    value: Optional[Union[int, float]] = None
    pre_calculated: bool = False
    thresholds: Optional[Mapping[str, Mapping[str, float]]] = None
    no_range_filter: bool = False
    clickable: Optional[bool] = None
    click_filter: Optional[Mapping[str, str]] = None


@dataclass(frozen=True)
class ToggleField:
    key: str
    label: str
    type: str
    color: Optional[str] = None
    band: Optional[str] = None


@dataclass(frozen=True)
class Toggle:
    key: str
    title: str
    fields: tuple[ToggleField, ...]
    description: Optional[str] = None


@dataclass(frozen=True)
class Widget:
    component: str
    key: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    group: Optional[str] = None
    column: Optional[str] = None
    rules_key: Optional[str] = None
    filter_type: Optional[str] = None
    toggles: tuple[Toggle, ...] = ()
    value_field: Optional[str] = None
    metric: str = "count"
    sort_by: Optional[str] = None
    limit: Optional[int] = None
    clickable: bool = False


@dataclass(frozen=True)
class TableColumn:
    accessor_key: str
    header: str


@dataclass(frozen=True)
class DashboardConfig:
    id: str
    title: str
    row_id_key: str
    fetch_records: Fetcher
    range: str = "3m"
    fetch_metrics: Optional[Fetcher] = None
    # logical filter name -> column, or True for the data-quality "issue" filter
    filters: Mapping[str, Union[str, bool]] = field(default_factory=dict)
    tiles: tuple[Tile, ...] = ()
    summary: tuple[Tile, ...] = ()
    trends: tuple[Tile, ...] = ()
    data_quality: tuple[IssueRule, ...] = ()
    widgets: tuple[Widget, ...] = ()
    table_columns: tuple[TableColumn, ...] = ()
    date_column: Optional[str] = "order_date"
