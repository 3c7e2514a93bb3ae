"""Dashboard registry and load-time validation."""

from __future__ import annotations

import inspect
import logging
from datetime import date
from typing import Any, Mapping, Optional

from app.dashboards.configs import inventory, purchase_orders, requisitions
from app.dashboards.issues import validate_rule
from app.dashboards.tiles import validate_tile
from app.dashboards.types import DashboardConfig, Fetcher
from app.dashboards.widgets import validate_widgets
from app.utils.exceptions import InvalidConfigException

logger = logging.getLogger(__name__)

DASHBOARDS: Mapping[str, DashboardConfig] = {
    "requisitions": requisitions.config,
    "purchase-orders": purchase_orders.config,
    "inventory": inventory.config,
}

# Positional arguments after the data source: (range) or (range, from, to).
# Fetchers declaring a ``today`` keyword also receive the reference date.
FETCHER_ARITIES = (1, 3)


def fetcher_arity(fetcher: Fetcher) -> int:
    positional = [
        parameter
        for parameter in inspect.signature(fetcher).parameters.values()
        if parameter.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
    ]
    return len(positional) - 1


async def call_fetcher(
    fetcher: Fetcher,
    source: Any,
    range_: str,
    from_: Optional[str],
    to: Optional[str],
    today: Optional[date] = None,
) -> Any:
    extra = {"today": today} if "today" in inspect.signature(fetcher).parameters else {}
    if fetcher_arity(fetcher) == 3:
        return await fetcher(source, range_, from_, to, **extra)
    return await fetcher(source, range_, **extra)


def validate_dashboard(config: DashboardConfig) -> None:
    where = f"Dashboard '{config.id}'"
    if not config.id or not config.title or not config.row_id_key:
        raise InvalidConfigException(f"{where} needs id, title and row_id_key")
    for name, fetcher in (("fetch_records", config.fetch_records), ("fetch_metrics", config.fetch_metrics)):
        if fetcher is None:
            continue
        if fetcher_arity(fetcher) not in FETCHER_ARITIES:
            raise InvalidConfigException(f"{where} {name} must take (source, range) or (source, range, from, to)")
    for filter_type, target in config.filters.items():
        if not (isinstance(target, str) and target) and not (filter_type == "issue" and target is True):
            raise InvalidConfigException(f"{where} filter '{filter_type}' has no column")
    for tile in (*config.tiles, *config.summary, *config.trends):
        validate_tile(tile, where)
        if tile.pre_calculated and config.fetch_metrics is None and tile.value is None:
            raise InvalidConfigException(f"{where} tile '{tile.key}' is pre-calculated without fetch_metrics")
    for rule in config.data_quality:
        validate_rule(rule)
    validate_widgets(config)


def validate_dashboards(registry: Mapping[str, DashboardConfig] = DASHBOARDS) -> None:
    """Validate every dashboard once at startup; raises on the first bad config."""
    for key, config in registry.items():
        if key != config.id:
            raise InvalidConfigException(f"Dashboard registered as '{key}' has id '{config.id}'")
        validate_dashboard(config)
    logger.info("Dashboard registry validated", extra={"dashboards.count": len(registry)})
