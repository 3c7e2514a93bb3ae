"""Tile calculations: counts with trends, ratios, averages and aggregates."""

from __future__ import annotations

import statistics
from dataclasses import dataclass
from datetime import date
from typing import Any, Mapping, Optional, Sequence

from app.dashboards.filters import evaluate_condition, get_click_filter, validate_condition
from app.dashboards.types import Row, Tile
from app.utils.coerce import is_empty, to_date, to_number
from app.utils.exceptions import InvalidConfigException

AGGREGATE_METRICS = frozenset({"sum", "min", "max", "median", "average", "count"})
STATUSES = ("danger", "warning", "ok")


@dataclass(frozen=True)
class TileInput:
    """Row sets a tile is computed from."""

    current: Sequence[Row]
    previous: Sequence[Row]
    all_rows: Sequence[Row]
    metrics: Mapping[str, Any]
    today: Optional[date] = None


def trend_metric(current: float, previous: float) -> dict[str, Any]:
    """Period-over-period change formatted for trend cards."""
    change = 100.0 if previous == 0 else (current - previous) / previous * 100
    direction = "up" if change >= 0 else "down"
    word = "increase" if change >= 0 else "decrease"
    return {
        "value": current,
        "trend": f"{change:.1f}%",
        "direction": direction,
        "subtitle": f"{abs(change):.1f}% {word} from prior period",
    }


def _count(rows: Sequence[Row], condition, today: Optional[date] = None) -> int:
    if condition is None:
        return len(rows)
    return sum(1 for row in rows if evaluate_condition(row, condition, today))


def _matching(rows: Sequence[Row], condition, today: Optional[date] = None) -> list[Row]:
    if condition is None:
        return list(rows)
    return [row for row in rows if evaluate_condition(row, condition, today)]


def _numbers(rows: Sequence[Row], field: str) -> list[float]:
    values = (to_number(row.get(field)) for row in rows)
    return [value for value in values if value is not None]


def aggregate(values: Sequence[float], metric: str) -> Optional[float]:
    if metric == "count":
        return len(values)
    if not values:
        return 0 if metric == "sum" else None
    if metric == "sum":
        return sum(values)
    if metric == "min":
        return min(values)
    if metric == "max":
        return max(values)
    if metric == "median":
        return statistics.median(values)
    if metric == "average":
        return round(sum(values) / len(values), 1)
    raise InvalidConfigException(f"Unknown aggregate metric '{metric}'")


def threshold_status(tile: Tile, value: Any) -> str:
    """``danger`` beats ``warning``; anything else is ``ok``."""
    number = to_number(value)
    if not tile.thresholds or number is None:
        return "ok"
    for status in STATUSES:
        bounds = tile.thresholds.get(status)
        if not bounds:
            continue
        if "gt" in bounds and not number > bounds["gt"]:
            continue
        if "gte" in bounds and not number >= bounds["gte"]:
            continue
        if "lt" in bounds and not number < bounds["lt"]:
            continue
        if "lte" in bounds and not number <= bounds["lte"]:
            continue
        return status
    return "ok"


def _count_tile(tile: Tile, source: TileInput) -> dict[str, Any]:
    if tile.no_range_filter:
        value = _count(source.all_rows, tile.filter, source.today)
        total = len(source.all_rows)
        return {"value": value, "percent": round(value / total * 100, 1) if total else 0}

    value = _count(source.current, tile.filter, source.today)
    previous = _count(source.previous, tile.filter, source.today)
    if previous > 0:
        delta = (value - previous) / previous * 100
        return {
            "value": value,
            "trend": f"{abs(delta):.1f}%",
            "direction": "up" if delta >= 0 else "down",
            "percent": round(delta, 1),
        }
    if value > 0:
        return {"value": value, "trend": f"+{value}", "direction": "up", "percent": 100}
    return {"value": value, "percent": 0}


def _percentage_tile(tile: Tile, rows: Sequence[Row], today: Optional[date] = None) -> dict[str, Any]:
    numerator = _count(rows, tile.percentage.get("numerator"), today)
    denominator = _count(rows, tile.percentage.get("denominator"), today) or 1
    return {"value": round(numerator / denominator * 100, 1)}


def _average_tile(tile: Tile, rows: Sequence[Row], today: Optional[date] = None) -> dict[str, Any]:
    start_column, end_column = tile.average["start"], tile.average["end"]
    days = []
    for row in _matching(rows, tile.filter, today):
        start, end = to_date(row.get(start_column)), to_date(row.get(end_column))
        if start is not None and end is not None:
            days.append((end - start).days)
    return {"value": round(sum(days) / len(days)) if days else 0}


def _grouped_tile(tile: Tile, rows: Sequence[Row], today: Optional[date] = None) -> dict[str, Any]:
    groups: dict[str, list[Row]] = {}
    for row in _matching(rows, tile.filter, today):
        label = row.get(tile.group_by)
        groups.setdefault("Unknown" if is_empty(label) else str(label), []).append(row)
    metric = tile.metric or "count"
    sub_tiles = []
    for label, members in sorted(groups.items()):
        values = [1.0] * len(members) if metric == "count" else _numbers(members, tile.field or "")
        sub_tiles.append({"key": label, "title": label, "value": aggregate(values, metric)})
    return {"value": len(groups), "subTiles": sub_tiles}


def _pre_calculated_value(tile: Tile, metrics: Mapping[str, Any]) -> dict[str, Any]:
    injected = metrics.get(tile.key)
    if isinstance(injected, Mapping):
        return dict(injected)
    if injected is None:
        return {"value": tile.value if tile.value is not None else 0}
    return {"value": injected}


def compute_tile(tile: Tile, source: TileInput) -> dict[str, Any]:
    rows = source.all_rows if tile.no_range_filter else source.current
    if tile.pre_calculated:
        computed = _pre_calculated_value(tile, source.metrics)
    elif tile.percentage:
        computed = _percentage_tile(tile, rows, source.today)
    elif tile.average:
        computed = _average_tile(tile, rows, source.today)
    elif tile.group_by:
        computed = _grouped_tile(tile, rows, source.today)
    elif tile.metric and tile.metric != "count":
        matching = _matching(rows, tile.filter, source.today)
        computed = {"value": aggregate(_numbers(matching, tile.field or ""), tile.metric)}
    elif tile.distinct_column:
        distinct = {row.get(tile.distinct_column) for row in _matching(rows, tile.filter, source.today)}
        computed = {"value": len([value for value in distinct if not is_empty(value)])}
    else:
        computed = _count_tile(tile, source)

    result: dict[str, Any] = {"key": tile.key, "title": tile.title, **computed}
    result["subtitle"] = tile.subtitle or computed.get("subtitle")
    result["status"] = threshold_status(tile, result.get("value"))
    click_filter = get_click_filter(tile)
    if click_filter is not None:
        result["clickFilter"] = click_filter
    return result


def compute_tiles(tiles: Sequence[Tile], source: TileInput) -> list[dict[str, Any]]:
    return [compute_tile(tile, source) for tile in tiles]


def validate_tile(tile: Tile, where: str) -> None:
    label = f"{where} tile '{tile.key}'"
    validate_condition(tile.filter, label)
    if tile.metric is not None and tile.metric not in AGGREGATE_METRICS:
        raise InvalidConfigException(f"{label} has unknown metric '{tile.metric}'")
    if tile.metric not in (None, "count") and not tile.field:
        raise InvalidConfigException(f"{label} aggregates without a field")
    if tile.percentage is not None:
        if set(tile.percentage) != {"numerator", "denominator"}:
            raise InvalidConfigException(f"{label} needs numerator and denominator")
        for part in tile.percentage.values():
            validate_condition(part, label)
    if tile.average is not None and set(tile.average) != {"start", "end"}:
        raise InvalidConfigException(f"{label} needs start and end columns")
    for status in (tile.thresholds or {}):
        if status not in STATUSES:
            raise InvalidConfigException(f"{label} has unknown threshold '{status}'")
