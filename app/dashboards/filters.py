"""Row predicates for tile conditions, active filters and date windows."""

from __future__ import annotations

import re
from datetime import date
from typing import Any, Iterable, Mapping, Optional, Sequence

from app.dashboards.date_range import DateRange
from app.dashboards.types import Condition, DashboardConfig, Row, Tile
from app.utils.coerce import is_empty, to_date, to_number
from app.utils.exceptions import InvalidConfigException

ISSUE_FILTER = "issue"
# Comparison bound resolved to the current date at evaluation time
TODAY = "today"
ISSUES_KEY = "issues"

CONDITION_OPERATORS = frozenset(
    {"eq", "equals", "not_equals", "contains", "not_contains", "lt", "gt", "is_null", "is_not_null", "not_matches"}
)


def _compare(field: Any, bound: Any, op: str, today: Optional[date] = None) -> bool:
    if is_empty(field):
        return False
    if bound == TODAY:
        bound = today or date.today()
    field_date, bound_date = to_date(field), to_date(bound)
    if field_date is not None and bound_date is not None:
        left, right = field_date, bound_date
    else:
        left, right = to_number(field), to_number(bound)
        if left is None or right is None:
            left, right = str(field), str(bound)
    return left < right if op == "lt" else left > right


def _equals(field: Any, expected: Any) -> bool:
    if field is None or expected is None:
        return field is expected or (expected == "" and field is None)
    left, right = to_number(field), to_number(expected)
    if left is not None and right is not None:
        return left == right
    return str(field) == str(expected)


def evaluate_condition(row: Row, condition: Optional[Condition], today: Optional[date] = None) -> bool:
    """Evaluate a tile condition; ``None`` never matches.

    ``today`` replaces the current date for ``"today"`` bounds.
    """
    if not condition:
        return False
    if "and" in condition:
        return all(evaluate_condition(row, part, today) for part in condition["and"])
    if "or" in condition:
        return any(evaluate_condition(row, part, today) for part in condition["or"])

    field = row.get(condition.get("column"))
    if "eq" in condition or "equals" in condition:
        return _equals(field, condition.get("eq", condition.get("equals")))
    if "not_equals" in condition:
        return not _equals(field, condition["not_equals"])
    if "contains" in condition:
        return isinstance(field, str) and str(condition["contains"]).lower() in field.lower()
    if "not_contains" in condition:
        return isinstance(field, str) and str(condition["not_contains"]).lower() not in field.lower()
    if "lt" in condition:
        return _compare(field, condition["lt"], "lt", today)
    if "gt" in condition:
        return _compare(field, condition["gt"], "gt", today)
    if "is_null" in condition:
        return is_empty(field) if condition["is_null"] else not is_empty(field)
    if "is_not_null" in condition:
        return not is_empty(field) if condition["is_not_null"] else is_empty(field)
    if "not_matches" in condition:
        return not is_empty(field) and re.search(condition["not_matches"], str(field)) is None
    return False


def validate_condition(condition: Optional[Condition], where: str) -> None:
    if condition is None:
        return
    if "and" in condition or "or" in condition:
        for part in condition.get("and", condition.get("or")):
            validate_condition(part, where)
        return
    if "column" not in condition:
        raise InvalidConfigException(f"Condition in {where} has no column")
    operators = set(condition) - {"column"}
    if len(operators) != 1 or not operators <= CONDITION_OPERATORS:
        raise InvalidConfigException(f"Condition in {where} has unsupported operators: {sorted(operators)}")


def filter_by_range(rows: Iterable[Row], column: Optional[str], window: DateRange) -> list[Row]:
    """Rows whose ``column`` date falls in ``window``; all rows when ``column`` is None."""
    if column is None:
        return list(rows)
    return [row for row in rows if window.contains(row.get(column))]


def resolve_filter_column(config: DashboardConfig, filter_type: str) -> Optional[str]:
    target = config.filters.get(filter_type)
    if isinstance(target, str):
        return target
    if filter_type in config.filters.values():
        return filter_type
    return None


def apply_active_filters(
    rows: Iterable[Row], active: Sequence[Mapping[str, str]], config: DashboardConfig
) -> list[Row]:
    """Keep rows matching every active ``{type, value}`` filter.

    ``issue`` keeps rows whose evaluated issues include the value; rows must
    already carry their ``issues`` list. Unknown filter types are ignored.
    """
    result = []
    for row in rows:
        keep = True
        for active_filter in active:
            filter_type, value = active_filter.get("type"), active_filter.get("value", "")
            if value == "":
                continue
            if filter_type == ISSUE_FILTER and config.filters.get(ISSUE_FILTER) is True:
                if value not in row.get(ISSUES_KEY, ()):
                    keep = False
                    break
                continue
            column = resolve_filter_column(config, filter_type)
            if column is None:
                continue
            field = row.get(column)
            if isinstance(field, str):
                matched = value.lower() in field.lower()
            else:
                matched = field is not None and str(field) == value
            if not matched:
                keep = False
                break
        if keep:
            result.append(row)
    return result


def get_click_filter(tile: Tile) -> Optional[dict[str, str]]:
    """Filter applied when a tile is clicked: explicit, match-key or simple-filter derived."""
    if tile.click_filter:
        return dict(tile.click_filter)
    if tile.filter and tile.match_key:
        return {"type": tile.match_key, "value": tile.key}
    if tile.clickable and tile.filter and "column" in tile.filter:
        if "contains" in tile.filter:
            return {"type": tile.filter["column"], "value": str(tile.filter["contains"])}
        for key in ("eq", "equals"):
            if key in tile.filter:
                return {"type": tile.filter["column"], "value": str(tile.filter[key])}
    return None
