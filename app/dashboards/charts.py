"""Chart series builders over in-memory rows."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Iterable, Optional, Sequence

from app.dashboards.date_range import DateRange, months_before
from app.dashboards.issues import IssueRule, get_issues
from app.dashboards.tiles import aggregate
from app.dashboards.types import Row, Toggle, ToggleField
from app.utils.coerce import is_empty, to_date, to_number

UNKNOWN = "Unknown"
CLOSED_MARKERS = ("complete", "cancel")
LATENESS_BANDS = {
    "1-7": (1, 7),
    "8-30": (8, 30),
    "30+": (31, None),
}
DATE_ACCESSORS = {"created": "order_date", "due": "due_date"}
STATUS_WINDOWS = (("last_90_days", 90), ("last_180_days", 180), ("last_year", 365))


def _label(value: Any) -> str:
    return UNKNOWN if is_empty(value) else str(value)


def week_starts(window: DateRange) -> list[date]:
    """Mondays from the week containing ``window.start`` through ``window.end``."""
    monday = window.start - timedelta(days=window.start.weekday())
    weeks = []
    while monday <= window.end:
        weeks.append(monday)
        monday += timedelta(days=7)
    return weeks


def _is_open(row: Row, status_column: str = "status") -> bool:
    status = str(row.get(status_column) or "").lower()
    return not any(marker in status for marker in CLOSED_MARKERS)


def _days_late(row: Row, as_of: date) -> Optional[int]:
    due = to_date(row.get("due_date"))
    if due is None or not _is_open(row):
        return None
    return (as_of - due).days


def _in_band(days_late: Optional[int], band: str) -> bool:
    if days_late is None:
        return False
    low, high = LATENESS_BANDS[band]
    return days_late >= low and (high is None or days_late <= high)


def _bucket_value(field: ToggleField, rows: Sequence[Row], week: date, today: Optional[date] = None) -> int:
    week_end = week + timedelta(days=6)
    if field.type == "lateness":
        as_of = min(week_end, today or date.today())
        return sum(1 for row in rows if _in_band(_days_late(row, as_of), field.band or field.key))
    column = DATE_ACCESSORS[field.type]
    count = 0
    for row in rows:
        value = to_date(row.get(column))
        if value is not None and week <= value <= week_end:
            count += 1
    return count


def time_buckets(
    rows: Sequence[Row], window: DateRange, toggles: Sequence[Toggle], today: Optional[date] = None
) -> dict[str, Any]:
    """Weekly series per toggle, labelled ``dd Mon``."""
    weeks = week_starts(window)
    series = {}
    for toggle in toggles:
        points = []
        for week in weeks:
            point: dict[str, Any] = {"date": week.isoformat(), "label": week.strftime("%d %b")}
            for field in toggle.fields:
                point[field.key] = _bucket_value(field, rows, week, today)
            points.append(point)
        series[toggle.key] = {
            "title": toggle.title,
            "description": toggle.description,
            "fields": [{"key": f.key, "label": f.label, "color": f.color} for f in toggle.fields],
            "points": points,
        }
    return {"toggles": series}


def count_by(rows: Iterable[Row], column: str, split: bool = False) -> dict[str, int]:
    counts: dict[str, int] = {}
    for row in rows:
        value = row.get(column)
        if split and isinstance(value, str) and "," in value:
            labels = [part.strip() or UNKNOWN for part in value.split(",")]
        else:
            labels = [_label(value)]
        for label in labels:
            counts[label] = counts.get(label, 0) + 1
    return counts


def sort_points(points: list[dict[str, Any]], sort_by: Optional[str]) -> list[dict[str, Any]]:
    if sort_by == "label-asc":
        return sorted(points, key=lambda point: point["label"])
    if sort_by == "label-desc":
        return sorted(points, key=lambda point: point["label"], reverse=True)
    if sort_by == "value-asc":
        return sorted(points, key=lambda point: (point["value"], point["label"]))
    return sorted(points, key=lambda point: (-point["value"], point["label"]))


def bar_data(
    rows: Sequence[Row], column: str, sort_by: Optional[str] = None, limit: Optional[int] = None
) -> list[dict[str, Any]]:
    """Counts per value of ``column``; comma-separated values count once per part."""
    points = [{"label": label, "value": value} for label, value in count_by(rows, column, split=True).items()]
    points = sort_points(points, sort_by)
    return points[:limit] if limit else points


def aggregate_data(
    rows: Sequence[Row],
    column: str,
    value_field: Optional[str],
    metric: str = "sum",
    sort_by: Optional[str] = None,
    limit: Optional[int] = None,
) -> list[dict[str, Any]]:
    groups: dict[str, list[float]] = {}
    for row in rows:
        bucket = groups.setdefault(_label(row.get(column)), [])
        if metric == "count":
            bucket.append(1.0)
            continue
        number = to_number(row.get(value_field)) if value_field else None
        if number is not None:
            bucket.append(number)
    points = [{"label": label, "value": aggregate(values, metric) or 0} for label, values in groups.items()]
    points = sort_points(points, sort_by)
    return points[:limit] if limit else points


def donut_data(rows: Sequence[Row], column: str) -> list[dict[str, Any]]:
    counts = count_by(rows, column)
    return [{"name": name, "value": value} for name, value in sorted(counts.items(), key=lambda item: (-item[1], item[0]))]


def data_quality_counts(
    rows: Sequence[Row], rules: Sequence[IssueRule], sort_by: Optional[str] = None
) -> list[dict[str, Any]]:
    """Violations per rule, keyed for the ``issue`` click filter."""
    counts = {rule.key: 0 for rule in rules}
    for row in rows:
        for key in get_issues(row, rules):
            counts[key] += 1
    points = [{"key": rule.key, "label": rule.label, "value": counts[rule.key]} for rule in rules]
    return sort_points(points, sort_by) if sort_by else points


def _between(value: Any, start: date, end: date) -> bool:
    parsed = to_date(value)
    return parsed is not None and start <= parsed <= end


def status_windows(
    rows: Sequence[Row], column: str, date_column: str = "order_date", today: Optional[date] = None
) -> dict[str, list[dict[str, Any]]]:
    """Status counts for the last 90 days, 180 days and year."""
    end = today or date.today()
    windows = {}
    for key, days in STATUS_WINDOWS:
        start = months_before(end, 12) if days == 365 else end - timedelta(days=days)
        in_window = [row for row in rows if _between(row.get(date_column), start, end)]
        windows[key] = bar_data(in_window, column)
    return windows
