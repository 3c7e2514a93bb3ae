"""Dashboard date windows: presets, custom bounds and the prior period."""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Optional

from app.utils.coerce import to_date
from app.utils.exceptions import ValidationException

PRESET_MONTHS = {"3m": 3, "6m": 6, "12m": 12}
DEFAULT_PRESET = "3m"
CUSTOM = "custom"


@dataclass(frozen=True)
class DateRange:
    from_date: str
    to_date: str
    preset: str = DEFAULT_PRESET

    @property
    def start(self) -> date:
        return date.fromisoformat(self.from_date)

    @property
    def end(self) -> date:
        return date.fromisoformat(self.to_date)

    def contains(self, value: Any) -> bool:
        parsed = to_date(value)
        return parsed is not None and self.start <= parsed <= self.end


def months_before(value: date, months: int) -> date:
    """Same calendar day ``months`` earlier, clamped to the month end."""
    index = value.year * 12 + value.month - 1 - months
    year, month = divmod(index, 12)
    month += 1
    return value.replace(year=year, month=month, day=min(value.day, calendar.monthrange(year, month)[1]))


def _parse_bound(value: Optional[str], name: str) -> date:
    if value is None or not str(value).strip():
        raise ValidationException(f"Custom range requires '{name}'")
    parsed = to_date(value)
    if parsed is None:
        raise ValidationException(f"Invalid '{name}' date: {value}")
    return parsed


def resolve_date_range(
    range_: Optional[str],
    from_: Optional[str] = None,
    to: Optional[str] = None,
    today: Optional[date] = None,
) -> DateRange:
    """Resolve a preset (3m/6m/12m) or a custom from/to pair to concrete dates.

    Presets end today and start the same calendar day N months earlier,
    clamped to the month end. Unknown presets fall back to three months.
    """
    if range_ == CUSTOM:
        start = _parse_bound(from_, "from")
        end = _parse_bound(to, "to")
        if start > end:
            raise ValidationException("'from' must not be after 'to'")
        return DateRange(start.isoformat(), end.isoformat(), CUSTOM)

    preset = range_ if range_ in PRESET_MONTHS else DEFAULT_PRESET
    end = today or date.today()
    start = months_before(end, PRESET_MONTHS[preset])
    return DateRange(start.isoformat(), end.isoformat(), preset)


def previous_date_range(current: DateRange) -> DateRange:
    """The window of equal length that ends the day before ``current`` starts."""
    length = current.end - current.start
    previous_end = current.start - timedelta(days=1)
    previous_start = previous_end - length
    return DateRange(previous_start.isoformat(), previous_end.isoformat(), current.preset)
