from datetime import date

import pytest

from app.dashboards.date_range import DateRange, months_before, previous_date_range, resolve_date_range
from app.utils.exceptions import ValidationException


@pytest.mark.parametrize(
    "preset, expected_from",
    [("3m", "2025-03-30"), ("6m", "2024-12-30"), ("12m", "2024-06-30")],
)
def test_presets_end_today(preset, expected_from):
    window = resolve_date_range(preset, today=date(2025, 6, 30))
    assert window == DateRange(expected_from, "2025-06-30", preset)


def test_months_clamp_to_month_end():
    window = resolve_date_range("3m", today=date(2025, 5, 31))
    assert window.from_date == "2025-02-28"


def test_unknown_preset_falls_back_to_three_months():
    window = resolve_date_range("7y", today=date(2025, 6, 30))
    assert window.preset == "3m"
    assert window.from_date == "2025-03-30"


def test_custom_range_is_normalized():
    window = resolve_date_range("custom", "2025-01-05T08:00:00Z", "2025-02-01")
    assert window == DateRange("2025-01-05", "2025-02-01", "custom")


@pytest.mark.parametrize(
    "from_, to",
    [(None, "2025-02-01"), ("2025-01-01", None), ("yesterday", "2025-02-01"), ("2025-03-01", "2025-02-01")],
)
def test_custom_range_errors(from_, to):
    with pytest.raises(ValidationException):
        resolve_date_range("custom", from_, to)


def test_previous_window_has_equal_length():
    current = DateRange("2025-04-01", "2025-04-30", "custom")
    previous = previous_date_range(current)
    assert previous.to_date == "2025-03-31"
    assert previous.from_date == "2025-03-02"
    assert (previous.end - previous.start) == (current.end - current.start)


def test_contains_parses_timestamps():
    window = DateRange("2025-04-01", "2025-04-30")
    assert window.contains("2025-04-30T23:59:00Z")
    assert not window.contains("2025-05-01")
    assert not window.contains(None)


@pytest.mark.parametrize(
    "value, months, expected",
    [
        (date(2024, 2, 29), 12, date(2023, 2, 28)),
        (date(2025, 1, 15), 3, date(2024, 10, 15)),
        (date(2025, 3, 31), 1, date(2025, 2, 28)),
    ],
)
def test_months_before(value, months, expected):
    assert months_before(value, months) == expected
