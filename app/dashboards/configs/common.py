"""Conditions and widgets shared by the order dashboards."""

from typing import Any

from app.dashboards.filters import TODAY
from app.dashboards.types import Toggle, ToggleField

OPEN_STATUS = {
    "and": [
        {"column": "status", "not_contains": "complete"},
        {"column": "status", "not_contains": "cancel"},
    ]
}


def missing(column: str) -> dict[str, Any]:
    return {"or": [{"column": column, "is_null": True}, {"column": column, "equals": ""}]}


PAST_DUE = {
    "and": [
        {"column": "due_date", "lt": TODAY},
        {"column": "due_date", "is_not_null": True},
        {"column": "status", "is_not_null": True},
        OPEN_STATUS,
    ]
}


TIMELINE_TOGGLES = (
    Toggle(
        key="created_vs_due",
        title="Created vs Due",
        fields=(
            ToggleField(key="created", label="Created", type="created", color="var(--chart-1)"),
            ToggleField(key="due", label="Due", type="due", color="var(--chart-2)"),
        ),
    ),
    Toggle(
        key="lateness_breakdown",
        title="Lateness",
        description="Tracks how overdue items are, grouped by when they were due",
        fields=(
            ToggleField(key="late_1_7", label="1-7 days late", type="lateness", band="1-7", color="var(--chart-1)"),
            ToggleField(key="late_8_30", label="8-30 days late", type="lateness", band="8-30", color="var(--chart-2)"),
            ToggleField(key="late_30_plus", label="30+ days late", type="lateness", band="30+", color="var(--chart-3)"),
        ),
    ),
)
