"""Data-quality rules evaluated per row."""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Iterable, Optional, Sequence

from app.utils.coerce import is_empty, to_date, to_number
from app.utils.exceptions import InvalidConfigException

ISSUE_TYPES = frozenset(
    {
        "is_null",
        "is_not_null",
        "regex",
        "equals",
        "not_equals",
        "gt",
        "lt",
        "gte",
        "lte",
        "in",
        "not_in",
        "contains",
        "not_contains",
    }
)


@dataclass(frozen=True)
class IssueRule:
    key: str
    label: str
    column: str
    type: str
    value: Any = None
    pattern: Optional[str] = None
    rules_key: str = "default"


@lru_cache(maxsize=128)
def _compiled(pattern: str) -> re.Pattern:
    return re.compile(pattern)


def validate_rule(rule: IssueRule) -> None:
    if rule.type not in ISSUE_TYPES:
        raise InvalidConfigException(f"Unknown issue rule type '{rule.type}' for rule '{rule.key}'")
    if rule.type == "regex":
        if not rule.pattern:
            raise InvalidConfigException(f"Regex rule '{rule.key}' has no pattern")
        try:
            _compiled(rule.pattern)
        except re.error as exc:
            raise InvalidConfigException(f"Regex rule '{rule.key}' has an invalid pattern: {exc}") from exc
    if rule.type in ("in", "not_in") and not isinstance(rule.value, (list, tuple, set, frozenset)):
        raise InvalidConfigException(f"Rule '{rule.key}' needs a list value")


def _same(actual: Any, expected: Any) -> bool:
    actual_number, expected_number = to_number(actual), to_number(expected)
    if actual_number is not None and expected_number is not None:
        return actual_number == expected_number
    if actual is None or expected is None:
        return actual is expected
    return str(actual) == str(expected)


def _ordered(actual: Any, expected: Any) -> tuple[Any, Any]:
    actual_number, expected_number = to_number(actual), to_number(expected)
    if actual_number is not None and expected_number is not None:
        return actual_number, expected_number
    actual_date, expected_date = to_date(actual), to_date(expected)
    if actual_date is not None and expected_date is not None:
        return actual_date, expected_date
    return str(actual), str(expected)


def _text(value: Any) -> str:
    return "" if value is None else str(value).lower()


def is_violated(row: dict[str, Any], rule: IssueRule) -> bool:
    """True when ``row`` breaks ``rule``.

    ``is_null`` / ``is_not_null`` name the defect: an empty value and a
    populated value respectively. Every other type names the expected
    condition and is violated when it does not hold.
    """
    value = row.get(rule.column)
    kind = rule.type

    if kind == "is_null":
        return is_empty(value)
    if kind == "is_not_null":
        return not is_empty(value)
    if kind == "regex":
        return not is_empty(value) and _compiled(rule.pattern or "").search(str(value)) is None
    if kind == "equals":
        return not _same(value, rule.value)
    if kind == "not_equals":
        return _same(value, rule.value)
    if kind in ("gt", "lt", "gte", "lte"):
        if is_empty(value):
            return False
        actual, expected = _ordered(value, rule.value)
        try:
            if kind == "gt":
                holds = actual > expected
            elif kind == "lt":
                holds = actual < expected
            elif kind == "gte":
                holds = actual >= expected
            else:
                holds = actual <= expected
        except TypeError:
            holds = False
        return not holds
    if kind == "in":
        return not any(_same(value, option) for option in rule.value or ())
    if kind == "not_in":
        return any(_same(value, option) for option in rule.value or ())
    if kind == "contains":
        return _text(rule.value) not in _text(value)
    if kind == "not_contains":
        return _text(rule.value) in _text(value)
    raise InvalidConfigException(f"Unknown issue rule type '{kind}' for rule '{rule.key}'")


def get_issues(row: dict[str, Any], rules: Sequence[IssueRule]) -> list[str]:
    """Keys of the rules ``row`` violates, in rule order."""
    return [rule.key for rule in rules if is_violated(row, rule)]


def rules_for(rules: Iterable[IssueRule], rules_key: Optional[str]) -> list[IssueRule]:
    if not rules_key:
        return list(rules)
    return [rule for rule in rules if rule.rules_key == rules_key]
