"""Parsing of list query strings (paging, search, sort and column filters)."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Union

from app.resources.types import ResourceConfig, SortSpec
from app.utils.coerce import to_bool, to_date, to_number
from app.utils.exceptions import ValidationException

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 500

# Impersonation target, read by the session dependency rather than as a filter
IMPERSONATE_PARAM = "impersonate"

RESERVED_PARAMS = frozenset({"page", "pageSize", "q", "activeOnly", "raw", "sort", IMPERSONATE_PARAM})

TEXT_MODES = {
    "contains": "contains",
    "equals": "eq",
    "starts_with": "starts_with",
    "ends_with": "ends_with",
    "not_contains": "not_contains",
}

# Longest suffixes first so "_gte" is not read as "_gt" + "e".
COMPARISON_SUFFIXES = (
    ("_gte", "gte"),
    ("_lte", "lte"),
    ("_neq", "neq"),
    ("_gt", "gt"),
    ("_lt", "lt"),
    ("_eq", "eq"),
    ("_in", "in"),
)

_STRUCTURED_FILTER = re.compile(r"^filters\[(.+?)\]\[(value|mode)\]$")
_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

QueryItems = Union[Mapping[str, Any], Iterable[tuple[str, Any]]]


@dataclass(frozen=True)
class FilterClause:
    column: str
    op: str
    value: Any


@dataclass
class ListQuery:
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    q: Optional[str] = None
    active_only: bool = False
    raw: bool = False
    sort: Optional[SortSpec] = None
    filters: list[FilterClause] = field(default_factory=list)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


def _items(params: QueryItems) -> list[tuple[str, Any]]:
    if hasattr(params, "multi_items"):
        return list(params.multi_items())
    if isinstance(params, Mapping):
        return list(params.items())
    return list(params)


def _parse_int(value: Any, default: int) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default


def parse_sort(value: Optional[str]) -> Optional[SortSpec]:
    """Accept ``column``, ``-column``, ``column.desc`` and ``column.asc``."""
    if not value or not value.strip():
        return None
    text = value.strip()
    desc = False
    if text.startswith("-"):
        desc, text = True, text[1:]
    elif text.endswith(".desc"):
        desc, text = True, text[: -len(".desc")]
    elif text.endswith(".asc"):
        text = text[: -len(".asc")]
    if not _IDENTIFIER.match(text):
        raise ValidationException(f"Invalid sort parameter: {value}")
    return SortSpec(column=text, desc=desc)


def _comparison_value(value: Any) -> Any:
    number = to_number(value)
    if number is not None:
        return number
    parsed = to_date(value)
    if parsed is not None and len(str(value).strip()) == 10:
        return parsed
    return value


def _split_suffix(key: str) -> tuple[str, Optional[str]]:
    for suffix, op in COMPARISON_SUFFIXES:
        if key.endswith(suffix) and len(key) > len(suffix):
            return key[: -len(suffix)], op
    return key, None


def _check_column(config: ResourceConfig, column: str) -> None:
    if not _IDENTIFIER.match(column) or not config.has_column(column):
        raise ValidationException(f"Unknown filter column: {column}")


def parse_list_query(params: QueryItems, config: ResourceConfig) -> ListQuery:
    items = _items(params)
    single = {key: value for key, value in items if key in RESERVED_PARAMS}

    page = max(1, _parse_int(single.get("page"), 1))
    page_size = _parse_int(single.get("pageSize"), DEFAULT_PAGE_SIZE)
    page_size = min(MAX_PAGE_SIZE, max(1, page_size))
    q = (single.get("q") or "").strip() or None

    query = ListQuery(
        page=page,
        page_size=page_size,
        q=q,
        active_only=to_bool(single.get("activeOnly")),
        raw=to_bool(single.get("raw")),
        sort=parse_sort(single.get("sort")),
    )
    if query.sort is not None and not config.has_column(query.sort.column):
        raise ValidationException(f"Unknown sort column: {query.sort.column}")

    structured: dict[str, dict[str, str]] = {}
    for key, value in items:
        if key in RESERVED_PARAMS:
            continue
        match = _STRUCTURED_FILTER.match(key)
        if match:
            structured.setdefault(match.group(1), {})[match.group(2)] = value
            continue

        column, op = _split_suffix(key)
        if op is not None and not config.has_column(key):
            _check_column(config, column)
            if op == "in":
                values = [part.strip() for part in str(value).split(",") if part.strip()]
                query.filters.append(FilterClause(column, "in", values))
            else:
                query.filters.append(FilterClause(column, op, _comparison_value(value)))
            continue

        _check_column(config, key)
        query.filters.append(FilterClause(key, "eq", value))

    for column, spec in structured.items():
        value = spec.get("value")
        if value is None or value == "":
            continue
        _check_column(config, column)
        mode = (spec.get("mode") or "contains").strip()
        if mode not in TEXT_MODES:
            raise ValidationException(f"Unknown filter mode: {mode}")
        query.filters.append(FilterClause(column, TEXT_MODES[mode], value))

    return query
