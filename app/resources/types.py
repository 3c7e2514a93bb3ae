"""Resource configuration types.

A resource config describes how the generic CRUD layer reads and writes one
table or view of the hosted database: what to select, how to sort and search,
and how rows are mapped to and from the domain shape.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Literal, Optional

Row = dict[str, Any]

RelationKind = Literal["many_to_one", "one_to_many", "many_to_many"]


@dataclass(frozen=True)
class SortSpec:
    column: str
    desc: bool = False


@dataclass(frozen=True)
class RelationSpec:
    """Post-fetch hydration of related rows, executed in batches per page."""

    kind: RelationKind
    name: str
    target_table: str
    target_select: str
    # many_to_one: column on this table holding the target id
    local_key: Optional[str] = None
    # one_to_many: column on the target table referencing this pk
    foreign_key: Optional[str] = None
    # many_to_many: junction table and its two key columns
    via_table: Optional[str] = None
    this_key: Optional[str] = None
    that_key: Optional[str] = None
    resolve_as: Literal["objects", "ids"] = "objects"
    on_empty_policy: Optional[Literal["ALL", "NONE"]] = None
    order_by: Optional[SortSpec] = None
    limit: Optional[int] = None
    include_by_default: bool = True


@dataclass(frozen=True)
class WarehouseScope:
    """Restrict rows to the caller's allowed warehouses."""

    column: str
    # "id" compares against warehouse ids, "code" against warehouse codes
    match: Literal["id", "code"] = "id"


@dataclass(frozen=True)
class OwnershipScope:
    """Restrict rows to the caller unless they hold a bypass permission."""

    column: str
    mode: Literal["self", "role_family"] = "self"
    bypass_permissions: tuple[str, ...] = ()


@dataclass(frozen=True)
class ResourceConfig:
    table: str
    select: str
    pk: str = "id"
    default_sort: Optional[SortSpec] = None
    search: tuple[str, ...] = ()
    active_flag: Optional[str] = None
    to_domain: Optional[Callable[[Row], Row]] = None
    from_input: Optional[Callable[[Row], Row]] = None
    relations: tuple[RelationSpec, ...] = ()
    warehouse_scope: Optional[WarehouseScope] = None
    ownership_scope: Optional[OwnershipScope] = None
    read_only: bool = False

    @property
    def columns(self) -> list[str]:
        """Projected column names; empty when the projection is ``*``."""
        parts = [part.strip() for part in (self.select or "").split(",")]
        return [part for part in parts if part and part != "*"]

    @property
    def selects_all(self) -> bool:
        return (self.select or "").strip() == "*"

    def has_column(self, name: str) -> bool:
        return self.selects_all or name in self.columns or name == self.pk


@dataclass(frozen=True)
class ResourceEntry:
    key: str
    config: ResourceConfig
    to_row: Optional[Callable[[Row], Row]] = None
    allow_raw: bool = False


@dataclass
class ListResult:
    rows: list[Row] = field(default_factory=list)
    total: int = 0
