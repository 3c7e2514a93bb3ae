"""Warehouse locations (bins, rows, zones) inside a warehouse."""

from app.resources.types import RelationSpec, ResourceConfig, ResourceEntry, Row, SortSpec, WarehouseScope
from app.utils.coerce import to_bool


def from_input(payload: Row) -> Row:
    data: Row = {}
    if "warehouse_id" in payload:
        data["warehouse_id"] = payload["warehouse_id"]
    if "name" in payload:
        data["name"] = str(payload["name"] or "").strip()
    if "is_active" in payload:
        data["is_active"] = to_bool(payload["is_active"])
    return data


def to_row(location: Row) -> Row:
    warehouse = location.get("warehouse") or {}
    return {
        "id": location.get("id"),
        "name": location.get("name"),
        "warehouse_id": location.get("warehouse_id"),
        "warehouse_code": warehouse.get("code"),
        "warehouse_name": warehouse.get("name"),
        "is_active": to_bool(location.get("is_active")),
        "updated_at": location.get("updated_at"),
    }


config = ResourceConfig(
    table="warehouse_locations",
    select="id, warehouse_id, name, is_active, created_at, updated_at",
    pk="id",
    default_sort=SortSpec("name"),
    search=("name",),
    active_flag="is_active",
    from_input=from_input,
    relations=(
        RelationSpec(
            kind="many_to_one",
            name="warehouse",
            target_table="warehouses",
            target_select="id, code, name",
            local_key="warehouse_id",
        ),
    ),
    warehouse_scope=WarehouseScope(column="warehouse_id"),
)

entry = ResourceEntry(key="warehouse-locations", config=config, to_row=to_row)
