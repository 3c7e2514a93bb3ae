"""Roles and their warehouse assignments."""

from app.resources.types import RelationSpec, ResourceConfig, ResourceEntry, Row, SortSpec
from app.utils.coerce import to_bool


def to_domain(row: Row) -> Row:
    domain = {
        "id": row.get("id"),
        "role_code": row.get("role_code"),
        "role_name": row.get("role_name"),
        "description": row.get("description"),
        "is_active": to_bool(row.get("is_active")),
        "can_manage_roles": to_bool(row.get("can_manage_roles")),
        "can_manage_cards": to_bool(row.get("can_manage_cards")),
        "can_manage_entries": to_bool(row.get("can_manage_entries")),
    }
    for key in ("warehouses", "warehouses_scope"):
        if key in row:
            domain[key] = row[key]
    return domain


BOOL_FIELDS = ("is_active", "can_manage_roles", "can_manage_cards", "can_manage_entries")
TEXT_FIELDS = ("role_code", "role_name", "description")


def from_input(payload: Row) -> Row:
    data: Row = {key: payload[key] for key in TEXT_FIELDS if key in payload}
    data.update({key: to_bool(payload[key]) for key in BOOL_FIELDS if key in payload})
    if isinstance(data.get("role_code"), str):
        data["role_code"] = data["role_code"].strip().upper()
    return data


def to_row(role: Row) -> Row:
    warehouses = role.get("warehouses") or []
    return {
        **role,
        "warehouses": warehouses,
        "has_warehouse_restrictions": role.get("warehouses_scope") == "RESTRICTED",
    }


config = ResourceConfig(
    table="roles",
    select="id, role_code, role_name, description, is_active, can_manage_roles, can_manage_cards, can_manage_entries",
    pk="id",
    default_sort=SortSpec("role_code"),
    search=("role_code", "role_name", "description"),
    active_flag="is_active",
    to_domain=to_domain,
    from_input=from_input,
    relations=(
        RelationSpec(
            kind="many_to_many",
            name="warehouses",
            target_table="warehouses",
            target_select="id, code, name",
            via_table="role_warehouse_rules",
            this_key="role_id",
            that_key="warehouse_id",
            resolve_as="ids",
            on_empty_policy="ALL",
        ),
    ),
)

entry = ResourceEntry(key="roles", config=config, to_row=to_row, allow_raw=True)
