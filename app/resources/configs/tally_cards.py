"""Tally cards: one card per item and warehouse, versioned by the database."""

from app.resources.types import ResourceConfig, ResourceEntry, Row, SortSpec, WarehouseScope
from app.utils.coerce import to_bool, to_number


def to_domain(row: Row) -> Row:
    return {
        "id": row.get("id"),
        "card_uid": row.get("card_uid"),
        "tally_card_number": row.get("tally_card_number"),
        "warehouse_id": row.get("warehouse_id"),
        "item_number": to_number(row.get("item_number")),
        "note": row.get("note"),
        "is_active": to_bool(row.get("is_active")),
        "snapshot_at": row.get("snapshot_at"),
        "updated_at": row.get("updated_at"),
    }


def from_input(payload: Row) -> Row:
    data: Row = {
        "tally_card_number": payload.get("tally_card_number"),
        "warehouse_id": payload.get("warehouse_id"),
        "item_number": to_number(payload.get("item_number")),
        "note": payload.get("note"),
        "is_active": to_bool(payload.get("is_active")),
    }
    return {key: value for key, value in data.items() if key in payload}


def to_row(card: Row) -> Row:
    """Flatten a card for list tables."""
    return {
        "id": card["id"],
        "tally_card_number": card["tally_card_number"],
        "warehouse_id": card["warehouse_id"],
        "item_number": card["item_number"],
        "note": card["note"],
        "status": "Active" if card["is_active"] else "Inactive",
        "is_active": card["is_active"],
        "updated_at": card["updated_at"],
    }


config = ResourceConfig(
    table="tcm_tally_cards",
    select="id, card_uid, tally_card_number, warehouse_id, item_number, note, is_active, snapshot_at, updated_at",
    pk="id",
    default_sort=SortSpec("tally_card_number"),
    search=("tally_card_number", "note"),
    active_flag="is_active",
    to_domain=to_domain,
    from_input=from_input,
    warehouse_scope=WarehouseScope(column="warehouse_id"),
)

entry = ResourceEntry(key="tally-cards", config=config, to_row=to_row, allow_raw=True)
