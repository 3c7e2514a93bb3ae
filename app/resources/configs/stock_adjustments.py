"""Stock adjustments: user-entered tally card counts."""

from app.resources.types import OwnershipScope, ResourceConfig, ResourceEntry, Row, SortSpec
from app.utils.coerce import to_bool, to_number


def from_input(payload: Row) -> Row:
    data: Row = {
        "updated_by_user_id": payload.get("user_id"),
        "tally_card_number": payload.get("tally_card_number"),
        "card_uid": payload.get("card_uid"),
        "qty": to_number(payload.get("qty")),
        "location": payload.get("location"),
        "note": payload.get("note"),
        "reason_code": payload.get("reason_code"),
        "multi_location": to_bool(payload.get("multi_location")) if "multi_location" in payload else None,
    }
    source_keys = {"updated_by_user_id": "user_id"}
    return {key: value for key, value in data.items() if source_keys.get(key, key) in payload}


config = ResourceConfig(
    table="tcm_user_tally_card_entries",
    select=(
        "id, updated_by_user_id, role_family, tally_card_number, card_uid, qty, location, "
        "note, reason_code, multi_location, updated_at"
    ),
    pk="id",
    default_sort=SortSpec("updated_at", desc=True),
    search=("tally_card_number", "location", "note"),
    from_input=from_input,
    ownership_scope=OwnershipScope(
        column="role_family",
        mode="role_family",
        bypass_permissions=("entries:read:any", "admin:read:any"),
    ),
)

entry = ResourceEntry(key="stock-adjustments", config=config, allow_raw=True)
