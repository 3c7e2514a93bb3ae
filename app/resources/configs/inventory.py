"""Current inventory snapshot (read-only view)."""

from app.resources.types import ResourceConfig, ResourceEntry, Row, SortSpec, WarehouseScope
from app.utils.coerce import to_number

NUMERIC_COLUMNS = (
    "item_number",
    "total_available",
    "total_in_house",
    "total_checked_out",
    "on_order",
    "committed",
    "item_cost",
    "item_list_price",
)


def to_domain(row: Row) -> Row:
    domain = dict(row)
    for column in NUMERIC_COLUMNS:
        if column in domain:
            domain[column] = to_number(domain[column])
    return domain


config = ResourceConfig(
    table="v_inventory_current",
    select=(
        "item_number, warehouse, location, type, description, unit_of_measure, category, "
        "total_available, total_in_house, total_checked_out, on_order, committed, item_cost, "
        "item_list_price, tally_card_number, snapshot_date"
    ),
    pk="item_number",
    default_sort=SortSpec("item_number"),
    search=("description", "warehouse", "category", "tally_card_number"),
    to_domain=to_domain,
    warehouse_scope=WarehouseScope(column="warehouse", match="code"),
    read_only=True,
)

entry = ResourceEntry(key="inventory-current", config=config, allow_raw=True)
