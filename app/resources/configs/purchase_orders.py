"""Purchase orders synced from the ERP."""

from app.resources.types import ResourceConfig, ResourceEntry, Row, SortSpec, WarehouseScope
from app.utils.coerce import to_number


def to_domain(row: Row) -> Row:
    return {
        "po_number": row.get("po_number") or "",
        "order_date": row.get("order_date"),
        "due_date": row.get("due_date"),
        "status": row.get("status") or "",
        "warehouse": row.get("warehouse"),
        "vendor_name": row.get("vendor_name"),
        "grand_total": to_number(row.get("grand_total")),
    }


config = ResourceConfig(
    table="purchaseorders",
    select="po_number, order_date, due_date, status, warehouse, vendor_name, grand_total",
    pk="po_number",
    default_sort=SortSpec("order_date", desc=True),
    search=("po_number", "vendor_name", "status"),
    to_domain=to_domain,
    warehouse_scope=WarehouseScope(column="warehouse", match="code"),
    read_only=True,
)

entry = ResourceEntry(key="purchase-orders", config=config)
