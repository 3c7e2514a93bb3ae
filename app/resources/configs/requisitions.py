"""Requisition orders synced from the ERP."""

from app.resources.types import ResourceConfig, ResourceEntry, Row, SortSpec, WarehouseScope


def to_domain(row: Row) -> Row:
    return {
        "requisition_order_number": row.get("requisition_order_number") or "",
        "order_date": row.get("order_date"),
        "due_date": row.get("due_date"),
        "status": row.get("status") or "",
        "warehouse": row.get("warehouse"),
        "created_by": row.get("created_by"),
        "project_number": row.get("project_number"),
    }


config = ResourceConfig(
    table="requisitions",
    select="requisition_order_number, order_date, due_date, status, warehouse, created_by, project_number",
    pk="requisition_order_number",
    default_sort=SortSpec("order_date", desc=True),
    search=("requisition_order_number", "project_number", "created_by"),
    to_domain=to_domain,
    warehouse_scope=WarehouseScope(column="warehouse", match="code"),
    read_only=True,
)

entry = ResourceEntry(key="requisitions", config=config)
