from datetime import date

import pytest

from app.services.dashboard_service import DashboardService, parse_active_filters
from app.dashboards.registry import DASHBOARDS
from app.utils.exceptions import NotFoundException, ValidationException
from tests.conftest import FakeDataSource

TODAY = date(2025, 6, 30)

REQUISITIONS = [
    {
        "requisition_order_number": "LUT-REQ-RTZ-100-01-25",
        "order_date": "2025-06-10",
        "due_date": "2025-06-20",
        "status": "Issued",
        "warehouse": "RTZ",
        "created_by": "Sam",
        "project_number": "P-1",
    },
    {
        "requisition_order_number": "REQ 2",
        "order_date": "2025-05-02",
        "due_date": None,
        "status": "Closed - Pick Complete",
        "warehouse": "RTZ",
        "created_by": "Alex",
        "project_number": "P-2",
    },
    {
        "requisition_order_number": "LUT-REQ-AMC-7-02-2025",
        "order_date": "2025-02-15",
        "due_date": "2025-03-01",
        "status": "In Progress",
        "warehouse": None,
        "created_by": "Sam",
        "project_number": "P-1",
    },
    {
        "requisition_order_number": "LUT-REQ-BC-9-12-2024",
        "order_date": "2024-12-01",
        "due_date": "2024-12-15",
        "status": "Issued",
        "warehouse": "AMC",
        "created_by": "Sam",
        "project_number": None,
    },
]


@pytest.fixture
def service() -> DashboardService:
    source = FakeDataSource(
        {
            "requisitions": [dict(row) for row in REQUISITIONS],
            "v_inventory_current": [
                {"item_number": 1, "total_available": 0, "warehouse": "RTZ", "category": "Bolts", "description": "M6"},
                {"item_number": 2, "total_available": 12, "warehouse": "AMC", "category": "Bolts", "description": None},
            ],
            "purchaseorders": [
                {"po_number": "PO-1", "order_date": "2025-06-01", "due_date": "2025-06-11", "status": "Open",
                 "warehouse": "RTZ", "vendor_name": "Acme", "grand_total": 100},
            ],
        }
    )
    return DashboardService(source, today=TODAY)


def by_key(items, key="key"):
    return {item[key]: item for item in items}


@pytest.mark.asyncio
async def test_render_requisitions(service):
    result = await service.render("requisitions", range_="3m")
    assert result["id"] == "requisitions"
    assert result["range"] == "3m"
    assert (result["fromDate"], result["toDate"]) == ("2025-03-30", "2025-06-30")

    tiles = by_key(result["tiles"])
    assert tiles["totalAllTime"]["value"] == 4
    assert tiles["issued"]["value"] == 2
    assert tiles["late"]["value"] == 3
    assert tiles["late"]["status"] == "danger"
    assert tiles["old_open_reqs"]["value"] == 1
    assert tiles["avgTimeToClose"]["value"] == 13
    assert tiles["avgTimeToClose"]["status"] == "warning"
    assert tiles["totalReqs"]["value"] == 2
    assert (tiles["totalReqs"]["trend"], tiles["totalReqs"]["direction"]) == ("100.0%", "up")

    table = result["table"]
    assert table["total"] == 2
    assert [row["requisition_order_number"] for row in table["rows"]] == ["LUT-REQ-RTZ-100-01-25", "REQ 2"]
    assert table["rows"][1]["issues"] == ["missing_due_date", "invalid_requisition_order_number"]
    assert table["columns"][0] == {"accessorKey": "requisition_order_number", "header": "Req Number"}

    widgets = by_key(result["widgets"])
    assert set(widgets) >= {"tiles", "trends", "requisition_trends", "data_quality_chart", "status_chart"}
    quality = by_key(widgets["data_quality_chart"]["data"])
    assert quality["missing_due_date"]["value"] == 1
    assert result["filters"] == {"available": ["status", "creator", "project", "issue"], "active": []}


@pytest.mark.asyncio
async def test_active_filters_narrow_widgets_and_table(service):
    result = await service.render(
        "requisitions", range_="12m", active_filters=[{"type": "creator", "value": "sam"}]
    )
    assert result["table"]["total"] == 3
    assert all(row["created_by"] == "Sam" for row in result["table"]["rows"])
    assert by_key(result["tiles"])["totalAllTime"]["value"] == 4
    assert result["filters"]["active"] == [{"type": "creator", "value": "sam"}]


@pytest.mark.asyncio
async def test_issue_filter(service):
    result = await service.render(
        "requisitions", range_="12m", active_filters=[{"type": "issue", "value": "missing_warehouse"}]
    )
    assert [row["requisition_order_number"] for row in result["table"]["rows"]] == ["LUT-REQ-AMC-7-02-2025"]


@pytest.mark.asyncio
async def test_table_pagination(service):
    result = await service.render("requisitions", range_="12m", page=2, page_size=3)
    assert result["table"]["total"] == 4
    assert result["table"]["page"] == 2
    assert len(result["table"]["rows"]) == 1


@pytest.mark.asyncio
async def test_inventory_has_no_date_filtering(service):
    result = await service.render("inventory")
    tiles = by_key(result["tiles"])
    assert tiles["totalItems"]["value"] == 2
    assert tiles["outOfStock"]["value"] == 1
    assert tiles["outOfStock"]["clickFilter"] == {"type": "issue", "value": "oos"}
    rows = by_key(result["table"]["rows"], "item_number")
    assert rows[1]["issues"] == ["oos", "missing_location", "missing_tally_card"]
    assert "missing_description" in rows[2]["issues"]


@pytest.mark.asyncio
async def test_purchase_orders_fetch_is_bounded_by_previous_window(service):
    result = await service.render("purchase-orders", range_="custom", from_="2025-06-01", to="2025-06-30")
    assert result["range"] == "custom"
    assert by_key(result["tiles"])["totalSpend"]["value"] == 100
    table, limit, filters = next(call[1] for call in service.source.calls if call[0] == "list_all")
    assert table == "purchaseorders"
    assert filters[0].column == "order_date"
    assert filters[0].op == "gte"
    assert filters[0].value == date(2025, 5, 2)


@pytest.mark.asyncio
async def test_unknown_dashboard(service):
    with pytest.raises(NotFoundException):
        await service.render("nope")


@pytest.mark.asyncio
async def test_invalid_custom_range(service):
    with pytest.raises(ValidationException):
        await service.render("requisitions", range_="custom", from_="2025-06-30", to="2025-06-01")


def test_parse_active_filters_keeps_configured_types():
    config = DASHBOARDS["requisitions"]
    params = [("status", "issued"), ("range", "3m"), ("issue", ""), ("creator", "sam")]
    assert parse_active_filters(params, config) == [
        {"type": "status", "value": "issued"},
        {"type": "creator", "value": "sam"},
    ]
