from __future__ import annotations

from datetime import date
from typing import Any, Optional, Sequence

import pytest

from app.resources.types import ListResult, ResourceConfig, Row
from app.schemas.auth import SessionContext
from app.utils.list_params import FilterClause, ListQuery


class FakeDataSource:
    """In-memory stand-in for ResourceRepository keyed by table name."""

    def __init__(self, tables: Optional[dict[str, list[Row]]] = None):
        self.tables = tables or {}
        self.calls: list[tuple[str, Any]] = []
        self.rpc_result: list[Row] = []
        self.rpc_error: Optional[Exception] = None

    async def list(self, config: ResourceConfig, query: ListQuery) -> ListResult:
        self.calls.append(("list", query))
        rows = list(self.tables.get(config.table, []))
        start = query.offset
        return ListResult(rows=rows[start : start + query.page_size], total=len(rows))

    async def list_all(self, config: ResourceConfig, limit: int, filters: Sequence[FilterClause] = ()) -> list[Row]:
        self.calls.append(("list_all", (config.table, limit, list(filters))))
        return [dict(row) for row in self.tables.get(config.table, [])][:limit]

    async def get(self, config: ResourceConfig, record_id: str) -> Optional[Row]:
        self.calls.append(("get", record_id))
        for row in self.tables.get(config.table, []):
            if str(row.get(config.pk)) == str(record_id):
                return dict(row)
        return None

    async def create(self, config: ResourceConfig, payload: Row) -> Any:
        self.calls.append(("create", payload))
        row = {config.pk: f"new-{len(self.tables.get(config.table, [])) + 1}", **payload}
        self.tables.setdefault(config.table, []).append(row)
        return row[config.pk]

    async def update(self, config: ResourceConfig, record_id: str, payload: Row) -> bool:
        self.calls.append(("update", (record_id, payload)))
        for row in self.tables.get(config.table, []):
            if str(row.get(config.pk)) == str(record_id):
                row.update(payload)
                return True
        return False

    async def remove(self, config: ResourceConfig, ids: Sequence[str]) -> list[str]:
        self.calls.append(("remove", list(ids)))
        rows = self.tables.get(config.table, [])
        removed = [str(row[config.pk]) for row in rows if str(row[config.pk]) in ids]
        self.tables[config.table] = [row for row in rows if str(row[config.pk]) not in ids]
        return removed

    async def soft_delete(self, config: ResourceConfig, ids: Sequence[str]) -> list[str]:
        self.calls.append(("soft_delete", list(ids)))
        deactivated = []
        for row in self.tables.get(config.table, []):
            if str(row[config.pk]) in ids:
                row[config.active_flag] = False
                deactivated.append(str(row[config.pk]))
        return deactivated

    async def call_rpc(self, function_name: str, params: Row) -> list[Row]:
        self.calls.append(("call_rpc", (function_name, params)))
        if self.rpc_error is not None:
            raise self.rpc_error
        return self.rpc_result


@pytest.fixture
def fake_source() -> FakeDataSource:
    return FakeDataSource()


@pytest.fixture
def today() -> date:
    return date(2025, 6, 30)


@pytest.fixture
def admin_context() -> SessionContext:
    return SessionContext(
        auth_user_id="7d3f0c1e-0000-4000-8000-000000000001",
        app_user_id="11111111-1111-4111-8111-111111111111",
        full_name="Ada Admin",
        email="ada@example.com",
        role_code="ADMINISTRATOR",
        role_name="Administrator",
        permissions=["admin:impersonate", "admin:read:any"],
        can_see_all_warehouses=True,
    )


@pytest.fixture
def operator_context() -> SessionContext:
    return SessionContext(
        auth_user_id="7d3f0c1e-0000-4000-8000-000000000002",
        app_user_id="22222222-2222-4222-8222-222222222222",
        full_name="Olly Operator",
        email="olly@example.com",
        role_code="OPERATOR",
        role_name="Operator",
        role_family="STORES",
        permissions=["entries:create"],
        allowed_warehouse_codes=["RTZ"],
        allowed_warehouse_ids=["aaaaaaaa-aaaa-4aaa-8aaa-aaaaaaaaaaaa"],
    )
