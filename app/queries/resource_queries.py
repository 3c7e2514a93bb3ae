"""Query layer for config-driven resources - builds and runs SQL statements."""

from __future__ import annotations

import re
from datetime import date
from typing import Any, Iterable, Optional, Sequence

from sqlalchemy import Date, String, and_, cast, column, delete, func, insert, literal_column, or_, select, table, text, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement, Select, TableClause

from app.resources.types import RelationSpec, ResourceConfig, Row, SortSpec
from app.schemas.auth import SessionContext
from app.utils.list_params import FilterClause, ListQuery

NO_ALLOWED_WAREHOUSES = "__NO_ALLOWED_WAREHOUSES__"
NO_ROLE_FAMILY = "__NO_ROLE_FAMILY__"

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _table(name: str, columns: Iterable[str] = ()) -> TableClause:
    return table(name, *[column(name_) for name_ in dict.fromkeys(columns)])


def _col(tbl: TableClause, name: str) -> ColumnElement:
    return tbl.c[name] if name in tbl.c else column(name)


def _as_text(col: ColumnElement) -> ColumnElement:
    return cast(col, String)


def _comparison(col: ColumnElement, op: str, value: Any) -> ColumnElement:
    if isinstance(value, date):
        col = cast(col, Date)
    elif isinstance(value, str):
        col = _as_text(col)
    if op == "gt":
        return col > value
    if op == "gte":
        return col >= value
    if op == "lt":
        return col < value
    return col <= value


class ResourceQueries:
    """Statement builders and executors for resource tables and views."""

    @staticmethod
    def source(config: ResourceConfig) -> TableClause:
        return _table(config.table, [*config.columns, config.pk])

    @staticmethod
    def filter_condition(tbl: TableClause, clause: FilterClause) -> ColumnElement:
        col = _col(tbl, clause.column)
        value = clause.value
        if clause.op == "eq":
            return _as_text(col) == str(value)
        if clause.op == "neq":
            return _as_text(col) != str(value)
        if clause.op in ("gt", "gte", "lt", "lte"):
            return _comparison(col, clause.op, value)
        if clause.op == "in":
            return _as_text(col).in_([str(item) for item in value])
        if clause.op == "contains":
            return _as_text(col).icontains(str(value), autoescape=True)
        if clause.op == "not_contains":
            return ~_as_text(col).icontains(str(value), autoescape=True)
        if clause.op == "starts_with":
            return _as_text(col).istartswith(str(value), autoescape=True)
        if clause.op == "ends_with":
            return _as_text(col).iendswith(str(value), autoescape=True)
        raise ValueError(f"Unsupported filter operator: {clause.op}")

    @staticmethod
    def scope_conditions(
        tbl: TableClause, config: ResourceConfig, session: Optional[SessionContext]
    ) -> list[ColumnElement]:
        """Warehouse and ownership restrictions for the effective caller."""
        if session is None:
            return []
        conditions: list[ColumnElement] = []

        warehouse_scope = config.warehouse_scope
        if warehouse_scope is not None and not session.can_see_all_warehouses:
            if warehouse_scope.match == "id":
                allowed = list(session.allowed_warehouse_ids)
            else:
                allowed = list(session.allowed_warehouse_codes)
            conditions.append(_as_text(_col(tbl, warehouse_scope.column)).in_(allowed or [NO_ALLOWED_WAREHOUSES]))

        ownership = config.ownership_scope
        if ownership is not None and not any(session.has_permission(key) for key in ownership.bypass_permissions):
            if ownership.mode == "role_family":
                owner = session.role_family or NO_ROLE_FAMILY
            else:
                owner = session.app_user_id
            conditions.append(_as_text(_col(tbl, ownership.column)) == str(owner))

        return conditions

    @staticmethod
    def list_conditions(
        tbl: TableClause, config: ResourceConfig, query: ListQuery, session: Optional[SessionContext]
    ) -> list[ColumnElement]:
        conditions = ResourceQueries.scope_conditions(tbl, config, session)
        if query.q and config.search:
            conditions.append(
                or_(*[_as_text(_col(tbl, name)).icontains(query.q, autoescape=True) for name in config.search])
            )
        if query.active_only and config.active_flag:
            conditions.append(_col(tbl, config.active_flag).is_(True))
        conditions.extend(ResourceQueries.filter_condition(tbl, clause) for clause in query.filters)
        return conditions

    @staticmethod
    def _projection(tbl: TableClause, config: ResourceConfig) -> list[ColumnElement]:
        if config.selects_all:
            return [literal_column("*")]
        return [tbl.c[name] for name in config.columns]

    @staticmethod
    def build_list_statement(
        config: ResourceConfig, query: ListQuery, session: Optional[SessionContext] = None
    ) -> Select:
        tbl = ResourceQueries.source(config)
        stmt = select(*ResourceQueries._projection(tbl, config)).select_from(tbl)
        conditions = ResourceQueries.list_conditions(tbl, config, query, session)
        if conditions:
            stmt = stmt.where(and_(*conditions))
        sort: Optional[SortSpec] = query.sort or config.default_sort
        if sort is not None:
            sort_col = _col(tbl, sort.column)
            stmt = stmt.order_by(sort_col.desc() if sort.desc else sort_col.asc())
        return stmt.offset(query.offset).limit(query.page_size)

    @staticmethod
    def build_count_statement(
        config: ResourceConfig, query: ListQuery, session: Optional[SessionContext] = None
    ) -> Select:
        tbl = ResourceQueries.source(config)
        stmt = select(func.count()).select_from(tbl)
        conditions = ResourceQueries.list_conditions(tbl, config, query, session)
        if conditions:
            stmt = stmt.where(and_(*conditions))
        return stmt

    @staticmethod
    def build_get_statement(config: ResourceConfig, record_id: str, session: Optional[SessionContext] = None) -> Select:
        tbl = ResourceQueries.source(config)
        conditions = [_as_text(tbl.c[config.pk]) == str(record_id)]
        conditions.extend(ResourceQueries.scope_conditions(tbl, config, session))
        return select(*ResourceQueries._projection(tbl, config)).select_from(tbl).where(and_(*conditions)).limit(1)

    @staticmethod
    def build_insert_statement(config: ResourceConfig, payload: Row):
        tbl = _table(config.table, [*payload.keys(), config.pk])
        return insert(tbl).values(**payload).returning(tbl.c[config.pk])

    @staticmethod
    def build_update_statement(config: ResourceConfig, ids: Sequence[str], values: Row):
        tbl = _table(config.table, [*values.keys(), config.pk])
        pk_text = _as_text(tbl.c[config.pk])
        condition = pk_text == str(ids[0]) if len(ids) == 1 else pk_text.in_([str(item) for item in ids])
        return update(tbl).where(condition).values(**values).returning(tbl.c[config.pk])

    @staticmethod
    def build_soft_delete_statement(config: ResourceConfig, ids: Sequence[str]):
        values: dict[str, Any] = {config.active_flag: False}
        if config.has_column("updated_at") and not config.selects_all:
            values["updated_at"] = func.now()
        return ResourceQueries.build_update_statement(config, ids, values)

    @staticmethod
    def build_delete_statement(config: ResourceConfig, ids: Sequence[str]):
        tbl = _table(config.table, [config.pk])
        pk_text = _as_text(tbl.c[config.pk])
        condition = pk_text == str(ids[0]) if len(ids) == 1 else pk_text.in_([str(item) for item in ids])
        return delete(tbl).where(condition).returning(tbl.c[config.pk])

    @staticmethod
    def build_relation_statement(relation: RelationSpec, key_column: str, keys: Sequence[Any]) -> Select:
        columns = [part.strip() for part in relation.target_select.split(",") if part.strip()]
        tbl = _table(relation.target_table, [*columns, key_column])
        return select(*[tbl.c[name] for name in columns]).where(_as_text(tbl.c[key_column]).in_([str(k) for k in keys]))

    @staticmethod
    def build_junction_statement(relation: RelationSpec, keys: Sequence[Any]) -> Select:
        tbl = _table(relation.via_table, [relation.this_key, relation.that_key])
        return select(tbl.c[relation.this_key], tbl.c[relation.that_key]).where(
            _as_text(tbl.c[relation.this_key]).in_([str(k) for k in keys])
        )

    @staticmethod
    def build_rpc_statement(function_name: str, params: Row):
        """``SELECT * FROM fn(p_a => :p_a, ...)`` with named arguments."""
        if not _IDENTIFIER.match(function_name):
            raise ValueError(f"Invalid function name: {function_name}")
        for name in params:
            if not _IDENTIFIER.match(name):
                raise ValueError(f"Invalid parameter name: {name}")
        arguments = ", ".join(f"{name} => :{name}" for name in params)
        return text(f"SELECT * FROM {function_name}({arguments})").bindparams(**params)

    # Executors

    @staticmethod
    async def fetch_rows(db: AsyncSession, stmt) -> list[Row]:
        result = await db.execute(stmt)
        return [dict(row) for row in result.mappings().all()]

    @staticmethod
    async def fetch_scalar(db: AsyncSession, stmt) -> Any:
        result = await db.execute(stmt)
        return result.scalar_one()

    @staticmethod
    async def execute_write(db: AsyncSession, stmt) -> list[Any]:
        """Run a write statement, commit, and return the affected primary keys."""
        result = await db.execute(stmt)
        keys = list(result.scalars().all())
        await db.commit()
        return keys
