"""Repository layer for config-driven resources - abstracts data access."""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.queries.resource_queries import ResourceQueries
from app.resources.types import ListResult, RelationSpec, ResourceConfig, Row
from app.schemas.auth import SessionContext
from app.utils.exceptions import classify_database_error
from app.utils.list_params import FilterClause, ListQuery

logger = logging.getLogger(__name__)


class ResourceDataSource(Protocol):
    """Operations the resource service needs from storage."""

    async def list(self, config: ResourceConfig, query: ListQuery) -> ListResult: ...

    async def list_all(
        self, config: ResourceConfig, limit: int, filters: Sequence[FilterClause] = ()
    ) -> list[Row]: ...

    async def get(self, config: ResourceConfig, record_id: str) -> Optional[Row]: ...

    async def create(self, config: ResourceConfig, payload: Row) -> Any: ...

    async def update(self, config: ResourceConfig, record_id: str, payload: Row) -> bool: ...

    async def remove(self, config: ResourceConfig, ids: Sequence[str]) -> list[str]: ...

    async def soft_delete(self, config: ResourceConfig, ids: Sequence[str]) -> list[str]: ...

    async def call_rpc(self, function_name: str, params: Row) -> list[Row]: ...


class ResourceRepository:
    """Repository for reads, writes and RPC calls against resource tables."""

    def __init__(self, db: AsyncSession, session: Optional[SessionContext] = None):
        """Initialize repository with database session and the caller used for scoping."""
        self.db = db
        self.session = session

    async def _run(self, operation, table: Optional[str]):
        try:
            return await operation()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.warning(
                "Database error",
                extra={"db.table": table, "error": str(getattr(exc, "orig", exc))},
            )
            raise classify_database_error(exc, table=table) from exc

    def _map(self, config: ResourceConfig, rows: list[Row]) -> list[Row]:
        if config.to_domain is None:
            return rows
        return [config.to_domain(row) for row in rows]

    async def list(self, config: ResourceConfig, query: ListQuery) -> ListResult:
        async def operation() -> ListResult:
            rows = await ResourceQueries.fetch_rows(
                self.db, ResourceQueries.build_list_statement(config, query, self.session)
            )
            total = await ResourceQueries.fetch_scalar(
                self.db, ResourceQueries.build_count_statement(config, query, self.session)
            )
            domain = await self.hydrate(config, self._map(config, rows))
            return ListResult(rows=domain, total=int(total or 0))

        return await self._run(operation, config.table)

    async def list_all(
        self, config: ResourceConfig, limit: int, filters: Sequence[FilterClause] = ()
    ) -> list[Row]:
        """Rows for dashboards: default sort, no paging beyond ``limit``."""
        return (await self.list(config, ListQuery(page=1, page_size=limit, filters=list(filters)))).rows

    async def get(self, config: ResourceConfig, record_id: str) -> Optional[Row]:
        async def operation() -> Optional[Row]:
            rows = await ResourceQueries.fetch_rows(
                self.db, ResourceQueries.build_get_statement(config, record_id, self.session)
            )
            if not rows:
                return None
            hydrated = await self.hydrate(config, self._map(config, rows))
            return hydrated[0]

        return await self._run(operation, config.table)

    async def create(self, config: ResourceConfig, payload: Row) -> Any:
        async def operation() -> Any:
            keys = await ResourceQueries.execute_write(self.db, ResourceQueries.build_insert_statement(config, payload))
            return keys[0] if keys else None

        return await self._run(operation, config.table)

    async def update(self, config: ResourceConfig, record_id: str, payload: Row) -> bool:
        async def operation() -> bool:
            keys = await ResourceQueries.execute_write(
                self.db, ResourceQueries.build_update_statement(config, [record_id], payload)
            )
            return bool(keys)

        return await self._run(operation, config.table)

    async def remove(self, config: ResourceConfig, ids: Sequence[str]) -> list[str]:
        async def operation() -> list[str]:
            keys = await ResourceQueries.execute_write(self.db, ResourceQueries.build_delete_statement(config, ids))
            return [str(key) for key in keys]

        return await self._run(operation, config.table)

    async def soft_delete(self, config: ResourceConfig, ids: Sequence[str]) -> list[str]:
        async def operation() -> list[str]:
            keys = await ResourceQueries.execute_write(
                self.db, ResourceQueries.build_soft_delete_statement(config, ids)
            )
            return [str(key) for key in keys]

        return await self._run(operation, config.table)

    async def call_rpc(self, function_name: str, params: Row) -> list[Row]:
        async def operation() -> list[Row]:
            rows = await ResourceQueries.fetch_rows(self.db, ResourceQueries.build_rpc_statement(function_name, params))
            await self.db.commit()
            return rows

        return await self._run(operation, function_name)

    # Relation hydration

    async def hydrate(self, config: ResourceConfig, rows: list[Row]) -> list[Row]:
        relations = [relation for relation in config.relations if relation.include_by_default]
        if not rows or not relations:
            return rows
        for relation in relations:
            if relation.kind == "many_to_many":
                await self._hydrate_many_to_many(config, relation, rows)
            elif relation.kind == "one_to_many":
                await self._hydrate_one_to_many(config, relation, rows)
            else:
                await self._hydrate_many_to_one(relation, rows)
        return rows

    async def _hydrate_many_to_many(self, config: ResourceConfig, relation: RelationSpec, rows: list[Row]) -> None:
        ids = [row.get(config.pk) for row in rows]
        junction = await ResourceQueries.fetch_rows(self.db, ResourceQueries.build_junction_statement(relation, ids))
        targets_by_parent: dict[str, list[Any]] = {}
        for link in junction:
            targets_by_parent.setdefault(str(link[relation.this_key]), []).append(link[relation.that_key])

        target_by_id: dict[str, Row] = {}
        if relation.resolve_as != "ids" and junction:
            target_ids = list(dict.fromkeys(link[relation.that_key] for link in junction))
            targets = await ResourceQueries.fetch_rows(
                self.db, ResourceQueries.build_relation_statement(relation, "id", target_ids)
            )
            target_by_id = {str(target["id"]): target for target in targets}

        for row in rows:
            mine = targets_by_parent.get(str(row.get(config.pk)), [])
            if relation.resolve_as == "ids":
                row[relation.name] = sorted(str(item) for item in mine)
            else:
                row[relation.name] = [target_by_id[str(item)] for item in mine if str(item) in target_by_id]
            if mine:
                row[f"{relation.name}_scope"] = "RESTRICTED"
            else:
                row[f"{relation.name}_scope"] = "ALL" if relation.on_empty_policy == "ALL" else "NONE"

    async def _hydrate_one_to_many(self, config: ResourceConfig, relation: RelationSpec, rows: list[Row]) -> None:
        ids = [row.get(config.pk) for row in rows]
        children = await ResourceQueries.fetch_rows(
            self.db, ResourceQueries.build_relation_statement(relation, relation.foreign_key, ids)
        )
        grouped: dict[str, list[Row]] = {}
        for child in children:
            grouped.setdefault(str(child.get(relation.foreign_key)), []).append(child)

        for row in rows:
            items = grouped.get(str(row.get(config.pk)), [])
            if relation.order_by is not None:
                key = relation.order_by.column
                present = [item for item in items if item.get(key) is not None]
                missing = [item for item in items if item.get(key) is None]
                items = sorted(present, key=lambda item: item[key], reverse=relation.order_by.desc) + missing
            if relation.limit is not None:
                items = items[: relation.limit]
            row[relation.name] = items

    async def _hydrate_many_to_one(self, relation: RelationSpec, rows: list[Row]) -> None:
        target_ids = list(dict.fromkeys(row.get(relation.local_key) for row in rows if row.get(relation.local_key)))
        parents: dict[str, Row] = {}
        if target_ids:
            found = await ResourceQueries.fetch_rows(
                self.db, ResourceQueries.build_relation_statement(relation, "id", target_ids)
            )
            parents = {str(parent["id"]): parent for parent in found}
        for row in rows:
            local = row.get(relation.local_key)
            row[relation.name] = parents.get(str(local)) if local else None
