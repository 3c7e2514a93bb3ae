"""Service layer for config-driven resources - list, item, write and action handlers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional

from fastapi import Response
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.repositories.resource_repository import ResourceDataSource
from app.resources.registry import RESOURCES
from app.resources.resolver import resolve_resource, validate_record_id
from app.resources.types import ResourceEntry, Row
from app.utils.coerce import json_safe, to_bool, to_number
from app.utils.envelopes import NO_STORE_HEADERS, api_error, api_success, error_response, json_response
from app.utils.exceptions import (
    AppException,
    NotFoundException,
    PermissionDeniedException,
    UpstreamException,
    ValidationException,
)
from app.utils.list_params import QueryItems, parse_list_query

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Scd2Action:
    """A versioned update delegated to a database function."""

    function: str
    legacy_function: str
    build_params: Callable[[str, Row], Row]

    def function_name(self) -> str:
        return self.function if settings.SCD2_USE_V3 else self.legacy_function


def _tally_card_params(record_id: str, payload: Row) -> Row:
    item_number = payload.get("item_number")
    return {
        "p_id": record_id,
        "p_tally_card_number": payload.get("tally_card_number"),
        "p_warehouse_id": payload.get("warehouse_id"),
        "p_item_number": to_number(item_number) if item_number is not None else None,
        "p_note": payload.get("note"),
        "p_is_active": to_bool(payload["is_active"]) if payload.get("is_active") is not None else None,
    }


def _stock_adjustment_params(record_id: str, payload: Row) -> Row:
    return {
        "p_id": record_id,
        "p_reason_code": payload.get("reason_code"),
        "p_multi_location": payload.get("multi_location"),
        "p_qty": payload.get("qty"),
        "p_location": payload.get("location"),
        "p_note": payload.get("note"),
    }


SCD2_ACTIONS: Mapping[str, Scd2Action] = {
    "tally-cards": Scd2Action(
        function="fn_tcm_tally_cards_patch_scd2_v3",
        legacy_function="fn_tally_card_patch_scd2",
        build_params=_tally_card_params,
    ),
    "stock-adjustments": Scd2Action(
        function="fn_tcm_user_tally_card_entries_patch_scd2_v3",
        legacy_function="fn_user_entry_patch_scd2_v2",
        build_params=_stock_adjustment_params,
    ),
}

MAX_BULK_IDS = 500


class ResourceService:
    """Business logic for the generic resource routes."""

    def __init__(self, repository: ResourceDataSource, registry: Mapping[str, ResourceEntry] = RESOURCES):
        """Initialize service with a data source and the resource registry."""
        self.repository = repository
        self.registry = registry

    def _resolve(self, resource_key: str) -> ResourceEntry:
        return resolve_resource(resource_key, self.registry)

    @staticmethod
    def _error(exc: AppException, resource_key: Optional[str] = None) -> JSONResponse:
        if isinstance(exc, NotFoundException) and str(exc.message).startswith("Unknown resource"):
            return json_response(api_error("Unknown resource", resource=resource_key), status_code=404)
        if exc.status_code >= 500:
            logger.error(
                "Resource request failed",
                extra={"resource": resource_key, "error.code": exc.code, "error": exc.message},
            )
        if resource_key is None:
            return error_response(exc)
        return error_response(exc, resource=resource_key)

    @staticmethod
    def _writable_payload(entry: ResourceEntry, body: Any) -> Row:
        config = entry.config
        if config.read_only:
            raise ValidationException(f'Resource "{entry.key}" is read-only')
        if not isinstance(body, dict):
            raise ValidationException("Request body must be a JSON object")
        payload = config.from_input(body) if config.from_input else dict(body)
        unknown = [key for key in payload if not config.has_column(key)]
        if unknown:
            raise ValidationException(f"Unknown fields: {', '.join(sorted(unknown))}")
        return payload

    # List

    async def handle_list(self, query_params: QueryItems, resource_key: str) -> JSONResponse:
        try:
            entry = self._resolve(resource_key)
            query = parse_list_query(query_params, entry.config)
            if query.raw and not entry.allow_raw:
                raise ValidationException(f'Raw mode is not allowed for resource "{resource_key}".')

            result = await self.repository.list(entry.config, query)
            rows = result.rows
            if not query.raw and entry.to_row is not None:
                rows = [entry.to_row(row) for row in rows]

            return json_response(
                {
                    "resource": resource_key,
                    "rows": json_safe(rows),
                    "total": result.total,
                    "page": query.page,
                    "pageSize": query.page_size,
                    "raw": query.raw,
                }
            )
        except ValidationException as exc:
            if exc.message == "Invalid resource parameter":
                return error_response(exc)
            return self._error(exc, resource_key)
        except AppException as exc:
            return self._error(exc, resource_key)

    # Items

    async def get_one(self, resource_key: str, record_id: str) -> JSONResponse:
        try:
            entry = self._resolve(resource_key)
            validate_record_id(record_id)
            row = await self.repository.get(entry.config, record_id)
            if row is None:
                raise NotFoundException()
            return json_response({"row": json_safe(row)})
        except AppException as exc:
            return self._error(exc, resource_key)

    async def create(self, resource_key: str, body: Any) -> JSONResponse:
        try:
            entry = self._resolve(resource_key)
            payload = self._writable_payload(entry, body)
            if not payload:
                raise ValidationException("No fields to create")
            new_id = await self.repository.create(entry.config, payload)
            row = await self.repository.get(entry.config, str(new_id)) if new_id is not None else None
            if row is None:
                return json_response({"id": json_safe(new_id)}, status_code=201)
            return json_response({"row": json_safe(row)}, status_code=201)
        except AppException as exc:
            return self._error(exc, resource_key)

    async def update(self, resource_key: str, record_id: str, body: Any) -> JSONResponse:
        try:
            entry = self._resolve(resource_key)
            validate_record_id(record_id)
            payload = self._writable_payload(entry, body)
            if not payload:
                raise ValidationException("No fields to update")
            if entry.config.has_column("updated_at") and not entry.config.selects_all:
                payload.setdefault("updated_at", datetime.now(timezone.utc))
            if not await self.repository.update(entry.config, record_id, payload):
                raise NotFoundException()
            row = await self.repository.get(entry.config, record_id)
            if row is None:
                raise NotFoundException()
            return json_response({"row": json_safe(row)})
        except AppException as exc:
            return self._error(exc, resource_key)

    async def delete(self, resource_key: str, record_id: str) -> JSONResponse:
        try:
            entry = self._resolve(resource_key)
            validate_record_id(record_id)
            config = entry.config
            if config.read_only:
                raise ValidationException(f'Resource "{resource_key}" is read-only')
            if config.active_flag:
                if not await self.repository.soft_delete(config, [record_id]):
                    raise NotFoundException()
                row = await self.repository.get(config, record_id)
                if row is None:
                    return json_response(api_success(softDelete=True))
                return json_response({"row": json_safe(row)})
            if not await self.repository.remove(config, [record_id]):
                raise NotFoundException()
            return json_response(api_success())
        except AppException as exc:
            return self._error(exc, resource_key)

    async def bulk_delete(self, resource_key: str, body: Any) -> JSONResponse:
        try:
            entry = self._resolve(resource_key)
            config = entry.config
            if config.read_only:
                raise ValidationException(f'Resource "{resource_key}" is read-only')
            ids = body.get("ids") if isinstance(body, dict) else None
            if not isinstance(ids, list) or not ids:
                raise ValidationException("ids must be a non-empty array")
            if len(ids) > MAX_BULK_IDS:
                raise ValidationException(f"At most {MAX_BULK_IDS} ids can be deleted at once")
            ids = [validate_record_id(str(item)) for item in ids if item is not None]

            soft = bool(config.active_flag)
            if soft:
                deleted = await self.repository.soft_delete(config, ids)
                verb = "deactivated"
            else:
                deleted = await self.repository.remove(config, ids)
                verb = "deleted"
            logger.info(
                "Bulk delete",
                extra={"resource": resource_key, "requested": len(ids), "deleted": len(deleted), "soft": soft},
            )
            return json_response(
                api_success(
                    message=f"{len(deleted)} record(s) {verb}",
                    deletedIds=deleted,
                    softDelete=soft,
                )
            )
        except AppException as exc:
            return self._error(exc, resource_key)

    # Actions

    async def patch_scd2(self, resource_key: str, record_id: str, body: Any) -> Response:
        """Run the versioned update function; 204 when nothing changed."""
        action = SCD2_ACTIONS.get(resource_key)
        try:
            if action is None:
                raise NotFoundException(f"Unknown resource: {resource_key}")
            validate_record_id(record_id)
            if not isinstance(body, dict):
                raise ValidationException("Request body must be a JSON object")
            try:
                rows = await self.repository.call_rpc(action.function_name(), action.build_params(record_id, body))
            except AppException as exc:
                if exc.status_code == 403:
                    raise
                raise UpstreamException(exc.message, status_code=400, details=exc.details) from exc

            row = rows[0] if rows else None
            if not row or all(value is None for value in row.values()):
                return Response(status_code=204, headers=dict(NO_STORE_HEADERS))
            return json_response({"row": json_safe(row)})
        except PermissionDeniedException as exc:
            return error_response(exc)
        except AppException as exc:
            return self._error(exc, resource_key)
