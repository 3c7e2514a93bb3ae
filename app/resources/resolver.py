"""Resolve a route parameter to a registered resource."""

from __future__ import annotations

from typing import Mapping, Optional

from app.resources.registry import RESOURCES
from app.resources.types import ResourceEntry
from app.utils.exceptions import InvalidConfigException, NotFoundException, ValidationException

MAX_RESOURCE_KEY_LENGTH = 64
MAX_ID_LENGTH = 128


def resolve_resource(key: Optional[str], registry: Mapping[str, ResourceEntry] = RESOURCES) -> ResourceEntry:
    if not isinstance(key, str) or not key or len(key) > MAX_RESOURCE_KEY_LENGTH:
        raise ValidationException("Invalid resource parameter")

    entry = registry.get(key)
    if entry is None:
        raise NotFoundException(f"Unknown resource: {key}")

    config = entry.config
    if not isinstance(config.table, str) or not config.table.strip():
        raise InvalidConfigException(f"Resource '{key}' has no table")
    if not isinstance(config.select, str) or not config.select.strip():
        raise InvalidConfigException(f"Resource '{key}' has no select projection")
    return entry


def validate_record_id(record_id: Optional[str]) -> str:
    if not isinstance(record_id, str) or not record_id or len(record_id) > MAX_ID_LENGTH:
        raise ValidationException("Invalid id parameter")
    return record_id
