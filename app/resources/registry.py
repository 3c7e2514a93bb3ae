"""Registry of resources served by the generic CRUD routes."""

from __future__ import annotations

import logging
from typing import Mapping

from app.resources.configs import (
    inventory,
    purchase_orders,
    requisitions,
    roles,
    stock_adjustments,
    tally_cards,
    warehouse_locations,
)
from app.resources.types import ResourceEntry
from app.utils.exceptions import InvalidConfigException

logger = logging.getLogger(__name__)

RESOURCES: Mapping[str, ResourceEntry] = {
    "tally-cards": tally_cards.entry,
    "stock-adjustments": stock_adjustments.entry,
    "roles": roles.entry,
    "warehouse-locations": warehouse_locations.entry,
    "inventory-current": inventory.entry,
    "purchase-orders": purchase_orders.entry,
    "requisitions": requisitions.entry,
}


def validate_entry(key: str, entry: ResourceEntry) -> None:
    config = entry.config
    if entry.key != key:
        raise InvalidConfigException(f"Resource '{key}' is registered under a different key '{entry.key}'")
    if not isinstance(config.table, str) or not config.table.strip():
        raise InvalidConfigException(f"Resource '{key}' has no table")
    if not isinstance(config.select, str) or not config.select.strip():
        raise InvalidConfigException(f"Resource '{key}' has no select projection")
    if config.default_sort is not None and not config.has_column(config.default_sort.column):
        raise InvalidConfigException(
            f"Resource '{key}' sorts by '{config.default_sort.column}' which is not selected"
        )
    for column in config.search:
        if not config.has_column(column):
            raise InvalidConfigException(f"Resource '{key}' searches '{column}' which is not selected")
    if config.active_flag and not config.has_column(config.active_flag):
        raise InvalidConfigException(f"Resource '{key}' active flag '{config.active_flag}' is not selected")
    for relation in config.relations:
        if relation.kind == "many_to_one" and not relation.local_key:
            raise InvalidConfigException(f"Relation '{relation.name}' of '{key}' needs local_key")
        if relation.kind == "one_to_many" and not relation.foreign_key:
            raise InvalidConfigException(f"Relation '{relation.name}' of '{key}' needs foreign_key")
        if relation.kind == "many_to_many" and not (relation.via_table and relation.this_key and relation.that_key):
            raise InvalidConfigException(
                f"Relation '{relation.name}' of '{key}' needs via_table, this_key and that_key"
            )


def validate_registry(registry: Mapping[str, ResourceEntry] = RESOURCES) -> None:
    """Check every registered resource; raises on the first broken config."""
    for key, entry in registry.items():
        validate_entry(key, entry)
    logger.info("Validated %d resource configs", len(registry))
