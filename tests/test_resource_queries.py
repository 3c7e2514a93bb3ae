import re
from datetime import date

import pytest
from sqlalchemy.dialects import postgresql

from app.queries.resource_queries import NO_ALLOWED_WAREHOUSES, NO_ROLE_FAMILY, ResourceQueries
from app.resources.registry import RESOURCES
from app.utils.list_params import FilterClause, ListQuery

TALLY = RESOURCES["tally-cards"].config
ENTRIES = RESOURCES["stock-adjustments"].config
INVENTORY = RESOURCES["inventory-current"].config


def compiled(stmt):
    return stmt.compile(dialect=postgresql.dialect())


def sql(stmt) -> str:
    return " ".join(str(compiled(stmt)).split())


def matches_case_insensitively(text: str, column: str) -> bool:
    """Postgres renders icontains as ILIKE or lower(...) LIKE depending on the SQLAlchemy release."""
    cast = re.escape(f"CAST({column} AS VARCHAR)")
    return re.search(rf"lower\({cast}\) LIKE|{cast} ILIKE", text) is not None


def test_list_statement_projects_pages_and_sorts():
    stmt = ResourceQueries.build_list_statement(TALLY, ListQuery(page=2, page_size=25))
    text = sql(stmt)
    assert text.startswith("SELECT tcm_tally_cards.id, tcm_tally_cards.card_uid")
    assert "FROM tcm_tally_cards" in text
    assert "ORDER BY tcm_tally_cards.tally_card_number ASC" in text
    assert sorted(compiled(stmt).params.values()) == [25, 25]


def test_search_and_active_only():
    stmt = ResourceQueries.build_list_statement(TALLY, ListQuery(q="bolt", active_only=True))
    text = sql(stmt)
    assert matches_case_insensitively(text, "tcm_tally_cards.note")
    assert "tcm_tally_cards.is_active IS true" in text
    assert "bolt" in compiled(stmt).params.values()


def test_explicit_sort_overrides_default():
    from app.resources.types import SortSpec

    stmt = ResourceQueries.build_list_statement(TALLY, ListQuery(sort=SortSpec("updated_at", desc=True)))
    assert "ORDER BY tcm_tally_cards.updated_at DESC" in sql(stmt)


def test_filter_operators():
    stmt = ResourceQueries.build_list_statement(
        INVENTORY,
        ListQuery(
            filters=[
                FilterClause("total_available", "gte", 5),
                FilterClause("snapshot_date", "lt", date(2025, 1, 31)),
                FilterClause("warehouse", "in", ["RTZ", "AMC"]),
                FilterClause("description", "starts_with", "Bolt"),
            ]
        ),
    )
    text = sql(stmt)
    assert "v_inventory_current.total_available >=" in text
    assert "CAST(v_inventory_current.snapshot_date AS DATE) <" in text
    assert "CAST(v_inventory_current.warehouse AS VARCHAR) IN" in text
    assert matches_case_insensitively(text, "v_inventory_current.description")


def test_unsupported_operator_raises():
    with pytest.raises(ValueError):
        ResourceQueries.build_list_statement(TALLY, ListQuery(filters=[FilterClause("note", "regex", "x")]))


def test_count_statement_shares_conditions():
    stmt = ResourceQueries.build_count_statement(TALLY, ListQuery(q="bolt"))
    text = sql(stmt)
    assert text.startswith("SELECT count(*) AS count_1 FROM tcm_tally_cards")
    assert "LIKE" in text
    assert "LIMIT" not in text


def test_warehouse_scope_uses_allowed_ids(operator_context):
    stmt = ResourceQueries.build_list_statement(TALLY, ListQuery(), operator_context)
    params = compiled(stmt).params
    assert "CAST(tcm_tally_cards.warehouse_id AS VARCHAR) IN" in sql(stmt)
    assert ["aaaaaaaa-aaaa-4aaa-8aaa-aaaaaaaaaaaa"] in params.values()


def test_warehouse_scope_uses_codes_for_code_match(operator_context):
    stmt = ResourceQueries.build_list_statement(INVENTORY, ListQuery(), operator_context)
    assert ["RTZ"] in compiled(stmt).params.values()


def test_empty_warehouse_list_matches_nothing(operator_context):
    restricted = operator_context.model_copy(update={"allowed_warehouse_ids": []})
    stmt = ResourceQueries.build_list_statement(TALLY, ListQuery(), restricted)
    assert [NO_ALLOWED_WAREHOUSES] in compiled(stmt).params.values()


def test_global_warehouse_access_skips_scope(admin_context):
    stmt = ResourceQueries.build_list_statement(TALLY, ListQuery(), admin_context)
    assert "warehouse_id AS VARCHAR) IN" not in sql(stmt)


def test_ownership_scope_by_role_family(operator_context):
    stmt = ResourceQueries.build_list_statement(ENTRIES, ListQuery(), operator_context)
    assert "CAST(tcm_user_tally_card_entries.role_family AS VARCHAR) =" in sql(stmt)
    assert "STORES" in compiled(stmt).params.values()


def test_missing_role_family_uses_sentinel(operator_context):
    stmt = ResourceQueries.build_list_statement(
        ENTRIES, ListQuery(), operator_context.model_copy(update={"role_family": None})
    )
    assert NO_ROLE_FAMILY in compiled(stmt).params.values()


def test_bypass_permission_skips_ownership(admin_context):
    stmt = ResourceQueries.build_list_statement(ENTRIES, ListQuery(), admin_context)
    assert "role_family AS VARCHAR) =" not in sql(stmt)


def test_get_statement_matches_pk_as_text():
    stmt = ResourceQueries.build_get_statement(TALLY, "abc")
    assert "CAST(tcm_tally_cards.id AS VARCHAR) =" in sql(stmt)
    assert "abc" in compiled(stmt).params.values()


def test_soft_delete_sets_flag_and_timestamp():
    stmt = ResourceQueries.build_soft_delete_statement(TALLY, ["a", "b"])
    text = sql(stmt)
    assert text.startswith("UPDATE tcm_tally_cards SET is_active=")
    assert "updated_at=now()" in text
    assert "RETURNING tcm_tally_cards.id" in text


def test_delete_statement_returns_keys():
    stmt = ResourceQueries.build_delete_statement(RESOURCES["roles"].config, ["r-1"])
    text = sql(stmt)
    assert text.startswith("DELETE FROM roles WHERE")
    assert "RETURNING roles.id" in text


def test_rpc_statement_uses_named_arguments():
    stmt = ResourceQueries.build_rpc_statement("fn_tcm_tally_cards_patch_scd2_v3", {"p_id": "x", "p_note": None})
    assert str(stmt) == "SELECT * FROM fn_tcm_tally_cards_patch_scd2_v3(p_id => :p_id, p_note => :p_note)"


@pytest.mark.parametrize("name", ["fn(); drop", "1fn", "fn-x"])
def test_rpc_statement_rejects_bad_identifiers(name):
    with pytest.raises(ValueError):
        ResourceQueries.build_rpc_statement(name, {})
