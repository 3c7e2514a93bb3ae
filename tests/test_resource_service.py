import json

import pytest

from app.services.resource_service import ResourceService
from app.utils.exceptions import PermissionDeniedException, UpstreamException
from tests.conftest import FakeDataSource


def body(response):
    return json.loads(response.body)


def tally_card(card_id: str, number: str, active: bool = True) -> dict:
    return {
        "id": card_id,
        "card_uid": f"uid-{card_id}",
        "tally_card_number": number,
        "warehouse_id": "w-1",
        "item_number": 1001,
        "note": None,
        "is_active": active,
        "snapshot_at": None,
        "updated_at": "2025-06-01T10:00:00+00:00",
    }


@pytest.fixture
def source() -> FakeDataSource:
    return FakeDataSource(
        {
            "tcm_tally_cards": [tally_card("c1", "TC-001"), tally_card("c2", "TC-002", active=False)],
            "roles": [{"id": "r1", "role_code": "STORES", "role_name": "Stores", "is_active": True}],
            "requisitions": [{"requisition_order_number": "REQ-1", "status": "Issued"}],
        }
    )


@pytest.fixture
def service(source) -> ResourceService:
    return ResourceService(source)


@pytest.mark.asyncio
async def test_list_applies_row_projection(service):
    response = await service.handle_list({"page": "1", "pageSize": "10"}, "tally-cards")
    assert response.status_code == 200
    assert response.headers["cache-control"] == "no-store"
    payload = body(response)
    assert payload["resource"] == "tally-cards"
    assert payload["total"] == 2
    assert payload["page"] == 1
    assert payload["pageSize"] == 10
    assert payload["raw"] is False
    assert [row["status"] for row in payload["rows"]] == ["Active", "Inactive"]
    assert "card_uid" not in payload["rows"][0]


@pytest.mark.asyncio
async def test_list_raw_skips_projection(service):
    payload = body(await service.handle_list({"raw": "true"}, "tally-cards"))
    assert payload["raw"] is True
    assert "card_uid" in payload["rows"][0]


@pytest.mark.asyncio
async def test_raw_is_rejected_when_not_allowed(service):
    response = await service.handle_list({"raw": "true"}, "requisitions")
    assert response.status_code == 400
    assert body(response)["resource"] == "requisitions"


@pytest.mark.asyncio
async def test_unknown_resource_is_404(service):
    response = await service.handle_list({}, "widgets")
    assert response.status_code == 404
    assert body(response) == {"error": {"message": "Unknown resource"}, "resource": "widgets"}


@pytest.mark.asyncio
async def test_invalid_resource_parameter_is_400(service):
    response = await service.handle_list({}, "x" * 80)
    assert response.status_code == 400
    assert body(response)["error"]["message"] == "Invalid resource parameter"
    assert "resource" not in body(response)


@pytest.mark.asyncio
async def test_bad_filter_column_is_400(service):
    response = await service.handle_list({"secret": "x"}, "tally-cards")
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_data_source_permission_error_is_403(source, service):
    async def failing_list(config, query):
        raise PermissionDeniedException("new row violates row-level security policy")

    source.list = failing_list
    response = await service.handle_list({}, "tally-cards")
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_get_one_and_missing_record(service):
    found = await service.get_one("tally-cards", "c1")
    assert body(found)["row"]["tally_card_number"] == "TC-001"
    missing = await service.get_one("tally-cards", "nope")
    assert missing.status_code == 404
    assert body(missing)["error"]["message"] == "Not found"


@pytest.mark.asyncio
async def test_create_returns_created_row(source, service):
    response = await service.create("roles", {"role_code": "qa", "role_name": "Quality"})
    assert response.status_code == 201
    row = body(response)["row"]
    assert row["role_code"] == "QA"
    assert ("create", {"role_code": "QA", "role_name": "Quality"}) in source.calls


@pytest.mark.asyncio
async def test_create_rejects_read_only_resource(service):
    response = await service.create("requisitions", {"status": "Issued"})
    assert response.status_code == 400
    assert "read-only" in body(response)["error"]["message"]


@pytest.mark.asyncio
async def test_create_rejects_non_object_body(service):
    response = await service.create("roles", ["not", "an", "object"])
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_update_sets_updated_at(source, service):
    response = await service.update("tally-cards", "c1", {"note": "recounted"})
    assert response.status_code == 200
    assert body(response)["row"]["note"] == "recounted"
    _, (record_id, payload) = next(call for call in source.calls if call[0] == "update")
    assert record_id == "c1"
    assert "updated_at" in payload


@pytest.mark.asyncio
async def test_update_missing_record_is_404(service):
    response = await service.update("tally-cards", "ghost", {"note": "x"})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_update_without_fields_is_400(service):
    response = await service.update("tally-cards", "c1", {})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_delete_soft_deletes_when_flag_configured(source, service):
    response = await service.delete("tally-cards", "c1")
    assert response.status_code == 200
    assert body(response)["row"]["is_active"] is False
    assert ("soft_delete", ["c1"]) in source.calls


@pytest.mark.asyncio
async def test_delete_hard_deletes_without_flag():
    source = FakeDataSource({"tcm_user_tally_card_entries": [{"id": "e1", "qty": 3}]})
    response = await ResourceService(source).delete("stock-adjustments", "e1")
    assert body(response) == {"success": True}
    assert ("remove", ["e1"]) in source.calls


@pytest.mark.asyncio
async def test_bulk_delete(source, service):
    response = await service.bulk_delete("tally-cards", {"ids": ["c1", "c2", "missing"]})
    payload = body(response)
    assert payload["success"] is True
    assert payload["deletedIds"] == ["c1", "c2"]
    assert payload["softDelete"] is True
    assert payload["message"] == "2 record(s) deactivated"


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [{}, {"ids": []}, {"ids": "c1"}, None])
async def test_bulk_delete_requires_ids(service, payload):
    response = await service.bulk_delete("tally-cards", payload)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_patch_scd2_calls_versioned_function(source, service):
    source.rpc_result = [{"id": "c1-v2", "tally_card_number": "TC-001"}]
    response = await service.patch_scd2("tally-cards", "c1", {"note": "moved", "item_number": "7", "is_active": "true"})
    assert response.status_code == 200
    assert body(response)["row"]["id"] == "c1-v2"
    name, params = next(call[1] for call in source.calls if call[0] == "call_rpc")
    assert name == "fn_tcm_tally_cards_patch_scd2_v3"
    assert params == {
        "p_id": "c1",
        "p_tally_card_number": None,
        "p_warehouse_id": None,
        "p_item_number": 7,
        "p_note": "moved",
        "p_is_active": True,
    }


@pytest.mark.asyncio
async def test_patch_scd2_legacy_function(monkeypatch, source, service):
    from app.core.config import settings

    monkeypatch.setattr(settings, "SCD2_USE_V3", False)
    source.rpc_result = [{"id": "e1"}]
    await service.patch_scd2("stock-adjustments", "e1", {"qty": 4, "reason_code": "RECOUNT"})
    name, params = next(call[1] for call in source.calls if call[0] == "call_rpc")
    assert name == "fn_user_entry_patch_scd2_v2"
    assert params["p_qty"] == 4
    assert params["p_reason_code"] == "RECOUNT"


@pytest.mark.asyncio
@pytest.mark.parametrize("result", [[], [{"id": None, "note": None}]])
async def test_patch_scd2_without_change_is_204(source, service, result):
    source.rpc_result = result
    response = await service.patch_scd2("tally-cards", "c1", {"note": "same"})
    assert response.status_code == 204


@pytest.mark.asyncio
async def test_patch_scd2_permission_error_stays_403(source, service):
    source.rpc_error = PermissionDeniedException("permission denied for function")
    response = await service.patch_scd2("tally-cards", "c1", {"note": "x"})
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_patch_scd2_other_errors_are_400(source, service):
    source.rpc_error = UpstreamException("something broke", status_code=500)
    response = await service.patch_scd2("tally-cards", "c1", {"note": "x"})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_patch_scd2_unknown_resource_is_404(service):
    response = await service.patch_scd2("roles", "r1", {})
    assert response.status_code == 404
