from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.schemas.auth import SessionContext
from app.services.session_service import (
    IMPERSONATE_PERMISSION,
    REFRESH_PERMISSION,
    SessionService,
    require_permission,
)
from app.utils.exceptions import NotFoundException, PermissionDeniedException

TARGET_ID = "22222222-2222-4222-8222-222222222222"


@pytest.fixture
def service() -> SessionService:
    return SessionService(AsyncMock())


@pytest.mark.asyncio
async def test_no_request_keeps_real_context(service, admin_context):
    assert await service.get_effective_context(admin_context, None) is admin_context
    assert await service.get_effective_context(admin_context, admin_context.app_user_id) is admin_context


@pytest.mark.asyncio
async def test_denied_without_permission(service, operator_context):
    result = await service.get_effective_context(operator_context, "33333333-3333-4333-8333-333333333333")

    assert result.app_user_id == operator_context.app_user_id
    assert result.impersonating is False
    assert result.impersonation_denied == f"missing_permission_{IMPERSONATE_PERMISSION}"


@pytest.mark.asyncio
async def test_denied_when_target_missing(service, admin_context, monkeypatch):
    monkeypatch.setattr(service, "get_user_by_id", AsyncMock(return_value=None))

    result = await service.get_effective_context(admin_context, TARGET_ID)

    assert result.impersonation_denied == "target_not_found"
    assert result.app_user_id == admin_context.app_user_id


@pytest.mark.asyncio
async def test_granted_switches_effective_user(service, admin_context, operator_context, monkeypatch):
    target = SimpleNamespace(id=TARGET_ID)
    monkeypatch.setattr(service, "get_user_by_id", AsyncMock(return_value=target))
    build = AsyncMock(return_value=operator_context)
    monkeypatch.setattr(service, "build_context", build)

    result = await service.get_effective_context(admin_context, TARGET_ID)

    build.assert_awaited_once_with(target, admin_context.auth_user_id)
    assert result.impersonating is True
    assert result.app_user_id == operator_context.app_user_id
    assert result.real_app_user_id == admin_context.app_user_id
    assert result.allowed_warehouse_codes == ["RTZ"]


@pytest.mark.asyncio
async def test_authorize_impersonation(service, admin_context, operator_context, monkeypatch):
    monkeypatch.setattr(service, "get_user_by_id", AsyncMock(return_value=None))

    with pytest.raises(PermissionDeniedException):
        await service.authorize_impersonation(operator_context, TARGET_ID)
    with pytest.raises(NotFoundException):
        await service.authorize_impersonation(admin_context, TARGET_ID)


@pytest.mark.asyncio
async def test_unparseable_ids_skip_the_database(service):
    assert await service.get_user_by_id("not-a-uuid") is None
    assert await service.get_user_by_auth_id("") is None
    service.db.execute.assert_not_awaited()


@pytest.mark.asyncio
async def test_build_context_resolves_warehouse_codes_from_ids(service):
    role = MagicMock()
    role.first.return_value = SimpleNamespace(role_name="Operator", role_code="OPS")
    permissions = MagicMock()
    permissions.scalars.return_value.all.return_value = ["entries:read", "entries:read"]
    rules = MagicMock()
    rules.all.return_value = [
        SimpleNamespace(warehouse="RTZ", warehouse_id=None),
        SimpleNamespace(warehouse="AMC", warehouse_id="44444444-4444-4444-8444-444444444444"),
    ]
    service.db.execute.side_effect = [role, permissions, rules]
    user = SimpleNamespace(
        id=TARGET_ID,
        role_id="55555555-5555-4555-8555-555555555555",
        role_code=None,
        role_family="operations",
        full_name="Sam Operator",
        email="sam@example.com",
    )

    context = await service.build_context(user, "auth-1")

    assert context.role_code == "OPS"
    assert context.permissions == ["entries:read"]
    assert context.allowed_warehouse_codes == ["RTZ", "AMC"]
    assert context.allowed_warehouse_ids == ["44444444-4444-4444-8444-444444444444"]
    rule_query = str(service.db.execute.await_args_list[2].args[0])
    assert "LEFT OUTER JOIN warehouses ON role_warehouse_rules.warehouse_id = warehouses.id" in rule_query
    assert "coalesce(role_warehouse_rules.warehouse, warehouses.code)" in rule_query


def test_require_permission(operator_context, admin_context):
    require_permission(admin_context, REFRESH_PERMISSION)
    require_permission(operator_context.model_copy(update={"permissions": [REFRESH_PERMISSION]}), REFRESH_PERMISSION)
    with pytest.raises(PermissionDeniedException) as info:
        require_permission(operator_context, REFRESH_PERMISSION)
    assert info.value.details == {"permission": REFRESH_PERMISSION}


def test_session_context_aliases():
    context = SessionContext(userId="auth", appUserId="app", roleCode="administrator")
    assert context.is_administrator
    assert context.model_dump(by_alias=True)["appUserId"] == "app"
