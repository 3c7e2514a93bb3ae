"""Service layer for session context, permissions and impersonation."""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.models import Role, RolePermission, RoleWarehouseRule, User, Warehouse
from app.schemas.auth import SessionContext
from app.utils.exceptions import NotFoundException, PermissionDeniedException, UnauthorizedException

logger = logging.getLogger(__name__)

IMPERSONATE_PERMISSION = "admin:impersonate"
REFRESH_PERMISSION = "admin:refresh"
GLOBAL_WAREHOUSE_PERMISSIONS = ("entries:read:any", "admin:read:any")


def _parse_uuid(value: str) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


def require_permission(context: SessionContext, permission: str) -> None:
    """Allow holders of ``permission`` and administrators; raise otherwise."""
    if context.has_permission(permission) or context.is_administrator:
        return
    raise PermissionDeniedException(
        f"Administrator role or {permission} permission required.",
        details={"permission": permission},
    )


class SessionService:
    """Builds the caller context from users, roles and role rules."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def get_user_by_auth_id(self, auth_user_id: str) -> Optional[User]:
        auth_uuid = _parse_uuid(auth_user_id)
        if auth_uuid is None:
            return None
        result = await self.db.execute(select(User).where(User.auth_id == auth_uuid))
        return result.scalar_one_or_none()

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        user_uuid = _parse_uuid(user_id)
        if user_uuid is None:
            return None
        result = await self.db.execute(select(User).where(User.id == user_uuid))
        return result.scalar_one_or_none()

    async def build_context(self, user: User, auth_user_id: str) -> SessionContext:
        role_name: Optional[str] = None
        role_code: Optional[str] = user.role_code
        permissions: list[str] = []
        warehouse_codes: list[str] = []
        warehouse_ids: list[str] = []

        if user.role_id is not None:
            role = (
                await self.db.execute(select(Role.role_name, Role.role_code).where(Role.id == user.role_id))
            ).first()
            if role is not None:
                role_name = role.role_name
                role_code = role.role_code or role_code

            permission_rows = await self.db.execute(
                select(RolePermission.permission_key).where(RolePermission.role_id == user.role_id)
            )
            permissions = list(dict.fromkeys(key for key in permission_rows.scalars().all() if key))

            # Rules that only carry an id take the code from the warehouse table
            rule_rows = await self.db.execute(
                select(
                    func.coalesce(RoleWarehouseRule.warehouse, Warehouse.code).label("warehouse"),
                    RoleWarehouseRule.warehouse_id,
                )
                .select_from(RoleWarehouseRule)
                .outerjoin(Warehouse, RoleWarehouseRule.warehouse_id == Warehouse.id)
                .where(RoleWarehouseRule.role_id == user.role_id)
            )
            for rule in rule_rows.all():
                if rule.warehouse:
                    warehouse_codes.append(rule.warehouse)
                if rule.warehouse_id:
                    warehouse_ids.append(str(rule.warehouse_id))
        elif role_code:
            role = (await self.db.execute(select(Role.role_name).where(Role.role_code == role_code))).first()
            if role is not None:
                role_name = role.role_name

        return SessionContext(
            auth_user_id=auth_user_id,
            app_user_id=str(user.id),
            full_name=user.full_name,
            email=user.email,
            role_code=role_code,
            role_name=role_name,
            role_family=user.role_family,
            permissions=permissions,
            allowed_warehouse_codes=warehouse_codes,
            allowed_warehouse_ids=warehouse_ids,
            can_see_all_warehouses=any(key in permissions for key in GLOBAL_WAREHOUSE_PERMISSIONS),
        )

    async def get_real_context(self, auth_user_id: str) -> SessionContext:
        user = await self.get_user_by_auth_id(auth_user_id)
        if user is None:
            raise UnauthorizedException("No profile row for authenticated user")
        return await self.build_context(user, auth_user_id)

    async def get_effective_context(
        self, real: SessionContext, requested_user_id: Optional[str]
    ) -> SessionContext:
        """Switch to the requested user when the real caller may impersonate."""
        if not requested_user_id or requested_user_id == real.app_user_id:
            return real

        if not real.has_permission(IMPERSONATE_PERMISSION):
            denial = f"missing_permission_{IMPERSONATE_PERMISSION}"
            logger.info(
                "Impersonation denied",
                extra={"user.email": real.email, "impersonate.target": requested_user_id, "reason": denial},
            )
            return real.model_copy(update={"impersonation_denied": denial})

        target = await self.get_user_by_id(requested_user_id)
        if target is None:
            logger.info(
                "Impersonation denied",
                extra={"user.email": real.email, "impersonate.target": requested_user_id, "reason": "target_not_found"},
            )
            return real.model_copy(update={"impersonation_denied": "target_not_found"})

        effective = await self.build_context(target, real.auth_user_id)
        logger.info(
            "Impersonation granted",
            extra={"user.email": real.email, "impersonate.target": requested_user_id},
        )
        return effective.model_copy(update={"impersonating": True, "real_app_user_id": real.app_user_id})

    async def authorize_impersonation(self, real: SessionContext, target_user_id: str) -> None:
        require_permission(real, IMPERSONATE_PERMISSION)
        if await self.get_user_by_id(target_user_id) is None:
            raise NotFoundException("User not found")
