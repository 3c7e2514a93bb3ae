"""Current caller context."""

from fastapi import APIRouter

from app.api.deps import RealSession, Session
from app.schemas.auth import SessionContext
from app.utils.envelopes import json_response

router = APIRouter(tags=["me"])


def _user_summary(context: SessionContext) -> dict:
	return {
		"appUserId": context.app_user_id,
		"fullName": context.full_name,
		"email": context.email,
		"roleName": context.role_name,
		"roleCode": context.role_code,
	}


@router.get("/me/role")
async def get_my_role(real: RealSession, effective: Session):
	"""Effective session context, honouring impersonation for permitted callers."""
	body = effective.model_dump(by_alias=True)
	body["userId"] = real.auth_user_id
	body["allowedWarehouses"] = list(effective.allowed_warehouse_codes)
	body["realUser"] = {"authUserId": real.auth_user_id, **_user_summary(real)}
	body["effectiveUser"] = {**_user_summary(effective), "permissions": list(effective.permissions)}
	return json_response(body)
