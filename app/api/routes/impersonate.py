"""Start and stop impersonating another app user."""

from fastapi import APIRouter, Request
from pydantic import ValidationError

from app.api.deps import IMPERSONATE_COOKIE, RateLimited, RealSession, Sessions
from app.api.routes.resources import read_json_body
from app.schemas.auth import ImpersonateRequest
from app.utils.envelopes import api_success, json_response
from app.utils.exceptions import ValidationException

router = APIRouter(tags=["impersonation"])

IMPERSONATE_MAX_AGE = 60 * 60 * 24


@router.post("/impersonate", dependencies=[RateLimited])
async def start_impersonation(request: Request, real: RealSession, sessions: Sessions):
	try:
		payload = ImpersonateRequest.model_validate(await read_json_body(request))
	except ValidationError as exc:
		raise ValidationException("userId is required") from exc

	await sessions.authorize_impersonation(real, payload.user_id)

	response = json_response(api_success(impersonating=payload.user_id))
	response.set_cookie(
		IMPERSONATE_COOKIE,
		payload.user_id,
		max_age=IMPERSONATE_MAX_AGE,
		path="/",
		httponly=True,
		samesite="lax",
	)
	return response


@router.delete("/impersonate")
async def stop_impersonation():
	response = json_response(api_success())
	response.set_cookie(IMPERSONATE_COOKIE, "", max_age=0, path="/", httponly=True, samesite="lax")
	return response
