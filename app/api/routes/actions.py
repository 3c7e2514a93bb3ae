"""Versioned (SCD2) update actions backed by database functions."""

from fastapi import APIRouter, Request

from app.api.deps import RateLimited, Resources
from app.api.routes.resources import read_json_body

router = APIRouter(tags=["actions"])


@router.post("/{resource}/{record_id}/actions/patch-scd2", dependencies=[RateLimited])
async def patch_scd2(resource: str, record_id: str, request: Request, service: Resources):
	"""Apply a versioned update; 204 when the function reports no change."""
	return await service.patch_scd2(resource, record_id, await read_json_body(request))
