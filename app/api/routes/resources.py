"""Generic CRUD endpoints for registered resources."""

from typing import Any

from fastapi import APIRouter, Request

from app.api.deps import RateLimited, Resources
from app.utils.exceptions import ValidationException

router = APIRouter(tags=["resources"])


async def read_json_body(request: Request) -> Any:
	try:
		return await request.json()
	except ValueError as exc:
		raise ValidationException("Invalid JSON body") from exc


@router.get("/{resource}")
async def list_resource(resource: str, request: Request, service: Resources):
	return await service.handle_list(request.query_params, resource)


@router.post("/{resource}", dependencies=[RateLimited])
async def create_resource(resource: str, request: Request, service: Resources):
	return await service.create(resource, await read_json_body(request))


@router.delete("/{resource}/bulk", dependencies=[RateLimited])
async def bulk_delete_resource(resource: str, request: Request, service: Resources):
	return await service.bulk_delete(resource, await read_json_body(request))


@router.get("/{resource}/{record_id}")
async def get_resource_record(resource: str, record_id: str, service: Resources):
	return await service.get_one(resource, record_id)


@router.patch("/{resource}/{record_id}", dependencies=[RateLimited])
async def update_resource_record(resource: str, record_id: str, request: Request, service: Resources):
	return await service.update(resource, record_id, await read_json_body(request))


@router.delete("/{resource}/{record_id}", dependencies=[RateLimited])
async def delete_resource_record(resource: str, record_id: str, service: Resources):
	return await service.delete(resource, record_id)
