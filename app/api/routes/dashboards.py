"""Config-driven dashboard endpoint."""

from typing import Optional

from fastapi import APIRouter, Query, Request

from app.api.deps import Dashboards
from app.services.dashboard_service import parse_active_filters
from app.utils.coerce import json_safe
from app.utils.envelopes import json_response
from app.utils.list_params import DEFAULT_PAGE_SIZE

router = APIRouter(tags=["dashboards"])


@router.get("/dashboards/{dashboard_id}")
async def get_dashboard(
	dashboard_id: str,
	request: Request,
	service: Dashboards,
	range_: Optional[str] = Query(None, alias="range"),
	from_: Optional[str] = Query(None, alias="from"),
	to: Optional[str] = Query(None),
	page: int = Query(1, ge=1),
	page_size: int = Query(DEFAULT_PAGE_SIZE, alias="pageSize", ge=1),
):
	config = service.get_config(dashboard_id)
	result = await service.render(
		dashboard_id,
		range_=range_,
		from_=from_,
		to=to,
		active_filters=parse_active_filters(request.query_params, config),
		page=page,
		page_size=page_size,
	)
	return json_response(json_safe(result))
