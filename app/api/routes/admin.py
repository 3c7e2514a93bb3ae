"""Administrative maintenance endpoints."""

import logging

from fastapi import APIRouter
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.api.deps import DB, RateLimited, Session
from app.services.session_service import REFRESH_PERMISSION, require_permission
from app.utils.envelopes import api_success, json_response
from app.utils.exceptions import classify_database_error

logger = logging.getLogger(__name__)

router = APIRouter(tags=["admin"])

MATERIALIZED_VIEWS = ("mv_effective_permissions",)


@router.post("/admin/refresh", dependencies=[RateLimited])
async def refresh_materialized_views(session: Session, db: DB):
	require_permission(session, REFRESH_PERMISSION)
	for view in MATERIALIZED_VIEWS:
		try:
			await db.execute(text(f"REFRESH MATERIALIZED VIEW {view}"))
			await db.commit()
		except SQLAlchemyError as exc:
			await db.rollback()
			raise classify_database_error(exc, table=view) from exc
	logger.info("Materialized views refreshed", extra={"views": list(MATERIALIZED_VIEWS), "user.email": session.email})
	return json_response(api_success(refreshed=list(MATERIALIZED_VIEWS)))
