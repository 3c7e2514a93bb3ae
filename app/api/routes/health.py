"""Health check endpoints for monitoring."""

import logging

from fastapi import APIRouter
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.api.deps import DB
from app.core.config import settings
from app.utils.envelopes import api_success

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def _database_status(db) -> str:
	try:
		await db.execute(text("SELECT 1"))
		return "healthy"
	except SQLAlchemyError as exc:
		logger.warning("Database health check failed", extra={"error": str(exc)})
		return f"unhealthy: {exc.__class__.__name__}"


@router.get("/health", response_model=dict)
async def health_check(db: DB):
	"""Health check endpoint for load balancers and monitoring."""
	db_status = await _database_status(db)
	return api_success(
		status="ok" if db_status == "healthy" else "degraded",
		service=settings.APP_NAME,
		database=db_status,
	)


@router.get("/health/ready", response_model=dict)
async def readiness_check(db: DB):
	"""Readiness probe: ready once the database answers."""
	return api_success(ready=await _database_status(db) == "healthy")


@router.get("/health/live", response_model=dict)
async def liveness_check():
	return api_success(alive=True)
