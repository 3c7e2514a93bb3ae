from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
import asyncio
import logging
import time
from typing import Optional

from opentelemetry.trace import get_current_span

from app.core.config import require_settings, settings
from app.api.routes.actions import router as actions_router
from app.api.routes.admin import router as admin_router
from app.api.routes.dashboards import router as dashboards_router
from app.api.routes.health import router as health_router
from app.api.routes.impersonate import router as impersonate_router
from app.api.routes.me import router as me_router
from app.api.routes.resources import router as resources_router
from app.core.db import dispose_engine, init_engine_and_session
from app.core.rate_limit import InMemoryRateLimitStore, get_rate_limiter, prune_periodically
from app.dashboards.registry import validate_dashboards
from app.resources.registry import validate_registry
from app.utils.envelopes import api_error, api_success, error_response
from app.utils.exceptions import AppException, ValidationException


app = FastAPI(title=settings.APP_NAME)

# Telemetry / Azure Monitor (optional)
_logger = logging.getLogger("warehouse.api")
try:
	if settings.ENABLE_APP_INSIGHTS and settings.AZURE_MONITOR_CONN_STR:
		from azure.monitor.opentelemetry import configure_azure_monitor
		from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
		from opentelemetry.instrumentation.logging import LoggingInstrumentor

		configure_azure_monitor(
			connection_string=settings.AZURE_MONITOR_CONN_STR,
			sampling_ratio=settings.SAMPLING_RATIO,
		)
		# Include trace/span ids in stdlib logging records
		LoggingInstrumentor().instrument(set_logging_format=True)
		FastAPIInstrumentor.instrument_app(app)
		_logger.info("Azure Monitor telemetry is enabled")
except Exception as telemetry_exc:
	# Telemetry must not block startup
	logging.getLogger(__name__).warning("Failed to initialize Azure Monitor telemetry: %s", telemetry_exc)

app.add_middleware(
	CORSMiddleware,
	allow_origins=["*"],
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)

# Normalize API prefix (must not end with '/')
_api_prefix = settings.API_PREFIX.rstrip("/")

# Specific routes first; the generic resource routes match any first segment
app.include_router(health_router)
app.include_router(impersonate_router, prefix=_api_prefix)
app.include_router(me_router, prefix=_api_prefix)
app.include_router(admin_router, prefix=_api_prefix)
app.include_router(dashboards_router, prefix=_api_prefix)
app.include_router(actions_router, prefix=_api_prefix)
app.include_router(resources_router, prefix=_api_prefix)

_prune_task: Optional[asyncio.Task] = None


def _trace_id() -> Optional[str]:
	_current_span = get_current_span()
	trace_id_int = _current_span.get_span_context().trace_id if _current_span else 0
	return f"{trace_id_int:032x}" if trace_id_int else None


# Structured request logging (includes trace correlation where available)
@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
	start_time = time.perf_counter()
	forwarded = request.headers.get("x-forwarded-for")
	client_ip: Optional[str] = forwarded or (request.client.host if request.client else None)
	user_agent: Optional[str] = request.headers.get("user-agent")
	status_code: Optional[int] = None
	try:
		response = await call_next(request)
		status_code = response.status_code
		return response
	except Exception:
		_logger.exception(
			"Unhandled exception during request",
			extra={
				"http.method": request.method,
				"http.route": request.url.path,
				"net.peer.ip": client_ip,
				"http.user_agent": user_agent,
				"trace_id": _trace_id(),
			},
		)
		raise
	finally:
		elapsed_ms = (time.perf_counter() - start_time) * 1000.0
		_logger.info(
			"HTTP request",
			extra={
				"http.method": request.method,
				"http.route": request.url.path,
				"http.status_code": status_code,
				"http.duration_ms": round(elapsed_ms, 2),
				"net.peer.ip": client_ip,
				"http.user_agent": user_agent,
				"trace_id": _trace_id(),
			},
		)


@app.on_event("startup")
async def on_startup() -> None:
	global _prune_task
	require_settings("DATABASE_URL", "JWT_SECRET")
	init_engine_and_session()
	validate_registry()
	validate_dashboards()
	limiter = get_rate_limiter()
	if isinstance(limiter.store, InMemoryRateLimitStore):
		_prune_task = asyncio.create_task(
			prune_periodically(limiter, settings.RATE_LIMIT_PRUNE_INTERVAL_SECONDS)
		)


@app.on_event("shutdown")
async def on_shutdown() -> None:
	global _prune_task
	if _prune_task is not None:
		_prune_task.cancel()
		_prune_task = None
	store = get_rate_limiter().store
	if hasattr(store, "close"):
		await store.close()
	await dispose_engine()


@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
	if exc.status_code >= 500:
		_logger.error(
			"Request failed",
			extra={
				"http.method": request.method,
				"http.route": request.url.path,
				"error.code": exc.code,
				"error": exc.message,
				"trace_id": _trace_id(),
			},
		)
	return error_response(exc)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
	fields = [str(error["loc"][-1]) for error in exc.errors() if error.get("loc")]
	message = f"Invalid parameter: {', '.join(dict.fromkeys(fields))}" if fields else "Invalid request"
	return error_response(ValidationException(message))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
	_logger.exception(
		"Unhandled exception",
		extra={
			"http.method": request.method,
			"http.route": request.url.path,
			"trace_id": _trace_id(),
		},
	)
	return JSONResponse(status_code=500, content=api_error(code="INTERNAL_SERVER_ERROR", message="An unexpected error occurred"))


@app.get("/")
async def root():
	return api_success(service=settings.APP_NAME, status="ok")
