"""FastAPI dependencies for authentication, session context and database sessions."""

from typing import Annotated, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.db import get_db
from app.core.rate_limit import get_rate_limiter
from app.core.security import decode_access_token
from app.repositories.resource_repository import ResourceRepository
from app.schemas.auth import SessionContext
from app.services.dashboard_service import DashboardService
from app.services.resource_service import ResourceService
from app.services.session_service import SessionService
from app.utils.exceptions import RateLimitedException, UnauthorizedException
from app.utils.list_params import IMPERSONATE_PARAM

IMPERSONATE_COOKIE = "impersonate_user_id"
IMPERSONATE_HEADER = "x-impersonate-user-id"

bearer_scheme = HTTPBearer(auto_error=False)


async def get_auth_user_id(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
) -> str:
    """Return the auth user id (``sub``) of a verified bearer token."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise UnauthorizedException("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise UnauthorizedException("Could not validate credentials")

    subject: Optional[str] = payload.get("sub")
    if not subject:
        raise UnauthorizedException("Could not validate credentials")
    return subject


async def get_session_service(db: Annotated[AsyncSession, Depends(get_db)]) -> SessionService:
    return SessionService(db)


async def get_real_session_context(
    auth_user_id: Annotated[str, Depends(get_auth_user_id)],
    service: Annotated[SessionService, Depends(get_session_service)],
) -> SessionContext:
    return await service.get_real_context(auth_user_id)


def requested_impersonation(request: Request) -> Optional[str]:
    """Impersonation target from query, header or cookie, in that order."""
    for value in (
        request.query_params.get(IMPERSONATE_PARAM),
        request.headers.get(IMPERSONATE_HEADER),
        request.cookies.get(IMPERSONATE_COOKIE),
    ):
        if value and value.strip():
            return value.strip()
    return None


async def get_session_context(
    request: Request,
    real: Annotated[SessionContext, Depends(get_real_session_context)],
    service: Annotated[SessionService, Depends(get_session_service)],
) -> SessionContext:
    return await service.get_effective_context(real, requested_impersonation(request))


async def get_resource_repository(
    db: Annotated[AsyncSession, Depends(get_db)],
    session: Annotated[SessionContext, Depends(get_session_context)],
) -> ResourceRepository:
    """Repository scoped to the effective caller unless scoping is switched off."""
    return ResourceRepository(db, session if settings.AUTH_SCOPING_ENABLED else None)


async def get_resource_service(
    repository: Annotated[ResourceRepository, Depends(get_resource_repository)],
) -> ResourceService:
    return ResourceService(repository)


async def get_dashboard_service(
    repository: Annotated[ResourceRepository, Depends(get_resource_repository)],
) -> DashboardService:
    return DashboardService(repository)


def client_identifier(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


async def rate_limit(request: Request) -> None:
    """Reject the request with 429 once the caller exceeds the window budget."""
    limiter = get_rate_limiter()
    if not await limiter.allow(client_identifier(request)):
        raise RateLimitedException()


# Convenience type aliases
DB = Annotated[AsyncSession, Depends(get_db)]
RealSession = Annotated[SessionContext, Depends(get_real_session_context)]
Session = Annotated[SessionContext, Depends(get_session_context)]
Sessions = Annotated[SessionService, Depends(get_session_service)]
Resources = Annotated[ResourceService, Depends(get_resource_service)]
Dashboards = Annotated[DashboardService, Depends(get_dashboard_service)]
RateLimited = Depends(rate_limit)
