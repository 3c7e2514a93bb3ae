from __future__ import annotations

from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import require_settings, settings

ASYNC_SCHEME = "postgresql+asyncpg://"

# Schemes the hosted Postgres service and common tooling hand out
_SYNC_SCHEMES = ("postgres://", "postgresql://", "postgresql+psycopg2://", "postgresql+psycopg://")

_engine: Optional[AsyncEngine] = None
_SessionLocal: Optional[async_sessionmaker[AsyncSession]] = None


def to_async_url(url: str) -> str:
	"""Rewrite a Postgres URL to the asyncpg driver; other URLs pass through."""
	for scheme in _SYNC_SCHEMES:
		if url.startswith(scheme):
			return ASYNC_SCHEME + url[len(scheme):]
	return url


def init_engine_and_session() -> None:
	global _engine, _SessionLocal
	if _engine is not None:
		return
	require_settings("DATABASE_URL")
	_engine = create_async_engine(
		to_async_url(settings.DATABASE_URL),
		pool_pre_ping=True,
		pool_size=settings.DB_POOL_SIZE,
		echo=settings.DEBUG,
	)
	_SessionLocal = async_sessionmaker(bind=_engine, expire_on_commit=False)


async def dispose_engine() -> None:
	global _engine, _SessionLocal
	if _engine is None:
		return
	await _engine.dispose()
	_engine = None
	_SessionLocal = None


async def get_db() -> AsyncGenerator[AsyncSession, None]:
	"""Request-scoped session; the engine is created on first use."""
	if _SessionLocal is None:
		init_engine_and_session()
	assert _SessionLocal is not None
	async with _SessionLocal() as session:
		yield session
