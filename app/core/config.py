from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
	model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

	APP_NAME: str = Field(default="Warehouse Admin API")
	DEBUG: bool = Field(default=False)
	API_PREFIX: str = Field(default="/api")

	# Hosted Postgres service
	DATABASE_URL: str = Field(default="")
	DB_POOL_SIZE: int = Field(default=5)

	# Auth / JWT issued by the hosted auth service
	JWT_SECRET: str = Field(default="")
	JWT_ALGORITHM: str = Field(default="HS256")
	JWT_AUDIENCE: str = Field(default="authenticated")

	# Row scoping and versioned-update RPCs
	AUTH_SCOPING_ENABLED: bool = Field(default=True)
	SCD2_USE_V3: bool = Field(default=True)

	# Rate limiting
	RATE_LIMIT_MAX_REQUESTS: int = Field(default=60)
	RATE_LIMIT_WINDOW_MS: int = Field(default=60_000)
	RATE_LIMIT_PRUNE_INTERVAL_SECONDS: float = Field(default=60.0)
	RATE_LIMIT_BACKEND: str = Field(default="memory")
	REDIS_URL: str = Field(default="redis://localhost:6379/0")

	# Dashboards
	DASHBOARD_MAX_ROWS: int = Field(default=5000)

	# Azure Monitor / Application Insights
	AZURE_MONITOR_CONN_STR: str = Field(default="")
	ENABLE_APP_INSIGHTS: bool = Field(default=False)
	SAMPLING_RATIO: float = Field(default=1.0)


settings = Settings()


def require_settings(*names: str) -> None:
	"""Fail fast when a required setting is missing or blank."""
	missing = [name for name in names if not str(getattr(settings, name, "") or "").strip()]
	if missing:
		raise RuntimeError(
			f"{', '.join(missing)} is not configured. Set it in the environment or .env file."
		)
