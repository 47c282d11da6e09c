from __future__ import annotations

from uuid import uuid4

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="AWID_", env_file=".env", extra="ignore")

    app_name: str = "awid"
    env: str = "dev"

    # Instance ID for distributed deployments
    instance_id: str = Field(default_factory=lambda: str(uuid4())[:8])

    # Redis
    redis_url: str = Field(default="redis://localhost:6379/0", validation_alias="REDIS_URL")
    redis_connect_attempts: int = Field(default=3, validation_alias="REDIS_CONNECT_ATTEMPTS")
    redis_retry_delay_ms: int = Field(default=200, validation_alias="REDIS_RETRY_DELAY_MS")
    redis_retry_delay_max_ms: int = Field(
        default=2000, validation_alias="REDIS_RETRY_DELAY_MAX_MS"
    )

    # Cache-aside
    cache_prefix: str = Field(default="cache", validation_alias="CACHE_PREFIX")
    cache_default_ttl: int = Field(default=300, validation_alias="CACHE_DEFAULT_TTL")  # 5 min

    # Distributed locks
    lock_prefix: str = Field(default="lock", validation_alias="LOCK_PREFIX")
    lock_default_ttl_ms: int = Field(default=30000, validation_alias="LOCK_DEFAULT_TTL_MS")

    # Rate Limiting
    rate_limit_prefix: str = Field(default="ratelimit", validation_alias="RATE_LIMIT_PREFIX")
    enable_rate_limiting: bool = Field(default=True, validation_alias="ENABLE_RATE_LIMITING")
    rate_limit_requests: int = Field(default=100, validation_alias="RATE_LIMIT_REQUESTS")
    rate_limit_window: int = Field(default=60, validation_alias="RATE_LIMIT_WINDOW")

    # Live notifications
    broadcast_channel: str = Field(default="ws:broadcast", validation_alias="BROADCAST_CHANNEL")

    # Observability
    log_level: str = "INFO"
    log_json: bool = Field(default=True, validation_alias="LOG_JSON")


settings = Settings()
