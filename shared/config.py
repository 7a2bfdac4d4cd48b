"""
Shared configuration management for the TinySteps backend.
"""

from typing import Optional

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEV_JWT_SECRET = "local-development-secret-change-me-please"
MIN_JWT_SECRET_LENGTH = 32  # bytes, minimum recommended HMAC-SHA256 key length


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="TINYSTEPS_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = Field(default="local", description="Deployment environment tag")
    log_level: str = Field(default="info")

    # Key-value store
    redis_url: str = Field(default="redis://localhost:6379/0")

    # Generation provider
    openai_api_key: SecretStr = Field(default=SecretStr(""))
    openai_base_url: str = Field(default="https://api.openai.com/v1")
    openai_model: str = Field(default="gpt-4o-mini")
    openai_timeout_seconds: float = Field(default=30.0, gt=0)

    # Security
    jwt_secret: SecretStr = Field(default=SecretStr(DEV_JWT_SECRET))
    token_validity_days: int = Field(default=365, ge=1)

    # Rate limiting
    free_daily_limit: int = Field(default=3, ge=1)
    rate_limit_ttl_seconds: int = Field(default=86400 + 3600, ge=1)

    # Response cache
    cache_ttl_seconds: int = Field(default=86400, ge=1)

    @model_validator(mode="after")
    def _require_real_secret(self):
        if self.env in ("local", "test"):
            return self
        secret = self.jwt_secret.get_secret_value()
        if secret == DEV_JWT_SECRET:
            raise ValueError("TINYSTEPS_JWT_SECRET must be set outside local/test environments")
        if len(secret.encode("utf-8")) < MIN_JWT_SECRET_LENGTH:
            raise ValueError(f"TINYSTEPS_JWT_SECRET must be at least {MIN_JWT_SECRET_LENGTH} bytes")
        return self


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str = "decomposer"
    port: int = 8787
    host: str = "0.0.0.0"


def get_config(service_name: str, port: Optional[int] = None, **overrides) -> ServiceConfig:
    """Build the configuration for a service once at process start."""
    if port is not None:
        overrides.setdefault("port", port)
    return ServiceConfig(service_name=service_name, **overrides)
