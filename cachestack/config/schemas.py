"""
cachestack — Configuration Schemas

Defines typed configuration models using Pydantic for validation and type safety.
All configuration must be defined here and validated at startup.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_LIFETIME = 86400


class Environment(str, Enum):
    """Runtime environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TEST = "test"


class DriverKind(str, Enum):
    """Supported cache drivers."""

    MEMORY = "memory"
    REDIS = "redis"  # Requires redis
    SQL = "sql"  # Requires sqlalchemy + an async DB driver
    NULL = "null"
    STACK = "stack"


class LogLevel(str, Enum):
    """Log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class DriverSpec(BaseModel):
    """One entry of a cache stack: which driver to build and with what params."""

    driver: DriverKind = Field(description="Driver kind")
    params: dict[str, Any] = Field(default_factory=dict, description="Keyword arguments for the driver")


class CacheConfig(BaseModel):
    """Cache configuration."""

    driver: DriverKind = Field(default=DriverKind.MEMORY, description="Cache driver to use")
    lifetime: int = Field(
        default=DEFAULT_LIFETIME,
        ge=0,
        description="Default lifetime in seconds (0 = no expiry)",
    )
    namespace: str = Field(default="cachestack", description="Cache key namespace/prefix")
    max_size: int = Field(default=1000, ge=1, description="Max cache entries (memory driver)")

    # Redis-specific settings (only used when driver=redis)
    redis_url: str | None = Field(default=None, validate_default=True, description="Redis connection URL")
    redis_max_connections: int = Field(default=10, ge=1, description="Redis connection pool size")
    redis_socket_timeout: int = Field(default=5, ge=1, description="Redis socket timeout in seconds")

    # SQL-specific settings (only used when driver=sql)
    sql_url: str | None = Field(default=None, description="Async SQLAlchemy database URL")

    # Stack-specific settings (only used when driver=stack)
    stack: list[DriverSpec] = Field(
        default_factory=list,
        validate_default=True,
        description=(
            "Drivers in order of priority; the last entry is the master. "
            "Members inherit namespace, max_size, redis_* and sql_url from this config unless set in params"
        ),
    )

    @field_validator("redis_url")
    @classmethod
    def validate_redis_url(cls, v: str | None, info: Any) -> str | None:
        """Ensure redis_url is provided when driver is redis."""
        if info.data.get("driver") == DriverKind.REDIS and not v:
            raise ValueError("redis_url is required when cache driver is 'redis'")
        return v

    @field_validator("stack")
    @classmethod
    def validate_stack(cls, v: list[DriverSpec], info: Any) -> list[DriverSpec]:
        """Ensure a stack driver has at least one member."""
        if info.data.get("driver") == DriverKind.STACK and not v:
            raise ValueError("stack must list at least one driver when cache driver is 'stack'")
        return v


class CacheStackConfig(BaseModel):
    """Root configuration for cachestack."""

    environment: Environment = Field(default=Environment.DEVELOPMENT, description="Runtime environment")
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")

    cache: CacheConfig = Field(default_factory=CacheConfig)

    model_config = ConfigDict(use_enum_values=True, validate_assignment=True)
