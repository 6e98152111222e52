"""
cachestack — Configuration Loader

Loads and validates configuration from environment variables and .env files.
Provides a singleton configuration instance for the runtime.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import ValidationError

from ..errors import ConfigurationError
from .schemas import DEFAULT_LIFETIME, CacheStackConfig

logger = logging.getLogger(__name__)

_config_instance: CacheStackConfig | None = None


def _parse_stack(raw: str | None) -> list[Any]:
    """Parse CACHE_STACK, a JSON list of {"driver": ..., "params": {...}} objects."""
    if not raw:
        return []

    try:
        stack = json.loads(raw)
    except ValueError as e:
        raise ConfigurationError(
            f"CACHE_STACK is not valid JSON: {e}",
            details={"env": "CACHE_STACK", "error": str(e)},
        ) from e

    if not isinstance(stack, list):
        raise ConfigurationError(
            "CACHE_STACK must be a JSON list of driver entries",
            details={"env": "CACHE_STACK", "type": type(stack).__name__},
        )
    return stack


def load_config(
    env_file: str | None = None,
    reload: bool = False,
) -> CacheStackConfig:
    """
    Load configuration from environment variables and .env file.

    Args:
        env_file: Path to .env file (default: .env in the working directory)
        reload: Force reload even if config already loaded

    Returns:
        Validated CacheStackConfig instance

    Raises:
        ConfigurationError: If configuration is invalid
    """
    global _config_instance

    if _config_instance is not None and not reload:
        return _config_instance

    env_path = Path(env_file) if env_file else Path.cwd() / ".env"

    if env_path.exists():
        logger.info(f"Loading environment from {env_path}")
        try:
            load_dotenv(env_path, override=True)
        except Exception as e:
            logger.error(
                f"Failed to load .env file from {env_path}: {e}",
                extra={"path": str(env_path), "error": str(e)},
                exc_info=True,
            )
            raise ConfigurationError(
                f"Failed to load environment file: {e}",
                details={"path": str(env_path), "error": str(e)},
            ) from e
    else:
        logger.debug("No .env file found, using environment variables only")

    try:
        # Redis if REDIS_URL is set, else memory, unless CACHE_DRIVER says otherwise
        redis_url = os.getenv("REDIS_URL")
        default_driver = "redis" if redis_url else "memory"

        config_dict = {
            "environment": os.getenv("ENVIRONMENT", "development"),
            "log_level": os.getenv("LOG_LEVEL", "INFO").upper(),
            "cache": {
                "driver": os.getenv("CACHE_DRIVER", default_driver),
                "lifetime": int(os.getenv("CACHE_LIFETIME", str(DEFAULT_LIFETIME))),
                "namespace": os.getenv("CACHE_NAMESPACE", "cachestack"),
                "max_size": int(os.getenv("CACHE_MAX_SIZE", "1000")),
                "redis_url": redis_url,
                "redis_max_connections": int(os.getenv("REDIS_MAX_CONNECTIONS", "10")),
                "redis_socket_timeout": int(os.getenv("REDIS_SOCKET_TIMEOUT", "5")),
                "sql_url": os.getenv("CACHE_SQL_URL"),
                "stack": _parse_stack(os.getenv("CACHE_STACK")),
            },
        }

        _config_instance = CacheStackConfig(**config_dict)  # type: ignore[arg-type]
        logger.info(
            f"Configuration loaded successfully (environment: {_config_instance.environment})",
            extra={"environment": _config_instance.environment, "cache_driver": _config_instance.cache.driver},
        )
        return _config_instance
    except ConfigurationError:
        raise
    except ValidationError as e:
        logger.error(
            f"Configuration validation failed: {e}",
            extra={"validation_errors": e.errors()},
            exc_info=True,
        )
        raise ConfigurationError(
            "Configuration validation failed. Check your environment variables and configuration.",
            details={"validation_errors": e.errors()},
        ) from e
    except Exception as e:
        logger.error(
            f"Unexpected error loading configuration: {e}",
            extra={"error": str(e)},
            exc_info=True,
        )
        raise ConfigurationError(
            f"Failed to load configuration: {e}",
            details={"error": str(e)},
        ) from e


def get_config() -> CacheStackConfig:
    """
    Get the current configuration instance.

    Loads it from the environment on first access.
    """
    if _config_instance is None:
        return load_config()

    return _config_instance


def reload_config(env_file: str | None = None) -> CacheStackConfig:
    """
    Force reload configuration.

    Args:
        env_file: Optional path to .env file

    Returns:
        Reloaded CacheStackConfig instance
    """
    return load_config(env_file=env_file, reload=True)
