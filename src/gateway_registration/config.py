"""Gateway registration configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from .errors import ConfigurationError
from .models import DEFAULT_UPSTREAM_TYPE

DEFAULT_HEALTH_PATH = "/health"
DEFAULT_SHUTDOWN_TIMEOUT = 3.0

_TRUE_VALUES = frozenset({"1", "true", "yes", "y", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "n", "off"})


def _env_value(key: str) -> str | None:
    value = os.getenv(key)
    if value is None or not value.strip():
        return None
    return value.strip()


def env_str(key: str, default: str) -> str:
    """String variable; unset or blank yields ``default``."""
    value = _env_value(key)
    return default if value is None else value


def env_bool(key: str, default: bool) -> bool:
    """Boolean variable; unknown spellings are rejected.

    Raises:
        ConfigurationError: If the value is not a recognised boolean
    """
    value = _env_value(key)
    if value is None:
        return default
    lowered = value.lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"invalid boolean for {key}: {value!r}")


def env_int(key: str, default: int) -> int:
    value = _env_value(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationError(f"invalid integer for {key}: {value!r}") from e


def env_float(key: str, default: float) -> float:
    value = _env_value(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError as e:
        raise ConfigurationError(f"invalid number for {key}: {value!r}") from e


@dataclass(frozen=True, slots=True)
class UpstreamConfig:
    """Upstream the service joins."""

    # Custom upstream id; derived from name/host/port when empty
    id: str = field(default_factory=lambda: env_str("GATEWAY_UPSTREAM_ID", ""))

    # Load-balancing algorithm tag
    type: str = field(
        default_factory=lambda: env_str(
            "GATEWAY_UPSTREAM_TYPE", DEFAULT_UPSTREAM_TYPE
        )
    )


@dataclass(frozen=True, slots=True)
class HealthCheckConfig:
    """Health endpoint exposed to the gateway's active checks."""

    enabled: bool = field(
        default_factory=lambda: env_bool("HEALTH_CHECK_ENABLED", False)
    )

    path: str = field(
        default_factory=lambda: env_str(
            "HEALTH_CHECK_PATH", DEFAULT_HEALTH_PATH
        )
    )


@dataclass(frozen=True, slots=True)
class AdminClientSettings:
    """Timeout and retry policy for admin API calls."""

    # Per-request timeout in seconds
    timeout: float = field(
        default_factory=lambda: env_float("GATEWAY_ADMIN_TIMEOUT", 5.0)
    )

    # Total attempts per request, first one included
    retry_count: int = field(
        default_factory=lambda: env_int("GATEWAY_ADMIN_RETRY_COUNT", 3)
    )

    # Exponential backoff bounds in seconds
    retry_wait: float = 0.5
    retry_max_wait: float = 2.0


@dataclass(frozen=True, slots=True)
class RegistrationConfig:
    """Configuration for registering a service with the gateway."""

    # Master switch; when off the service object is inert
    enabled: bool = field(
        default_factory=lambda: env_bool(
            "GATEWAY_REGISTRATION_ENABLED", True
        )
    )

    # Service name (required)
    name: str = field(default_factory=lambda: env_str("SERVICE_NAME", ""))

    # Address the gateway uses to reach this instance
    host: str = field(default_factory=lambda: env_str("SERVICE_HOST", ""))

    # Service port (required, positive)
    port: int = field(
        default_factory=lambda: env_int("SERVICE_PORT", 0)
    )

    upstream: UpstreamConfig = field(default_factory=UpstreamConfig)

    # Gateway admin API base address, e.g. http://gateway:9180/apisix/admin
    admin_api: str = field(
        default_factory=lambda: env_str("GATEWAY_ADMIN_API", "")
    )

    # Value for the X-API-KEY header
    api_key: str = field(
        default_factory=lambda: env_str("GATEWAY_API_KEY", "")
    )

    health: HealthCheckConfig = field(default_factory=HealthCheckConfig)

    client: AdminClientSettings = field(default_factory=AdminClientSettings)

    # Deadline for health teardown after a termination signal
    shutdown_timeout: float = field(
        default_factory=lambda: env_float(
            "GATEWAY_SHUTDOWN_TIMEOUT", DEFAULT_SHUTDOWN_TIMEOUT
        )
    )


def load_config(*, dotenv: bool = True) -> RegistrationConfig:
    """Load registration configuration from the environment.

    Args:
        dotenv: Read a ``.env`` file first (existing variables win)
    """
    if dotenv:
        load_dotenv()
    return RegistrationConfig()
