"""Gateway registration error definitions."""

from __future__ import annotations

from enum import Enum
from typing import ClassVar


class ErrorCategory(str, Enum):
    """Stable tags for wrapped operational failures."""

    CREATE_UPSTREAM = "create-upstream-failed"
    DELETE_NODE = "delete-node-failed"
    START_HEALTH_CHECK = "start-health-check-failed"
    SHUTDOWN = "shutdown-failed"
    CREATE_ROUTE = "create-route-failed"
    DELETE_ROUTE = "delete-route-failed"
    DELETE_UPSTREAM = "delete-upstream-failed"


class GatewayRegistrationError(Exception):
    """Base exception for gateway registration errors."""

    category: ClassVar[ErrorCategory | None] = None


class ConfigurationError(GatewayRegistrationError, ValueError):
    """Missing or invalid configuration. Never retried."""


class TransportError(GatewayRegistrationError):
    """Network failure, unexpected HTTP status or malformed admin response."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        if status_code is not None:
            message = f"{message} (status={status_code}, body={body!r})"
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class HealthIntegrationError(GatewayRegistrationError):
    """Health route could not be mounted or served."""


class CreateUpstreamError(GatewayRegistrationError):
    category = ErrorCategory.CREATE_UPSTREAM


class DeleteNodeError(GatewayRegistrationError):
    category = ErrorCategory.DELETE_NODE


class StartHealthCheckError(GatewayRegistrationError):
    category = ErrorCategory.START_HEALTH_CHECK


class ShutdownError(GatewayRegistrationError):
    category = ErrorCategory.SHUTDOWN


class CreateRouteError(GatewayRegistrationError):
    category = ErrorCategory.CREATE_ROUTE


class DeleteRouteError(GatewayRegistrationError):
    category = ErrorCategory.DELETE_ROUTE


class DeleteUpstreamError(GatewayRegistrationError):
    category = ErrorCategory.DELETE_UPSTREAM
