"""Public API entry point for gateway_registration.

Use this module for supported imports.
"""

from .admin import AdminAPIClient, MemoryGateway
from .config import (
    AdminClientSettings,
    HealthCheckConfig,
    RegistrationConfig,
    UpstreamConfig,
    load_config,
)
from .errors import (
    ConfigurationError,
    CreateRouteError,
    CreateUpstreamError,
    DeleteNodeError,
    DeleteRouteError,
    DeleteUpstreamError,
    ErrorCategory,
    GatewayRegistrationError,
    HealthIntegrationError,
    ShutdownError,
    StartHealthCheckError,
    TransportError,
)
from .health import (
    FastAPIHealthMount,
    HealthMountProtocol,
    RouterHealthMount,
    SelfHostedHealthServer,
    ServerHealthMount,
    build_health_mount,
    build_health_payload,
)
from .lifecycle import RegistrationService, TerminationWatcher
from .logging import configure_logging
from .models import (
    RegistrationState,
    ServiceIdentity,
    UpstreamDocument,
    UpstreamRef,
    derive_upstream_id,
)
from .reconciler import UpstreamReconciler

__all__ = [
    # Config
    "AdminClientSettings",
    "HealthCheckConfig",
    "RegistrationConfig",
    "UpstreamConfig",
    "load_config",
    # Models
    "RegistrationState",
    "ServiceIdentity",
    "UpstreamDocument",
    "UpstreamRef",
    "derive_upstream_id",
    # Admin API
    "AdminAPIClient",
    "MemoryGateway",
    "UpstreamReconciler",
    # Health
    "HealthMountProtocol",
    "SelfHostedHealthServer",
    "ServerHealthMount",
    "RouterHealthMount",
    "FastAPIHealthMount",
    "build_health_mount",
    "build_health_payload",
    # Lifecycle
    "RegistrationService",
    "TerminationWatcher",
    # Logging
    "configure_logging",
    # Errors
    "GatewayRegistrationError",
    "ErrorCategory",
    "ConfigurationError",
    "TransportError",
    "HealthIntegrationError",
    "CreateUpstreamError",
    "DeleteNodeError",
    "StartHealthCheckError",
    "ShutdownError",
    "CreateRouteError",
    "DeleteRouteError",
    "DeleteUpstreamError",
]
