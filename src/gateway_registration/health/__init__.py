from .factory import HealthRouter, build_health_mount
from .impl.router_mount import FastAPIHealthMount, RegisterRoute, RouterHealthMount
from .impl.self_hosted import SelfHostedHealthServer
from .impl.server_mount import ServerHealthMount
from .protocol import BaseHealthMount, HealthMountProtocol
from .response import (
    HealthDispatchApp,
    HealthEndpoint,
    build_health_payload,
    make_health_endpoint,
)

__all__ = [
    # Protocol
    "BaseHealthMount",
    "HealthMountProtocol",
    "HealthEndpoint",
    # Response
    "HealthDispatchApp",
    "build_health_payload",
    "make_health_endpoint",
    # Implementation
    "SelfHostedHealthServer",
    "ServerHealthMount",
    "RouterHealthMount",
    "FastAPIHealthMount",
    "RegisterRoute",
    # Factory
    "HealthRouter",
    "build_health_mount",
]
