from __future__ import annotations

import uvicorn
from starlette.applications import Starlette

from .impl.router_mount import FastAPIHealthMount, RegisterRoute, RouterHealthMount
from .impl.self_hosted import SelfHostedHealthServer
from .impl.server_mount import ServerHealthMount
from .protocol import HealthMountProtocol

HealthRouter = Starlette | RegisterRoute


def build_health_mount(
    service_name: str,
    port: int,
    path: str,
    *,
    router: HealthRouter | None = None,
    http_server: uvicorn.Server | None = None,
) -> HealthMountProtocol:
    """Pick the health mount for the supplied integration options.

    Priority: router/framework adapter, then an externally owned server,
    then a self-hosted listener on ``port``.
    """
    if router is not None:
        if isinstance(router, Starlette):
            return FastAPIHealthMount(router, service_name, path)
        return RouterHealthMount(router, service_name, path)
    if http_server is not None:
        return ServerHealthMount(http_server, service_name, path)
    return SelfHostedHealthServer(service_name, port, path)
