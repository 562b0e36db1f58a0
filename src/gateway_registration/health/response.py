"""Health response body, endpoint and ASGI dispatcher."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import datetime

from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp, Receive, Scope, Send

HealthEndpoint = Callable[[Request], Awaitable[Response]]


def build_health_payload(
    service_name: str,
    now: datetime | None = None,
) -> dict[str, str]:
    """Body served on the health path; ``time`` is RFC 3339."""
    moment = now or datetime.now().astimezone()
    return {
        "status": "ok",
        "service": service_name,
        "time": moment.isoformat(timespec="seconds"),
    }


def make_health_endpoint(service_name: str) -> HealthEndpoint:
    """Build a Starlette/FastAPI compatible endpoint for the health route."""

    async def health(request: Request) -> JSONResponse:
        return JSONResponse(build_health_payload(service_name))

    return health


class HealthDispatchApp:
    """ASGI app answering GET ``path`` and passing everything else through.

    Wrapped applications keep receiving every other request, including
    lifespan and websocket scopes, unchanged.
    """

    def __init__(self, path: str, service_name: str, app: ASGIApp) -> None:
        self.path = path
        self.service_name = service_name
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if (
            scope["type"] == "http"
            and scope.get("path") == self.path
            and scope.get("method") in ("GET", "HEAD")
        ):
            response = JSONResponse(build_health_payload(self.service_name))
            await response(scope, receive, send)
            return
        await self.app(scope, receive, send)
