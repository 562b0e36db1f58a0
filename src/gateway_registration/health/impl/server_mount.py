from __future__ import annotations

import logging
from typing import override

import uvicorn

from ...config import DEFAULT_HEALTH_PATH
from ...errors import HealthIntegrationError
from ..protocol import BaseHealthMount
from ..response import HealthDispatchApp

_LOGGER = logging.getLogger(__name__)


class ServerHealthMount(BaseHealthMount):
    """Mount the health route on a uvicorn server owned by the caller.

    The server's ASGI application is replaced by a dispatcher that answers
    the health path and hands every other request to the previous
    application. Works before the server starts (``config.app``) and after
    it has loaded its app (``config.loaded_app``; new connections pick the
    dispatcher up). Stopping the server stays with the caller.
    """

    def __init__(
        self,
        server: uvicorn.Server | None,
        service_name: str,
        path: str = DEFAULT_HEALTH_PATH,
    ) -> None:
        super().__init__(service_name, path)
        self._server = server

    @property
    def server(self) -> uvicorn.Server | None:
        return self._server

    @override
    def _mount(self) -> None:
        if self._server is None:
            raise HealthIntegrationError("HTTP server is None")

        config = self._server.config
        attr = "loaded_app" if getattr(config, "loaded", False) else "app"
        existing = getattr(config, attr, None)
        if existing is None or not callable(existing):
            raise HealthIntegrationError(
                "HTTP server has no ASGI application to wrap"
            )
        if isinstance(existing, HealthDispatchApp) and existing.path == self.path:
            return

        setattr(
            config,
            attr,
            HealthDispatchApp(self.path, self.service_name, existing),
        )
        _LOGGER.info(
            "Health route mounted on external server: service=%s path=%s",
            self.service_name,
            self.path,
        )

    @override
    def _unmount(self, timeout: float) -> None:
        _LOGGER.info("External server is managed by its owner, skip shutdown")
