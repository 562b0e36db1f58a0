from __future__ import annotations

import logging
import threading
import time
from typing import override

import uvicorn
from fastapi import FastAPI

from ...config import DEFAULT_HEALTH_PATH
from ...errors import HealthIntegrationError
from ..protocol import BaseHealthMount

_LOGGER = logging.getLogger(__name__)


class SelfHostedHealthServer(BaseHealthMount):
    """Health listener owned by this package.

    Serves only the health path from a FastAPI app run by uvicorn on a
    daemon thread, bound to the service's own port.
    """

    owns_listener = True

    def __init__(
        self,
        service_name: str,
        port: int,
        path: str = DEFAULT_HEALTH_PATH,
        *,
        bind_host: str = "0.0.0.0",
        startup_timeout: float = 5.0,
    ) -> None:
        super().__init__(service_name, path)
        self._port = port
        self._bind_host = bind_host
        self._startup_timeout = startup_timeout
        self._server: uvicorn.Server | None = None
        self._thread: threading.Thread | None = None

    @property
    def port(self) -> int:
        return self._port

    def build_app(self) -> FastAPI:
        app = FastAPI(
            title=f"{self.service_name} health",
            docs_url=None,
            redoc_url=None,
            openapi_url=None,
        )
        app.add_api_route(
            self.path,
            self.endpoint,
            methods=["GET"],
            include_in_schema=False,
        )
        return app

    @override
    def _mount(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            raise HealthIntegrationError(
                f"health server already running on port {self._port}"
            )

        config = uvicorn.Config(
            self.build_app(),
            host=self._bind_host,
            port=self._port,
            lifespan="off",
            access_log=False,
            log_config=None,
        )
        server = uvicorn.Server(config)
        thread = threading.Thread(
            target=self._serve,
            args=(server,),
            name=f"health-server-{self._port}",
            daemon=True,
        )
        self._server = server
        self._thread = thread
        thread.start()

        deadline = time.monotonic() + self._startup_timeout
        while not server.started:
            if not thread.is_alive():
                raise HealthIntegrationError(
                    f"health server failed to listen on "
                    f"{self._bind_host}:{self._port}"
                )
            if time.monotonic() >= deadline:
                server.should_exit = True
                raise HealthIntegrationError(
                    f"health server did not start within "
                    f"{self._startup_timeout}s"
                )
            time.sleep(0.05)

        _LOGGER.info(
            "Health server started: service=%s port=%s path=%s",
            self.service_name,
            self._port,
            self.path,
        )

    @override
    def _unmount(self, timeout: float) -> None:
        server, thread = self._server, self._thread
        if server is None or thread is None:
            return
        server.config.timeout_graceful_shutdown = max(int(timeout), 1)
        server.should_exit = True
        thread.join(timeout)
        if thread.is_alive():
            raise HealthIntegrationError(
                f"health server did not stop within {timeout}s"
            )
        self._server = None
        self._thread = None
        _LOGGER.info("Health server stopped: port=%s", self._port)

    def _serve(self, server: uvicorn.Server) -> None:
        try:
            server.run()
        except SystemExit:
            # uvicorn exits on bind failure
            _LOGGER.error(
                "Health server exited: %s:%s", self._bind_host, self._port
            )
        except Exception:
            _LOGGER.exception("Health server crashed: port=%s", self._port)
