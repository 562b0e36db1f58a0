from __future__ import annotations

import logging
from collections.abc import Callable
from typing import override

from starlette.applications import Starlette

from ...config import DEFAULT_HEALTH_PATH
from ...errors import HealthIntegrationError
from ..protocol import BaseHealthMount
from ..response import HealthEndpoint

_LOGGER = logging.getLogger(__name__)

RegisterRoute = Callable[[str, HealthEndpoint], None]


class RouterHealthMount(BaseHealthMount):
    """Mount the health route through a caller-supplied callback.

    ``register_route(path, endpoint)`` is invoked once on ``start``; any
    exception it raises is reported as a ``HealthIntegrationError``. Suits
    any router that can add a GET route for a Starlette-style endpoint.
    """

    def __init__(
        self,
        register_route: RegisterRoute | None,
        service_name: str,
        path: str = DEFAULT_HEALTH_PATH,
    ) -> None:
        super().__init__(service_name, path)
        self._register_route = register_route

    @override
    def _mount(self) -> None:
        if self._register_route is None:
            raise HealthIntegrationError("register_route callback is None")
        try:
            self._register_route(self.path, self.endpoint)
        except HealthIntegrationError:
            raise
        except Exception as e:
            raise HealthIntegrationError(
                f"failed to register health route {self.path}: {e}"
            ) from e
        _LOGGER.info(
            "Health route registered on custom router: service=%s path=%s",
            self.service_name,
            self.path,
        )

    @override
    def _unmount(self, timeout: float) -> None:
        _LOGGER.info("Custom router is managed by its owner, skip shutdown")


class FastAPIHealthMount(RouterHealthMount):
    """Router mount for FastAPI (or plain Starlette) applications."""

    def __init__(
        self,
        app: Starlette | None,
        service_name: str,
        path: str = DEFAULT_HEALTH_PATH,
    ) -> None:
        register = None if app is None else self._adder(app)
        super().__init__(register, service_name, path)
        self._app = app

    @override
    def _mount(self) -> None:
        if self._app is None:
            raise HealthIntegrationError("application is None")
        super()._mount()

    @staticmethod
    def _adder(app: Starlette) -> RegisterRoute:
        def register(path: str, endpoint: HealthEndpoint) -> None:
            add_api_route = getattr(app, "add_api_route", None)
            if add_api_route is not None:
                add_api_route(
                    path, endpoint, methods=["GET"], include_in_schema=False
                )
                return
            app.add_route(path, endpoint, methods=["GET"],
                          include_in_schema=False)

        return register
