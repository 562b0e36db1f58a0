"""Register a service instance with the gateway and keep it registered."""

from __future__ import annotations

import logging
import threading

import httpx
import uvicorn

from ..admin.client import AdminAPIClient
from ..config import (
    DEFAULT_HEALTH_PATH,
    DEFAULT_SHUTDOWN_TIMEOUT,
    RegistrationConfig,
    load_config,
)
from ..errors import (
    ConfigurationError,
    CreateRouteError,
    CreateUpstreamError,
    DeleteNodeError,
    DeleteRouteError,
    DeleteUpstreamError,
    HealthIntegrationError,
    ShutdownError,
    StartHealthCheckError,
)
from ..health import HealthMountProtocol, HealthRouter, build_health_mount
from ..logging import get_event_logger
from ..models import (
    DEFAULT_HOST,
    RegistrationState,
    ServiceIdentity,
    UpstreamRef,
    derive_upstream_id,
)
from ..reconciler import UpstreamReconciler
from .signals import TerminationWatcher

_LOGGER = logging.getLogger(__name__)
_EVENT_LOGGER = get_event_logger()


class RegistrationService:
    """Lifecycle of one service instance behind a gateway upstream.

    Construction validates the configuration and binds a health mount but
    performs no network I/O. ``register``, ``start_health_check``,
    ``deregister`` and ``shutdown`` each hold the instance lock for their
    whole duration, so they never interleave.

    State: ``UNREGISTERED --register--> REGISTERED --deregister-->
    DEREGISTERED``. A failed call leaves the state unchanged; registering
    again after deregistration is allowed.

    Example:
        >>> service = RegistrationService(
        ...     RegistrationConfig(
        ...         name="orders",
        ...         host="10.0.0.5",
        ...         port=9000,
        ...         admin_api="http://gateway:9180/apisix/admin",
        ...         health=HealthCheckConfig(enabled=True),
        ...     )
        ... )
        >>> service.start()
    """

    def __init__(
        self,
        config: RegistrationConfig | None = None,
        *,
        router: HealthRouter | None = None,
        http_server: uvicorn.Server | None = None,
        client: AdminAPIClient | None = None,
        transport: httpx.BaseTransport | None = None,
        join_jitter: float = 0.0,
    ) -> None:
        """Validate configuration and bind the health integration.

        Args:
            config: Registration settings. If None, loads from environment.
            router: FastAPI/Starlette app or ``register_route(path, endpoint)``
                callback to mount the health route on
            http_server: Externally owned uvicorn server to mount the health
                route on; ignored when ``router`` is given
            client: Admin API client to use instead of building one
            transport: httpx transport for the built admin client
            join_jitter: Upper bound (seconds) of a random delay before
                joining an existing upstream

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        self._config = config or load_config()
        self._lock = threading.Lock()
        self._state = RegistrationState.UNREGISTERED
        self._cancelled = threading.Event()
        self._watcher: TerminationWatcher | None = None
        self._client = client
        self._owns_client = client is None
        self._transport = transport
        self._join_jitter = join_jitter
        self._reconciler: UpstreamReconciler | None = None

        cfg = self._config
        self._enabled = cfg.enabled
        if not self._enabled:
            _LOGGER.info("Gateway registration is disabled")
            self._identity = ServiceIdentity(
                name=cfg.name, port=cfg.port, host=cfg.host or DEFAULT_HOST
            )
            self._upstream = UpstreamRef(id=cfg.upstream.id, type=cfg.upstream.type)
            self._health_enabled = False
            self._health_path = cfg.health.path or DEFAULT_HEALTH_PATH
            self._health: HealthMountProtocol | None = None
            return

        self._identity = self._validate_identity(cfg)
        upstream_id = cfg.upstream.id
        if not upstream_id:
            upstream_id = derive_upstream_id(
                self._identity.name, self._identity.host, self._identity.port
            )
            _LOGGER.info("No upstream id configured, derived %s", upstream_id)
        self._upstream = UpstreamRef(id=upstream_id, type=cfg.upstream.type)

        self._health_enabled = cfg.health.enabled
        self._health_path = cfg.health.path or DEFAULT_HEALTH_PATH
        self._health = build_health_mount(
            self._identity.name,
            self._identity.port,
            self._health_path,
            router=router,
            http_server=http_server,
        )

    @staticmethod
    def _validate_identity(cfg: RegistrationConfig) -> ServiceIdentity:
        if not cfg.name:
            raise ConfigurationError("service name is required")
        host = cfg.host or DEFAULT_HOST
        port = cfg.port
        if isinstance(port, bool) or not isinstance(port, int) or port <= 0:
            raise ConfigurationError(
                f"port must be a positive integer, got {port!r}"
            )
        return ServiceIdentity(name=cfg.name, port=port, host=host)

    # Properties

    @property
    def config(self) -> RegistrationConfig:
        return self._config

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def identity(self) -> ServiceIdentity:
        return self._identity

    @property
    def upstream(self) -> UpstreamRef:
        return self._upstream

    @property
    def upstream_id(self) -> str:
        return self._upstream.id

    @property
    def node_key(self) -> str:
        return self._identity.node_key

    @property
    def state(self) -> RegistrationState:
        return self._state

    @property
    def health_enabled(self) -> bool:
        return self._health_enabled

    @property
    def health_mount(self) -> HealthMountProtocol | None:
        return self._health

    @property
    def cancelled(self) -> threading.Event:
        """Set once termination has been requested."""
        return self._cancelled

    # Operations

    def register(self) -> None:
        """Add this instance's node to the gateway upstream.

        Raises:
            ConfigurationError: If no admin API address is configured
            CreateUpstreamError: If the gateway could not be updated
        """
        with self._lock:
            if not self._enabled:
                return
            reconciler = self._get_reconciler()
            if not self._config.api_key:
                _EVENT_LOGGER.warning(
                    "No admin API key configured, the gateway may reject "
                    "the request",
                    logger=_LOGGER,
                )
            try:
                reconciler.create_or_join_upstream(
                    self._upstream.id,
                    self._identity.name,
                    self._identity.node_key,
                    self._upstream.type,
                )
            except Exception as e:
                msg = f"create upstream failed: {self._upstream.id}"
                _LOGGER.exception(msg)
                raise CreateUpstreamError(f"{msg}: {e}") from e

            self._state = RegistrationState.REGISTERED
            _EVENT_LOGGER.info(
                "Registered %s with gateway upstream %s",
                self._identity.node_key,
                self._upstream.id,
                logger=_LOGGER,
                extra=self._event_fields(),
            )

    def start_health_check(self) -> None:
        """Mount the health route; no-op when disabled or already mounted.

        Raises:
            StartHealthCheckError: If the route could not be mounted
        """
        with self._lock:
            if not self._enabled or not self._health_enabled:
                return
            if self._health is None or self._health.active:
                return
            try:
                self._health.start()
            except Exception as e:
                raise StartHealthCheckError(
                    f"start health check failed: {e}"
                ) from e

    def start(self) -> None:
        """Register, mount the health route and watch for termination.

        Returns immediately. On SIGINT/SIGTERM (or :meth:`stop`) the node is
        deregistered and the health listener shut down in the background.
        If the health check fails to start the registration stays in place
        and the error is raised; deregistering is then up to the caller.
        """
        if not self._enabled:
            return
        self.register()
        try:
            self.start_health_check()
        except StartHealthCheckError:
            _EVENT_LOGGER.error(
                "Health check failed to start, registration left in place",
                logger=_LOGGER,
                extra=self._event_fields(),
            )
            raise

        with self._lock:
            if self._watcher is None or self._watcher.done:
                self._cancelled.clear()
                self._watcher = TerminationWatcher(
                    self._terminate, cancelled=self._cancelled
                )
                self._watcher.start()
        _EVENT_LOGGER.info(
            "Gateway registration started", logger=_LOGGER,
            extra=self._event_fields(),
        )

    def deregister(self) -> None:
        """Remove this instance's node; the upstream itself is kept.

        Raises:
            ConfigurationError: If no admin API address is configured
            DeleteNodeError: If the gateway could not be updated
        """
        with self._lock:
            if not self._enabled:
                return
            reconciler = self._get_reconciler()
            try:
                reconciler.remove_node(self._upstream.id, self._identity.node_key)
            except Exception as e:
                msg = (
                    f"delete node failed: {self._identity.node_key} "
                    f"from {self._upstream.id}"
                )
                _LOGGER.exception(msg)
                raise DeleteNodeError(f"{msg}: {e}") from e

            self._state = RegistrationState.DEREGISTERED
            _EVENT_LOGGER.info(
                "Deregistered %s from gateway upstream %s",
                self._identity.node_key,
                self._upstream.id,
                logger=_LOGGER,
                extra=self._event_fields(),
            )

    def shutdown(self, timeout: float = DEFAULT_SHUTDOWN_TIMEOUT) -> None:
        """Stop the health integration within ``timeout`` seconds.

        Raises:
            ShutdownError: If teardown failed or did not finish in time
        """
        with self._lock:
            if not self._enabled or not self._health_enabled:
                return
            if self._health is None:
                return
            try:
                self._health.shutdown(timeout)
            except Exception as e:
                raise ShutdownError(f"shutdown failed: {e}") from e

    def stop(self, *, wait: bool = True, timeout: float | None = None) -> None:
        """Run the termination sequence without waiting for a signal."""
        with self._lock:
            watcher = self._watcher
        if watcher is None:
            self._cancelled.set()
            self._terminate()
            return
        watcher.trigger()
        if wait:
            watcher.wait(timeout)

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the termination sequence has completed."""
        with self._lock:
            watcher = self._watcher
        if watcher is None:
            return self._cancelled.is_set()
        return watcher.wait(timeout)

    def delete_upstream(self) -> None:
        """Delete the whole upstream, removing every node it still holds.

        Not part of the termination sequence; for operators retiring a
        service entirely.

        Raises:
            ConfigurationError: If no admin API address is configured
            DeleteUpstreamError: If the gateway rejected the deletion
        """
        with self._lock:
            if not self._enabled:
                return
            client = self._get_client()
            try:
                client.delete_upstream(self._upstream.id)
            except Exception as e:
                msg = f"delete upstream failed: {self._upstream.id}"
                _LOGGER.exception(msg)
                raise DeleteUpstreamError(f"{msg}: {e}") from e

            self._state = RegistrationState.DEREGISTERED
            _EVENT_LOGGER.info(
                "Deleted gateway upstream %s", self._upstream.id,
                logger=_LOGGER, extra=self._event_fields(),
            )

    def create_route(
        self,
        route_id: str,
        path: str,
        *,
        name: str | None = None,
    ) -> None:
        """Create a gateway route sending ``path`` to this upstream.

        Raises:
            ConfigurationError: If no admin API address is configured
            CreateRouteError: If the gateway rejected the route
        """
        with self._lock:
            if not self._enabled:
                return
            client = self._get_client()
            try:
                client.create_route(
                    route_id, name or self._identity.name, path, self._upstream.id
                )
            except Exception as e:
                raise CreateRouteError(
                    f"create route failed: {route_id}: {e}"
                ) from e

    def delete_route(self, route_id: str) -> None:
        with self._lock:
            if not self._enabled:
                return
            client = self._get_client()
            try:
                client.delete_route(route_id)
            except Exception as e:
                raise DeleteRouteError(
                    f"delete route failed: {route_id}: {e}"
                ) from e

    def set_router(self, router: HealthRouter | None, path: str = "") -> None:
        """Mount the health route on ``router`` instead of the current target."""
        with self._lock:
            if router is None:
                _EVENT_LOGGER.warning(
                    "Health router is None, keeping the current health mount",
                    logger=_LOGGER,
                )
                return
            self._rebind_health(path, router=router)

    def set_http_server(
        self,
        server: uvicorn.Server | None,
        path: str = "",
    ) -> None:
        """Mount the health route on an externally owned uvicorn server."""
        with self._lock:
            if server is None:
                _EVENT_LOGGER.warning(
                    "HTTP server is None, keeping the current health mount",
                    logger=_LOGGER,
                )
                return
            self._rebind_health(path, http_server=server)

    def close(self) -> None:
        """Release the admin client if this service built it."""
        with self._lock:
            if self._client is not None and self._owns_client:
                self._client.close()
                self._client = None
                self._reconciler = None

    # Internals

    def _rebind_health(
        self,
        path: str,
        *,
        router: HealthRouter | None = None,
        http_server: uvicorn.Server | None = None,
    ) -> None:
        if not self._enabled:
            return
        if self._health is not None and self._health.active:
            raise HealthIntegrationError(
                "cannot replace a health mount that is already active"
            )
        if path:
            self._health_path = path
        self._health = build_health_mount(
            self._identity.name,
            self._identity.port,
            self._health_path,
            router=router,
            http_server=http_server,
        )
        _LOGGER.info("Health mount set: path=%s", self._health_path)

    def _get_client(self) -> AdminAPIClient:
        if not self._config.admin_api:
            raise ConfigurationError("admin API address is required")
        if self._client is None:
            self._client = AdminAPIClient(
                self._config.admin_api,
                api_key=self._config.api_key,
                settings=self._config.client,
                transport=self._transport,
            )
            self._owns_client = True
        return self._client

    def _get_reconciler(self) -> UpstreamReconciler:
        client = self._get_client()
        if self._reconciler is None:
            self._reconciler = UpstreamReconciler(
                client, join_jitter=self._join_jitter
            )
        return self._reconciler

    def _terminate(self) -> None:
        _EVENT_LOGGER.info(
            "Termination requested, deregistering from gateway",
            logger=_LOGGER,
            extra=self._event_fields(),
        )
        try:
            self.deregister()
        except Exception:
            _EVENT_LOGGER.exception("Deregistration failed", logger=_LOGGER)
        try:
            self.shutdown(self._config.shutdown_timeout)
        except Exception:
            _EVENT_LOGGER.exception("Health shutdown failed", logger=_LOGGER)
        self.close()
        _EVENT_LOGGER.info("Gateway registration stopped", logger=_LOGGER)

    def _event_fields(self) -> dict[str, object]:
        return {
            "service": self._identity.name,
            "node": self._identity.node_key,
            "upstream_id": self._upstream.id,
        }
