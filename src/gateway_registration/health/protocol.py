"""Health integration protocol definitions."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import ClassVar, Protocol, runtime_checkable

from ..config import DEFAULT_HEALTH_PATH
from .response import HealthEndpoint, make_health_endpoint


@runtime_checkable
class HealthMountProtocol(Protocol):
    """A place to mount the health route.

    Implementations install ``GET path`` on some HTTP surface without
    displacing the routes already served there.
    """

    @property
    def path(self) -> str: ...

    @property
    def active(self) -> bool: ...

    @property
    def owns_listener(self) -> bool: ...

    def start(self) -> None:
        """Mount the health route.

        Raises:
            HealthIntegrationError: If the route cannot be mounted
        """
        ...

    def shutdown(self, timeout: float) -> None:
        """Release whatever ``start`` acquired, within ``timeout`` seconds.

        Raises:
            HealthIntegrationError: If teardown fails or runs out of time
        """
        ...


class BaseHealthMount(ABC):
    """Shared state handling for the built-in health mounts.

    ``start`` moves the mount from inactive to active, ``shutdown`` back.
    Mounts onto surfaces owned by the caller leave teardown to the caller.
    """

    owns_listener: ClassVar[bool] = False

    def __init__(
        self,
        service_name: str,
        path: str = DEFAULT_HEALTH_PATH,
    ) -> None:
        self._service_name = service_name
        self._path = path or DEFAULT_HEALTH_PATH
        self._active = False

    @property
    def service_name(self) -> str:
        return self._service_name

    @property
    def path(self) -> str:
        return self._path

    @property
    def active(self) -> bool:
        return self._active

    @property
    def endpoint(self) -> HealthEndpoint:
        return make_health_endpoint(self._service_name)

    def start(self) -> None:
        self._mount()
        self._active = True

    def shutdown(self, timeout: float) -> None:
        if not self._active:
            return
        self._unmount(timeout)
        self._active = False

    @abstractmethod
    def _mount(self) -> None:
        raise NotImplementedError

    def _unmount(self, timeout: float) -> None:
        return None
