"""In-memory gateway admin API for testing."""

from __future__ import annotations

import json
import threading
from collections import deque
from collections.abc import Mapping
from typing import cast

import httpx


class MemoryGateway:
    """A small emulation of the gateway admin API useful for unit tests.

    Serves ``/upstreams/{id}`` and ``/routes/{id}`` through an
    ``httpx.MockTransport`` with the same replace-on-PUT and
    merge-on-PATCH semantics as the real admin API. Ideal for testing
    scenarios where a real gateway is not available.

    Example:
        >>> gateway = MemoryGateway()
        >>> client = AdminAPIClient("http://gw/apisix/admin",
        ...                         transport=gateway.transport)
    """

    _upstreams: dict[str, dict[str, object]]
    _routes: dict[str, dict[str, object]]
    _faults: deque[int]
    _lock: threading.RLock

    def __init__(self, *, api_key: str | None = None) -> None:
        self._api_key = api_key
        self._upstreams = {}
        self._routes = {}
        self._faults = deque()
        self._lock = threading.RLock()
        self.requests: list[tuple[str, str]] = []

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def upstream(self, upstream_id: str) -> dict[str, object] | None:
        """Return a copy of a stored upstream body."""
        with self._lock:
            stored = self._upstreams.get(upstream_id)
            return json.loads(json.dumps(stored)) if stored is not None else None

    def nodes(self, upstream_id: str) -> dict[str, int] | None:
        stored = self.upstream(upstream_id)
        if stored is None:
            return None
        return cast(dict[str, int], stored.get("nodes", {}))

    def route(self, route_id: str) -> dict[str, object] | None:
        with self._lock:
            stored = self._routes.get(route_id)
            return dict(stored) if stored is not None else None

    def seed_upstream(self, upstream_id: str, body: Mapping[str, object]) -> None:
        """Store an upstream directly, bypassing the HTTP surface."""
        with self._lock:
            self._upstreams[upstream_id] = json.loads(json.dumps(dict(body)))

    def fail_next(self, status_code: int, times: int = 1) -> None:
        """Answer the next ``times`` requests with ``status_code``."""
        with self._lock:
            self._faults.extend([status_code] * times)

    def handle(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self.requests.append((request.method, request.url.path))
            if self._faults:
                return _error(self._faults.popleft(), "injected failure")
            if self._api_key and request.headers.get("X-API-KEY") != self._api_key:
                return _error(401, "failed to check token")
            kind, resource_id = _parse_path(request.url.path)
            if kind == "upstreams" and resource_id:
                return self._handle_upstream(request, resource_id)
            if kind == "routes" and resource_id:
                return self._handle_route(request, resource_id)
            return _error(404, "not found")

    def _handle_upstream(
        self, request: httpx.Request, upstream_id: str
    ) -> httpx.Response:
        stored = self._upstreams.get(upstream_id)
        if request.method == "GET":
            if stored is None:
                return _error(404, "Key not found")
            return _resource("upstreams", upstream_id, stored)
        if request.method == "PUT":
            body = _json_body(request)
            body["id"] = upstream_id
            self._upstreams[upstream_id] = body
            return _resource(
                "upstreams", upstream_id, body,
                status_code=200 if stored is not None else 201,
            )
        if request.method == "PATCH":
            if stored is None:
                return _error(404, "Key not found")
            _merge_patch(stored, _json_body(request))
            return _resource("upstreams", upstream_id, stored)
        if request.method == "DELETE":
            if stored is None:
                return _error(404, "Key not found")
            del self._upstreams[upstream_id]
            return httpx.Response(200, json={"deleted": "1"})
        return _error(405, "method not allowed")

    def _handle_route(
        self, request: httpx.Request, route_id: str
    ) -> httpx.Response:
        stored = self._routes.get(route_id)
        if request.method == "GET":
            if stored is None:
                return _error(404, "Key not found")
            return _resource("routes", route_id, stored)
        if request.method == "PUT":
            body = _json_body(request)
            body["id"] = route_id
            self._routes[route_id] = body
            return _resource(
                "routes", route_id, body,
                status_code=200 if stored is not None else 201,
            )
        if request.method == "DELETE":
            if stored is None:
                return _error(404, "Key not found")
            del self._routes[route_id]
            return httpx.Response(200, json={"deleted": "1"})
        return _error(405, "method not allowed")


def _parse_path(path: str) -> tuple[str | None, str | None]:
    parts = [part for part in path.split("/") if part]
    for kind in ("upstreams", "routes"):
        if kind in parts:
            index = parts.index(kind)
            rest = parts[index + 1:]
            return kind, rest[0] if rest else None
    return None, None


def _json_body(request: httpx.Request) -> dict[str, object]:
    payload = json.loads(request.content or b"{}")
    if not isinstance(payload, dict):
        return {}
    return cast(dict[str, object], payload)


def _merge_patch(target: dict[str, object], patch: Mapping[str, object]) -> None:
    """JSON merge patch: nested objects merge, null deletes the key."""
    for key, value in patch.items():
        if value is None:
            target.pop(key, None)
        elif isinstance(value, Mapping) and isinstance(target.get(key), dict):
            _merge_patch(
                cast(dict[str, object], target[key]),
                cast(Mapping[str, object], value),
            )
        else:
            target[key] = value


def _resource(
    kind: str,
    resource_id: str,
    body: Mapping[str, object],
    *,
    status_code: int = 200,
) -> httpx.Response:
    return httpx.Response(
        status_code,
        json={"key": f"/apisix/{kind}/{resource_id}", "value": dict(body)},
    )


def _error(status_code: int, message: str) -> httpx.Response:
    return httpx.Response(status_code, json={"error_msg": message})
