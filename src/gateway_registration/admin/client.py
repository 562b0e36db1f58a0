"""HTTP client for the gateway admin API."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from types import TracebackType
from typing import ClassVar, cast

import httpx
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..config import AdminClientSettings
from ..errors import TransportError
from ..models import UpstreamDocument

logger = logging.getLogger(__name__)


class _RetryableStatus(Exception):
    """Carries a response whose status is worth another attempt."""

    def __init__(self, response: httpx.Response) -> None:
        super().__init__(f"retryable status {response.status_code}")
        self.response = response


def _unwrap_value(payload: object) -> Mapping[str, object] | None:
    """Return the resource body from an admin GET response.

    The admin API wraps resources as ``{"key": ..., "value": {...}}`` and
    older releases as ``{"node": {"value": {...}}}``.
    """
    if not isinstance(payload, Mapping):
        return None
    mapping = cast(Mapping[str, object], payload)
    node = mapping.get("node")
    if isinstance(node, Mapping) and "value" in node:
        mapping = cast(Mapping[str, object], node)
    value = mapping.get("value", mapping)
    if isinstance(value, Mapping):
        return cast(Mapping[str, object], value)
    return None


class AdminAPIClient:
    """Gateway admin API client for upstreams and routes.

    The client holds no state between calls apart from the pooled
    ``httpx.Client``. Every request is bounded by the configured timeout and
    retried on network errors and on 429/5xx responses.

    Example:
        >>> client = AdminAPIClient(
        ...     "http://gateway:9180/apisix/admin", api_key="secret"
        ... )
        >>> client.get_upstream("orders_10.0.0.5_9000")
    """

    RETRYABLE_STATUS: ClassVar[frozenset[int]] = frozenset(
        {429, 500, 502, 503, 504}
    )

    _settings: AdminClientSettings
    _client: httpx.Client

    def __init__(
        self,
        base_url: str,
        *,
        api_key: str = "",
        settings: AdminClientSettings | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the admin client.

        Args:
            base_url: Admin API base address, e.g. ``http://gw:9180/apisix/admin``
            api_key: Sent as ``X-API-KEY`` when non-empty
            settings: Timeout and retry policy
            transport: Custom httpx transport (tests, proxies)
        """
        self._settings = settings or AdminClientSettings()
        headers = {"Accept": "application/json"}
        if api_key:
            headers["X-API-KEY"] = api_key
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=self._settings.timeout,
            transport=transport,
        )

    @property
    def settings(self) -> AdminClientSettings:
        return self._settings

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "AdminAPIClient":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    # Upstreams

    def get_upstream(self, upstream_id: str) -> UpstreamDocument | None:
        """Fetch an upstream document.

        Returns:
            The stored document, or None when the gateway answers 404

        Raises:
            TransportError: On any other status or an unreadable body
        """
        response = self._request("GET", f"/upstreams/{upstream_id}")
        if response.status_code == httpx.codes.NOT_FOUND:
            return None
        self._expect(response, {200}, f"get upstream {upstream_id}")
        body = _unwrap_value(self._decode(response, f"get upstream {upstream_id}"))
        if body is None:
            raise TransportError(
                f"malformed upstream document for {upstream_id}",
                status_code=response.status_code,
                body=response.text,
            )
        try:
            return UpstreamDocument.from_payload(body)
        except ValueError as e:
            raise TransportError(
                f"malformed upstream document for {upstream_id}: {e}"
            ) from e

    def put_upstream(self, upstream_id: str, document: UpstreamDocument) -> None:
        """Create or fully replace an upstream."""
        response = self._request(
            "PUT", f"/upstreams/{upstream_id}", json=document.to_payload()
        )
        self._expect(response, {200, 201}, f"put upstream {upstream_id}")
        logger.debug("Put upstream %s nodes=%s", upstream_id, document.nodes)

    def patch_upstream_nodes(
        self,
        upstream_id: str,
        nodes: Mapping[str, int | None],
    ) -> None:
        """Merge ``nodes`` into an upstream; a None weight deletes the node."""
        response = self._request(
            "PATCH", f"/upstreams/{upstream_id}", json={"nodes": dict(nodes)}
        )
        self._expect(response, {200, 201}, f"patch upstream {upstream_id}")
        logger.debug("Patched upstream %s nodes=%s", upstream_id, dict(nodes))

    def delete_upstream(self, upstream_id: str) -> None:
        response = self._request("DELETE", f"/upstreams/{upstream_id}")
        self._expect(response, {200, 204}, f"delete upstream {upstream_id}")
        logger.info("Deleted upstream: %s", upstream_id)

    # Routes

    def create_route(
        self,
        route_id: str,
        name: str,
        path: str,
        upstream_id: str,
    ) -> None:
        """Create or replace a route forwarding ``path`` to an upstream."""
        payload: dict[str, object] = {
            "name": name,
            "uri": path,
            "upstream_id": upstream_id,
        }
        response = self._request("PUT", f"/routes/{route_id}", json=payload)
        self._expect(response, {200, 201}, f"create route {route_id}")
        logger.info(
            "Created route: %s (uri=%s, upstream_id=%s)",
            route_id,
            path,
            upstream_id,
        )

    def delete_route(self, route_id: str) -> None:
        response = self._request("DELETE", f"/routes/{route_id}")
        self._expect(response, {200, 204}, f"delete route {route_id}")
        logger.info("Deleted route: %s", route_id)

    # Transport

    def _request(
        self,
        method: str,
        path: str,
        *,
        json: Mapping[str, object] | None = None,
    ) -> httpx.Response:
        """Send a request under the retry policy.

        Retryable statuses that survive every attempt are returned as-is so
        the caller reports them with status and body.
        """
        retrying = Retrying(
            stop=stop_after_attempt(max(1, self._settings.retry_count)),
            wait=wait_exponential(
                multiplier=self._settings.retry_wait,
                min=self._settings.retry_wait,
                max=self._settings.retry_max_wait,
            ),
            retry=retry_if_exception_type(
                (httpx.TransportError, _RetryableStatus)
            ),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        try:
            return retrying(self._send_once, method, path, json)
        except _RetryableStatus as e:
            return e.response
        except httpx.HTTPError as e:
            raise TransportError(
                f"{method} {path} failed: {e}"
            ) from e

    def _send_once(
        self,
        method: str,
        path: str,
        payload: Mapping[str, object] | None,
    ) -> httpx.Response:
        response = self._client.request(method, path, json=payload)
        if response.status_code in self.RETRYABLE_STATUS:
            raise _RetryableStatus(response)
        return response

    @staticmethod
    def _expect(
        response: httpx.Response,
        accepted: set[int],
        operation: str,
    ) -> None:
        if response.status_code not in accepted:
            raise TransportError(
                f"{operation} failed",
                status_code=response.status_code,
                body=response.text,
            )

    @staticmethod
    def _decode(response: httpx.Response, operation: str) -> object:
        try:
            return cast(object, response.json())
        except ValueError as e:
            raise TransportError(
                f"{operation} returned invalid JSON",
                status_code=response.status_code,
                body=response.text,
            ) from e
