"""Tests for upstream reconciliation."""

from __future__ import annotations

import httpx
import pytest

from gateway_registration import (
    AdminAPIClient,
    AdminClientSettings,
    MemoryGateway,
    TransportError,
    UpstreamReconciler,
)

FAST = AdminClientSettings(
    timeout=1.0, retry_count=3, retry_wait=0.0, retry_max_wait=0.0
)


@pytest.fixture
def gateway() -> MemoryGateway:
    return MemoryGateway()


@pytest.fixture
def reconciler(gateway: MemoryGateway):
    client = AdminAPIClient(
        "http://gateway/apisix/admin", settings=FAST, transport=gateway.transport
    )
    yield UpstreamReconciler(client)
    client.close()


def _writes(gateway: MemoryGateway) -> list[tuple[str, str]]:
    return [r for r in gateway.requests if r[0] != "GET"]


class TestUpstreamExists:
    def test_absent(self, reconciler: UpstreamReconciler) -> None:
        assert reconciler.upstream_exists("u1") is False

    def test_present(
        self, gateway: MemoryGateway, reconciler: UpstreamReconciler
    ) -> None:
        gateway.seed_upstream("u1", {"name": "svc", "nodes": {}})
        assert reconciler.upstream_exists("u1") is True

    def test_other_status_raises(
        self, gateway: MemoryGateway, reconciler: UpstreamReconciler
    ) -> None:
        gateway.fail_next(401)
        with pytest.raises(TransportError):
            reconciler.upstream_exists("u1")


class TestCreateOrJoinUpstream:
    def test_creates_missing_upstream(
        self, gateway: MemoryGateway, reconciler: UpstreamReconciler
    ) -> None:
        reconciler.create_or_join_upstream(
            "svc_10.0.0.5_9000", "svc", "10.0.0.5:9000"
        )

        stored = gateway.upstream("svc_10.0.0.5_9000")
        assert stored is not None
        assert stored["name"] == "svc"
        assert stored["type"] == "roundrobin"
        assert stored["nodes"] == {"10.0.0.5:9000": 1}

    def test_twice_leaves_single_entry(
        self, gateway: MemoryGateway, reconciler: UpstreamReconciler
    ) -> None:
        reconciler.create_or_join_upstream("u1", "svc", "10.0.0.5:9000")
        reconciler.create_or_join_upstream("u1", "svc", "10.0.0.5:9000")

        assert gateway.nodes("u1") == {"10.0.0.5:9000": 1}
        assert _writes(gateway) == [("PUT", "/apisix/admin/upstreams/u1")]

    def test_twice_on_existing_upstream(
        self, gateway: MemoryGateway, reconciler: UpstreamReconciler
    ) -> None:
        gateway.seed_upstream("u1", {"name": "svc", "nodes": {"a:1": 1}})

        reconciler.create_or_join_upstream("u1", "svc", "b:2")
        reconciler.create_or_join_upstream("u1", "svc", "b:2")

        assert gateway.nodes("u1") == {"a:1": 1, "b:2": 1}
        assert len(_writes(gateway)) == 1

    def test_join_keeps_siblings_and_settings(
        self, gateway: MemoryGateway, reconciler: UpstreamReconciler
    ) -> None:
        gateway.seed_upstream(
            "u1",
            {
                "name": "svc",
                "type": "chash",
                "hash_on": "header",
                "nodes": {"a:1": 5},
            },
        )

        reconciler.create_or_join_upstream("u1", "svc", "b:2")

        stored = gateway.upstream("u1")
        assert stored is not None
        assert stored["nodes"] == {"a:1": 5, "b:2": 1}
        assert stored["type"] == "chash"
        assert stored["hash_on"] == "header"

    def test_custom_upstream_type_on_create(
        self, gateway: MemoryGateway, reconciler: UpstreamReconciler
    ) -> None:
        reconciler.create_or_join_upstream(
            "u1", "svc", "a:1", upstream_type="least_conn"
        )
        stored = gateway.upstream("u1")
        assert stored is not None
        assert stored["type"] == "least_conn"

    def test_write_failure_propagates(self, gateway: MemoryGateway) -> None:
        gateway.seed_upstream("u1", {"name": "svc", "nodes": {}})

        def reject_put(request: httpx.Request) -> httpx.Response:
            if request.method == "PUT":
                return httpx.Response(400, json={"error_msg": "invalid"})
            return gateway.handle(request)

        client = AdminAPIClient(
            "http://gateway/apisix/admin",
            settings=FAST,
            transport=httpx.MockTransport(reject_put),
        )
        with pytest.raises(TransportError) as exc_info:
            UpstreamReconciler(client).create_or_join_upstream("u1", "svc", "a:1")
        assert exc_info.value.status_code == 400
        assert gateway.nodes("u1") == {}

    def test_join_jitter_sleeps_within_bound(self, gateway: MemoryGateway) -> None:
        delays: list[float] = []
        client = AdminAPIClient(
            "http://gateway/apisix/admin",
            settings=FAST,
            transport=gateway.transport,
        )
        reconciler = UpstreamReconciler(
            client, join_jitter=0.25, sleep=delays.append
        )

        reconciler.create_or_join_upstream("u1", "svc", "a:1")

        assert len(delays) == 1
        assert 0.0 <= delays[0] <= 0.25


class TestRemoveNode:
    def test_never_added_node_is_noop(
        self, gateway: MemoryGateway, reconciler: UpstreamReconciler
    ) -> None:
        gateway.seed_upstream("u1", {"name": "svc", "nodes": {"a:1": 1}})

        reconciler.remove_node("u1", "b:2")

        assert gateway.nodes("u1") == {"a:1": 1}
        assert _writes(gateway) == []

    def test_missing_upstream_is_noop(
        self, gateway: MemoryGateway, reconciler: UpstreamReconciler
    ) -> None:
        reconciler.remove_node("u1", "a:1")

        assert gateway.upstream("u1") is None
        assert _writes(gateway) == []

    def test_last_node_keeps_upstream(
        self, gateway: MemoryGateway, reconciler: UpstreamReconciler
    ) -> None:
        reconciler.create_or_join_upstream("u1", "svc", "a:1")

        reconciler.remove_node("u1", "a:1")

        assert gateway.upstream("u1") is not None
        assert gateway.nodes("u1") == {}
        assert ("DELETE", "/apisix/admin/upstreams/u1") not in gateway.requests

    def test_siblings_untouched(
        self, gateway: MemoryGateway, reconciler: UpstreamReconciler
    ) -> None:
        gateway.seed_upstream(
            "u1", {"name": "svc", "nodes": {"a:1": 1, "b:2": 3, "c:3": 1}}
        )

        reconciler.remove_node("u1", "b:2")

        assert gateway.nodes("u1") == {"a:1": 1, "c:3": 1}
        assert _writes(gateway) == [("PATCH", "/apisix/admin/upstreams/u1")]
