"""Value types shared by the admin client, reconciler and lifecycle."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import cast

DEFAULT_HOST = "127.0.0.1"
DEFAULT_UPSTREAM_TYPE = "roundrobin"
DEFAULT_NODE_WEIGHT = 1


def build_node_key(host: str, port: int) -> str:
    """Return the ``host:port`` key identifying a node inside an upstream."""
    return f"{host}:{port}"


def derive_upstream_id(name: str, host: str, port: int) -> str:
    """Deterministic upstream id for a service instance."""
    return f"{name}_{host}_{port}"


class RegistrationState(str, Enum):
    """Registration flag of a single service instance."""

    UNREGISTERED = "unregistered"
    REGISTERED = "registered"
    DEREGISTERED = "deregistered"


@dataclass(frozen=True, slots=True)
class ServiceIdentity:
    """Name and address of the local service instance."""

    name: str
    port: int
    host: str = DEFAULT_HOST

    @property
    def node_key(self) -> str:
        return build_node_key(self.host, self.port)


@dataclass(frozen=True, slots=True)
class UpstreamRef:
    """Gateway upstream this instance joins.

    Every instance registering with the same ``id`` lands in the same node
    set, which is how replicas are grouped behind one upstream.
    """

    id: str
    type: str = DEFAULT_UPSTREAM_TYPE


@dataclass(slots=True)
class UpstreamDocument:
    """Upstream body as stored by the gateway admin API."""

    name: str
    type: str = DEFAULT_UPSTREAM_TYPE
    nodes: dict[str, int] = field(default_factory=dict)
    # Fields the gateway returns that this package does not interpret
    # (checks, timeout, labels ...). Kept so a full PUT round-trips them.
    extra: dict[str, object] = field(default_factory=dict)

    def to_payload(self) -> dict[str, object]:
        payload: dict[str, object] = dict(self.extra)
        payload["name"] = self.name
        payload["type"] = self.type
        payload["nodes"] = dict(self.nodes)
        return payload

    @classmethod
    def from_payload(cls, payload: Mapping[str, object]) -> "UpstreamDocument":
        """Build a document from a decoded admin response body.

        Raises:
            ValueError: If ``nodes`` is missing or not a mapping
        """
        raw_nodes = payload.get("nodes")
        if not isinstance(raw_nodes, Mapping):
            raise ValueError("upstream document has no 'nodes' mapping")
        nodes: dict[str, int] = {}
        for key, weight in cast(Mapping[object, object], raw_nodes).items():
            if weight is None:
                continue
            try:
                nodes[str(key)] = int(cast(int, weight))
            except (TypeError, ValueError) as exc:
                raise ValueError(
                    f"invalid weight for node {key!r}: {weight!r}") from exc
        extra = {
            str(k): v
            for k, v in payload.items()
            if k not in {"name", "type", "nodes"}
        }
        return cls(
            name=str(payload.get("name", "")),
            type=str(payload.get("type") or DEFAULT_UPSTREAM_TYPE),
            nodes=nodes,
            extra=extra,
        )
