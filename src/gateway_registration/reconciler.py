"""Converge the gateway's upstream node set with this instance's presence."""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable

from .admin.client import AdminAPIClient
from .models import (
    DEFAULT_NODE_WEIGHT,
    DEFAULT_UPSTREAM_TYPE,
    UpstreamDocument,
)

logger = logging.getLogger(__name__)


class UpstreamReconciler:
    """Add or remove exactly one node in a shared upstream.

    The admin API replaces on PUT, so joining an existing upstream is a
    fetch-modify-PUT cycle. Two instances joining the same upstream at the
    same moment can both fetch before either writes, and the later PUT drops
    the earlier node. The gateway's active health checks and the low
    registration rate (once per process start) bound that window; the
    optional ``join_jitter`` spreads concurrent starts apart but does not
    close it.
    """

    def __init__(
        self,
        client: AdminAPIClient,
        *,
        join_jitter: float = 0.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._client = client
        self._join_jitter = join_jitter
        self._sleep = sleep

    def upstream_exists(self, upstream_id: str) -> bool:
        exists = self._client.get_upstream(upstream_id) is not None
        if exists:
            logger.info("Upstream already exists: %s", upstream_id)
        return exists

    def create_or_join_upstream(
        self,
        upstream_id: str,
        name: str,
        node_key: str,
        upstream_type: str = DEFAULT_UPSTREAM_TYPE,
    ) -> None:
        """Ensure ``node_key`` is a member of the upstream.

        Creates the upstream when absent. Calling it again for a node that is
        already present changes nothing.

        Raises:
            TransportError: If any admin call fails
        """
        if self._join_jitter > 0:
            self._sleep(random.uniform(0, self._join_jitter))

        if not self.upstream_exists(upstream_id):
            document = UpstreamDocument(
                name=name,
                type=upstream_type,
                nodes={node_key: DEFAULT_NODE_WEIGHT},
            )
            self._client.put_upstream(upstream_id, document)
            logger.info(
                "Created upstream %s (name=%s, node=%s)",
                upstream_id,
                name,
                node_key,
            )
            return

        document = self._client.get_upstream(upstream_id)
        if document is None:
            # Deleted between the existence check and the fetch.
            document = UpstreamDocument(name=name, type=upstream_type)
        if node_key in document.nodes:
            logger.info(
                "Node %s already in upstream %s, nothing to add",
                node_key,
                upstream_id,
            )
            return

        document.nodes[node_key] = DEFAULT_NODE_WEIGHT
        self._client.put_upstream(upstream_id, document)
        logger.info("Added node %s to upstream %s", node_key, upstream_id)

    def remove_node(self, upstream_id: str, node_key: str) -> None:
        """Remove ``node_key`` from the upstream, leaving siblings alone.

        A missing upstream or node counts as already removed. The upstream
        itself is kept even when this empties it, so routes bound to its id
        keep resolving.

        Raises:
            TransportError: If any admin call fails
        """
        document = self._client.get_upstream(upstream_id)
        if document is None:
            logger.info("Upstream %s not found, no node to remove", upstream_id)
            return
        if node_key not in document.nodes:
            logger.info(
                "Node %s not in upstream %s, nothing to remove",
                node_key,
                upstream_id,
            )
            return

        self._client.patch_upstream_nodes(upstream_id, {node_key: None})
        logger.info("Removed node %s from upstream %s", node_key, upstream_id)
