# ABOUTME: Cluster-level resource client: nodes, events, metrics, quotas
# ABOUTME: Reads node usage from the metrics.k8s.io API when metrics-server is installed

"""
Cluster client.

Node usage comes from metrics-server (metrics.k8s.io/v1beta1). Clusters
without it answer 404 on that path; callers decide whether that is fatal.
"""

from __future__ import annotations

from typing import Any

from clusterpilot_mcp.clients.base import DomainClient

CORE = "v1"
METRICS = "metrics.k8s.io/v1beta1"


class ClusterClient(DomainClient):
    async def list_nodes(self) -> list[dict[str, Any]]:
        return await self._list(CORE, "nodes")

    async def get_node(self, name: str) -> dict[str, Any]:
        return await self._get(CORE, "nodes", name)

    async def list_events(self, namespace: str | None = None) -> list[dict[str, Any]]:
        return await self._list(CORE, "events", namespace)

    async def list_resource_quotas(self, namespace: str | None = None) -> list[dict[str, Any]]:
        return await self._list(CORE, "resourcequotas", namespace)

    async def list_node_metrics(self) -> list[dict[str, Any]]:
        return await self._list(METRICS, "nodes")

    async def get_version(self) -> dict[str, Any]:
        return await self.api.get("/version")
