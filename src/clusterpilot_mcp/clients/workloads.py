# ABOUTME: Workload resource client: pods, deployments, replica sets, stateful sets
# ABOUTME: Provides CRUD plus scale and restart patches used by the facade and rollouts

"""
Workload client.

Covers the apps/v1 controllers and the pods they own. Scale and restart are
expressed as JSON merge patches so they touch exactly one field:

    scale:   {"spec": {"replicas": 3}}
    restart: {"spec": {"template": {"metadata": {"annotations":
                 {"kubectl.kubernetes.io/restartedAt": "<iso time>"}}}}}

The restart annotation is what `kubectl rollout restart` writes. Changing the
pod template makes the controller roll out fresh pods while image and replica
count stay as they are.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import structlog

from clusterpilot_mcp.clients.base import DomainClient
from clusterpilot_mcp.utils.client import resource_path

logger = structlog.get_logger(__name__)

APPS = "apps/v1"
CORE = "v1"

RESTARTED_AT_ANNOTATION = "kubectl.kubernetes.io/restartedAt"

SCALABLE_PLURALS = {
    "deployment": "deployments",
    "statefulset": "statefulsets",
    "replicaset": "replicasets",
}


class WorkloadClient(DomainClient):
    """Pods, deployments, replica sets, stateful sets, and daemon sets."""

    # -------------------------------------------------------------------------
    # Pods
    # -------------------------------------------------------------------------

    async def list_pods(self, namespace: str | None = None) -> list[dict[str, Any]]:
        return await self._list(CORE, "pods", namespace)

    async def get_pod(self, name: str, namespace: str) -> dict[str, Any]:
        return await self._get(CORE, "pods", name, namespace)

    async def delete_pod(self, name: str, namespace: str) -> None:
        await self._delete(CORE, "pods", name, namespace)

    # -------------------------------------------------------------------------
    # Deployments
    # -------------------------------------------------------------------------

    async def list_deployments(self, namespace: str | None = None) -> list[dict[str, Any]]:
        return await self._list(APPS, "deployments", namespace)

    async def get_deployment(self, name: str, namespace: str) -> dict[str, Any]:
        return await self._get(APPS, "deployments", name, namespace)

    async def replace_deployment(self, name: str, namespace: str, body: dict[str, Any]) -> dict[str, Any]:
        return await self.api.replace(resource_path(APPS, "deployments", namespace, name), body)

    async def patch_deployment(self, name: str, namespace: str, body: dict[str, Any]) -> dict[str, Any]:
        return await self._patch(APPS, "deployments", name, namespace, body)

    async def delete_deployment(self, name: str, namespace: str) -> None:
        await self._delete(APPS, "deployments", name, namespace)

    async def restart_deployment(self, name: str, namespace: str) -> dict[str, Any]:
        stamp = datetime.now(UTC).isoformat()
        logger.info("Restarting deployment", name=name, namespace=namespace, context=self.context)
        return await self.patch_deployment(
            name,
            namespace,
            {"spec": {"template": {"metadata": {"annotations": {RESTARTED_AT_ANNOTATION: stamp}}}}},
        )

    # -------------------------------------------------------------------------
    # Replica sets, stateful sets, daemon sets
    # -------------------------------------------------------------------------

    async def list_replica_sets(self, namespace: str | None = None,
                                label_selector: str | None = None) -> list[dict[str, Any]]:
        return await self._list(APPS, "replicasets", namespace, label_selector)

    async def list_stateful_sets(self, namespace: str | None = None) -> list[dict[str, Any]]:
        return await self._list(APPS, "statefulsets", namespace)

    async def list_daemon_sets(self, namespace: str | None = None) -> list[dict[str, Any]]:
        return await self._list(APPS, "daemonsets", namespace)

    # -------------------------------------------------------------------------
    # Scaling
    # -------------------------------------------------------------------------

    async def scale(self, kind: str, name: str, namespace: str, replicas: int) -> dict[str, Any]:
        """
        Set spec.replicas on a scalable controller.

        Args:
            kind: "deployment", "statefulset" or "replicaset"
            name: Workload name
            namespace: Workload namespace
            replicas: Desired replica count (>= 0)
        """
        if replicas < 0:
            raise ValueError("replicas must be zero or greater")
        plural = SCALABLE_PLURALS[kind]
        logger.info("Scaling workload", kind=kind, name=name, namespace=namespace, replicas=replicas)
        return await self._patch(APPS, plural, name, namespace, {"spec": {"replicas": replicas}})
