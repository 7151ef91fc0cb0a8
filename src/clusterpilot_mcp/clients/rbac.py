# ABOUTME: RBAC resource client: roles, cluster roles, and their bindings
# ABOUTME: Thin read wrappers over the rbac.authorization.k8s.io API group

"""RBAC client."""

from __future__ import annotations

from typing import Any

from clusterpilot_mcp.clients.base import DomainClient

RBAC = "rbac.authorization.k8s.io/v1"


class RbacClient(DomainClient):
    async def list_roles(self, namespace: str | None = None) -> list[dict[str, Any]]:
        return await self._list(RBAC, "roles", namespace)

    async def list_role_bindings(self, namespace: str | None = None) -> list[dict[str, Any]]:
        return await self._list(RBAC, "rolebindings", namespace)

    async def list_cluster_roles(self) -> list[dict[str, Any]]:
        return await self._list(RBAC, "clusterroles")

    async def list_cluster_role_bindings(self) -> list[dict[str, Any]]:
        return await self._list(RBAC, "clusterrolebindings")
