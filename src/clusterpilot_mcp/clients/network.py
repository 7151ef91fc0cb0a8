# ABOUTME: Network resource client: services, endpoints, ingresses, network policies
# ABOUTME: Thin CRUD wrappers over the core and networking.k8s.io API groups

"""Network client."""

from __future__ import annotations

from typing import Any

from clusterpilot_mcp.clients.base import DomainClient

CORE = "v1"
NETWORKING = "networking.k8s.io/v1"


class NetworkClient(DomainClient):
    async def list_services(self, namespace: str | None = None) -> list[dict[str, Any]]:
        return await self._list(CORE, "services", namespace)

    async def get_service(self, name: str, namespace: str) -> dict[str, Any]:
        return await self._get(CORE, "services", name, namespace)

    async def delete_service(self, name: str, namespace: str) -> None:
        await self._delete(CORE, "services", name, namespace)

    async def list_endpoints(self, namespace: str | None = None) -> list[dict[str, Any]]:
        return await self._list(CORE, "endpoints", namespace)

    async def list_ingresses(self, namespace: str | None = None) -> list[dict[str, Any]]:
        return await self._list(NETWORKING, "ingresses", namespace)

    async def list_network_policies(self, namespace: str | None = None) -> list[dict[str, Any]]:
        return await self._list(NETWORKING, "networkpolicies", namespace)
