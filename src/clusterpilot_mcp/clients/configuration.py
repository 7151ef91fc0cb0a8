# ABOUTME: Configuration resource client: config maps, secrets, namespaces, service accounts
# ABOUTME: Secret payloads arrive already masked when masking is enabled on the transport

"""Configuration client."""

from __future__ import annotations

from typing import Any

from clusterpilot_mcp.clients.base import DomainClient

CORE = "v1"


class ConfigurationClient(DomainClient):
    async def list_config_maps(self, namespace: str | None = None) -> list[dict[str, Any]]:
        return await self._list(CORE, "configmaps", namespace)

    async def get_config_map(self, name: str, namespace: str) -> dict[str, Any]:
        return await self._get(CORE, "configmaps", name, namespace)

    async def delete_config_map(self, name: str, namespace: str) -> None:
        await self._delete(CORE, "configmaps", name, namespace)

    async def list_secrets(self, namespace: str | None = None) -> list[dict[str, Any]]:
        return await self._list(CORE, "secrets", namespace)

    async def get_secret(self, name: str, namespace: str) -> dict[str, Any]:
        return await self._get(CORE, "secrets", name, namespace)

    async def delete_secret(self, name: str, namespace: str) -> None:
        await self._delete(CORE, "secrets", name, namespace)

    async def list_namespaces(self) -> list[dict[str, Any]]:
        return await self._list(CORE, "namespaces")

    async def list_service_accounts(self, namespace: str | None = None) -> list[dict[str, Any]]:
        return await self._list(CORE, "serviceaccounts", namespace)
