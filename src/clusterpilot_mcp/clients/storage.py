# ABOUTME: Storage resource client: persistent volumes, claims, storage classes
# ABOUTME: Thin read wrappers over the core and storage.k8s.io API groups

"""Storage client. Persistent volumes and storage classes are cluster scoped."""

from __future__ import annotations

from typing import Any

from clusterpilot_mcp.clients.base import DomainClient

CORE = "v1"
STORAGE = "storage.k8s.io/v1"


class StorageClient(DomainClient):
    async def list_persistent_volumes(self) -> list[dict[str, Any]]:
        return await self._list(CORE, "persistentvolumes")

    async def list_persistent_volume_claims(self, namespace: str | None = None) -> list[dict[str, Any]]:
        return await self._list(CORE, "persistentvolumeclaims", namespace)

    async def delete_persistent_volume_claim(self, name: str, namespace: str) -> None:
        await self._delete(CORE, "persistentvolumeclaims", name, namespace)

    async def list_storage_classes(self) -> list[dict[str, Any]]:
        return await self._list(STORAGE, "storageclasses")
