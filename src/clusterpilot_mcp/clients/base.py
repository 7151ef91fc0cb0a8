# ABOUTME: Shared base class for the six domain resource clients
# ABOUTME: Binds a client to one KubeClient and builds namespaced REST paths

"""Common plumbing for domain clients."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from clusterpilot_mcp.utils.client import resource_path

if TYPE_CHECKING:
    from clusterpilot_mcp.utils.client import KubeClient


class DomainClient:
    """
    Thin typed wrapper over one resource family.

    A domain client holds no state besides the transport, so it is exactly as
    valid as the KubeClient it was built with. Passing namespace=None to a
    list method lists across all namespaces.
    """

    def __init__(self, api: KubeClient) -> None:
        self._api = api

    @property
    def api(self) -> KubeClient:
        return self._api

    @property
    def context(self) -> str:
        return self._api.context

    async def _list(self, group_version: str, plural: str, namespace: str | None = None,
                    label_selector: str | None = None) -> list[dict[str, Any]]:
        params = {"labelSelector": label_selector} if label_selector else None
        return await self._api.list_items(resource_path(group_version, plural, namespace), params=params)

    async def _get(self, group_version: str, plural: str, name: str, namespace: str | None = None) -> dict[str, Any]:
        return await self._api.get(resource_path(group_version, plural, namespace, name))

    async def _delete(self, group_version: str, plural: str, name: str, namespace: str | None = None) -> None:
        await self._api.delete(resource_path(group_version, plural, namespace, name))

    async def _patch(self, group_version: str, plural: str, name: str, namespace: str | None,
                     body: dict[str, Any]) -> dict[str, Any]:
        return await self._api.patch(resource_path(group_version, plural, namespace, name), body)
