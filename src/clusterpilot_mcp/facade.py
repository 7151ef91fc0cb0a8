# ABOUTME: Resource client facade bound to the active kubeconfig context
# ABOUTME: Rebuilds handles atomically, dispatches deletes by kind, aggregates metrics

"""
Resource Client Facade.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

ResourceFacade is the one place that owns the live API handles. It:

1. REFRESHES: reads the current context from the kubeconfig store, opens a
   KubeClient for it, wraps it in a ClientSet, and installs that set with a
   single assignment. The previous set's transport is closed afterwards, so
   anyone still holding it gets StaleHandleError instead of talking to the
   wrong cluster.

2. DISPATCHES: delete_resource() and scale_resource() accept a kind and route
   to the right domain client. The supported kinds are closed enumerations;
   anything else fails with UnsupportedKindError before any remote call.

3. AGGREGATES: get_aggregate_metrics() fetches nodes, pods, namespaces,
   deployments, services, and node usage concurrently. It is ALL-OR-NOTHING:
   if any sub-fetch fails the caller gets PartialFailureError naming each
   failed sub-fetch, never totals computed from an incomplete picture.

The facade does not decide WHEN to refresh. ClusterSession calls refresh()
right after changing the current context, under its gate.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

import structlog

from clusterpilot_mcp.clients import ClientSet
from clusterpilot_mcp.errors import (
    NoActiveContextError,
    NotFoundError,
    PartialFailureError,
    UnsupportedKindError,
)
from clusterpilot_mcp.utils.client import KubeClient
from clusterpilot_mcp.utils.quantity import parse_quantity, percentage
from clusterpilot_mcp.utils.validation import validate_namespace, validate_resource_name

if TYPE_CHECKING:
    from clusterpilot_mcp.config import ServerSettings
    from clusterpilot_mcp.kubeconfig import ConnectionProfile, KubeconfigStore

logger = structlog.get_logger(__name__)

ClientFactory = Callable[["ConnectionProfile"], KubeClient]


# =============================================================================
# SUPPORTED KINDS
# =============================================================================


class ResourceKind(str, Enum):
    """Kinds that delete_resource() can remove."""

    POD = "pod"
    DEPLOYMENT = "deployment"
    SERVICE = "service"
    CONFIGMAP = "configmap"
    SECRET = "secret"

    @classmethod
    def parse(cls, value: str | ResourceKind) -> ResourceKind:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise UnsupportedKindError(str(value), [k.value for k in cls]) from None

    @property
    def display(self) -> str:
        return {"configmap": "ConfigMap"}.get(self.value, self.value.capitalize())


class ScalableKind(str, Enum):
    """Kinds that scale_resource() can resize."""

    DEPLOYMENT = "deployment"
    STATEFULSET = "statefulset"
    REPLICASET = "replicaset"

    @classmethod
    def parse(cls, value: str | ScalableKind) -> ScalableKind:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise UnsupportedKindError(str(value), [k.value for k in cls]) from None


DeleteCall = Callable[[str, str], Awaitable[None]]

DELETE_DISPATCH: dict[ResourceKind, Callable[[ClientSet], DeleteCall]] = {
    ResourceKind.POD: lambda h: h.workloads.delete_pod,
    ResourceKind.DEPLOYMENT: lambda h: h.workloads.delete_deployment,
    ResourceKind.SERVICE: lambda h: h.network.delete_service,
    ResourceKind.CONFIGMAP: lambda h: h.configuration.delete_config_map,
    ResourceKind.SECRET: lambda h: h.configuration.delete_secret,
}


# =============================================================================
# AGGREGATE METRICS
# =============================================================================


@dataclass(frozen=True)
class ClusterMetrics:
    """
    Aggregate counts and capacity for one cluster.

    cpu values are cores, memory values are bytes. Usage fields are None when
    usage was not requested.
    """

    context: str
    node_count: int
    pod_count: int
    namespace_count: int
    deployment_count: int
    service_count: int
    cpu_total: float
    memory_total: float
    cpu_used: float | None = None
    memory_used: float | None = None

    @property
    def cpu_utilization(self) -> float | None:
        return None if self.cpu_used is None else percentage(self.cpu_used, self.cpu_total)

    @property
    def memory_utilization(self) -> float | None:
        return None if self.memory_used is None else percentage(self.memory_used, self.memory_total)


def _sum_quantity(items: list[dict[str, Any]], section: str, resource: str) -> float:
    total = 0.0
    for item in items:
        if section == "allocatable":
            values = (item.get("status") or {}).get("allocatable") or {}
        else:
            values = item.get(section) or {}
        total += parse_quantity(values.get(resource))
    return total


# =============================================================================
# FACADE
# =============================================================================


class ResourceFacade:
    """
    Owner of the current ClientSet.

    Example:
        facade = ResourceFacade(store, settings)
        await facade.refresh()
        await facade.delete_resource("Pod", "web-1", "default")
    """

    def __init__(
        self,
        store: KubeconfigStore,
        settings: ServerSettings,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self._store = store
        self._settings = settings
        self._client_factory = client_factory or self._default_factory
        self._handles: ClientSet | None = None
        self._refresh_lock = asyncio.Lock()

    def _default_factory(self, profile: ConnectionProfile) -> KubeClient:
        return KubeClient(
            profile,
            timeout=self._settings.request_timeout,
            mask_secrets=self._settings.security.mask_secrets,
        )

    # -------------------------------------------------------------------------
    # Handle lifecycle
    # -------------------------------------------------------------------------

    @property
    def handles(self) -> ClientSet:
        """The installed ClientSet. Raises NoActiveContextError if none."""
        handles = self._handles
        if handles is None:
            raise NoActiveContextError()
        return handles

    @property
    def current_context(self) -> str | None:
        return self._handles.context_name if self._handles else None

    async def refresh(self) -> ClientSet | None:
        """
        Rebuild every handle from the store's current context.

        Safe to call redundantly: each call builds a fresh set for whatever
        context is current at that moment. If the store has no current
        context, the installed set is dropped and None is returned.

        On failure (unknown cluster entry, bad TLS material) the previously
        installed set stays in place and the error propagates.
        """
        async with self._refresh_lock:
            name = self._store.current_context_name()
            if name is None:
                await self._install(None)
                logger.info("No current context; handles cleared")
                return None

            profile = self._store.connection_for(name)
            api = self._client_factory(profile)
            await api.open()
            new_set = ClientSet.build(api)
            await self._install(new_set)
            logger.info("Handles rebuilt", context=name, server=profile.server)
            return new_set

    async def reset(self) -> None:
        """Drop and close the installed handles."""
        async with self._refresh_lock:
            await self._install(None)

    async def _install(self, new_set: ClientSet | None) -> None:
        old, self._handles = self._handles, new_set
        if old is not None and old is not new_set:
            await old.api.close()

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    async def delete_resource(self, kind: str | ResourceKind, name: str, namespace: str | None = None) -> str:
        """
        Delete one resource of a supported kind.

        Args:
            kind: pod, deployment, service, configmap or secret (any case)
            name: Resource name
            namespace: Defaults to the active context's namespace

        Returns:
            The namespace the resource was deleted from

        Raises:
            UnsupportedKindError: Kind is not in ResourceKind (no remote call made)
            InvalidNameError: Name or namespace is empty or malformed (no remote call made)
            NotFoundError: The resource does not exist
        """
        resource_kind = ResourceKind.parse(kind)
        validate_resource_name(name)
        handles = self.handles
        ns = validate_namespace(namespace or handles.default_namespace)
        delete = DELETE_DISPATCH[resource_kind](handles)
        try:
            await delete(name, ns)
        except NotFoundError as e:
            raise NotFoundError(resource_kind.display, name, ns) from e
        logger.info("Resource deleted", kind=resource_kind.value, name=name, namespace=ns, context=handles.context_name)
        return ns

    async def scale_resource(
        self,
        kind: str | ScalableKind,
        name: str,
        namespace: str | None,
        replicas: int,
    ) -> str:
        """Set replicas on a deployment, stateful set or replica set. Returns the namespace."""
        scalable = ScalableKind.parse(kind)
        if replicas < 0:
            raise ValueError("replicas must be zero or greater")
        validate_resource_name(name)
        handles = self.handles
        ns = validate_namespace(namespace or handles.default_namespace)
        try:
            await handles.workloads.scale(scalable.value, name, ns, replicas)
        except NotFoundError as e:
            raise NotFoundError(scalable.value.capitalize(), name, ns) from e
        return ns

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def list_nodes(self) -> list[dict[str, Any]]:
        return await self.handles.cluster.list_nodes()

    async def list_pods(self, namespace: str | None = None) -> list[dict[str, Any]]:
        return await self.handles.workloads.list_pods(namespace)

    async def list_namespaces(self) -> list[dict[str, Any]]:
        return await self.handles.configuration.list_namespaces()

    async def get_aggregate_metrics(self, include_usage: bool = True) -> ClusterMetrics:
        """
        Counts plus CPU/memory capacity, fetched concurrently.

        Args:
            include_usage: Also query metrics-server for node usage. Clusters
                without metrics-server fail the whole call when this is True.

        Raises:
            PartialFailureError: One or more sub-fetches failed; carries a
                mapping of sub-fetch name to exception.
        """
        handles = self.handles
        fetches: dict[str, Awaitable[list[dict[str, Any]]]] = {
            "nodes": handles.cluster.list_nodes(),
            "pods": handles.workloads.list_pods(),
            "namespaces": handles.configuration.list_namespaces(),
            "deployments": handles.workloads.list_deployments(),
            "services": handles.network.list_services(),
        }
        if include_usage:
            fetches["node_metrics"] = handles.cluster.list_node_metrics()

        results = await asyncio.gather(*fetches.values(), return_exceptions=True)
        failures: dict[str, BaseException] = {}
        data: dict[str, list[dict[str, Any]]] = {}
        for name, result in zip(fetches, results, strict=True):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                failures[name] = result
            else:
                data[name] = result

        if failures:
            logger.warning(
                "Aggregate metrics incomplete",
                context=handles.context_name,
                failed=sorted(failures),
            )
            raise PartialFailureError("get_aggregate_metrics", failures)

        nodes = data["nodes"]
        usage = data.get("node_metrics")
        return ClusterMetrics(
            context=handles.context_name,
            node_count=len(nodes),
            pod_count=len(data["pods"]),
            namespace_count=len(data["namespaces"]),
            deployment_count=len(data["deployments"]),
            service_count=len(data["services"]),
            cpu_total=_sum_quantity(nodes, "allocatable", "cpu"),
            memory_total=_sum_quantity(nodes, "allocatable", "memory"),
            cpu_used=_sum_quantity(usage, "usage", "cpu") if usage is not None else None,
            memory_used=_sum_quantity(usage, "usage", "memory") if usage is not None else None,
        )
