# ABOUTME: Domain resource clients and the ClientSet that bundles them per context
# ABOUTME: A ClientSet is immutable and valid only for the context it was built for

"""
Domain resource clients.

=============================================================================
WHAT IS A CLIENTSET?
=============================================================================

The six domain clients all share one KubeClient, which is bound to exactly one
kubeconfig context. ClientSet groups them together with that context name:

    handles = facade.handles
    handles.context_name          # "staging"
    await handles.workloads.list_pods("default")
    await handles.cluster.list_nodes()

A ClientSet is frozen. On a context switch the facade builds a NEW set and
swaps it in with one assignment; nobody ever observes a set where, say,
workloads point at staging while network still points at production.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from clusterpilot_mcp.clients.cluster import ClusterClient
from clusterpilot_mcp.clients.configuration import ConfigurationClient
from clusterpilot_mcp.clients.network import NetworkClient
from clusterpilot_mcp.clients.rbac import RbacClient
from clusterpilot_mcp.clients.storage import StorageClient
from clusterpilot_mcp.clients.workloads import WorkloadClient

if TYPE_CHECKING:
    from clusterpilot_mcp.utils.client import KubeClient


@dataclass(frozen=True)
class ClientSet:
    """All domain handles for one context."""

    context_name: str
    api: KubeClient
    workloads: WorkloadClient
    network: NetworkClient
    storage: StorageClient
    configuration: ConfigurationClient
    rbac: RbacClient
    cluster: ClusterClient

    @classmethod
    def build(cls, api: KubeClient) -> ClientSet:
        return cls(
            context_name=api.context,
            api=api,
            workloads=WorkloadClient(api),
            network=NetworkClient(api),
            storage=StorageClient(api),
            configuration=ConfigurationClient(api),
            rbac=RbacClient(api),
            cluster=ClusterClient(api),
        )

    @property
    def default_namespace(self) -> str:
        return self.api.default_namespace


__all__ = [
    "ClientSet",
    "ClusterClient",
    "ConfigurationClient",
    "NetworkClient",
    "RbacClient",
    "StorageClient",
    "WorkloadClient",
]
