# ABOUTME: ClusterPilot MCP package initialization
# ABOUTME: Exposes version information and describes the package layout

"""
ClusterPilot MCP - multi-cluster Kubernetes session and rollout coordination.

=============================================================================
WHAT IS THIS PACKAGE?
=============================================================================

An operator usually has several Kubernetes clusters configured in one
kubeconfig file: a laptop cluster, staging, production, maybe a few regional
clusters. Each entry in that file is a CONTEXT, and exactly one context is
"current" at any time.

This package is the coordination layer that sits between those contexts and
the tools that act on clusters. It:

1. TRACKS which context is active (the kubeconfig file is the source of truth)
2. REBUILDS the cluster-bound API handles every time the active context changes
3. SWEEPS every configured cluster to build a comparable health snapshot,
   always restoring the original context afterwards
4. COORDINATES multi-step rollout workflows (rollback, pause, resume, restart)
   so a failure never leaves a half-applied change behind

The whole thing is exposed through a Model Context Protocol (MCP) server so an
assistant or any MCP client can drive it.

=============================================================================
PACKAGE STRUCTURE OVERVIEW
=============================================================================

clusterpilot_mcp/
├── __init__.py          <- YOU ARE HERE: Package entry point
├── config.py            <- Settings (env vars, timeouts, security modes)
├── errors.py            <- Exception hierarchy shared by every layer
├── kubeconfig.py        <- Credential store backed by the kubeconfig file
├── facade.py            <- Resource client facade (handle rebuild, dispatch)
├── session.py           <- Session object with the context-switch gate
├── sweep.py             <- Cross-cluster health sweep orchestrator
├── rollout.py           <- Deployment rollout coordinator
├── server.py            <- FastMCP server with all tools defined
├── clients/             <- Six thin domain clients (workloads, network, ...)
└── utils/
    ├── client.py        <- httpx transport for the Kubernetes REST API
    ├── logging.py       <- Structured logging with audit trails
    ├── quantity.py      <- Kubernetes resource quantity parsing
    └── safety.py        <- Read-only mode, confirmations, rate limiting
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
