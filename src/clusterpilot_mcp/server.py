# ABOUTME: FastMCP server exposing multi-cluster session, sweep, and rollout tools
# ABOUTME: Wires store, facade, session, and coordinators; applies safety checks per tool

"""
ClusterPilot MCP server.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

The outer surface of the package. Every tool follows the same shape:

1. set the correlation ID from the MCP request
2. ask the SafetyGuard whether the call is allowed (read / session / write /
   destructive); if not, audit the block and return the explanation
3. call the session or a coordinator
4. audit the outcome and return a short plain-text summary

Errors from the package (ClusterPilotError and subclasses) are returned as
the tool's text. Nothing has changed when a validation error comes back;
the active context and the handles are exactly as before the call.

=============================================================================
TOOLS
=============================================================================

Contexts:   list_contexts, switch_context, remove_context
Health:     sweep_clusters, probe_cluster, get_cluster_metrics
Resources:  delete_resource, scale_resource
Rollouts:   get_revision_history, get_rollout_status, rollback_deployment,
            pause_rollout, resume_rollout, restart_rollout
"""

from __future__ import annotations

import sys
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

import structlog
from mcp.server.fastmcp import Context, FastMCP
from pydantic import BaseModel, Field

from clusterpilot_mcp.config import ServerSettings, load_settings
from clusterpilot_mcp.errors import ClusterPilotError
from clusterpilot_mcp.facade import ResourceFacade
from clusterpilot_mcp.kubeconfig import KubeconfigStore
from clusterpilot_mcp.rollout import RolloutCoordinator
from clusterpilot_mcp.session import ClusterSession
from clusterpilot_mcp.sweep import HealthStatus, SweepOrchestrator
from clusterpilot_mcp.utils.logging import AuditLogger, configure_logging, set_correlation_id
from clusterpilot_mcp.utils.quantity import format_bytes, format_cores
from clusterpilot_mcp.utils.safety import ConfirmationRequired, SafetyGuard

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from clusterpilot_mcp.facade import ClientFactory

MCPContext = Context[Any, Any]
logger = structlog.get_logger(__name__)

# =============================================================================
# SERVER STATE
# =============================================================================

_settings: ServerSettings | None = None
_session: ClusterSession | None = None
_sweeper: SweepOrchestrator | None = None
_rollouts: RolloutCoordinator | None = None
_safety_guard: SafetyGuard | None = None
_audit_logger: AuditLogger | None = None


async def initialize(settings: ServerSettings, client_factory: ClientFactory | None = None) -> None:
    """
    Build every component from settings and install handles for the
    current context, if any. An unreachable or misconfigured current context
    is logged, not fatal: the server still starts and can switch away.
    """
    global _settings, _session, _sweeper, _rollouts, _safety_guard, _audit_logger

    store = KubeconfigStore(settings.resolved_kubeconfig, settings.skip_tls_verify_local)
    facade = ResourceFacade(store, settings, client_factory)

    _settings = settings
    _session = ClusterSession(store, facade, settings)
    _sweeper = SweepOrchestrator(_session, settings)
    _rollouts = RolloutCoordinator(_session)
    _safety_guard = SafetyGuard(settings.security)
    _audit_logger = AuditLogger(settings.security.audit_log)

    try:
        await facade.refresh()
    except ClusterPilotError as e:
        logger.warning("Initial handle build failed", error=str(e))
    logger.info("Kubeconfig loaded", path=str(store.path), context=facade.current_context)


async def shutdown() -> None:
    global _session, _sweeper, _rollouts
    if _session is not None:
        await _session.facade.reset()
    _session = None
    _sweeper = None
    _rollouts = None


@asynccontextmanager
async def lifespan(_server: FastMCP) -> AsyncIterator[dict[str, Any]]:
    """Manage server lifecycle: load config, build handles, cleanup on shutdown."""
    logger.info("Starting ClusterPilot MCP Server")

    settings = load_settings()
    configure_logging(level=settings.log_level, json_output=settings.json_logs)
    await initialize(settings)

    yield {"settings": settings}

    await shutdown()
    logger.info("ClusterPilot MCP Server stopped")


mcp = FastMCP("clusterpilot-mcp", lifespan=lifespan)


def get_settings() -> ServerSettings:
    if not _settings:
        raise RuntimeError("Server not initialized")
    return _settings


def get_session() -> ClusterSession:
    if not _session:
        raise RuntimeError("Server not initialized")
    return _session


def get_sweeper() -> SweepOrchestrator:
    if not _sweeper:
        raise RuntimeError("Server not initialized")
    return _sweeper


def get_rollouts() -> RolloutCoordinator:
    if not _rollouts:
        raise RuntimeError("Server not initialized")
    return _rollouts


def get_safety_guard() -> SafetyGuard:
    if not _safety_guard:
        raise RuntimeError("Server not initialized")
    return _safety_guard


def get_audit_logger() -> AuditLogger:
    if not _audit_logger:
        raise RuntimeError("Server not initialized")
    return _audit_logger


def _active_context() -> str | None:
    return get_session().facade.current_context


def _namespace(namespace: str | None) -> str:
    return namespace or get_session().facade.handles.default_namespace


# =============================================================================
# CONTEXT TOOLS
# =============================================================================


class ListContextsParams(BaseModel):
    """Parameters for list_contexts tool."""


@mcp.tool()
async def list_contexts(params: ListContextsParams, ctx: MCPContext) -> str:
    """
    List every context in the kubeconfig file.

    The current context is marked with '*'. Use switch_context to change it.
    """
    set_correlation_id(ctx.request_id if hasattr(ctx, "request_id") else "")

    blocked = get_safety_guard().check_read_operation("list_contexts")
    if blocked:
        get_audit_logger().log_blocked("list_contexts", "all", blocked.reason)
        return blocked.format_message()

    try:
        session = get_session()
        contexts = session.list_contexts()
        current = session.store.current_context_name()
        get_audit_logger().log_read("list_contexts", "all", context=current)

        if not contexts:
            return f"No contexts configured in {session.store.path}"

        lines = [f"Found {len(contexts)} context(s):", ""]
        for c in contexts:
            marker = "*" if c.name == current else " "
            lines.append(f"{marker} {c.name}  server={c.server_endpoint}  namespace={c.default_namespace}")
        if current is None:
            lines.extend(["", "No current context selected."])
        return "\n".join(lines)

    except ClusterPilotError as e:
        get_audit_logger().log_error("list_contexts", "all", str(e))
        return str(e)


class SwitchContextParams(BaseModel):
    """Parameters for switch_context tool."""

    name: str = Field(min_length=1, description="Context name to make current")


@mcp.tool()
async def switch_context(params: SwitchContextParams, ctx: MCPContext) -> str:
    """
    Make a context the current one and rebuild all cluster handles.

    The change is permanent (written to the kubeconfig file). Waits if a
    sweep or rollout is in progress.
    """
    set_correlation_id(ctx.request_id if hasattr(ctx, "request_id") else "")

    blocked = get_safety_guard().check_session_operation("switch_context")
    if blocked:
        get_audit_logger().log_blocked("switch_context", params.name, blocked.reason)
        return blocked.format_message()

    try:
        previous = _active_context()
        target = await get_session().switch_context(params.name)
        get_audit_logger().log_write(
            "switch_context", params.name, "success", {"previous": previous}, context=params.name
        )
        return (
            f"Switched to context '{target.name}'\n"
            f"Server: {target.server_endpoint}\n"
            f"Default namespace: {target.default_namespace}"
        )

    except ClusterPilotError as e:
        get_audit_logger().log_error("switch_context", params.name, str(e), context=_active_context())
        return str(e)


class RemoveContextParams(BaseModel):
    """Parameters for remove_context tool."""

    name: str = Field(min_length=1, description="Context name to remove from the kubeconfig")
    confirm: bool = Field(default=False, description="Must be true to execute removal")
    confirm_name: str | None = Field(default=None, description="Type the context name to confirm")


@mcp.tool()
async def remove_context(params: RemoveContextParams, ctx: MCPContext) -> str:
    """
    Remove a context entry from the kubeconfig (DESTRUCTIVE).

    The current context cannot be removed; switch away first. Requires
    confirm=true AND confirm_name matching the context name.
    """
    set_correlation_id(ctx.request_id if hasattr(ctx, "request_id") else "")

    blocked = get_safety_guard().check_destructive_operation(
        "remove_context",
        params.name,
        confirmed=params.confirm,
        confirm_name=params.confirm_name,
    )
    if blocked:
        if isinstance(blocked, ConfirmationRequired):
            get_audit_logger().log_blocked("remove_context", params.name, "confirmation required")
        else:
            get_audit_logger().log_blocked("remove_context", params.name, blocked.reason)
        return blocked.format_message()

    try:
        await get_session().remove_context(params.name)
        get_audit_logger().log_write("remove_context", params.name, "success", context=_active_context())
        return f"Context '{params.name}' removed from kubeconfig"

    except ClusterPilotError as e:
        get_audit_logger().log_error("remove_context", params.name, str(e), context=_active_context())
        return str(e)


# =============================================================================
# HEALTH TOOLS
# =============================================================================


def _format_snapshot(snap: Any) -> str:
    active = " (active)" if snap.is_active else ""
    if snap.status is HealthStatus.CONNECTED:
        return (
            f"[OK] {snap.context}{active}: nodes={snap.node_count} pods={snap.pod_count} "
            f"namespaces={snap.namespace_count} kubelet={snap.kubelet_version or 'unknown'}"
        )
    return f"[!] {snap.context}{active}: {snap.status.value} - {snap.error}"


class SweepClustersParams(BaseModel):
    """Parameters for sweep_clusters tool."""


@mcp.tool()
async def sweep_clusters(params: SweepClustersParams, ctx: MCPContext) -> str:
    """
    Probe every configured cluster and report connectivity and size.

    Temporarily switches to each context in turn and always switches back to
    the original context afterwards. Unreachable clusters are reported as
    disconnected without stopping the sweep.
    """
    set_correlation_id(ctx.request_id if hasattr(ctx, "request_id") else "")

    blocked = get_safety_guard().check_read_operation("sweep_clusters")
    if blocked:
        get_audit_logger().log_blocked("sweep_clusters", "all", blocked.reason)
        return blocked.format_message()

    try:
        await ctx.report_progress(0, 1, "Sweeping clusters")
        snapshots = await get_sweeper().sweep()
        await ctx.report_progress(1, 1, "Complete")

        get_audit_logger().log_read("sweep_clusters", "all", context=_active_context())

        if not snapshots:
            return "No contexts configured; nothing to sweep."

        connected = sum(1 for s in snapshots if s.status is HealthStatus.CONNECTED)
        lines = [f"Swept {len(snapshots)} cluster(s): {connected} connected, {len(snapshots) - connected} disconnected", ""]
        lines.extend(_format_snapshot(s) for s in snapshots)
        return "\n".join(lines)

    except ClusterPilotError as e:
        get_audit_logger().log_error("sweep_clusters", "all", str(e), context=_active_context())
        return str(e)


class ProbeClusterParams(BaseModel):
    """Parameters for probe_cluster tool."""

    name: str = Field(min_length=1, description="Context name to probe")


@mcp.tool()
async def probe_cluster(params: ProbeClusterParams, ctx: MCPContext) -> str:
    """Probe one cluster's connectivity without changing the current context."""
    set_correlation_id(ctx.request_id if hasattr(ctx, "request_id") else "")

    blocked = get_safety_guard().check_read_operation("probe_cluster")
    if blocked:
        get_audit_logger().log_blocked("probe_cluster", params.name, blocked.reason)
        return blocked.format_message()

    try:
        snapshot = await get_sweeper().probe_context(params.name)
        get_audit_logger().log_read("probe_cluster", params.name, context=_active_context())
        return _format_snapshot(snapshot)

    except ClusterPilotError as e:
        get_audit_logger().log_error("probe_cluster", params.name, str(e), context=_active_context())
        return str(e)


class GetClusterMetricsParams(BaseModel):
    """Parameters for get_cluster_metrics tool."""

    include_usage: bool = Field(
        default=True,
        description="Include CPU/memory usage from metrics-server (fails if it is not installed)",
    )


@mcp.tool()
async def get_cluster_metrics(params: GetClusterMetricsParams, ctx: MCPContext) -> str:
    """
    Aggregate counts and capacity for the active cluster.

    All-or-nothing: if any sub-query fails, the failures are listed instead
    of totals computed from partial data.
    """
    set_correlation_id(ctx.request_id if hasattr(ctx, "request_id") else "")

    blocked = get_safety_guard().check_read_operation("get_cluster_metrics")
    if blocked:
        get_audit_logger().log_blocked("get_cluster_metrics", "cluster", blocked.reason)
        return blocked.format_message()

    try:
        m = await get_session().facade.get_aggregate_metrics(include_usage=params.include_usage)
        get_audit_logger().log_read("get_cluster_metrics", "cluster", context=m.context)

        lines = [
            f"Cluster metrics for context '{m.context}':",
            "",
            f"Nodes: {m.node_count}",
            f"Pods: {m.pod_count}",
            f"Namespaces: {m.namespace_count}",
            f"Deployments: {m.deployment_count}",
            f"Services: {m.service_count}",
            "",
            f"CPU allocatable: {format_cores(m.cpu_total)}",
            f"Memory allocatable: {format_bytes(m.memory_total)}",
        ]
        if m.cpu_used is not None and m.memory_used is not None:
            lines.extend(
                [
                    f"CPU used: {format_cores(m.cpu_used)} ({m.cpu_utilization}%)",
                    f"Memory used: {format_bytes(m.memory_used)} ({m.memory_utilization}%)",
                ]
            )
        return "\n".join(lines)

    except ClusterPilotError as e:
        get_audit_logger().log_error("get_cluster_metrics", "cluster", str(e), context=_active_context())
        return str(e)


# =============================================================================
# RESOURCE TOOLS
# =============================================================================


class DeleteResourceParams(BaseModel):
    """Parameters for delete_resource tool."""

    kind: str = Field(description="Resource kind: pod, deployment, service, configmap or secret")
    name: str = Field(min_length=1, description="Resource name")
    namespace: str | None = Field(default=None, description="Namespace (defaults to the context's namespace)")
    confirm: bool = Field(default=False, description="Must be true to execute deletion")
    confirm_name: str | None = Field(default=None, description="Type the resource name to confirm deletion")


@mcp.tool()
async def delete_resource(params: DeleteResourceParams, ctx: MCPContext) -> str:
    """
    Delete a resource in the active cluster (DESTRUCTIVE).

    Requires confirm=true AND confirm_name matching the resource name.
    """
    set_correlation_id(ctx.request_id if hasattr(ctx, "request_id") else "")
    target = f"{params.kind.lower()}/{params.namespace or '-'}/{params.name}"

    blocked = get_safety_guard().check_destructive_operation(
        "delete_resource",
        params.name,
        confirmed=params.confirm,
        confirm_name=params.confirm_name,
    )
    if blocked:
        if isinstance(blocked, ConfirmationRequired):
            blocked.details = {
                "kind": params.kind,
                "namespace": params.namespace or "(context default)",
                "context": _active_context() or "(none)",
            }
            get_audit_logger().log_blocked("delete_resource", target, "confirmation required")
        else:
            get_audit_logger().log_blocked("delete_resource", target, blocked.reason)
        return blocked.format_message()

    try:
        context = _active_context()
        namespace = await get_session().delete_resource(params.kind, params.name, params.namespace)
        target = f"{params.kind.lower()}/{namespace}/{params.name}"
        get_audit_logger().log_write("delete_resource", target, "deleted", context=context)
        return f"Deleted {params.kind} '{params.name}' from namespace '{namespace}' (context '{context}')"

    except ClusterPilotError as e:
        get_audit_logger().log_error("delete_resource", target, str(e), context=_active_context())
        return str(e)


class ScaleResourceParams(BaseModel):
    """Parameters for scale_resource tool."""

    kind: str = Field(default="deployment", description="deployment, statefulset or replicaset")
    name: str = Field(min_length=1, description="Workload name")
    namespace: str | None = Field(default=None, description="Namespace (defaults to the context's namespace)")
    replicas: int = Field(ge=0, description="Desired replica count")


@mcp.tool()
async def scale_resource(params: ScaleResourceParams, ctx: MCPContext) -> str:
    """Set the replica count of a deployment, stateful set or replica set."""
    set_correlation_id(ctx.request_id if hasattr(ctx, "request_id") else "")
    target = f"{params.kind.lower()}/{params.namespace or '-'}/{params.name}"

    blocked = get_safety_guard().check_write_operation("scale_resource")
    if blocked:
        get_audit_logger().log_blocked("scale_resource", target, blocked.reason)
        return blocked.format_message()

    try:
        namespace = await get_session().scale_resource(params.kind, params.name, params.namespace, params.replicas)
        get_audit_logger().log_write(
            "scale_resource", target, "success", {"replicas": params.replicas}, context=_active_context()
        )
        return f"Scaled {params.kind} '{params.name}' in '{namespace}' to {params.replicas} replica(s)"

    except ClusterPilotError as e:
        get_audit_logger().log_error("scale_resource", target, str(e), context=_active_context())
        return str(e)


# =============================================================================
# ROLLOUT TOOLS
# =============================================================================


class DeploymentParams(BaseModel):
    """Parameters identifying one deployment."""

    name: str = Field(min_length=1, description="Deployment name")
    namespace: str | None = Field(default=None, description="Namespace (defaults to the context's namespace)")


@mcp.tool()
async def get_revision_history(params: DeploymentParams, ctx: MCPContext) -> str:
    """
    List a deployment's revisions, newest first.

    The revision the deployment currently runs is marked; after a rollback
    it is not necessarily the highest number.
    """
    set_correlation_id(ctx.request_id if hasattr(ctx, "request_id") else "")

    blocked = get_safety_guard().check_read_operation("get_revision_history")
    if blocked:
        get_audit_logger().log_blocked("get_revision_history", params.name, blocked.reason)
        return blocked.format_message()

    try:
        namespace = _namespace(params.namespace)
        rollouts = get_rollouts()
        status = await rollouts.get_rollout_status(params.name, namespace)
        history = await rollouts.get_revision_history(params.name, namespace)
        get_audit_logger().log_read("get_revision_history", f"{namespace}/{params.name}", context=_active_context())

        if not history:
            return f"No revision history found for deployment '{params.name}' in '{namespace}'"

        lines = [f"Revision history for {namespace}/{params.name}:", ""]
        for rec in history:
            marker = " (current)" if rec.revision == status.current_revision else ""
            images = ", ".join(rec.container_images) or "-"
            lines.append(
                f"- revision {rec.revision}{marker}: images={images} replicas={rec.desired_replicas} "
                f"created={rec.created_at or '-'} cause={rec.change_cause or '-'}"
            )
        return "\n".join(lines)

    except ClusterPilotError as e:
        get_audit_logger().log_error("get_revision_history", params.name, str(e), context=_active_context())
        return str(e)


@mcp.tool()
async def get_rollout_status(params: DeploymentParams, ctx: MCPContext) -> str:
    """Replica counts, strategy, paused flag, and conditions of a deployment."""
    set_correlation_id(ctx.request_id if hasattr(ctx, "request_id") else "")

    blocked = get_safety_guard().check_read_operation("get_rollout_status")
    if blocked:
        get_audit_logger().log_blocked("get_rollout_status", params.name, blocked.reason)
        return blocked.format_message()

    try:
        namespace = _namespace(params.namespace)
        s = await get_rollouts().get_rollout_status(params.name, namespace)
        get_audit_logger().log_read("get_rollout_status", f"{namespace}/{params.name}", context=_active_context())

        lines = [
            f"Deployment: {s.namespace or namespace}/{s.name}",
            f"State: {s.state}",
            f"Current revision: {s.current_revision if s.current_revision is not None else 'unknown'}",
            f"Replicas: desired={s.desired_replicas} updated={s.updated_replicas} "
            f"ready={s.ready_replicas} available={s.available_replicas} unavailable={s.unavailable_replicas}",
            f"Strategy: {s.strategy}",
        ]
        if s.strategy == "RollingUpdate":
            lines.append(f"  maxSurge={s.max_surge or 'N/A'} maxUnavailable={s.max_unavailable or 'N/A'}")
        if s.progress_deadline_seconds:
            lines.append(f"Progress deadline: {s.progress_deadline_seconds}s")
        if s.conditions:
            lines.extend(["", "Conditions:"])
            for c in s.conditions:
                lines.append(f"  - [{c['type']}={c['status']}] {c['reason']}: {c['message']}")
        return "\n".join(lines)

    except ClusterPilotError as e:
        get_audit_logger().log_error("get_rollout_status", params.name, str(e), context=_active_context())
        return str(e)


class RollbackDeploymentParams(BaseModel):
    """Parameters for rollback_deployment tool."""

    name: str = Field(min_length=1, description="Deployment name")
    namespace: str | None = Field(default=None, description="Namespace (defaults to the context's namespace)")
    revision: int = Field(gt=0, description="Revision number to roll back to")
    dry_run: bool = Field(default=True, description="Validate without applying (default: true)")


@mcp.tool()
async def rollback_deployment(params: RollbackDeploymentParams, ctx: MCPContext) -> str:
    """
    Roll a deployment back to an earlier revision.

    By default only validates that the revision exists. Set dry_run=false to
    apply. If the deployment changed concurrently the rollback is refused
    with a conflict and can be retried.
    """
    set_correlation_id(ctx.request_id if hasattr(ctx, "request_id") else "")

    blocked = get_safety_guard().check_write_operation("rollback_deployment")
    if blocked:
        get_audit_logger().log_blocked("rollback_deployment", params.name, blocked.reason)
        return blocked.format_message()

    try:
        namespace = _namespace(params.namespace)
        target = f"{namespace}/{params.name}"
        mode = "[DRY-RUN] " if params.dry_run else ""
        await ctx.report_progress(0, 1, f"{mode}Rolling back {target} to revision {params.revision}")

        record = await get_rollouts().rollback_to_revision(
            params.name, namespace, params.revision, dry_run=params.dry_run
        )
        await ctx.report_progress(1, 1, "Complete")

        images = ", ".join(record.container_images) or "-"
        if params.dry_run:
            get_audit_logger().log_write(
                "rollback_deployment", target, "dry_run", {"revision": params.revision}, context=_active_context()
            )
            return (
                f"Dry-run rollback of '{target}' to revision {record.revision}\n"
                f"Images: {images}\n\n"
                f"To apply:\n"
                f"  rollback_deployment(name='{params.name}', revision={params.revision}, dry_run=false)"
            )
        get_audit_logger().log_write(
            "rollback_deployment", target, "success", {"revision": params.revision}, context=_active_context()
        )
        return (
            f"Rolled back '{target}' to revision {record.revision}\n"
            f"Images: {images}\n\n"
            f"Use get_rollout_status to monitor progress."
        )

    except ClusterPilotError as e:
        get_audit_logger().log_error("rollback_deployment", params.name, str(e), context=_active_context())
        return str(e)


async def _rollout_action(action: str, params: DeploymentParams, done: str) -> str:
    blocked = get_safety_guard().check_write_operation(action)
    if blocked:
        get_audit_logger().log_blocked(action, params.name, blocked.reason)
        return blocked.format_message()

    try:
        namespace = _namespace(params.namespace)
        rollouts = get_rollouts()
        operations = {
            "pause_rollout": rollouts.pause,
            "resume_rollout": rollouts.resume,
            "restart_rollout": rollouts.restart,
        }
        await operations[action](params.name, namespace)
        get_audit_logger().log_write(action, f"{namespace}/{params.name}", "success", context=_active_context())
        return f"Deployment '{namespace}/{params.name}' {done}"

    except ClusterPilotError as e:
        get_audit_logger().log_error(action, params.name, str(e), context=_active_context())
        return str(e)


@mcp.tool()
async def pause_rollout(params: DeploymentParams, ctx: MCPContext) -> str:
    """Pause a deployment's rollout. Only spec.paused is changed."""
    set_correlation_id(ctx.request_id if hasattr(ctx, "request_id") else "")
    return await _rollout_action("pause_rollout", params, "paused")


@mcp.tool()
async def resume_rollout(params: DeploymentParams, ctx: MCPContext) -> str:
    """Resume a paused deployment rollout."""
    set_correlation_id(ctx.request_id if hasattr(ctx, "request_id") else "")
    return await _rollout_action("resume_rollout", params, "resumed")


@mcp.tool()
async def restart_rollout(params: DeploymentParams, ctx: MCPContext) -> str:
    """Restart all pods of a deployment without changing image or replica count."""
    set_correlation_id(ctx.request_id if hasattr(ctx, "request_id") else "")
    return await _rollout_action("restart_rollout", params, "restarted")


# =============================================================================
# RESOURCES
# =============================================================================


@mcp.resource("clusterpilot://contexts")
async def get_contexts_resource() -> str:
    """Configured contexts and which one is current."""
    session = get_session()
    contexts = session.list_contexts()
    if not contexts:
        return "No contexts configured"
    current = session.store.current_context_name()
    lines = ["Configured Contexts:", ""]
    for c in contexts:
        marker = " (current)" if c.name == current else ""
        lines.append(f"- {c.name}{marker}: {c.server_endpoint}")
    return "\n".join(lines)


@mcp.resource("clusterpilot://security")
async def get_security_resource() -> str:
    """Get current security settings."""
    settings = get_settings()
    sec = settings.security

    return (
        "Security Settings:\n"
        f"  Read-only mode: {sec.read_only}\n"
        f"  Destructive operations disabled: {sec.disable_destructive}\n"
        f"  Secret masking: {sec.mask_secrets}\n"
        f"  Rate limit: {sec.rate_limit_calls} calls per {sec.rate_limit_window}s\n"
        f"  Probe timeout: {settings.probe_timeout:g}s\n"
        f"  Gate wait timeout: {settings.lock_timeout:g}s"
    )


# =============================================================================
# ENTRY POINT
# =============================================================================


def main() -> None:
    """Run the ClusterPilot MCP server."""
    configure_logging(level="INFO")
    logger.info("ClusterPilot MCP Server starting")

    try:
        mcp.run()
    except KeyboardInterrupt:
        logger.info("Server interrupted")
        sys.exit(0)
    except Exception as e:
        logger.error("Server error", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
