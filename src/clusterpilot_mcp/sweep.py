# ABOUTME: Cross-cluster health sweep that visits every kubeconfig context in turn
# ABOUTME: Records connected/disconnected snapshots and always restores the original context

"""
Cross-cluster sweep orchestrator.

=============================================================================
WHAT IS A SWEEP?
=============================================================================

A sweep answers "which of my clusters are reachable, and how big are they?"
for every context in the kubeconfig file, in file order:

    original = current context
    for each context:
        SWITCHING   make it current, rebuild handles
        PROBING     fetch nodes, pods, namespaces concurrently
        RECORDING   connected snapshot with counts + kubelet version,
                    or disconnected snapshot with every count cleared
    RESTORING   make `original` current again (runs on EVERY exit path)

One unreachable cluster never stops the sweep; its failure becomes a
`disconnected` snapshot and the loop moves on.

=============================================================================
BOUNDS
=============================================================================

- Each probe (switch + three reads) is bounded by probe_timeout. A hung API
  server is recorded as disconnected instead of holding the gate forever.
- The three reads are retried a bounded number of times on 5xx, 408 and
  429 answers. Network errors and timeouts are retried by the transport
  only, never again here. Nothing that writes is retried.
- The whole sweep holds the session gate, so no switch can interleave. A
  second sweep request while one runs gets BusyError right away.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from clusterpilot_mcp.errors import TransportError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from clusterpilot_mcp.config import ServerSettings
    from clusterpilot_mcp.kubeconfig import ClusterContext
    from clusterpilot_mcp.session import ClusterSession

logger = structlog.get_logger(__name__)


class SweepPhase(str, Enum):
    IDLE = "idle"
    SWITCHING = "switching"
    PROBING = "probing"
    RECORDING = "recording"
    RESTORING = "restoring"


class HealthStatus(str, Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    CHECKING = "checking"


@dataclass(frozen=True)
class ClusterHealthSnapshot:
    """
    Point-in-time health of one context.

    A disconnected snapshot carries the error and NO counts: stale numbers
    from an earlier sweep would look like live data.
    """

    context: str
    status: HealthStatus
    server_endpoint: str = ""
    node_count: int | None = None
    pod_count: int | None = None
    namespace_count: int | None = None
    kubelet_version: str | None = None
    error: str | None = None
    is_active: bool = False
    last_checked: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def checking(cls, ctx: ClusterContext, is_active: bool = False) -> ClusterHealthSnapshot:
        return cls(
            context=ctx.name,
            status=HealthStatus.CHECKING,
            server_endpoint=ctx.server_endpoint,
            is_active=is_active,
        )

    def connected(
        self,
        nodes: list[dict[str, Any]],
        pods: list[dict[str, Any]],
        namespaces: list[dict[str, Any]],
    ) -> ClusterHealthSnapshot:
        return replace(
            self,
            status=HealthStatus.CONNECTED,
            node_count=len(nodes),
            pod_count=len(pods),
            namespace_count=len(namespaces),
            kubelet_version=_kubelet_version(nodes),
            error=None,
            last_checked=datetime.now(UTC),
        )

    def disconnected(self, error: str) -> ClusterHealthSnapshot:
        return replace(
            self,
            status=HealthStatus.DISCONNECTED,
            node_count=None,
            pod_count=None,
            namespace_count=None,
            kubelet_version=None,
            error=error,
            last_checked=datetime.now(UTC),
        )


def _kubelet_version(nodes: list[dict[str, Any]]) -> str | None:
    if not nodes:
        return None
    return ((nodes[0].get("status") or {}).get("nodeInfo") or {}).get("kubeletVersion")


def _is_transient(exc: BaseException) -> bool:
    """
    Status codes worth another probe attempt.

    Code 0 (no response) is excluded: the transport already retries timeouts
    and connection errors on every GET.
    """
    if not isinstance(exc, TransportError) or exc.code == 0:
        return False
    return exc.code >= 500 or exc.code in (408, 429)


class SweepOrchestrator:
    """
    Visits contexts through the session and collects health snapshots.

    Example:
        orchestrator = SweepOrchestrator(session, settings)
        for snap in await orchestrator.sweep():
            print(snap.context, snap.status.value, snap.node_count)
    """

    def __init__(self, session: ClusterSession, settings: ServerSettings) -> None:
        self._session = session
        self._probe_timeout = settings.probe_timeout
        self._probe_attempts = settings.probe_retries
        self._phase = SweepPhase.IDLE
        self._last: list[ClusterHealthSnapshot] = []

    @property
    def phase(self) -> SweepPhase:
        return self._phase

    @property
    def last_snapshots(self) -> list[ClusterHealthSnapshot]:
        return list(self._last)

    # -------------------------------------------------------------------------
    # Public operations
    # -------------------------------------------------------------------------

    async def sweep(self) -> list[ClusterHealthSnapshot]:
        """
        Probe every context in listing order and restore the original one.

        Returns:
            One snapshot per context, same order as the kubeconfig file.
            Empty list (and no context change) when there are no contexts.

        Raises:
            BusyError: Another sweep is running
        """
        async with self._session.sweep_scope():
            contexts = self._session.list_contexts()
            if not contexts:
                logger.info("Sweep skipped: no contexts configured")
                self._last = []
                return []
            snapshots = await self._visit(contexts)
            self._last = snapshots
            return list(snapshots)

    async def probe_context(self, name: str) -> ClusterHealthSnapshot:
        """Probe a single context with the same restore guarantee as sweep()."""
        ctx = self._session.store.get_context(name)
        async with self._session.exclusive("probe_cluster"):
            snapshots = await self._visit([ctx])
        snapshot = snapshots[0]
        if any(s.context == name for s in self._last):
            self._last = [snapshot if s.context == name else s for s in self._last]
        else:
            self._last.append(snapshot)
        return snapshot

    # -------------------------------------------------------------------------
    # Internals (gate already held)
    # -------------------------------------------------------------------------

    async def _visit(self, contexts: list[ClusterContext]) -> list[ClusterHealthSnapshot]:
        original = self._session.store.current_context_name()
        log = logger.bind(original=original, count=len(contexts))
        log.info("Sweep started")
        snapshots: list[ClusterHealthSnapshot] = []
        try:
            for ctx in contexts:
                snapshots.append(await self._probe(ctx, is_active=ctx.name == original))
        finally:
            self._phase = SweepPhase.RESTORING
            try:
                await self._restore(original)
            finally:
                self._phase = SweepPhase.IDLE
        connected = sum(1 for s in snapshots if s.status is HealthStatus.CONNECTED)
        log.info("Sweep finished", connected=connected, disconnected=len(snapshots) - connected)
        return snapshots

    async def _probe(self, ctx: ClusterContext, is_active: bool) -> ClusterHealthSnapshot:
        pending = ClusterHealthSnapshot.checking(ctx, is_active)
        try:
            nodes, pods, namespaces = await asyncio.wait_for(
                self._switch_and_fetch(ctx.name), timeout=self._probe_timeout
            )
        except TimeoutError:
            self._phase = SweepPhase.RECORDING
            logger.warning("Cluster probe timed out", context=ctx.name, timeout=self._probe_timeout)
            return pending.disconnected(f"Probe timed out after {self._probe_timeout:g}s")
        except Exception as e:
            self._phase = SweepPhase.RECORDING
            logger.warning("Cluster probe failed", context=ctx.name, error=str(e))
            return pending.disconnected(str(e) or type(e).__name__)
        self._phase = SweepPhase.RECORDING
        return pending.connected(nodes, pods, namespaces)

    async def _switch_and_fetch(
        self, name: str
    ) -> tuple[list[dict[str, Any]], list[dict[str, Any]], list[dict[str, Any]]]:
        self._phase = SweepPhase.SWITCHING
        await self._session.activate(name, revert_on_failure=False)

        self._phase = SweepPhase.PROBING
        facade = self._session.facade
        results = await asyncio.gather(
            self._read(facade.list_nodes),
            self._read(facade.list_pods),
            self._read(facade.list_namespaces),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        nodes, pods, namespaces = results
        return nodes, pods, namespaces  # type: ignore[return-value]

    async def _read(self, fetch: Callable[[], Awaitable[list[dict[str, Any]]]]) -> list[dict[str, Any]]:
        retrying = AsyncRetrying(
            retry=retry_if_exception(_is_transient),
            stop=stop_after_attempt(self._probe_attempts),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
            reraise=True,
        )
        return await retrying(fetch)

    async def _restore(self, original: str | None) -> None:
        """
        Put the original context back, store first, then handles.

        If the handles for `original` cannot be rebuilt, or `original` names a
        context with no entry, the facade is left empty rather than pointing
        at the last probed cluster.
        """
        store = self._session.store
        facade = self._session.facade
        if original is None:
            store.clear_current()
            await facade.reset()
            logger.info("Sweep restored: no current context")
            return
        if not any(c.name == original for c in store.list_contexts()):
            store.restore_current(original)
            await facade.reset()
            logger.warning("Sweep restored a current context with no entry", context=original)
            return
        store.set_current(original)
        try:
            await facade.refresh()
        except Exception as e:
            logger.error("Could not rebuild handles for original context", context=original, error=str(e))
            await facade.reset()
            raise
        logger.info("Sweep restored original context", context=original)
