# ABOUTME: Cluster session owning the single gate for context-mutating operations
# ABOUTME: Makes switch-and-refresh atomic and serializes sweeps, removals, and writes

"""
Cluster session.

=============================================================================
WHAT PROBLEM DOES THIS SOLVE?
=============================================================================

"Which cluster am I talking to?" is process-wide state: one current context
in the kubeconfig file, one set of handles in the facade. Two callers that
both change it can interleave:

    sweep:   set_current(B) ............ probe B ...... restore(A)
    caller:            set_current(C) ... acts on C?   (now back on A!)

ClusterSession funnels every operation that changes the current context, or
that mutates a cluster through the current handles, through ONE asyncio.Lock
(the gate). Inside the gate "read current -> change -> act -> restore" runs as
one unit. Plain reads (list pods, list nodes) skip the gate; they only need
the handle swap in the facade to be atomic, which it is.

=============================================================================
WAITING VS REJECTING
=============================================================================

- A second sweep while one is running is rejected immediately with BusyError.
- Any other gated call waits up to `lock_timeout` seconds, then BusyError.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import structlog

from clusterpilot_mcp.errors import BusyError
from clusterpilot_mcp.facade import ResourceKind, ScalableKind
from clusterpilot_mcp.utils.validation import validate_namespace, validate_resource_name

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from clusterpilot_mcp.config import ServerSettings
    from clusterpilot_mcp.facade import ResourceFacade
    from clusterpilot_mcp.kubeconfig import ClusterContext, KubeconfigStore

logger = structlog.get_logger(__name__)


def _check_target(name: str, namespace: str | None) -> None:
    validate_resource_name(name)
    if namespace:
        validate_namespace(namespace)


class ClusterSession:
    """
    Explicit session object passed to every coordinator.

    Example:
        session = ClusterSession(store, facade, settings)
        await session.switch_context("staging")     # store + handles together
        async with session.exclusive("my_workflow"):
            ...                                     # nobody switches meanwhile
    """

    def __init__(self, store: KubeconfigStore, facade: ResourceFacade, settings: ServerSettings) -> None:
        self._store = store
        self._facade = facade
        self._lock_timeout = settings.lock_timeout
        self._gate = asyncio.Lock()
        self._holder: str | None = None
        self._sweep_in_progress = False

    @property
    def store(self) -> KubeconfigStore:
        return self._store

    @property
    def facade(self) -> ResourceFacade:
        return self._facade

    @property
    def busy(self) -> bool:
        return self._gate.locked()

    @property
    def holder(self) -> str | None:
        """Name of the operation holding the gate, if any."""
        return self._holder

    # -------------------------------------------------------------------------
    # Gate
    # -------------------------------------------------------------------------

    @asynccontextmanager
    async def exclusive(self, operation: str, wait: bool = True) -> AsyncIterator[ClusterSession]:
        """
        Hold the gate for the duration of the block.

        Args:
            operation: Name recorded as the holder (shows up in BusyError)
            wait: False rejects immediately when the gate is taken

        Raises:
            BusyError: Gate not acquired (immediately, or after lock_timeout)
        """
        if not wait and self._gate.locked():
            raise BusyError(operation, self._holder)
        try:
            await asyncio.wait_for(self._gate.acquire(), timeout=self._lock_timeout)
        except TimeoutError:
            logger.warning("Session gate wait timed out", operation=operation, holder=self._holder)
            raise BusyError(operation, self._holder) from None

        self._holder = operation
        log = logger.bind(operation=operation)
        log.debug("Session gate acquired")
        try:
            yield self
        finally:
            self._holder = None
            self._gate.release()
            log.debug("Session gate released")

    @asynccontextmanager
    async def sweep_scope(self) -> AsyncIterator[ClusterSession]:
        """Gate scope for a sweep. A concurrent sweep is rejected, not queued."""
        if self._sweep_in_progress:
            raise BusyError("sweep", "sweep")
        self._sweep_in_progress = True
        try:
            async with self.exclusive("sweep"):
                yield self
        finally:
            self._sweep_in_progress = False

    # -------------------------------------------------------------------------
    # Context operations
    # -------------------------------------------------------------------------

    def list_contexts(self) -> list[ClusterContext]:
        return self._store.list_contexts()

    def current_context(self) -> ClusterContext | None:
        return self._store.get_current()

    async def activate(self, name: str | None, revert_on_failure: bool = True) -> None:
        """
        Point the store at `name` and rebuild handles. Caller must hold the gate.

        None clears the current context and drops the handles. If the rebuild
        fails, the store pointer goes back to where it was so store and handles
        never disagree, and the error propagates. Sweeps pass
        revert_on_failure=False because they restore once at the end.
        """
        if not self._gate.locked():
            raise RuntimeError("activate() requires the session gate; use exclusive()")

        if name is None:
            self._store.clear_current()
            await self._facade.reset()
            return

        previous = self._store.current_context_name()
        self._store.set_current(name)
        try:
            await self._facade.refresh()
        except Exception:
            if not revert_on_failure:
                raise
            logger.warning("Handle rebuild failed; restoring previous context pointer", context=name, previous=previous)
            if previous is None:
                self._store.clear_current()
            elif previous != name:
                self._store.set_current(previous)
            raise

    async def switch_context(self, name: str) -> ClusterContext:
        """
        Make `name` the permanent current context and rebuild handles.

        Unknown names fail with NotFoundError before the gate is taken, so a
        typo never waits behind a sweep.
        """
        target = self._store.get_context(name)
        async with self.exclusive("switch_context"):
            await self.activate(name)
        logger.info("Switched context", context=name)
        return target

    async def remove_context(self, name: str) -> None:
        """Remove a context entry. InUseError if it is current."""
        async with self.exclusive("remove_context"):
            self._store.remove_context(name)

    async def sync_handles(self) -> None:
        """
        Rebuild handles if the kubeconfig was switched behind our back
        (for example by `kubectl config use-context`). Caller must hold the gate.
        """
        current = self._store.current_context_name()
        if current != self._facade.current_context:
            logger.info("Kubeconfig current context changed externally", context=current)
            if current is None:
                await self._facade.reset()
            else:
                await self._facade.refresh()

    # -------------------------------------------------------------------------
    # Gated mutations through the facade
    # -------------------------------------------------------------------------

    async def delete_resource(self, kind: str, name: str, namespace: str | None = None) -> str:
        resource_kind = ResourceKind.parse(kind)
        _check_target(name, namespace)
        async with self.exclusive("delete_resource"):
            await self.sync_handles()
            return await self._facade.delete_resource(resource_kind, name, namespace)

    async def scale_resource(self, kind: str, name: str, namespace: str | None, replicas: int) -> str:
        scalable = ScalableKind.parse(kind)
        _check_target(name, namespace)
        async with self.exclusive("scale_resource"):
            await self.sync_handles()
            return await self._facade.scale_resource(scalable, name, namespace, replicas)
