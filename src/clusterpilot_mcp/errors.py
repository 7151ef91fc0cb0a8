# ABOUTME: Exception hierarchy for ClusterPilot MCP
# ABOUTME: Validation, transport, and coordination errors raised by every layer

"""
Structured errors shared by the credential store, facade, and coordinators.

=============================================================================
WHY ONE HIERARCHY?
=============================================================================

Callers (the MCP tools in server.py) need to tell apart three situations:

1. VALIDATION errors: the request itself is wrong. Nothing was changed.
   - NotFoundError, UnsupportedKindError, RevisionNotFoundError, InUseError
   - InvalidNameError for empty or malformed names and namespaces
   - KubeconfigError when the credential file itself is broken

2. TRANSPORT errors: the cluster could not be reached or refused the call.
   - TransportError, ConflictError

3. COORDINATION errors: the request collided with another operation.
   - BusyError, PartialFailureError, StaleHandleError, NoActiveContextError

Everything derives from ClusterPilotError so a tool can catch one type,
report the message, and leave prior state unchanged:

    try:
        await session.switch_context("staging")
    except ClusterPilotError as e:
        return str(e)
"""

from __future__ import annotations

from typing import Any


class ClusterPilotError(Exception):
    """Base class for every error raised by this package."""


class NotFoundError(ClusterPilotError):
    """A context or a remote resource does not exist."""

    def __init__(self, kind: str, name: str, namespace: str | None = None) -> None:
        self.kind = kind
        self.name = name
        self.namespace = namespace
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.namespace:
            return f"{self.kind} '{self.name}' not found in namespace '{self.namespace}'"
        return f"{self.kind} '{self.name}' not found"


class UnsupportedKindError(ClusterPilotError):
    """Resource kind is outside the fixed allow-list of an operation."""

    def __init__(self, kind: str, supported: list[str]) -> None:
        self.kind = kind
        self.supported = supported
        super().__init__(
            f"Unsupported resource kind '{kind}'. Supported: {', '.join(supported)}"
        )


class RevisionNotFoundError(ClusterPilotError):
    """Rollback target revision is absent or has no pod template."""

    def __init__(self, workload: str, namespace: str, revision: int, reason: str = "") -> None:
        self.workload = workload
        self.namespace = namespace
        self.revision = revision
        message = f"Revision {revision} not found for deployment '{workload}' in '{namespace}'"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class InvalidNameError(ClusterPilotError):
    """A resource name or namespace is empty or not a valid DNS-1123 name."""

    def __init__(self, field: str, value: str, reason: str) -> None:
        self.field = field
        self.value = value
        super().__init__(f"Invalid {field} '{value}': {reason}")


class KubeconfigError(ClusterPilotError):
    """The kubeconfig file is unreadable or structurally invalid."""


class InUseError(ClusterPilotError):
    """Attempt to remove the context that is currently active."""

    def __init__(self, context: str) -> None:
        self.context = context
        super().__init__(
            f"Context '{context}' is the current context; switch to another context first"
        )


class TransportError(ClusterPilotError):
    """
    Remote API call failed.

    Carries the HTTP status code when the API server answered, or 0 when the
    request never got a response (DNS failure, refused connection, timeout).
    The original exception is chained via ``raise ... from``.
    """

    def __init__(self, code: int, message: str, details: str | None = None) -> None:
        self.code = code
        self.message = message
        self.details = details
        super().__init__(str(self))

    def __str__(self) -> str:
        base = f"Kubernetes API error ({self.code}): {self.message}" if self.code else (
            f"Kubernetes API unreachable: {self.message}"
        )
        if self.details:
            base += f" - {self.details}"
        return base


class ConflictError(TransportError):
    """Conditional update lost against a concurrent writer (HTTP 409)."""


class BusyError(ClusterPilotError):
    """The context gate is held by another operation."""

    def __init__(self, operation: str, holder: str | None = None) -> None:
        self.operation = operation
        self.holder = holder
        message = f"Cannot run '{operation}': cluster session is busy"
        if holder:
            message += f" ({holder} in progress)"
        super().__init__(message)


class PartialFailureError(ClusterPilotError):
    """One or more sub-fetches of an aggregate query failed."""

    def __init__(self, operation: str, failures: dict[str, BaseException]) -> None:
        self.operation = operation
        self.failures = failures
        parts = [f"{name}: {exc}" for name, exc in failures.items()]
        super().__init__(f"{operation} failed for {len(failures)} sub-fetch(es): " + "; ".join(parts))


class NoActiveContextError(ClusterPilotError):
    """No context is selected, so there are no handles to route calls through."""

    def __init__(self) -> None:
        super().__init__("No active cluster context; switch to a context first")


class StaleHandleError(ClusterPilotError):
    """A resource handle was used after its context was replaced."""

    def __init__(self, context: str) -> None:
        self.context = context
        super().__init__(f"Handle bound to context '{context}' is no longer active; refresh first")


def error_details(exc: BaseException) -> dict[str, Any]:
    """Flatten an error into audit-log friendly fields."""
    details: dict[str, Any] = {"type": type(exc).__name__, "error": str(exc)}
    if isinstance(exc, TransportError) and exc.code:
        details["code"] = exc.code
    return details
