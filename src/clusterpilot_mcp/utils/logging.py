# ABOUTME: Structured logging with correlation IDs and audit trail
# ABOUTME: Audit entries record which cluster context each operation ran against

"""
Structured logging built on structlog.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

Two kinds of log output come out of this server:

1. OPERATIONAL logs: what the code is doing ("Sweep started", "Probe failed")
   - Written with structlog.get_logger(__name__) in every module
   - Each line carries a correlation ID so one tool call can be followed
     through the session, the facade, and the HTTP transport

2. AUDIT logs: who asked for what, against which cluster, and how it ended
   - Written through AuditLogger
   - One JSON object per line when MCP_AUDIT_LOG points to a file

=============================================================================
WHY RECORD THE CLUSTER CONTEXT?
=============================================================================

"Deleted pod web-1" is useless in a multi-cluster setup unless the entry also
says WHICH cluster. The active context at the time of the call is attached to
every audit entry:

    {"action": "delete_resource", "target": "pod/default/web-1",
     "context": "prod-eu", "result": "success", ...}

=============================================================================
WHY STDERR?
=============================================================================

The MCP stdio transport owns stdout for protocol messages. Log lines written
there would corrupt the stream, so the logger factory prints to stderr.
"""

from __future__ import annotations

import json
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from collections.abc import MutableMapping
    from pathlib import Path


# =============================================================================
# CORRELATION ID MANAGEMENT
# =============================================================================

correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")


def get_correlation_id() -> str:
    """
    Get current correlation ID or generate new one.

    Code running outside a tool call (startup, the initial refresh) still gets
    an ID so its log lines can be grouped.

    Returns:
        8-character correlation ID string.
    """
    cid = correlation_id.get()
    if not cid:
        cid = str(uuid.uuid4())[:8]
        correlation_id.set(cid)
    return cid


def set_correlation_id(cid: str) -> None:
    """
    Set correlation ID for current context.

    Called at the start of each MCP tool with the request ID. An empty string
    makes the next get_correlation_id() generate a fresh one.
    """
    correlation_id.set(str(cid) if cid else "")


def add_correlation_id(
    logger: structlog.types.WrappedLogger,  # noqa: ARG001 - Required by structlog Processor API
    method_name: str,  # noqa: ARG001 - Required by structlog Processor API
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Structlog processor adding the correlation ID to every event."""
    event_dict["correlation_id"] = get_correlation_id()
    return event_dict


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
) -> None:
    """
    Configure structured logging. Call once at startup.

    PROCESSOR PIPELINE:
    -------------------
    1. merge_contextvars: Adds any bound context variables
    2. add_log_level: Adds "level" field
    3. TimeStamper: Adds ISO-format timestamp
    4. add_correlation_id: Adds our correlation ID
    5. Renderer: JSON for log aggregators, console text for development

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        json_output: Emit JSON instead of colored console text
    """
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        add_correlation_id,
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# =============================================================================
# AUDIT LOGGING
# =============================================================================


class AuditLogger:
    """
    Audit logger for recording every tool invocation.

    Each entry records:
    - timestamp: When it happened (UTC ISO 8601)
    - correlation_id: Request identifier
    - action: Tool name ("switch_context", "rollback_deployment")
    - target: Resource or context affected ("deployment/prod/web")
    - context: Cluster context the call ran against, when known
    - result: "success", "dry_run", "blocked", or "error"
    - details: Extra fields (error text, revision number, replica count)

    With a log path, entries are appended as JSON lines. Without one they go
    through structlog under the "audit" logger name.
    """

    def __init__(self, log_path: Path | None = None) -> None:
        self._log_path = log_path
        self._logger = structlog.get_logger("audit")

    def log(
        self,
        action: str,
        target: str,
        result: str,
        details: dict[str, Any] | None = None,
        context: str | None = None,
    ) -> None:
        entry: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "correlation_id": get_correlation_id(),
            "action": action,
            "target": target,
            "result": result,
        }
        if context:
            entry["context"] = context
        if details:
            entry["details"] = details

        if self._log_path:
            with self._log_path.open("a") as f:
                f.write(json.dumps(entry, default=str) + "\n")
        else:
            self._logger.info(
                "audit",
                action=action,
                target=target,
                context=context,
                result=result,
                details=details,
            )

    def log_read(self, action: str, target: str, context: str | None = None) -> None:
        self.log(action, target, "success", context=context)

    def log_write(
        self,
        action: str,
        target: str,
        result: str,
        details: dict[str, Any] | None = None,
        context: str | None = None,
    ) -> None:
        """
        Log a mutating operation.

        Args:
            action: Tool name (e.g., "scale_resource")
            target: What was modified (e.g., "deployment/default/web")
            result: "success" or "dry_run"
            details: Operation parameters (replicas, revision)
            context: Cluster context the write went to
        """
        self.log(action, target, result, details, context)

    def log_blocked(self, action: str, target: str, reason: str, context: str | None = None) -> None:
        """Record an operation a safety check refused. Attempts matter as much as successes."""
        self.log(action, target, "blocked", {"reason": reason}, context)

    def log_error(self, action: str, target: str, error: str, context: str | None = None) -> None:
        self.log(action, target, "error", {"error": error}, context)
