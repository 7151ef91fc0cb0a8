# ABOUTME: Safety guards for cluster mutations and kubeconfig changes
# ABOUTME: Read-only mode, destructive-operation confirmation, and rate limiting

"""Safety guards implementing defense-in-depth for cluster operations.

Three classes of operation are distinguished:

- read: listing contexts, sweeps, metrics, revision history. Rate limited only.
- session: switching the active context. Changes the kubeconfig pointer but
  never touches a cluster, so it stays available in read-only mode.
- write / destructive: scaling, rollouts, deletes, context removal. Blocked in
  read-only mode; destructive ones also need explicit confirmation.
"""

from __future__ import annotations

import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from clusterpilot_mcp.config import SecuritySettings

logger = structlog.get_logger(__name__)

IMPACTS = {
    "delete_resource": "The resource will be PERMANENTLY DELETED from the active cluster",
    "remove_context": "The context entry will be removed from the kubeconfig file",
}


@dataclass
class ConfirmationRequired:
    """Response indicating confirmation is required for destructive operation."""

    operation: str
    target: str
    impact: str
    confirmation_instructions: str
    details: dict[str, Any] = field(default_factory=dict)

    def format_message(self) -> str:
        lines = [
            f"CONFIRMATION REQUIRED: {self.operation}",
            "",
            f"Target: {self.target}",
            f"Impact: {self.impact}",
        ]

        if self.details:
            lines.append("")
            lines.append("Details:")
            for key, value in self.details.items():
                lines.append(f"  {key}: {value}")

        lines.extend(["", self.confirmation_instructions])
        return "\n".join(lines)


@dataclass
class OperationBlocked:
    """Response indicating operation is blocked by security settings."""

    operation: str
    reason: str
    setting: str

    def format_message(self) -> str:
        if self.setting == "MCP_RATE_LIMIT_CALLS":
            hint = "Wait for the rate limit window to pass"
        else:
            hint = f"To enable: Set {self.setting}=false in server configuration"
        return (
            f"OPERATION BLOCKED: {self.operation}\n"
            f"Reason: {self.reason}\n"
            f"Setting: {self.setting}\n"
            f"{hint}"
        )


class RateLimiter:
    """Sliding-window rate limiter keyed by operation class and name."""

    def __init__(self, max_calls: int = 100, window_seconds: int = 60) -> None:
        self._max_calls = max_calls
        self._window = window_seconds
        self._calls: dict[str, list[float]] = defaultdict(list)

    def check(self, key: str) -> bool:
        """Record a call under key.

        Args:
            key: Rate limit key (e.g., "write:scale_resource")

        Returns:
            True if allowed, False if rate limited
        """
        now = time.monotonic()
        self._calls[key] = [t for t in self._calls[key] if now - t < self._window]

        if len(self._calls[key]) >= self._max_calls:
            logger.warning("Rate limit exceeded", key=key, calls=len(self._calls[key]))
            return False

        self._calls[key].append(now)
        return True

    def reset(self, key: str | None = None) -> None:
        if key:
            self._calls.pop(key, None)
        else:
            self._calls.clear()


class SafetyGuard:
    """Safety guard implementing defense-in-depth patterns."""

    def __init__(self, settings: SecuritySettings) -> None:
        self._settings = settings
        self._rate_limiter = RateLimiter(
            max_calls=settings.rate_limit_calls,
            window_seconds=settings.rate_limit_window,
        )

    @property
    def settings(self) -> SecuritySettings:
        return self._settings

    def _rate_limited(self, key: str, operation: str) -> OperationBlocked | None:
        if not self._rate_limiter.check(key):
            return OperationBlocked(
                operation=operation,
                reason="Rate limit exceeded",
                setting="MCP_RATE_LIMIT_CALLS",
            )
        return None

    def check_read_operation(self, operation: str) -> OperationBlocked | None:
        """Check if read operation is allowed.

        Returns:
            OperationBlocked if blocked, None if allowed
        """
        return self._rate_limited(f"read:{operation}", operation)

    def check_session_operation(self, operation: str) -> OperationBlocked | None:
        """Check a context switch. Allowed in read-only mode, rate limited."""
        return self._rate_limited(f"session:{operation}", operation)

    def check_write_operation(self, operation: str) -> OperationBlocked | None:
        """Check if write operation is allowed.

        Returns:
            OperationBlocked if blocked, None if allowed
        """
        if self._settings.read_only:
            return OperationBlocked(
                operation=operation,
                reason="Server is running in read-only mode",
                setting="MCP_READ_ONLY",
            )
        return self._rate_limited(f"write:{operation}", operation)

    def check_destructive_operation(
        self,
        operation: str,
        target: str,
        confirmed: bool = False,
        confirm_name: str | None = None,
    ) -> OperationBlocked | ConfirmationRequired | None:
        """Check if destructive operation is allowed.

        Args:
            operation: Operation name
            target: Target name the caller must repeat in confirm_name
            confirmed: Whether user has confirmed
            confirm_name: Name confirmation (must match target)

        Returns:
            OperationBlocked if blocked, ConfirmationRequired if needs confirmation,
            None if allowed
        """
        write_check = self.check_write_operation(operation)
        if write_check:
            return write_check

        if self._settings.disable_destructive:
            return OperationBlocked(
                operation=operation,
                reason="Destructive operations are disabled",
                setting="MCP_DISABLE_DESTRUCTIVE",
            )

        if not confirmed or not target or confirm_name != target:
            return ConfirmationRequired(
                operation=operation,
                target=target,
                impact=self._get_impact_description(operation),
                confirmation_instructions=(
                    f"To proceed, set confirm=true AND confirm_name='{target}'"
                ),
            )

        return None

    @staticmethod
    def _get_impact_description(operation: str) -> str:
        return IMPACTS.get(operation, "This operation may have significant impact")
