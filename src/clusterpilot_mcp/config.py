# ABOUTME: Configuration management for ClusterPilot MCP
# ABOUTME: Handles environment variables, kubeconfig location, timeouts, and security modes

"""
Configuration management using pydantic-settings.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

This module handles all configuration for the MCP server. It:

1. READS environment variables (like KUBECONFIG, MCP_READ_ONLY)
2. VALIDATES them (timeouts are positive, log levels are real levels, etc.)
3. PROVIDES typed access to settings throughout the application

=============================================================================
TWO CONFIGURATION CLASSES
=============================================================================

1. SecuritySettings: Safety controls (env prefix MCP_)
   - Read-only mode, destructive-operation blocking, audit log, rate limits

2. ServerSettings: Main configuration container (env prefix CLUSTERPILOT_)
   - Where the kubeconfig file lives
   - How long remote calls, probes, and gate waits may take
   - Logging options
   - Contains a nested SecuritySettings

Unlike a single-endpoint API server, cluster endpoints and credentials are
NOT configured here. They come from the kubeconfig file, which stays the sole
source of truth for which clusters exist and which one is current.

=============================================================================
ENVIRONMENT VARIABLE EXAMPLES
=============================================================================

    export KUBECONFIG=~/.kube/config
    export CLUSTERPILOT_PROBE_TIMEOUT=5
    export CLUSTERPILOT_LOCK_TIMEOUT=30
    export MCP_READ_ONLY=false
    export MCP_DISABLE_DESTRUCTIVE=true
"""

from __future__ import annotations

import os
from pathlib import Path  # noqa: TC003 - Required at runtime for Pydantic
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_KUBECONFIG = Path("~/.kube/config")


# =============================================================================
# SECURITY SETTINGS
# =============================================================================


class SecuritySettings(BaseSettings):
    """
    Security-related configuration.

    DEFENSE IN DEPTH:
    -----------------
    Layer 1: MCP_READ_ONLY=true (default)
        - Blocks ALL write operations: switching is allowed, scaling is not

    Layer 2: MCP_DISABLE_DESTRUCTIVE=true (default)
        - Even if writes are enabled, blocks resource deletion and
          removal of kubeconfig contexts

    Layer 3: Rate limiting (MCP_RATE_LIMIT_*)
        - Keeps a runaway client loop from hammering the API servers

    Layer 4: Confirmation patterns (in SafetyGuard)
        - Destructive operations require confirm=true AND the target name
    """

    model_config = SettingsConfigDict(env_prefix="MCP_")

    read_only: bool = Field(
        default=True,
        description="Block all write operations when true",
    )

    disable_destructive: bool = Field(
        default=True,
        description="Block delete and context removal when true",
    )

    audit_log: Path | None = Field(
        default=None,
        description="Path to audit log file",
    )

    mask_secrets: bool = Field(
        default=True,
        description="Mask Secret payloads and credentials in output",
    )

    rate_limit_calls: int = Field(
        default=100,
        description="Maximum API calls per window",
    )

    rate_limit_window: int = Field(
        default=60,
        description="Rate limit window in seconds",
    )


# =============================================================================
# MAIN SERVER SETTINGS
# =============================================================================


class ServerSettings(BaseSettings):
    """
    Main server configuration.

    USAGE:
    ------
        settings = load_settings()
        print(settings.resolved_kubeconfig)   # Path to the credential file
        print(settings.security.read_only)    # Security setting
    """

    model_config = SettingsConfigDict(
        env_prefix="CLUSTERPILOT_",
        env_nested_delimiter="__",
        extra="ignore",
        populate_by_name=True,
    )

    # -------------------------------------------------------------------------
    # Credential file
    # -------------------------------------------------------------------------

    kubeconfig_path: Path | None = Field(
        default=None,
        description="Explicit kubeconfig path; falls back to KUBECONFIG then ~/.kube/config",
    )

    # -------------------------------------------------------------------------
    # Timeouts and retries
    # -------------------------------------------------------------------------

    request_timeout: float = Field(
        default=30.0,
        description="Timeout in seconds for a single Kubernetes API request",
    )

    probe_timeout: float = Field(
        default=10.0,
        description="Deadline in seconds for probing one cluster during a sweep",
    )

    probe_retries: int = Field(
        default=2,
        ge=1,
        description="Attempts per read-only probe call before marking a cluster disconnected",
    )

    lock_timeout: float = Field(
        default=30.0,
        description="Seconds to wait for the session gate before reporting busy",
    )

    skip_tls_verify_local: bool = Field(
        default=False,
        description="Skip TLS verification for local development clusters (localhost, docker-desktop)",
    )

    # -------------------------------------------------------------------------
    # Server metadata and logging
    # -------------------------------------------------------------------------

    server_name: str = Field(
        default="clusterpilot-mcp",
        description="MCP server name",
    )

    log_level: Annotated[str, Field(pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")] = Field(
        default="INFO",
        description="Logging level",
    )

    json_logs: bool = Field(
        default=True,
        description="Emit JSON log lines instead of console output",
    )

    security: SecuritySettings = Field(default_factory=SecuritySettings)

    @field_validator("request_timeout", "probe_timeout", "lock_timeout")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        """Timeouts of zero would turn every call into an immediate failure."""
        if v <= 0:
            raise ValueError("timeout must be greater than zero")
        return v

    @property
    def resolved_kubeconfig(self) -> Path:
        """Kubeconfig path after applying the fallback chain."""
        return resolve_kubeconfig_path(self.kubeconfig_path)


def resolve_kubeconfig_path(explicit: Path | str | None = None) -> Path:
    """
    Find the kubeconfig file the same way kubectl does.

    Order: explicit path, first entry of $KUBECONFIG, then ~/.kube/config.
    KUBECONFIG may hold several paths separated by os.pathsep; only the first
    one is used because mutations must go to exactly one file.
    """
    if explicit:
        return Path(explicit).expanduser()
    env_value = os.environ.get("KUBECONFIG", "")
    for entry in env_value.split(os.pathsep):
        if entry.strip():
            return Path(entry.strip()).expanduser()
    return DEFAULT_KUBECONFIG.expanduser()


def load_settings() -> ServerSettings:
    """
    Load settings from environment with validation.

    If CLUSTERPILOT_ENV_FILE is set, additional variables are read from that
    file. Useful for local development.

    Returns:
        Fully validated ServerSettings instance.

    Raises:
        pydantic.ValidationError: If configuration is invalid.
    """
    return ServerSettings(
        _env_file=os.environ.get("CLUSTERPILOT_ENV_FILE"),  # type: ignore[call-arg]
    )
