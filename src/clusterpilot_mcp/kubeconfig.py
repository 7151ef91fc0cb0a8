# ABOUTME: Credential store backed by the kubeconfig YAML file
# ABOUTME: Lists, selects, adds, and removes contexts; resolves connection material

"""
Kubeconfig credential store.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

A kubeconfig file has three lists and one pointer:

    clusters:        name -> server URL and CA
    users:           name -> client certificate, key, or bearer token
    contexts:        name -> (cluster, user, namespace)
    current-context: the context every outgoing call uses

KubeconfigStore reads and writes that file. It treats the file as the ONLY
source of truth: every call re-reads it from disk, and every mutation is
written back before the method returns. There is no in-memory cache, so a
`kubectl config use-context` run in another terminal is visible immediately.

=============================================================================
WHAT THIS STORE DOES NOT DO
=============================================================================

Changing the current context invalidates every API handle built for the old
one. The store does NOT rebuild those handles. ClusterSession pairs
set_current() with ResourceFacade.refresh() under its gate so callers never
observe the two halves separately.
"""

from __future__ import annotations

import base64
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
import yaml

from clusterpilot_mcp.errors import InUseError, KubeconfigError, NotFoundError

logger = structlog.get_logger(__name__)

DEFAULT_NAMESPACE = "default"

# Server URL fragments that identify local development clusters
LOCAL_HOSTS = (
    "localhost",
    "127.0.0.1",
    "0.0.0.0",
    "kubernetes.docker.internal",
    "host.docker.internal",
    "[::1]",
)


# =============================================================================
# DATA MODELS
# =============================================================================


@dataclass(frozen=True)
class ClusterContext:
    """One named, switchable connection profile."""

    name: str
    cluster_name: str
    server_endpoint: str
    default_namespace: str = DEFAULT_NAMESPACE
    credentials_ref: str = ""


@dataclass(frozen=True)
class ConnectionProfile:
    """
    Everything the HTTP transport needs to reach one cluster.

    File-based fields are already resolved relative to the kubeconfig's
    directory. Inline *_data fields hold the raw PEM bytes (base64 decoded).
    """

    context: str
    server: str
    certificate_authority: str | None = None
    certificate_authority_data: bytes | None = field(default=None, repr=False)
    client_certificate: str | None = None
    client_certificate_data: bytes | None = field(default=None, repr=False)
    client_key: str | None = None
    client_key_data: bytes | None = field(default=None, repr=False)
    token: str | None = field(default=None, repr=False)
    token_file: str | None = None
    insecure_skip_tls_verify: bool = False
    default_namespace: str = DEFAULT_NAMESPACE

    @property
    def is_local(self) -> bool:
        return any(host in self.server for host in LOCAL_HOSTS)


# =============================================================================
# STORE
# =============================================================================


class KubeconfigStore:
    """
    Read/write access to one kubeconfig file.

    Example:
        store = KubeconfigStore(Path("~/.kube/config").expanduser())
        for ctx in store.list_contexts():
            print(ctx.name, ctx.server_endpoint)
        store.set_current("staging")
    """

    def __init__(self, path: Path, skip_tls_verify_local: bool = False) -> None:
        self.path = path
        self.skip_tls_verify_local = skip_tls_verify_local

    # -------------------------------------------------------------------------
    # File access
    # -------------------------------------------------------------------------

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {"apiVersion": "v1", "kind": "Config", "clusters": [], "users": [], "contexts": []}
        try:
            data = yaml.safe_load(self.path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as e:
            raise KubeconfigError(f"Cannot read kubeconfig {self.path}: {e}") from e
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise KubeconfigError(f"Kubeconfig {self.path} is not a mapping")
        for section in ("clusters", "users", "contexts"):
            if data.get(section) is None:
                data[section] = []
            elif not isinstance(data[section], list):
                raise KubeconfigError(f"Kubeconfig section '{section}' must be a list")
        return data

    def _save(self, data: dict[str, Any]) -> None:
        """Write atomically: a reader never sees a half-written file."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".kubeconfig-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                yaml.safe_dump(data, handle, default_flow_style=False, sort_keys=False)
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path)
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            raise KubeconfigError(f"Cannot write kubeconfig {self.path}: {e}") from e

    @staticmethod
    def _named(entries: list[dict[str, Any]], name: str) -> dict[str, Any] | None:
        for entry in entries:
            if isinstance(entry, dict) and entry.get("name") == name:
                return entry
        return None

    def _build_context(self, data: dict[str, Any], entry: dict[str, Any]) -> ClusterContext:
        body = entry.get("context") or {}
        cluster_name = body.get("cluster", "")
        cluster_entry = self._named(data["clusters"], cluster_name) or {}
        server = (cluster_entry.get("cluster") or {}).get("server", "")
        return ClusterContext(
            name=entry["name"],
            cluster_name=cluster_name,
            server_endpoint=server,
            default_namespace=body.get("namespace") or DEFAULT_NAMESPACE,
            credentials_ref=body.get("user", ""),
        )

    def _resolve_path(self, value: str | None) -> str | None:
        if not value:
            return None
        candidate = Path(value).expanduser()
        if not candidate.is_absolute():
            candidate = self.path.parent / candidate
        return str(candidate)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def list_contexts(self) -> list[ClusterContext]:
        """All contexts in file order. Order is stable between calls."""
        data = self._load()
        return [
            self._build_context(data, entry)
            for entry in data["contexts"]
            if isinstance(entry, dict) and entry.get("name")
        ]

    def current_context_name(self) -> str | None:
        return self._load().get("current-context") or None

    def get_current(self) -> ClusterContext | None:
        """
        The active context, or None if the file selects none.

        A current-context that names a missing entry is treated as unset.
        """
        data = self._load()
        name = data.get("current-context")
        if not name:
            return None
        entry = self._named(data["contexts"], name)
        if entry is None:
            logger.warning("Current context not present in kubeconfig", context=name)
            return None
        return self._build_context(data, entry)

    def get_context(self, name: str) -> ClusterContext:
        data = self._load()
        entry = self._named(data["contexts"], name)
        if entry is None:
            raise NotFoundError("Context", name)
        return self._build_context(data, entry)

    def connection_for(self, name: str) -> ConnectionProfile:
        """
        Resolve cluster and user entries of a context into a ConnectionProfile.

        Args:
            name: Context name

        Returns:
            ConnectionProfile ready for the HTTP transport

        Raises:
            NotFoundError: Context, or the cluster it references, is missing
        """
        data = self._load()
        entry = self._named(data["contexts"], name)
        if entry is None:
            raise NotFoundError("Context", name)
        body = entry.get("context") or {}

        cluster_entry = self._named(data["clusters"], body.get("cluster", ""))
        if cluster_entry is None:
            raise NotFoundError("Cluster", body.get("cluster", ""))
        cluster = cluster_entry.get("cluster") or {}

        user_entry = self._named(data["users"], body.get("user", "")) or {}
        user = user_entry.get("user") or {}
        if "exec" in user or "auth-provider" in user:
            logger.warning("Credential plugins are not supported; connecting without them", context=name)

        server = cluster.get("server", "")
        insecure = bool(cluster.get("insecure-skip-tls-verify", False))
        if self.skip_tls_verify_local and any(host in server for host in LOCAL_HOSTS):
            logger.debug("Skipping TLS verification for local cluster", server=server)
            insecure = True

        return ConnectionProfile(
            context=name,
            server=server.rstrip("/"),
            certificate_authority=self._resolve_path(cluster.get("certificate-authority")),
            certificate_authority_data=_decode(cluster.get("certificate-authority-data")),
            client_certificate=self._resolve_path(user.get("client-certificate")),
            client_certificate_data=_decode(user.get("client-certificate-data")),
            client_key=self._resolve_path(user.get("client-key")),
            client_key_data=_decode(user.get("client-key-data")),
            token=user.get("token"),
            token_file=self._resolve_path(user.get("tokenFile")),
            insecure_skip_tls_verify=insecure,
            default_namespace=body.get("namespace") or DEFAULT_NAMESPACE,
        )

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def set_current(self, name: str) -> None:
        """Select a context. Raises NotFoundError without touching the file."""
        data = self._load()
        if self._named(data["contexts"], name) is None:
            raise NotFoundError("Context", name)
        data["current-context"] = name
        self._save(data)
        logger.info("Current context changed", context=name)

    def clear_current(self) -> None:
        data = self._load()
        data.pop("current-context", None)
        self._save(data)

    def restore_current(self, name: str | None) -> None:
        """
        Write back a pointer exactly as it was read, without checking it.

        Used to undo temporary switches: a current-context naming a context
        that no longer exists (kubectl leaves that after deleting the current
        context) is put back as-is instead of failing.
        """
        data = self._load()
        if name:
            data["current-context"] = name
        else:
            data.pop("current-context", None)
        self._save(data)

    def remove_context(self, name: str) -> None:
        """
        Delete a context entry. Its cluster and user entries are kept since
        other contexts may share them.

        Raises:
            NotFoundError: No such context
            InUseError: The context is the current one
        """
        data = self._load()
        if self._named(data["contexts"], name) is None:
            raise NotFoundError("Context", name)
        if data.get("current-context") == name:
            raise InUseError(name)
        data["contexts"] = [
            entry for entry in data["contexts"] if not (isinstance(entry, dict) and entry.get("name") == name)
        ]
        self._save(data)
        logger.info("Context removed", context=name)

    def add_cluster(
        self,
        name: str,
        server: str,
        certificate_authority: str | None = None,
        insecure_skip_tls_verify: bool = False,
    ) -> None:
        """Add or replace a cluster entry."""
        data = self._load()
        cluster: dict[str, Any] = {"server": server}
        if certificate_authority:
            cluster["certificate-authority"] = certificate_authority
        if insecure_skip_tls_verify:
            cluster["insecure-skip-tls-verify"] = True
        data["clusters"] = [c for c in data["clusters"] if not (isinstance(c, dict) and c.get("name") == name)]
        data["clusters"].append({"name": name, "cluster": cluster})
        self._save(data)

    def add_context(self, name: str, cluster: str, user: str, namespace: str | None = None) -> ClusterContext:
        """Add or replace a context entry. Namespace defaults to 'default'."""
        data = self._load()
        if self._named(data["clusters"], cluster) is None:
            raise NotFoundError("Cluster", cluster)
        entry = {
            "name": name,
            "context": {"cluster": cluster, "user": user, "namespace": namespace or DEFAULT_NAMESPACE},
        }
        data["contexts"] = [c for c in data["contexts"] if not (isinstance(c, dict) and c.get("name") == name)]
        data["contexts"].append(entry)
        self._save(data)
        return self._build_context(data, entry)


def _decode(value: str | None) -> bytes | None:
    if not value:
        return None
    try:
        return base64.b64decode(value)
    except ValueError as e:
        raise KubeconfigError(f"Invalid base64 credential data: {e}") from e
