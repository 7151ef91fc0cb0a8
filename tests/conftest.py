# ABOUTME: Pytest fixtures and configuration for ClusterPilot MCP tests
# ABOUTME: Provides a kubeconfig on disk and an in-memory API backend that records every call

import copy
import os
from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
import yaml

from clusterpilot_mcp.config import SecuritySettings, ServerSettings
from clusterpilot_mcp.errors import NotFoundError, StaleHandleError
from clusterpilot_mcp.facade import ResourceFacade
from clusterpilot_mcp.kubeconfig import ConnectionProfile, KubeconfigStore
from clusterpilot_mcp.session import ClusterSession
from clusterpilot_mcp.utils.safety import SafetyGuard

CONTEXT_NAMES = ["alpha", "beta", "gamma"]


def kubeconfig_document(names: list[str], current: str | None = "alpha") -> dict[str, Any]:
    doc: dict[str, Any] = {
        "apiVersion": "v1",
        "kind": "Config",
        "clusters": [
            {"name": f"{n}-cluster", "cluster": {"server": f"https://{n}.example.com:6443"}} for n in names
        ],
        "users": [{"name": f"{n}-user", "user": {"token": f"{n}-token"}} for n in names],
        "contexts": [
            {"name": n, "context": {"cluster": f"{n}-cluster", "user": f"{n}-user", "namespace": f"{n}-ns"}}
            for n in names
        ],
    }
    if current:
        doc["current-context"] = current
    return doc


# =============================================================================
# FAKE KUBERNETES API
# =============================================================================


@dataclass
class Call:
    context: str
    method: str
    path: str
    body: dict[str, Any] | None = None


class FakeKubeClient:
    """Stands in for KubeClient; every call is routed to the shared backend."""

    def __init__(self, backend: "FakeClusterBackend", profile: ConnectionProfile) -> None:
        self._backend = backend
        self._profile = profile
        self.closed = False
        self.opened = False

    @property
    def context(self) -> str:
        return self._profile.context

    @property
    def default_namespace(self) -> str:
        return self._profile.default_namespace

    async def open(self) -> None:
        if self.closed:
            raise StaleHandleError(self.context)
        self.opened = True

    async def close(self) -> None:
        self.closed = True

    def _check(self) -> None:
        if self.closed:
            raise StaleHandleError(self.context)

    async def list_items(self, path: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        self._check()
        return self._backend.read(self.context, "LIST", path)

    async def get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        self._check()
        return self._backend.read(self.context, "GET", path)

    async def create(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        self._check()
        return self._backend.write(self.context, "POST", path, body)

    async def replace(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        self._check()
        return self._backend.write(self.context, "PUT", path, body)

    async def patch(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        self._check()
        return self._backend.write(self.context, "PATCH", path, body)

    async def delete(self, path: str) -> dict[str, Any]:
        self._check()
        return self._backend.write(self.context, "DELETE", path, None)


class FakeClusterBackend:
    """
    Per-context in-memory API server.

    Collections are keyed by list path, single objects by object path. Every
    call is recorded together with the context of the client that made it.
    """

    def __init__(self) -> None:
        self.collections: dict[str, dict[str, list[dict[str, Any]]]] = defaultdict(dict)
        self.objects: dict[str, dict[str, dict[str, Any]]] = defaultdict(dict)
        self.failing_contexts: dict[str, Exception] = {}
        self.failing_paths: dict[tuple[str, str], Exception] = {}
        self.write_errors: dict[tuple[str, str], Exception] = {}
        self.calls: list[Call] = []
        self.clients: list[FakeKubeClient] = []
        self.profiles: list[ConnectionProfile] = []

    def factory(self, profile: ConnectionProfile) -> FakeKubeClient:
        self.profiles.append(profile)
        client = FakeKubeClient(self, profile)
        self.clients.append(client)
        return client

    def seed_cluster(self, context: str, nodes: int = 1, pods: int = 2, namespaces: int = 3) -> None:
        self.collections[context]["/api/v1/nodes"] = [
            {
                "metadata": {"name": f"{context}-node-{i}"},
                "status": {
                    "nodeInfo": {"kubeletVersion": f"v1.29.{i}-{context}"},
                    "allocatable": {"cpu": "4", "memory": "8Gi"},
                },
            }
            for i in range(nodes)
        ]
        self.collections[context]["/api/v1/pods"] = [{"metadata": {"name": f"pod-{i}"}} for i in range(pods)]
        self.collections[context]["/api/v1/namespaces"] = [
            {"metadata": {"name": f"ns-{i}"}} for i in range(namespaces)
        ]

    def read(self, context: str, method: str, path: str) -> Any:
        self.calls.append(Call(context, method, path))
        if context in self.failing_contexts:
            raise self.failing_contexts[context]
        if (context, path) in self.failing_paths:
            raise self.failing_paths[(context, path)]
        if method == "LIST":
            return copy.deepcopy(self.collections[context].get(path, []))
        if path not in self.objects[context]:
            raise NotFoundError("Resource", path.rsplit("/", 1)[-1])
        return copy.deepcopy(self.objects[context][path])

    def write(self, context: str, method: str, path: str, body: dict[str, Any] | None) -> dict[str, Any]:
        self.calls.append(Call(context, method, path, copy.deepcopy(body)))
        if (context, path) in self.write_errors:
            raise self.write_errors[(context, path)]
        if method == "DELETE":
            if path not in self.objects[context]:
                raise NotFoundError("Resource", path.rsplit("/", 1)[-1])
            return self.objects[context].pop(path)
        if method == "PUT":
            self.objects[context][path] = copy.deepcopy(body or {})
        return copy.deepcopy(body or {})

    def calls_with(self, method: str) -> list[Call]:
        return [c for c in self.calls if c.method == method]

    def writes(self) -> list[Call]:
        return [c for c in self.calls if c.method in ("POST", "PUT", "PATCH", "DELETE")]


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def kubeconfig_path(tmp_path: Path) -> Path:
    """A kubeconfig with contexts alpha, beta, gamma; alpha is current."""
    path = tmp_path / "kubeconfig"
    path.write_text(yaml.safe_dump(kubeconfig_document(CONTEXT_NAMES)))
    return path


@pytest.fixture
def write_kubeconfig(tmp_path: Path):
    """Factory writing a kubeconfig with the given contexts; returns its path."""

    def _write(names: list[str], current: str | None = None, filename: str = "config") -> Path:
        path = tmp_path / filename
        path.write_text(yaml.safe_dump(kubeconfig_document(names, current)))
        return path

    return _write


@pytest.fixture
def store(kubeconfig_path: Path) -> KubeconfigStore:
    return KubeconfigStore(kubeconfig_path)


@pytest.fixture
def backend() -> FakeClusterBackend:
    fake = FakeClusterBackend()
    for name in CONTEXT_NAMES:
        fake.seed_cluster(name)
    return fake


@pytest.fixture
def mock_security_settings() -> SecuritySettings:
    """Create security settings for testing."""
    return SecuritySettings(
        read_only=False,
        disable_destructive=False,
        audit_log=None,
        mask_secrets=True,
        rate_limit_calls=100,
        rate_limit_window=60,
    )


@pytest.fixture
def read_only_security_settings() -> SecuritySettings:
    """Create read-only security settings for testing."""
    return SecuritySettings(
        read_only=True,
        disable_destructive=True,
        audit_log=None,
        mask_secrets=True,
        rate_limit_calls=100,
        rate_limit_window=60,
    )


@pytest.fixture
def settings(kubeconfig_path: Path, mock_security_settings: SecuritySettings) -> ServerSettings:
    """Server settings with short timeouts and a single probe attempt."""
    return ServerSettings(
        kubeconfig_path=kubeconfig_path,
        request_timeout=5,
        probe_timeout=2,
        probe_retries=1,
        lock_timeout=0.5,
        json_logs=False,
        security=mock_security_settings,
    )


@pytest.fixture
def facade(store: KubeconfigStore, settings: ServerSettings, backend: FakeClusterBackend) -> ResourceFacade:
    return ResourceFacade(store, settings, client_factory=backend.factory)


@pytest.fixture
async def session(
    store: KubeconfigStore,
    facade: ResourceFacade,
    settings: ServerSettings,
) -> ClusterSession:
    """Session with handles already built for the current context (alpha)."""
    await facade.refresh()
    return ClusterSession(store, facade, settings)


@pytest.fixture
def safety_guard(mock_security_settings: SecuritySettings) -> SafetyGuard:
    """Create a safety guard for testing."""
    return SafetyGuard(mock_security_settings)


@pytest.fixture
def read_only_safety_guard(read_only_security_settings: SecuritySettings) -> SafetyGuard:
    """Create a read-only safety guard for testing."""
    return SafetyGuard(read_only_security_settings)


@pytest.fixture
def mock_context() -> MagicMock:
    """Create a mock MCP context."""
    ctx = MagicMock()
    ctx.request_id = "test-request-123"
    ctx.report_progress = AsyncMock()
    return ctx


# Integration test fixtures


@pytest.fixture
def live_kubeconfig() -> Path | None:
    """Kubeconfig for a real cluster, only when CLUSTERPILOT_INTEGRATION_KUBECONFIG is set."""
    value = os.environ.get("CLUSTERPILOT_INTEGRATION_KUBECONFIG")
    return Path(value) if value else None
