# ABOUTME: Unit tests for the kubeconfig credential store
# ABOUTME: Tests listing, selecting, adding and removing contexts and resolving credentials

import base64
import stat

import pytest
import yaml

from clusterpilot_mcp.errors import InUseError, KubeconfigError, NotFoundError
from clusterpilot_mcp.kubeconfig import KubeconfigStore


@pytest.mark.unit
class TestQueries:
    """Tests for read-only store queries."""

    def test_list_contexts_in_file_order(self, store):
        """Test that contexts come back in file order with resolved servers."""
        contexts = store.list_contexts()

        assert [c.name for c in contexts] == ["alpha", "beta", "gamma"]
        assert contexts[0].cluster_name == "alpha-cluster"
        assert contexts[0].server_endpoint == "https://alpha.example.com:6443"
        assert contexts[0].default_namespace == "alpha-ns"
        assert contexts[0].credentials_ref == "alpha-user"

    def test_list_is_stable(self, store):
        """Test that repeated listings agree."""
        assert store.list_contexts() == store.list_contexts()

    def test_get_current(self, store):
        """Test reading the current context."""
        assert store.get_current().name == "alpha"
        assert store.current_context_name() == "alpha"

    def test_get_current_unset(self, write_kubeconfig):
        """Test that a file with no current-context has no current context."""
        store = KubeconfigStore(write_kubeconfig(["a"], current=None))

        assert store.get_current() is None

    def test_get_current_dangling(self, write_kubeconfig):
        """Test that a current-context naming a missing entry is treated as unset."""
        store = KubeconfigStore(write_kubeconfig(["a"], current="removed"))

        assert store.get_current() is None

    def test_get_context_unknown(self, store):
        """Test that an unknown context raises NotFoundError."""
        with pytest.raises(NotFoundError) as exc_info:
            store.get_context("nope")

        assert str(exc_info.value) == "Context 'nope' not found"

    def test_missing_file(self, tmp_path):
        """Test that a missing file behaves as an empty kubeconfig."""
        store = KubeconfigStore(tmp_path / "absent")

        assert store.list_contexts() == []
        assert store.get_current() is None

    def test_invalid_yaml(self, tmp_path):
        """Test that unparsable YAML raises KubeconfigError."""
        path = tmp_path / "config"
        path.write_text("contexts: [unclosed")

        with pytest.raises(KubeconfigError):
            KubeconfigStore(path).list_contexts()

    def test_invalid_structure(self, tmp_path):
        """Test that a non-list section raises KubeconfigError."""
        path = tmp_path / "config"
        path.write_text("contexts: not-a-list\n")

        with pytest.raises(KubeconfigError):
            KubeconfigStore(path).list_contexts()

    def test_external_changes_visible(self, store, kubeconfig_path):
        """Test that edits made by another process are seen on the next call."""
        data = yaml.safe_load(kubeconfig_path.read_text())
        data["current-context"] = "gamma"
        kubeconfig_path.write_text(yaml.safe_dump(data))

        assert store.current_context_name() == "gamma"


@pytest.mark.unit
class TestConnectionFor:
    """Tests for connection profile resolution."""

    def test_token_profile(self, store):
        """Test resolving a token-based profile."""
        profile = store.connection_for("beta")

        assert profile.context == "beta"
        assert profile.server == "https://beta.example.com:6443"
        assert profile.token == "beta-token"
        assert profile.default_namespace == "beta-ns"
        assert not profile.insecure_skip_tls_verify
        assert "beta-token" not in repr(profile)

    def test_inline_and_relative_credentials(self, tmp_path):
        """Test decoding inline data and resolving relative file paths."""
        path = tmp_path / "config"
        path.write_text(
            yaml.safe_dump(
                {
                    "clusters": [
                        {
                            "name": "c",
                            "cluster": {
                                "server": "https://127.0.0.1:6443/",
                                "certificate-authority-data": base64.b64encode(b"CA PEM").decode(),
                            },
                        }
                    ],
                    "users": [{"name": "u", "user": {"client-certificate": "certs/client.crt", "client-key": "/abs/key"}}],
                    "contexts": [{"name": "local", "context": {"cluster": "c", "user": "u"}}],
                }
            )
        )

        profile = KubeconfigStore(path, skip_tls_verify_local=True).connection_for("local")

        assert profile.server == "https://127.0.0.1:6443"
        assert profile.certificate_authority_data == b"CA PEM"
        assert profile.client_certificate == str(tmp_path / "certs/client.crt")
        assert profile.client_key == "/abs/key"
        assert profile.default_namespace == "default"
        assert profile.is_local
        assert profile.insecure_skip_tls_verify

    def test_missing_cluster_entry(self, tmp_path):
        """Test that a context pointing at a missing cluster fails."""
        path = tmp_path / "config"
        path.write_text(yaml.safe_dump({"contexts": [{"name": "x", "context": {"cluster": "gone", "user": "u"}}]}))

        with pytest.raises(NotFoundError) as exc_info:
            KubeconfigStore(path).connection_for("x")

        assert exc_info.value.kind == "Cluster"

    def test_bad_base64(self, tmp_path):
        """Test that corrupt inline data raises KubeconfigError."""
        path = tmp_path / "config"
        path.write_text(
            yaml.safe_dump(
                {
                    "clusters": [{"name": "c", "cluster": {"server": "https://x", "certificate-authority-data": "abc"}}],
                    "contexts": [{"name": "x", "context": {"cluster": "c", "user": "u"}}],
                }
            )
        )

        with pytest.raises(KubeconfigError):
            KubeconfigStore(path).connection_for("x")


@pytest.mark.unit
class TestMutations:
    """Tests for store mutations."""

    def test_set_current_persists(self, store, kubeconfig_path):
        """Test that set_current writes the pointer to disk."""
        store.set_current("beta")

        assert yaml.safe_load(kubeconfig_path.read_text())["current-context"] == "beta"
        assert KubeconfigStore(kubeconfig_path).get_current().name == "beta"

    def test_set_current_unknown_leaves_file(self, store, kubeconfig_path):
        """Test that selecting an unknown context does not touch the file."""
        before = kubeconfig_path.read_text()

        with pytest.raises(NotFoundError):
            store.set_current("nope")

        assert kubeconfig_path.read_text() == before

    def test_saved_file_is_private(self, store, kubeconfig_path):
        """Test that written kubeconfigs are readable only by the owner."""
        store.set_current("gamma")

        assert stat.S_IMODE(kubeconfig_path.stat().st_mode) == 0o600

    def test_clear_current(self, store):
        """Test clearing the pointer."""
        store.clear_current()

        assert store.current_context_name() is None

    def test_restore_current_writes_pointer_verbatim(self, store):
        """Test that a pointer to a missing context is written back unchecked."""
        store.restore_current("deleted-ctx")

        assert store.current_context_name() == "deleted-ctx"
        assert store.get_current() is None

        store.restore_current(None)

        assert store.current_context_name() is None

    def test_remove_context(self, store):
        """Test removing a context keeps its cluster and user entries."""
        store.remove_context("beta")

        assert [c.name for c in store.list_contexts()] == ["alpha", "gamma"]
        data = yaml.safe_load(store.path.read_text())
        assert any(c["name"] == "beta-cluster" for c in data["clusters"])

    def test_remove_current_rejected(self, store):
        """Test that removing the current context raises InUseError."""
        with pytest.raises(InUseError):
            store.remove_context("alpha")

        assert len(store.list_contexts()) == 3

    def test_remove_unknown(self, store):
        """Test that removing an unknown context raises NotFoundError."""
        with pytest.raises(NotFoundError):
            store.remove_context("nope")

    def test_add_cluster_and_context(self, tmp_path):
        """Test adding entries to an empty kubeconfig."""
        store = KubeconfigStore(tmp_path / "new" / "config")

        store.add_cluster("dev", "https://dev:6443", insecure_skip_tls_verify=True)
        ctx = store.add_context("dev", "dev", "dev-user")

        assert ctx.default_namespace == "default"
        assert ctx.server_endpoint == "https://dev:6443"
        assert [c.name for c in store.list_contexts()] == ["dev"]
        assert store.connection_for("dev").insecure_skip_tls_verify

    def test_add_context_unknown_cluster(self, store):
        """Test that a context cannot reference a missing cluster."""
        with pytest.raises(NotFoundError):
            store.add_context("delta", "delta-cluster", "u")
