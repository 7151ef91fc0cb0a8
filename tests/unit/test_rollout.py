# ABOUTME: Unit tests for the rollout coordinator
# ABOUTME: Tests revision history ordering, validated rollback, and pause/resume/restart patches

import pytest

from clusterpilot_mcp.errors import ConflictError, InvalidNameError, NotFoundError, RevisionNotFoundError
from clusterpilot_mcp.rollout import (
    CHANGE_CAUSE_ANNOTATION,
    POD_TEMPLATE_HASH_LABEL,
    REVISION_ANNOTATION,
    RevisionRecord,
    RolloutCoordinator,
    RolloutStatus,
)

RS_PATH = "/apis/apps/v1/namespaces/prod/replicasets"
DEPLOY_PATH = "/apis/apps/v1/namespaces/prod/deployments/web"


def replica_set(name, revision, image, owner="web", template=True, replicas=0):
    rs = {
        "metadata": {
            "name": name,
            "creationTimestamp": "2026-01-01T00:00:00Z",
            "annotations": {REVISION_ANNOTATION: str(revision)},
            "ownerReferences": [{"kind": "Deployment", "name": owner}],
        },
        "spec": {"replicas": replicas},
    }
    if template:
        rs["spec"]["template"] = {
            "metadata": {"labels": {"app": "web", POD_TEMPLATE_HASH_LABEL: f"hash-{revision}"}},
            "spec": {"containers": [{"name": "web", "image": image}]},
        }
    return rs


def deployment(revision=3, image="web:3"):
    return {
        "metadata": {
            "name": "web",
            "namespace": "prod",
            "resourceVersion": "4711",
            "annotations": {REVISION_ANNOTATION: str(revision)},
        },
        "spec": {
            "replicas": 3,
            "strategy": {"type": "RollingUpdate", "rollingUpdate": {"maxSurge": "25%", "maxUnavailable": 1}},
            "template": {
                "metadata": {"labels": {"app": "web"}},
                "spec": {"containers": [{"name": "web", "image": image}]},
            },
        },
        "status": {"updatedReplicas": 3, "readyReplicas": 3, "availableReplicas": 3},
    }


@pytest.fixture
def rollouts(session, backend):
    backend.collections["alpha"][RS_PATH] = [
        replica_set("web-c", 3, "web:3", replicas=3),
        replica_set("web-a", 1, "web:1"),
        replica_set("web-b", 2, "web:2"),
        replica_set("api-a", 7, "api:7", owner="api"),
    ]
    backend.objects["alpha"][DEPLOY_PATH] = deployment()
    return RolloutCoordinator(session)


@pytest.mark.unit
class TestRevisionHistory:
    """Tests for get_revision_history()."""

    async def test_history_newest_first(self, rollouts):
        """Test that revisions listed as [3, 1, 2] come back as [3, 2, 1]."""
        history = await rollouts.get_revision_history("web", "prod")

        assert [r.revision for r in history] == [3, 2, 1]
        assert history[0].replica_set_name == "web-c"
        assert history[0].container_images == ("web:3",)
        assert history[0].desired_replicas == 3

    async def test_history_skips_invalid_annotations(self, rollouts, backend):
        """Test that replica sets without a usable revision are left out."""
        bad = replica_set("web-x", 0, "web:x")
        bad["metadata"]["annotations"][REVISION_ANNOTATION] = "not-a-number"
        backend.collections["alpha"][RS_PATH].append(bad)

        history = await rollouts.get_revision_history("web", "prod")

        assert [r.revision for r in history] == [3, 2, 1]

    async def test_history_empty(self, rollouts):
        """Test that a deployment without replica sets has no history."""
        assert await rollouts.get_revision_history("worker", "prod") == []

    def test_record_without_annotation(self):
        """Test that a replica set with no annotation yields no record."""
        assert RevisionRecord.from_replica_set({"metadata": {"name": "x"}}) is None


@pytest.mark.unit
class TestRolloutStatus:
    """Tests for get_rollout_status()."""

    async def test_status(self, rollouts):
        """Test status fields read from the deployment."""
        status = await rollouts.get_rollout_status("web", "prod")

        assert status.current_revision == 3
        assert status.desired_replicas == 3
        assert status.max_surge == "25%"
        assert status.max_unavailable == "1"
        assert status.state == "Complete"

    async def test_status_missing_deployment(self, rollouts):
        """Test that a missing deployment is reported as such."""
        with pytest.raises(NotFoundError) as exc_info:
            await rollouts.get_rollout_status("ghost", "prod")

        assert exc_info.value.kind == "Deployment"

    @pytest.mark.parametrize(
        ("spec", "status", "state"),
        [
            ({"replicas": 2, "paused": True}, {}, "Paused"),
            ({"replicas": 2}, {"unavailableReplicas": 1}, "Degraded"),
            ({"replicas": 2}, {"updatedReplicas": 1, "availableReplicas": 1}, "Progressing"),
            ({"replicas": 2}, {"updatedReplicas": 2, "availableReplicas": 2}, "Complete"),
        ],
    )
    def test_state(self, spec, status, state):
        """Test the rollout state summary."""
        result = RolloutStatus.from_deployment({"metadata": {"name": "web"}, "spec": spec, "status": status})
        assert result.state == state


@pytest.mark.unit
class TestRollback:
    """Tests for rollback_to_revision()."""

    async def test_rollback_replaces_template(self, rollouts, backend):
        """Test that rollback sends the revision's template with the resource version."""
        record = await rollouts.rollback_to_revision("web", "prod", 1)

        assert record.revision == 1
        puts = backend.calls_with("PUT")
        assert len(puts) == 1
        assert puts[0].path == DEPLOY_PATH
        body = puts[0].body
        assert body["metadata"]["resourceVersion"] == "4711"
        assert body["metadata"]["annotations"][CHANGE_CAUSE_ANNOTATION] == "Rolled back to revision 1"
        template = body["spec"]["template"]
        assert template["spec"]["containers"][0]["image"] == "web:1"
        assert POD_TEMPLATE_HASH_LABEL not in template["metadata"]["labels"]
        assert template["metadata"]["labels"]["app"] == "web"
        assert body["spec"]["replicas"] == 3

    async def test_rollback_missing_revision_makes_no_write(self, rollouts, backend):
        """Test that an absent revision fails with zero update calls."""
        with pytest.raises(RevisionNotFoundError) as exc_info:
            await rollouts.rollback_to_revision("web", "prod", 9)

        assert exc_info.value.revision == 9
        assert backend.writes() == []

    async def test_rollback_ignores_other_owners(self, rollouts, backend):
        """Test that a revision owned by another deployment is not used."""
        with pytest.raises(RevisionNotFoundError):
            await rollouts.rollback_to_revision("web", "prod", 7)

        assert backend.writes() == []

    async def test_rollback_without_template(self, rollouts, backend):
        """Test that a revision with no template is rejected before writing."""
        backend.collections["alpha"][RS_PATH].append(replica_set("web-d", 4, "web:4", template=False))

        with pytest.raises(RevisionNotFoundError) as exc_info:
            await rollouts.rollback_to_revision("web", "prod", 4)

        assert "no pod template" in str(exc_info.value)
        assert backend.writes() == []

    async def test_dry_run(self, rollouts, backend):
        """Test that a dry run validates without writing."""
        record = await rollouts.rollback_to_revision("web", "prod", 2, dry_run=True)

        assert record.container_images == ("web:2",)
        assert backend.writes() == []

    async def test_conflict_propagates(self, rollouts, backend):
        """Test that a concurrent modification surfaces as ConflictError."""
        backend.write_errors[("alpha", DEPLOY_PATH)] = ConflictError(409, "Conflict", "object was modified")

        with pytest.raises(ConflictError):
            await rollouts.rollback_to_revision("web", "prod", 2)

    async def test_rollback_holds_gate(self, rollouts, session, backend):
        """Test that rollback runs under the session gate."""
        seen = []
        real_write = backend.write

        def spy(context, method, path, body):
            seen.append(session.holder)
            return real_write(context, method, path, body)

        backend.write = spy

        await rollouts.rollback_to_revision("web", "prod", 2)

        assert seen == ["rollback_deployment"]

    async def test_rollback_bad_namespace_makes_no_call(self, rollouts, backend, session):
        """Test that a malformed namespace is rejected before reading or writing."""
        backend.calls.clear()

        with pytest.raises(InvalidNameError):
            await rollouts.rollback_to_revision("web", "a/pods/x", 2)

        assert backend.calls == []
        assert not session.busy


@pytest.mark.unit
class TestPauseResumeRestart:
    """Tests for pause, resume and restart."""

    async def test_pause_patch_is_minimal(self, rollouts, backend):
        """Test that pause sends exactly the paused field."""
        await rollouts.pause("web", "prod")

        patch = backend.calls_with("PATCH")[-1]
        assert patch.path == DEPLOY_PATH
        assert patch.body == {"spec": {"paused": True}}

    async def test_resume_patch_is_minimal(self, rollouts, backend):
        """Test that resume sends exactly the paused field."""
        await rollouts.resume("web", "prod")

        assert backend.calls_with("PATCH")[-1].body == {"spec": {"paused": False}}

    async def test_restart_stamps_template(self, rollouts, backend):
        """Test that restart patches only the restartedAt annotation."""
        await rollouts.restart("web", "prod")

        body = backend.calls_with("PATCH")[-1].body
        annotations = body["spec"]["template"]["metadata"]["annotations"]
        assert list(annotations) == ["kubectl.kubernetes.io/restartedAt"]
        assert list(body["spec"]) == ["template"]

    @pytest.mark.parametrize("operation", ["pause", "resume", "restart"])
    async def test_empty_name_never_patches(self, rollouts, backend, operation):
        """Test that an empty deployment name is rejected before any patch."""
        with pytest.raises(InvalidNameError):
            await getattr(rollouts, operation)("", "prod")

        assert backend.writes() == []
