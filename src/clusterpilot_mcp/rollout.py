# ABOUTME: Rollout coordinator for deployments: history, rollback, pause, resume, restart
# ABOUTME: Reconciles revisions from owned replica sets and validates before any write

"""
Rollout coordinator.

=============================================================================
HOW DEPLOYMENT REVISIONS WORK
=============================================================================

A Deployment never stores its own history. Every time its pod template
changes, the controller creates (or reuses) a ReplicaSet that:

- has an ownerReference pointing back at the Deployment
- carries the annotation  deployment.kubernetes.io/revision: "<N>"
- keeps the pod template of that revision in spec.template

So revision history = "replica sets owned by this deployment, sorted by that
annotation". The Deployment carries the same annotation for the revision it
is CURRENTLY running. After a rollback that is not necessarily the highest
number present.

=============================================================================
ROLLBACK, STEP BY STEP
=============================================================================

1. VALIDATE (no writes yet):
   - name and namespace are well-formed DNS-1123 names (checked before any call)
   - a replica set owned by the deployment with the requested revision exists
   - it still has a pod template
   Otherwise RevisionNotFoundError, and the update endpoint is never called.

2. READ the deployment, keeping metadata.resourceVersion.

3. COPY the revision's template into spec.template (minus the
   pod-template-hash label the controller adds) and stamp
   kubernetes.io/change-cause: "Rolled back to revision N".

4. REPLACE the deployment. Because resourceVersion is sent back, the API
   server refuses the write with 409 if someone changed the deployment in
   between; that surfaces as ConflictError and the caller can simply retry.

Every mutating call here holds the session gate, so a sweep can never switch
the cluster out from under a half-finished rollback.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import structlog

from clusterpilot_mcp.errors import NotFoundError, RevisionNotFoundError
from clusterpilot_mcp.utils.validation import validate_namespace, validate_resource_name

if TYPE_CHECKING:
    from clusterpilot_mcp.clients import WorkloadClient
    from clusterpilot_mcp.session import ClusterSession

logger = structlog.get_logger(__name__)

REVISION_ANNOTATION = "deployment.kubernetes.io/revision"
CHANGE_CAUSE_ANNOTATION = "kubernetes.io/change-cause"
POD_TEMPLATE_HASH_LABEL = "pod-template-hash"


def _parse_revision(value: Any) -> int | None:
    try:
        revision = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    return revision if revision > 0 else None


def _owned_by(replica_set: dict[str, Any], deployment: str) -> bool:
    owners = (replica_set.get("metadata") or {}).get("ownerReferences") or []
    return any(ref.get("kind") == "Deployment" and ref.get("name") == deployment for ref in owners)


def _check_target(name: str, namespace: str) -> None:
    validate_resource_name(name, field="deployment name")
    validate_namespace(namespace)


# =============================================================================
# DATA MODELS
# =============================================================================


@dataclass(frozen=True)
class RevisionRecord:
    """One historical revision of a deployment."""

    revision: int
    replica_set_name: str
    created_at: str | None = None
    container_images: tuple[str, ...] = ()
    desired_replicas: int = 0
    change_cause: str | None = None

    @classmethod
    def from_replica_set(cls, replica_set: dict[str, Any]) -> RevisionRecord | None:
        """
        Build a record from a ReplicaSet, or None when its revision
        annotation is missing or not a positive integer.
        """
        metadata = replica_set.get("metadata") or {}
        annotations = metadata.get("annotations") or {}
        revision = _parse_revision(annotations.get(REVISION_ANNOTATION))
        if revision is None:
            return None
        spec = replica_set.get("spec") or {}
        containers = ((spec.get("template") or {}).get("spec") or {}).get("containers") or []
        return cls(
            revision=revision,
            replica_set_name=metadata.get("name", ""),
            created_at=metadata.get("creationTimestamp"),
            container_images=tuple(c.get("image", "") for c in containers),
            desired_replicas=int(spec.get("replicas") or 0),
            change_cause=annotations.get(CHANGE_CAUSE_ANNOTATION),
        )


@dataclass(frozen=True)
class RolloutStatus:
    """Rollout state of a deployment as reported by its status block."""

    name: str
    namespace: str
    desired_replicas: int
    updated_replicas: int
    ready_replicas: int
    available_replicas: int
    unavailable_replicas: int
    current_revision: int | None
    strategy: str
    paused: bool
    max_surge: str | None = None
    max_unavailable: str | None = None
    progress_deadline_seconds: int | None = None
    conditions: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_deployment(cls, deployment: dict[str, Any]) -> RolloutStatus:
        metadata = deployment.get("metadata") or {}
        spec = deployment.get("spec") or {}
        status = deployment.get("status") or {}
        strategy = spec.get("strategy") or {}
        rolling = strategy.get("rollingUpdate") or {}
        return cls(
            name=metadata.get("name", ""),
            namespace=metadata.get("namespace", ""),
            desired_replicas=int(spec.get("replicas", 1) or 0),
            updated_replicas=int(status.get("updatedReplicas") or 0),
            ready_replicas=int(status.get("readyReplicas") or 0),
            available_replicas=int(status.get("availableReplicas") or 0),
            unavailable_replicas=int(status.get("unavailableReplicas") or 0),
            current_revision=_parse_revision((metadata.get("annotations") or {}).get(REVISION_ANNOTATION)),
            strategy=strategy.get("type", "RollingUpdate"),
            paused=bool(spec.get("paused", False)),
            max_surge=str(rolling["maxSurge"]) if rolling.get("maxSurge") is not None else None,
            max_unavailable=str(rolling["maxUnavailable"]) if rolling.get("maxUnavailable") is not None else None,
            progress_deadline_seconds=spec.get("progressDeadlineSeconds"),
            conditions=[
                {
                    "type": c.get("type", ""),
                    "status": c.get("status", ""),
                    "reason": c.get("reason", ""),
                    "message": c.get("message", ""),
                }
                for c in status.get("conditions") or []
            ],
        )

    @property
    def state(self) -> str:
        """Short summary: Paused, Complete, Progressing or Degraded."""
        if self.paused:
            return "Paused"
        if self.unavailable_replicas > 0:
            return "Degraded"
        if self.updated_replicas >= self.desired_replicas and self.available_replicas >= self.desired_replicas:
            return "Complete"
        return "Progressing"


# =============================================================================
# COORDINATOR
# =============================================================================


class RolloutCoordinator:
    """
    Multi-step rollout workflows for deployments in the active context.

    Example:
        rollouts = RolloutCoordinator(session)
        history = await rollouts.get_revision_history("web", "prod")
        await rollouts.rollback_to_revision("web", "prod", history[1].revision)
    """

    def __init__(self, session: ClusterSession) -> None:
        self._session = session

    def _workloads(self) -> WorkloadClient:
        return self._session.facade.handles.workloads

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_revision_history(self, name: str, namespace: str) -> list[RevisionRecord]:
        """
        Revisions of a deployment, newest first.

        Replica sets without a usable revision annotation are left out.
        """
        _check_target(name, namespace)
        replica_sets = await self._workloads().list_replica_sets(namespace)
        return self._history_from(replica_sets, name)

    @staticmethod
    def _history_from(replica_sets: list[dict[str, Any]], name: str) -> list[RevisionRecord]:
        records = []
        for rs in replica_sets:
            if not _owned_by(rs, name):
                continue
            record = RevisionRecord.from_replica_set(rs)
            if record is not None:
                records.append(record)
        records.sort(key=lambda r: r.revision, reverse=True)
        return records

    @staticmethod
    def _find_revision(
        replica_sets: list[dict[str, Any]], name: str, revision: int
    ) -> tuple[dict[str, Any], RevisionRecord] | None:
        for rs in replica_sets:
            if not _owned_by(rs, name):
                continue
            record = RevisionRecord.from_replica_set(rs)
            if record is not None and record.revision == revision:
                return rs, record
        return None

    async def get_rollout_status(self, name: str, namespace: str) -> RolloutStatus:
        _check_target(name, namespace)
        try:
            deployment = await self._workloads().get_deployment(name, namespace)
        except NotFoundError as e:
            raise NotFoundError("Deployment", name, namespace) from e
        return RolloutStatus.from_deployment(deployment)

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def rollback_to_revision(
        self,
        name: str,
        namespace: str,
        revision: int,
        dry_run: bool = False,
    ) -> RevisionRecord:
        """
        Replace the deployment's pod template with that of `revision`.

        Args:
            name: Deployment name
            namespace: Deployment namespace
            revision: Target revision number
            dry_run: Validate and return the target without writing

        Returns:
            The RevisionRecord that was (or would be) rolled back to

        Raises:
            RevisionNotFoundError: No owned replica set has that revision, or
                it has no pod template. No write has been issued.
            InvalidNameError: Name or namespace is malformed. No call has been issued.
            NotFoundError: The deployment itself is gone
            ConflictError: The deployment changed between read and write
        """
        _check_target(name, namespace)
        log = logger.bind(deployment=name, namespace=namespace, revision=revision)
        async with self._session.exclusive("rollback_deployment"):
            await self._session.sync_handles()
            workloads = self._workloads()

            replica_sets = await workloads.list_replica_sets(namespace)
            found = self._find_revision(replica_sets, name, revision)
            if found is None:
                raise RevisionNotFoundError(name, namespace, revision)
            target, record = found
            template = (target.get("spec") or {}).get("template")
            if not template:
                raise RevisionNotFoundError(name, namespace, revision, "replica set has no pod template")

            if dry_run:
                log.info("Rollback validated (dry run)")
                return record

            try:
                deployment = await workloads.get_deployment(name, namespace)
            except NotFoundError as e:
                raise NotFoundError("Deployment", name, namespace) from e

            new_template = copy.deepcopy(template)
            labels = (new_template.get("metadata") or {}).get("labels")
            if labels:
                labels.pop(POD_TEMPLATE_HASH_LABEL, None)

            body = copy.deepcopy(deployment)
            body.setdefault("spec", {})["template"] = new_template
            metadata = body.setdefault("metadata", {})
            annotations = metadata.get("annotations") or {}
            annotations[CHANGE_CAUSE_ANNOTATION] = f"Rolled back to revision {revision}"
            metadata["annotations"] = annotations

            await workloads.replace_deployment(name, namespace, body)
            log.info("Deployment rolled back", resource_version=metadata.get("resourceVersion"))
            return record

    async def pause(self, name: str, namespace: str) -> None:
        await self._set_paused(name, namespace, True)

    async def resume(self, name: str, namespace: str) -> None:
        await self._set_paused(name, namespace, False)

    async def _set_paused(self, name: str, namespace: str, paused: bool) -> None:
        _check_target(name, namespace)
        operation = "pause_rollout" if paused else "resume_rollout"
        async with self._session.exclusive(operation):
            await self._session.sync_handles()
            await self._workloads().patch_deployment(name, namespace, {"spec": {"paused": paused}})
        logger.info("Rollout paused" if paused else "Rollout resumed", deployment=name, namespace=namespace)

    async def restart(self, name: str, namespace: str) -> None:
        """Roll out fresh pods without changing image or replica count."""
        _check_target(name, namespace)
        async with self._session.exclusive("restart_rollout"):
            await self._session.sync_handles()
            await self._workloads().restart_deployment(name, namespace)
