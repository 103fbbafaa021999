# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
import random
from typing import Callable, List, Optional, Sequence

from ..api.errors import NotFoundError, TransientRemoteError
from ..api.operations import KomodoApi, node_address
from ..config.models import NodeConfig, PollConfig, WorkflowConfig
from ..scm.interface import SourceControl
from ..utils.polling import PollSpec, poll_until
from ..utils.retry import RetryPolicy, busy_policy
from .errors import ReplacementRequiredError
from .naming import DesiredState, EntityNames, derive_names, render_context_sync
from .steps import StepFn, WorkflowPlan, WorkflowStep

log = logging.getLogger("komodoctl")


class PlanBuilder:
    """
    Turns a DesiredState into the fixed, ordered step list for create, delete
    or update. The order is load-bearing: sync B only exists after sync A has
    run, and the procedures only exist after sync B has run.
    """

    def __init__(
        self,
        *,
        api: KomodoApi,
        workflow: Optional[WorkflowConfig] = None,
        node: Optional[NodeConfig] = None,
        git_account: str = "manidaecloud",
        scm: Optional[SourceControl] = None,
        rng: Optional[random.Random] = None,
    ):
        self.api = api
        self.workflow = workflow or WorkflowConfig()
        self.node = node or NodeConfig()
        self.git_account = git_account
        self.scm = scm
        self.rng = rng or random.Random()

    def names(self, state: DesiredState) -> EntityNames:
        return derive_names(state.name, self.git_account)

    # -----------------------
    # Create
    # -----------------------
    def create_plan(self, state: DesiredState) -> WorkflowPlan:
        names = self.names(state)
        api = self.api
        settle = self.workflow.settle
        plan = WorkflowPlan(name=state.name, operation="create")

        if self.scm is not None:
            scm = self.scm
            plan.add(WorkflowStep(
                name="create-repository",
                description=f"create repository {names.repository_path}",
                action=lambda ctx: scm.create_repository(state, names, ctx),
                compensate=lambda ctx: scm.delete_repository(names),
                materializes=[names.repository],
                settle_seconds=settle.after_repository_seconds,
            ))
            # the repository compensation above removes the key and commit too
            plan.add(WorkflowStep(
                name="publish-resources",
                description=f"commit resources.toml to {names.repository_path}",
                action=lambda ctx: scm.publish_resources(state, names, ctx),
            ))

        address = node_address(state.node_address, scheme=self.node.scheme, port=self.node.port)
        plan.add(WorkflowStep(
            name="create-node",
            description=f"create server {names.server} at {address}",
            action=lambda ctx: api.create_server(names.server, address, [state.name]),
            compensate=self._deleting(api.delete_server, [names.server]),
            compensate_retry=self._node_retry(),
            materializes=[names.server],
        ))
        plan.add(self._waiting(
            "wait-node-reachable",
            f"server {names.server} reports its address",
            lambda: api.server_is_reachable(names.server),
            self.workflow.reachable_poll,
        ))
        plan.add(WorkflowStep(
            name="enable-node",
            description=f"enable server {names.server}",
            action=lambda ctx: api.enable_server(names.server),
        ))
        ready = self.node.ready_status
        plan.add(self._waiting(
            "wait-node-ready",
            f"server {names.server} status is {ready}",
            lambda: api.server_is_ready(names.server, ready),
            self.workflow.ready_poll,
        ))

        sync_contents = render_context_sync(names, self.git_account)
        plan.add(WorkflowStep(
            name="create-sync-a",
            description=f"create resource sync {names.context_sync}",
            action=lambda ctx: api.create_resource_sync(names.context_sync, sync_contents),
            compensate=self._deleting(api.delete_resource_sync, [names.context_sync]),
            compensate_retry=self._procedure_retry(),
            materializes=[names.context_sync],
        ))
        # running a sync materialises the objects its TOML declares;
        # undoing the run means deleting exactly those
        plan.add(WorkflowStep(
            name="run-sync-a",
            description=f"run {names.context_sync} (declares {names.setup_sync})",
            action=lambda ctx: api.run_sync(names.context_sync),
            compensate=self._deleting(api.delete_resource_sync, [names.setup_sync]),
            compensate_retry=self._procedure_retry(),
            settle_seconds=settle.after_sync_seconds,
            materializes=[names.setup_sync],
        ))
        plan.add(WorkflowStep(
            name="run-sync-b",
            description=f"run {names.setup_sync} (declares procedures)",
            action=lambda ctx: api.run_sync(names.setup_sync),
            compensate=self._deleting(api.delete_procedure, list(names.procedures)),
            compensate_retry=self._procedure_retry(),
            settle_seconds=settle.after_sync_seconds,
            materializes=list(names.procedures),
        ))
        plan.add(WorkflowStep(
            name="run-apply-procedure",
            description=f"run {names.apply_procedure}",
            action=lambda ctx: api.run_procedure(names.apply_procedure),
        ))
        return plan

    # -----------------------
    # Delete
    # -----------------------
    def delete_plan(self, state: DesiredState) -> WorkflowPlan:
        """
        Mirror of create, addressed purely by name so it also cleans up after a
        partially failed create. Best-effort: every step runs.
        """
        names = self.names(state)
        api = self.api
        settle = self.workflow.settle
        plan = WorkflowPlan(name=state.name, operation="delete", best_effort=True)

        plan.add(WorkflowStep(
            name="run-destroy-procedure",
            description=f"run {names.destroy_procedure}",
            action=lambda ctx: api.run_procedure(names.destroy_procedure),
            settle_seconds=settle.after_destroy_seconds,
            # never materialised: nothing to destroy
            tolerate=(NotFoundError,),
        ))

        deletions = [
            ("delete-apply-procedure", api.delete_procedure, names.apply_procedure, settle.between_deletes_seconds),
            ("delete-destroy-procedure", api.delete_procedure, names.destroy_procedure, settle.between_deletes_seconds),
            ("delete-restart-procedure", api.delete_procedure, names.restart_procedure, settle.between_deletes_seconds),
            ("delete-sync-b", api.delete_resource_sync, names.setup_sync, settle.between_deletes_seconds),
            ("delete-sync-a", api.delete_resource_sync, names.context_sync, 0.0),
        ]
        for step_name, delete, object_id, pause in deletions:
            plan.add(WorkflowStep(
                name=step_name,
                description=f"delete {object_id}",
                action=self._deleting(delete, [object_id]),
                retry=self._procedure_retry(),
                settle_seconds=pause,
            ))

        plan.add(WorkflowStep(
            name="delete-node",
            description=f"delete server {names.server}",
            action=self._deleting(api.delete_server, [names.server]),
            retry=self._node_retry(),
        ))

        if self.scm is not None:
            scm = self.scm
            plan.add(WorkflowStep(
                name="delete-repository",
                description=f"delete repository {names.repository_path}",
                action=lambda ctx: scm.delete_repository(names),
            ))
        return plan

    # -----------------------
    # Update
    # -----------------------
    def update_plan(self, old: DesiredState, new: DesiredState) -> WorkflowPlan:
        """
        Re-publish resources.toml and re-apply. Only file contents are
        updatable in place; an unchanged file yields an empty plan.
        """
        if old.name != new.name:
            raise ReplacementRequiredError(f"cannot rename {old.name!r} to {new.name!r} in place; delete and create instead")

        plan = WorkflowPlan(name=new.name, operation="update")
        if new.file_contents is None or new.file_contents == old.file_contents:
            log.info("update %s: file contents unchanged, nothing to do", new.name)
            return plan

        names = self.names(new)
        api = self.api

        if self.scm is not None:
            scm = self.scm
            plan.add(WorkflowStep(
                name="update-repository-file",
                description=f"commit resources.toml to {names.repository_path}",
                action=lambda ctx: scm.update_file(new, names, ctx),
            ))

        sync_contents = render_context_sync(names, self.git_account)
        plan.add(WorkflowStep(
            name="create-sync-a",
            description=f"create resource sync {names.context_sync}",
            action=lambda ctx: api.create_resource_sync(names.context_sync, sync_contents),
        ))
        plan.add(WorkflowStep(
            name="run-sync-b",
            description=f"run {names.setup_sync}",
            action=lambda ctx: api.run_sync(names.setup_sync),
            settle_seconds=self.workflow.settle.after_sync_seconds,
        ))
        plan.add(WorkflowStep(
            name="run-apply-procedure",
            description=f"run {names.apply_procedure}",
            action=lambda ctx: api.run_procedure(names.apply_procedure),
        ))
        return plan

    # -----------------------
    # Helpers
    # -----------------------
    def _procedure_retry(self) -> RetryPolicy:
        r = self.workflow.retry
        return busy_policy(max_attempts=r.procedure_attempts, base=r.base_seconds, jitter=r.jitter_seconds, rng=self.rng)

    def _node_retry(self) -> RetryPolicy:
        r = self.workflow.retry
        return busy_policy(max_attempts=r.node_attempts, base=r.base_seconds, jitter=r.jitter_seconds, rng=self.rng)

    @staticmethod
    def _waiting(name: str, description: str, predicate: Callable[[], bool], cfg: PollConfig) -> WorkflowStep:
        spec = PollSpec(
            predicate=predicate,
            max_attempts=cfg.max_attempts,
            interval=cfg.interval_seconds,
            description=description,
        )
        return WorkflowStep(
            name=name,
            description=f"wait until {description}",
            action=lambda ctx: poll_until(spec, ctx=ctx),
        )

    @staticmethod
    def _deleting(delete: Callable[[str], None], object_ids: Sequence[str]) -> StepFn:
        """
        Delete every id, even when an earlier one fails. A busy error wins so the
        surrounding retry policy gets another go; deletes are idempotent.
        """
        ids = list(object_ids)

        def _run(ctx) -> None:
            errors: List[Exception] = []
            for object_id in ids:
                try:
                    delete(object_id)
                except Exception as exc:
                    errors.append(exc)
            if not errors:
                return
            busy = [e for e in errors if isinstance(e, TransientRemoteError)]
            raise (busy or errors)[0]

        return _run
