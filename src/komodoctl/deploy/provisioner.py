# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/komodoctl/deploy/provisioner.py

from __future__ import annotations

import logging
import random
from typing import Any, Callable, Dict, Optional

import requests

from ..api.client import ControlPlaneClient
from ..api.errors import NotFoundError
from ..api.operations import KomodoApi
from ..config.models import KomodoConfig
from ..observers.dispatcher import EventBus
from ..observers.events import new_ctx
from ..scm.github import GitHubRepositories
from ..scm.interface import SourceControl
from ..utils.execution import ExecutionContext
from .executor import WorkflowExecutor, WorkflowReport
from .naming import DesiredState
from .planner import PlanBuilder
from .steps import WorkflowPlan

log = logging.getLogger("komodoctl")


class Provisioner:
    """
    Entry point for one desired-state lifecycle operation.

    Invocations targeting the same name must be serialised by the caller;
    there is no locking here or on the control plane.
    """

    def __init__(
        self,
        *,
        builder: PlanBuilder,
        bus: Optional[EventBus] = None,
        sleep_fn: Optional[Callable[[float], None]] = None,
        default_timeout: Optional[float] = None,
        run_id: Optional[str] = None,
    ):
        self.builder = builder
        self.api = builder.api
        self.bus = bus or EventBus()
        self.sleep_fn = sleep_fn
        self.default_timeout = default_timeout
        self.run_id = run_id

    @classmethod
    def from_config(
        cls,
        cfg: KomodoConfig,
        *,
        session: Optional[requests.Session] = None,
        bus: Optional[EventBus] = None,
        sleep_fn: Optional[Callable[[float], None]] = None,
        rng: Optional[random.Random] = None,
        scm: Optional[SourceControl] = None,
        run_id: Optional[str] = None,
    ) -> "Provisioner":
        api = KomodoApi(ControlPlaneClient.from_config(cfg.control_plane, session=session))
        if scm is None and cfg.source_control.enabled:
            scm = GitHubRepositories.from_config(cfg.source_control, session=session)
        builder = PlanBuilder(
            api=api,
            workflow=cfg.workflow,
            node=cfg.node,
            git_account=cfg.source_control.git_account,
            scm=scm,
            rng=rng,
        )
        return cls(
            builder=builder,
            bus=bus,
            sleep_fn=sleep_fn,
            default_timeout=cfg.workflow.timeout_seconds,
            run_id=run_id,
        )

    @classmethod
    def offline(cls, cfg: KomodoConfig, *, rng: Optional[random.Random] = None) -> "Provisioner":
        """
        Plan-only provisioner: no credentials are read and no session is opened.
        Running any of its plans fails on the first remote call.
        """
        unconnected = _Unconnected()
        builder = PlanBuilder(
            api=KomodoApi(unconnected),
            workflow=cfg.workflow,
            node=cfg.node,
            git_account=cfg.source_control.git_account,
            scm=unconnected if cfg.source_control.enabled else None,
            rng=rng,
        )
        return cls(builder=builder, default_timeout=cfg.workflow.timeout_seconds)

    # -----------------------
    # Operations
    # -----------------------
    # Pass ctx to keep a handle for ctx.cancel() (e.g. from a signal handler).
    def create(
        self,
        state: DesiredState,
        timeout_seconds: Optional[float] = None,
        *,
        ctx: Optional[ExecutionContext] = None,
    ) -> WorkflowReport:
        return self._run(self.builder.create_plan(state), ctx or self.context(timeout_seconds))

    def delete(
        self,
        state: DesiredState,
        timeout_seconds: Optional[float] = None,
        *,
        ctx: Optional[ExecutionContext] = None,
    ) -> WorkflowReport:
        return self._run(self.builder.delete_plan(state), ctx or self.context(timeout_seconds))

    def update(
        self,
        old: DesiredState,
        new: DesiredState,
        timeout_seconds: Optional[float] = None,
        *,
        ctx: Optional[ExecutionContext] = None,
    ) -> WorkflowReport:
        plan = self.builder.update_plan(old, new)
        if not plan.steps:
            return WorkflowReport(plan=plan.name)
        return self._run(plan, ctx or self.context(timeout_seconds))

    def read(self, state: DesiredState) -> Optional[Dict[str, Any]]:
        """The server document for this desired state, or None once it is gone."""
        names = self.builder.names(state)
        try:
            return self.api.get_server(names.server)
        except NotFoundError:
            log.info("server %s not found", names.server)
            return None

    def plan(self, operation: str, state: DesiredState, old: Optional[DesiredState] = None) -> WorkflowPlan:
        if operation == "create":
            return self.builder.create_plan(state)
        if operation == "delete":
            return self.builder.delete_plan(state)
        if operation == "update":
            return self.builder.update_plan(old or state, state)
        raise ValueError(f"unknown operation {operation!r}")

    def context(self, timeout_seconds: Optional[float] = None) -> ExecutionContext:
        timeout = timeout_seconds if timeout_seconds is not None else self.default_timeout
        return ExecutionContext(timeout_seconds=timeout, sleep_fn=self.sleep_fn)

    def _run(self, plan: WorkflowPlan, ctx: ExecutionContext) -> WorkflowReport:
        executor = WorkflowExecutor(
            ctx=ctx,
            bus=self.bus,
            run_ctx=new_ctx(operation=plan.operation, target=plan.name, run_id=self.run_id),
        )
        return executor.run(plan)


class _Unconnected:
    """Stands in for the control-plane client and the repository host when only planning."""

    def __getattr__(self, name: str):
        def _refuse(*args: Any, **kwargs: Any) -> None:
            raise RuntimeError(f"{name}: this provisioner was built for planning only")

        return _refuse
