# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from .errors import (
    CompensationError,
    DeadlineExceeded,
    OperationCancelled,
    TeardownError,
    WorkflowError,
)
from .steps import StepFn, WorkflowPlan, WorkflowStep
from ..utils.execution import ExecutionContext
from ..utils.retry import RetryPolicy

# Observer bits
from ..observers.dispatcher import EventBus
from ..observers.events import (
    new_ctx,
    PlanComputed,
    StepStarted,
    StepRetry,
    StepSucceeded,
    StepFailed,
    StepSettling,
    RollbackStarted,
    RollbackResult,
    WorkflowSummary,
)

log = logging.getLogger("komodoctl")


@dataclass
class StepOutcome:
    name: str
    status: str                 # "OK" | "FAILED" | "SKIPPED" | "ROLLED_BACK" | "ROLLBACK_FAILED"
    attempts: int = 0
    error: Optional[str] = None


@dataclass
class WorkflowReport:
    plan: str
    outcomes: List[StepOutcome] = field(default_factory=list)

    def add(self, outcome: StepOutcome) -> None:
        self.outcomes.append(outcome)

    def get(self, name: str, status: Optional[str] = None) -> Optional[StepOutcome]:
        for o in self.outcomes:
            if o.name == name and (status is None or o.status == status):
                return o
        return None

    def count(self, status: str) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    @property
    def ok(self) -> bool:
        return self.count("FAILED") == 0

    def summary(self) -> str:
        return (
            f"OK={self.count('OK')} FAILED={self.count('FAILED')} "
            f"ROLLED_BACK={self.count('ROLLED_BACK')} ROLLBACK_FAILED={self.count('ROLLBACK_FAILED')} "
            f"SKIPPED={self.count('SKIPPED')}"
        )


class WorkflowExecutor:
    """
    Walks a WorkflowPlan strictly in order.

    All-or-nothing plans (create/update): the first failing step stops the run;
    compensations of the steps completed before it run in reverse order, each
    one best-effort, and WorkflowError is raised with the original cause.

    Best-effort plans (delete): every step is attempted; failures are collected
    and raised together as TeardownError at the end. Deadline expiry or
    cancellation stops the walk and marks the remaining steps SKIPPED.
    """

    def __init__(
        self,
        *,
        ctx: Optional[ExecutionContext] = None,
        bus: Optional[EventBus] = None,
        run_ctx: Optional[Dict] = None,
    ):
        self.ctx = ctx or ExecutionContext()
        self.bus = bus or EventBus()
        self._run_ctx = run_ctx

    def run(self, plan: WorkflowPlan) -> WorkflowReport:
        run_ctx = self._run_ctx or new_ctx(operation=plan.operation, target=plan.name)
        report = WorkflowReport(plan=plan.name)

        log.info("running %s plan for %s: %s", plan.operation, plan.name, " -> ".join(plan.step_names()))
        self.bus.emit(PlanComputed(order=plan.step_names(), **run_ctx))

        if plan.best_effort:
            return self._run_best_effort(plan, report, run_ctx)
        return self._run_all_or_nothing(plan, report, run_ctx)

    # -----------------------
    # Modes
    # -----------------------
    def _run_all_or_nothing(self, plan: WorkflowPlan, report: WorkflowReport, run_ctx: Dict) -> WorkflowReport:
        completed: List[WorkflowStep] = []

        for step in plan.steps:
            outcome, err = self._execute(step, self.ctx, run_ctx)
            report.add(outcome)
            if err is None:
                completed.append(step)
                err = self._settle(step, run_ctx)
            if err is None:
                continue

            warnings = self._rollback(completed, report, run_ctx)
            self._summarize(report, run_ctx, "FAILED")
            raise WorkflowError(step.name, err, warnings, report) from err

        self._summarize(report, run_ctx, "OK")
        return report

    def _run_best_effort(self, plan: WorkflowPlan, report: WorkflowReport, run_ctx: Dict) -> WorkflowReport:
        failures: List[Tuple[str, BaseException]] = []

        for index, step in enumerate(plan.steps):
            outcome, err = self._execute(step, self.ctx, run_ctx)
            report.add(outcome)
            if err is None:
                err = self._settle(step, run_ctx)
            if err is None:
                continue

            failures.append((step.name, err))
            if isinstance(err, (DeadlineExceeded, OperationCancelled)):
                for rest in plan.steps[index + 1:]:
                    report.add(StepOutcome(name=rest.name, status="SKIPPED", error=str(err)))
                break

        self._summarize(report, run_ctx, "FAILED" if failures else "OK")
        if failures:
            raise TeardownError(failures, report)
        return report

    # -----------------------
    # Helpers
    # -----------------------
    def _execute(
        self,
        step: WorkflowStep,
        ctx: ExecutionContext,
        run_ctx: Dict,
    ) -> Tuple[StepOutcome, Optional[Exception]]:
        self.bus.emit(StepStarted(name=step.name, description=step.description, **run_ctx))
        log.info("step %s: %s", step.name, step.description or "-")

        attempts = 1

        def _on_retry(attempt: int, exc: Exception, delay: float) -> None:
            nonlocal attempts
            attempts = attempt + 1
            self.bus.emit(StepRetry(name=step.name, attempt=attempt, delay_s=round(delay, 3), error=str(exc), **run_ctx))

        t0 = time.monotonic()
        try:
            ctx.check()
            _call(step.action, step.retry, ctx, _on_retry)
        except Exception as exc:
            if step.tolerate and isinstance(exc, step.tolerate):
                log.info("step %s: tolerated %s: %s", step.name, type(exc).__name__, exc)
            else:
                log.error("step %s failed after %d attempt(s): %s", step.name, attempts, exc)
                self.bus.emit(StepFailed(name=step.name, attempts=attempts, error=str(exc), **run_ctx))
                return StepOutcome(name=step.name, status="FAILED", attempts=attempts, error=str(exc)), exc

        duration_ms = int((time.monotonic() - t0) * 1000)
        self.bus.emit(StepSucceeded(name=step.name, attempts=attempts, duration_ms=duration_ms, **run_ctx))
        return StepOutcome(name=step.name, status="OK", attempts=attempts), None

    def _settle(self, step: WorkflowStep, run_ctx: Dict) -> Optional[Exception]:
        if step.settle_seconds <= 0:
            return None
        self.bus.emit(StepSettling(name=step.name, seconds=step.settle_seconds, **run_ctx))
        log.debug("step %s: settling for %.1fs", step.name, step.settle_seconds)
        try:
            self.ctx.sleep(step.settle_seconds)
        except (DeadlineExceeded, OperationCancelled) as exc:
            return exc
        return None

    def _rollback(
        self,
        completed: List[WorkflowStep],
        report: WorkflowReport,
        run_ctx: Dict,
    ) -> List[CompensationError]:
        # rollback ignores the overall deadline: partial cleanup beats none
        ctx = self.ctx.for_rollback()
        warnings: List[CompensationError] = []

        for step in reversed(completed):
            if step.compensate is None:
                continue
            self.bus.emit(RollbackStarted(name=step.name, **run_ctx))
            log.info("rolling back %s", step.name)
            try:
                _call(step.compensate, step.compensate_retry, ctx, None)
                report.add(StepOutcome(name=step.name, status="ROLLED_BACK"))
                self.bus.emit(RollbackResult(name=step.name, status="ROLLED_BACK", error=None, **run_ctx))
            except Exception as exc:
                warning = CompensationError(step.name, exc)
                warnings.append(warning)
                log.warning("%s", warning)
                report.add(StepOutcome(name=step.name, status="ROLLBACK_FAILED", error=str(exc)))
                self.bus.emit(RollbackResult(name=step.name, status="ROLLBACK_FAILED", error=str(exc), **run_ctx))

        return warnings

    def _summarize(self, report: WorkflowReport, run_ctx: Dict, status: str) -> None:
        log.info("%s %s: %s", report.plan, status, report.summary())
        self.bus.emit(
            WorkflowSummary(
                ok=report.count("OK"),
                failed=report.count("FAILED"),
                rolled_back=report.count("ROLLED_BACK"),
                status=status,
                **run_ctx,
            )
        )


def _call(
    fn: StepFn,
    retry: Optional[RetryPolicy],
    ctx: ExecutionContext,
    on_retry: Optional[Callable[[int, Exception, float], None]],
) -> None:
    if retry is None:
        fn(ctx)
        return
    retry.execute(lambda: fn(ctx), ctx=ctx, on_retry=on_retry)
