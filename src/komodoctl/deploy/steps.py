# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/komodoctl/deploy/steps.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, Literal, Optional, Tuple, Type

from ..utils.execution import ExecutionContext
from ..utils.retry import RetryPolicy

StepFn = Callable[[ExecutionContext], None]


@dataclass
class WorkflowStep:
    name: str
    action: StepFn
    compensate: Optional[StepFn] = None
    description: str = ""
    retry: Optional[RetryPolicy] = None
    compensate_retry: Optional[RetryPolicy] = None
    settle_seconds: float = 0.0
    tolerate: Tuple[Type[BaseException], ...] = ()
    materializes: List[str] = field(default_factory=list)  # remote objects this step brings into existence


@dataclass
class WorkflowPlan:
    name: str
    operation: Literal["create", "delete", "update"]
    steps: List[WorkflowStep] = field(default_factory=list)
    best_effort: bool = False

    def add(self, step: WorkflowStep) -> None:
        self.steps.append(step)

    def step_names(self) -> List[str]:
        return [s.name for s in self.steps]

    def __len__(self) -> int:
        return len(self.steps)
