# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/komodoctl/deploy/errors.py
from __future__ import annotations

from typing import List, Optional, Tuple


class InvalidNameError(ValueError):
    """Raised when a desired-state name cannot produce usable identifiers."""


class PollTimeoutError(TimeoutError):
    def __init__(self, description: str, attempts: int):
        super().__init__(f"{description} not satisfied after {attempts} attempts")
        self.description = description
        self.attempts = attempts


class DeadlineExceeded(TimeoutError):
    """The overall operation timeout elapsed."""


class OperationCancelled(RuntimeError):
    """The workflow was cancelled from outside."""


class CompensationError(RuntimeError):
    """A rollback step failed. Recorded as a warning, never re-raised."""

    def __init__(self, step: str, cause: BaseException):
        super().__init__(f"rollback of '{step}' failed: {cause}")
        self.step = step
        self.cause = cause


class WorkflowError(RuntimeError):
    """A create/update step failed; completed steps have been rolled back."""

    def __init__(
        self,
        failed_step: str,
        cause: BaseException,
        compensation_warnings: Optional[List[CompensationError]] = None,
        report=None,
    ):
        warnings = compensation_warnings or []
        message = f"step '{failed_step}' failed: {cause}"
        if warnings:
            message += f" ({len(warnings)} rollback warning(s): " + "; ".join(str(w) for w in warnings) + ")"
        super().__init__(message)
        self.failed_step = failed_step
        self.cause = cause
        self.compensation_warnings = warnings
        self.report = report


class TeardownError(RuntimeError):
    """One or more best-effort teardown steps failed. All steps were attempted."""

    def __init__(self, failures: List[Tuple[str, BaseException]], report=None):
        lines = [f"{step}: {exc}" for step, exc in failures]
        super().__init__(f"{len(failures)} teardown step(s) failed: " + "; ".join(lines))
        self.failures = failures
        self.report = report

    @property
    def failed_steps(self) -> List[str]:
        return [step for step, _ in self.failures]


class ReplacementRequiredError(ValueError):
    """The requested change cannot be applied in place (e.g. a rename)."""
