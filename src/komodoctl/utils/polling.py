# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/komodoctl/utils/polling.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from komodoctl.deploy.errors import DeadlineExceeded, OperationCancelled, PollTimeoutError
from .execution import ExecutionContext

log = logging.getLogger("komodoctl")


@dataclass(frozen=True)
class PollSpec:
    predicate: Callable[[], bool]
    max_attempts: int
    interval: float
    description: str = "condition"

    def __post_init__(self) -> None:
        if self.max_attempts <= 0:
            raise ValueError("max_attempts must be > 0")
        if self.interval <= 0:
            raise ValueError("interval must be > 0")


def poll_until(
    spec: PollSpec,
    *,
    ctx: ExecutionContext,
    on_attempt: Optional[Callable[[int, bool, Optional[Exception]], None]] = None,
) -> int:
    """
    Evaluate spec.predicate until it returns True or attempts run out.

    - returns the attempt number that succeeded
    - sleeps spec.interval after every unsuccessful attempt, the last one included
    - a predicate exception consumes the attempt (logged, not raised)
    - deadline / cancellation abort immediately
    """
    for attempt in range(1, spec.max_attempts + 1):
        ctx.check()
        error: Optional[Exception] = None
        ok = False
        try:
            ok = bool(spec.predicate())
        except (DeadlineExceeded, OperationCancelled):
            raise
        except Exception as exc:
            error = exc
            log.warning("%s: attempt %d/%d failed: %s", spec.description, attempt, spec.max_attempts, exc)

        if on_attempt:
            on_attempt(attempt, ok, error)
        if ok:
            log.debug("%s: satisfied on attempt %d", spec.description, attempt)
            return attempt

        ctx.sleep(spec.interval)

    raise PollTimeoutError(spec.description, spec.max_attempts)
