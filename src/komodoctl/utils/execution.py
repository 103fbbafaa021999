# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from komodoctl.deploy.errors import DeadlineExceeded, OperationCancelled


@dataclass
class ExecutionContext:
    """
    controls how a workflow waits

    timeout_seconds: overall budget for the operation (None = unbounded)
    sleep_fn: replaces the real wait (tests pass a recorder)
    """

    timeout_seconds: Optional[float] = None
    sleep_fn: Optional[Callable[[float], None]] = None
    clock: Callable[[], float] = time.monotonic
    _cancelled: threading.Event = field(default_factory=threading.Event, init=False, repr=False)
    _deadline: Optional[float] = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.timeout_seconds is not None:
            self._deadline = self.clock() + self.timeout_seconds

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def remaining(self) -> Optional[float]:
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - self.clock())

    def check(self) -> None:
        if self.cancelled:
            raise OperationCancelled("operation cancelled")
        remaining = self.remaining()
        if remaining is not None and remaining <= 0:
            raise DeadlineExceeded(f"operation exceeded its {self.timeout_seconds}s timeout")

    def sleep(self, seconds: float) -> None:
        self.check()
        if seconds <= 0:
            return

        remaining = self.remaining()
        if remaining is not None and seconds > remaining:
            self._wait(remaining)
            self.check()
            raise DeadlineExceeded(
                f"waiting {seconds:.1f}s would exceed the {self.timeout_seconds}s timeout"
            )

        self._wait(seconds)
        self.check()

    def _wait(self, seconds: float) -> None:
        if self.sleep_fn is not None:
            self.sleep_fn(seconds)
        else:
            self._cancelled.wait(seconds)

    def for_rollback(self) -> "ExecutionContext":
        """Same sleeper, no deadline, not tied to this context's cancellation."""
        return ExecutionContext(sleep_fn=self.sleep_fn, clock=self.clock)
