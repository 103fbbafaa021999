# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from komodoctl.api.errors import TransientRemoteError
from .execution import ExecutionContext

log = logging.getLogger("komodoctl")

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retry for a single named transient condition.

    is_transient: decides whether an error is worth another attempt
    max_attempts: total attempts, first call included
    backoff: attempt index (0-based) -> seconds to wait before the next attempt
    """

    is_transient: Callable[[Exception], bool]
    max_attempts: int
    backoff: Callable[[int], float]

    def __post_init__(self) -> None:
        if self.max_attempts <= 0:
            raise ValueError("max_attempts must be > 0")

    def execute(
        self,
        op: Callable[[], T],
        *,
        ctx: ExecutionContext,
        on_retry: Optional[Callable[[int, Exception, float], None]] = None,
    ) -> T:
        """
        Run op; on a transient error sleep backoff(attempt) and try again.
        Any other error, or the last transient one, is raised unchanged.

        on_retry: callback(attempt, exception, delay) before each sleep
        """
        attempt = 0
        while True:
            try:
                return op()
            except Exception as exc:
                if not self.is_transient(exc) or attempt + 1 >= self.max_attempts:
                    raise
                delay = self.backoff(attempt)
                attempt += 1
                log.info("transient failure (attempt %d/%d), retrying in %.1fs: %s",
                         attempt, self.max_attempts, delay, exc)
                if on_retry:
                    on_retry(attempt, exc, delay)
                ctx.sleep(delay)


def jittered_backoff(
    base: float,
    jitter: float,
    rng: Optional[random.Random] = None,
) -> Callable[[int], float]:
    """base * (attempt + 1) + uniform(0, jitter) seconds."""
    source = rng or random.Random()

    def _backoff(attempt: int) -> float:
        return base * (attempt + 1) + source.uniform(0, jitter)

    return _backoff


def is_busy(exc: Exception) -> bool:
    return isinstance(exc, TransientRemoteError)


def busy_policy(
    *,
    max_attempts: int,
    base: float = 3.0,
    jitter: float = 3.0,
    rng: Optional[random.Random] = None,
) -> RetryPolicy:
    return RetryPolicy(
        is_transient=is_busy,
        max_attempts=max_attempts,
        backoff=jittered_backoff(base, jitter, rng),
    )
