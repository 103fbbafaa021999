import pytest

from komodoctl.deploy.errors import DeadlineExceeded, OperationCancelled
from komodoctl.utils.execution import ExecutionContext


class Clock:
    def __init__(self): self.now = 100.0
    def __call__(self): return self.now
    def sleep(self, seconds): self.now += seconds


def test_unbounded_context_just_sleeps(sleeps):
    ctx = ExecutionContext(sleep_fn=sleeps.append)
    ctx.sleep(3)
    ctx.sleep(0)
    assert sleeps == [3]
    assert ctx.remaining() is None


def test_sleep_past_deadline_waits_remaining_then_raises():
    clock = Clock()
    ctx = ExecutionContext(timeout_seconds=10, sleep_fn=clock.sleep, clock=clock)
    ctx.sleep(4)
    with pytest.raises(DeadlineExceeded):
        ctx.sleep(15)
    assert clock.now == pytest.approx(110.0)
    assert ctx.remaining() == 0


def test_cancel_is_observed_by_check_and_sleep(sleeps):
    ctx = ExecutionContext(sleep_fn=sleeps.append)
    ctx.cancel()
    assert ctx.cancelled
    with pytest.raises(OperationCancelled):
        ctx.check()
    with pytest.raises(OperationCancelled):
        ctx.sleep(1)
    assert sleeps == []


def test_rollback_context_has_no_deadline_and_keeps_sleeper():
    clock = Clock()
    ctx = ExecutionContext(timeout_seconds=1, sleep_fn=clock.sleep, clock=clock)
    clock.now += 5
    ctx.cancel()
    rb = ctx.for_rollback()
    rb.check()
    rb.sleep(30)
    assert clock.now == pytest.approx(135.0)
    assert not rb.cancelled
