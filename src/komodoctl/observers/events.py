# src/komodoctl/observers/events.py

from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import List, Dict, Any, Optional
from datetime import datetime, timezone
import uuid


# ---------------------------------------------------------------------
# Base context and helper
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class BaseEvent:
    ts: str           # ISO timestamp
    run_id: str       # correlates all events in a single workflow invocation
    operation: str    # create/delete/update
    target: str       # desired-state name

    def dict(self) -> Dict[str, Any]:
        return asdict(self)


def new_ctx(operation: str, target: str, run_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "ts": datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
        "run_id": run_id or str(uuid.uuid4()),
        "operation": operation,
        "target": target,
    }


# ---------------------------------------------------------------------
# Planner
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class PlanComputed(BaseEvent):
    order: List[str]


# ---------------------------------------------------------------------
# Step lifecycle
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class StepStarted(BaseEvent):
    name: str
    description: str

@dataclass(frozen=True)
class StepRetry(BaseEvent):
    name: str
    attempt: int
    delay_s: float
    error: str

@dataclass(frozen=True)
class StepSucceeded(BaseEvent):
    name: str
    attempts: int
    duration_ms: int

@dataclass(frozen=True)
class StepFailed(BaseEvent):
    name: str
    attempts: int
    error: str

@dataclass(frozen=True)
class StepSettling(BaseEvent):
    name: str
    seconds: float


# ---------------------------------------------------------------------
# Rollback & Summary
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class RollbackStarted(BaseEvent):
    name: str

@dataclass(frozen=True)
class RollbackResult(BaseEvent):
    name: str
    status: str       # "ROLLED_BACK" | "ROLLBACK_FAILED"
    error: Optional[str] = None

@dataclass(frozen=True)
class WorkflowSummary(BaseEvent):
    ok: int
    failed: int
    rolled_back: int
    status: str       # "OK" | "FAILED"
