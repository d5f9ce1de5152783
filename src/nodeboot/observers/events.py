# src/nodeboot/observers/events.py

from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import List, Dict, Any, Optional
from datetime import datetime, timezone
import socket
import uuid


# ---------------------------------------------------------------------
# Base context and helper
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class BaseEvent:
    ts: str           # ISO timestamp
    run_id: str       # correlates all events in a single bootstrap invocation
    role: str         # server/agent
    host: Optional[str]  # node hostname

    def dict(self) -> Dict[str, Any]:
        return asdict(self)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def new_ctx(role: str, host: Optional[str] = None, run_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "ts": utc_now(),
        "run_id": run_id or str(uuid.uuid4()),
        "role": role,
        "host": host or socket.gethostname(),
    }


# ---------------------------------------------------------------------
# Planner
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class PlanComputed(BaseEvent):
    order: List[str]

@dataclass(frozen=True)
class PlanFailed(BaseEvent):
    error: str


# ---------------------------------------------------------------------
# Step lifecycle
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class StepStarted(BaseEvent):
    name: str

@dataclass(frozen=True)
class StepSkipped(BaseEvent):
    name: str
    reason: str

@dataclass(frozen=True)
class StepApplied(BaseEvent):
    name: str
    duration_ms: int

@dataclass(frozen=True)
class StepFailed(BaseEvent):
    name: str
    error: str
    fatal: bool
    duration_ms: int


# ---------------------------------------------------------------------
# Abort & Summary
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class RunAborted(BaseEvent):
    reason: str       # failing step name or "signal"
    pending: List[str]

@dataclass(frozen=True)
class RunSummary(BaseEvent):
    status: str       # "completed" | "aborted"
    applied: int
    skipped: int
    failed_fatal: int
    failed_tolerated: int
    pending: int
