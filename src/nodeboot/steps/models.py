# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nodeboot/steps/models.py

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, FrozenSet, Optional, Tuple

from nodeboot.config.models import Role, RoleConfig


class Idempotency(str, Enum):
    SKIP_IF_SATISFIED = "skip-if-satisfied"
    ALWAYS_RUN = "always-run"


class FailurePolicy(str, Enum):
    FATAL = "fatal"            # halt the run (set -e)
    TOLERANT = "tolerant"      # record and continue (|| true)


class StepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SKIPPED = "skipped"
    APPLIED = "applied"
    FAILED_FATAL = "failed-fatal"
    FAILED_TOLERATED = "failed-tolerated"


class RunStatus(str, Enum):
    COMPLETED = "completed"
    ABORTED = "aborted"


ALL_ROLES: FrozenSet[Role] = frozenset(Role)


@dataclass(frozen=True)
class StepContext:
    """
    What a step sees: the validated config and the injected system accessor.
    """
    config: RoleConfig
    system: Any


Probe = Callable[[StepContext], bool]
Action = Callable[[StepContext], None]


@dataclass(frozen=True)
class Step:
    """
    Declarative definition of one provisioning step.

    check(ctx) returns True when the step is already satisfied.
    apply(ctx) performs the change; it must be safe to repeat.
    """

    name: str
    check: Probe
    apply: Action
    description: str = ""
    roles: FrozenSet[Role] = ALL_ROLES
    depends_on: Tuple[str, ...] = ()
    idempotency: Idempotency = Idempotency.SKIP_IF_SATISFIED
    failure: FailurePolicy = FailurePolicy.FATAL
    # optional component toggle (k9s, argocd, registry)
    component: Optional[str] = None

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise ValueError("Step name must be non-empty")
        # accept any iterable at construction, store immutable
        object.__setattr__(self, "roles", frozenset(self.roles))
        object.__setattr__(self, "depends_on", tuple(self.depends_on))
        if not self.roles:
            raise ValueError(f"Step '{self.name}' must apply to at least one role")

    def applies_to(self, role: Role) -> bool:
        return role in self.roles

    @property
    def fatal(self) -> bool:
        return self.failure is FailurePolicy.FATAL


@dataclass(frozen=True)
class ExecutionResult:
    step: str
    status: StepStatus
    started_at: Optional[str] = None     # ISO timestamp, None when never attempted
    duration_ms: int = 0
    message: Optional[str] = None

    @classmethod
    def pending(cls, step: str) -> "ExecutionResult":
        return cls(step=step, status=StepStatus.PENDING, message="not attempted")


# Results that let dependents proceed
SATISFIED: FrozenSet[StepStatus] = frozenset({StepStatus.APPLIED, StepStatus.SKIPPED})
