# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nodeboot/report/summary.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from nodeboot.steps.models import ExecutionResult, RunStatus, StepStatus

_MARKS = {
    StepStatus.APPLIED: "+",
    StepStatus.SKIPPED: "=",
    StepStatus.FAILED_TOLERATED: "!",
    StepStatus.FAILED_FATAL: "x",
    StepStatus.PENDING: ".",
    StepStatus.RUNNING: ">",
}


@dataclass
class RunReport:
    status: RunStatus
    entries: List[ExecutionResult] = field(default_factory=list)
    run_id: Optional[str] = None
    role: Optional[str] = None
    aborted_by: Optional[str] = None   # failing step name or "signal"

    def count(self, status: StepStatus) -> int:
        return sum(1 for e in self.entries if e.status is status)

    @property
    def counts(self) -> Dict[str, int]:
        return {s.value: self.count(s) for s in StepStatus if s is not StepStatus.RUNNING}

    def summary(self) -> str:
        return (
            f"APPLIED={self.count(StepStatus.APPLIED)} "
            f"SKIPPED={self.count(StepStatus.SKIPPED)} "
            f"FAILED_TOLERATED={self.count(StepStatus.FAILED_TOLERATED)} "
            f"FAILED_FATAL={self.count(StepStatus.FAILED_FATAL)} "
            f"PENDING={self.count(StepStatus.PENDING)}"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "role": self.role,
            "status": self.status.value,
            "aborted_by": self.aborted_by,
            "counts": self.counts,
            "steps": [
                {
                    "name": e.step,
                    "status": e.status.value,
                    "message": e.message,
                    "started_at": e.started_at,
                    "duration_ms": e.duration_ms,
                }
                for e in self.entries
            ],
        }

    def render_text(self) -> str:
        width = max((len(e.step) for e in self.entries), default=4)
        lines = [f"Bootstrap {self.status.value} (role={self.role or '-'}, run={self.run_id or '-'})"]
        for e in self.entries:
            line = f"  [{_MARKS[e.status]}] {e.step.ljust(width)}  {e.status.value}"
            if e.message and e.status is not StepStatus.PENDING:
                line += f"  {e.message}"
            lines.append(line)
        if self.aborted_by:
            lines.append(f"  aborted by: {self.aborted_by}")
        lines.append(f"  {self.summary()}")
        return "\n".join(lines)


def summarize(
    results: Iterable[ExecutionResult],
    *,
    run_id: Optional[str] = None,
    role: Optional[str] = None,
) -> RunReport:
    """
    Build the run report. A run is aborted when a fatal step failed or any
    step was never attempted.
    """
    entries = list(results)

    aborted_by: Optional[str] = next(
        (e.step for e in entries if e.status is StepStatus.FAILED_FATAL), None
    )
    if aborted_by is None and any(e.status is StepStatus.PENDING for e in entries):
        aborted_by = "signal"

    return RunReport(
        status=RunStatus.ABORTED if aborted_by else RunStatus.COMPLETED,
        entries=entries,
        run_id=run_id,
        role=role,
        aborted_by=aborted_by,
    )
