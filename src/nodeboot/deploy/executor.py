# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Dict, List, Optional, Sequence

from nodeboot.config.models import RoleConfig
from nodeboot.steps.errors import StepApplyError, StepDependencyError
from nodeboot.steps.models import (
    SATISFIED,
    ExecutionResult,
    Idempotency,
    Step,
    StepContext,
    StepStatus,
)

# Observer bits
from nodeboot.observers.dispatcher import EventBus
from nodeboot.observers.events import (
    new_ctx,
    utc_now,
    StepStarted,
    StepSkipped,
    StepApplied,
    StepFailed,
    RunAborted,
    RunSummary,
)

log = logging.getLogger("nodeboot")


class ExecutionEngine:
    """
    Runs steps strictly in order, one at a time.

    - satisfied precondition -> skipped
    - apply raises, fatal step -> failed-fatal, nothing else runs
    - apply raises, tolerant step -> failed-tolerated, run continues
    - abort_event set -> checked before each step, remaining steps stay pending

    There are no retries: every step is idempotent, so re-running the whole
    bootstrap is the retry mechanism.
    """

    def __init__(
        self,
        system: Any = None,
        *,
        bus: Optional[EventBus] = None,
        abort_event: Optional[threading.Event] = None,
        run_ctx: Optional[Dict[str, Any]] = None,
    ):
        self.system = system
        self.bus = bus or EventBus()
        self.abort_event = abort_event
        self.run_ctx = run_ctx

    # ------------------------- internal helpers -------------------------

    def _emit(self, event_cls, ctx: Dict[str, Any], **fields) -> None:
        self.bus.emit(event_cls(**{**ctx, "ts": utc_now()}, **fields))

    def _aborted(self) -> bool:
        return self.abort_event is not None and self.abort_event.is_set()

    def _run_step(
        self,
        step: Step,
        sctx: StepContext,
        outcome: Dict[str, StepStatus],
        ctx: Dict[str, Any],
    ) -> ExecutionResult:
        started_at = utc_now()
        t0 = time.monotonic()
        self._emit(StepStarted, ctx, name=step.name)
        log.info("[%s] %s", step.name, step.description or "running")

        def elapsed() -> int:
            return int((time.monotonic() - t0) * 1000)

        try:
            unmet = [d for d in step.depends_on if outcome.get(d) not in SATISFIED]
            if unmet:
                raise StepDependencyError(step.name, unmet)

            if step.idempotency is Idempotency.SKIP_IF_SATISFIED:
                try:
                    satisfied = step.check(sctx)
                except Exception as e:
                    raise StepApplyError(step.name, e) from e
                if satisfied:
                    log.info("[%s] already satisfied, skipping", step.name)
                    self._emit(StepSkipped, ctx, name=step.name, reason="already satisfied")
                    return ExecutionResult(
                        step=step.name,
                        status=StepStatus.SKIPPED,
                        started_at=started_at,
                        duration_ms=elapsed(),
                        message="already satisfied",
                    )

            try:
                step.apply(sctx)
            except Exception as e:
                raise StepApplyError(step.name, e) from e

        except (StepApplyError, StepDependencyError) as err:
            duration_ms = elapsed()
            status = StepStatus.FAILED_FATAL if step.fatal else StepStatus.FAILED_TOLERATED
            if step.fatal:
                log.error("[%s] failed: %s", step.name, err)
            else:
                log.warning("[%s] failed (tolerated): %s", step.name, err)
            self._emit(
                StepFailed, ctx,
                name=step.name, error=str(err), fatal=step.fatal, duration_ms=duration_ms,
            )
            return ExecutionResult(
                step=step.name,
                status=status,
                started_at=started_at,
                duration_ms=duration_ms,
                message=str(err),
            )

        duration_ms = elapsed()
        log.info("[%s] applied in %dms", step.name, duration_ms)
        self._emit(StepApplied, ctx, name=step.name, duration_ms=duration_ms)
        return ExecutionResult(
            step=step.name,
            status=StepStatus.APPLIED,
            started_at=started_at,
            duration_ms=duration_ms,
        )

    # ------------------------- public API -------------------------

    def run(self, steps: Sequence[Step], config: RoleConfig) -> List[ExecutionResult]:
        """
        Execute *steps* in the given order. Always returns one result per
        step; steps never attempted are reported as pending.
        """
        steps = list(steps)
        ctx = self.run_ctx or new_ctx(role=config.role.value)
        sctx = StepContext(config=config, system=self.system)

        results: List[ExecutionResult] = []
        outcome: Dict[str, StepStatus] = {}
        abort_reason: Optional[str] = None

        for step in steps:
            if abort_reason is None and self._aborted():
                log.warning("Abort requested, stopping before '%s'", step.name)
                abort_reason = "signal"

            if abort_reason is not None:
                results.append(ExecutionResult.pending(step.name))
                continue

            result = self._run_step(step, sctx, outcome, ctx)
            outcome[step.name] = result.status
            results.append(result)

            if result.status is StepStatus.FAILED_FATAL:
                abort_reason = step.name

        if abort_reason is not None:
            pending = [r.step for r in results if r.status is StepStatus.PENDING]
            self._emit(RunAborted, ctx, reason=abort_reason, pending=pending)

        counts = {s: 0 for s in StepStatus}
        for r in results:
            counts[r.status] += 1
        self._emit(
            RunSummary, ctx,
            status="aborted" if abort_reason is not None else "completed",
            applied=counts[StepStatus.APPLIED],
            skipped=counts[StepStatus.SKIPPED],
            failed_fatal=counts[StepStatus.FAILED_FATAL],
            failed_tolerated=counts[StepStatus.FAILED_TOLERATED],
            pending=counts[StepStatus.PENDING],
        )
        return results
