import threading
from typing import Dict, List

from nodeboot.config.models import Role, RoleConfig
from nodeboot.deploy.executor import ExecutionEngine
from nodeboot.observers.dispatcher import EventBus
from nodeboot.observers.events import (
    RunAborted, RunSummary, StepApplied, StepFailed, StepSkipped, StepStarted,
)
from nodeboot.steps.models import FailurePolicy, Idempotency, Step, StepStatus

# --------- Test doubles ----------


class SimulatedNode:
    """External state: a set of things that exist, plus scripted failures."""

    def __init__(self, failing=()):
        self.present: set = set()
        self.failing = set(failing)
        self.applied: List[str] = []
        self.checked: List[str] = []


def make_step(name, *, deps=(), failure=FailurePolicy.FATAL, idempotency=Idempotency.SKIP_IF_SATISFIED):
    def check(ctx):
        ctx.system.checked.append(name)
        return name in ctx.system.present

    def apply(ctx):
        ctx.system.applied.append(name)
        if name in ctx.system.failing:
            raise RuntimeError(f"{name} exploded")
        ctx.system.present.add(name)

    return Step(name=name, check=check, apply=apply, depends_on=deps,
                failure=failure, idempotency=idempotency)


class Capture:
    def __init__(self): self.events = []
    def notify(self, ev): self.events.append(ev)


CFG = RoleConfig(role=Role.SERVER)


def _statuses(results) -> Dict[str, StepStatus]:
    return {r.step: r.status for r in results}


# --------- Tests ----------

def test_second_run_skips_everything():
    node = SimulatedNode()
    steps = [make_step("a"), make_step("b", deps=("a",)), make_step("c", deps=("b",))]

    first = ExecutionEngine(node).run(steps, CFG)
    assert all(r.status is StepStatus.APPLIED for r in first)

    node.applied.clear()
    second = ExecutionEngine(node).run(steps, CFG)
    assert [r.status for r in second] == [StepStatus.SKIPPED] * 3
    assert node.applied == []


def test_fatal_failure_halts_the_run():
    node = SimulatedNode(failing={"b"})
    steps = [make_step("a"), make_step("b"), make_step("c")]

    results = ExecutionEngine(node).run(steps, CFG)

    assert _statuses(results) == {
        "a": StepStatus.APPLIED,
        "b": StepStatus.FAILED_FATAL,
        "c": StepStatus.PENDING,
    }
    assert "c" not in node.applied and "c" not in node.checked
    failed = next(r for r in results if r.step == "b")
    assert "b exploded" in failed.message


def test_tolerated_failure_continues():
    node = SimulatedNode(failing={"b"})
    steps = [make_step("a"), make_step("b", failure=FailurePolicy.TOLERANT), make_step("c")]

    results = ExecutionEngine(node).run(steps, CFG)

    assert [r.status for r in results] == [
        StepStatus.APPLIED, StepStatus.FAILED_TOLERATED, StepStatus.APPLIED,
    ]


def test_dependent_of_tolerated_failure_is_not_applied():
    node = SimulatedNode(failing={"wait"})
    steps = [
        make_step("wait", failure=FailurePolicy.TOLERANT),
        make_step("after-wait", deps=("wait",), failure=FailurePolicy.TOLERANT),
        make_step("independent"),
    ]

    results = ExecutionEngine(node).run(steps, CFG)

    st = _statuses(results)
    assert st["after-wait"] is StepStatus.FAILED_TOLERATED
    assert st["independent"] is StepStatus.APPLIED
    assert "after-wait" not in node.applied
    assert "dependencies not satisfied: wait" in results[1].message


def test_fatal_step_with_unmet_dependency_aborts():
    node = SimulatedNode()
    steps = [make_step("needs-ghost", deps=("ghost",)), make_step("next")]

    results = ExecutionEngine(node).run(steps, CFG)

    assert _statuses(results) == {"needs-ghost": StepStatus.FAILED_FATAL, "next": StepStatus.PENDING}
    assert node.applied == []


def test_check_that_raises_counts_as_step_failure():
    def bad_check(ctx):
        raise OSError("check broke")

    node = SimulatedNode()
    steps = [Step(name="inspect", check=bad_check, apply=lambda ctx: None), make_step("later")]

    results = ExecutionEngine(node).run(steps, CFG)

    assert results[0].status is StepStatus.FAILED_FATAL
    assert "check broke" in results[0].message
    assert results[1].status is StepStatus.PENDING


def test_always_run_step_ignores_precondition():
    node = SimulatedNode()
    node.present.add("refresh")
    step = make_step("refresh", idempotency=Idempotency.ALWAYS_RUN)

    results = ExecutionEngine(node).run([step], CFG)

    assert results[0].status is StepStatus.APPLIED
    assert node.checked == []


def test_abort_event_stops_at_step_boundary():
    node = SimulatedNode()
    abort = threading.Event()

    def apply_and_signal(ctx):
        ctx.system.applied.append("first")
        abort.set()

    steps = [
        Step(name="first", check=lambda ctx: False, apply=apply_and_signal),
        make_step("second"),
        make_step("third"),
    ]
    cap = Capture()
    results = ExecutionEngine(node, bus=EventBus([cap]), abort_event=abort).run(steps, CFG)

    assert [r.status for r in results] == [StepStatus.APPLIED, StepStatus.PENDING, StepStatus.PENDING]
    aborted = next(e for e in cap.events if isinstance(e, RunAborted))
    assert aborted.reason == "signal"
    assert aborted.pending == ["second", "third"]


def test_abort_before_start_runs_nothing():
    node = SimulatedNode()
    abort = threading.Event()
    abort.set()

    results = ExecutionEngine(node, abort_event=abort).run([make_step("a")], CFG)

    assert results[0].status is StepStatus.PENDING
    assert node.checked == [] and node.applied == []


def test_results_carry_timestamps():
    results = ExecutionEngine(SimulatedNode()).run([make_step("a")], CFG)
    assert results[0].started_at.endswith("Z")
    assert results[0].duration_ms >= 0


def test_events_emitted_per_step_and_summary():
    node = SimulatedNode(failing={"c"})
    node.present.add("a")
    steps = [make_step("a"), make_step("b"), make_step("c", failure=FailurePolicy.TOLERANT)]
    cap = Capture()

    ExecutionEngine(node, bus=EventBus([cap])).run(steps, CFG)

    assert sum(isinstance(e, StepStarted) for e in cap.events) == 3
    assert any(isinstance(e, StepSkipped) and e.name == "a" for e in cap.events)
    assert any(isinstance(e, StepApplied) and e.name == "b" for e in cap.events)
    failed = next(e for e in cap.events if isinstance(e, StepFailed))
    assert failed.name == "c" and failed.fatal is False

    summary = cap.events[-1]
    assert isinstance(summary, RunSummary)
    assert (summary.status, summary.applied, summary.skipped, summary.failed_tolerated) == (
        "completed", 1, 1, 1,
    )
    assert not any(isinstance(e, RunAborted) for e in cap.events)
