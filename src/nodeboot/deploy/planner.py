# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import heapq
import logging
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Set

from nodeboot.config.models import RoleConfig
from nodeboot.steps.errors import CyclicDependencyError, UnknownDependencyError
from nodeboot.steps.models import Step

# Observer bits
from nodeboot.observers.dispatcher import EventBus
from nodeboot.observers.events import PlanComputed, PlanFailed, new_ctx

if TYPE_CHECKING:
    from nodeboot.steps.registry import StepRegistry

log = logging.getLogger("nodeboot")


def _validate_dependencies(steps: Sequence[Step]) -> None:
    names: Set[str] = {s.name for s in steps}
    for s in steps:
        for d in s.depends_on:
            if d not in names:
                raise UnknownDependencyError(
                    f"Step '{s.name}' depends on unknown step '{d}'"
                )


def order_steps(steps: Sequence[Step]) -> List[Step]:
    """
    Stable topological sort over 'depends_on'.
    Ties are broken by position in *steps* (registration order).
    """
    _validate_dependencies(steps)

    position: Dict[str, int] = {s.name: i for i, s in enumerate(steps)}
    indeg: Dict[str, int] = {s.name: len(set(s.depends_on)) for s in steps}
    dependents: Dict[str, List[str]] = {s.name: [] for s in steps}
    for s in steps:
        for d in set(s.depends_on):
            dependents[d].append(s.name)

    ready = [position[n] for n, deg in indeg.items() if deg == 0]
    heapq.heapify(ready)
    order: List[Step] = []

    while ready:
        step = steps[heapq.heappop(ready)]
        order.append(step)
        for m in dependents[step.name]:
            indeg[m] -= 1
            if indeg[m] == 0:
                heapq.heappush(ready, position[m])

    if len(order) != len(steps):
        stuck = sorted((n for n, deg in indeg.items() if deg > 0), key=position.get)
        raise CyclicDependencyError(
            f"Cyclic dependency detected among steps: {', '.join(stuck)}"
        )
    return order


def drop_disabled(steps: Sequence[Step], config: RoleConfig) -> List[Step]:
    """
    Remove steps whose component is switched off, and every step that
    (transitively) depends on one of them.
    """
    dropped: Set[str] = set()
    kept: List[Step] = []
    # steps arrive in dependency order, so dependencies are decided first
    for s in steps:
        if not config.component_enabled(s.component):
            log.info("Skipping %s (component '%s' disabled)", s.name, s.component)
            dropped.add(s.name)
        elif dropped.intersection(s.depends_on):
            log.info("Skipping %s (depends on disabled %s)",
                     s.name, ", ".join(sorted(dropped.intersection(s.depends_on))))
            dropped.add(s.name)
        else:
            kept.append(s)
    return kept


def plan(
    registry: "StepRegistry",
    config: RoleConfig,
    bus: Optional[EventBus] = None,
    run_ctx: Optional[dict] = None,
) -> List[Step]:
    """
    Ordered steps for the configured role with disabled components removed.
    Emits PlanComputed / PlanFailed if an EventBus is provided.
    """
    ctx = run_ctx or new_ctx(role=config.role.value)
    try:
        ordered = drop_disabled(registry.resolve(config.role), config)
        if bus:
            bus.emit(PlanComputed(order=[s.name for s in ordered], **ctx))
        return ordered

    except Exception as e:
        if bus:
            bus.emit(PlanFailed(error=str(e), **ctx))
        raise
