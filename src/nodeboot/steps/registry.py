# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nodeboot/steps/registry.py

from __future__ import annotations

from typing import Dict, Iterable, List, Set

from nodeboot.config.models import Role
from nodeboot.deploy.planner import order_steps
from .errors import DuplicateStepError
from .models import Step


class StepRegistry:
    """
    Steps keyed by unique name, kept in registration order.
    """

    def __init__(self) -> None:
        self._steps: Dict[str, Step] = {}

    def register(self, step: Step) -> Step:
        if step.name in self._steps:
            raise DuplicateStepError(f"Step '{step.name}' is already registered")
        self._steps[step.name] = step
        return step

    def __contains__(self, name: str) -> bool:
        return name in self._steps

    def __len__(self) -> int:
        return len(self._steps)

    def get(self, name: str) -> Step:
        return self._steps[name]

    def steps(self) -> List[Step]:
        return list(self._steps.values())

    def validate(self) -> List[Step]:
        """
        Check that every dependency exists and the relation is acyclic.
        Returns all steps in dependency order.
        """
        return order_steps(self.steps())

    def resolve(self, role: Role) -> List[Step]:
        """
        Steps applicable to *role*, plus anything they depend on, in
        dependency order (ties broken by registration order).
        """
        self.validate()

        wanted: Set[str] = {s.name for s in self._steps.values() if s.applies_to(role)}
        stack = list(wanted)
        while stack:
            for dep in self._steps[stack.pop()].depends_on:
                if dep not in wanted:
                    wanted.add(dep)
                    stack.append(dep)

        return order_steps([s for s in self._steps.values() if s.name in wanted])


def build_registry(steps: Iterable[Step]) -> StepRegistry:
    """
    Register every step and validate the dependency graph up front, so
    duplicates and cycles fail before any role is resolved.
    """
    registry = StepRegistry()
    for step in steps:
        registry.register(step)
    registry.validate()
    return registry
