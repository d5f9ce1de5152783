# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nodeboot/steps/errors.py

from __future__ import annotations

from typing import Sequence

from nodeboot.errors import NodebootError


class RegistryError(NodebootError):
    """Programmer errors found while building the step registry."""


class DuplicateStepError(RegistryError):
    pass


class UnknownDependencyError(RegistryError):
    pass


class CyclicDependencyError(RegistryError):
    pass


class StepApplyError(NodebootError):
    """Wraps whatever a step's check or apply action raised."""

    def __init__(self, step: str, cause: BaseException):
        self.step = step
        self.cause = cause
        super().__init__(f"Step '{step}' failed: {cause}")


class StepDependencyError(NodebootError):
    def __init__(self, step: str, unmet: Sequence[str]):
        self.step = step
        self.unmet = list(unmet)
        super().__init__(
            f"Step '{step}' not applied, dependencies not satisfied: {', '.join(self.unmet)}"
        )
