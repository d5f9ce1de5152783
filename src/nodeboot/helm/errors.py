# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nodeboot/helm/errors.py
from nodeboot.errors import NodebootError


class HelmError(NodebootError):
    """Base class for Helm-related failures."""


class HelmRegistryLoginError(HelmError):
    """Raised when `helm registry login` is rejected."""
