# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nodeboot/errors.py


class NodebootError(RuntimeError):
    """Base class for every error raised by nodeboot."""


class ConfigError(NodebootError):
    """Raised when the YAML config or environment overrides cannot be parsed."""
