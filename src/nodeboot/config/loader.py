# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nodeboot/config/loader.py

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from pydantic import ValidationError

from nodeboot.errors import ConfigError
from .models import NodebootConfig

log = logging.getLogger("nodeboot")

# Environment variables accepted in place of config keys.
# Dotted targets land in nested sections.
ENV_KEYS: Dict[str, str] = {
    "ROLE": "role",
    "K3S_URL": "join_url",
    "K3S_TOKEN": "join_token",
    "K3S_VERSION": "k3s_version",
    "NAMESPACES": "namespaces",
    "INSTALL_K9S": "install_k9s",
    "INSTALL_ARGOCD": "install_argocd",
    "HELM_OCI_REGISTRY": "registry.server",
    "GHCR_USER": "registry.username",
    "GHCR_TOKEN": "registry.token",
    "GHCR_EMAIL": "registry.email",
    "TARGET_USER": "target_user",
}

_BOOL_KEYS = {"install_k9s", "install_argocd"}


def _deep_merge(base: dict, override: dict) -> dict:
    """
    Recursively merge *override* into *base* (mutates base).
    Only overwrites when the override value is non-empty.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            _deep_merge(base[key], value)
        else:
            if value not in (None, ""):
                base[key] = value
    return base


def _find_secrets_file(config_path: Path) -> Path | None:
    """
    Locate secrets.yaml using this priority:

    1. NODEBOOT_SECRETS_FILE environment variable (explicit override)
    2. secrets.yaml in the same directory as the config file
    """
    env = os.environ.get("NODEBOOT_SECRETS_FILE")
    if env:
        p = Path(env)
        if p.is_file():
            return p
        log.warning("NODEBOOT_SECRETS_FILE=%s does not exist, skipping", env)
        return None

    p = config_path.parent / "secrets.yaml"
    if p.is_file():
        return p

    return None


def _load_yaml(path: Path) -> dict:
    """Load a YAML file, expanding ${ENV_VAR} references."""
    raw = path.read_text()
    expanded = os.path.expandvars(raw)
    try:
        data = yaml.safe_load(expanded) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping at the top level")
    return data


def load_config(path: str | Path) -> NodebootConfig:
    """
    Load and validate a nodeboot YAML config.

    A ``secrets.yaml`` mirroring the config structure (for example holding
    ``join_token`` or ``registry.token``) is deep-merged before validation.
    Discovery order:
      1. ``NODEBOOT_SECRETS_FILE`` env var
      2. ``secrets.yaml`` next to the config file

    ``${ENV_VAR}`` placeholders are resolved in both files.
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")
    data = _load_yaml(path)

    secrets_path = _find_secrets_file(path)
    if secrets_path:
        log.debug("Merging secrets from %s", secrets_path)
        _deep_merge(data, _load_yaml(secrets_path))

    try:
        return NodebootConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config {path}:\n{e}") from e


def _parse_bool(name: str, value: str) -> bool:
    v = value.strip().lower()
    if v in ("true", "1", "yes"):
        return True
    if v in ("false", "0", "no"):
        return False
    raise ConfigError(f"{name} must be true or false, got '{value}'")


def env_overrides(environ: Mapping[str, str]) -> Dict[str, Any]:
    """
    Translate the bootstrap environment variables into resolver inputs.
    """
    out: Dict[str, Any] = {}
    for env_name, target in ENV_KEYS.items():
        raw = environ.get(env_name)
        if raw is None or raw == "":
            continue

        value: Any = raw
        if target in _BOOL_KEYS:
            value = _parse_bool(env_name, raw)
        elif target == "namespaces":
            value = raw.split()

        if "." in target:
            section, key = target.split(".", 1)
            out.setdefault(section, {})[key] = value
        else:
            out[target] = value
    return out


def collect_inputs(
    config_path: Optional[str | Path] = None,
    environ: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Merge resolver inputs. Precedence: overrides (CLI) > environment >
    YAML config. Defaults are applied later by the resolver.
    """
    inputs: Dict[str, Any] = {}
    if config_path:
        inputs = load_config(config_path).model_dump(exclude_none=True)

    _deep_merge(inputs, env_overrides(os.environ if environ is None else environ))
    _deep_merge(inputs, dict(overrides or {}))
    return inputs
