# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nodeboot/roles/resolver.py

from __future__ import annotations

import logging
import re
from typing import Any, Iterable, Mapping, Optional
from urllib.parse import urlparse

from pydantic import ValidationError

from nodeboot.config.defaults import DEFAULT_NAMESPACES
from nodeboot.config.models import RegistryCredentials, Role, RoleConfig
from nodeboot.errors import ConfigError, NodebootError

log = logging.getLogger("nodeboot")

_UNRESOLVED = re.compile(r"\$\{[^}]+\}")


class RoleError(NodebootError):
    pass


class InvalidRoleError(RoleError):
    pass


class MissingJoinParametersError(RoleError):
    pass


class InvalidJoinParametersError(MissingJoinParametersError):
    pass


def _parse_role(role: Any) -> Role:
    if isinstance(role, Role):
        return role
    name = str(role or "").strip().lower()
    try:
        return Role(name)
    except ValueError:
        valid = ", ".join(r.value for r in Role)
        raise InvalidRoleError(f"Role must be one of: {valid} (got '{role}')") from None


def _blank(value: Optional[str]) -> bool:
    """
    None, whitespace, or a ${VAR} placeholder left behind because VAR was
    unset when the config file was expanded.
    """
    return value is None or not str(value).strip() or bool(_UNRESOLVED.search(str(value)))


def _check_join(join_url: Optional[str], join_token: Optional[str]) -> None:
    missing = [
        name
        for name, value in (("join URL", join_url), ("join token", join_token))
        if _blank(value)
    ]
    if missing:
        raise MissingJoinParametersError(
            f"Role 'agent' requires {' and '.join(missing)} "
            "(e.g. K3S_URL='https://10.0.0.10:6443' K3S_TOKEN='K10...')"
        )

    parsed = urlparse(str(join_url).strip())
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidJoinParametersError(
            f"Join URL must look like https://<server>:6443 (got '{join_url}')"
        )


def _namespaces(namespaces: Optional[Iterable[str]]) -> list[str]:
    if namespaces is None:
        return list(DEFAULT_NAMESPACES)
    seen: list[str] = []
    for ns in namespaces:
        ns = str(ns).strip()
        if ns and ns not in seen:
            seen.append(ns)
    return seen


def _registry(raw: Any) -> Optional[RegistryCredentials]:
    """
    Registry login only happens when both user and token are present.
    """
    if raw is None or isinstance(raw, RegistryCredentials):
        return raw
    data = {k: v for k, v in dict(raw).items() if not _blank(v)}
    if "username" not in data or "token" not in data:
        if data:
            log.info("Skipping registry login (username/token not set)")
        return None
    return RegistryCredentials(**data)


def resolve_role(
    role: Any,
    join_url: Optional[str] = None,
    join_token: Optional[str] = None,
    namespaces: Optional[Iterable[str]] = None,
    **options: Any,
) -> RoleConfig:
    """
    Validate raw input and produce a RoleConfig.

    ``options`` accepts the remaining RoleConfig fields (k3s_version,
    install_k9s, install_argocd, registry, target_user, timeouts,
    argocd_manifest_url); None values fall back to defaults.
    """
    parsed = _parse_role(role)

    if parsed is Role.AGENT:
        _check_join(join_url, join_token)
        join_url = str(join_url).strip()
        join_token = str(join_token).strip()

    fields: dict[str, Any] = {k: v for k, v in options.items() if v is not None}
    fields["registry"] = _registry(fields.get("registry"))

    try:
        return RoleConfig(
            role=parsed,
            join_url=join_url,
            join_token=join_token,
            namespaces=_namespaces(namespaces),
            **fields,
        )
    except ValidationError as e:
        raise ConfigError(f"Invalid bootstrap options:\n{e}") from e


def resolve_inputs(inputs: Mapping[str, Any]) -> RoleConfig:
    """Resolve a merged input mapping (see config.loader.collect_inputs)."""
    data = dict(inputs)
    return resolve_role(
        data.pop("role", Role.SERVER.value),
        data.pop("join_url", None),
        data.pop("join_token", None),
        data.pop("namespaces", None),
        **data,
    )
