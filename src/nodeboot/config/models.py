# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nodeboot/config/models.py

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .defaults import (
    ARGOCD_MANIFEST_URL,
    ARGOCD_READY_TIMEOUT_SECONDS,
    DEFAULT_K3S_VERSION,
    DEFAULT_NAMESPACES,
    DEFAULT_REGISTRY_EMAIL,
    DEFAULT_REGISTRY_SERVER,
    DEFAULT_TARGET_USER,
    NODE_READY_TIMEOUT_SECONDS,
)


class Role(str, Enum):
    SERVER = "server"
    AGENT = "agent"


class RegistryCredentials(BaseModel):
    """OCI registry used for Helm charts and image pulls (GHCR by default)."""

    model_config = ConfigDict(frozen=True)

    server: str = DEFAULT_REGISTRY_SERVER
    username: str
    token: str = Field(repr=False)
    email: str = DEFAULT_REGISTRY_EMAIL


class Timeouts(BaseModel):
    model_config = ConfigDict(frozen=True)

    node_ready_seconds: int = Field(default=NODE_READY_TIMEOUT_SECONDS, gt=0)
    argocd_ready_seconds: int = Field(default=ARGOCD_READY_TIMEOUT_SECONDS, gt=0)


class RoleConfig(BaseModel):
    """
    Validated run input. Produced by the role resolver and passed explicitly
    to every step; nothing reads ambient environment after this point.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    role: Role
    join_url: Optional[str] = None
    join_token: Optional[str] = Field(default=None, repr=False)
    namespaces: List[str] = Field(default_factory=lambda: list(DEFAULT_NAMESPACES))
    k3s_version: str = DEFAULT_K3S_VERSION
    install_k9s: bool = True
    install_argocd: bool = True
    registry: Optional[RegistryCredentials] = None
    target_user: str = DEFAULT_TARGET_USER
    timeouts: Timeouts = Timeouts()
    argocd_manifest_url: str = ARGOCD_MANIFEST_URL

    def component_enabled(self, component: Optional[str]) -> bool:
        if component is None:
            return True
        if component == "k9s":
            return self.install_k9s
        if component == "argocd":
            return self.install_argocd
        if component == "registry":
            return self.registry is not None
        raise ValueError(f"Unknown component '{component}'")


# ------------------------------------------------------------------
# On-disk config (cluster.yaml style). Role stays a plain string here so
# the resolver owns role validation and its error types.
# ------------------------------------------------------------------

class RegistrySettings(BaseModel):
    server: Optional[str] = None
    username: Optional[str] = None
    token: Optional[str] = Field(default=None, repr=False)
    email: Optional[str] = None


class NodebootConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    role: Optional[str] = None
    join_url: Optional[str] = None
    join_token: Optional[str] = Field(default=None, repr=False)
    namespaces: Optional[List[str]] = None
    k3s_version: Optional[str] = None
    install_k9s: Optional[bool] = None
    install_argocd: Optional[bool] = None
    registry: Optional[RegistrySettings] = None
    target_user: Optional[str] = None
    timeouts: Optional[Timeouts] = None
    argocd_manifest_url: Optional[str] = None
