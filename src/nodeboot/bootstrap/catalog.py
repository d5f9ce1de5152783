# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nodeboot/bootstrap/catalog.py
"""
Default provisioning steps for a k3s node.

Registration order is the install order, so ties in
the dependency graph resolve to the same sequence:
packages -> docker -> k3s -> kubectl -> helm -> k9s -> kubeconfig ->
node readiness -> namespaces -> registry -> ArgoCD.
"""

from __future__ import annotations

import logging
import tarfile
from pathlib import Path
from typing import List

from nodeboot.config.defaults import (
    ARGOCD_NAMESPACE,
    BASE_PACKAGES,
    DOCKER_INSTALL_URL,
    HELM_INSTALL_URL,
    INSTALL_BIN_DIR,
    K3S_INSTALL_URL,
    K3S_KUBECONFIG,
    K9S_DOWNLOAD_URL,
    K9S_LATEST_URL,
    KUBECONFIG_EXPORT_LINE,
    KUBECTL_DOWNLOAD_URL,
    KUBECTL_STABLE_URL,
    REGISTRY_PULL_SECRET,
)
from nodeboot.config.models import Role
from nodeboot.steps.models import FailurePolicy, Step, StepContext
from nodeboot.steps.registry import StepRegistry, build_registry
from nodeboot.utils.fetch import FetchError

log = logging.getLogger("nodeboot")

SERVER = frozenset({Role.SERVER})
AGENT = frozenset({Role.AGENT})


def _install_binary(ctx: StepContext, source: Path, name: str) -> None:
    ctx.system.runner.run(
        ["install", "-m", "0755", str(source), f"{INSTALL_BIN_DIR}/{name}"], sudo=True
    )


# ------------------ packages & container runtime ------------------

def _base_packages_present(ctx: StepContext) -> bool:
    return ctx.system.runner.run(["dpkg", "-s", *BASE_PACKAGES], check=False).ok


def _install_base_packages(ctx: StepContext) -> None:
    run = ctx.system.runner.run
    run(["apt-get", "update", "-y"], sudo=True)
    run(["apt-get", "upgrade", "-y"], sudo=True)
    run(["apt-get", "install", "-y", *BASE_PACKAGES], sudo=True)


def _install_docker(ctx: StepContext) -> None:
    system = ctx.system
    script = system.fetcher.download(DOCKER_INSTALL_URL, system.scratch("get-docker.sh"))
    system.runner.run(["sh", str(script)], sudo=True)
    system.runner.run(["usermod", "-aG", "docker", system.user], sudo=True)
    log.info("Log out and back in to activate docker group membership for %s", system.user)


# ------------------ k3s ------------------

def _k3s_installer(ctx: StepContext) -> Path:
    return ctx.system.fetcher.download(K3S_INSTALL_URL, ctx.system.scratch("get-k3s.sh"))


def _install_k3s_server(ctx: StepContext) -> None:
    script = _k3s_installer(ctx)
    ctx.system.runner.run(
        ["sh", str(script), "--write-kubeconfig-mode", "644"],
        env={"INSTALL_K3S_VERSION": ctx.config.k3s_version},
    )


def _install_k3s_agent(ctx: StepContext) -> None:
    cfg = ctx.config
    script = _k3s_installer(ctx)
    ctx.system.runner.run(
        ["sh", str(script)],
        env={
            "INSTALL_K3S_VERSION": cfg.k3s_version,
            "K3S_URL": cfg.join_url,
            "K3S_TOKEN": cfg.join_token,
        },
    )
    log.info("k3s agent installed, join to %s attempted", cfg.join_url)


# ------------------ CLI tooling ------------------

def _install_kubectl(ctx: StepContext) -> None:
    system = ctx.system
    version = system.fetcher.text(KUBECTL_STABLE_URL).strip()
    if not version:
        raise FetchError("Empty kubectl stable version")
    binary = system.fetcher.download(
        KUBECTL_DOWNLOAD_URL.format(version=version, arch=system.arch()),
        system.scratch("kubectl"),
    )
    _install_binary(ctx, binary, "kubectl")
    binary.unlink(missing_ok=True)


def _install_helm(ctx: StepContext) -> None:
    script = ctx.system.fetcher.download(HELM_INSTALL_URL, ctx.system.scratch("get-helm-3.sh"))
    ctx.system.runner.run(["bash", str(script)])


def _install_k9s(ctx: StepContext) -> None:
    system = ctx.system
    tag = (system.fetcher.json(K9S_LATEST_URL) or {}).get("tag_name")
    if not tag:
        raise FetchError("Could not determine latest k9s release")

    tarball = system.fetcher.download(
        K9S_DOWNLOAD_URL.format(version=tag, arch=system.arch()),
        system.scratch("k9s.tar.gz"),
    )
    binary = system.scratch("k9s")
    with tarfile.open(tarball, "r:gz") as tar:
        member = tar.extractfile("k9s")
        if member is None:
            raise FetchError(f"k9s binary missing from {tarball.name}")
        binary.write_bytes(member.read())
    _install_binary(ctx, binary, "k9s")
    binary.unlink(missing_ok=True)
    tarball.unlink(missing_ok=True)


# ------------------ kubeconfig ------------------

def _kube_dir(ctx: StepContext) -> Path:
    return ctx.system.home / ".kube"


def _kubeconfig_current(ctx: StepContext) -> bool:
    system = ctx.system
    source = system.read_text(K3S_KUBECONFIG)
    if source is None:
        return False
    if system.read_text(_kube_dir(ctx) / "config") != source:
        return False
    bashrc = system.read_text(system.home / ".bashrc") or ""
    return KUBECONFIG_EXPORT_LINE in bashrc.splitlines()


def _write_kubeconfig(ctx: StepContext) -> None:
    system = ctx.system
    kube_dir = _kube_dir(ctx)
    kube_dir.mkdir(parents=True, exist_ok=True)
    target = kube_dir / "config"
    system.runner.run(["cp", K3S_KUBECONFIG, str(target)], sudo=True)
    system.runner.run(["chown", f"{system.user}:{system.user}", str(target)], sudo=True)

    bashrc = system.home / ".bashrc"
    lines = (system.read_text(bashrc) or "").splitlines()
    if KUBECONFIG_EXPORT_LINE not in lines:
        with bashrc.open("a") as f:
            f.write(KUBECONFIG_EXPORT_LINE + "\n")


# ------------------ cluster setup (server) ------------------

def _wait_nodes_ready(ctx: StepContext) -> None:
    ctx.system.kubectl.wait(
        "node", "Ready",
        all_resources=True,
        timeout_seconds=ctx.config.timeouts.node_ready_seconds,
    )


def _namespaces_exist(ctx: StepContext) -> bool:
    return all(ctx.system.kubectl.namespace_exists(ns) for ns in ctx.config.namespaces)


def _create_namespaces(ctx: StepContext) -> None:
    for ns in ctx.config.namespaces:
        ctx.system.kubectl.ensure_namespace(ns)


def _registry_logged_in(ctx: StepContext) -> bool:
    return ctx.system.helm.registry_logged_in(ctx.config.registry.server)


def _registry_login(ctx: StepContext) -> None:
    reg = ctx.config.registry
    ctx.system.helm.registry_login(reg.server, reg.username, reg.token)


def _pull_secrets_exist(ctx: StepContext) -> bool:
    kubectl = ctx.system.kubectl
    return all(kubectl.secret_exists(REGISTRY_PULL_SECRET, ns) for ns in ctx.config.namespaces)


def _create_pull_secrets(ctx: StepContext) -> None:
    reg = ctx.config.registry
    for ns in ctx.config.namespaces:
        ctx.system.kubectl.ensure_docker_registry_secret(
            REGISTRY_PULL_SECRET, ns,
            server=reg.server,
            username=reg.username,
            password=reg.token,
            email=reg.email,
        )


def _install_argocd(ctx: StepContext) -> None:
    kubectl = ctx.system.kubectl
    kubectl.ensure_namespace(ARGOCD_NAMESPACE)
    kubectl.apply_url(ctx.config.argocd_manifest_url, namespace=ARGOCD_NAMESPACE)


def _wait_argocd(ctx: StepContext) -> None:
    ctx.system.kubectl.wait(
        "deployment/argocd-server", "Available",
        namespace=ARGOCD_NAMESPACE,
        timeout_seconds=ctx.config.timeouts.argocd_ready_seconds,
    )


def build_default_steps() -> List[Step]:
    return [
        Step(
            name="base-packages",
            description="Update apt and install base tools",
            check=_base_packages_present,
            apply=_install_base_packages,
        ),
        Step(
            name="docker",
            description="Install Docker via get.docker.com",
            check=lambda ctx: ctx.system.has_binary("docker"),
            apply=_install_docker,
            depends_on=("base-packages",),
        ),
        Step(
            name="k3s-server",
            description="Install k3s server (control plane)",
            check=lambda ctx: ctx.system.has_binary("k3s"),
            apply=_install_k3s_server,
            roles=SERVER,
            depends_on=("docker",),
        ),
        Step(
            name="k3s-agent",
            description="Install k3s agent and join the server",
            check=lambda ctx: ctx.system.has_binary("k3s"),
            apply=_install_k3s_agent,
            roles=AGENT,
            depends_on=("docker",),
        ),
        Step(
            name="kubectl",
            description="Install standalone kubectl",
            check=lambda ctx: ctx.system.has_binary("kubectl"),
            apply=_install_kubectl,
            depends_on=("base-packages",),
        ),
        Step(
            name="helm",
            description="Install Helm 3",
            check=lambda ctx: ctx.system.has_binary("helm"),
            apply=_install_helm,
            depends_on=("base-packages",),
        ),
        Step(
            name="k9s",
            description="Install k9s from the latest GitHub release",
            check=lambda ctx: ctx.system.has_binary("k9s"),
            apply=_install_k9s,
            depends_on=("base-packages",),
            component="k9s",
        ),
        Step(
            name="kubeconfig",
            description="Copy k3s kubeconfig for the current user",
            check=_kubeconfig_current,
            apply=_write_kubeconfig,
            roles=SERVER,
            depends_on=("k3s-server",),
        ),
        Step(
            name="node-ready",
            description="Wait for nodes to become Ready",
            check=lambda ctx: ctx.system.kubectl.nodes_ready(),
            apply=_wait_nodes_ready,
            roles=SERVER,
            depends_on=("kubeconfig", "kubectl"),
            failure=FailurePolicy.TOLERANT,
        ),
        Step(
            name="namespaces",
            description="Create application namespaces",
            check=_namespaces_exist,
            apply=_create_namespaces,
            roles=SERVER,
            depends_on=("kubeconfig", "kubectl"),
        ),
        Step(
            name="registry-login",
            description="Log Helm into the OCI registry",
            check=_registry_logged_in,
            apply=_registry_login,
            roles=SERVER,
            depends_on=("helm",),
            component="registry",
        ),
        Step(
            name="registry-pull-secrets",
            description="Create image pull secrets in application namespaces",
            check=_pull_secrets_exist,
            apply=_create_pull_secrets,
            roles=SERVER,
            depends_on=("namespaces", "registry-login"),
            component="registry",
        ),
        Step(
            name="argocd-install",
            description="Install ArgoCD into the argocd namespace",
            check=lambda ctx: ctx.system.kubectl.deployment_exists("argocd-server", ARGOCD_NAMESPACE),
            apply=_install_argocd,
            roles=SERVER,
            depends_on=("kubeconfig", "kubectl"),
            component="argocd",
        ),
        Step(
            name="argocd-ready",
            description="Wait for argocd-server to become Available",
            check=lambda ctx: ctx.system.kubectl.deployment_available("argocd-server", ARGOCD_NAMESPACE),
            apply=_wait_argocd,
            roles=SERVER,
            depends_on=("argocd-install",),
            failure=FailurePolicy.TOLERANT,
            component="argocd",
        ),
    ]


def default_registry() -> StepRegistry:
    return build_registry(build_default_steps())
