# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nodeboot/config/defaults.py

from __future__ import annotations

DEFAULT_NAMESPACES: tuple[str, ...] = ("taperecorder", "botspace")
DEFAULT_K3S_VERSION = "v1.29.1+k3s1"
DEFAULT_TARGET_USER = "dev"

DEFAULT_REGISTRY_SERVER = "ghcr.io"
DEFAULT_REGISTRY_EMAIL = "devnull@example.com"
REGISTRY_PULL_SECRET = "ghcr-pull"

NODE_READY_TIMEOUT_SECONDS = 180
ARGOCD_READY_TIMEOUT_SECONDS = 300

ARGOCD_NAMESPACE = "argocd"
ARGOCD_MANIFEST_URL = (
    "https://raw.githubusercontent.com/argoproj/argo-cd/stable/manifests/install.yaml"
)

# Vendor installers and release endpoints
DOCKER_INSTALL_URL = "https://get.docker.com"
K3S_INSTALL_URL = "https://get.k3s.io"
HELM_INSTALL_URL = "https://raw.githubusercontent.com/helm/helm/main/scripts/get-helm-3"
KUBECTL_STABLE_URL = "https://dl.k8s.io/release/stable.txt"
KUBECTL_DOWNLOAD_URL = "https://dl.k8s.io/release/{version}/bin/linux/{arch}/kubectl"
K9S_LATEST_URL = "https://api.github.com/repos/derailed/k9s/releases/latest"
K9S_DOWNLOAD_URL = (
    "https://github.com/derailed/k9s/releases/download/{version}/k9s_Linux_{arch}.tar.gz"
)

K3S_KUBECONFIG = "/etc/rancher/k3s/k3s.yaml"
KUBECONFIG_EXPORT_LINE = "export KUBECONFIG=$HOME/.kube/config"
INSTALL_BIN_DIR = "/usr/local/bin"

BASE_PACKAGES: tuple[str, ...] = (
    "curl",
    "wget",
    "ca-certificates",
    "gnupg",
    "lsb-release",
    "apt-transport-https",
    "software-properties-common",
    "jq",
    "git",
    "unzip",
)
