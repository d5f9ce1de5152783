# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nodeboot/bootstrap/system.py

from __future__ import annotations

import getpass
import os
import platform
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from nodeboot.helm.cli_runner import HelmCliRunner
from nodeboot.kube.kubectl import KubectlRunner
from nodeboot.utils.fetch import HttpFetcher
from nodeboot.utils.shell import CommandRunner

_ARCH = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv7l": "arm",
}


@dataclass
class SystemAccessor:
    """
    Everything a step may touch on the node. Probes and actions go through
    here so tests can swap in fakes.
    """

    runner: CommandRunner
    fetcher: HttpFetcher
    kubectl: KubectlRunner
    helm: HelmCliRunner
    home: Path
    workdir: Path
    user: str
    machine: str = ""

    @classmethod
    def local(cls, *, kubeconfig: Optional[str] = None) -> "SystemAccessor":
        runner = CommandRunner(env={"DEBIAN_FRONTEND": "noninteractive"})
        return cls(
            runner=runner,
            fetcher=HttpFetcher(),
            kubectl=KubectlRunner(runner, kubeconfig=kubeconfig),
            helm=HelmCliRunner(runner),
            home=Path.home(),
            workdir=Path(tempfile.gettempdir()) / "nodeboot",
            user=os.environ.get("USER") or getpass.getuser(),
            machine=platform.machine(),
        )

    def has_binary(self, name: str) -> bool:
        return self.runner.which(name) is not None

    def read_text(self, path: str | Path) -> Optional[str]:
        try:
            return Path(path).read_text()
        except (FileNotFoundError, PermissionError):
            return None

    def arch(self) -> str:
        machine = (self.machine or platform.machine()).lower()
        try:
            return _ARCH[machine]
        except KeyError:
            raise RuntimeError(f"Unsupported CPU architecture '{machine}'") from None

    def scratch(self, name: str) -> Path:
        self.workdir.mkdir(parents=True, exist_ok=True)
        return self.workdir / name
