import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import pytest

from nodeboot.bootstrap.system import SystemAccessor
from nodeboot.config.loader import ENV_KEYS
from nodeboot.helm.cli_runner import HelmCliRunner
from nodeboot.kube.kubectl import KubectlRunner
from nodeboot.utils.shell import CommandError, CommandResult


@pytest.fixture(autouse=True)
def _clean_bootstrap_env(monkeypatch):
    """The bootstrap env vars (ROLE, K3S_URL, ...) must not leak in from the host."""
    for name in list(ENV_KEYS) + ["NODEBOOT_SECRETS_FILE"]:
        monkeypatch.delenv(name, raising=False)


# --------- Test doubles ----------

@dataclass
class Call:
    argv: List[str]
    sudo: bool
    env: Dict[str, str]
    input: Optional[str]


class FakeRunner:
    """Records commands; `responder(argv) -> (rc, stdout)` decides outcomes."""

    def __init__(self, responder: Callable[[List[str]], Tuple[int, str]] = None, binaries=()):
        self.calls: List[Call] = []
        self.responder = responder or (lambda argv: (0, ""))
        self.binaries = set(binaries)

    def run(self, argv, *, sudo=False, env=None, input=None, check=True, timeout=None, cwd=None):
        argv = [str(a) for a in argv]
        self.calls.append(Call(argv, sudo, dict(env or {}), input))
        rc, out = self.responder(argv)
        result = CommandResult(argv=argv, returncode=rc, stdout=out, stderr="" if rc == 0 else "boom")
        if check and rc != 0:
            raise CommandError(result)
        return result

    def which(self, name):
        return f"/usr/local/bin/{name}" if name in self.binaries else None

    def commands(self) -> List[str]:
        return [" ".join(c.argv) for c in self.calls]


class FakeFetcher:
    def __init__(self, texts=None, payloads=None, blobs=None):
        self.texts = texts or {}
        self.payloads = payloads or {}
        self.blobs = blobs or {}
        self.downloads: List[Tuple[str, Path]] = []

    def text(self, url):
        return self.texts.get(url, "")

    def json(self, url):
        return self.payloads.get(url, {})

    def download(self, url, dest, *, mode=0o644):
        dest = Path(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(self.blobs.get(url, b"#!/bin/sh\nexit 0\n"))
        self.downloads.append((url, dest))
        return dest


@dataclass
class FakeSystem(SystemAccessor):
    files: Dict[str, str] = field(default_factory=dict)

    def read_text(self, path):
        if str(path) in self.files:
            return self.files[str(path)]
        return super().read_text(path)


@pytest.fixture
def make_system(tmp_path):
    def _make(runner=None, fetcher=None, files=None, registry_auths=None):
        runner = runner or FakeRunner()
        registry_cfg = tmp_path / "helm-registry.json"
        if registry_auths is not None:
            registry_cfg.write_text(json.dumps({"auths": registry_auths}))
        home = tmp_path / "home"
        home.mkdir(exist_ok=True)
        return FakeSystem(
            runner=runner,
            fetcher=fetcher or FakeFetcher(),
            kubectl=KubectlRunner(runner),
            helm=HelmCliRunner(runner, environ={"HELM_REGISTRY_CONFIG": str(registry_cfg)}),
            home=home,
            workdir=tmp_path / "work",
            user="dev",
            machine="x86_64",
            files=files or {},
        )
    return _make
