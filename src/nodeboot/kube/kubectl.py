# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nodeboot/kube/kubectl.py

from __future__ import annotations

import json
import logging
from typing import Any, Optional, Sequence

from nodeboot.errors import NodebootError
from nodeboot.utils.shell import CommandResult, CommandRunner

log = logging.getLogger("nodeboot")


class KubectlError(NodebootError):
    pass


class KubectlRunner:
    """
    kubectl executed locally through the command runner.
    Every mutation goes through `apply` so repeating it is harmless.
    """

    def __init__(self, runner: CommandRunner, *, kubeconfig: Optional[str] = None):
        self.runner = runner
        self.kubeconfig = kubeconfig

    def _base(self) -> list[str]:
        cmd = ["kubectl"]
        if self.kubeconfig:
            cmd += ["--kubeconfig", self.kubeconfig]
        return cmd

    def _run(
        self,
        args: Sequence[str],
        *,
        input: Optional[str] = None,
        check: bool = True,
        timeout: Optional[int] = None,
    ) -> CommandResult:
        result = self.runner.run(
            self._base() + list(args), input=input, check=False, timeout=timeout
        )
        if check and not result.ok:
            raise KubectlError(
                f"kubectl {' '.join(args)} failed (rc={result.returncode}): "
                f"{(result.stderr or result.stdout).strip()}"
            )
        return result

    def _get_json(self, args: Sequence[str]) -> dict[str, Any]:
        out = self._run(list(args) + ["-o", "json"]).stdout
        try:
            return json.loads(out or "{}")
        except ValueError as e:
            raise KubectlError(f"kubectl {' '.join(args)} returned invalid JSON") from e

    def exists(self, kind: str, name: str, namespace: Optional[str] = None) -> bool:
        args = ["get", kind, name, "-o", "name"]
        if namespace:
            args += ["-n", namespace]
        return self._run(args, check=False).ok

    # ------------------------- apply -------------------------

    def apply_manifest(self, manifest: str, *, namespace: Optional[str] = None) -> None:
        args = ["apply", "-f", "-"]
        if namespace:
            args += ["-n", namespace]
        self._run(args, input=manifest)

    def apply_url(self, url: str, *, namespace: Optional[str] = None) -> None:
        args = ["apply", "-f", url]
        if namespace:
            args += ["-n", namespace]
        log.debug("[kubectl] applying %s", url)
        self._run(args)

    def _render(self, args: Sequence[str]) -> str:
        """Client-side dry run, returns the YAML kubectl would create."""
        return self._run(list(args) + ["--dry-run=client", "-o", "yaml"]).stdout

    def ensure_namespace(self, namespace: str) -> None:
        self.apply_manifest(self._render(["create", "namespace", namespace]))

    def ensure_docker_registry_secret(
        self,
        name: str,
        namespace: str,
        *,
        server: str,
        username: str,
        password: str,
        email: str,
    ) -> None:
        manifest = self._render([
            "-n", namespace,
            "create", "secret", "docker-registry", name,
            f"--docker-server={server}",
            f"--docker-username={username}",
            f"--docker-password={password}",
            f"--docker-email={email}",
        ])
        self.apply_manifest(manifest, namespace=namespace)

    # ------------------------- queries -------------------------

    def namespace_exists(self, namespace: str) -> bool:
        return self.exists("namespace", namespace)

    def secret_exists(self, name: str, namespace: str) -> bool:
        return self.exists("secret", name, namespace)

    def deployment_exists(self, name: str, namespace: str) -> bool:
        return self.exists("deployment", name, namespace)

    def nodes_ready(self) -> bool:
        """True when at least one node exists and every node reports Ready."""
        result = self._run(["get", "nodes", "-o", "json"], check=False)
        if not result.ok:
            return False
        try:
            items = json.loads(result.stdout or "{}").get("items", [])
        except ValueError:
            return False
        if not items:
            return False
        return all(_condition_true(n, "Ready") for n in items)

    def deployment_available(self, name: str, namespace: str) -> bool:
        if not self.deployment_exists(name, namespace):
            return False
        return _condition_true(
            self._get_json(["get", "deployment", name, "-n", namespace]), "Available"
        )

    # ------------------------- waits -------------------------

    def wait(
        self,
        target: str,
        condition: str,
        *,
        timeout_seconds: int,
        namespace: Optional[str] = None,
        all_resources: bool = False,
    ) -> None:
        """
        kubectl wait --for=condition=<condition>; raises KubectlError on
        timeout so the caller's failure policy decides what happens.
        """
        args = ["wait", f"--for=condition={condition}", target]
        if all_resources:
            args.append("--all")
        if namespace:
            args += ["-n", namespace]
        args.append(f"--timeout={timeout_seconds}s")
        self._run(args, timeout=timeout_seconds + 30)


def _condition_true(obj: dict, condition: str) -> bool:
    for c in obj.get("status", {}).get("conditions", []) or []:
        if c.get("type") == condition:
            return c.get("status") == "True"
    return False
