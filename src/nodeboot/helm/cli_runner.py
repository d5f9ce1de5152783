# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import List, Mapping, Optional

from nodeboot.utils.shell import CommandResult, CommandRunner
from .errors import HelmError, HelmRegistryLoginError

log = logging.getLogger("nodeboot")


class HelmCliRunner:
    """
    A pragmatic wrapper around the `helm` CLI, limited to what a node
    bootstrap needs (OCI registry login).
    - Testable with a fake command runner.
    """

    def __init__(
        self,
        runner: CommandRunner,
        *,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.runner = runner
        self.environ = os.environ if environ is None else environ

    # ------------------------- internal helpers -------------------------

    def _run(self, argv: List[str], *, input: Optional[str] = None) -> CommandResult:
        result = self.runner.run(argv, input=input, check=False)
        if not result.ok:
            raise HelmError(
                f"helm failed (rc={result.returncode}) for {argv[1:]!r}\n{result.stderr}"
            )
        return result

    def registry_config_path(self) -> Path:
        """
        Where helm keeps OCI credentials: $HELM_REGISTRY_CONFIG, else
        $XDG_CONFIG_HOME/helm/registry/config.json.
        """
        explicit = self.environ.get("HELM_REGISTRY_CONFIG")
        if explicit:
            return Path(explicit)
        config_home = self.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
        return Path(config_home) / "helm" / "registry" / "config.json"

    # ------------------------- registry -------------------------

    def registry_logged_in(self, server: str) -> bool:
        path = self.registry_config_path()
        if not path.is_file():
            return False
        try:
            auths = json.loads(path.read_text()).get("auths", {})
        except ValueError:
            log.warning("Unreadable helm registry config %s", path)
            return False
        return server in auths

    def registry_login(self, server: str, username: str, token: str) -> None:
        # token goes through stdin, never argv
        argv = ["helm", "registry", "login", server, "-u", username, "--password-stdin"]
        try:
            self._run(argv, input=token + "\n")
        except HelmError as e:
            raise HelmRegistryLoginError(f"Login to {server} as {username} failed") from e
        log.info("[helm] logged into OCI registry %s", server)
