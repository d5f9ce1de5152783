# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nodeboot/utils/shell.py

from __future__ import annotations

import logging
import os
import shutil
import signal
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Sequence

from nodeboot.errors import NodebootError

log = logging.getLogger("nodeboot")


def _ignore_sigint() -> None:
    # Ctrl-C reaches the whole foreground process group; children keep going
    # and the engine stops at the next step boundary.
    signal.signal(signal.SIGINT, signal.SIG_IGN)


@dataclass(frozen=True)
class CommandResult:
    argv: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandError(NodebootError):
    def __init__(self, result: CommandResult):
        self.result = result
        detail = (result.stderr or result.stdout).strip()
        super().__init__(
            f"command failed (rc={result.returncode}): {' '.join(result.argv)}"
            + (f"\n{detail}" if detail else "")
        )


class CommandRunner:
    """
    Runs local commands through subprocess.

    - sudo=True prefixes the command with `sudo env K=V ...` so extra
      environment survives privilege escalation
    - check=True raises CommandError on a non-zero exit
    - children ignore SIGINT, so Ctrl-C only stops the run between steps
    - testable by mocking subprocess.run
    """

    def __init__(self, *, env: Optional[Mapping[str, str]] = None, timeout: int = 900):
        self.env = dict(env or {})
        self.timeout = timeout

    def _argv(self, argv: Sequence[str], sudo: bool, extra_env: Mapping[str, str]) -> list[str]:
        argv = [str(a) for a in argv]
        if not sudo:
            return argv
        exports = [f"{k}={v}" for k, v in extra_env.items()]
        if exports:
            return ["sudo", "env", *exports, *argv]
        return ["sudo", *argv]

    def run(
        self,
        argv: Sequence[str],
        *,
        sudo: bool = False,
        env: Optional[Mapping[str, str]] = None,
        input: Optional[str] = None,
        check: bool = True,
        timeout: Optional[int] = None,
        cwd: Optional[Path] = None,
    ) -> CommandResult:
        extra_env = {**self.env, **(env or {})}
        final = self._argv(argv, sudo, extra_env)

        # env values are never logged, join tokens travel through env
        shown = ["sudo", *map(str, argv)] if sudo else final
        log.debug("$ %s (env: %s)", " ".join(shown), ", ".join(sorted(extra_env)) or "-")

        start = time.time()
        try:
            cp = subprocess.run(
                final,
                input=input,
                text=True,
                capture_output=True,
                check=False,
                env={**os.environ, **extra_env},
                timeout=timeout or self.timeout,
                cwd=str(cwd) if cwd else None,
                preexec_fn=_ignore_sigint,
            )
        except subprocess.TimeoutExpired as e:
            raise NodebootError(
                f"command timed out after {e.timeout}s: {' '.join(map(str, argv))}"
            ) from e
        except FileNotFoundError as e:
            result = CommandResult(argv=final, returncode=127, stderr=str(e))
            if check:
                raise CommandError(result) from e
            return result

        result = CommandResult(
            argv=final,
            returncode=cp.returncode,
            stdout=cp.stdout or "",
            stderr=cp.stderr or "",
        )
        log.debug("rc=%d after %.2fs", result.returncode, time.time() - start)

        if check and not result.ok:
            raise CommandError(result)
        return result

    def which(self, name: str) -> Optional[str]:
        return shutil.which(name)
