# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nodeboot/bootstrap/preflight.py

from __future__ import annotations

import logging
import os

from nodeboot.utils.shell import CommandRunner

log = logging.getLogger("nodeboot")


def running_as_root() -> bool:
    return os.geteuid() == 0


def ensure_target_user(runner: CommandRunner, user: str) -> bool:
    """
    Make sure *user* exists and is in the sudo group. Returns True when the
    account had to be created. Runs as root, so no sudo prefix.
    """
    created = False
    if not runner.run(["id", "-u", user], check=False).ok:
        log.info("Creating user '%s'", user)
        runner.run(["adduser", "--disabled-password", "--gecos", "", user])
        created = True

    runner.run(["usermod", "-aG", "sudo", user])
    log.info("User '%s' is in the sudo group", user)
    return created
