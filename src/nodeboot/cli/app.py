# src/nodeboot/cli/app.py
from __future__ import annotations

import json
import logging
import signal
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

import typer

from nodeboot.bootstrap.catalog import default_registry
from nodeboot.bootstrap.preflight import ensure_target_user, running_as_root
from nodeboot.bootstrap.system import SystemAccessor
from nodeboot.config.defaults import DEFAULT_TARGET_USER
from nodeboot.config.loader import collect_inputs
from nodeboot.config.models import RoleConfig
from nodeboot.deploy.executor import ExecutionEngine
from nodeboot.deploy.planner import plan as plan_steps
from nodeboot.errors import ConfigError
from nodeboot.logging.log import init_logging
from nodeboot.observers.dispatcher import EventBus
from nodeboot.observers.console import ConsoleObserver
from nodeboot.observers.events import new_ctx
from nodeboot.observers.jsonfile import JsonFileObserver
from nodeboot.observers.logger import LoggerObserver
from nodeboot.report.summary import RunReport, summarize
from nodeboot.roles.resolver import RoleError, resolve_inputs
from nodeboot.steps.models import RunStatus

log = logging.getLogger("nodeboot")


# ------------------------------------------------------------------------------
# CLI setup
# ------------------------------------------------------------------------------

app = typer.Typer(help="nodeboot: idempotent k3s node bootstrap")

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_INVALID_INPUT = 2
EXIT_ABORTED = 130


def exit_code_for(report: RunReport) -> int:
    if report.status is RunStatus.COMPLETED:
        return EXIT_OK
    if report.aborted_by == "signal":
        return EXIT_ABORTED
    return EXIT_FATAL


def _role_config(
    *,
    config: Optional[Path],
    role: Optional[str],
    join_url: Optional[str],
    join_token: Optional[str],
    namespace: Optional[List[str]],
    k9s: Optional[bool],
    argocd: Optional[bool],
    k3s_version: Optional[str],
    target_user: Optional[str],
) -> RoleConfig:
    """
    CLI flag > environment > YAML config > defaults. Exits with code 2 on
    invalid input before anything runs.
    """
    overrides = {
        "role": role,
        "join_url": join_url,
        "join_token": join_token,
        "namespaces": namespace or None,
        "install_k9s": k9s,
        "install_argocd": argocd,
        "k3s_version": k3s_version,
        "target_user": target_user,
    }
    try:
        return resolve_inputs(collect_inputs(config, overrides=overrides))
    except (RoleError, ConfigError) as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=EXIT_INVALID_INPUT)


def _target_user(config: Optional[Path], target_user: Optional[str]) -> str:
    """Target user from flag > environment > YAML, without validating the role."""
    try:
        inputs = collect_inputs(config, overrides={"target_user": target_user})
    except ConfigError as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=EXIT_INVALID_INPUT)
    return inputs.get("target_user") or DEFAULT_TARGET_USER


@contextmanager
def _abort_on_signals(event: threading.Event) -> Iterator[None]:
    """SIGINT/SIGTERM stop the run at the next step boundary."""

    def _handler(signum, frame):
        log.warning("Received %s, stopping after the current step", signal.Signals(signum).name)
        event.set()

    previous = {sig: signal.signal(sig, _handler) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        yield
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


# Shared options
CONFIG_OPT = typer.Option(None, "--config", "-c", help="nodeboot YAML config")
ROLE_OPT = typer.Option(None, "--role", help="server or agent (env: ROLE)")
JOIN_URL_OPT = typer.Option(None, "--join-url", help="k3s server URL for agents (env: K3S_URL)")
JOIN_TOKEN_OPT = typer.Option(None, "--join-token", help="k3s node token for agents (env: K3S_TOKEN)")
NAMESPACE_OPT = typer.Option(None, "--namespace", "-n", help="Namespace to create (repeatable)")
K9S_OPT = typer.Option(None, "--k9s/--no-k9s", help="Install k9s (env: INSTALL_K9S)")
ARGOCD_OPT = typer.Option(None, "--argocd/--no-argocd", help="Install ArgoCD (env: INSTALL_ARGOCD)")
K3S_VERSION_OPT = typer.Option(None, "--k3s-version", help="k3s version (env: K3S_VERSION)")
TARGET_USER_OPT = typer.Option(None, "--target-user", help="User to create when run as root")


@app.command()
def run(
    config: Optional[Path] = CONFIG_OPT,
    role: Optional[str] = ROLE_OPT,
    join_url: Optional[str] = JOIN_URL_OPT,
    join_token: Optional[str] = JOIN_TOKEN_OPT,
    namespace: Optional[List[str]] = NAMESPACE_OPT,
    k9s: Optional[bool] = K9S_OPT,
    argocd: Optional[bool] = ARGOCD_OPT,
    k3s_version: Optional[str] = K3S_VERSION_OPT,
    target_user: Optional[str] = TARGET_USER_OPT,
    report_json: Optional[Path] = typer.Option(None, "--report-json", help="Write the run report as JSON"),
    log_dir: Optional[Path] = typer.Option(None, "--log-dir", help="Default: ~/.nodeboot/logs"),
    allow_root: bool = typer.Option(False, "--allow-root", help="Run steps as root instead of creating a user"),
    events: bool = typer.Option(False, "--events", help="Echo lifecycle events to the console"),
    debug: bool = typer.Option(False, "--debug"),
):
    """Bootstrap this node for the given role."""
    logger, run_id, log_path = init_logging(base_dir=log_dir, verbose=debug)

    # user setup comes first; role and join parameters only matter to the
    # rerun as that user
    if running_as_root() and not allow_root:
        user = _target_user(config, target_user)
        ensure_target_user(SystemAccessor.local().runner, user)
        typer.echo(f"Please log in as '{user}' and rerun:")
        typer.echo(f"  su - {user}")
        typer.echo("  nodeboot run ...")
        raise typer.Exit(code=EXIT_OK)

    cfg = _role_config(
        config=config, role=role, join_url=join_url, join_token=join_token,
        namespace=namespace, k9s=k9s, argocd=argocd,
        k3s_version=k3s_version, target_user=target_user,
    )

    typer.echo("")
    typer.secho(f"nodeboot bootstrap (role={cfg.role.value})", bold=True)
    typer.echo(f"  Run ID   : {run_id}")
    typer.echo(f"  Logs     : {log_path}")
    typer.echo("")

    system = SystemAccessor.local()

    observers = [
        LoggerObserver(logger),
        JsonFileObserver(log_path.parent / f"{run_id}.jsonl"),
    ]
    if events:
        observers.insert(0, ConsoleObserver())
    bus = EventBus(observers=observers)
    event_ctx = new_ctx(role=cfg.role.value, run_id=run_id)

    steps = plan_steps(default_registry(), cfg, bus=bus, run_ctx=event_ctx)

    abort = threading.Event()
    engine = ExecutionEngine(system, bus=bus, abort_event=abort, run_ctx=event_ctx)
    with _abort_on_signals(abort):
        results = engine.run(steps, cfg)

    report = summarize(results, run_id=run_id, role=cfg.role.value)
    typer.echo("")
    typer.echo(report.render_text())

    if report_json:
        report_json.parent.mkdir(parents=True, exist_ok=True)
        report_json.write_text(json.dumps(report.to_dict(), indent=2) + "\n")
        typer.echo(f"Report written to {report_json}")

    raise typer.Exit(code=exit_code_for(report))


@app.command()
def plan(
    config: Optional[Path] = CONFIG_OPT,
    role: Optional[str] = ROLE_OPT,
    join_url: Optional[str] = JOIN_URL_OPT,
    join_token: Optional[str] = JOIN_TOKEN_OPT,
    namespace: Optional[List[str]] = NAMESPACE_OPT,
    k9s: Optional[bool] = K9S_OPT,
    argocd: Optional[bool] = ARGOCD_OPT,
    k3s_version: Optional[str] = K3S_VERSION_OPT,
):
    """Show the ordered steps a run would execute, without touching the node."""
    cfg = _role_config(
        config=config, role=role, join_url=join_url, join_token=join_token,
        namespace=namespace, k9s=k9s, argocd=argocd,
        k3s_version=k3s_version, target_user=None,
    )
    steps = plan_steps(default_registry(), cfg)

    typer.secho(f"Plan for role={cfg.role.value}", bold=True)
    for i, step in enumerate(steps, 1):
        deps = f" (after {', '.join(step.depends_on)})" if step.depends_on else ""
        typer.echo(f"  {i:2d}. {step.name} [{step.failure.value}]{deps}")


@app.command()
def steps():
    """List every step in the default catalog."""
    for step in default_registry().validate():
        roles = ",".join(sorted(r.value for r in step.roles))
        component = f" component={step.component}" if step.component else ""
        typer.echo(f"{step.name:<24} roles={roles:<13} {step.failure.value:<9}{component}  {step.description}")


if __name__ == "__main__":
    app()
