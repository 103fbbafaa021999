# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/komodoctl/cli/app.py
from __future__ import annotations

import contextlib
import json
import signal
from pathlib import Path
from typing import Iterator, Optional, Tuple

import typer
import yaml
from pydantic import ValidationError

from komodoctl.api.errors import KomodoApiError
from komodoctl.config.loader import load_config
from komodoctl.config.models import KomodoConfig
from komodoctl.deploy.errors import InvalidNameError, ReplacementRequiredError, TeardownError, WorkflowError
from komodoctl.deploy.executor import WorkflowReport
from komodoctl.deploy.naming import DesiredState
from komodoctl.deploy.provisioner import Provisioner
from komodoctl.logging.log import init_logging
from komodoctl.observers.console import ConsoleObserver
from komodoctl.observers.dispatcher import EventBus
from komodoctl.observers.jsonfile import JsonFileObserver
from komodoctl.observers.logger import LoggerObserver
from komodoctl.scm.github import SourceControlError
from komodoctl.utils.execution import ExecutionContext


# ------------------------------------------------------------------------------
# CLI setup
# ------------------------------------------------------------------------------

app = typer.Typer(help="komodoctl: provision desired state on a Komodo control plane")

ConfigOpt = typer.Option(Path("komodoctl.yaml"), "--config", "-c", help="Path to komodoctl.yaml")
NameOpt = typer.Option(..., "--name", "-n", help="Desired-state name")
AddressOpt = typer.Option("", "--address", help="IP or hostname of the node")
FileOpt = typer.Option(None, "--file", "-f", help="Path to resources.toml")
CredsOpt = typer.Option(False, "--generate-credentials", help="Generate an SSH key pair for the repository")
TimeoutOpt = typer.Option(None, "--timeout", help="Overall deadline in seconds")
VerboseOpt = typer.Option(False, "--verbose", "-v")

# delete, read and update address remote objects by name only
_NO_ADDRESS = "-"

_OPERATIONS = ("create", "delete", "update")

# exit code per exception family; first match wins
_EXIT_CODES: Tuple[Tuple[Tuple[type, ...], int], ...] = (
    ((InvalidNameError, ReplacementRequiredError, ValidationError), 2),
    ((WorkflowError, TeardownError, KomodoApiError, SourceControlError), 1),
    ((FileNotFoundError, yaml.YAMLError), 1),
)


def _fail(exc: Exception) -> None:
    for families, code in _EXIT_CODES:
        if isinstance(exc, families):
            typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
            raise typer.Exit(code)
    raise exc


def _read_file(path: Optional[Path]) -> Optional[str]:
    if path is None:
        return None
    return path.read_text(encoding="utf-8")


def _bootstrap(config: Path, verbose: bool) -> Tuple[KomodoConfig, EventBus, str]:
    logger, run_id, log_path = init_logging(verbose=verbose)
    observers = [
        ConsoleObserver(),
        LoggerObserver(logger),
        JsonFileObserver(log_path.with_suffix(".jsonl")),
    ]
    cfg = load_config(config)
    return cfg, EventBus(observers=observers), run_id


def _provisioner(config: Path, verbose: bool) -> Provisioner:
    cfg, bus, run_id = _bootstrap(config, verbose)
    return Provisioner.from_config(cfg, bus=bus, run_id=run_id)


def _planner(config: Path) -> Provisioner:
    return Provisioner.offline(load_config(config))


@contextlib.contextmanager
def _cancel_on_interrupt(ctx: ExecutionContext) -> Iterator[ExecutionContext]:
    """First Ctrl-C cancels the workflow so completed steps roll back; a second one aborts."""
    previous = signal.getsignal(signal.SIGINT)

    def _handler(signum, frame):
        typer.secho("Interrupted: cancelling and rolling back (Ctrl-C again to abort)", fg=typer.colors.YELLOW, err=True)
        signal.signal(signal.SIGINT, signal.default_int_handler)
        ctx.cancel()

    signal.signal(signal.SIGINT, _handler)
    try:
        yield ctx
    finally:
        signal.signal(signal.SIGINT, previous)


def _print_report(report: WorkflowReport) -> None:
    typer.secho(f"{report.plan}: {report.summary()}", bold=True)


# ------------------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------------------

@app.command()
def create(
    name: str = NameOpt,
    address: str = AddressOpt,
    file: Optional[Path] = FileOpt,
    generate_credentials: bool = CredsOpt,
    timeout: Optional[float] = TimeoutOpt,
    config: Path = ConfigOpt,
    verbose: bool = VerboseOpt,
):
    """Register the node, wire up the syncs and run the apply procedure."""
    try:
        if not address:
            raise typer.BadParameter("required for create", param_hint="--address")
        state = DesiredState(
            name=name,
            node_address=address,
            file_contents=_read_file(file),
            generate_credentials=generate_credentials,
        )
        provisioner = _provisioner(config, verbose)
        with _cancel_on_interrupt(provisioner.context(timeout)) as ctx:
            report = provisioner.create(state, ctx=ctx)
    except Exception as exc:
        _fail(exc)
    _print_report(report)


@app.command()
def delete(
    name: str = NameOpt,
    timeout: Optional[float] = TimeoutOpt,
    config: Path = ConfigOpt,
    verbose: bool = VerboseOpt,
):
    """Tear down everything derived from NAME, continuing past individual failures."""
    try:
        state = DesiredState(name=name, node_address=_NO_ADDRESS)
        provisioner = _provisioner(config, verbose)
        with _cancel_on_interrupt(provisioner.context(timeout)) as ctx:
            report = provisioner.delete(state, ctx=ctx)
    except Exception as exc:
        _fail(exc)
    _print_report(report)


@app.command()
def update(
    name: str = NameOpt,
    file: Path = typer.Option(..., "--file", "-f", help="Path to the new resources.toml"),
    previous: Optional[Path] = typer.Option(None, "--previous", help="Path to the resources.toml currently applied"),
    generate_credentials: bool = CredsOpt,
    timeout: Optional[float] = TimeoutOpt,
    config: Path = ConfigOpt,
    verbose: bool = VerboseOpt,
):
    """Re-publish resources.toml and re-run the apply procedure if it changed."""
    try:
        old = DesiredState(name=name, node_address=_NO_ADDRESS, file_contents=_read_file(previous))
        new = DesiredState(
            name=name,
            node_address=_NO_ADDRESS,
            file_contents=_read_file(file),
            generate_credentials=generate_credentials,
        )
        provisioner = _provisioner(config, verbose)
        with _cancel_on_interrupt(provisioner.context(timeout)) as ctx:
            report = provisioner.update(old, new, ctx=ctx)
    except Exception as exc:
        _fail(exc)
    if not report.outcomes:
        typer.echo("No changes.")
        return
    _print_report(report)


@app.command()
def read(
    name: str = NameOpt,
    config: Path = ConfigOpt,
    verbose: bool = VerboseOpt,
):
    """Print the server document for NAME (exit 3 when it does not exist)."""
    try:
        state = DesiredState(name=name, node_address=_NO_ADDRESS)
        server = _provisioner(config, verbose).read(state)
    except Exception as exc:
        _fail(exc)
    if server is None:
        typer.secho(f"{name}: not found", fg=typer.colors.YELLOW)
        raise typer.Exit(3)
    typer.echo(json.dumps(server, indent=2, default=str))


@app.command()
def plan(
    operation: str = typer.Argument(..., help="create | delete | update"),
    name: str = NameOpt,
    address: str = AddressOpt,
    file: Optional[Path] = FileOpt,
    config: Path = ConfigOpt,
):
    """Show the steps an operation would run. Needs no credentials and touches nothing."""
    if operation not in _OPERATIONS:
        raise typer.BadParameter(f"expected one of {', '.join(_OPERATIONS)}", param_hint="OPERATION")
    try:
        state = DesiredState(
            name=name,
            node_address=address or _NO_ADDRESS,
            file_contents=_read_file(file),
        )
        workflow = _planner(config).plan(operation, state, old=state.model_copy(update={"file_contents": None}))
    except Exception as exc:
        _fail(exc)
    typer.secho(f"{workflow.operation} {workflow.name} ({'best-effort' if workflow.best_effort else 'all-or-nothing'})", bold=True)
    for index, step in enumerate(workflow.steps, start=1):
        typer.echo(f"  {index}. {step.name}: {step.description}")


if __name__ == "__main__":
    app()
