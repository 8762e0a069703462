"""Shared utilities for cgunit CLI modules."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape

from cgunit.models.cgroup import Cgroup, Property, Resources
from cgunit.services.systemd.client import DbusSystemdClient

MEMORY_UNITS = {
    "b": 1,
    "k": 1024,
    "m": 1024 ** 2,
    "g": 1024 ** 3,
    "t": 1024 ** 4,
}


@dataclass
class CliState:
    """Options given to the root command, shared with subcommands."""
    cgroup: Optional[Cgroup] = None
    mock: bool = False


def is_mock() -> bool:
    """Return True when CLI runs in mock mode."""
    return os.environ.get("CGUNIT_MOCK", "").lower() in ("1", "true")


def setup_file_logging(log_file: Optional[str] = None, verbose: bool = False) -> None:
    """Set up file logging for CLI commands."""
    from cgunit.core.logger import setup_file_logging as _setup_file_logging
    _setup_file_logging(log_file=log_file, verbose=verbose)


def parse_memory(value: Optional[str]) -> int:
    """Parse a memory size such as ``512``, ``100m`` or ``1.5g`` into bytes.

    Raises:
        typer.BadParameter: If the value cannot be parsed
    """
    if value is None:
        return 0
    text = value.strip().lower()
    if text in ("max", "-1"):
        return -1

    multiplier = 1
    if text and text[-1] in MEMORY_UNITS:
        multiplier = MEMORY_UNITS[text[-1]]
        text = text[:-1]
    try:
        return int(float(text) * multiplier)
    except ValueError:
        raise typer.BadParameter(f"Invalid memory size: {value}", param_hint="memory")


def parse_property(item: str) -> Property:
    """Parse a ``Name=value`` pair into a unit property.

    Booleans become ``b``, non-negative integers ``t``, anything else ``s``.
    """
    if "=" not in item:
        raise typer.BadParameter("Properties must be Name=value", param_hint="property")
    name, value = item.split("=", 1)
    name = name.strip()
    if not name:
        raise typer.BadParameter("Property name must not be empty", param_hint="property")

    lowered = value.strip().lower()
    if lowered in ("true", "yes", "on"):
        return Property(name, True, "b")
    if lowered in ("false", "no", "off"):
        return Property(name, False, "b")
    if lowered.isdigit():
        return Property(name, int(lowered), "t")
    return Property(name, value, "s")


def build_cgroup(
    name: str,
    parent: str = "",
    scope_prefix: str = "",
    memory: Optional[str] = None,
    cpu_weight: int = 0,
    cpu_quota: int = 0,
    cpu_period: int = 0,
    pids_limit: int = 0,
    properties: Optional[List[str]] = None,
) -> Cgroup:
    """Assemble a Cgroup spec from CLI options."""
    resources = Resources(
        memory=parse_memory(memory),
        cpu_weight=cpu_weight,
        cpu_quota=cpu_quota,
        cpu_period=cpu_period,
        pids_limit=pids_limit,
    )
    return Cgroup(
        name=name,
        parent=parent,
        scope_prefix=scope_prefix,
        resources=resources,
        systemd_props=[parse_property(item) for item in properties or []],
    )


def require_cgroup(ctx: typer.Context, console: Console) -> Cgroup:
    """Return the spec built by the root command, or exit if --name is missing."""
    state: Optional[CliState] = ctx.obj
    if state is None or state.cgroup is None:
        print_error(console, "Missing option '--name' before the command")
        raise typer.Exit(2)
    return state.cgroup


def get_client(ctx: typer.Context) -> DbusSystemdClient:
    """Return a systemd client honouring --mock and CGUNIT_MOCK."""
    state: Optional[CliState] = ctx.obj
    mock = (state.mock if state else False) or is_mock()
    return DbusSystemdClient(mock=mock)


def handle_cli_error(
    e: Exception,
    console: Console,
    verbose: bool = False,
    exit_code: int = 1
) -> None:
    """Handle CLI errors with consistent formatting.

    Args:
        e: Exception to handle
        console: Rich console for output
        verbose: Show exception traceback if True
        exit_code: Exit code to use
    """
    console.print(f"[red]Error:[/red] {escape(str(e))}")
    if verbose:
        console.print_exception()
    raise typer.Exit(exit_code)


def print_success(console: Console, message: str, prefix: str = "✓") -> None:
    """Print success message with consistent formatting."""
    console.print(f"[green]{prefix}[/green] {message}")


def print_error(console: Console, message: str, prefix: str = "✗") -> None:
    """Print error message with consistent formatting."""
    console.print(f"[red]{prefix}[/red] {message}")
