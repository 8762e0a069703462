"""Unit lifecycle CLI commands - properties, path, apply, destroy, freeze, stats."""
from __future__ import annotations

from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from cgunit.cli_support import (
    get_client,
    handle_cli_error,
    print_success,
    require_cgroup,
)
from cgunit.core.errors import CgroupError
from cgunit.models.cgroup import Cgroup, FreezerState
from cgunit.services.systemd.manager import UnifiedManager
from cgunit.services.systemd.paths import (
    compute_path,
    parent_slice,
    unified_paths,
    unit_name,
)
from cgunit.services.systemd.properties import compose_properties


def _attach(cgroup: Cgroup, client=None) -> UnifiedManager:
    """Build a manager bound to the cgroup an earlier apply created."""
    return UnifiedManager(cgroup, client=client, paths=unified_paths(compute_path(cgroup)))


def _format_limit(value: Optional[int]) -> str:
    return "max" if value is None else str(value)


def register_unit_commands(root: typer.Typer, console: Console) -> None:
    """Attach unit lifecycle commands to the main CLI."""

    @root.command("properties")
    def properties_command(
        ctx: typer.Context,
        pid: int = typer.Option(-1, "--pid", help="Process to place in the unit (-1 for none)."),
    ) -> None:
        """Show the properties the unit would be started with."""
        cgroup = require_cgroup(ctx, console)
        name = unit_name(cgroup)
        properties = compose_properties(cgroup, name, parent_slice(cgroup), pid)

        table = Table(title=name, show_header=True, header_style="bold cyan")
        table.add_column("Property")
        table.add_column("Type")
        table.add_column("Value", overflow="fold")
        for prop in properties:
            table.add_row(prop.name, prop.signature, escape(str(prop.value)))
        console.print(table)

    @root.command("path")
    def path_command(ctx: typer.Context) -> None:
        """Print the cgroup path systemd allocates for the unit."""
        cgroup = require_cgroup(ctx, console)
        try:
            typer.echo(compute_path(cgroup))
        except CgroupError as e:
            handle_cli_error(e, console)

    @root.command("apply")
    def apply_command(
        ctx: typer.Context,
        pid: int = typer.Option(-1, "--pid", help="Process to place in the unit (-1 for none)."),
    ) -> None:
        """Start the transient unit and prepare its cgroup."""
        cgroup = require_cgroup(ctx, console)
        try:
            with get_client(ctx) as client:
                manager = UnifiedManager(cgroup, client=client)
                manager.apply(pid)
                path = manager.get_unified_path()
        except CgroupError as e:
            handle_cli_error(e, console)

        print_success(console, f"Applied {unit_name(cgroup)}")
        typer.echo(path)

    @root.command("destroy")
    def destroy_command(ctx: typer.Context) -> None:
        """Stop the unit and remove its cgroup."""
        cgroup = require_cgroup(ctx, console)
        try:
            with get_client(ctx) as client:
                _attach(cgroup, client).destroy()
        except CgroupError as e:
            handle_cli_error(e, console)

        print_success(console, f"Destroyed {unit_name(cgroup)}")

    @root.command("freeze")
    def freeze_command(ctx: typer.Context) -> None:
        """Suspend every process in the cgroup."""
        cgroup = require_cgroup(ctx, console)
        try:
            _attach(cgroup).freeze(FreezerState.FROZEN)
        except CgroupError as e:
            handle_cli_error(e, console)
        print_success(console, f"Frozen {unit_name(cgroup)}")

    @root.command("thaw")
    def thaw_command(ctx: typer.Context) -> None:
        """Resume every process in the cgroup."""
        cgroup = require_cgroup(ctx, console)
        try:
            _attach(cgroup).freeze(FreezerState.THAWED)
        except CgroupError as e:
            handle_cli_error(e, console)
        print_success(console, f"Thawed {unit_name(cgroup)}")

    @root.command("pids")
    def pids_command(
        ctx: typer.Context,
        all_: bool = typer.Option(False, "--all", "-a", help="Include processes in child cgroups."),
    ) -> None:
        """List processes in the cgroup."""
        cgroup = require_cgroup(ctx, console)
        try:
            manager = _attach(cgroup)
            pids = manager.get_all_pids() if all_ else manager.get_pids()
        except CgroupError as e:
            handle_cli_error(e, console)

        for pid in pids:
            typer.echo(pid)

    @root.command("stats")
    def stats_command(ctx: typer.Context) -> None:
        """Show CPU, memory and pids usage of the cgroup."""
        cgroup = require_cgroup(ctx, console)
        try:
            stats = _attach(cgroup).get_stats()
        except CgroupError as e:
            handle_cli_error(e, console)

        table = Table(title=unit_name(cgroup), show_header=True, header_style="bold")
        table.add_column("Metric")
        table.add_column("Value", justify="right")
        table.add_row("cpu.usage_usec", str(stats.cpu.usage_usec))
        table.add_row("cpu.nr_throttled", str(stats.cpu.nr_throttled))
        table.add_row("cpu.throttled_usec", str(stats.cpu.throttled_usec))
        table.add_row("memory.current", str(stats.memory.usage))
        table.add_row("memory.max", _format_limit(stats.memory.limit))
        table.add_row("memory.oom_kill", str(stats.memory.events.get("oom_kill", 0)))
        table.add_row("pids.current", str(stats.pids.current))
        table.add_row("pids.max", _format_limit(stats.pids.limit))
        console.print(table)
