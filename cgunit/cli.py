#!/usr/bin/env python3
"""cgunit CLI - systemd transient units backed by cgroup v2."""
from typing import List, Optional

import typer
from rich.console import Console

from cgunit.cli_support import CliState, build_cgroup, setup_file_logging
from cgunit.cli_unit_commands import register_unit_commands

app = typer.Typer(
    name="cgunit",
    help="""cgunit - Run containers in systemd units with cgroup v2 limits

Resource options go before the command:
  cgunit --name web --memory 512m properties   # Preview unit properties
  cgunit --name web --memory 512m apply --pid 1234
  cgunit --name web stats
  cgunit --name web destroy
""",
    add_completion=False,
)

console = Console()


@app.callback()
def main(
    ctx: typer.Context,
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Container name (ending in .slice creates a slice)."),
    parent: str = typer.Option("", "--parent", help="Parent slice (default: system.slice)."),
    scope_prefix: str = typer.Option("", "--scope-prefix", help="Prefix for the scope unit name."),
    memory: Optional[str] = typer.Option(None, "--memory", "-m", help="Memory ceiling, e.g. 512m or 2g."),
    cpu_weight: int = typer.Option(0, "--cpu-weight", help="CPU weight (1-10000)."),
    cpu_quota: int = typer.Option(0, "--cpu-quota", help="CPU quota in microseconds per period."),
    cpu_period: int = typer.Option(0, "--cpu-period", help="CPU period in microseconds."),
    pids_limit: int = typer.Option(0, "--pids-limit", help="Maximum number of tasks."),
    properties: Optional[List[str]] = typer.Option(None, "--property", "-p", help="Extra unit property.", metavar="Name=value"),
    mock: bool = typer.Option(False, "--mock", help="Log systemd requests instead of sending them."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Write debug-level logs to the log file."),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Log file (default: /var/log/cgunit/cgunit.log, CGUNIT_LOG_FILE)."),
) -> None:
    if log_file or verbose:
        setup_file_logging(log_file=log_file, verbose=verbose)

    cgroup = None
    if name:
        cgroup = build_cgroup(
            name,
            parent=parent,
            scope_prefix=scope_prefix,
            memory=memory,
            cpu_weight=cpu_weight,
            cpu_quota=cpu_quota,
            cpu_period=cpu_period,
            pids_limit=pids_limit,
            properties=properties,
        )
    ctx.obj = CliState(cgroup=cgroup, mock=mock)


register_unit_commands(app, console)

if __name__ == "__main__":
    app()
