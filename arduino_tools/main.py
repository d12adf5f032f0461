"""
Arduino Tools — CLI entrypoint.

Usage:
    arduino-tools --help
    arduino-tools status
    arduino-tools upload
    python -m arduino_tools.main libs --search servo
"""

from __future__ import annotations

import json
import os
from pathlib import Path

import click

from arduino_tools import __version__
from arduino_tools.core.observability.logging_config import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="arduino-tools")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to .arduino_config.yml (default: auto-detect).",
)
@click.option(
    "--port-pattern",
    "port_patterns",
    multiple=True,
    help="Extra regex for serial port lines in `board list` (repeatable).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
    port_patterns: tuple[str, ...],
) -> None:
    """Arduino Tools — compile, upload, monitor and manage libraries."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None
    ctx.obj["port_patterns"] = list(port_patterns)

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = os.environ.get("ARDUINO_TOOLS_LOG_LEVEL", "WARNING")

    setup_logging(
        level=level,
        log_file=os.environ.get("ARDUINO_TOOLS_LOG_FILE"),
        log_file_level=os.environ.get("ARDUINO_TOOLS_LOG_FILE_LEVEL"),
        quiet_third_party=not debug,
    )


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def status(ctx: click.Context, as_json: bool) -> None:
    """Show the configured board, port and baud rate."""
    from arduino_tools.ui.cli.terminal import open_workbench

    wb = open_workbench(ctx)

    if as_json:
        data = wb.config.model_dump()
        data["config_path"] = str(wb.config_path)
        data["pipeline"] = wb.pipeline.state.value
        click.echo(json.dumps(data, indent=2))
        return

    if not ctx.obj.get("quiet"):
        click.secho("\n📋 Arduino Tools", fg="cyan", bold=True)
        click.echo(f"   {wb.config_path}")
        click.echo()
    for line in wb.status_lines():
        click.echo(f"   {line}")
    click.echo()


# ── Register command groups ─────────────────────────────────────

from arduino_tools.ui.cli.board import baud, boards, ports, setup  # noqa: E402
from arduino_tools.ui.cli.build import compile_cmd, monitor, upload  # noqa: E402
from arduino_tools.ui.cli.libs import libs  # noqa: E402

cli.add_command(compile_cmd)
cli.add_command(upload)
cli.add_command(monitor)
cli.add_command(baud)
cli.add_command(boards)
cli.add_command(ports)
cli.add_command(setup)
cli.add_command(libs)


if __name__ == "__main__":
    cli()
