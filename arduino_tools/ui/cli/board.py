"""
CLI commands for board, port and baud rate settings.

Every setter writes ``.arduino_config.yml`` before returning.
"""

from __future__ import annotations

import json
import sys

import click

from arduino_tools.ui.cli.terminal import open_workbench


@click.group()
def boards() -> None:
    """Boards — list installed boards, pick the target FQBN."""


@boards.command("list")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def boards_list(ctx: click.Context, as_json: bool) -> None:
    """List boards known to the installed cores."""
    wb = open_workbench(ctx)
    found = wb.boards()

    if as_json:
        click.echo(json.dumps([b.to_dict() for b in found], indent=2))
        return

    if not found:
        click.secho("⚠️  No Arduino boards found in the list.", fg="yellow")
        return

    click.secho(f"🔌 Boards ({len(found)}):", fg="cyan", bold=True)
    for board in found:
        marker = " ← selected" if board.fqbn == wb.config.board else ""
        click.echo(f"   {board.name:<40} {board.fqbn}{marker}")


@boards.command("select")
@click.pass_context
def boards_select(ctx: click.Context) -> None:
    """Pick the target board from a list."""
    wb = open_workbench(ctx)
    wb.select_board()


@click.group()
def ports() -> None:
    """Ports — connected serial ports."""


@ports.command("list")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def ports_list(ctx: click.Context, as_json: bool) -> None:
    """List serial ports of connected boards."""
    wb = open_workbench(ctx)
    found = wb.ports()

    if as_json:
        click.echo(json.dumps(found, indent=2))
        return
    if not found:
        sys.exit(1)

    for port in found:
        marker = " ← selected" if port == wb.config.port else ""
        click.echo(f"   {port}{marker}")


@ports.command("select")
@click.pass_context
def ports_select(ctx: click.Context) -> None:
    """Pick the serial port from the connected boards."""
    wb = open_workbench(ctx)
    wb.select_port()


@ports.command("raw")
@click.pass_context
def ports_raw(ctx: click.Context) -> None:
    """Show the raw ``arduino-cli board list`` table."""
    wb = open_workbench(ctx)
    wb.list_connected_ports()


@click.command()
@click.argument("rate")
@click.pass_context
def baud(ctx: click.Context, rate: str) -> None:
    """Set the serial monitor baud rate."""
    wb = open_workbench(ctx)
    if wb.set_baud_rate(rate) is None:
        sys.exit(1)


@click.command()
@click.pass_context
def setup(ctx: click.Context) -> None:
    """Pick the board, then the port."""
    wb = open_workbench(ctx)
    wb.select_board_and_port()
