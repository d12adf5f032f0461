"""
CLI commands for the build chain — compile, upload, serial monitor.

Thin wrappers over ``arduino_tools.core.use_cases.workbench``. Output
streams to the terminal while the chain runs; Ctrl-C cancels the active
stage (or closes the monitor).
"""

from __future__ import annotations

import json
import sys

import click

from arduino_tools.core.services.monitor import MonitorSession
from arduino_tools.core.services.pipeline import PipelineRun
from arduino_tools.ui.cli.terminal import open_workbench

_POLL_S = 0.2


def _wait_run(run: PipelineRun):
    """Wait for a chain; Ctrl-C cancels it and waits for the cleanup."""
    try:
        while True:
            result = run.wait(_POLL_S)
            if result is not None:
                return result
    except KeyboardInterrupt:
        run.cancel()
        return run.wait()


def _follow_monitor(session: MonitorSession) -> None:
    """Block while the monitor runs; Ctrl-C stops it."""
    try:
        while not session.join(_POLL_S):
            pass
    except KeyboardInterrupt:
        session.stop()
        session.join()


@click.command("compile")
@click.argument("path", required=False, type=click.Path(exists=True))
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def compile_cmd(ctx: click.Context, path: str | None, as_json: bool) -> None:
    """Compile the sketch (default: the sketch directory)."""
    wb = open_workbench(ctx, capture=as_json)
    run = wb.compile(path)
    if run is None:
        sys.exit(1)
    result = _wait_run(run)

    if as_json:
        data = result.to_dict()
        data["output"] = run.sink.lines  # type: ignore[attr-defined]
        click.echo(json.dumps(data, indent=2))
    sys.exit(0 if result.ok else 1)


@click.command()
@click.argument("path", required=False, type=click.Path(exists=True))
@click.option("--no-monitor", is_flag=True, help="Don't open the serial monitor after upload.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def upload(ctx: click.Context, path: str | None, no_monitor: bool, as_json: bool) -> None:
    """Compile, upload, then follow the serial monitor."""
    wb = open_workbench(ctx, capture=as_json)
    run = wb.upload(path, monitor=not (no_monitor or as_json))
    if run is None:
        sys.exit(1)
    result = _wait_run(run)

    if as_json:
        data = result.to_dict()
        data["output"] = run.sink.lines  # type: ignore[attr-defined]
        click.echo(json.dumps(data, indent=2))
        sys.exit(0 if result.ok else 1)

    if result.monitor_started and wb.monitor.active is not None:
        _follow_monitor(wb.monitor.active)
    sys.exit(0 if result.ok else 1)


@click.command()
@click.pass_context
def monitor(ctx: click.Context) -> None:
    """Open the serial monitor on the configured port."""
    wb = open_workbench(ctx)
    session = wb.open_monitor()
    if session is None:
        sys.exit(1)
    _follow_monitor(session)
