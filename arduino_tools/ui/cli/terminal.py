"""
Terminal surfaces for the CLI — a streaming sink and a numbered picker.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Sequence, TypeVar

import click

from arduino_tools.core.services.surfaces import OutputSink, Picker

T = TypeVar("T")

_LEVEL_STYLE = {
    logging.ERROR: ("❌", "red"),
    logging.WARNING: ("⚠️ ", "yellow"),
    logging.INFO: ("✅", "green"),
}


class ConsoleSink(OutputSink):
    """Echo lines straight to stdout as they arrive."""

    def __init__(self, title: str = ""):
        self.title = title
        self._closed = False
        self._lock = threading.Lock()

    @property
    def is_valid(self) -> bool:
        return not self._closed

    def append(self, lines: Sequence[str]) -> None:
        with self._lock:
            if self._closed:
                return
            for line in lines:
                click.echo(line)

    def close(self) -> None:
        self._closed = True


class ClickPicker(Picker[T]):
    """Numbered list on stdout, choice read with ``click.prompt``. 0 cancels."""

    def select(
        self,
        items: Sequence[T],
        *,
        prompt: str,
        format_item: Callable[[T], str] = str,
    ) -> T | None:
        if not items:
            return None
        click.secho(f"\n{prompt}", fg="cyan", bold=True)
        width = len(str(len(items)))
        for i, item in enumerate(items, 1):
            click.echo(f"  {i:>{width}}. {format_item(item)}")
        click.echo(f"  {0:>{width}}. Cancel")
        index = click.prompt(
            "Choice", type=click.IntRange(0, len(items)), default=0, show_default=False,
        )
        if index == 0:
            return None
        return items[index - 1]


def cli_notify(message: str, level: int = logging.INFO) -> None:
    """Print a user notification with an icon and colour for its level."""
    for threshold in (logging.ERROR, logging.WARNING, logging.INFO):
        if level >= threshold:
            icon, colour = _LEVEL_STYLE[threshold]
            click.secho(f"{icon} {message}", fg=colour)
            return
    click.echo(message)


def open_workbench(ctx: click.Context, *, capture: bool = False):
    """Build a Workbench for the sketch directory in ``ctx``.

    ``capture`` keeps stream output in memory instead of printing it
    (for ``--json``). A runner placed in ``ctx.obj["runner"]`` replaces
    the real shell adapter.
    """
    from arduino_tools.core.services.surfaces import BufferSink
    from arduino_tools.core.use_cases.workbench import Workbench

    config_path = ctx.obj.get("config_path")
    project_root = config_path.parent if config_path else None
    return Workbench(
        project_root,
        config_path=config_path,
        runner=ctx.obj.get("runner"),
        sink_factory=BufferSink if capture else ConsoleSink,
        picker=ClickPicker(),
        notify=cli_notify,
        cache_path=ctx.obj.get("cache_path"),
        port_patterns=ctx.obj.get("port_patterns") or (),
    )
