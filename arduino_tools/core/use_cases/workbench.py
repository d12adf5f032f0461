"""
Workbench use case — every user-facing operation in one place.

Wires the shared BoardConfig, the shell adapter, the library services,
the pipeline and the monitor together for one sketch directory. Front
ends (the CLI, an editor plugin) call these methods and provide the
display surfaces.

Each operation handles its own failures: they are reported through
``notify`` and the method returns None (or a failed result). Nothing
here raises into the caller for an expected failure.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Callable, Iterable

from pydantic import ValidationError

from arduino_tools.adapters.shell.command import CommandSpawnError, ShellCommandAdapter
from arduino_tools.core.config.loader import (
    ConfigError,
    default_config_path,
    find_config_file,
    load_board_config,
)
from arduino_tools.core.models.board import BoardConfig
from arduino_tools.core.models.library import ResolvedItem
from arduino_tools.core.services.board_ops import (
    BoardInfo,
    BoardSettings,
    NoConnectedDeviceError,
    connected_boards_report,
    list_boards,
    list_ports,
)
from arduino_tools.core.services.library_cache import CatalogCache
from arduino_tools.core.services.library_ops import LibraryActionResult, LibraryManager
from arduino_tools.core.services.monitor import MonitorManager, MonitorSession, SinkFactory
from arduino_tools.core.services.pipeline import PipelineBusyError, PipelineOrchestrator, PipelineRun
from arduino_tools.core.services.sanitize import sanitize
from arduino_tools.core.services.surfaces import BufferSink, OutputSink, Picker
from arduino_tools.core.services.toolchain import Toolchain

logger = logging.getLogger(__name__)

Notify = Callable[[str, int], None]


def log_notify(message: str, level: int = logging.INFO) -> None:
    """Default notifier: route user messages to the log."""
    logger.log(level, "%s", message)


class Workbench:
    """All operations for one sketch directory."""

    def __init__(
        self,
        project_root: Path | None = None,
        *,
        config_path: Path | None = None,
        runner: ShellCommandAdapter | None = None,
        toolchain: Toolchain | None = None,
        sink_factory: SinkFactory = BufferSink,
        picker: Picker | None = None,
        notify: Notify = log_notify,
        cache_path: Path | None = None,
        port_patterns: Iterable[str] = (),
        before_upload: Callable[[], None] | None = None,
    ):
        self.project_root = (project_root or Path.cwd()).resolve()
        self.config_path = (
            config_path
            or find_config_file(self.project_root)
            or default_config_path(self.project_root)
        )
        self.runner = runner or ShellCommandAdapter()
        self.toolchain = toolchain or Toolchain()
        self.sink_factory = sink_factory
        self.picker = picker
        self.notify = notify
        self.port_patterns = list(port_patterns)

        self.config: BoardConfig = load_board_config(self.config_path)
        self.settings = BoardSettings(self.config, self.config_path)
        self.cache = CatalogCache(self.runner, path=cache_path, toolchain=self.toolchain)
        self.libraries = LibraryManager(self.runner, self.cache, toolchain=self.toolchain)
        self.monitor = MonitorManager(self.runner, sink_factory, toolchain=self.toolchain)
        self.pipeline = PipelineOrchestrator(
            self.config,
            self.runner,
            self.monitor,
            sink_factory,
            toolchain=self.toolchain,
            before_upload=before_upload,
        )

    def _pick(self, items, *, prompt: str, format_item=str):
        if self.picker is None:
            self.notify(f"{prompt}: no picker available.", logging.ERROR)
            return None
        return self.picker.select(items, prompt=prompt, format_item=format_item)

    # ── Status ──────────────────────────────────────────────────

    def status_lines(self) -> list[str]:
        return self.config.summary_lines()

    def show_status(self) -> OutputSink:
        sink = self.sink_factory("Arduino Status")
        sink.append(self.status_lines())
        sink.show()
        return sink

    def list_connected_ports(self) -> OutputSink:
        """Raw ``board list`` output in a new sink."""
        sink = self.sink_factory("Connected Boards")
        sink.append(sanitize(connected_boards_report(self.runner, self.toolchain)))
        sink.show()
        return sink

    # ── Libraries ───────────────────────────────────────────────

    def library_items(self, query: str | None = None) -> list[ResolvedItem] | None:
        items = self.libraries.catalog_items(query)
        if not items:
            self.notify("No libraries found.", logging.WARNING)
            return None
        return items

    def library_picker(self, query: str | None = None) -> LibraryActionResult | None:
        """Open the library picker and act on the choice.

        After each pick the picker opens again with the status recomputed,
        until the user cancels or an install fails. Returns the last
        result, None if nothing was picked.
        """
        result = None
        while True:
            items = self.library_items(query)
            if items is None:
                return result
            choice = self._pick(items, prompt="Arduino Libraries", format_item=lambda i: i.label)
            if choice is None:
                return result
            result = self.apply_library_choice(choice)
            if not result.ok:
                return result

    def apply_library_choice(self, item: ResolvedItem) -> LibraryActionResult:
        result = self.libraries.apply_choice(item)
        self.notify(result.message, logging.INFO if result.ok else logging.ERROR)
        return result

    def install_library(self, name: str) -> LibraryActionResult:
        result = self.libraries.install(name)
        self.notify(result.message, logging.INFO if result.ok else logging.ERROR)
        return result

    def refresh_catalog(self) -> int | None:
        """Force a catalog fetch. Returns the entry count, None on failure."""
        record = self.cache.refresh()
        if record is None:
            self.notify("Failed to fetch libraries or parse JSON.", logging.ERROR)
            return None
        return len(record.entries)

    def outdated_libraries(self) -> list[ResolvedItem]:
        return self.libraries.outdated_items()

    # ── Board & port ────────────────────────────────────────────

    def boards(self) -> list[BoardInfo]:
        return list_boards(self.runner, self.toolchain)

    def ports(self) -> list[str]:
        """Connected ports. Empty (and notified) if none are found."""
        try:
            return list_ports(self.runner, self.port_patterns, self.toolchain)
        except NoConnectedDeviceError as e:
            self.notify(str(e), logging.ERROR)
            return []
        except re.error as e:
            self.notify(f"Invalid port pattern: {e}", logging.ERROR)
            return []

    def select_board(self) -> BoardConfig | None:
        boards = self.boards()
        if not boards:
            self.notify("No Arduino boards found in the list.", logging.WARNING)
            return None
        choice = self._pick(boards, prompt="Select Arduino Board", format_item=lambda b: b.name)
        if choice is None:
            return None
        return self.set_board(choice.fqbn)

    def select_port(self) -> BoardConfig | None:
        ports = self.ports()
        if not ports:
            return None
        choice = self._pick(ports, prompt="Select Arduino Port")
        if choice is None:
            return None
        return self.set_port(choice)

    def select_board_and_port(self) -> BoardConfig | None:
        """Board picker, then port picker if a board was chosen."""
        if self.select_board() is None:
            return None
        return self.select_port()

    def set_board(self, board: str) -> BoardConfig | None:
        return self._apply_setting(self.settings.set_board, board, "Board")

    def set_port(self, port: str) -> BoardConfig | None:
        return self._apply_setting(self.settings.set_port, port, "Port")

    def set_baud_rate(self, baudrate: str | int) -> BoardConfig | None:
        return self._apply_setting(self.settings.set_baudrate, baudrate, "Baud rate")

    def _apply_setting(self, setter, value, label: str) -> BoardConfig | None:
        try:
            config = setter(value)
        except ValidationError as e:
            reason = e.errors()[0].get("msg", str(e)) if e.errors() else str(e)
            self.notify(f"Invalid {label.lower()} {value!r}: {reason}", logging.ERROR)
            return None
        except ConfigError as e:
            self.notify(f"Error: {e}", logging.ERROR)
            return None
        self.notify(f"{label} set to: {str(value).strip()}", logging.INFO)
        return config

    # ── Build chain ─────────────────────────────────────────────

    def compile(self, target: Path | str | None = None) -> PipelineRun | None:
        """Check the sketch (compile only)."""
        return self._start(target, upload=False, monitor=False)

    def upload(self, target: Path | str | None = None, monitor: bool = True) -> PipelineRun | None:
        """Compile, upload, then open the monitor."""
        return self._start(target, upload=True, monitor=monitor)

    def _start(self, target, *, upload: bool, monitor: bool) -> PipelineRun | None:
        try:
            return self.pipeline.start(target or self.project_root, upload=upload, monitor=monitor)
        except PipelineBusyError as e:
            self.notify(str(e), logging.WARNING)
            return None

    def cancel(self) -> bool:
        """Cancel the running chain, or stop the monitor if none runs."""
        if self.pipeline.cancel():
            return True
        return self.monitor.stop()

    # ── Monitor ─────────────────────────────────────────────────

    def open_monitor(self) -> MonitorSession | None:
        return self._monitor_op(self.monitor.start)

    def reopen_monitor(self) -> MonitorSession | None:
        return self._monitor_op(self.monitor.reopen)

    def stop_monitor(self) -> bool:
        return self.monitor.stop()

    def _monitor_op(self, op) -> MonitorSession | None:
        if self.pipeline.busy:
            self.notify("A build is running; the port is busy.", logging.WARNING)
            return None
        try:
            return op(self.config)
        except CommandSpawnError as e:
            self.notify(f"Error: {e}", logging.ERROR)
            return None
