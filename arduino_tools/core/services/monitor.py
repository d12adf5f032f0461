"""
Serial monitor sessions — one long-running ``arduino-cli monitor``.

A session owns a process handle, an output sink and a snapshot of the
board config taken when it started. One pump thread forwards the
process output into the sink until the process exits or the session is
stopped.

The ``MonitorManager`` holds at most one live session. Starting a new
one first stops the old one and releases its sink, so two readers are
never attached to the same port.

Lifecycle::

    start()  → spawn, pump thread running
    stop()   → terminate process, close sink (idempotent)
    reopen() → show the existing sink again, or start() if it is gone
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

from arduino_tools.adapters.base import ProcessHandle
from arduino_tools.adapters.shell.command import CommandSpawnError, ShellCommandAdapter
from arduino_tools.core.models.board import BoardConfig
from arduino_tools.core.models.process import Exited, Stderr, Stdout
from arduino_tools.core.services.sanitize import ERROR_PREFIX, error_lines, sanitize
from arduino_tools.core.services.surfaces import BufferSink, OutputSink
from arduino_tools.core.services.toolchain import Toolchain

logger = logging.getLogger(__name__)

MONITOR_HEADER = "Arduino Serial Monitor - Press Ctrl-C to exit"
HEADER_RULE = "-" * 51

SinkFactory = Callable[[str], OutputSink]


class SessionClosedError(RuntimeError):
    """The session has been stopped; its handle is no longer usable."""


def header_lines(title: str, board: BoardConfig) -> list[str]:
    """Header written at the top of a fresh monitor or upload sink."""
    return [
        title,
        f"Port: {board.port} | Baudrate: {board.baudrate}",
        HEADER_RULE,
        "",
    ]


def closed_banner(code: int) -> str:
    return f"--- Monitor Closed (exit {code}) ---"


class MonitorSession:
    """A running serial monitor."""

    def __init__(
        self,
        handle: ProcessHandle,
        sink: OutputSink,
        board: BoardConfig,
    ):
        self._handle = handle
        self.sink = sink
        self.board = board
        self._stopped = threading.Event()
        self._finished = threading.Event()
        self._lock = threading.Lock()
        self.exit_code: int | None = None
        self._pump = threading.Thread(
            target=self._forward,
            name=f"monitor-{board.port}",
            daemon=True,
        )

    def start(self) -> None:
        self._pump.start()

    @property
    def handle(self) -> ProcessHandle:
        if self._stopped.is_set():
            raise SessionClosedError(f"Monitor on {self.board.port} is closed")
        return self._handle

    @property
    def running(self) -> bool:
        return not self._stopped.is_set() and self._pump.is_alive()

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    @property
    def finished(self) -> bool:
        """The monitor process exited on its own (device gone, port error)."""
        return self._finished.is_set()

    @property
    def live(self) -> bool:
        return not (self.stopped or self.finished)

    def _forward(self) -> None:
        for event in self._handle.events():
            if self._stopped.is_set():
                continue  # drain to Exited
            if not self.sink.is_valid:
                logger.info("Monitor sink closed; stopping monitor on %s", self.board.port)
                self.stop()
                continue
            if isinstance(event, Stdout):
                self.sink.append(sanitize(event.line))
            elif isinstance(event, Stderr):
                lines = error_lines(sanitize(event.line))
                if lines:
                    self.sink.append(lines)
            elif isinstance(event, Exited):
                self.exit_code = event.code
                logger.info("Monitor on %s exited with code %d", self.board.port, event.code)
                self.sink.append([closed_banner(event.code)])
                self._finished.set()

    def stop(self, release_sink: bool = True) -> None:
        """Terminate the monitor. Stopping a stopped session is a no-op."""
        with self._lock:
            if self._stopped.is_set():
                return
            self._stopped.set()
        logger.debug("Stopping monitor on %s", self.board.port)
        self._handle.terminate()
        if release_sink:
            self.sink.close()

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the pump thread. True if it has finished."""
        if self._pump.is_alive():
            self._pump.join(timeout)
        return not self._pump.is_alive()


class MonitorManager:
    """Owns the single live ``MonitorSession``."""

    def __init__(
        self,
        runner: ShellCommandAdapter,
        sink_factory: SinkFactory = BufferSink,
        toolchain: Toolchain | None = None,
    ):
        self._runner = runner
        self._sink_factory = sink_factory
        self._toolchain = toolchain or Toolchain()
        self._session: MonitorSession | None = None
        self._lock = threading.RLock()

    @property
    def active(self) -> MonitorSession | None:
        """The current session, or None if none is live."""
        with self._lock:
            session = self._session
        if session is None or not session.live:
            return None
        return session

    def start(self, board: BoardConfig, sink: OutputSink | None = None) -> MonitorSession:
        """Replace any live session with a new one on ``board.port``.

        With ``sink`` given (after an upload) output continues in that
        sink; otherwise a fresh sink is created with a header.

        Raises:
            CommandSpawnError: If the monitor process cannot start. The
                error line is appended to the sink first.
        """
        snapshot = board.model_copy()
        with self._lock:
            previous, self._session = self._session, None
            if previous is not None:
                previous.stop(release_sink=previous.sink is not sink)

            if sink is None:
                sink = self._sink_factory(MONITOR_HEADER)
                sink.append(header_lines(MONITOR_HEADER, snapshot))

            argv = self._toolchain.monitor(snapshot.port, snapshot.baudrate)
            try:
                handle = self._runner.spawn(argv)
            except CommandSpawnError as e:
                logger.error("Monitor failed to start: %s", e)
                sink.append([f"{ERROR_PREFIX}{e}"])
                raise

            session = MonitorSession(handle, sink, snapshot)
            self._session = session
            session.start()

        logger.info("Monitor started on %s at %d baud", snapshot.port, snapshot.baudrate)
        return session

    def stop(self) -> bool:
        """Stop the live session. Returns True if one was running.

        A session whose process already exited is still released.
        """
        with self._lock:
            session, self._session = self._session, None
        if session is None or session.stopped:
            return False
        was_live = session.live
        session.stop()
        return was_live

    def reopen(self, board: BoardConfig) -> MonitorSession:
        """Show the existing monitor, or start a fresh one."""
        with self._lock:
            session = self._session
            if session is not None and session.live and session.sink.is_valid:
                session.sink.show()
                return session
        return self.start(board)
