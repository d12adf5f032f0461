"""
Build pipeline — compile → upload → serial monitor.

State machine
─────────────
    idle ──start──▶ compiling ──exit 0──▶ uploading ──exit 0──▶ monitoring
                        │                     │
                     exit≠0                exit≠0
                        ▼                     ▼
                      failed               failed
    any ──cancel──▶ idle   (active child terminated, chain never advances)

A chain runs on its own worker thread. That thread is the only consumer
of the active stage's event stream, so sink appends from one chain are
never interleaved.

Output rules, per stage:
  - stdout chunks are sanitized and appended as they arrive
  - stderr chunks are sanitized; lines with content are appended with an
    ``Error: `` prefix, blank ones are dropped
  - after the child exits, exactly one banner line is appended, before
    the next stage is spawned

Starting a chain stops the live monitor first: the upload needs the
port, and only one writer may own a sink at a time. An upload chain
that succeeds hands its sink to the new monitor session.
"""

from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import Callable

from arduino_tools.adapters.base import ProcessHandle
from arduino_tools.adapters.shell.command import CommandSpawnError, ShellCommandAdapter
from arduino_tools.core.models.board import BoardConfig
from arduino_tools.core.models.process import (
    Exited,
    PipelineResult,
    PipelineState,
    StageName,
    StageResult,
    Stderr,
    Stdout,
)
from arduino_tools.core.services.monitor import MonitorManager, SinkFactory, header_lines
from arduino_tools.core.services.sanitize import ERROR_PREFIX, error_lines, sanitize
from arduino_tools.core.services.surfaces import BufferSink, OutputSink
from arduino_tools.core.services.toolchain import Toolchain

logger = logging.getLogger(__name__)

# ── Banners ─────────────────────────────────────────────────────

CHECK_OK = "--- Code checked successfully. ---"
CHECK_FAILED = "--- Code check failed. ---"
COMPILE_OK = "--- Compilation Complete, Starting Upload ---"
COMPILE_FAILED = "--- Compilation Failed ---"
UPLOAD_OK = "--- Upload Complete ---"
UPLOAD_FAILED = "--- Upload Failed ---"
EXIT_HINT = "--- Ctrl-C to exit ---"
CANCELLED = "--- Cancelled ---"

UPLOAD_HEADER = "Arduino Upload and Serial Monitor - Press Ctrl-C to exit"
CHECK_TITLE = "Arduino Check"

_STAGE_STATE = {
    StageName.COMPILE: PipelineState.COMPILING,
    StageName.UPLOAD: PipelineState.UPLOADING,
}


class PipelineBusyError(RuntimeError):
    """A chain is already running on this orchestrator."""


def stage_banner(stage: StageName, ok: bool, upload_chain: bool) -> str:
    """The single status line appended after ``stage`` exits."""
    if stage == StageName.COMPILE and not upload_chain:
        return CHECK_OK if ok else CHECK_FAILED
    if stage == StageName.COMPILE:
        return COMPILE_OK if ok else COMPILE_FAILED
    return UPLOAD_OK if ok else UPLOAD_FAILED


class PipelineRun:
    """Handle on one chain: wait for it, cancel it, read its sink."""

    def __init__(
        self,
        target: str,
        board: BoardConfig,
        sink: OutputSink,
        *,
        upload: bool,
        monitor: bool,
    ):
        self.target = target
        self.board = board
        self.sink = sink
        self.upload = upload
        self.monitor = monitor
        self.result = PipelineResult(target=target, upload=upload)
        self.state = PipelineState.IDLE
        self._cancel = threading.Event()
        self._done = threading.Event()
        self._lock = threading.Lock()
        self._handle: ProcessHandle | None = None
        self._thread: threading.Thread | None = None

    @property
    def done(self) -> bool:
        return self._done.is_set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def wait(self, timeout: float | None = None) -> PipelineResult | None:
        """Block until the chain ends. None if ``timeout`` expired first."""
        if not self._done.wait(timeout):
            return None
        return self.result

    def cancel(self) -> bool:
        """Terminate the active child. Returns False if already finished."""
        if self._done.is_set() or self.state == PipelineState.MONITORING:
            return False
        self._cancel.set()
        with self._lock:
            handle = self._handle
        if handle is not None:
            logger.info("Cancelling %s", " ".join(handle.argv))
            handle.terminate()
        return True

    def _attach(self, handle: ProcessHandle | None) -> None:
        with self._lock:
            self._handle = handle
        if handle is not None and self._cancel.is_set():
            handle.terminate()


class PipelineOrchestrator:
    """Runs compile / upload chains against one ``BoardConfig``.

    The config object is shared with the settings layer; each chain
    takes a snapshot when it starts.
    """

    def __init__(
        self,
        config: BoardConfig,
        runner: ShellCommandAdapter,
        monitor: MonitorManager,
        sink_factory: SinkFactory = BufferSink,
        *,
        toolchain: Toolchain | None = None,
        before_upload: Callable[[], None] | None = None,
    ):
        self.config = config
        self._runner = runner
        self._monitor = monitor
        self._sink_factory = sink_factory
        self._toolchain = toolchain or Toolchain()
        self._before_upload = before_upload
        self._lock = threading.Lock()
        self._run: PipelineRun | None = None

    # ── Public API ──────────────────────────────────────────────

    @property
    def current(self) -> PipelineRun | None:
        """The most recent chain (running or finished)."""
        return self._run

    @property
    def busy(self) -> bool:
        run = self._run
        return run is not None and not run.done

    @property
    def state(self) -> PipelineState:
        run = self._run
        if run is None:
            return PipelineState.IDLE
        if run.state == PipelineState.MONITORING and self._monitor.active is None:
            return PipelineState.IDLE
        return run.state

    def start(
        self,
        target: Path | str,
        upload: bool = False,
        monitor: bool = True,
    ) -> PipelineRun:
        """Start a chain on a worker thread and return immediately.

        Raises:
            PipelineBusyError: If a chain is still running.
        """
        with self._lock:
            if self.busy:
                raise PipelineBusyError("A build is already running; cancel it first.")

            self._monitor.stop()

            if upload and self._before_upload is not None:
                self._before_upload()

            board = self.config.model_copy()
            if upload:
                sink = self._sink_factory(UPLOAD_HEADER)
                sink.append(header_lines(UPLOAD_HEADER, board))
            else:
                sink = self._sink_factory(CHECK_TITLE)

            run = PipelineRun(str(target), board, sink, upload=upload, monitor=monitor)
            run.state = PipelineState.COMPILING
            run._thread = threading.Thread(
                target=self._execute,
                args=(run,),
                name="pipeline-upload" if upload else "pipeline-check",
                daemon=True,
            )
            self._run = run
            run._thread.start()

        logger.info("Started %s chain for %s", "upload" if upload else "check", target)
        return run

    def run(self, target: Path | str, upload: bool = False, monitor: bool = True) -> PipelineResult:
        """Blocking form of ``start``."""
        result = self.start(target, upload=upload, monitor=monitor).wait()
        assert result is not None
        return result

    def cancel(self) -> bool:
        """Cancel the running chain. Returns False if nothing was running."""
        run = self._run
        if run is None:
            return False
        return run.cancel()

    # ── Worker ──────────────────────────────────────────────────

    def _execute(self, run: PipelineRun) -> None:
        start = time.monotonic()
        stages = [StageName.COMPILE] + ([StageName.UPLOAD] if run.upload else [])
        try:
            for stage in stages:
                if not self._run_stage(run, stage):
                    break
            else:
                run.result.ok = True
                if run.upload and run.monitor and not run.cancelled:
                    self._hand_off_to_monitor(run)
                else:
                    run.state = PipelineState.IDLE
        except Exception as e:
            # Keep the chain's failure local; the worker thread must always finish.
            logger.exception("Pipeline crashed: %s", e)
            run.sink.append([f"{ERROR_PREFIX}{e}"])
            run.result.ok = False
            run.state = PipelineState.FAILED
        finally:
            run._attach(None)
            run.result.cancelled = run.cancelled
            run.result.final_state = run.state
            run.result.total_duration_ms = int((time.monotonic() - start) * 1000)
            logger.info(
                "Chain for %s finished: %s (%dms)",
                run.target, run.state.value, run.result.total_duration_ms,
            )
            run._done.set()

    def _argv(self, run: PipelineRun, stage: StageName) -> list[str]:
        if stage == StageName.COMPILE:
            return self._toolchain.compile(run.board.board, run.target)
        return self._toolchain.upload(run.board.board, run.board.port, run.target)

    def _run_stage(self, run: PipelineRun, stage: StageName) -> bool:
        """Run one stage to completion. True if the chain may advance."""
        result = StageResult(name=stage)
        run.result.stages.append(result)

        if run.cancelled:
            return self._finish_cancelled(run, result)

        run.state = _STAGE_STATE[stage]
        started = time.monotonic()
        try:
            handle = self._runner.spawn(self._argv(run, stage))
        except CommandSpawnError as e:
            logger.error("%s could not start: %s", stage.value, e)
            result.status = "error"
            result.error = str(e)
            run.sink.append([f"{ERROR_PREFIX}{e}"])
            return self._finish_failed(run, stage)

        run._attach(handle)
        code = self._consume(run, handle)
        run._attach(None)
        result.exit_code = code
        result.duration_ms = int((time.monotonic() - started) * 1000)

        if run.cancelled:
            return self._finish_cancelled(run, result)

        if code == 0:
            result.status = "done"
            run.sink.append([stage_banner(stage, True, run.upload)])
            return True

        result.status = "error"
        result.error = f"exit code {code}"
        return self._finish_failed(run, stage)

    def _consume(self, run: PipelineRun, handle: ProcessHandle) -> int:
        code = -1
        for event in handle.events():
            if isinstance(event, Stdout):
                run.sink.append(sanitize(event.line))
            elif isinstance(event, Stderr):
                lines = error_lines(sanitize(event.line))
                if lines:
                    run.sink.append(lines)
            elif isinstance(event, Exited):
                code = event.code
        return code

    def _finish_failed(self, run: PipelineRun, stage: StageName) -> bool:
        run.sink.append([stage_banner(stage, False, run.upload)])
        if run.upload:
            run.sink.append([EXIT_HINT])
        run.state = PipelineState.FAILED
        return False

    def _finish_cancelled(self, run: PipelineRun, result: StageResult) -> bool:
        result.status = "cancelled"
        run.sink.append([CANCELLED])
        run.state = PipelineState.IDLE
        return False

    def _hand_off_to_monitor(self, run: PipelineRun) -> None:
        run.state = PipelineState.MONITORING
        monitor_result = StageResult(name=StageName.MONITOR)
        run.result.stages.append(monitor_result)
        try:
            self._monitor.start(run.board, sink=run.sink)
        except CommandSpawnError as e:
            monitor_result.status = "error"
            monitor_result.error = str(e)
            run.state = PipelineState.IDLE
            return
        monitor_result.status = "done"
        run.result.monitor_started = True
