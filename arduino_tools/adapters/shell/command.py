"""
Shell command adapter — run toolchain commands.

This is the only place that starts child processes. Two modes:

- ``run`` / ``execute``: blocking, output captured, result in a Receipt.
  Used for the JSON queries (catalog, installed, outdated, boards).
- ``spawn``: returns immediately with a handle whose ``events()``
  generator yields Stdout/Stderr chunks as they arrive and one final
  Exited. Used for compile, upload and monitor.
"""

from __future__ import annotations

import logging
import os
import queue
import signal
import subprocess
import threading
import time
from pathlib import Path
from typing import IO, Iterator

from arduino_tools.adapters.base import Adapter, ExecutionContext
from arduino_tools.core.models.action import Action, Receipt
from arduino_tools.core.models.process import Exited, ProcessEvent, Stderr, Stdout

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 300
TERMINATE_GRACE_S = 3.0

_EOF = object()


class CommandSpawnError(RuntimeError):
    """The command could not be started (missing executable, bad cwd...)."""


class PopenHandle:
    """Streaming view of a ``subprocess.Popen``.

    One reader thread per pipe pushes chunks into a shared queue, so
    ``events()`` sees stdout and stderr interleaved in arrival order.
    ``Exited`` is yielded only after both pipes hit EOF.
    """

    def __init__(self, proc: subprocess.Popen, argv: list[str]):
        self.argv = argv
        self._proc = proc
        self._queue: queue.Queue[object] = queue.Queue()
        self._consumed = False
        self._lock = threading.Lock()
        self._readers = [
            threading.Thread(
                target=self._pump,
                args=(proc.stdout, Stdout),
                name=f"pipe-stdout-{proc.pid}",
                daemon=True,
            ),
            threading.Thread(
                target=self._pump,
                args=(proc.stderr, Stderr),
                name=f"pipe-stderr-{proc.pid}",
                daemon=True,
            ),
        ]
        for reader in self._readers:
            reader.start()

    @property
    def pid(self) -> int:
        return self._proc.pid

    @property
    def running(self) -> bool:
        return self._proc.poll() is None

    @property
    def returncode(self) -> int | None:
        return self._proc.poll()

    def _pump(self, stream: IO[str] | None, event_type: type) -> None:
        if stream is None:
            self._queue.put(_EOF)
            return
        try:
            for chunk in iter(stream.readline, ""):
                self._queue.put(event_type(chunk))
        except (OSError, ValueError) as e:
            logger.debug("Pipe closed for pid %s: %s", self._proc.pid, e)
        finally:
            self._queue.put(_EOF)

    def events(self) -> Iterator[ProcessEvent]:
        """Yield output events, ending with exactly one Exited.

        May only be consumed once.
        """
        with self._lock:
            if self._consumed:
                raise RuntimeError("event stream already consumed")
            self._consumed = True

        open_pipes = len(self._readers)
        while open_pipes:
            item = self._queue.get()
            if item is _EOF:
                open_pipes -= 1
                continue
            yield item  # type: ignore[misc]

        code = self._proc.wait()
        if self._proc.stdin and not self._proc.stdin.closed:
            self._proc.stdin.close()
        yield Exited(code)

    def terminate(self, grace: float = TERMINATE_GRACE_S) -> None:
        """Stop the child (and its process group). Safe to call repeatedly."""
        if self._proc.poll() is not None:
            return

        logger.debug("Terminating pid %s: %s", self._proc.pid, " ".join(self.argv))
        if self._proc.stdin:
            self._proc.stdin.close()
        self._signal(signal.SIGTERM)
        try:
            self._proc.wait(timeout=grace)
        except subprocess.TimeoutExpired:
            logger.warning("pid %s ignored SIGTERM for %.1fs, killing", self._proc.pid, grace)
            self._signal(getattr(signal, "SIGKILL", signal.SIGTERM))
            self._proc.wait()

    def _signal(self, sig: int) -> None:
        try:
            if os.name == "posix":
                os.killpg(self._proc.pid, sig)
            elif sig == signal.SIGTERM:
                self._proc.terminate()
            else:
                self._proc.kill()
        except ProcessLookupError:
            pass


class ShellCommandAdapter(Adapter):
    """Execute toolchain commands.

    Action params:
        command (list[str]): argv to execute (no shell).
        timeout (int): Timeout in seconds (default: 300).
        cwd (str): Working directory (default: the current one).
    """

    @property
    def name(self) -> str:
        return "shell"

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        command = context.action.params.get("command")
        if not command:
            return False, "Missing required param: 'command'"

        cwd = context.working_dir
        if cwd and not Path(cwd).is_dir():
            return False, f"Working directory does not exist: {cwd}"

        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        command: list[str] = list(context.action.params.get("command") or [])
        timeout = context.action.params.get("timeout", DEFAULT_TIMEOUT_S)
        cwd = context.working_dir
        display = " ".join(command)

        valid, error = self.validate(context)
        if not valid:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=error,
                metadata={"command": display, "stderr": ""},
            )

    def run(
        self,
        argv: list[str],
        *,
        action_id: str | None = None,
        cwd: str | Path | None = None,
        timeout: int = DEFAULT_TIMEOUT_S,
    ) -> Receipt:
        """Run ``argv`` to completion and capture its output."""
        params: dict = {"command": list(argv), "timeout": timeout}
        if cwd is not None:
            params["cwd"] = str(cwd)
        action = Action(id=action_id or _action_id(argv), params=params)
        return self.execute(ExecutionContext(action=action))

    def spawn(self, argv: list[str], *, cwd: str | Path | None = None) -> PopenHandle:
        """Start ``argv`` without waiting for it.

        Raises:
            CommandSpawnError: If the process cannot be started.
        """
        logger.debug("Spawning: %s (cwd=%s)", " ".join(argv), cwd)
        try:
            proc = subprocess.Popen(
                list(argv),
                cwd=str(cwd) if cwd else None,
                stdin=subprocess.PIPE,  # held open: monitor exits on stdin EOF
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
                bufsize=1,
                start_new_session=os.name == "posix",
            )
        except OSError as e:
            raise CommandSpawnError(f"Cannot start '{argv[0] if argv else ''}': {e}") from e
        return PopenHandle(proc, list(argv))


def _action_id(argv: list[str]) -> str:
    """Short id from the subcommand words, e.g. ``lib-search``."""
    words = [a for a in argv[1:3] if not a.startswith("-")]
    return "-".join(words) or (Path(argv[0]).name if argv else "command")
