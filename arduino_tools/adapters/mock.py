"""
Mock adapter — scripted stand-in for arduino-cli.

Used by the test suite (and ``--mock`` style embedding) to drive every
service without a toolchain. Responses are keyed by the argv words after
the executable, matched by prefix: the key ``"lib search"`` answers
``arduino-cli lib search --format json``. The longest matching key wins.
"""

from __future__ import annotations

import threading
from typing import Iterator, Sequence

from arduino_tools.adapters.base import ExecutionContext
from arduino_tools.adapters.shell.command import CommandSpawnError, ShellCommandAdapter
from arduino_tools.core.models.action import Receipt
from arduino_tools.core.models.process import Exited, ProcessEvent

# Exit code reported for a scripted process stopped by terminate().
TERMINATED_EXIT_CODE = -15


class MockProcessHandle:
    """A scripted child process.

    Yields the scripted events in order. A script that ends with
    ``Exited`` finishes on its own; a script without one behaves like a
    long-running process and blocks until ``terminate()``.
    """

    def __init__(self, argv: list[str], script: Sequence[ProcessEvent]):
        self.argv = argv
        self._script = list(script)
        self._stopped = threading.Event()
        self._finished = threading.Event()
        self.terminate_calls = 0

    @property
    def running(self) -> bool:
        return not (self._finished.is_set() or self._stopped.is_set())

    @property
    def terminated(self) -> bool:
        return self._stopped.is_set()

    def events(self) -> Iterator[ProcessEvent]:
        try:
            for event in self._script:
                if self._stopped.is_set():
                    break
                if isinstance(event, Exited):
                    yield Exited(TERMINATED_EXIT_CODE if self._stopped.is_set() else event.code)
                    return
                yield event
            self._stopped.wait()
            yield Exited(TERMINATED_EXIT_CODE)
        finally:
            self._finished.set()

    def terminate(self) -> None:
        self.terminate_calls += 1
        self._stopped.set()

    def wait_finished(self, timeout: float | None = None) -> bool:
        return self._finished.wait(timeout)


class MockShellAdapter(ShellCommandAdapter):
    """Universal mock for captured and streamed commands.

    By default ``run`` succeeds with ``default_output`` and ``spawn``
    exits 0 immediately.
    """

    def __init__(self, default_output: str = ""):
        self._default_output = default_output
        self._responses: dict[str, Receipt] = {}
        self._streams: dict[str, list[ProcessEvent]] = {}
        self._spawn_errors: dict[str, str] = {}
        self._lock = threading.Lock()
        self.call_log: list[list[str]] = []
        self.spawned: list[MockProcessHandle] = []

    @property
    def name(self) -> str:
        return "mock"

    @property
    def call_count(self) -> int:
        return len(self.call_log)

    # ── Scripting ───────────────────────────────────────────────

    def set_output(self, key: str, output: str, return_code: int = 0, stderr: str = "") -> None:
        """Answer captured runs matching ``key`` with ``output``."""
        if return_code == 0:
            receipt = Receipt.success(
                adapter=self.name, action_id=key, output=output.strip(),
                return_code=0, metadata={"stderr": stderr},
            )
        else:
            receipt = Receipt.failure(
                adapter=self.name, action_id=key,
                error=stderr or f"Command exited with code {return_code}",
                output=output.strip(), return_code=return_code,
                metadata={"stderr": stderr},
            )
        self._responses[key] = receipt

    def set_failure(self, key: str, error: str = "Mock failure", return_code: int = 1) -> None:
        """Make captured runs matching ``key`` fail."""
        self.set_output(key, "", return_code=return_code, stderr=error)

    def set_stream(self, key: str, script: Sequence[ProcessEvent]) -> None:
        """Script the events of spawned processes matching ``key``."""
        self._streams[key] = list(script)

    def set_spawn_error(self, key: str, error: str = "No such file or directory") -> None:
        """Make spawns matching ``key`` fail to start."""
        self._spawn_errors[key] = error

    def calls_matching(self, key: str) -> list[list[str]]:
        return [argv for argv in self.call_log if _command_key(argv).startswith(key)]

    def reset(self) -> None:
        """Clear call log and all scripted responses."""
        self.call_log.clear()
        self.spawned.clear()
        self._responses.clear()
        self._streams.clear()
        self._spawn_errors.clear()

    # ── Adapter surface ─────────────────────────────────────────

    def execute(self, context: ExecutionContext) -> Receipt:
        argv = list(context.action.params.get("command") or [])
        with self._lock:
            self.call_log.append(argv)

        key = _best_match(_command_key(argv), self._responses)
        if key is not None:
            return self._responses[key].model_copy()
        return Receipt.success(
            adapter=self.name,
            action_id=context.action.id,
            output=self._default_output,
            return_code=0,
            metadata={"mock": True, "stderr": ""},
        )

    def spawn(self, argv: list[str], *, cwd=None) -> MockProcessHandle:
        command = _command_key(argv)
        with self._lock:
            self.call_log.append(list(argv))

        error_key = _best_match(command, self._spawn_errors)
        if error_key is not None:
            raise CommandSpawnError(f"Cannot start '{argv[0]}': {self._spawn_errors[error_key]}")

        stream_key = _best_match(command, self._streams)
        script = self._streams[stream_key] if stream_key is not None else [Exited(0)]
        handle = MockProcessHandle(list(argv), script)
        with self._lock:
            self.spawned.append(handle)
        return handle


def _command_key(argv: Sequence[str]) -> str:
    return " ".join(argv[1:])


def _best_match(command: str, table: dict) -> str | None:
    matches = [key for key in table if command.startswith(key)]
    return max(matches, key=len) if matches else None
