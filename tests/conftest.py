"""
Shared test fixtures and configuration.
"""

import time
from pathlib import Path

import pytest

from arduino_tools.adapters.mock import MockShellAdapter
from arduino_tools.core.models.board import BoardConfig
from arduino_tools.core.services.monitor import MonitorManager
from arduino_tools.core.services.surfaces import BufferSink
from arduino_tools.core.services.toolchain import Toolchain


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep caches out of $HOME and pin the executable name."""
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "xdg-cache"))
    monkeypatch.delenv("ARDUINO_TOOLS_CLI", raising=False)


@pytest.fixture
def sketch_dir(tmp_path: Path) -> Path:
    """A sketch directory with one .ino file."""
    sketch = tmp_path / "Blink"
    sketch.mkdir()
    (sketch / "Blink.ino").write_text("void setup() {}\nvoid loop() {}\n")
    return sketch


@pytest.fixture
def mock_runner() -> MockShellAdapter:
    return MockShellAdapter()


@pytest.fixture
def toolchain() -> Toolchain:
    return Toolchain(cli="arduino-cli")


@pytest.fixture
def board() -> BoardConfig:
    return BoardConfig(board="arduino:avr:nano", port="/dev/ttyUSB0", baudrate=9600)


class SinkRecorder:
    """Sink factory that remembers every sink it created."""

    def __init__(self):
        self.sinks: list[BufferSink] = []

    def __call__(self, title: str = "") -> BufferSink:
        sink = BufferSink(title)
        self.sinks.append(sink)
        return sink


@pytest.fixture
def sinks() -> SinkRecorder:
    return SinkRecorder()


@pytest.fixture
def monitor_manager(mock_runner, sinks, toolchain) -> MonitorManager:
    manager = MonitorManager(mock_runner, sinks, toolchain=toolchain)
    yield manager
    manager.stop()


def wait_for(predicate, timeout: float = 5.0, interval: float = 0.01) -> bool:
    """Poll ``predicate`` until it is true or ``timeout`` expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()
