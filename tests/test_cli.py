"""
Tests for CLI commands — global options and every command group, on a mock toolchain.
"""

import json
import time
from pathlib import Path

import pytest
import yaml
from click.testing import CliRunner

from arduino_tools.adapters.mock import MockShellAdapter
from arduino_tools.core.config.loader import BOARD_CONFIG_FILE
from arduino_tools.core.models.process import Exited, Stderr, Stdout
from arduino_tools.main import cli


@pytest.fixture
def config_file(sketch_dir: Path) -> Path:
    path = sketch_dir / BOARD_CONFIG_FILE
    path.write_text("board: arduino:avr:uno\nport: /dev/ttyACM0\nbaudrate: 115200\n")
    return path


def _invoke(config_file: Path, runner: MockShellAdapter, args: list[str], input: str | None = None):
    obj = {"runner": runner, "cache_path": _cache_path(config_file)}
    return CliRunner().invoke(cli, ["--config", str(config_file), *args], obj=obj, input=input)


def _cache_path(config_file: Path) -> Path:
    return config_file.parent.parent / "cache" / "libs.json"


def _write_catalog(config_file: Path, fetched_at: float, entries: list[dict]) -> Path:
    path = _cache_path(config_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({"fetched_at": fetched_at, "entries": entries}))
    return path


class TestCLIGlobal:
    def test_help(self):
        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "Arduino Tools" in result.output
        for command in ("compile", "upload", "monitor", "libs", "boards", "ports", "baud", "setup"):
            assert command in result.output

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output


class TestStatus:
    def test_status(self, config_file, mock_runner):
        result = _invoke(config_file, mock_runner, ["status"])
        assert result.exit_code == 0
        assert "Board: arduino:avr:uno" in result.output
        assert "Baudrate: 115200" in result.output

    def test_status_json(self, config_file, mock_runner):
        result = _invoke(config_file, mock_runner, ["status", "--json"])
        data = json.loads(result.output)
        assert data["port"] == "/dev/ttyACM0"
        assert data["pipeline"] == "idle"


class TestBuildCommands:
    def test_compile_streams_output(self, config_file, mock_runner):
        mock_runner.set_stream("compile", [Stdout("Sketch uses 924 bytes\n"), Exited(0)])
        result = _invoke(config_file, mock_runner, ["compile"])
        assert result.exit_code == 0
        assert "Sketch uses 924 bytes" in result.output
        assert "--- Code checked successfully. ---" in result.output

    def test_compile_failure_exit_code(self, config_file, mock_runner):
        mock_runner.set_stream("compile", [Stderr("oops\n"), Exited(1)])
        result = _invoke(config_file, mock_runner, ["compile"])
        assert result.exit_code == 1
        assert "Error: oops" in result.output
        assert "--- Code check failed. ---" in result.output

    def test_compile_json(self, config_file, mock_runner):
        mock_runner.set_stream("compile", [Stdout("ok\n"), Exited(0)])
        result = _invoke(config_file, mock_runner, ["compile", "--json"])
        data = json.loads(result.output)
        assert data["ok"] is True
        assert data["output"] == ["ok", "--- Code checked successfully. ---"]

    def test_upload_then_monitor(self, config_file, mock_runner):
        mock_runner.set_stream("monitor", [Stdout("hello\n"), Exited(0)])
        result = _invoke(config_file, mock_runner, ["upload"])
        assert result.exit_code == 0
        out = result.output
        assert out.index("Arduino Upload and Serial Monitor") < out.index("--- Upload Complete ---")
        assert out.index("--- Upload Complete ---") < out.index("hello")
        assert "--- Monitor Closed (exit 0) ---" in out

    def test_upload_no_monitor(self, config_file, mock_runner):
        result = _invoke(config_file, mock_runner, ["upload", "--no-monitor"])
        assert result.exit_code == 0
        assert not mock_runner.calls_matching("monitor")

    def test_upload_failure(self, config_file, mock_runner):
        mock_runner.set_stream("upload", [Exited(1)])
        result = _invoke(config_file, mock_runner, ["upload"])
        assert result.exit_code == 1
        assert "--- Upload Failed ---" in result.output
        assert "--- Ctrl-C to exit ---" in result.output

    def test_monitor(self, config_file, mock_runner):
        mock_runner.set_stream("monitor", [Stdout("42\n"), Exited(0)])
        result = _invoke(config_file, mock_runner, ["monitor"])
        assert result.exit_code == 0
        assert "Arduino Serial Monitor - Press Ctrl-C to exit" in result.output
        assert "Port: /dev/ttyACM0 | Baudrate: 115200" in result.output
        assert "42" in result.output

    def test_monitor_spawn_failure(self, config_file, mock_runner):
        mock_runner.set_spawn_error("monitor")
        result = _invoke(config_file, mock_runner, ["monitor"])
        assert result.exit_code == 1
        assert "❌" in result.output


class TestBoardCommands:
    def test_baud(self, config_file, mock_runner):
        result = _invoke(config_file, mock_runner, ["baud", "9600"])
        assert result.exit_code == 0
        assert yaml.safe_load(config_file.read_text())["baudrate"] == 9600

    def test_baud_invalid(self, config_file, mock_runner):
        result = _invoke(config_file, mock_runner, ["baud", "fast"])
        assert result.exit_code == 1
        assert "❌" in result.output
        assert yaml.safe_load(config_file.read_text())["baudrate"] == 115200

    def test_boards_list_json(self, config_file, mock_runner):
        mock_runner.set_output("board listall", json.dumps({"boards": [{"name": "Uno", "fqbn": "arduino:avr:uno"}]}))
        result = _invoke(config_file, mock_runner, ["boards", "list", "--json"])
        assert json.loads(result.output) == [{"name": "Uno", "fqbn": "arduino:avr:uno"}]

    def test_boards_select(self, config_file, mock_runner):
        mock_runner.set_output("board listall", json.dumps({"boards": [
            {"name": "Uno", "fqbn": "arduino:avr:uno"},
            {"name": "Mega", "fqbn": "arduino:avr:mega"},
        ]}))
        result = _invoke(config_file, mock_runner, ["boards", "select"], input="2\n")
        assert result.exit_code == 0
        assert yaml.safe_load(config_file.read_text())["board"] == "arduino:avr:mega"

    def test_boards_select_cancel(self, config_file, mock_runner):
        mock_runner.set_output("board listall", json.dumps({"boards": [{"name": "Mega", "fqbn": "arduino:avr:mega"}]}))
        result = _invoke(config_file, mock_runner, ["boards", "select"], input="0\n")
        assert result.exit_code == 0
        assert yaml.safe_load(config_file.read_text())["board"] == "arduino:avr:uno"

    def test_ports_list(self, config_file, mock_runner):
        mock_runner.set_output("board list", "/dev/ttyACM0 serial Serial Port (USB) Arduino Uno\n")
        result = _invoke(config_file, mock_runner, ["ports", "list"])
        assert result.exit_code == 0
        assert "/dev/ttyACM0 ← selected" in result.output

    def test_ports_list_none(self, config_file, mock_runner):
        mock_runner.set_output("board list", "No boards found.")
        result = _invoke(config_file, mock_runner, ["ports", "list"])
        assert result.exit_code == 1
        assert "No connected COM ports found." in result.output

    def test_port_pattern_option(self, config_file, mock_runner):
        mock_runner.set_output("board list", "/dev/serial0 serial Serial Port\n")
        result = _invoke(config_file, mock_runner, ["--port-pattern", r"^/dev/serial\d", "ports", "list"])
        assert result.exit_code == 0
        assert "/dev/serial0" in result.output
        assert _invoke(config_file, mock_runner, ["ports", "list"]).exit_code == 1

    def test_ports_raw(self, config_file, mock_runner):
        mock_runner.set_output("board list", "Port Protocol\n/dev/ttyACM0 serial")
        result = _invoke(config_file, mock_runner, ["ports", "raw"])
        assert "Port Protocol" in result.output

    def test_setup(self, config_file, mock_runner):
        mock_runner.set_output("board listall", json.dumps({"boards": [{"name": "Nano", "fqbn": "arduino:avr:nano"}]}))
        mock_runner.set_output("board list", "COM4 serial Serial Port (USB) Unknown\n")
        result = _invoke(config_file, mock_runner, ["setup"], input="1\n1\n")
        assert result.exit_code == 0
        saved = yaml.safe_load(config_file.read_text())
        assert (saved["board"], saved["port"]) == ("arduino:avr:nano", "COM4")


class TestLibsCommands:
    def _script(self, mock_runner):
        mock_runner.set_output("lib search", json.dumps({"libraries": [{"name": "Servo"}, {"name": "WiFi"}]}))
        mock_runner.set_output("lib list", json.dumps({
            "installed_libraries": [{"library": {"name": "WiFi", "version": "1.0"}}],
        }))
        mock_runner.set_output("outdated", "{}")

    def test_picker_install(self, config_file, mock_runner):
        self._script(mock_runner)
        result = _invoke(config_file, mock_runner, ["libs"], input="1\n0\n")
        assert result.exit_code == 0
        assert "✅ WiFi" in result.output
        assert "Library 'Servo' installed successfully." in result.output
        assert mock_runner.calls_matching("lib install Servo")
        assert result.output.count("Arduino Libraries") == 2

    def test_picker_no_catalog(self, config_file, mock_runner):
        mock_runner.set_failure("lib search")
        result = _invoke(config_file, mock_runner, ["libs"])
        assert result.exit_code == 1
        assert "No library catalog available" in result.output

    def test_failed_refresh_keeps_cached_catalog(self, config_file, mock_runner):
        self._script(mock_runner)
        mock_runner.set_failure("lib search", error="network down")
        cache_file = _write_catalog(config_file, time.time() - 3600, [{"name": "Servo"}])
        before = cache_file.read_text()

        result = _invoke(config_file, mock_runner, ["libs", "--refresh"], input="0\n")
        assert result.exit_code == 0
        assert "Failed to fetch libraries" in result.output
        assert "1. Servo" in result.output
        assert cache_file.read_text() == before

    def test_failed_refresh_keeps_stale_catalog(self, config_file, mock_runner):
        mock_runner.set_failure("lib search", error="network down")
        cache_file = _write_catalog(config_file, time.time() - 10 * 86400, [{"name": "Servo"}])
        before = cache_file.read_text()

        result = _invoke(config_file, mock_runner, ["libs", "--refresh"])
        assert result.exit_code == 1
        assert cache_file.read_text() == before

    def test_search_json(self, config_file, mock_runner):
        self._script(mock_runner)
        result = _invoke(config_file, mock_runner, ["libs", "--search", "wi", "--json"])
        data = json.loads(result.output)
        assert [(d["name"], d["status"]) for d in data] == [("WiFi", "installed")]

    def test_install_failure(self, config_file, mock_runner):
        mock_runner.set_failure("lib install", error="library not found")
        result = _invoke(config_file, mock_runner, ["libs", "install", "Nope"])
        assert result.exit_code == 1
        assert "library not found" in result.output

    def test_refresh(self, config_file, mock_runner):
        self._script(mock_runner)
        result = _invoke(config_file, mock_runner, ["libs", "refresh"])
        assert result.exit_code == 0
        assert "Cached 2 libraries" in result.output

    def test_outdated(self, config_file, mock_runner):
        self._script(mock_runner)
        mock_runner.set_output("outdated", json.dumps({
            "libraries": [{"library": {"name": "WiFi"}, "release": {"version": "1.1"}}],
        }))
        result = _invoke(config_file, mock_runner, ["libs", "outdated"])
        assert "WiFi" in result.output
        assert "1.0 → 1.1" in result.output
