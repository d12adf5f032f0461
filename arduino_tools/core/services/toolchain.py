"""
Toolchain commands — argv for every arduino-cli invocation we make.

Services never assemble command lines by hand; they ask a ``Toolchain``.
The executable defaults to ``arduino-cli`` on PATH and can be pointed
elsewhere with ``ARDUINO_TOOLS_CLI``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_CLI = "arduino-cli"
CLI_ENV_VAR = "ARDUINO_TOOLS_CLI"


def cli_executable() -> str:
    """The arduino-cli executable to run."""
    return os.environ.get(CLI_ENV_VAR) or DEFAULT_CLI


@dataclass(frozen=True)
class Toolchain:
    """argv builders for arduino-cli."""

    cli: str = field(default_factory=cli_executable)

    # ── Libraries ───────────────────────────────────────────────

    def lib_search(self) -> list[str]:
        return [self.cli, "lib", "search", "--format", "json"]

    def lib_list(self) -> list[str]:
        return [self.cli, "lib", "list", "--format", "json"]

    def outdated(self) -> list[str]:
        return [self.cli, "outdated", "--format", "json"]

    def lib_install(self, name: str) -> list[str]:
        return [self.cli, "lib", "install", name]

    # ── Boards ──────────────────────────────────────────────────

    def board_listall(self) -> list[str]:
        return [self.cli, "board", "listall", "--format", "json"]

    def board_list(self) -> list[str]:
        return [self.cli, "board", "list"]

    # ── Build chain ─────────────────────────────────────────────

    def compile(self, board: str, target: Path | str) -> list[str]:
        return [self.cli, "compile", "--fqbn", board, str(target)]

    def upload(self, board: str, port: str, target: Path | str) -> list[str]:
        return [self.cli, "upload", "-p", port, "--fqbn", board, str(target)]

    def monitor(self, port: str, baudrate: int) -> list[str]:
        return [self.cli, "monitor", "-p", port, "-c", f"baudrate={baudrate}"]
