"""
Board operations — board catalog, connected ports, config setters.

Port discovery reads the human-readable ``arduino-cli board list``
table and keeps the first column of every line that looks like a serial
device:

    Port         Protocol Type              Board Name  FQBN            Core
    /dev/ttyACM0 serial   Serial Port (USB) Arduino Uno arduino:avr:uno arduino:avr
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from arduino_tools.adapters.shell.command import ShellCommandAdapter
from arduino_tools.core.config.loader import save_board_config
from arduino_tools.core.models.board import BoardConfig
from arduino_tools.core.services.toolchain import Toolchain

logger = logging.getLogger(__name__)

BOARD_QUERY_TIMEOUT_S = 60

DEFAULT_PORT_PATTERNS: tuple[str, ...] = (
    r"^/dev/tty",
    r"^COM",
    r"^/dev/cu.usbmodem",
    r"^/dev/cu.usbserial",
    r"/dev/cu.usbserial-.*",
)


class NoConnectedDeviceError(Exception):
    """``board list`` reported no serial port matching any pattern."""


@dataclass(frozen=True)
class BoardInfo:
    name: str
    fqbn: str

    def to_dict(self) -> dict:
        return {"name": self.name, "fqbn": self.fqbn}


# ── Parsing ─────────────────────────────────────────────────────


def parse_boards(raw: str) -> list[BoardInfo] | None:
    """Parse ``board listall --format json``. None on malformed output."""
    try:
        data = json.loads(raw) if raw.strip() else {}
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None

    entries = data.get("boards")
    if entries is None:
        return []
    if not isinstance(entries, list):
        return None

    boards = []
    for entry in entries:
        if not isinstance(entry, dict) or not entry.get("fqbn"):
            continue
        boards.append(BoardInfo(name=entry.get("name") or "Unknown Board", fqbn=entry["fqbn"]))
    return boards


def match_ports(text: str, patterns: Iterable[str] = DEFAULT_PORT_PATTERNS) -> list[str]:
    """First token of every line matching one of ``patterns``, in order."""
    compiled = [re.compile(p) for p in patterns]
    ports: list[str] = []
    for line in text.splitlines():
        if not line.strip():
            continue
        if any(rx.search(line) for rx in compiled):
            ports.append(line.split()[0])
    return ports


# ── Queries ─────────────────────────────────────────────────────


def list_boards(runner: ShellCommandAdapter, toolchain: Toolchain | None = None) -> list[BoardInfo]:
    """All boards known to the installed cores."""
    toolchain = toolchain or Toolchain()
    receipt = runner.run(
        toolchain.board_listall(), action_id="board-listall", timeout=BOARD_QUERY_TIMEOUT_S,
    )
    if not receipt.ok:
        logger.warning("board listall failed: %s", receipt.error)
        return []

    boards = parse_boards(receipt.output)
    if boards is None:
        logger.warning("Failed to parse JSON output of 'board listall'")
        return []
    return boards


def connected_boards_report(runner: ShellCommandAdapter, toolchain: Toolchain | None = None) -> str:
    """Raw ``board list`` output, or the error text if it failed."""
    toolchain = toolchain or Toolchain()
    receipt = runner.run(
        toolchain.board_list(), action_id="board-list", timeout=BOARD_QUERY_TIMEOUT_S,
    )
    if receipt.ok:
        return receipt.output
    return f"Error: {receipt.error}"


def list_ports(
    runner: ShellCommandAdapter,
    extra_patterns: Iterable[str] = (),
    toolchain: Toolchain | None = None,
) -> list[str]:
    """Serial ports of connected boards.

    Raises:
        NoConnectedDeviceError: If no line matches.
    """
    toolchain = toolchain or Toolchain()
    receipt = runner.run(
        toolchain.board_list(), action_id="board-list", timeout=BOARD_QUERY_TIMEOUT_S,
    )
    if not receipt.ok:
        logger.warning("board list failed: %s", receipt.error)

    patterns = list(DEFAULT_PORT_PATTERNS) + list(extra_patterns)
    ports = match_ports(receipt.output if receipt.ok else "", patterns)
    if not ports:
        raise NoConnectedDeviceError("No connected COM ports found.")
    return ports


# ── Settings ────────────────────────────────────────────────────


class BoardSettings:
    """The single writer of ``BoardConfig``.

    Every setter validates a candidate, saves it and only then assigns
    on the shared instance. A rejected value (``ValidationError``) or a
    failed save (``ConfigError``) leaves config and file as they were.
    """

    def __init__(self, config: BoardConfig, path: Path):
        self.config = config
        self.path = path

    def set_board(self, board: str) -> BoardConfig:
        return self._apply("board", board, "Board")

    def set_port(self, port: str) -> BoardConfig:
        return self._apply("port", port, "Port")

    def set_baudrate(self, baudrate: str | int) -> BoardConfig:
        return self._apply("baudrate", baudrate, "Baud rate")

    def _apply(self, field: str, value: object, what: str) -> BoardConfig:
        candidate = BoardConfig.model_validate({**self.config.model_dump(), field: value})
        save_board_config(candidate, self.path)
        setattr(self.config, field, getattr(candidate, field))
        logger.info("%s set to: %s", what, getattr(self.config, field))
        return self.config
