"""
BoardConfig — which board, which port, which baud rate.

Persisted to ``.arduino_config.yml`` in the sketch directory. The
orchestrator and monitor hold a reference to the same instance, so a
setter that assigns a field is seen by every reader.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

DEFAULT_BOARD = "arduino:avr:uno"
DEFAULT_PORT = "/dev/ttyACM0"
DEFAULT_BAUDRATE = 115200


class BoardConfig(BaseModel):
    """Target board (FQBN), serial port and monitor baud rate."""

    model_config = ConfigDict(validate_assignment=True)

    board: str = DEFAULT_BOARD
    port: str = DEFAULT_PORT
    baudrate: int = DEFAULT_BAUDRATE

    @field_validator("board", "port", mode="before")
    @classmethod
    def _strip_identifier(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            if not value:
                raise ValueError("must not be empty")
        return value

    @field_validator("baudrate", mode="before")
    @classmethod
    def _parse_baudrate(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            if not value.isdigit():
                raise ValueError(f"invalid baud rate: {value!r}")
            value = int(value)
        if isinstance(value, int) and not isinstance(value, bool) and value <= 0:
            raise ValueError(f"baud rate must be positive, got {value}")
        return value

    def summary_lines(self) -> list[str]:
        """Lines shown by the status operation."""
        return [
            f"Board: {self.board}",
            f"Port: {self.port}",
            f"Baudrate: {self.baudrate}",
        ]
