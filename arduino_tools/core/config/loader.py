"""
Configuration loader — reads and writes ``.arduino_config.yml``.

The file lives next to the sketch and holds a single YAML mapping:

    board: arduino:avr:uno
    port: /dev/ttyACM0
    baudrate: 115200

A missing file is created with defaults. A file that cannot be parsed
or validated is ignored (defaults are used in memory) and left on disk
until the next setter overwrites it.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from arduino_tools.core.models.board import BoardConfig
from arduino_tools.core.persistence.atomic import atomic_write_text

logger = logging.getLogger(__name__)

# Default config filename
BOARD_CONFIG_FILE = ".arduino_config.yml"


class ConfigError(Exception):
    """Raised when the board configuration cannot be persisted."""


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for .arduino_config.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to the config file, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / BOARD_CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def default_config_path(project_root: Path) -> Path:
    """Where the config lives for a sketch directory."""
    return project_root / BOARD_CONFIG_FILE


def load_board_config(path: Path) -> BoardConfig:
    """Load the board config, creating it with defaults if missing.

    Never raises on bad content: parse or validation failures fall back
    to the defaults.
    """
    if not path.is_file():
        logger.info("Config file not found. Creating %s with default settings.", path)
        config = BoardConfig()
        try:
            save_board_config(config, path)
        except ConfigError as e:
            logger.warning("%s", e)
        return config

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Cannot read config %s: %s; using defaults", path, e)
        return BoardConfig()

    if data is None:
        data = {}
    if not isinstance(data, dict):
        logger.warning(
            "Expected a YAML mapping in %s, got %s; using defaults",
            path, type(data).__name__,
        )
        return BoardConfig()

    defaults = BoardConfig()
    merged = {
        "board": data.get("board") or defaults.board,
        "port": data.get("port") or defaults.port,
        "baudrate": data.get("baudrate") or defaults.baudrate,
    }
    try:
        config = BoardConfig.model_validate(merged)
    except ValidationError as e:
        logger.warning("Invalid config in %s: %s; using defaults", path, e)
        return BoardConfig()

    logger.info("Config loaded from file: %s", path)
    return config


def save_board_config(config: BoardConfig, path: Path) -> None:
    """Overwrite the config file with ``config``.

    Raises:
        ConfigError: If the file cannot be written.
    """
    content = yaml.safe_dump(config.model_dump(), sort_keys=False)
    try:
        atomic_write_text(path, content, prefix=".arduino_config_")
    except OSError as e:
        raise ConfigError(f"Cannot write config file {path}: {e}") from e
