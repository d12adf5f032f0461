"""Adapters — bindings to the arduino-cli toolchain.

Public re-exports for convenient access.
"""

from arduino_tools.adapters.base import Adapter, ExecutionContext, ProcessHandle
from arduino_tools.adapters.mock import MockProcessHandle, MockShellAdapter
from arduino_tools.adapters.shell.command import CommandSpawnError, ShellCommandAdapter

__all__ = [
    "Adapter",
    "CommandSpawnError",
    "ExecutionContext",
    "MockProcessHandle",
    "MockShellAdapter",
    "ProcessHandle",
    "ShellCommandAdapter",
]
