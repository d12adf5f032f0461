"""
Adapter base — the protocol contract between services and tools.

Services never call ``subprocess`` themselves; they go through an
adapter. Two shapes of call exist:

    execute(context) / run(argv)  → Receipt   (captured, blocking)
    spawn(argv)                   → handle    (streamed, non-blocking)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterator, Protocol

from pydantic import BaseModel

from arduino_tools.core.models.action import Action, Receipt
from arduino_tools.core.models.process import ProcessEvent


class ExecutionContext(BaseModel):
    """Everything an adapter needs to execute an action."""

    action: Action

    @property
    def working_dir(self) -> str | None:
        """Directory to run in; None means the caller's cwd."""
        return self.action.params.get("cwd")


class ProcessHandle(Protocol):
    """A running child process observed as an event stream."""

    argv: list[str]

    @property
    def running(self) -> bool: ...

    def events(self) -> Iterator[ProcessEvent]: ...

    def terminate(self) -> None: ...


class Adapter(ABC):
    """Abstract base class for all adapters.

    ``execute`` NEVER raises — failures are captured in the Receipt.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The adapter identifier (e.g., 'shell', 'mock')."""

    @abstractmethod
    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        """Validate that the action can be executed.

        Returns:
            (is_valid, error_message). error_message is empty if valid.
        """

    @abstractmethod
    def execute(self, context: ExecutionContext) -> Receipt:
        """Execute the action and return a receipt.

        MUST never raise exceptions. All failures are captured
        in the Receipt with status='failed'.
        """

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
