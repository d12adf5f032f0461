"""
Display surfaces — the two things the front-end must provide.

``OutputSink``: an append-only, scrollable place for streamed lines
(a terminal, an editor buffer...). ``Picker``: a single-choice list.

``BufferSink`` is the in-process sink: it keeps every line in memory,
which is what lets a monitor window be hidden and shown again without
restarting the serial reader.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Callable, Generic, Sequence, TypeVar

T = TypeVar("T")


class OutputSink(ABC):
    """Append-only line sink owned by the UI layer."""

    @property
    @abstractmethod
    def is_valid(self) -> bool:
        """False once the sink has been torn down."""

    @abstractmethod
    def append(self, lines: Sequence[str]) -> None:
        """Append already-sanitized lines. A no-op on an invalid sink."""

    def show(self) -> None:
        """Bring the sink back into view."""

    @abstractmethod
    def close(self) -> None:
        """Tear the sink down. Idempotent."""


class Picker(ABC, Generic[T]):
    """Single-choice selection surface."""

    @abstractmethod
    def select(
        self,
        items: Sequence[T],
        *,
        prompt: str,
        format_item: Callable[[T], str] = str,
    ) -> T | None:
        """Return the chosen item, or None if the user backed out."""


class BufferSink(OutputSink):
    """In-memory sink. Thread-safe; appends after close are dropped."""

    def __init__(self, title: str = ""):
        self.title = title
        self._lines: list[str] = []
        self._lock = threading.Lock()
        self._closed = False
        self.show_count = 0

    @property
    def is_valid(self) -> bool:
        return not self._closed

    @property
    def lines(self) -> list[str]:
        with self._lock:
            return list(self._lines)

    def append(self, lines: Sequence[str]) -> None:
        with self._lock:
            if self._closed:
                return
            self._lines.extend(lines)

    def show(self) -> None:
        self.show_count += 1

    def close(self) -> None:
        with self._lock:
            self._closed = True

    def __repr__(self) -> str:
        return f"<BufferSink title={self.title!r} lines={len(self._lines)} valid={self.is_valid}>"


class ListPicker(Picker[T]):
    """Picker that answers from a scripted callback (embedding, tests)."""

    def __init__(self, choose: Callable[[Sequence[T]], T | None]):
        self._choose = choose
        self.prompts: list[str] = []

    def select(self, items, *, prompt, format_item=str):
        self.prompts.append(prompt)
        return self._choose(items)
