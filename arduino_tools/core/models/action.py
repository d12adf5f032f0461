"""
Action and Receipt models — the execution contract.

An Action names one captured toolchain run (its argv, optional cwd and
timeout). The shell adapter answers every Action with a Receipt: a
command that exits non-zero, times out or cannot start is a failed
Receipt, never an exception.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


class Action(BaseModel):
    """A captured toolchain run.

    ``params["command"]`` carries the argv list; ``timeout`` and
    ``cwd`` are optional.
    """

    id: str                         # e.g. "lib-search", "board-list"
    params: dict[str, Any] = Field(default_factory=dict)


class Receipt(BaseModel):
    """Outcome of a captured run."""

    adapter: str
    action_id: str
    status: Literal["ok", "failed"] = "ok"
    duration_ms: int = 0

    output: str = ""
    error: str | None = None
    return_code: int | None = None

    # always carries "stderr"; "command", "timeout", "spawn_failed" when known
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @classmethod
    def success(cls, adapter: str, action_id: str, output: str = "", **kwargs: Any) -> Receipt:
        return cls(adapter=adapter, action_id=action_id, status="ok", output=output, **kwargs)

    @classmethod
    def failure(cls, adapter: str, action_id: str, error: str, **kwargs: Any) -> Receipt:
        return cls(adapter=adapter, action_id=action_id, status="failed", error=error, **kwargs)
