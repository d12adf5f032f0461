"""
Process and pipeline models — streamed output events and stage results.

A spawned command is observed as an ordered stream of events:

    Stdout(line) | Stderr(line) ... Exited(code)

``line`` is the raw chunk read from the pipe (newline included), so an
empty output line stays distinguishable from "no output". Exactly one
``Exited`` ends every stream.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Union


@dataclass(frozen=True)
class Stdout:
    """A chunk read from the child's stdout."""

    line: str


@dataclass(frozen=True)
class Stderr:
    """A chunk read from the child's stderr."""

    line: str


@dataclass(frozen=True)
class Exited:
    """The child has exited and both pipes are drained."""

    code: int


ProcessEvent = Union[Stdout, Stderr, Exited]


class StageName(str, Enum):
    """One subprocess step of the build chain."""

    COMPILE = "compile"
    UPLOAD = "upload"
    MONITOR = "monitor"


class PipelineState(str, Enum):
    """Orchestrator state.

    idle → compiling → uploading → (monitoring | failed) → idle
    """

    IDLE = "idle"
    COMPILING = "compiling"
    UPLOADING = "uploading"
    MONITORING = "monitoring"
    FAILED = "failed"


@dataclass
class StageResult:
    """Result of one stage."""

    name: StageName
    status: str = "pending"             # "done" | "error" | "cancelled"
    exit_code: int | None = None
    duration_ms: int = 0
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.status == "done"


@dataclass
class PipelineResult:
    """Outcome of a whole chain."""

    target: str
    upload: bool = False
    stages: list[StageResult] = field(default_factory=list)
    ok: bool = False
    cancelled: bool = False
    monitor_started: bool = False
    final_state: PipelineState = PipelineState.IDLE
    total_duration_ms: int = 0

    def stage(self, name: StageName) -> StageResult | None:
        """Look up a stage result by name."""
        for stage in self.stages:
            if stage.name == name:
                return stage
        return None

    def to_dict(self) -> dict:
        """Convert to a JSON-serializable dictionary."""
        return {
            "target": self.target,
            "upload": self.upload,
            "ok": self.ok,
            "cancelled": self.cancelled,
            "monitor_started": self.monitor_started,
            "state": self.final_state.value,
            "total_ms": self.total_duration_ms,
            "stages": [
                {
                    "name": s.name.value,
                    "status": s.status,
                    "exit_code": s.exit_code,
                    "duration_ms": s.duration_ms,
                    "error": s.error,
                }
                for s in self.stages
            ],
        }
