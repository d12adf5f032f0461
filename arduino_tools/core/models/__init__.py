"""
Domain models for arduino-tools.

All models are re-exported here for convenient access:

    from arduino_tools.core.models import BoardConfig, CacheRecord, Receipt
"""

from arduino_tools.core.models.action import Action, Receipt
from arduino_tools.core.models.board import BoardConfig
from arduino_tools.core.models.library import (
    CacheRecord,
    CatalogEntry,
    LibraryStatus,
    ResolvedItem,
)
from arduino_tools.core.models.process import (
    Exited,
    PipelineResult,
    PipelineState,
    ProcessEvent,
    StageName,
    StageResult,
    Stderr,
    Stdout,
)

__all__ = [
    # action.py
    "Action",
    "Receipt",
    # board.py
    "BoardConfig",
    # library.py
    "CacheRecord",
    "CatalogEntry",
    "LibraryStatus",
    "ResolvedItem",
    # process.py
    "Exited",
    "PipelineResult",
    "PipelineState",
    "ProcessEvent",
    "StageName",
    "StageResult",
    "Stderr",
    "Stdout",
]
