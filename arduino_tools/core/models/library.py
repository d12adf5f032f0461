"""
Library models — catalog entries, the cached snapshot, resolved status.

``CacheRecord`` is what lands on disk. ``ResolvedItem`` is derived every
time the picker opens and is never persisted.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class LibraryStatus(str, Enum):
    """Installed/outdated classification of a catalog entry."""

    NOT_INSTALLED = "not_installed"
    INSTALLED = "installed"
    OUTDATED = "outdated"


class CatalogEntry(BaseModel):
    """One library from ``arduino-cli lib search``.

    ``name`` is ``None`` when the raw record has no usable name; such
    entries stay in the cache but are skipped by the resolver.
    """

    model_config = ConfigDict(frozen=True)

    name: str | None = None
    raw: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_raw(cls, raw: Any) -> CatalogEntry:
        if not isinstance(raw, dict):
            return cls(name=None, raw={})
        name = raw.get("name")
        if not isinstance(name, str) or not name:
            name = None
        return cls(name=name, raw=raw)


class CacheRecord(BaseModel):
    """Time-stamped catalog snapshot (one per cache file)."""

    fetched_at: float
    entries: list[Any] = Field(default_factory=list)

    def age(self, now: float) -> float:
        """Seconds since the snapshot was fetched."""
        return now - self.fetched_at

    def is_fresh(self, now: float, ttl: float) -> bool:
        """Valid for reads: fetched within ``ttl`` and not in the future."""
        age = self.age(now)
        return 0 <= age < ttl

    def catalog(self) -> list[CatalogEntry]:
        return [CatalogEntry.from_raw(raw) for raw in self.entries]


class ResolvedItem(BaseModel):
    """A catalog entry with its computed status, as shown by the picker."""

    name: str
    label: str
    status: LibraryStatus
    installed_version: str | None = None
    latest_version: str | None = None
