"""
Library catalog cache — a time-stamped snapshot of ``lib search``.

The full Arduino library index is large and slow to fetch, so it is
stored in one JSON file and reused for a week:

    {"fetched_at": 1739648400.0, "entries": [{...}, ...]}

Reads
    ``load()`` returns the stored record when it parses and is younger
    than the TTL. Anything else (missing, corrupt, stale) triggers a
    synchronous ``refresh()``.

Refresh
    Runs the catalog query, and on success overwrites the file
    wholesale. On any failure it returns None and leaves the file alone;
    None means "no data", never "use whatever is on disk".

Thread safety
─────────────
One refresh per cache file at a time. A caller that waited on the lock
re-reads the file first and returns the record the other caller just
wrote instead of spawning a second query.
"""

from __future__ import annotations

import json
import logging
import os
import threading
import time
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from arduino_tools.adapters.shell.command import ShellCommandAdapter
from arduino_tools.core.models.library import CacheRecord
from arduino_tools.core.persistence.atomic import atomic_write_text
from arduino_tools.core.services.toolchain import Toolchain

logger = logging.getLogger(__name__)

CACHE_FILE_NAME = "arduino_libs.json"
CACHE_TTL_SECONDS = 7 * 24 * 60 * 60  # 7 days
CATALOG_TIMEOUT_S = 120

# ── Thread safety ───────────────────────────────────────────────
# Per-file lock, shared by every CatalogCache pointing at the same path.
_path_locks: dict[str, threading.Lock] = {}
_path_locks_guard = threading.Lock()


def _get_path_lock(path: Path) -> threading.Lock:
    """Get or create the refresh lock for a cache file."""
    key = str(path.resolve())
    with _path_locks_guard:
        if key not in _path_locks:
            _path_locks[key] = threading.Lock()
        return _path_locks[key]


def default_cache_path() -> Path:
    """``$XDG_CACHE_HOME/arduino-tools/arduino_libs.json``."""
    base = os.environ.get("XDG_CACHE_HOME") or str(Path.home() / ".cache")
    return Path(base) / "arduino-tools" / CACHE_FILE_NAME


def parse_catalog(raw: str) -> list | None:
    """Extract the entry list from ``lib search --format json`` output.

    Returns None if the output is not a JSON object or its
    ``libraries`` field is not a list. A missing or null
    ``libraries`` is an empty catalog.
    """
    try:
        data = json.loads(raw) if raw.strip() else None
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None
    libraries = data.get("libraries")
    if libraries is None:
        return []
    if not isinstance(libraries, list):
        return None
    return libraries


class CatalogCache:
    """TTL cache of the remote library catalog."""

    def __init__(
        self,
        runner: ShellCommandAdapter,
        *,
        path: Path | None = None,
        toolchain: Toolchain | None = None,
        ttl: float = CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self._runner = runner
        self.path = path or default_cache_path()
        self._toolchain = toolchain or Toolchain()
        self.ttl = ttl
        self._clock = clock
        self._lock = _get_path_lock(self.path)

    # ── Reads ───────────────────────────────────────────────────

    def read(self) -> CacheRecord | None:
        """The record on disk, or None if missing or unparseable.

        Does not look at age and never refreshes.
        """
        if not self.path.is_file():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return CacheRecord.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning("Failed to parse cached libraries in %s: %s", self.path, e)
            return None

    def is_fresh(self, record: CacheRecord) -> bool:
        return record.is_fresh(self._clock(), self.ttl)

    def load(self) -> CacheRecord | None:
        """Fresh record from disk, refreshing first if needed."""
        record = self.read()
        if record is not None and self.is_fresh(record):
            logger.debug("Loading libraries from cache %s", self.path)
            return record

        with self._lock:
            record = self.read()
            if record is not None and self.is_fresh(record):
                logger.debug("Catalog refreshed by a concurrent caller")
                return record
            logger.info("Cache expired or missing, fetching new data.")
            return self._refresh_locked()

    # ── Writes ──────────────────────────────────────────────────

    def refresh(self) -> CacheRecord | None:
        """Fetch the catalog now and replace the stored record."""
        with self._lock:
            return self._refresh_locked()

    def _refresh_locked(self) -> CacheRecord | None:
        logger.info("Fetching libraries from %s...", self._toolchain.cli)
        receipt = self._runner.run(
            self._toolchain.lib_search(),
            action_id="lib-search",
            timeout=CATALOG_TIMEOUT_S,
        )
        if not receipt.ok:
            logger.warning("Failed to fetch libraries: %s", receipt.error)
            return None

        entries = parse_catalog(receipt.output)
        if entries is None:
            logger.warning("Failed to parse library catalog JSON")
            return None

        record = CacheRecord(fetched_at=self._clock(), entries=entries)
        try:
            atomic_write_text(
                self.path,
                json.dumps(record.model_dump(mode="json"), ensure_ascii=False),
                prefix=".arduino_libs_",
            )
        except OSError as e:
            # The data is good; only persisting it failed.
            logger.warning("Cannot write library cache %s: %s", self.path, e)

        logger.info("Cached %d libraries", len(entries))
        return record

    def invalidate(self) -> bool:
        """Delete the stored record. Returns True if a file was removed."""
        with self._lock:
            try:
                self.path.unlink()
            except FileNotFoundError:
                return False
        logger.info("Library cache invalidated: %s", self.path)
        return True
