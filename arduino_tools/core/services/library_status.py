"""
Library status resolver — installed / outdated / not installed.

Cross-references the catalog against two local toolchain queries, both
run on every ``resolve()`` because installs can happen between calls:

    arduino-cli lib list --format json   →  {name: installed_version}
    arduino-cli outdated --format json   →  {name: latest_version}

A query that fails or returns garbage counts as an empty set. The
picker still opens; items just lean towards "not installed".
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable

from arduino_tools.adapters.shell.command import ShellCommandAdapter
from arduino_tools.core.models.library import CatalogEntry, LibraryStatus, ResolvedItem
from arduino_tools.core.services.toolchain import Toolchain

logger = logging.getLogger(__name__)

QUERY_TIMEOUT_S = 60

INSTALLED_MARK = "✅"
OUTDATED_MARK = "🔄"


# ── Pure helpers ────────────────────────────────────────────────


def classify(name: str, installed: dict[str, str], outdated: dict[str, str]) -> LibraryStatus:
    """Status of ``name`` given the two sets."""
    if name not in installed:
        return LibraryStatus.NOT_INSTALLED
    if name in outdated:
        return LibraryStatus.OUTDATED
    return LibraryStatus.INSTALLED


def label_for(name: str, status: LibraryStatus) -> str:
    """Picker label, e.g. ``"🔄 ✅ Servo"``."""
    if status == LibraryStatus.OUTDATED:
        return f"{OUTDATED_MARK} {INSTALLED_MARK} {name}"
    if status == LibraryStatus.INSTALLED:
        return f"{INSTALLED_MARK} {name}"
    return name


def filter_items(items: Iterable[ResolvedItem], query: str | None) -> list[ResolvedItem]:
    """Case-insensitive substring match on the library name."""
    if not query or not query.strip():
        return list(items)
    needle = query.strip().lower()
    return [item for item in items if needle in item.name.lower()]


def _load_json(raw: str, what: str) -> dict | None:
    try:
        data = json.loads(raw) if raw.strip() else {}
    except json.JSONDecodeError as e:
        logger.warning("Failed to parse %s output: %s", what, e)
        return None
    if not isinstance(data, dict):
        logger.warning("Unexpected %s output: top level is %s", what, type(data).__name__)
        return None
    return data


def parse_installed(raw: str) -> dict[str, str]:
    """``installed_libraries[].library.{name,version}`` → name → version."""
    data = _load_json(raw, "installed libraries")
    if data is None:
        return {}
    entries = _list_field(data, "installed_libraries", "installed libraries")
    if entries is None:
        return {}

    installed: dict[str, str] = {}
    for entry in entries:
        library = entry.get("library") if isinstance(entry, dict) else None
        if not isinstance(library, dict):
            continue
        name = library.get("name")
        if isinstance(name, str) and name:
            installed[name] = str(library.get("version") or "")
    return installed


def parse_outdated(raw: str) -> dict[str, str]:
    """``libraries[].{library.name, release.version}`` → name → latest."""
    data = _load_json(raw, "outdated libraries")
    if data is None:
        return {}
    entries = _list_field(data, "libraries", "outdated libraries")
    if entries is None:
        return {}

    outdated: dict[str, str] = {}
    for entry in entries:
        name = _dig(entry, "library", "name")
        latest = _dig(entry, "release", "version")
        if name and latest:
            outdated[str(name)] = str(latest)
        else:
            logger.warning("Missing library name or latest version for entry: %r", entry)
    return outdated


def _list_field(data: dict, key: str, what: str) -> list | None:
    """``data[key]`` as a list; missing or null is empty, anything else None."""
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        logger.warning("Unexpected %s output: %r is %s", what, key, type(value).__name__)
        return None
    return value


def _dig(entry: Any, section: str, key: str) -> Any:
    if not isinstance(entry, dict):
        return None
    inner = entry.get(section)
    return inner.get(key) if isinstance(inner, dict) else None


# ── Resolver ────────────────────────────────────────────────────


class StatusResolver:
    """Compute ``ResolvedItem``s for a catalog."""

    def __init__(self, runner: ShellCommandAdapter, toolchain: Toolchain | None = None):
        self._runner = runner
        self._toolchain = toolchain or Toolchain()

    def installed_libraries(self) -> dict[str, str]:
        receipt = self._runner.run(
            self._toolchain.lib_list(), action_id="lib-list", timeout=QUERY_TIMEOUT_S,
        )
        if not receipt.ok:
            logger.warning("Failed to fetch installed libraries: %s", receipt.error)
            return {}
        return parse_installed(receipt.output)

    def outdated_libraries(self) -> dict[str, str]:
        receipt = self._runner.run(
            self._toolchain.outdated(), action_id="outdated", timeout=QUERY_TIMEOUT_S,
        )
        if not receipt.ok:
            logger.warning("Failed to fetch outdated libraries: %s", receipt.error)
            return {}
        return parse_outdated(receipt.output)

    def resolve(self, catalog: Iterable[CatalogEntry]) -> list[ResolvedItem]:
        """Resolve every named entry, keeping catalog order."""
        installed = self.installed_libraries()
        outdated = self.outdated_libraries()

        items: list[ResolvedItem] = []
        skipped = 0
        for entry in catalog:
            if entry.name is None:
                skipped += 1
                continue
            status = classify(entry.name, installed, outdated)
            items.append(ResolvedItem(
                name=entry.name,
                label=label_for(entry.name, status),
                status=status,
                installed_version=installed.get(entry.name),
                latest_version=outdated.get(entry.name) if status == LibraryStatus.OUTDATED else None,
            ))

        if skipped:
            logger.debug("Skipped %d catalog entries without a name", skipped)
        return items
