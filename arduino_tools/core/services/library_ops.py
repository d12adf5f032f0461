"""
Library operations — what happens after the user picks a library.

    outdated      → ``arduino-cli lib install NAME`` (update)
    not_installed → ``arduino-cli lib install NAME`` (install)
    installed     → nothing to run, reported as up to date

The result is only reported as a success when the install command
exits 0. Status is not cached, so the next picker open shows the
outcome either way.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from arduino_tools.adapters.shell.command import ShellCommandAdapter
from arduino_tools.core.models.library import LibraryStatus, ResolvedItem
from arduino_tools.core.services.library_cache import CatalogCache
from arduino_tools.core.services.library_status import StatusResolver, filter_items
from arduino_tools.core.services.toolchain import Toolchain

logger = logging.getLogger(__name__)

INSTALL_TIMEOUT_S = 600


@dataclass
class LibraryActionResult:
    """Outcome of acting on one picked library."""

    name: str
    action: str                 # "install" | "update" | "none"
    ok: bool
    message: str
    error: str = ""

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "action": self.action,
            "ok": self.ok,
            "message": self.message,
            "error": self.error,
        }


class LibraryManager:
    """Catalog → status → install/update."""

    def __init__(
        self,
        runner: ShellCommandAdapter,
        cache: CatalogCache,
        resolver: StatusResolver | None = None,
        toolchain: Toolchain | None = None,
    ):
        self._runner = runner
        self._toolchain = toolchain or Toolchain()
        self.cache = cache
        self.resolver = resolver or StatusResolver(runner, self._toolchain)

    def catalog_items(self, query: str | None = None) -> list[ResolvedItem] | None:
        """Resolved picker items, or None when no catalog is available."""
        record = self.cache.load()
        if record is None:
            return None
        items = self.resolver.resolve(record.catalog())
        return filter_items(items, query)

    def outdated_items(self) -> list[ResolvedItem]:
        """Installed libraries that have a newer release."""
        outdated = self.resolver.outdated_libraries()
        if not outdated:
            return []
        installed = self.resolver.installed_libraries()
        items = []
        for name, latest in sorted(outdated.items()):
            if name not in installed:
                continue
            items.append(ResolvedItem(
                name=name,
                label=f"{name} {installed[name]} → {latest}",
                status=LibraryStatus.OUTDATED,
                installed_version=installed[name] or None,
                latest_version=latest,
            ))
        return items

    def apply_choice(self, item: ResolvedItem) -> LibraryActionResult:
        """Install or update ``item`` according to its status."""
        if item.status == LibraryStatus.OUTDATED:
            logger.info("Updating library: %s", item.name)
            return self.install(item.name, action="update")
        if item.status == LibraryStatus.NOT_INSTALLED:
            logger.info("Installing library: %s", item.name)
            return self.install(item.name, action="install")
        return LibraryActionResult(
            name=item.name,
            action="none",
            ok=True,
            message=f"Library '{item.name}' is already installed and up to date.",
        )

    def install(self, name: str, action: str = "install") -> LibraryActionResult:
        """Run ``lib install NAME`` and gate the result on its exit code."""
        name = name.strip()
        if not name:
            return LibraryActionResult(
                name=name, action=action, ok=False,
                message="Library name is required.", error="empty name",
            )

        receipt = self._runner.run(
            self._toolchain.lib_install(name),
            action_id=f"lib-{action}",
            timeout=INSTALL_TIMEOUT_S,
        )
        past = "updated" if action == "update" else "installed"
        if receipt.ok:
            return LibraryActionResult(
                name=name, action=action, ok=True,
                message=f"Library '{name}' {past} successfully.",
            )

        logger.warning("lib install %s failed: %s", name, receipt.error)
        return LibraryActionResult(
            name=name, action=action, ok=False,
            message=f"Library '{name}' could not be {past}.",
            error=receipt.error or "",
        )
