"""
Tests for library install / update operations.
"""

import json
from pathlib import Path

from arduino_tools.adapters.mock import MockShellAdapter
from arduino_tools.core.models.library import LibraryStatus, ResolvedItem
from arduino_tools.core.services.library_cache import CatalogCache
from arduino_tools.core.services.library_ops import LibraryManager

NOW = 1_700_000_000.0


def _manager(runner: MockShellAdapter, tmp_path: Path) -> LibraryManager:
    cache = CatalogCache(runner, path=tmp_path / "libs.json", clock=lambda: NOW)
    return LibraryManager(runner, cache)


def _item(name: str, status: LibraryStatus) -> ResolvedItem:
    return ResolvedItem(name=name, label=name, status=status)


class TestApplyChoice:
    def test_not_installed_installs(self, tmp_path):
        runner = MockShellAdapter()
        result = _manager(runner, tmp_path).apply_choice(_item("Servo", LibraryStatus.NOT_INSTALLED))
        assert result.ok
        assert result.action == "install"
        assert result.message == "Library 'Servo' installed successfully."
        assert runner.call_log == [["arduino-cli", "lib", "install", "Servo"]]

    def test_outdated_updates(self, tmp_path):
        runner = MockShellAdapter()
        result = _manager(runner, tmp_path).apply_choice(_item("WiFi", LibraryStatus.OUTDATED))
        assert result.ok
        assert result.action == "update"
        assert "updated successfully" in result.message
        assert runner.calls_matching("lib install WiFi")

    def test_installed_runs_nothing(self, tmp_path):
        runner = MockShellAdapter()
        result = _manager(runner, tmp_path).apply_choice(_item("A", LibraryStatus.INSTALLED))
        assert result.ok
        assert result.action == "none"
        assert "already installed and up to date" in result.message
        assert runner.call_count == 0

    def test_failed_install_is_reported(self, tmp_path):
        runner = MockShellAdapter()
        runner.set_failure("lib install", error="library not found", return_code=1)
        result = _manager(runner, tmp_path).apply_choice(_item("Nope", LibraryStatus.NOT_INSTALLED))
        assert not result.ok
        assert result.error == "library not found"
        assert "could not be installed" in result.message

    def test_name_with_spaces_is_one_argument(self, tmp_path):
        runner = MockShellAdapter()
        _manager(runner, tmp_path).install("Adafruit NeoPixel")
        assert runner.call_log[-1] == ["arduino-cli", "lib", "install", "Adafruit NeoPixel"]

    def test_empty_name(self, tmp_path):
        runner = MockShellAdapter()
        result = _manager(runner, tmp_path).install("  ")
        assert not result.ok
        assert runner.call_count == 0


class TestCatalogItems:
    def test_items_resolved_and_filtered(self, tmp_path):
        runner = MockShellAdapter()
        runner.set_output("lib search", json.dumps({"libraries": [{"name": "Servo"}, {"name": "WiFi"}]}))
        runner.set_output("lib list", json.dumps({
            "installed_libraries": [{"library": {"name": "Servo", "version": "1.0"}}],
        }))
        runner.set_output("outdated", "{}")

        manager = _manager(runner, tmp_path)
        items = manager.catalog_items()
        assert [(i.name, i.status) for i in items] == [
            ("Servo", LibraryStatus.INSTALLED),
            ("WiFi", LibraryStatus.NOT_INSTALLED),
        ]
        assert [i.name for i in manager.catalog_items("wifi")] == ["WiFi"]

    def test_no_catalog(self, tmp_path):
        runner = MockShellAdapter()
        runner.set_failure("lib search")
        assert _manager(runner, tmp_path).catalog_items() is None

    def test_status_reflects_install_on_next_open(self, tmp_path):
        runner = MockShellAdapter()
        runner.set_output("lib search", json.dumps({"libraries": [{"name": "Servo"}]}))
        runner.set_output("lib list", "{}")
        manager = _manager(runner, tmp_path)
        assert manager.catalog_items()[0].status == LibraryStatus.NOT_INSTALLED

        manager.apply_choice(manager.catalog_items()[0])
        runner.set_output("lib list", json.dumps({
            "installed_libraries": [{"library": {"name": "Servo", "version": "1.2"}}],
        }))
        assert manager.catalog_items()[0].status == LibraryStatus.INSTALLED


class TestOutdatedItems:
    def test_lists_installed_with_newer_release(self, tmp_path):
        runner = MockShellAdapter()
        runner.set_output("outdated", json.dumps({
            "libraries": [
                {"library": {"name": "WiFi"}, "release": {"version": "2.0"}},
                {"library": {"name": "Ghost"}, "release": {"version": "1.0"}},
            ],
        }))
        runner.set_output("lib list", json.dumps({
            "installed_libraries": [{"library": {"name": "WiFi", "version": "1.5"}}],
        }))
        items = _manager(runner, tmp_path).outdated_items()
        assert [(i.name, i.installed_version, i.latest_version) for i in items] == [("WiFi", "1.5", "2.0")]
