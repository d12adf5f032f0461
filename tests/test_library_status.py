"""
Tests for the library status resolver.
"""

import json
import logging

from arduino_tools.adapters.mock import MockShellAdapter
from arduino_tools.core.models.library import CatalogEntry, LibraryStatus, ResolvedItem
from arduino_tools.core.services.library_status import (
    StatusResolver,
    classify,
    filter_items,
    label_for,
    parse_installed,
    parse_outdated,
)


def _installed(*pairs):
    return json.dumps({
        "installed_libraries": [{"library": {"name": n, "version": v}} for n, v in pairs],
    })


def _outdated(*pairs):
    return json.dumps({
        "libraries": [{"library": {"name": n}, "release": {"version": v}} for n, v in pairs],
    })


def _catalog(*names):
    return [CatalogEntry.from_raw({"name": n} if n is not None else {}) for n in names]


def _runner(installed="{}", outdated="{}"):
    runner = MockShellAdapter()
    runner.set_output("lib list", installed)
    runner.set_output("outdated", outdated)
    return runner


class TestParsers:
    def test_parse_installed(self):
        assert parse_installed(_installed(("A", "1.0"), ("B", "2.1"))) == {"A": "1.0", "B": "2.1"}

    def test_parse_installed_skips_bad_records(self):
        raw = json.dumps({"installed_libraries": [{"library": {}}, "junk", {"library": {"name": "C"}}]})
        assert parse_installed(raw) == {"C": ""}

    def test_parse_installed_garbage(self):
        assert parse_installed("not json") == {}
        assert parse_installed("[]") == {}

    def test_parse_outdated(self):
        assert parse_outdated(_outdated(("B", "1.2"))) == {"B": "1.2"}

    def test_parse_outdated_missing_version_warns(self, caplog):
        raw = json.dumps({"libraries": [{"library": {"name": "B"}}]})
        with caplog.at_level(logging.WARNING):
            assert parse_outdated(raw) == {}
        assert "Missing library name or latest version" in caplog.text

    def test_non_list_sections_are_empty(self, caplog):
        with caplog.at_level(logging.WARNING):
            assert parse_installed(json.dumps({"installed_libraries": 5})) == {}
            assert parse_installed(json.dumps({"installed_libraries": True})) == {}
            assert parse_outdated(json.dumps({"libraries": 3})) == {}
        assert "'installed_libraries' is int" in caplog.text
        assert "'libraries' is int" in caplog.text

    def test_null_sections_are_empty(self):
        assert parse_installed(json.dumps({"installed_libraries": None})) == {}
        assert parse_outdated(json.dumps({"libraries": None})) == {}


class TestClassify:
    def test_states(self):
        installed = {"A": "1.0", "B": "1.0"}
        outdated = {"B": "2.0", "Z": "9.9"}
        assert classify("A", installed, outdated) == LibraryStatus.INSTALLED
        assert classify("B", installed, outdated) == LibraryStatus.OUTDATED
        assert classify("C", installed, outdated) == LibraryStatus.NOT_INSTALLED
        # outdated but not installed is still not installed
        assert classify("Z", installed, outdated) == LibraryStatus.NOT_INSTALLED

    def test_labels(self):
        assert label_for("A", LibraryStatus.NOT_INSTALLED) == "A"
        assert label_for("A", LibraryStatus.INSTALLED) == "✅ A"
        assert label_for("A", LibraryStatus.OUTDATED) == "🔄 ✅ A"


class TestResolve:
    def test_resolve_scenario(self):
        runner = _runner(_installed(("A", "1.0"), ("B", "1.0")), _outdated(("B", "1.2")))
        items = StatusResolver(runner).resolve(_catalog("A", "B", "C"))

        assert [(i.name, i.status, i.label) for i in items] == [
            ("A", LibraryStatus.INSTALLED, "✅ A"),
            ("B", LibraryStatus.OUTDATED, "🔄 ✅ B"),
            ("C", LibraryStatus.NOT_INSTALLED, "C"),
        ]
        assert items[1].installed_version == "1.0"
        assert items[1].latest_version == "1.2"

    def test_preserves_order_and_skips_nameless(self):
        runner = _runner()
        items = StatusResolver(runner).resolve(_catalog("Z", None, "A", "M"))
        assert [i.name for i in items] == ["Z", "A", "M"]

    def test_installed_query_failure_degrades(self, caplog):
        runner = _runner(outdated=_outdated(("A", "2.0")))
        runner.set_failure("lib list", error="daemon down")
        with caplog.at_level(logging.WARNING):
            items = StatusResolver(runner).resolve(_catalog("A"))
        assert items[0].status == LibraryStatus.NOT_INSTALLED
        assert "Failed to fetch installed libraries" in caplog.text

    def test_outdated_parse_failure_degrades(self):
        runner = _runner(_installed(("A", "1.0")), outdated="{{{")
        items = StatusResolver(runner).resolve(_catalog("A"))
        assert items[0].status == LibraryStatus.INSTALLED

    def test_non_list_output_degrades(self):
        runner = _runner(json.dumps({"installed_libraries": 5}), json.dumps({"libraries": "B"}))
        items = StatusResolver(runner).resolve(_catalog("A", "B"))
        assert [i.status for i in items] == [LibraryStatus.NOT_INSTALLED, LibraryStatus.NOT_INSTALLED]

    def test_queries_rerun_every_call(self):
        runner = _runner()
        resolver = StatusResolver(runner)
        resolver.resolve(_catalog("A"))
        resolver.resolve(_catalog("A"))
        assert len(runner.calls_matching("lib list")) == 2
        assert len(runner.calls_matching("outdated")) == 2

    def test_empty_catalog(self):
        assert StatusResolver(_runner()).resolve([]) == []


class TestFilterItems:
    def _items(self):
        return [
            ResolvedItem(name=n, label=n, status=LibraryStatus.NOT_INSTALLED)
            for n in ("Servo", "Adafruit NeoPixel", "ServoEasing")
        ]

    def test_case_insensitive_substring(self):
        assert [i.name for i in filter_items(self._items(), "servo")] == ["Servo", "ServoEasing"]

    def test_empty_query_returns_all(self):
        assert len(filter_items(self._items(), "")) == 3
        assert len(filter_items(self._items(), None)) == 3
