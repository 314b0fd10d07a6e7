"""Tests for package matching and the JSON package registry."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from batch_installer.memory.package_registry import (
    JsonPackageRegistry,
    PackageRegistry,
    match_package,
)

if TYPE_CHECKING:
    from pathlib import Path


class TestMatchPackage:
    def test_exact_directory_match(self) -> None:
        paths = ["widget-tool-pro/main.php", "widget-tool/widget-tool.php"]
        assert match_package("widget-tool", paths) == "widget-tool/widget-tool.php"

    def test_single_file_match(self) -> None:
        assert match_package("hello", ["hello.php"]) == "hello.php"

    def test_prefix_fallback(self) -> None:
        assert match_package("widget", ["widget-tool/widget-tool.php"]) == "widget-tool/widget-tool.php"

    def test_no_match(self) -> None:
        assert match_package("widget", ["other/other.php"]) is None

    def test_empty_slug(self) -> None:
        assert match_package("", ["a/a.php"]) is None


class TestJsonPackageRegistry:
    def test_add_and_find(self, tmp_path: Path) -> None:
        registry = JsonPackageRegistry(tmp_path / "packages.json")
        ref = registry.add("widget-tool/widget-tool.php", version="1.2.0", enabled=True)

        assert ref.slug == "widget-tool"
        found = registry.find_by_slug("widget-tool")
        assert found == ref
        assert registry.is_enabled(found)

    def test_persisted(self, tmp_path: Path) -> None:
        path = tmp_path / "packages.json"
        JsonPackageRegistry(path).add("hello.php")

        reloaded = JsonPackageRegistry(path)
        assert len(reloaded) == 1
        ref = reloaded.find_by_slug("hello")
        assert ref is not None
        assert ref.path == "hello.php"
        assert not reloaded.is_enabled(ref)

    def test_set_enabled(self, tmp_path: Path) -> None:
        registry = JsonPackageRegistry(tmp_path / "packages.json")
        ref = registry.add("widget-tool/widget-tool.php")
        registry.set_enabled(ref.path, True)
        assert registry.is_enabled(ref)

    def test_set_enabled_missing_raises(self, tmp_path: Path) -> None:
        registry = JsonPackageRegistry(tmp_path / "packages.json")
        with pytest.raises(KeyError):
            registry.set_enabled("ghost/ghost.php", True)

    def test_remove(self, tmp_path: Path) -> None:
        registry = JsonPackageRegistry(tmp_path / "packages.json")
        registry.add("a/a.php")
        assert registry.remove("a/a.php")
        assert not registry.remove("a/a.php")
        assert registry.find_by_slug("a") is None
        assert registry.list_all() == []

    def test_satisfies_protocol(self, tmp_path: Path) -> None:
        assert isinstance(JsonPackageRegistry(tmp_path / "p.json"), PackageRegistry)
