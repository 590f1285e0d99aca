from __future__ import annotations

import json
from pathlib import Path

import pytest

from extunpack.package_registry import JsonPackageRegistry


@pytest.fixture
def registry(extensions_root: Path) -> JsonPackageRegistry:
    return JsonPackageRegistry(state_path=extensions_root / ".extunpack-state.json")


def test_find_installed_without_state_file(registry: JsonPackageRegistry) -> None:
    assert registry.find_installed() == {}


def test_find_installed_with_empty_state_file(registry: JsonPackageRegistry) -> None:
    registry.state_path.touch()

    assert registry.find_installed() == {}


def test_reload_records_package_files(
    registry: JsonPackageRegistry, extensions_root: Path
) -> None:
    package = extensions_root / "news"
    (package / "doc").mkdir(parents=True)
    (package / "doc" / "ChangeLog").write_text("log")
    (package / "ext_emconf.php").write_text("<?php")

    registry.reload("news", extensions_root / "news")

    installed = registry.find_installed()
    assert installed["news"] == {
        "packagePath": str(package),
        "hasEmConf": True,
        "files": ["doc/ChangeLog", "ext_emconf.php"],
    }


def test_reload_keeps_other_packages(
    registry: JsonPackageRegistry, extensions_root: Path
) -> None:
    (extensions_root / "news").mkdir()
    (extensions_root / "blog").mkdir()

    registry.reload("news", extensions_root / "news")
    registry.reload("blog", extensions_root / "blog")

    assert sorted(registry.find_installed()) == ["blog", "news"]
    assert Path(f"{registry.state_path}.bak").is_file()


def test_remove_drops_package(
    registry: JsonPackageRegistry, extensions_root: Path
) -> None:
    (extensions_root / "news").mkdir()
    registry.reload("news", extensions_root / "news")

    registry.remove("news")

    assert registry.find_installed() == {}
    assert json.loads(registry.state_path.read_text()) == {"packages": {}}


def test_remove_unknown_package_leaves_state_untouched(
    registry: JsonPackageRegistry,
) -> None:
    registry.remove("unknown")

    assert not registry.state_path.exists()


def test_write_failure_restores_backup(
    registry: JsonPackageRegistry,
    extensions_root: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    (extensions_root / "news").mkdir()
    registry.reload("news", extensions_root / "news")
    previous = registry.state_path.read_text()

    def _fail(*_args, **_kwargs) -> None:
        raise TypeError("not serializable")

    monkeypatch.setattr("extunpack.package_registry.json.dump", _fail)

    with pytest.raises(TypeError):
        registry.reload("news", extensions_root / "news")

    assert registry.state_path.read_text() == previous


def test_reload_records_install_root_outside_identifier_name(
    registry: JsonPackageRegistry, extensions_root: Path
) -> None:
    package = extensions_root / "ext-news"
    package.mkdir()
    (package / "README").write_text("readme")

    registry.reload("news", package)

    assert registry.find_installed()["news"] == {
        "packagePath": str(package),
        "hasEmConf": False,
        "files": ["README"],
    }
