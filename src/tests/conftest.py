from __future__ import annotations

from pathlib import Path

import pytest

from extunpack.models import ArchiveFileEntry


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--slow",
        action="store_true",
        default=False,
        help="run slow tests that start a local HTTP server",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "slow: marks tests as slow")


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    if config.getoption("--slow"):
        return

    skip_slow = pytest.mark.skip(reason="need --slow option to run")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


@pytest.fixture
def extensions_root(tmp_path: Path) -> Path:
    root = tmp_path / "typo3conf" / "ext"
    root.mkdir(parents=True)
    return root


@pytest.fixture
def sample_entries() -> list[ArchiveFileEntry]:
    return [
        ArchiveFileEntry(
            path="ChangeLog",
            name="ChangeLog",
            size=4559,
            modification_time=1219448527,
            content=b"some content to write",
        ),
        ArchiveFileEntry(
            path="doc/",
            name="doc/",
            modification_time=1219448527,
        ),
        ArchiveFileEntry(
            path="doc/ChangeLog",
            name="ChangeLog",
            size=4559,
            modification_time=1219448527,
            content=b"nested content to write",
        ),
    ]
