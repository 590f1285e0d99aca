from __future__ import annotations

import os
from pathlib import Path

from extunpack.exceptions import InvalidIdentifierError
from extunpack.internal_config import EXTENSION_IDENTIFIER_PATTERN


def resolve_extensions_root() -> Path:
    """Resolve the directory that holds one install root per extension."""
    explicit_root = os.environ.get("EXTUNPACK_EXTENSIONS_ROOT", "").strip()
    if explicit_root:
        return Path(explicit_root).expanduser().resolve()

    typo3_root = os.environ.get("TYPO3_PATH_ROOT", "").strip()
    if typo3_root:
        return Path(typo3_root).expanduser().joinpath("typo3conf/ext").resolve()

    cwd = Path.cwd()
    candidates = [
        cwd.joinpath("public/typo3conf/ext"),
        cwd.joinpath("typo3conf/ext"),
    ]
    for candidate in candidates:
        if candidate.is_dir():
            return candidate.resolve()

    return Path.home().joinpath(".local/share/extunpack/extensions").resolve()


def is_valid_identifier(identifier: str) -> bool:
    if not identifier or identifier in (".", ".."):
        return False
    if "/" in identifier or "\\" in identifier or "\x00" in identifier:
        return False
    return EXTENSION_IDENTIFIER_PATTERN.match(identifier) is not None


def is_within(root: Path, candidate: Path) -> bool:
    """Lexical containment check; symlinks below *root* are not followed."""
    root_text = os.path.normpath(os.path.abspath(root))
    candidate_text = os.path.normpath(os.path.abspath(candidate))
    if candidate_text == root_text:
        return False
    return os.path.commonpath([root_text, candidate_text]) == root_text


class ExtensionPathResolver(object):
    """Map extension identifiers to install roots below a single extensions root."""

    extensions_root: Path

    def __init__(self, extensions_root: Path | str | None = None) -> None:
        self.extensions_root = (
            Path(extensions_root).expanduser().resolve()
            if extensions_root
            else resolve_extensions_root()
        )

    def resolve(self, identifier: str) -> Path:
        if not is_valid_identifier(identifier):
            raise InvalidIdentifierError(
                f"Invalid extension identifier: {identifier!r}"
            )
        # the last segment stays unresolved, an install root may itself be a symlink
        target = Path(os.path.normpath(self.extensions_root.joinpath(identifier)))
        if not is_within(self.extensions_root, target):
            raise InvalidIdentifierError(
                f"Extension path {target} escapes {self.extensions_root}"
            )
        return target


def is_safe_entry_path(path: str) -> bool:
    """True for relative, slash-separated archive paths without ``..`` segments."""
    if not path or "\x00" in path or "\\" in path:
        return False
    if path.startswith("/") or (len(path) > 1 and path[1] == ":"):
        return False
    return ".." not in path.split("/")
