"""Filesystem primitives used while (re)installing an extension.

Removal never dereferences symbolic links: a link is unlinked as a link, both
at the top of the removed tree and anywhere below it, so the contents of a
link target outside the install root survive any removal.
"""

from __future__ import annotations

import logging
import os
import stat
from pathlib import Path

from extunpack.exceptions import FilesystemError
from extunpack.internal_config import DEFAULT_FILE_MODE, EXECUTABLE_BITS
from extunpack.messages import DefaultMessageFormatter, MessageFormatter

logger: logging.Logger = logging.getLogger(__name__)

_default_messages = DefaultMessageFormatter()


def _remove_tree(directory: Path) -> None:
    # explicit stack, depth of the tree is not bounded by the interpreter
    pending: list[str] = [os.fspath(directory)]
    while pending:
        current = pending[-1]
        subdirectories: list[str] = []
        with os.scandir(current) as entries:
            for entry in entries:
                # is_dir(follow_symlinks=False) is False for a link to a directory
                if entry.is_dir(follow_symlinks=False):
                    subdirectories.append(entry.path)
                else:
                    os.unlink(entry.path)
        if subdirectories:
            # current is scanned again once its subdirectories are gone
            pending.extend(subdirectories)
        else:
            os.rmdir(current)
            pending.pop()


def remove_directory_recursive(
    path: Path, *, messages: MessageFormatter | None = None
) -> None:
    """Remove *path* and, for a real directory, everything below it."""
    messages = messages or _default_messages
    path = Path(path)
    try:
        mode = path.lstat().st_mode
    except FileNotFoundError:
        return
    except OSError as exc:
        raise FilesystemError(
            messages.format("remove_failed", path=path, reason=exc.strerror or exc)
        ) from exc

    try:
        if stat.S_ISDIR(mode):
            logger.debug(f"Removing directory tree {path}")
            _remove_tree(path)
        else:
            # symlinks (to files or directories) and plain files alike
            logger.debug(f"Unlinking {path}")
            path.unlink()
    except OSError as exc:
        raise FilesystemError(
            messages.format("remove_failed", path=path, reason=exc.strerror or exc)
        ) from exc


def create_directory(path: Path, *, messages: MessageFormatter | None = None) -> None:
    """Create *path* including missing parents; existing directories are fine."""
    messages = messages or _default_messages
    path = Path(path)
    try:
        path.mkdir(parents=True, exist_ok=True)
    except FileExistsError as exc:
        raise FilesystemError(messages.format("not_a_directory", path=path)) from exc
    except OSError as exc:
        raise FilesystemError(
            messages.format("create_failed", path=path, reason=exc.strerror or exc)
        ) from exc


def write_file(
    path: Path,
    content: bytes,
    executable: bool = False,
    *,
    messages: MessageFormatter | None = None,
) -> None:
    messages = messages or _default_messages
    try:
        with open(path, "wb") as output:
            output.write(content)
        mode = DEFAULT_FILE_MODE | EXECUTABLE_BITS if executable else DEFAULT_FILE_MODE
        os.chmod(path, mode)
    except OSError as exc:
        raise FilesystemError(
            messages.format("write_failed", path=path, reason=exc.strerror or exc)
        ) from exc
