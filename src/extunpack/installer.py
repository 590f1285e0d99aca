#! /bin/env python3
from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Protocol
from urllib.parse import urlparse

import requests
import typer

from extunpack.archive_io import download_archive, load_em_conf, read_zip_archive
from extunpack.em_conf import EmConfSerializer
from extunpack.exceptions import (
    ExtunpackError,
    InvalidIdentifierError,
    PackageReloadError,
    UnsafeArchivePathError,
)
from extunpack.extension_paths import (
    ExtensionPathResolver,
    is_safe_entry_path,
    is_valid_identifier,
    is_within,
)
from extunpack.filesystem import create_directory, remove_directory_recursive, write_file
from extunpack.internal_config import EM_CONF_FILENAME
from extunpack.messages import DefaultMessageFormatter, MessageFormatter
from extunpack.models import ArchiveDescription, ArchiveFileEntry
from extunpack.package_registry import JsonPackageRegistry

app: typer.Typer = typer.Typer()
logger: logging.Logger = logging.getLogger(__name__)

STATE_FILENAME = ".extunpack-state.json"


class DirectoryRemover(Protocol):
    def __call__(self, path: Path) -> None: ...


class DirectoryCreator(Protocol):
    def __call__(self, path: Path) -> None: ...


class PathResolver(Protocol):
    extensions_root: Path

    def resolve(self, identifier: str) -> Path: ...


class MetadataSerializer(Protocol):
    def serialize(self, identifier: str, metadata: Mapping[str, object]) -> str: ...


class PackageRegistry(Protocol):
    def reload(self, identifier: str, package_path: Path) -> None: ...

    def remove(self, identifier: str) -> None: ...


def extract_directories(entries: Iterable[ArchiveFileEntry]) -> list[str]:
    """Return the directories implied by *entries*, first-seen order, no duplicates.

    Every path contributes everything up to its last separator: a placeholder
    (``doc/``) contributes itself, a nested file its immediate parent
    (``mod/doc/README`` -> ``mod/doc/``). Intermediate directories are left to
    :func:`create_directory`, which creates parents.
    """
    directories: dict[str, None] = {}
    for entry in entries:
        parent, separator, _name = entry.path.rpartition("/")
        if separator:
            directories.setdefault(f"{parent}/", None)
    return list(directories)


class ExtensionInstaller(object):
    """Unpack extension archives into one clean install root per extension."""

    path_resolver: PathResolver
    package_registry: PackageRegistry
    metadata_serializer: MetadataSerializer
    messages: MessageFormatter

    def __init__(
        self,
        path_resolver: PathResolver | None = None,
        package_registry: PackageRegistry | None = None,
        metadata_serializer: MetadataSerializer | None = None,
        messages: MessageFormatter | None = None,
        remove_directory: DirectoryRemover | None = None,
        make_directory: DirectoryCreator | None = None,
    ) -> None:
        self.path_resolver = path_resolver or ExtensionPathResolver()
        self.package_registry = package_registry or JsonPackageRegistry(
            state_path=self.path_resolver.extensions_root.joinpath(STATE_FILENAME)
        )
        self.metadata_serializer = metadata_serializer or EmConfSerializer()
        self.messages = messages or DefaultMessageFormatter()
        self.remove_directory: DirectoryRemover = remove_directory or (
            lambda path: remove_directory_recursive(path, messages=self.messages)
        )
        self.make_directory: DirectoryCreator = make_directory or (
            lambda path: create_directory(path, messages=self.messages)
        )

    def get_extension_dir(self, identifier: str) -> Path:
        """Resolve and validate the install root; nothing on disk is touched."""
        if not is_valid_identifier(identifier):
            raise InvalidIdentifierError(
                self.messages.format("invalid_identifier", identifier=identifier)
            )
        path = Path(self.path_resolver.resolve(identifier))
        root = Path(self.path_resolver.extensions_root)
        if not is_within(root, path):
            raise InvalidIdentifierError(
                self.messages.format("path_outside_root", path=path, root=root)
            )
        return path

    def ensure_clean_directory(self, identifier: str) -> Path:
        path = self.get_extension_dir(identifier)
        if os.path.lexists(path):
            logger.info(f"Removing previous installation at {path}")
            self.remove_directory(path)
        self.make_directory(path)
        return path

    def resolve_entry_path(self, root: Path, relative_path: str) -> Path:
        target = root.joinpath(relative_path)
        if not is_safe_entry_path(relative_path) or not is_within(root, target):
            raise UnsafeArchivePathError(
                self.messages.format("unsafe_entry", path=relative_path, root=root)
            )
        return target

    def create_directories_for_extension_files(
        self, directories: Iterable[str], root: Path
    ) -> None:
        for directory in directories:
            target = self.resolve_entry_path(root, directory)
            logger.debug(f"Creating directory {target}")
            self.make_directory(target)

    def write_extension_files(
        self, entries: Iterable[ArchiveFileEntry], root: Path
    ) -> None:
        for entry in entries:
            if entry.is_directory:
                continue
            target = self.resolve_entry_path(root, entry.path)
            logger.debug(f"Writing {target}")
            write_file(
                target, entry.content, entry.is_executable, messages=self.messages
            )

    def write_em_conf(
        self, identifier: str, metadata: Mapping[str, object], root: Path
    ) -> Path:
        target = root.joinpath(EM_CONF_FILENAME)
        content = self.metadata_serializer.serialize(identifier, metadata)
        write_file(target, content.encode("utf-8"), messages=self.messages)
        return target

    def reload_package_information(self, identifier: str, root: Path) -> None:
        try:
            self.package_registry.reload(identifier, root)
        except Exception as exc:
            message = self.messages.format(
                "reload_failed", identifier=identifier, reason=exc
            )
            logger.error(message)
            raise PackageReloadError(message) from exc

    def unpack_extension(
        self,
        identifier: str,
        archive: ArchiveDescription | Iterable[ArchiveFileEntry],
        em_conf: Mapping[str, object] | None = None,
    ) -> Path:
        """Replace the install root of *identifier* with the contents of *archive*.

        There is no rollback: when a step fails the install root may be left
        partially written, and running the unpack again replaces it completely.
        """
        if not isinstance(archive, ArchiveDescription):
            archive = ArchiveDescription(extension_key=identifier, files=tuple(archive))
        if em_conf is None:
            em_conf = archive.em_conf

        directories = extract_directories(archive.files)
        root = self.ensure_clean_directory(identifier)
        logger.info(f"Unpacking {identifier} into {root}")
        self.create_directories_for_extension_files(directories, root)
        self.write_extension_files(archive.regular_files, root)
        if em_conf is not None:
            self.write_em_conf(identifier, em_conf, root)
        self.reload_package_information(identifier, root)
        return root

    def remove_extension(self, identifier: str) -> None:
        path = self.get_extension_dir(identifier)
        logger.info(f"Removing {identifier} from {path}")
        self.remove_directory(path)
        self.package_registry.remove(identifier)

    def install_from_file(
        self,
        identifier: str,
        archive_path: Path,
        em_conf: Mapping[str, object] | None = None,
    ) -> Path:
        entries = read_zip_archive(archive_path)
        return self.unpack_extension(identifier, entries, em_conf=em_conf)

    def install_from_url(
        self,
        identifier: str,
        url: str,
        em_conf: Mapping[str, object] | None = None,
        allow_http: bool = False,
    ) -> Path:
        with tempfile.TemporaryDirectory(prefix="extunpack-archive.") as tmp_dir:
            archive_path = download_archive(
                url,
                Path(tmp_dir, f"{identifier}.zip"),
                allow_http=allow_http,
            )
            return self.install_from_file(identifier, archive_path, em_conf=em_conf)


def _configure_logging(log_level: str) -> None:
    _log_level = getattr(logging, log_level.upper(), None)
    if not isinstance(_log_level, int):
        raise typer.BadParameter(f"Invalid log level: {log_level!r}")
    logging.basicConfig(
        level=_log_level,
        format="%(relativeCreated)d [%(levelname)s] %(message)s",
    )


def _build_installer(extensions_root: str) -> ExtensionInstaller:
    resolver = ExtensionPathResolver(
        os.path.expandvars(extensions_root) if extensions_root else None
    )
    return ExtensionInstaller(path_resolver=resolver)


@app.command()
def install(
    extension_key: str,
    source: str,
    em_conf: str = "",
    extensions_root: str = "",
    allow_http: bool = False,
    log_level: str = "info",
) -> None:
    """Unpack an extension archive (zip file or URL) into its install root."""
    _configure_logging(log_level)
    try:
        installer = _build_installer(extensions_root)
        metadata = load_em_conf(Path(em_conf)) if em_conf else None
        if urlparse(source).scheme.lower() in ("http", "https"):
            root = installer.install_from_url(
                extension_key, source, em_conf=metadata, allow_http=allow_http
            )
        else:
            root = installer.install_from_file(
                extension_key, Path(source).expanduser(), em_conf=metadata
            )
    except (ExtunpackError, OSError, ValueError, requests.RequestException) as e:
        logger.error(f"Installing {extension_key} failed: {e}")
        raise typer.Exit(code=1)
    logger.info(f"Installed {extension_key} into {root}")


@app.command()
def remove(
    extension_key: str,
    extensions_root: str = "",
    log_level: str = "info",
) -> None:
    """Remove an installed extension; symlinked install roots are only unlinked."""
    _configure_logging(log_level)
    try:
        _build_installer(extensions_root).remove_extension(extension_key)
    except (ExtunpackError, OSError) as e:
        logger.error(f"Removing {extension_key} failed: {e}")
        raise typer.Exit(code=1)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
