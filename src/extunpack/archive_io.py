"""Build archive descriptions from zip files, downloads and metadata files."""

from __future__ import annotations

import datetime
import logging
import os
import shutil
import stat
import tempfile
import zipfile
from pathlib import Path
from typing import Protocol
from urllib.parse import urlparse

# metadata files may contain comments and trailing commas
import json5
import requests
from requests.adapters import HTTPAdapter, Retry

from extunpack.exceptions import UnsafeArchivePathError
from extunpack.extension_paths import is_safe_entry_path
from extunpack.internal_config import (
    DEFAULT_USER_AGENT,
    HTTP_RETRY_ALLOWED_METHODS,
    HTTP_RETRY_BACKOFF_FACTOR,
    HTTP_RETRY_STATUS_FORCELIST,
    HTTP_RETRY_TOTAL,
    HTTP_STREAM_CONNECT_TIMEOUT_SECONDS,
    HTTP_STREAM_READ_TIMEOUT_SECONDS,
    MAX_ARCHIVE_DOWNLOAD_BYTES,
)
from extunpack.models import ArchiveFileEntry

logger: logging.Logger = logging.getLogger(__name__)


class DownloadSession(Protocol):
    def get(
        self,
        url: str,
        *,
        stream: bool,
        headers: dict[str, str],
        timeout: tuple[int, int],
    ) -> requests.Response: ...


def build_session() -> requests.Session:
    retry_strategy = Retry(
        total=HTTP_RETRY_TOTAL,
        backoff_factor=HTTP_RETRY_BACKOFF_FACTOR,
        status_forcelist=HTTP_RETRY_STATUS_FORCELIST,
        allowed_methods=HTTP_RETRY_ALLOWED_METHODS,
    )
    adapter = HTTPAdapter(max_retries=retry_strategy)
    session = requests.Session()
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


def _zip_mode(info: zipfile.ZipInfo) -> int:
    # upper 16 bits hold the unix mode when the archive was created on unix
    return (info.external_attr >> 16) & 0xFFFF


def _strip_current_dir(name: str) -> str:
    while name.startswith("./"):
        name = name[2:]
    return name


def _zip_mtime(info: zipfile.ZipInfo) -> int:
    try:
        return int(datetime.datetime(*info.date_time).timestamp())
    except (OverflowError, ValueError):
        return 0


def read_zip_archive(archive_path: Path) -> list[ArchiveFileEntry]:
    """Return the members of *archive_path* as archive entries, in archive order."""
    entries: list[ArchiveFileEntry] = []
    with zipfile.ZipFile(archive_path, "r") as archive:
        for info in archive.infolist():
            name = _strip_current_dir(info.filename)
            if not name:
                # "./" itself, the install root
                continue
            if not is_safe_entry_path(name):
                raise UnsafeArchivePathError(
                    f"Archive member {name!r} in {archive_path} is not a safe relative path"
                )
            mode = _zip_mode(info)
            if stat.S_ISLNK(mode):
                raise UnsafeArchivePathError(
                    f"Archive member {name!r} in {archive_path} is a symbolic link"
                )

            if info.is_dir():
                path = name if name.endswith("/") else f"{name}/"
                entries.append(
                    ArchiveFileEntry(
                        path=path,
                        name=path,
                        modification_time=_zip_mtime(info),
                    )
                )
                continue

            entries.append(
                ArchiveFileEntry(
                    path=name,
                    name=name.rsplit("/", 1)[-1],
                    size=info.file_size,
                    modification_time=_zip_mtime(info),
                    is_executable=bool(mode & 0o111),
                    content=archive.read(info),
                )
            )
    logger.debug(f"Read {len(entries)} entries from {archive_path}")
    return entries


def download_archive(
    url: str,
    target_path: Path,
    *,
    session: DownloadSession | None = None,
    allow_http: bool = False,
    max_bytes: int = MAX_ARCHIVE_DOWNLOAD_BYTES,
    timeout: tuple[int, int] = (
        HTTP_STREAM_CONNECT_TIMEOUT_SECONDS,
        HTTP_STREAM_READ_TIMEOUT_SECONDS,
    ),
) -> Path:
    """Stream *url* into a temporary file and move it to *target_path*."""
    scheme = urlparse(url).scheme.lower()
    if scheme != "https" and not (allow_http and scheme == "http"):
        raise ValueError(f"Refusing to download archive from {url}: unsupported scheme")

    session = session or build_session()
    headers = {"User-Agent": DEFAULT_USER_AGENT}

    with tempfile.TemporaryDirectory(prefix="extunpack-download.") as tmp_dir:
        file_path = Path(tmp_dir, target_path.name)
        received = 0

        with open(file_path, "wb") as output:
            logger.info(f"Downloading {url}")
            response: requests.Response = session.get(
                url,
                stream=True,
                headers=headers,
                timeout=timeout,
            )
            response.raise_for_status()

            for chunk in response.iter_content(chunk_size=1024 * 8):
                if chunk:
                    received += len(chunk)
                    if received > max_bytes:
                        raise ValueError(
                            f"Download of {url} exceeded maximum allowed size of {max_bytes} bytes"
                        )
                    output.write(chunk)
            output.flush()
            os.fsync(output.fileno())

        target_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(file_path, target_path)
        return target_path


def load_em_conf(path: Path) -> dict[str, object]:
    """Parse extension metadata from a JSON5 document."""
    data = json5.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"Extension metadata in {path} must be an object")
    return {str(key): value for key, value in data.items()}
