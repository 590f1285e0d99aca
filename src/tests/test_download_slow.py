from __future__ import annotations

import http.server
import io
import socketserver
import threading
import zipfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, cast

import pytest
import requests

from extunpack.extension_paths import ExtensionPathResolver
from extunpack.installer import ExtensionInstaller

pytestmark = pytest.mark.slow


def _archive_bytes() -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr("Resources/", b"")
        archive.writestr("Resources/Public/icon.svg", b"<svg/>")
        archive.writestr("ext_localconf.php", b"<?php")
    return buffer.getvalue()


class _ThreadingTCPServer(socketserver.ThreadingTCPServer):
    allow_reuse_address = True
    daemon_threads = True
    block_on_close = False


class _ArchiveHandler(http.server.BaseHTTPRequestHandler):
    payload = _archive_bytes()

    def do_GET(self) -> None:
        if self.path != "/news.zip":
            self.send_error(404)
            return
        self.send_response(200)
        self.send_header("Content-Type", "application/zip")
        self.send_header("Content-Length", str(len(self.payload)))
        self.end_headers()
        self.wfile.write(self.payload)

    def log_message(self, format: str, *args) -> None:
        return None


@contextmanager
def _run_archive_server() -> Iterator[tuple[str, int]]:
    with _ThreadingTCPServer(("127.0.0.1", 0), _ArchiveHandler) as server:
        host, port = cast(tuple[str, int], server.server_address)
        server_thread = threading.Thread(
            target=server.serve_forever,
            name="archive-server",
            daemon=True,
        )
        server_thread.start()
        try:
            yield host, port
        finally:
            server.shutdown()
            server_thread.join(timeout=3)


def test_install_from_url_over_local_http(extensions_root: Path) -> None:
    installer = ExtensionInstaller(path_resolver=ExtensionPathResolver(extensions_root))

    with _run_archive_server() as (host, port):
        root = installer.install_from_url(
            "news", f"http://{host}:{port}/news.zip", allow_http=True
        )

    assert (root / "Resources" / "Public" / "icon.svg").read_bytes() == b"<svg/>"
    assert (root / "ext_localconf.php").is_file()


def test_install_from_url_fails_on_missing_archive(extensions_root: Path) -> None:
    installer = ExtensionInstaller(path_resolver=ExtensionPathResolver(extensions_root))

    with _run_archive_server() as (host, port):
        with pytest.raises(requests.HTTPError):
            installer.install_from_url(
                "news", f"http://{host}:{port}/missing.zip", allow_http=True
            )

    assert not (extensions_root / "news").exists()
