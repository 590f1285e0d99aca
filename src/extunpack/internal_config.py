from __future__ import annotations

import platform
import re
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _pkg_version


def _get_package_version(name: str) -> str:
    """Return the installed version of *name*, or ``"0"`` if not found."""
    try:
        return _pkg_version(name)
    except PackageNotFoundError:
        return "0"


_extunpack_version = _get_package_version("extunpack")

DEFAULT_USER_AGENT = (
    f"extunpack/{_extunpack_version}"
    f" ({platform.system()}; {platform.machine()}; compatible)"
)

# fixed name of the metadata file at the top of every install root
EM_CONF_FILENAME = "ext_emconf.php"

EXTENSION_IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")

# rw-r--r-- for written files, executable entries additionally get +x
DEFAULT_FILE_MODE = 0o644
EXECUTABLE_BITS = 0o111

HTTP_STREAM_CONNECT_TIMEOUT_SECONDS = 10
HTTP_STREAM_READ_TIMEOUT_SECONDS = 120
MAX_ARCHIVE_DOWNLOAD_BYTES = 256 * 1024 * 1024

HTTP_RETRY_TOTAL = 3
HTTP_RETRY_BACKOFF_FACTOR = 1
HTTP_RETRY_STATUS_FORCELIST = [429, 500, 502, 503, 504]
HTTP_RETRY_ALLOWED_METHODS = ["HEAD", "GET", "OPTIONS"]
