from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field


def _as_bytes(value: object) -> bytes:
    if isinstance(value, bytes):
        return value
    if isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    if value is None:
        return b""
    return str(value).encode("utf-8")


def _as_int(value: object) -> int:
    try:
        return int(value)  # type: ignore[call-overload]
    except (TypeError, ValueError):
        return 0


@dataclass(frozen=True)
class ArchiveFileEntry:
    path: str
    name: str = ""
    size: int = 0
    modification_time: int = 0
    is_executable: bool = False
    content: bytes = b""

    @property
    def is_directory(self) -> bool:
        """Entries ending in a separator are directory placeholders."""
        return self.path.endswith("/")

    @classmethod
    def from_dict(cls, path: str, data: Mapping[str, object]) -> ArchiveFileEntry:
        return cls(
            path=path,
            name=str(data.get("name", "")),
            size=_as_int(data.get("size", 0)),
            modification_time=_as_int(data.get("mtime", 0)),
            is_executable=bool(data.get("is_executable", False)),
            content=_as_bytes(data.get("content", b"")),
        )


@dataclass(frozen=True)
class ArchiveDescription:
    extension_key: str = ""
    files: tuple[ArchiveFileEntry, ...] = ()
    em_conf: Mapping[str, object] | None = field(default=None)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> ArchiveDescription:
        raw_files = data.get("FILES", {})
        files: list[ArchiveFileEntry] = []
        if isinstance(raw_files, Mapping):
            for path, item in raw_files.items():
                if isinstance(item, Mapping):
                    files.append(ArchiveFileEntry.from_dict(str(path), item))
        em_conf = data.get("EM_CONF")
        return cls(
            extension_key=str(data.get("extKey", "")),
            files=tuple(files),
            em_conf=em_conf if isinstance(em_conf, Mapping) else None,
        )

    @property
    def regular_files(self) -> list[ArchiveFileEntry]:
        return [entry for entry in self.files if not entry.is_directory]
