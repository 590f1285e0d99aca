from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol

DEFAULT_MESSAGES: dict[str, str] = {
    "invalid_identifier": "Invalid extension identifier: {identifier!r}",
    "path_outside_root": (
        "Could not create extension directory {path}: "
        "path is outside of the extensions root {root}"
    ),
    "remove_failed": "Could not remove {path}: {reason}",
    "create_failed": "Could not create directory {path}: {reason}",
    "not_a_directory": "Could not create directory {path}: a file is in the way",
    "write_failed": "Could not write extension file {path}: {reason}",
    "unsafe_entry": "Archive entry {path!r} would be written outside {root}",
    "reload_failed": "Could not reload package information for {identifier}: {reason}",
}


class MessageFormatter(Protocol):
    def format(self, key: str, **params: object) -> str: ...


class DefaultMessageFormatter(object):
    """Render error messages from a key -> template table."""

    def __init__(self, templates: Mapping[str, str] | None = None) -> None:
        self.templates = dict(DEFAULT_MESSAGES)
        if templates:
            self.templates.update(templates)

    def format(self, key: str, **params: object) -> str:
        template = self.templates.get(key)
        if template is None:
            return f"{key}: {params}" if params else key
        try:
            return template.format(**params)
        except (KeyError, IndexError):
            return template
