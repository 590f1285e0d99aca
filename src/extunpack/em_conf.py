from __future__ import annotations

import math
from collections.abc import Mapping
from typing import cast

JsonMap = dict[str, object]

INDENT = "    "
CONSTRAINT_TYPES = ("depends", "conflicts", "suggests")


def _as_map(value: object) -> JsonMap:
    if not isinstance(value, Mapping):
        return {}
    return {str(key): item for key, item in value.items()}


def normalize_em_conf(metadata: Mapping[str, object]) -> JsonMap:
    """Return a copy of *metadata* with a complete ``constraints`` section."""
    result: JsonMap = dict(metadata)
    constraints = _as_map(result.get("constraints", {}))
    for constraint_type in CONSTRAINT_TYPES:
        constraints[constraint_type] = _as_map(constraints.get(constraint_type, {}))
    result["constraints"] = constraints
    return result


def export_php_string(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def export_php_value(value: object, level: int = 0) -> str:
    """Render *value* like PHP's ``var_export`` with short array syntax."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value):
            return "NAN"
        if math.isinf(value):
            return "INF" if value > 0 else "-INF"
        return repr(value)
    if isinstance(value, str):
        return export_php_string(value)
    if isinstance(value, bytes):
        return export_php_string(value.decode("utf-8", errors="replace"))
    if isinstance(value, Mapping):
        items = [
            (export_php_key(key), item)
            for key, item in cast(Mapping[object, object], value).items()
        ]
        return _export_array(items, level)
    if isinstance(value, (list, tuple)):
        return _export_array(
            [(str(index), item) for index, item in enumerate(value)], level
        )
    return export_php_string(str(value))


def export_php_key(key: object) -> str:
    if isinstance(key, int) and not isinstance(key, bool):
        return str(key)
    return export_php_string(str(key))


def _export_array(items: list[tuple[str, object]], level: int) -> str:
    if not items:
        return "[]"
    inner = INDENT * (level + 1)
    lines = [
        f"{inner}{key} => {export_php_value(item, level + 1)},"
        for key, item in items
    ]
    return "[\n" + "\n".join(lines) + "\n" + INDENT * level + "]"


class EmConfSerializer(object):
    """Serialize extension metadata into an ``ext_emconf.php`` file body."""

    def serialize(self, identifier: str, metadata: Mapping[str, object]) -> str:
        body = export_php_value(normalize_em_conf(metadata))
        return (
            "<?php\n"
            "\n"
            "/*\n"
            f' * Extension Manager/Repository config file for ext "{identifier}".\n'
            " */\n"
            f"$EM_CONF[$_EXTKEY] = {body};\n"
        )
