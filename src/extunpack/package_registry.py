from __future__ import annotations

import json
import logging
import os
import shutil
from pathlib import Path

from extunpack.internal_config import EM_CONF_FILENAME

logger: logging.Logger = logging.getLogger(__name__)


class JsonPackageRegistry(object):
    """Keep a JSON record of unpacked extensions and their install roots."""

    state_path: Path

    def __init__(self, state_path: Path) -> None:
        self.state_path = Path(state_path)

    def find_installed(self) -> dict[str, dict[str, object]]:
        """Return the recorded packages, keyed by extension identifier."""
        if not self.state_path.is_file() or self.state_path.stat().st_size == 0:
            return {}
        with open(self.state_path, "r", encoding="utf-8") as f:
            data = json.load(f)
        packages = data.get("packages", {}) if isinstance(data, dict) else {}
        return dict(packages) if isinstance(packages, dict) else {}

    def describe_package(self, package_path: Path) -> dict[str, object]:
        package_path = Path(package_path)
        files: list[str] = []
        for dirpath, _dirnames, filenames in os.walk(package_path):
            for filename in filenames:
                relative = Path(dirpath, filename).relative_to(package_path)
                files.append(relative.as_posix())
        return {
            "packagePath": f"{package_path}",
            "hasEmConf": package_path.joinpath(EM_CONF_FILENAME).is_file(),
            "files": sorted(files),
        }

    def reload(self, identifier: str, package_path: Path) -> None:
        """Record the install root *package_path* as the package *identifier*."""
        packages = self.find_installed()
        packages[identifier] = self.describe_package(package_path)
        self._write(packages)
        logger.info(f"Reloaded package information for {identifier}")

    def remove(self, identifier: str) -> None:
        packages = self.find_installed()
        if packages.pop(identifier, None) is None:
            logger.debug(f"{identifier} was not registered")
            return
        self._write(packages)
        logger.info(f"Removed {identifier} from package information")

    def _write(self, packages: dict[str, dict[str, object]]) -> None:
        self.state_path.parent.mkdir(parents=True, exist_ok=True)
        backup_path = Path(f"{self.state_path}.bak")
        if self.state_path.is_file():
            shutil.copy2(self.state_path, backup_path)
        try:
            with open(self.state_path, "w", encoding="utf-8") as f:
                json.dump({"packages": packages}, f, indent=2, sort_keys=True)
        except (OSError, TypeError, ValueError):
            logger.error(f"Could not write {self.state_path}, restoring backup")
            if backup_path.is_file():
                shutil.move(backup_path, self.state_path)
            raise
