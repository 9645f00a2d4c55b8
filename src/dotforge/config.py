"""Project configuration discovery and loading.

The project config is ``dotforge.yaml``, ``dotforge.yml`` or
``dotforge.json``, either at the project root or inside its ``.github/``
directory. Discovery starts at a directory and walks up to the filesystem
root.

Example:
    >>> path = find_config_path(Path.cwd())
    >>> config = load_config(path)
    >>> [stack.name for stack in config.stacks]
    ['main']
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import structlog
import yaml

from dotforge.errors import ConfigFileError
from dotforge.schemas import ProjectConfig, validate_project_config

logger = structlog.get_logger(__name__)

CONFIG_FILENAMES: tuple[str, ...] = ("dotforge.yaml", "dotforge.yml", "dotforge.json")

CONFIG_SUBDIR = ".github"


def find_config_path(start: Path | str | None = None) -> Path:
    """Find the nearest project config file.

    Each directory from ``start`` upwards is checked first for
    ``.github/<name>`` and then ``<name>``, for every name in
    CONFIG_FILENAMES.

    Raises:
        ConfigFileError: If no config file exists in ``start`` or any parent.
    """
    origin = Path(start or Path.cwd()).resolve()
    for directory in (origin, *origin.parents):
        for base in (directory / CONFIG_SUBDIR, directory):
            for filename in CONFIG_FILENAMES:
                candidate = base / filename
                if candidate.is_file():
                    logger.debug("find_config_path.found", path=str(candidate))
                    return candidate
    raise ConfigFileError(origin, f"no {' / '.join(CONFIG_FILENAMES)} found here or in any parent directory")


def _parse(path: Path) -> Any:
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigFileError(path, f"cannot read file: {e}") from e

    try:
        if path.suffix == ".json":
            return json.loads(content)
        return yaml.safe_load(content)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigFileError(path, f"invalid syntax: {e}") from e


def load_config(path: Path | str) -> ProjectConfig:
    """Load and validate a project config file.

    Raises:
        ConfigFileError: If the file is missing, unreadable, unparsable or
            not a mapping.
        ConfigValidationError: If the content does not match ProjectConfig.
    """
    config_path = Path(path)
    if not config_path.is_file():
        raise ConfigFileError(config_path, "file not found")

    data = _parse(config_path)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigFileError(config_path, f"expected a mapping, got {type(data).__name__}")

    config = validate_project_config(data)
    logger.debug(
        "load_config.completed",
        path=str(config_path),
        plugin_count=len(config.plugins),
        stack_count=len(config.stacks),
    )
    return config


def project_root_for(config_path: Path | str) -> Path:
    """Project root for a config file: the parent of ``.github/``, else its directory."""
    directory = Path(config_path).resolve().parent
    if directory.name == CONFIG_SUBDIR:
        return directory.parent
    return directory


__all__ = [
    "CONFIG_FILENAMES",
    "find_config_path",
    "load_config",
    "project_root_for",
]
