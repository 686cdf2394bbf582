"""Build configuration for Kiln.

Settings come from an optional ``kiln.yaml`` at the project root, merged
over the defaults below. Command line options override individual values.

Key classes:
- BuildConfig: Resolved settings for one build.
- ConfigError: Invalid configuration.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .site import DEFAULT_CHANNEL_CAPACITY

CONFIG_FILENAME = "kiln.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "source": "source",
    "output": "public",
    "definition": "site.py",
    "clean": True,
    "workers": None,
    "channel_capacity": DEFAULT_CHANNEL_CAPACITY,
}


class ConfigError(Exception):
    """Error raised for an invalid configuration or site definition."""


@dataclass
class BuildConfig:
    """Settings for one build.

    Attributes:
        source: Source directory.
        output: Output directory.
        definition: Python file defining ``setup(site)``.
        clean: Whether to wipe the output directory first.
        workers: Thread pool size, None for the default.
        channel_capacity: Bound of the job completion channel.
    """

    source: Path
    output: Path
    definition: Path | None = None
    clean: bool = True
    workers: int | None = None
    channel_capacity: int = DEFAULT_CHANNEL_CAPACITY

    @classmethod
    def from_mapping(cls, project_root: Path, data: dict[str, Any]) -> BuildConfig:
        """Validate raw settings and resolve paths against the project root.

        Args:
            project_root: Directory relative paths are resolved against.
            data: Settings, typically defaults merged with ``kiln.yaml``.

        Returns:
            The validated configuration.

        Raises:
            ConfigError: If a value has the wrong type.
        """
        for key in ("source", "output", "definition"):
            if not isinstance(data.get(key), (str, Path)):
                raise ConfigError(f"'{key}' must be a path")
        if not isinstance(data.get("clean"), bool):
            raise ConfigError("'clean' must be true or false")
        workers = data.get("workers")
        if workers is not None and (not _is_int(workers) or workers < 1):
            raise ConfigError("'workers' must be a positive integer")
        capacity = data.get("channel_capacity")
        if not _is_int(capacity) or capacity < 1:
            raise ConfigError("'channel_capacity' must be a positive integer")

        return cls(
            source=project_root / data["source"],
            output=project_root / data["output"],
            definition=project_root / data["definition"],
            clean=data["clean"],
            workers=workers,
            channel_capacity=capacity,
        )


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def load_config(
    project_root: Path, overrides: dict[str, Any] | None = None
) -> BuildConfig:
    """Load the build configuration from kiln.yaml.

    Args:
        project_root: Root directory of the project.
        overrides: Values taking precedence over the file, None values are
            ignored.

    Returns:
        The resolved configuration.

    Raises:
        ConfigError: If kiln.yaml isn't valid YAML or has invalid values.
    """
    config = DEFAULT_CONFIG.copy()
    config_path = project_root / CONFIG_FILENAME
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            try:
                loaded = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise ConfigError(f"Invalid {CONFIG_FILENAME}: {exc}") from exc
        if isinstance(loaded, dict):
            config.update(loaded)
    for key, value in (overrides or {}).items():
        if value is not None:
            config[key] = value
    return BuildConfig.from_mapping(project_root, config)
