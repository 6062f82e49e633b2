"""
config.py

Responsibility: Load optional project configuration from `.specgate.yaml`.

Recognized keys (all optional):
- registry: str            contract registry path
- exclude_dirs: list[str]  directory names skipped during discovery
- schemas: mapping         per-type overrides, same shape as the packaged `schemas.yaml`

CLI flags override config values; config values override built-in defaults.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from specgate.documents import DEFAULT_EXCLUDE_DIRS

DEFAULT_CONFIG_PATH = ".specgate.yaml"
DEFAULT_REGISTRY = "agents/contracts/registry.yaml"
DEFAULT_SPECS_ROOT = "agents/specs"


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class Config:
    registry: str = DEFAULT_REGISTRY
    exclude_dirs: tuple[str, ...] = DEFAULT_EXCLUDE_DIRS
    schemas: dict[str, Any] = field(default_factory=dict)


def parse_config(data: Any, source: str = DEFAULT_CONFIG_PATH) -> Config:
    if data is None:
        return Config()
    if not isinstance(data, dict):
        raise ConfigError(f"{source}: config must be a mapping at the top level.")

    unknown = sorted(set(data) - {"registry", "exclude_dirs", "schemas"})
    if unknown:
        raise ConfigError(f"{source}: unknown config key(s): {', '.join(map(str, unknown))}")

    registry = data.get("registry", DEFAULT_REGISTRY)
    if not isinstance(registry, str) or not registry.strip():
        raise ConfigError(f"{source}: `registry` must be a non-empty string.")

    exclude_raw = data.get("exclude_dirs", list(DEFAULT_EXCLUDE_DIRS))
    if not isinstance(exclude_raw, list) or not all(isinstance(d, str) for d in exclude_raw):
        raise ConfigError(f"{source}: `exclude_dirs` must be a list of directory names.")

    schemas = data.get("schemas") or {}
    if not isinstance(schemas, dict):
        raise ConfigError(f"{source}: `schemas` must be a mapping of spec type to schema.")

    return Config(registry=registry.strip(), exclude_dirs=tuple(exclude_raw), schemas=schemas)


def load_config(path: str | Path | None = None) -> Config:
    """
    Load config from `path`, or from `.specgate.yaml` in the working directory.

    An explicit path must exist; the default file is optional.
    """
    explicit = path is not None
    config_path = Path(path) if explicit else Path(DEFAULT_CONFIG_PATH)
    if not config_path.exists():
        if explicit:
            raise ConfigError(f"Config file does not exist: {config_path}")
        return Config()
    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"{config_path}: invalid YAML: {e}") from e
    return parse_config(data, source=str(config_path))
