"""Settings loading and validation for the YAML config file."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError

from smartctl2prom.core.errors import ConfigError
from smartctl2prom.core.schema import describe, load_schema_validator

LOGGER = logging.getLogger(__name__)

CONFIG_ENV = "SMARTCTL2PROM_CONFIG"
SCHEMA_NAME = "config.schema.json"


class SettingsLoader(yaml.SafeLoader):
    """Safe loader whose mappings refuse to set the same setting twice."""

    def construct_mapping(self, node: yaml.MappingNode, deep: bool = False) -> dict[Any, Any]:
        seen: dict[Any, int] = {}
        for key_node, _ in node.value:
            key = self.construct_object(key_node, deep=deep)
            line = key_node.start_mark.line + 1
            if key in seen:
                raise ConfigError(
                    f"Duplicate setting '{key}' on line {line} (first set on line {seen[key]})"
                )
            seen[key] = line
        return super().construct_mapping(node, deep=deep)


@dataclass(frozen=True)
class Settings:
    format: str = "json"
    log_level: str = "WARNING"
    source: Path | None = None


def default_config_path() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "smartctl2prom/config.yaml"


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Could not read config file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=SettingsLoader)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"Config file {path} must contain a mapping at root")
    return loaded


def load_settings(path: str | Path | None = None) -> Settings:
    """Load settings from ``path``, $SMARTCTL2PROM_CONFIG or the XDG location.

    A missing file is only an error when it was named explicitly.
    """
    explicit = path or os.environ.get(CONFIG_ENV)
    config_path = Path(explicit) if explicit else default_config_path()
    if not config_path.exists():
        if explicit:
            raise ConfigError(f"Config file {config_path} does not exist")
        LOGGER.debug("No config file at %s, using defaults", config_path)
        return Settings()

    doc = _read_yaml(config_path)
    validator = load_schema_validator(SCHEMA_NAME)
    try:
        validator.validate(doc)
    except ValidationError as exc:
        raise ConfigError(f"Schema validation failed for {config_path}: {describe(exc)}") from exc

    defaults = Settings()
    return Settings(
        format=doc.get("format", defaults.format),
        log_level=doc.get("log_level", defaults.log_level).upper(),
        source=config_path,
    )
