from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import DEFAULT_STORAGE_PATH, AnalyzerSettings

"""Config loader.

Responsibilities:
- Load YAML config (default config/analyzer.yml, optional)
- Validate against the bundled JSON schema (unknown keys rejected)
- Apply defaults for missing keys
- Apply environment overrides (MARGIN_ANALYZER_STORAGE)
"""

__all__ = [
    "CONFIG_ENV_VAR",
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "STORAGE_ENV_VAR",
    "ConfigError",
    "load_config",
    "resolve_config_path",
]

SCHEMA_PATH = Path(__file__).parent / "config_schema.json"
DEFAULT_CONFIG_PATH = Path("config/analyzer.yml")
CONFIG_ENV_VAR = "MARGIN_ANALYZER_CONFIG"
STORAGE_ENV_VAR = "MARGIN_ANALYZER_STORAGE"


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: If the schema file is missing or unreadable, or the
            config data fails validation (wrong types, unknown keys, ...).
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def resolve_config_path(path: Path | None = None) -> Path:
    """Explicit path > MARGIN_ANALYZER_CONFIG > config/analyzer.yml."""
    if path is not None:
        return path
    env_path = os.getenv(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_PATH


def load_config(path: Path | None = None, *, required: bool = False) -> AnalyzerSettings:
    """Load settings from YAML.

    A missing file yields the defaults unless ``required`` is set (an
    explicitly requested config file must exist).
    """
    path = resolve_config_path(path)
    if not path.exists():
        if required:
            raise ConfigError(f"config file not found: {path}")
        data: dict[str, Any] = {}
    else:
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"invalid yaml: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"config root must be a mapping: {path}")

    _validate_config_schema(data)

    storage_path = os.getenv(STORAGE_ENV_VAR) or data.get("storage_path", DEFAULT_STORAGE_PATH)
    defaults = AnalyzerSettings()
    return AnalyzerSettings(
        storage_path=storage_path,
        max_file_size_mb=data.get("max_file_size_mb", defaults.max_file_size_mb),
        max_products=data.get("max_products", defaults.max_products),
        max_analyses=data.get("max_analyses", defaults.max_analyses),
        default_targets=tuple(data.get("default_targets", defaults.default_targets)),
        keep_na_strings=data.get("keep_na_strings"),
    )
