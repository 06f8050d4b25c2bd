from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..errors import LenientImportError
from ..models.config_models import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_FILTER_PROCEDURE,
    DEFAULT_SORT_BY,
    AppConfig,
    DatabaseConfig,
    FilterSettings,
    ImportSettings,
    MappingSettings,
)

"""Config loader.

- load YAML (config/import.yml by default)
- validate against config_schema.json (next to this module)
- apply defaults for every missing key
"""

__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "default_config",
    "load_config",
]

SCHEMA_PATH = Path(__file__).parent / "config_schema.json"
DEFAULT_CONFIG_PATH = Path("config/import.yml")


class ConfigError(LenientImportError):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Raises ConfigError on a missing/invalid schema file or a schema violation."""
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        location = ".".join(str(p) for p in e.absolute_path)
        suffix = f" (at {location})" if location else ""
        raise ConfigError(f"config validation failed: {e.message}{suffix}") from e


def default_config() -> AppConfig:
    return AppConfig()


def _build(data: dict[str, Any]) -> AppConfig:
    imp = data.get("import") or {}
    mapping = data.get("mapping") or {}
    filters = data.get("filters") or {}
    db_raw = data.get("database") or {}

    return AppConfig(
        imports=ImportSettings(
            batch_size=imp.get("batch_size", DEFAULT_BATCH_SIZE),
            skip_on_error=imp.get("skip_on_error", False),
            update_if_exists=imp.get("update_if_exists", False),
            auto_detect_mapping=imp.get("auto_detect_mapping", True),
            fuzzy_mapping=imp.get("fuzzy_mapping", False),
            null_sentinels=frozenset(s.strip().upper() for s in imp.get("null_sentinels", [])),
        ),
        mapping=MappingSettings(
            extra_aliases={k: list(v) for k, v in (mapping.get("extra_aliases") or {}).items()},
        ),
        filters=FilterSettings(
            procedure=filters.get("procedure", DEFAULT_FILTER_PROCEDURE),
            default_sort_by=filters.get("default_sort_by", DEFAULT_SORT_BY),
        ),
        database=DatabaseConfig(
            host=db_raw.get("host"),
            port=db_raw.get("port"),
            user=db_raw.get("user"),
            password=db_raw.get("password"),
            database=db_raw.get("database"),
            dsn=db_raw.get("dsn"),
        ),
        error_log_dir=data.get("error_log_dir", AppConfig.error_log_dir),
    )


def load_config(path: Path | str) -> AppConfig:
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping, got {type(data).__name__}")

    _validate_config_schema(data)
    return _build(data)
