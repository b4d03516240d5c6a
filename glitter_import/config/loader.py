from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

"""Config loader for the CSV project importer.

Responsibilities:
- Load YAML config (default ``config/import.yml``)
- Validate against the packaged JSON schema (``schema.json`` next to this module)
- Apply defaults for every optional key
"""

__all__ = [
    "ConfigError",
    "DatabaseConfig",
    "ImportConfig",
    "SCHEMA_PATH",
    "DEFAULT_CONFIG_PATH",
    "load_config",
]

SCHEMA_PATH = Path(__file__).with_name("schema.json")
DEFAULT_CONFIG_PATH = Path("config/import.yml")

MB = 1024 * 1024


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class DatabaseConfig:
    """PostgreSQL fallback connection settings (environment variables win)."""
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class ImportConfig:
    max_file_size_mb: float = 50
    row_delay_seconds: float = 0.2  # 行間の最小間隔 (rate limiter)
    max_workers: int = 1
    default_tag_color: str = "#3B82F6"
    timezone: str = "UTC"
    logs_dir: str = "./logs"
    user_id: str | None = None
    database: DatabaseConfig = field(default_factory=DatabaseConfig)

    @property
    def max_file_size_bytes(self) -> int:
        return int(self.max_file_size_mb * MB)


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: If the schema file is missing or invalid, or the config
            data violates the schema (unknown keys, wrong types, ranges).
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        where = ".".join(str(p) for p in e.absolute_path)
        detail = f"{where}: {e.message}" if where else e.message
        raise ConfigError(f"config validation failed: {detail}") from e


def _validate_timezone(name: str) -> None:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigError(f"unknown timezone: {name}") from e


def load_config(path: Path) -> ImportConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config validation failed: top level must be a mapping")

    _validate_config_schema(data)

    defaults = ImportConfig()
    tz = data.get("timezone", defaults.timezone)
    _validate_timezone(tz)

    db_raw = data.get("database") or {}
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    return ImportConfig(
        max_file_size_mb=data.get("max_file_size_mb", defaults.max_file_size_mb),
        row_delay_seconds=data.get("row_delay_seconds", defaults.row_delay_seconds),
        max_workers=data.get("max_workers", defaults.max_workers),
        default_tag_color=data.get("default_tag_color", defaults.default_tag_color),
        timezone=tz,
        logs_dir=data.get("logs_dir", defaults.logs_dir),
        user_id=data.get("user_id"),
        database=db,
    )
