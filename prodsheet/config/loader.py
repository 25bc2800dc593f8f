from __future__ import annotations

import json
import os
from dataclasses import replace
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from prodsheet.models.config_models import (
    DEFAULT_TABS,
    AppConfig,
    EndpointConfig,
    TabConfig,
)

"""Config loader.

Responsibilities:
- Load YAML config/planner.yml
- Validate against the packaged config_schema.json
- Apply defaults (timeout 30s, default tab layouts)
- Apply PRODSHEET_* environment overrides (.env is loaded by the CLI)
"""

__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "ENV_SPREADSHEET_ID",
    "ENV_WRITE_URL",
    "SCHEMA_PATH",
    "apply_env_overrides",
    "load_config",
]

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/planner.yml")

ENV_SPREADSHEET_ID = "PRODSHEET_SPREADSHEET_ID"
ENV_WRITE_URL = "PRODSHEET_WRITE_URL"


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against JSON schema.

    Raises:
        ConfigError: schema file missing or broken, or the data violates it
            (missing required keys, wrong types, unknown keys).
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


def _build_tabs(raw: dict[str, Any]) -> dict[str, TabConfig]:
    tabs = dict(DEFAULT_TABS)
    for name, opts in raw.items():
        base = tabs.get(name, TabConfig(name))
        tabs[name] = replace(base, **(opts or {}))
    return tabs


def apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Environment values win over the file (PRODSHEET_SPREADSHEET_ID / PRODSHEET_WRITE_URL)."""
    merged = dict(data)
    sid = os.getenv(ENV_SPREADSHEET_ID)
    url = os.getenv(ENV_WRITE_URL)
    if sid:
        merged["spreadsheet_id"] = sid
    if url:
        merged["write_url"] = url
    return merged


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> AppConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")

    data = apply_env_overrides(data)
    _validate_config_schema(data)

    endpoint = EndpointConfig(
        spreadsheet_id=data["spreadsheet_id"],
        write_url=data["write_url"],
        timeout_seconds=float(data.get("timeout_seconds", 30)),
    )
    return AppConfig(
        endpoint=endpoint,
        tabs=_build_tabs(data.get("tabs") or {}),
        session_file=data.get("session_file", ".prodsheet-session.json"),
        log_dir=data.get("log_dir", "logs"),
    )
