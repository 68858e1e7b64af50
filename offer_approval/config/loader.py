from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import (
    DEFAULT_COLUMNS,
    ApproverActions,
    FieldIndex,
    StatusVocabulary,
    WorkflowConfig,
)

"""Config loader.

Responsibilities:
- Load YAML (default ``config/workflow.yml``, overridable by OFFER_APPROVAL_CONFIG)
- Validate against config_schema.json (shipped next to this module)
- Merge partial column / status / action maps onto the defaults
- Build the WorkflowConfig handed to every service
"""

__all__ = [
    "CONFIG_ENV_VAR",
    "DEFAULT_CONFIG_PATH",
    "ConfigError",
    "SCHEMA_PATH",
    "build_config",
    "load_config",
    "resolve_config_path",
]

SCHEMA_PATH = Path(__file__).parent / "config_schema.json"
DEFAULT_CONFIG_PATH = Path("config/workflow.yml")
CONFIG_ENV_VAR = "OFFER_APPROVAL_CONFIG"


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: schema file missing or unreadable, or the data violates it
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
    """Explicit path, else $OFFER_APPROVAL_CONFIG, else config/workflow.yml."""
    if path is not None:
        return path
    env_path = os.getenv(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_PATH


def build_config(data: dict[str, Any]) -> WorkflowConfig:
    """Turn validated config data into a WorkflowConfig."""
    columns = {**DEFAULT_COLUMNS, **(data.get("columns") or {})}
    try:
        field_index = FieldIndex.from_letters(columns)
    except ValueError as e:
        raise ConfigError(str(e)) from e

    # 同じ列に 2 つのフィールドを割り当てるのは設定ミス
    seen: dict[int, str] = {}
    for name, column in field_index.columns.items():
        if column in seen:
            raise ConfigError(f"columns '{seen[column]}' and '{name}' share column {columns[name]}")
        seen[column] = name

    statuses = StatusVocabulary(**(data.get("status_strings") or {}))
    actions = ApproverActions(**(data.get("approver_actions") or {}))
    return WorkflowConfig(
        field_index=field_index,
        start_data_row=data["start_data_row"],
        sheet_name=data.get("sheet_name"),
        telekom_deal_cell=data.get("telekom_deal_cell"),
        statuses=statuses,
        actions=actions,
        enforce_bundle_integrity=data.get("enforce_bundle_integrity", True),
    )


def load_config(path: Path | None = None) -> WorkflowConfig:
    path = resolve_config_path(path)
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping, got {type(data).__name__}")

    _validate_config_schema(data)
    return build_config(data)
