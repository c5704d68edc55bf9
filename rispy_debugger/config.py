from __future__ import annotations
import json
import logging
import os
import shlex
from typing import List, Optional

from rispy_debugger.errors import ConfigError


# Defaults
_DEFAULT_SCHEMA = "auto"
_DEFAULT_LOG_LEVEL = "WARNING"


def split_command(text: str) -> List[str]:
    return shlex.split(text, posix=os.name != 'nt')


def words_from_env(var: str, defaults: Optional[List[str]] = None) -> List[str]:
    raw = os.environ.get(var)
    if not raw:
        return list(defaults or [])
    return split_command(raw)


def get_engine_command() -> List[str]:
    return words_from_env('RISPY_ENGINE_CMD')


def get_schema_name() -> str:
    name = os.environ.get('RISPY_SCHEMA', _DEFAULT_SCHEMA).strip().lower()
    if name not in ('auto', 'globals', 'envs'):
        raise ConfigError(f"RISPY_SCHEMA must be auto, globals or envs, not {name!r}")
    return name


def get_log_level() -> int:
    name = os.environ.get('RISPY_LOG_LEVEL', _DEFAULT_LOG_LEVEL).strip().upper()
    level = logging.getLevelName(name)
    if not isinstance(level, int):
        raise ConfigError(f"Unknown log level {name!r}")
    return level


def get_print_options_json() -> str | None:
    raw = os.environ.get('RISPY_PRINT_OPTIONS')
    if raw is None:
        return None
    # malformed values fail at startup
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as ex:
        raise ConfigError(f"RISPY_PRINT_OPTIONS is not valid JSON: {ex}") from ex
    if not isinstance(parsed, dict):
        raise ConfigError("RISPY_PRINT_OPTIONS must be a JSON object")
    return raw
