"""Configuration loader for memo caches."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import yaml
from jsonschema import Draft7Validator

from .cache import MemoizingCache
from .exceptions import ConfigError

logger = logging.getLogger(__name__)

CONFIG_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "properties": {
        "thread_safe": {"type": "boolean"},
        "log_level": {
            "type": "string",
            "enum": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        },
        "max_prime_digits": {"type": "integer", "minimum": 1},
    },
    "additionalProperties": False,
}

_validator = Draft7Validator(CONFIG_SCHEMA)


@dataclass(frozen=True)
class MemoConfig:
    thread_safe: bool = True
    log_level: str = "INFO"
    max_prime_digits: int = 18

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MemoConfig":
        return cls(
            thread_safe=bool(data.get("thread_safe", True)),
            log_level=str(data.get("log_level", "INFO")),
            max_prime_digits=int(data.get("max_prime_digits", 18)),
        )


ENV_MAP = {
    "thread_safe": "MEMO_THREAD_SAFE",
    "log_level": "MEMO_LOG_LEVEL",
    "max_prime_digits": "MEMO_MAX_PRIME_DIGITS",
}

_BOOL_VALUES = {
    "1": True, "true": True, "yes": True, "on": True,
    "0": False, "false": False, "no": False, "off": False,
}


def load_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def merge_env_overrides(config_data: Dict[str, Any]) -> Dict[str, Any]:
    merged = json.loads(json.dumps(config_data))  # deep copy via json

    for key, env_name in ENV_MAP.items():
        if env_name not in os.environ:
            continue
        value: Any = os.environ[env_name]
        if key == "thread_safe":
            # Unrecognized strings are left for validate_config to reject
            value = _BOOL_VALUES.get(value.strip().lower(), value)
        elif key == "max_prime_digits":
            if value.strip().lstrip("-").isdigit():
                value = int(value)
        elif key == "log_level":
            value = value.upper()
        merged[key] = value

    return merged


def validate_config(payload: Dict[str, Any]) -> None:
    errors = sorted(_validator.iter_errors(payload), key=lambda e: list(e.path))
    if errors:
        messages = ", ".join(error.message for error in errors)
        raise ConfigError(f"config validation failed: {messages}")


def load_config(config_path: str | Path = "config/memo.yml") -> MemoConfig:
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    data = load_yaml(path)
    data = merge_env_overrides(data)
    validate_config(data)
    config = MemoConfig.from_dict(data)
    logger.debug(f"Loaded config from {path}: {config}")
    return config


def build_cache(config: Optional[MemoConfig] = None, compute_fn: Optional[Callable] = None) -> MemoizingCache:
    config = config or MemoConfig()
    return MemoizingCache(compute_fn, thread_safe=config.thread_safe)


def configure_logging(config: Optional[MemoConfig] = None) -> None:
    config = config or MemoConfig()
    level = logging.getLevelName(config.log_level.upper())
    if not isinstance(level, int):
        raise ConfigError(f"unknown log_level: {config.log_level!r}")
    logging.basicConfig(level=level, format="%(levelname)s %(name)s %(message)s")
