"""
Ledger settings (``inventory_config.settings``).

Responsibility
--------------
Builds the frozen ``LedgerSettings`` the application runs with, from three
layers (lowest to highest precedence):

1. Defaults declared on the dataclass.
2. A YAML file: the ``path`` argument, or ``INVENTORY_CONFIG_FILE``.
3. Environment variables (``INVENTORY_STORAGE_BACKEND``, ``DATABASE_URL``...).

Architecture position
---------------------
**Config layer**. Consumed by ``inventory_config.factory`` at startup. The
kernel never imports this package.

Invariants enforced
-------------------
* Every value is type-checked and range-checked at load time; bad input
  raises ``ValueError`` naming the offending key. There are no silent
  fallbacks for malformed values.
* Unknown keys in the YAML file are rejected.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid value  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping

import yaml

STORAGE_BACKENDS = frozenset({"memory", "sql"})

CONFIG_FILE_ENV = "INVENTORY_CONFIG_FILE"

# environment variable -> settings field
ENV_VARS: dict[str, str] = {
    "INVENTORY_STORAGE_BACKEND": "storage_backend",
    "DATABASE_URL": "database_url",
    "INVENTORY_DATABASE_ECHO": "database_echo",
    "INVENTORY_POOL_SIZE": "pool_size",
    "INVENTORY_MAX_OVERFLOW": "max_overflow",
    "INVENTORY_MAX_TRANSFER_RETRIES": "max_transfer_retries",
    "INVENTORY_RETRY_BACKOFF_SECONDS": "retry_backoff_seconds",
    "INVENTORY_LOG_LEVEL": "log_level",
}

_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off"})


@dataclass(frozen=True)
class LedgerSettings:
    """Runtime configuration for one InventoryLedger process."""

    storage_backend: str = "memory"
    database_url: str | None = None
    database_echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    max_transfer_retries: int = 3
    retry_backoff_seconds: float = 0.01
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.storage_backend not in STORAGE_BACKENDS:
            raise ValueError(
                f"storage_backend must be one of {sorted(STORAGE_BACKENDS)}, "
                f"got {self.storage_backend!r}"
            )
        if self.storage_backend == "sql" and not self.database_url:
            raise ValueError("database_url is required when storage_backend is 'sql'")
        for name in ("pool_size", "max_overflow", "max_transfer_retries"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValueError(f"{name} must be a non-negative integer, got {value!r}")
        if self.pool_size < 1:
            raise ValueError(f"pool_size must be >= 1, got {self.pool_size}")
        if self.retry_backoff_seconds < 0:
            raise ValueError(
                f"retry_backoff_seconds must be >= 0, got {self.retry_backoff_seconds}"
            )
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ValueError(f"Unknown log_level {self.log_level!r}")

    @property
    def log_level_number(self) -> int:
        return logging.getLevelName(self.log_level.upper())

    def checksum(self) -> str:
        """Deterministic SHA-256 of the settings, with the database URL masked."""
        data = asdict(self)
        if data["database_url"]:
            data["database_url"] = "***"
        canonical = json.dumps(data, sort_keys=True)
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


_FIELD_TYPES: dict[str, str] = {f.name: f.type for f in fields(LedgerSettings)}


def _coerce(key: str, value: Any) -> Any:
    """Convert a YAML or environment value to the field's type."""
    kind = _FIELD_TYPES[key]
    if value is None:
        return None
    if kind == "bool":
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
        raise ValueError(f"{key} must be a boolean, got {value!r}")
    if kind == "int":
        if isinstance(value, bool):
            raise ValueError(f"{key} must be an integer, got {value!r}")
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"{key} must be an integer, got {value!r}") from exc
    if kind == "float":
        try:
            return float(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"{key} must be a number, got {value!r}") from exc
    return str(value)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a YAML settings file.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: settings file must contain a mapping")
    return data


def parse_settings(data: Mapping[str, Any], base: LedgerSettings | None = None) -> LedgerSettings:
    """Apply ``data`` on top of ``base`` (defaults when omitted)."""
    unknown = set(data) - set(_FIELD_TYPES)
    if unknown:
        raise ValueError(f"Unknown settings keys: {sorted(unknown)}")
    overrides = {key: _coerce(key, value) for key, value in data.items()}
    return replace(base or LedgerSettings(), **overrides)


def settings_from_env(environ: Mapping[str, str]) -> dict[str, str]:
    """The settings overrides present in ``environ``."""
    return {
        field_name: environ[var]
        for var, field_name in ENV_VARS.items()
        if environ.get(var, "") != ""
    }


def load_settings(
    path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> LedgerSettings:
    """
    Load settings from defaults, an optional YAML file and the environment.

    Args:
        path: YAML file. Falls back to ``$INVENTORY_CONFIG_FILE``; no file
            is read when neither is set.
        environ: Environment mapping; ``os.environ`` when omitted.
    """
    env = os.environ if environ is None else environ
    file_values: dict[str, Any] = {}
    config_path = path or env.get(CONFIG_FILE_ENV)
    if config_path:
        file_values = load_yaml_file(Path(config_path))

    merged = dict(file_values)
    merged.update(settings_from_env(env))
    return parse_settings(merged)
