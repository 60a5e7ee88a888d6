"""
Configuration Loader (``books_config.loader``).

Responsibility
--------------
Loads the YAML configuration file and parses it into the typed
``books_config.schema`` dataclasses.  Runtime callers go through
``books_config.get_active_config()``.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Unknown sections and unknown keys are rejected, so a typo never turns
  into a silent default.
* Invalid values raise ``ValueError`` naming the offending key.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from books_config.schema import (
    LOG_LEVELS,
    STORAGE_BACKENDS,
    SYMBOL_POSITIONS,
    BooksConfig,
    CompanyProfile,
    InventoryPolicy,
    LoggingConfig,
    PostingPolicy,
    StorageConfig,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def _section(data: dict[str, Any], name: str, cls: type) -> dict[str, Any]:
    raw = data.get(name) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"'{name}' must be a mapping")
    allowed = {f.name for f in fields(cls)}
    unknown = sorted(set(raw) - allowed)
    if unknown:
        raise ValueError(f"Unknown key(s) in '{name}': {', '.join(unknown)}")
    return raw


def _choice(section: str, key: str, value: Any, choices: tuple[str, ...]) -> str:
    if value not in choices:
        raise ValueError(f"{section}.{key} must be one of {choices}, got {value!r}")
    return value


def _non_negative_int(section: str, key: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"{section}.{key} must be a non-negative integer, got {value!r}")
    return value


def _flag(section: str, key: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"{section}.{key} must be true or false, got {value!r}")
    return value


def parse_storage(data: dict[str, Any]) -> StorageConfig:
    raw = _section(data, "storage", StorageConfig)
    default = StorageConfig()
    backend = _choice("storage", "backend", raw.get("backend", default.backend), STORAGE_BACKENDS)
    database_url = raw.get("database_url", default.database_url)
    if backend == "sql" and not database_url:
        raise ValueError("storage.database_url is required when storage.backend is 'sql'")
    return StorageConfig(
        backend=backend,
        database_url=database_url,
        echo=_flag("storage", "echo", raw.get("echo", default.echo)),
        create_schema=_flag(
            "storage", "create_schema", raw.get("create_schema", default.create_schema)
        ),
    )


def parse_company(data: dict[str, Any]) -> CompanyProfile:
    raw = _section(data, "company", CompanyProfile)
    default = CompanyProfile()
    return CompanyProfile(
        name=str(raw.get("name", default.name)),
        address=str(raw.get("address", default.address)),
        phone=str(raw.get("phone", default.phone)),
        email=str(raw.get("email", default.email)),
        tax_number=str(raw.get("tax_number", default.tax_number)),
        currency_symbol=str(raw.get("currency_symbol", default.currency_symbol)),
        symbol_position=_choice(
            "company",
            "symbol_position",
            raw.get("symbol_position", default.symbol_position),
            SYMBOL_POSITIONS,
        ),
        decimal_places=_non_negative_int(
            "company", "decimal_places", raw.get("decimal_places", default.decimal_places)
        ),
    )


def parse_posting(data: dict[str, Any]) -> PostingPolicy:
    raw = _section(data, "posting", PostingPolicy)
    default = PostingPolicy()
    padding = _non_negative_int(
        "posting", "number_padding", raw.get("number_padding", default.number_padding)
    )
    if padding == 0:
        raise ValueError("posting.number_padding must be at least 1")
    return PostingPolicy(
        sale_prefix=str(raw.get("sale_prefix", default.sale_prefix)),
        purchase_prefix=str(raw.get("purchase_prefix", default.purchase_prefix)),
        number_padding=padding,
        max_conflict_retries=_non_negative_int(
            "posting",
            "max_conflict_retries",
            raw.get("max_conflict_retries", default.max_conflict_retries),
        ),
    )


def parse_inventory(data: dict[str, Any]) -> InventoryPolicy:
    raw = _section(data, "inventory", InventoryPolicy)
    default = InventoryPolicy()
    return InventoryPolicy(
        allow_negative_adjustments=_flag(
            "inventory",
            "allow_negative_adjustments",
            raw.get("allow_negative_adjustments", default.allow_negative_adjustments),
        ),
    )


def parse_logging(data: dict[str, Any]) -> LoggingConfig:
    raw = _section(data, "logging", LoggingConfig)
    level = str(raw.get("level", LoggingConfig().level)).upper()
    return LoggingConfig(level=_choice("logging", "level", level, LOG_LEVELS))


_SECTIONS = ("storage", "company", "posting", "inventory", "logging")


def config_from_dict(data: dict[str, Any]) -> BooksConfig:
    """
    Parse a configuration mapping.

    Raises:
        ValueError: unknown section or key, or an invalid value.
    """
    unknown = sorted(set(data) - set(_SECTIONS))
    if unknown:
        raise ValueError(f"Unknown configuration section(s): {', '.join(unknown)}")
    return BooksConfig(
        storage=parse_storage(data),
        company=parse_company(data),
        posting=parse_posting(data),
        inventory=parse_inventory(data),
        logging=parse_logging(data),
        checksum=compute_checksum(data),
    )


def load_config(path: Path | str) -> BooksConfig:
    """Load and parse one configuration file."""
    return config_from_dict(load_yaml_file(Path(path)))
