"""
BooksConfig schema.

The YAML file is parsed into these frozen types by the loader; bridges
turn them into kernel objects.  Every field has a default so that a
partial file only overrides what it names.
"""

from __future__ import annotations

from dataclasses import dataclass, field

STORAGE_BACKENDS = ("memory", "sql")
SYMBOL_POSITIONS = ("before", "after")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StorageConfig:
    """Which backend to run on; selected once at process start."""

    backend: str = "memory"
    database_url: str | None = None
    echo: bool = False
    create_schema: bool = True


# ---------------------------------------------------------------------------
# Company identity (statement header and currency formatting)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CompanyProfile:
    name: str = ""
    address: str = ""
    phone: str = ""
    email: str = ""
    tax_number: str = ""
    currency_symbol: str = "$"
    symbol_position: str = "before"
    decimal_places: int = 2


# ---------------------------------------------------------------------------
# Posting and inventory policy
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PostingPolicy:
    sale_prefix: str = "INV-"
    purchase_prefix: str = "PUR-"
    number_padding: int = 5
    max_conflict_retries: int = 3


@dataclass(frozen=True)
class InventoryPolicy:
    allow_negative_adjustments: bool = False


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BooksConfig:
    """The complete runtime configuration."""

    storage: StorageConfig = field(default_factory=StorageConfig)
    company: CompanyProfile = field(default_factory=CompanyProfile)
    posting: PostingPolicy = field(default_factory=PostingPolicy)
    inventory: InventoryPolicy = field(default_factory=InventoryPolicy)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    checksum: str = ""
