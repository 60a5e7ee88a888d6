"""
books_config -- single public entrypoint for runtime configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration
    files or environment variables directly.

Architecture position:
    Configuration.  This package sits above ``books_kernel``.  The kernel
    MUST NEVER import from ``books_config``; ``books_config.bridges``
    translates the loaded config into kernel objects.

Environment:
    BOOKS_CONFIG        path of the YAML file to load (default: the
                        packaged ``defaults.yaml``)
    BOOKS_DATABASE_URL  overrides ``storage.database_url``; when set
                        without an explicit backend, selects ``sql``
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from books_config.loader import config_from_dict, load_config, load_yaml_file
from books_config.schema import (
    BooksConfig,
    CompanyProfile,
    InventoryPolicy,
    LoggingConfig,
    PostingPolicy,
    StorageConfig,
)

_logger = logging.getLogger("books_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"
CONFIG_ENV_VAR = "BOOKS_CONFIG"
DATABASE_URL_ENV_VAR = "BOOKS_DATABASE_URL"


def get_active_config(path: Path | str | None = None) -> BooksConfig:
    """
    The ONLY public configuration entrypoint.

    Resolution order for the file: ``path``, then ``$BOOKS_CONFIG``, then
    the packaged defaults.  ``$BOOKS_DATABASE_URL`` is applied on top.

    Raises:
        FileNotFoundError: the named file does not exist.
        ValueError: the file fails validation.
    """
    source = Path(path or os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH)
    data = load_yaml_file(source)

    database_url = os.environ.get(DATABASE_URL_ENV_VAR)
    if database_url:
        storage = dict(data.get("storage") or {})
        storage["database_url"] = database_url
        if source == DEFAULT_CONFIG_PATH or "backend" not in storage:
            storage["backend"] = "sql"
        data = {**data, "storage": storage}

    config = config_from_dict(data)
    _logger.info(
        "books_config_loaded",
        extra={
            "config_path": str(source),
            "checksum": config.checksum,
            "backend": config.storage.backend,
        },
    )
    return config


__all__ = [
    "BooksConfig",
    "CompanyProfile",
    "InventoryPolicy",
    "LoggingConfig",
    "PostingPolicy",
    "StorageConfig",
    "config_from_dict",
    "get_active_config",
    "load_config",
]
