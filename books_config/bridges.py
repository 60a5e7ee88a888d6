"""
Config -> Kernel Bridges.

Functions that convert a BooksConfig into kernel inputs.  These live in
books_config (the producer) because the kernel must NEVER import
books_config.

Usage:
    from books_config import get_active_config
    from books_config.bridges import build_service_from_config

    config = get_active_config()
    books = build_service_from_config(config)
"""

from __future__ import annotations

from books_config.schema import BooksConfig
from books_kernel.domain.clock import Clock
from books_kernel.domain.settings import KernelSettings, NumberingPolicy, StatementStyle
from books_kernel.logging_config import configure_logging
from books_kernel.services.bookkeeping_service import BookkeepingService
from books_kernel.storage.base import StorageBackend
from books_kernel.storage.factory import build_storage_backend


def kernel_settings_from_config(config: BooksConfig) -> KernelSettings:
    posting = config.posting
    return KernelSettings(
        numbering=NumberingPolicy(
            sale_prefix=posting.sale_prefix,
            purchase_prefix=posting.purchase_prefix,
            padding=posting.number_padding,
        ),
        decimal_places=config.company.decimal_places,
        max_conflict_retries=posting.max_conflict_retries,
        allow_negative_adjustments=config.inventory.allow_negative_adjustments,
    )


def statement_style_from_config(config: BooksConfig) -> StatementStyle:
    """Header lines are the non-empty company fields, in print order."""
    company = config.company
    details = []
    if company.address:
        details.append(company.address)
    if company.phone:
        details.append(f"Tel: {company.phone}")
    if company.email:
        details.append(company.email)
    if company.tax_number:
        details.append(f"Tax no: {company.tax_number}")
    return StatementStyle(
        company_name=company.name,
        company_details=tuple(details),
        currency_symbol=company.currency_symbol,
        symbol_position=company.symbol_position,
        decimal_places=company.decimal_places,
    )


def build_storage_from_config(config: BooksConfig, **engine_options) -> StorageBackend:
    storage = config.storage
    return build_storage_backend(
        storage.backend,
        storage.database_url,
        echo=storage.echo,
        create_schema=storage.create_schema,
        **engine_options,
    )


def configure_logging_from_config(config: BooksConfig) -> None:
    configure_logging(level=config.logging.level)


def build_service_from_config(
    config: BooksConfig,
    clock: Clock | None = None,
    storage: StorageBackend | None = None,
) -> BookkeepingService:
    """Wire a BookkeepingService; ``storage`` overrides the configured backend."""
    return BookkeepingService(
        storage or build_storage_from_config(config),
        clock=clock,
        settings=kernel_settings_from_config(config),
        statement_style=statement_style_from_config(config),
    )
