"""
Pytest fixtures for the books kernel test suite.

Provides:
- Storage backends: every ``books`` test runs on the in-memory backend and
  on a private in-process SQLite database
- A file-backed SQLite backend for multi-connection concurrency tests
- Reference data factories (accounts, products, warehouses, documents)
- Structured-log capture

Environment Variables:
- DATABASE_URL: optional PostgreSQL URL; tests marked ``postgres`` are
  skipped when it is not set.
"""

import json
import logging
import os
from decimal import Decimal
from io import StringIO

import pytest

from books_kernel.domain.clock import DeterministicClock
from books_kernel.domain.dtos import DocumentInput, LineItemInput
from books_kernel.domain.settings import KernelSettings
from books_kernel.domain.values import AccountType, DocumentKind, DocumentStatus
from books_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from books_kernel.services.bookkeeping_service import BookkeepingService
from books_kernel.storage.factory import build_storage_backend
from books_kernel.storage.memory import MemoryStorageBackend


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture books_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(books, captured_logs):
            books.create_document(...)
            logs = captured_logs()
            assert any(r["message"] == "document_posted" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("books_kernel")
    previous_level = root.level
    root.addHandler(handler)
    root.setLevel(logging.DEBUG)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "postgres: mark test as requiring PostgreSQL")
    config.addinivalue_line("markers", "slow_locks: mark test as potentially waiting for DB locks")


# =============================================================================
# Storage
# =============================================================================


@pytest.fixture(params=["memory", "sqlite"])
def storage(request):
    """Each test using this fixture runs once per backend."""
    if request.param == "memory":
        backend = MemoryStorageBackend()
    else:
        backend = build_storage_backend("sql", "sqlite://", create_schema=True)
    yield backend
    backend.dispose()


@pytest.fixture
def sqlite_storage():
    backend = build_storage_backend("sql", "sqlite://", create_schema=True)
    yield backend
    backend.dispose()


@pytest.fixture
def sqlite_file_storage(tmp_path):
    """A real file so that every thread gets its own connection."""
    backend = build_storage_backend(
        "sql", f"sqlite:///{tmp_path / 'books.db'}", create_schema=True, sqlite_timeout=10.0
    )
    yield backend
    backend.dispose()


@pytest.fixture
def postgres_storage():
    url = os.environ.get("DATABASE_URL")
    if not url:
        pytest.skip("DATABASE_URL not set")
    backend = build_storage_backend("sql", url)
    backend.drop_schema()
    backend.create_schema()
    yield backend
    backend.drop_schema()
    backend.dispose()


# =============================================================================
# Service fixtures
# =============================================================================


@pytest.fixture
def deterministic_clock():
    """2024-01-01 12:00 UTC unless a test moves it."""
    return DeterministicClock()


@pytest.fixture
def settings():
    return KernelSettings()


@pytest.fixture
def books(storage, deterministic_clock, settings):
    return BookkeepingService(storage, clock=deterministic_clock, settings=settings, retry_backoff=0)


# =============================================================================
# Reference data
# =============================================================================


@pytest.fixture
def customer(books):
    return books.create_account("Acme Ltd", AccountType.CUSTOMER)


@pytest.fixture
def supplier(books):
    return books.create_account("Parts Inc", AccountType.SUPPLIER)


@pytest.fixture
def warehouse(books):
    return books.create_warehouse("Main", is_default=True)


@pytest.fixture
def product(books):
    return books.create_product("WID-1", "Widget", sell_price=Decimal("10.00"))


@pytest.fixture
def stocked_product(books, product, warehouse):
    """``product`` with 10 units on hand in ``warehouse``."""
    books.adjust_inventory(product.id, warehouse.id, Decimal("10"))
    return product


@pytest.fixture
def make_line():
    """Factory: a LineItemInput from plain numbers."""

    def _line(product, quantity, unit_price, discount="0", tax="0") -> LineItemInput:
        return LineItemInput(
            product_id=product.id,
            quantity=Decimal(str(quantity)),
            unit_price=Decimal(str(unit_price)),
            discount=Decimal(str(discount)),
            tax=Decimal(str(tax)),
        )

    return _line


@pytest.fixture
def create_sale(books, customer, warehouse):
    """Factory: create (and by default post) a sale for ``customer``."""

    def _create(lines, status=DocumentStatus.POSTED, account=None, **kwargs):
        return books.create_document(
            DocumentInput(
                kind=DocumentKind.SALE,
                account_id=(account or customer).id,
                warehouse_id=kwargs.pop("warehouse_id", warehouse.id),
                status=status,
                **kwargs,
            ),
            lines,
        )

    return _create


@pytest.fixture
def create_purchase(books, supplier, warehouse):
    """Factory: create (and by default post) a purchase from ``supplier``."""

    def _create(lines, status=DocumentStatus.POSTED, account=None, **kwargs):
        return books.create_document(
            DocumentInput(
                kind=DocumentKind.PURCHASE,
                account_id=(account or supplier).id,
                warehouse_id=kwargs.pop("warehouse_id", warehouse.id),
                status=status,
                **kwargs,
            ),
            lines,
        )

    return _create
