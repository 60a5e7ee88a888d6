"""Services for the bookkeeping kernel (write side)."""

from books_kernel.services.bookkeeping_service import BookkeepingService
from books_kernel.services.catalog_service import CatalogService
from books_kernel.services.inventory_store import InventoryStore
from books_kernel.services.ledger_store import LedgerStore
from books_kernel.services.posting_engine import PostingEngine

__all__ = [
    "BookkeepingService",
    "CatalogService",
    "InventoryStore",
    "LedgerStore",
    "PostingEngine",
]
