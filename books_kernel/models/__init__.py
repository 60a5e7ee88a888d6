"""ORM models for the bookkeeping kernel."""

from books_kernel.models.account import Account, FinancialTransaction
from books_kernel.models.catalog import Product, Warehouse
from books_kernel.models.document import Document, LineItem
from books_kernel.models.inventory import InventoryLevel, InventoryMovement
from books_kernel.models.sequence import SequenceCounter

__all__ = [
    "Account",
    "Document",
    "FinancialTransaction",
    "InventoryLevel",
    "InventoryMovement",
    "LineItem",
    "Product",
    "SequenceCounter",
    "Warehouse",
    "import_all_models",
]


def import_all_models() -> None:
    """
    Make sure every model is registered on Base.metadata.

    Importing this package already does it; the function gives callers an
    explicit hook that survives import-order refactors.
    """
    for model in (
        Account,
        FinancialTransaction,
        Product,
        Warehouse,
        Document,
        LineItem,
        InventoryLevel,
        InventoryMovement,
        SequenceCounter,
    ):
        assert model.__table__ is not None
