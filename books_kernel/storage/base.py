"""
StorageBackend -- the persistence seam of the kernel.

Responsibility:
    Defines the repositories every service talks to and the unit of work
    that bundles them into one atomic, isolated transaction.  Two
    implementations exist: ``SqlStorageBackend`` (SQLAlchemy, PostgreSQL or
    SQLite) and ``MemoryStorageBackend`` (test double).  Exactly one is
    selected at process start by ``build_storage_backend``.
Architecture position:
    Kernel > Storage.  Imports models/ and exceptions only.  Services and
    selectors depend on these interfaces, never on a session.

Unit-of-work contract:
    - ``with backend.unit_of_work() as uow:`` commits on normal exit and
      rolls back on any exception, re-raising it.
    - Repositories flush but never commit; nothing inside a unit is visible
      to another unit before commit.
    - ``*_for_update`` methods take a row lock that is held until the unit
      ends.  Callers take locks in a fixed order (document-number counter,
      inventory levels sorted by (product_id, warehouse_id), the account,
      then the movement and ledger counters) so that two units touching the
      same rows serialize instead of deadlocking.
    - Store failures surface as ConcurrencyConflictError (transient) or
      PersistenceError; the original exception is chained as __cause__.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from datetime import date
from uuid import UUID

from books_kernel.models import (
    Account,
    Document,
    FinancialTransaction,
    InventoryLevel,
    InventoryMovement,
    LineItem,
    Product,
    Warehouse,
)

# Well-known sequence names
LEDGER_SEQUENCE = "ledger_entry"
MOVEMENT_SEQUENCE = "inventory_movement"


def document_number_sequence(kind) -> str:
    return f"document_number:{getattr(kind, 'value', kind)}"


class AccountRepository(ABC):
    @abstractmethod
    def add(self, account: Account) -> Account: ...

    @abstractmethod
    def get(self, account_id: UUID) -> Account | None: ...

    @abstractmethod
    def get_for_update(self, account_id: UUID) -> Account | None: ...

    @abstractmethod
    def list_accounts(self, account_type=None, active_only: bool = False) -> list[Account]: ...


class TransactionRepository(ABC):
    @abstractmethod
    def add(self, transaction: FinancialTransaction) -> FinancialTransaction: ...

    @abstractmethod
    def get(self, transaction_id: UUID) -> FinancialTransaction | None: ...

    @abstractmethod
    def delete(self, transaction: FinancialTransaction) -> None: ...

    @abstractmethod
    def list_for_account(
        self,
        account_id: UUID,
        start: date | None = None,
        end: date | None = None,
        before: date | None = None,
    ) -> list[FinancialTransaction]:
        """Transactions ordered by (transaction_date, seq); bounds are inclusive, ``before`` strict."""

    @abstractmethod
    def find_by_document(self, document_id: UUID) -> list[FinancialTransaction]: ...


class DocumentRepository(ABC):
    """Pure CRUD for documents and their line items."""

    @abstractmethod
    def add(self, document: Document) -> Document: ...

    @abstractmethod
    def add_lines(self, lines: list[LineItem]) -> list[LineItem]: ...

    @abstractmethod
    def get(self, document_id: UUID) -> Document | None: ...

    @abstractmethod
    def get_for_update(self, document_id: UUID) -> Document | None: ...

    @abstractmethod
    def lines(self, document_id: UUID) -> list[LineItem]:
        """Line items in insertion (line_no) order."""

    @abstractmethod
    def list_by_account(
        self,
        account_id: UUID,
        start: date | None = None,
        end: date | None = None,
        kind=None,
        status=None,
    ) -> list[Document]:
        """Documents ordered by (document_date, number)."""

    @abstractmethod
    def update_status(self, document: Document, status) -> Document: ...

    @abstractmethod
    def delete(self, document: Document) -> None:
        """Delete the document and its line items."""

    @abstractmethod
    def number_exists(self, kind, number: str) -> bool: ...


class InventoryRepository(ABC):
    @abstractmethod
    def get_level(self, product_id: UUID, warehouse_id: UUID) -> InventoryLevel | None: ...

    @abstractmethod
    def get_level_for_update(
        self, product_id: UUID, warehouse_id: UUID
    ) -> InventoryLevel | None: ...

    @abstractmethod
    def create_level(self, product_id: UUID, warehouse_id: UUID) -> InventoryLevel:
        """
        Create the zero level for a pair, or return the locked row a
        concurrent unit created first.
        """

    @abstractmethod
    def list_levels(
        self,
        warehouse_id: UUID | None = None,
        product_id: UUID | None = None,
    ) -> list[InventoryLevel]: ...

    @abstractmethod
    def add_movement(self, movement: InventoryMovement) -> InventoryMovement: ...

    @abstractmethod
    def get_movement(self, movement_id: UUID) -> InventoryMovement | None: ...

    @abstractmethod
    def delete_movement(self, movement: InventoryMovement) -> None: ...

    @abstractmethod
    def list_movements(
        self,
        product_id: UUID | None = None,
        warehouse_id: UUID | None = None,
        document_id: UUID | None = None,
    ) -> list[InventoryMovement]:
        """Movements ordered by seq."""


class CatalogRepository(ABC):
    @abstractmethod
    def add_product(self, product: Product) -> Product: ...

    @abstractmethod
    def get_product(self, product_id: UUID) -> Product | None: ...

    @abstractmethod
    def get_product_by_code(self, code: str) -> Product | None: ...

    @abstractmethod
    def list_products(self) -> list[Product]: ...

    @abstractmethod
    def add_warehouse(self, warehouse: Warehouse) -> Warehouse: ...

    @abstractmethod
    def get_warehouse(self, warehouse_id: UUID) -> Warehouse | None: ...

    @abstractmethod
    def list_warehouses(self) -> list[Warehouse]: ...


class SequenceRepository(ABC):
    @abstractmethod
    def next_value(self, sequence_name: str) -> int:
        """Strictly increasing value for a named sequence; rolled back with the unit."""


class UnitOfWork(ABC):
    """One atomic transaction with its repositories."""

    accounts: AccountRepository
    transactions: TransactionRepository
    documents: DocumentRepository
    inventory: InventoryRepository
    catalog: CatalogRepository
    sequences: SequenceRepository

    @abstractmethod
    def flush(self) -> None: ...


class StorageBackend(ABC):
    name: str = "abstract"

    @abstractmethod
    def unit_of_work(self) -> AbstractContextManager[UnitOfWork]: ...

    @abstractmethod
    def create_schema(self) -> None: ...

    @abstractmethod
    def dispose(self) -> None: ...
