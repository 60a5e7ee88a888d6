"""
MemoryStorageBackend -- in-process test double for the storage seam.

Responsibility:
    Same repositories and unit-of-work contract as the SQL backend, held in
    dicts of transient ORM instances.
Concurrency model:
    One re-entrant lock per backend is held for the whole unit, so units are
    serializable.  A unit works on a clone of the committed state; on
    normal exit a clone of the working copy becomes the committed state, on
    any exception the working copy is discarded.  Instances returned to a
    caller therefore never alias committed state.

Nested units on one thread are not supported: the inner commit would be
overwritten by the outer one.
"""

import threading
from collections.abc import Generator
from contextlib import contextmanager
from datetime import date
from uuid import UUID, uuid4

from books_kernel.db.base import apply_column_defaults, clone_row
from books_kernel.exceptions import PersistenceError
from books_kernel.logging_config import LogContext, get_logger
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
from books_kernel.storage.base import (
    AccountRepository,
    CatalogRepository,
    DocumentRepository,
    InventoryRepository,
    SequenceRepository,
    StorageBackend,
    TransactionRepository,
    UnitOfWork,
)

logger = get_logger("storage.memory")

_TABLES = (
    "accounts",
    "transactions",
    "documents",
    "lines",
    "levels",
    "movements",
    "products",
    "warehouses",
)


def _value(v):
    return getattr(v, "value", v)


class _MemoryState:
    def __init__(self):
        self.accounts: dict[UUID, Account] = {}
        self.transactions: dict[UUID, FinancialTransaction] = {}
        self.documents: dict[UUID, Document] = {}
        self.lines: dict[UUID, LineItem] = {}
        self.levels: dict[UUID, InventoryLevel] = {}
        self.movements: dict[UUID, InventoryMovement] = {}
        self.products: dict[UUID, Product] = {}
        self.warehouses: dict[UUID, Warehouse] = {}
        self.sequences: dict[str, int] = {}

    def clone(self) -> "_MemoryState":
        copy = _MemoryState()
        for table in _TABLES:
            setattr(
                copy,
                table,
                {key: clone_row(row) for key, row in getattr(self, table).items()},
            )
        copy.sequences = dict(self.sequences)
        return copy


class MemoryAccountRepository(AccountRepository):
    def __init__(self, state: _MemoryState):
        self._state = state

    def add(self, account: Account) -> Account:
        apply_column_defaults(account)
        self._state.accounts[account.id] = account
        return account

    def get(self, account_id: UUID) -> Account | None:
        return self._state.accounts.get(account_id)

    def get_for_update(self, account_id: UUID) -> Account | None:
        # The backend lock already serializes the unit
        return self.get(account_id)

    def list_accounts(self, account_type=None, active_only: bool = False) -> list[Account]:
        rows = [
            a
            for a in self._state.accounts.values()
            if (account_type is None or _value(a.account_type) == _value(account_type))
            and (not active_only or a.is_active)
        ]
        return sorted(rows, key=lambda a: (a.name, str(a.id)))


class MemoryTransactionRepository(TransactionRepository):
    def __init__(self, state: _MemoryState):
        self._state = state

    def add(self, transaction: FinancialTransaction) -> FinancialTransaction:
        apply_column_defaults(transaction)
        self._state.transactions[transaction.id] = transaction
        return transaction

    def get(self, transaction_id: UUID) -> FinancialTransaction | None:
        return self._state.transactions.get(transaction_id)

    def delete(self, transaction: FinancialTransaction) -> None:
        self._state.transactions.pop(transaction.id, None)

    def list_for_account(
        self,
        account_id: UUID,
        start: date | None = None,
        end: date | None = None,
        before: date | None = None,
    ) -> list[FinancialTransaction]:
        rows = [
            t
            for t in self._state.transactions.values()
            if t.account_id == account_id
            and (start is None or t.transaction_date >= start)
            and (end is None or t.transaction_date <= end)
            and (before is None or t.transaction_date < before)
        ]
        return sorted(rows, key=lambda t: (t.transaction_date, t.seq))

    def find_by_document(self, document_id: UUID) -> list[FinancialTransaction]:
        rows = [t for t in self._state.transactions.values() if t.document_id == document_id]
        return sorted(rows, key=lambda t: t.seq)


class MemoryDocumentRepository(DocumentRepository):
    def __init__(self, state: _MemoryState):
        self._state = state

    def add(self, document: Document) -> Document:
        apply_column_defaults(document)
        if self.number_exists(document.kind, document.number):
            raise PersistenceError(
                "insert",
                f"unique constraint uq_document_kind_number violated for {document.number}",
            )
        self._state.documents[document.id] = document
        return document

    def add_lines(self, lines: list[LineItem]) -> list[LineItem]:
        for line in lines:
            apply_column_defaults(line)
            self._state.lines[line.id] = line
        return lines

    def get(self, document_id: UUID) -> Document | None:
        return self._state.documents.get(document_id)

    def get_for_update(self, document_id: UUID) -> Document | None:
        return self.get(document_id)

    def lines(self, document_id: UUID) -> list[LineItem]:
        rows = [line for line in self._state.lines.values() if line.document_id == document_id]
        return sorted(rows, key=lambda line: line.line_no)

    def list_by_account(
        self,
        account_id: UUID,
        start: date | None = None,
        end: date | None = None,
        kind=None,
        status=None,
    ) -> list[Document]:
        rows = [
            d
            for d in self._state.documents.values()
            if d.account_id == account_id
            and (start is None or d.document_date >= start)
            and (end is None or d.document_date <= end)
            and (kind is None or _value(d.kind) == _value(kind))
            and (status is None or _value(d.status) == _value(status))
        ]
        return sorted(rows, key=lambda d: (d.document_date, d.number))

    def update_status(self, document: Document, status) -> Document:
        document.status = _value(status)
        return document

    def delete(self, document: Document) -> None:
        for line in self.lines(document.id):
            del self._state.lines[line.id]
        self._state.documents.pop(document.id, None)

    def number_exists(self, kind, number: str) -> bool:
        return any(
            _value(d.kind) == _value(kind) and d.number == number
            for d in self._state.documents.values()
        )


class MemoryInventoryRepository(InventoryRepository):
    def __init__(self, state: _MemoryState):
        self._state = state

    def get_level(self, product_id: UUID, warehouse_id: UUID) -> InventoryLevel | None:
        for level in self._state.levels.values():
            if level.product_id == product_id and level.warehouse_id == warehouse_id:
                return level
        return None

    def get_level_for_update(
        self, product_id: UUID, warehouse_id: UUID
    ) -> InventoryLevel | None:
        return self.get_level(product_id, warehouse_id)

    def create_level(self, product_id: UUID, warehouse_id: UUID) -> InventoryLevel:
        existing = self.get_level(product_id, warehouse_id)
        if existing is not None:
            return existing
        level = apply_column_defaults(
            InventoryLevel(product_id=product_id, warehouse_id=warehouse_id)
        )
        self._state.levels[level.id] = level
        return level

    def list_levels(
        self,
        warehouse_id: UUID | None = None,
        product_id: UUID | None = None,
    ) -> list[InventoryLevel]:
        rows = [
            level
            for level in self._state.levels.values()
            if (warehouse_id is None or level.warehouse_id == warehouse_id)
            and (product_id is None or level.product_id == product_id)
        ]
        return sorted(rows, key=lambda level: (str(level.product_id), str(level.warehouse_id)))

    def add_movement(self, movement: InventoryMovement) -> InventoryMovement:
        apply_column_defaults(movement)
        self._state.movements[movement.id] = movement
        return movement

    def get_movement(self, movement_id: UUID) -> InventoryMovement | None:
        return self._state.movements.get(movement_id)

    def delete_movement(self, movement: InventoryMovement) -> None:
        self._state.movements.pop(movement.id, None)

    def list_movements(
        self,
        product_id: UUID | None = None,
        warehouse_id: UUID | None = None,
        document_id: UUID | None = None,
    ) -> list[InventoryMovement]:
        rows = [
            m
            for m in self._state.movements.values()
            if (product_id is None or m.product_id == product_id)
            and (warehouse_id is None or m.warehouse_id == warehouse_id)
            and (document_id is None or m.document_id == document_id)
        ]
        return sorted(rows, key=lambda m: m.seq)


class MemoryCatalogRepository(CatalogRepository):
    def __init__(self, state: _MemoryState):
        self._state = state

    def add_product(self, product: Product) -> Product:
        apply_column_defaults(product)
        if self.get_product_by_code(product.code) is not None:
            raise PersistenceError(
                "insert", f"unique constraint uq_product_code violated for {product.code}"
            )
        self._state.products[product.id] = product
        return product

    def get_product(self, product_id: UUID) -> Product | None:
        return self._state.products.get(product_id)

    def get_product_by_code(self, code: str) -> Product | None:
        for product in self._state.products.values():
            if product.code == code:
                return product
        return None

    def list_products(self) -> list[Product]:
        return sorted(self._state.products.values(), key=lambda p: p.code)

    def add_warehouse(self, warehouse: Warehouse) -> Warehouse:
        apply_column_defaults(warehouse)
        self._state.warehouses[warehouse.id] = warehouse
        return warehouse

    def get_warehouse(self, warehouse_id: UUID) -> Warehouse | None:
        return self._state.warehouses.get(warehouse_id)

    def list_warehouses(self) -> list[Warehouse]:
        return sorted(self._state.warehouses.values(), key=lambda w: (w.name, str(w.id)))


class MemorySequenceRepository(SequenceRepository):
    def __init__(self, state: _MemoryState):
        self._state = state

    def next_value(self, sequence_name: str) -> int:
        value = self._state.sequences.get(sequence_name, 0) + 1
        self._state.sequences[sequence_name] = value
        return value


class MemoryUnitOfWork(UnitOfWork):
    def __init__(self, state: _MemoryState):
        self.accounts = MemoryAccountRepository(state)
        self.transactions = MemoryTransactionRepository(state)
        self.documents = MemoryDocumentRepository(state)
        self.inventory = MemoryInventoryRepository(state)
        self.catalog = MemoryCatalogRepository(state)
        self.sequences = MemorySequenceRepository(state)

    def flush(self) -> None:
        pass


class MemoryStorageBackend(StorageBackend):
    name = "memory"

    def __init__(self):
        self._lock = threading.RLock()
        self._state = _MemoryState()

    @contextmanager
    def unit_of_work(self) -> Generator[MemoryUnitOfWork, None, None]:
        with self._lock:
            working = self._state.clone()
            with LogContext.bind(unit_id=uuid4()):
                try:
                    yield MemoryUnitOfWork(working)
                except Exception as exc:
                    logger.debug(
                        "unit_of_work_rolled_back",
                        extra={"error_code": getattr(exc, "code", type(exc).__name__)},
                    )
                    raise
                self._state = working.clone()

    def create_schema(self) -> None:
        pass

    def dispose(self) -> None:
        with self._lock:
            self._state = _MemoryState()
