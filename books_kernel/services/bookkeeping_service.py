"""
BookkeepingService -- the inbound facade of the kernel.

Responsibility:
    One public method per operation an HTTP or CLI layer may call.  Each
    call runs as exactly one unit of work on the configured
    StorageBackend: it commits entirely or rolls back entirely.  Services
    and selectors are constructed here, per unit, and nowhere else.
Architecture position:
    Kernel > Services, top of the dependency graph.

Retry policy:
    A ConcurrencyConflictError (deadlock, serialization failure, lock
    timeout) means the whole unit was rolled back and can be replayed.  The
    facade replays it up to ``settings.max_conflict_retries`` more times
    with a linear backoff, then surfaces the error.  No other error is
    retried.

Usage:
    storage = build_storage_backend("sql", "sqlite:///books.db", create_schema=True)
    books = BookkeepingService(storage)
    customer = books.create_account("Acme Ltd", AccountType.CUSTOMER)
    books.create_document(
        DocumentInput(kind=DocumentKind.SALE, account_id=customer.id,
                      warehouse_id=warehouse.id, status=DocumentStatus.POSTED),
        [LineItemInput(product_id=widget.id, quantity=Decimal("2"),
                       unit_price=Decimal("50.00"))],
    )
"""

import time
from collections.abc import Callable, Sequence
from datetime import date
from decimal import Decimal
from typing import TypeVar
from uuid import UUID, uuid4

from books_kernel.domain.clock import Clock, SystemClock
from books_kernel.domain.dtos import (
    AccountActivity,
    AccountStatement,
    DocumentInput,
    IntegrityIssue,
    LineItemInput,
    ReversalResult,
)
from books_kernel.domain.settings import KernelSettings, StatementStyle
from books_kernel.domain.values import ZERO, AccountType, TransactionKind, to_decimal
from books_kernel.exceptions import (
    AccountInactiveError,
    ConcurrencyConflictError,
    DocumentLinkedTransactionError,
    DocumentNotFoundError,
    TransactionNotFoundError,
)
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
from books_kernel.selectors.statement_format import format_statement
from books_kernel.selectors.statement_selector import StatementReader
from books_kernel.services.catalog_service import CatalogService
from books_kernel.services.inventory_store import InventoryStore
from books_kernel.services.ledger_store import LedgerStore
from books_kernel.services.posting_engine import PostingEngine
from books_kernel.storage.base import StorageBackend, UnitOfWork

logger = get_logger("services.bookkeeping")

T = TypeVar("T")


class BookkeepingService:
    def __init__(
        self,
        storage: StorageBackend,
        clock: Clock | None = None,
        settings: KernelSettings | None = None,
        statement_style: StatementStyle | None = None,
        retry_backoff: float = 0.05,
    ):
        self.storage = storage
        self.clock = clock or SystemClock()
        self.settings = settings or KernelSettings()
        self.statement_style = statement_style or StatementStyle()
        self._retry_backoff = retry_backoff

    # -- unit of work plumbing --------------------------------------------

    def _run(self, operation: str, work: Callable[[UnitOfWork], T]) -> T:
        attempts = self.settings.max_conflict_retries + 1
        correlation = LogContext.get_all().get("correlation_id") or str(uuid4())
        with LogContext.bind(correlation_id=correlation):
            for attempt in range(1, attempts + 1):
                try:
                    with self.storage.unit_of_work() as uow:
                        return work(uow)
                except ConcurrencyConflictError as exc:
                    if attempt >= attempts:
                        logger.error(
                            "concurrency_conflict_exhausted",
                            extra={"operation": operation, "attempts": attempt},
                            exc_info=exc,
                        )
                        raise
                    logger.warning(
                        "concurrency_conflict_retry",
                        extra={"operation": operation, "attempt": attempt, "max_attempts": attempts},
                    )
                    time.sleep(self._retry_backoff * attempt)
        raise AssertionError("unreachable")

    def _posting(self, uow: UnitOfWork) -> PostingEngine:
        return PostingEngine(uow, self.clock, self.settings)

    def _inventory(self, uow: UnitOfWork) -> InventoryStore:
        return InventoryStore(uow, self.clock, self.settings.allow_negative_adjustments)

    # -- accounts and catalog ---------------------------------------------

    def create_account(
        self,
        name: str,
        account_type: AccountType,
        opening_balance: Decimal = ZERO,
        **details,
    ) -> Account:
        return self._run(
            "create_account",
            lambda uow: CatalogService(uow, self.clock).create_account(
                name, account_type, opening_balance, **details
            ),
        )

    def get_account(self, account_id: UUID) -> Account:
        return self._run("get_account", lambda uow: LedgerStore(uow).get_account(account_id))

    def list_accounts(self, account_type: AccountType | None = None) -> list[Account]:
        return self._run(
            "list_accounts", lambda uow: uow.accounts.list_accounts(account_type=account_type)
        )

    def set_account_active(self, account_id: UUID, is_active: bool) -> Account:
        return self._run(
            "set_account_active",
            lambda uow: CatalogService(uow, self.clock).set_account_active(account_id, is_active),
        )

    def create_product(self, code: str, name: str, **details) -> Product:
        return self._run(
            "create_product",
            lambda uow: CatalogService(uow, self.clock).create_product(code, name, **details),
        )

    def list_products(self) -> list[Product]:
        return self._run("list_products", lambda uow: uow.catalog.list_products())

    def create_warehouse(self, name: str, **details) -> Warehouse:
        return self._run(
            "create_warehouse",
            lambda uow: CatalogService(uow, self.clock).create_warehouse(name, **details),
        )

    def list_warehouses(self) -> list[Warehouse]:
        return self._run("list_warehouses", lambda uow: uow.catalog.list_warehouses())

    # -- documents ----------------------------------------------------------

    def create_document(self, draft: DocumentInput, lines: Sequence[LineItemInput]) -> Document:
        return self._run(
            "create_document", lambda uow: self._posting(uow).create(draft, lines)
        )

    def post_document(self, document_id: UUID) -> Document:
        return self._run(
            "post_document", lambda uow: self._posting(uow).post_document(document_id)
        )

    def delete_document(self, document_id: UUID) -> ReversalResult:
        return self._run("delete_document", lambda uow: self._posting(uow).reverse(document_id))

    def cancel_document(self, document_id: UUID) -> ReversalResult:
        return self._run("cancel_document", lambda uow: self._posting(uow).cancel(document_id))

    def get_document(self, document_id: UUID) -> Document:
        def work(uow: UnitOfWork) -> Document:
            document = uow.documents.get(document_id)
            if document is None:
                raise DocumentNotFoundError(str(document_id))
            return document

        return self._run("get_document", work)

    def get_document_lines(self, document_id: UUID) -> list[LineItem]:
        def work(uow: UnitOfWork) -> list[LineItem]:
            if uow.documents.get(document_id) is None:
                raise DocumentNotFoundError(str(document_id))
            return uow.documents.lines(document_id)

        return self._run("get_document_lines", work)

    def list_documents(
        self,
        account_id: UUID,
        start: date | None = None,
        end: date | None = None,
        kind=None,
        status=None,
    ) -> list[Document]:
        def work(uow: UnitOfWork) -> list[Document]:
            LedgerStore(uow).get_account(account_id)
            return uow.documents.list_by_account(account_id, start, end, kind=kind, status=status)

        return self._run("list_documents", work)

    # -- standalone transactions --------------------------------------------

    def record_transaction(
        self,
        account_id: UUID,
        kind: TransactionKind,
        amount: Decimal,
        transaction_date: date | None = None,
        *,
        is_debit: bool | None = None,
        reference: str | None = None,
        payment_method=None,
        notes: str | None = None,
    ) -> FinancialTransaction:
        """Payment, receipt or journal entry not owned by a document."""

        def work(uow: UnitOfWork) -> FinancialTransaction:
            ledger = LedgerStore(uow, self.clock)
            if not ledger.get_account(account_id).is_active:
                raise AccountInactiveError(str(account_id))
            return ledger.apply_transaction(
                account_id,
                kind,
                amount,
                transaction_date or self.clock.today(),
                is_debit=is_debit,
                reference=reference,
                payment_method=payment_method,
                notes=notes,
            )

        return self._run("record_transaction", work)

    def delete_transaction(self, transaction_id: UUID) -> FinancialTransaction:
        def work(uow: UnitOfWork) -> FinancialTransaction:
            tx = uow.transactions.get(transaction_id)
            if tx is None:
                raise TransactionNotFoundError(str(transaction_id))
            if tx.document_id is not None:
                raise DocumentLinkedTransactionError(str(tx.id), str(tx.document_id))
            return LedgerStore(uow, self.clock).reverse_transaction(transaction_id)

        return self._run("delete_transaction", work)

    def list_transactions(
        self,
        account_id: UUID,
        start: date | None = None,
        end: date | None = None,
    ) -> list[FinancialTransaction]:
        def work(uow: UnitOfWork) -> list[FinancialTransaction]:
            LedgerStore(uow).get_account(account_id)
            return uow.transactions.list_for_account(account_id, start=start, end=end)

        return self._run("list_transactions", work)

    # -- balances and statements -------------------------------------------

    def get_account_balance(self, account_id: UUID) -> Decimal:
        return self._run("get_account_balance", lambda uow: LedgerStore(uow).get_balance(account_id))

    def recompute_account_balance(self, account_id: UUID, before: date | None = None) -> Decimal:
        return self._run(
            "recompute_account_balance",
            lambda uow: LedgerStore(uow).recompute_balance(account_id, before=before),
        )

    def get_account_statement(
        self,
        account_id: UUID,
        start: date | None = None,
        end: date | None = None,
    ) -> AccountStatement:
        return self._run(
            "get_account_statement",
            lambda uow: StatementReader(uow).statement(account_id, start, end),
        )

    def render_account_statement(
        self,
        account_id: UUID,
        start: date | None = None,
        end: date | None = None,
    ) -> list[str]:
        statement = self.get_account_statement(account_id, start, end)
        return format_statement(statement, self.statement_style)

    def last_activity(self, account_id: UUID) -> AccountActivity:
        return self._run(
            "last_activity", lambda uow: StatementReader(uow).last_activity(account_id)
        )

    # -- inventory ----------------------------------------------------------

    def adjust_inventory(
        self,
        product_id: UUID,
        warehouse_id: UUID,
        delta: Decimal,
        absolute: bool = False,
        notes: str | None = None,
        movement_date: date | None = None,
    ) -> Decimal:
        """
        Manual stock correction.

        With ``absolute`` the value is a counted quantity and the difference
        is recorded; otherwise it is a signed change.
        """

        def work(uow: UnitOfWork) -> Decimal:
            store = self._inventory(uow)
            if absolute:
                return store.set_level(product_id, warehouse_id, delta, movement_date, notes)
            return store.manual_adjust(product_id, warehouse_id, delta, movement_date, notes)

        return self._run("adjust_inventory", work)

    def transfer_stock(
        self,
        product_id: UUID,
        source_warehouse_id: UUID,
        target_warehouse_id: UUID,
        quantity: Decimal,
        notes: str | None = None,
        movement_date: date | None = None,
    ) -> tuple[Decimal, Decimal]:
        return self._run(
            "transfer_stock",
            lambda uow: self._inventory(uow).transfer(
                product_id,
                source_warehouse_id,
                target_warehouse_id,
                quantity,
                movement_date,
                notes,
            ),
        )

    def get_inventory_level(self, product_id: UUID, warehouse_id: UUID) -> Decimal:
        return self._run(
            "get_inventory_level",
            lambda uow: self._inventory(uow).get_level(product_id, warehouse_id),
        )

    def list_inventory(self, warehouse_id: UUID | None = None) -> list[InventoryLevel]:
        return self._run(
            "list_inventory", lambda uow: self._inventory(uow).list_levels(warehouse_id)
        )

    def list_movements(
        self,
        product_id: UUID | None = None,
        warehouse_id: UUID | None = None,
        document_id: UUID | None = None,
    ) -> list[InventoryMovement]:
        return self._run(
            "list_movements",
            lambda uow: self._inventory(uow).list_movements(product_id, warehouse_id, document_id),
        )

    # -- integrity ------------------------------------------------------------

    def verify_integrity(self) -> list[IntegrityIssue]:
        """
        Replay every account and every stock level.

        Returns the rows whose stored value disagrees with the replay; an
        empty list means the books are consistent.
        """

        def work(uow: UnitOfWork) -> list[IntegrityIssue]:
            ledger = LedgerStore(uow)
            inventory = self._inventory(uow)
            issues = []
            for account in uow.accounts.list_accounts():
                stored = to_decimal(account.current_balance)
                replayed = ledger.recompute_balance(account.id)
                if stored != replayed:
                    issues.append(IntegrityIssue("account", str(account.id), stored, replayed))
            for level in uow.inventory.list_levels():
                stored = to_decimal(level.quantity)
                replayed = inventory.recompute_level(level.product_id, level.warehouse_id)
                if stored != replayed:
                    issues.append(
                        IntegrityIssue(
                            "inventory_level",
                            f"{level.product_id}@{level.warehouse_id}",
                            stored,
                            replayed,
                        )
                    )
            if issues:
                logger.error("integrity_check_failed", extra={"issue_count": len(issues)})
            else:
                logger.info("integrity_check_passed")
            return issues

        return self._run("verify_integrity", work)
