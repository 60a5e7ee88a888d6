"""
SqlStorageBackend -- SQLAlchemy implementation of the storage seam.

Responsibility:
    Repositories over one ``Session`` per unit of work, explicit row locks
    (``SELECT ... FOR UPDATE``) for every read-modify-write, race-safe
    first-row creation for inventory levels and sequence counters, and
    translation of SQLAlchemy failures into kernel exceptions.
Architecture position:
    Kernel > Storage.  The only module besides db/ that touches a Session.

Failure modes:
    - Deadlock, serialization failure, lock timeout, ``database is locked``
      -> ConcurrencyConflictError (safe to retry the whole unit).
    - Any other SQLAlchemyError -> PersistenceError.
    - Kernel exceptions raised inside the unit propagate unchanged after
      rollback.
"""

from collections.abc import Generator
from contextlib import contextmanager
from datetime import date
from uuid import UUID, uuid4

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from books_kernel.db.base import apply_column_defaults
from books_kernel.db.engine import (
    build_engine,
    create_tables,
    drop_tables,
    is_sqlite_url,
    make_session_factory,
)
from books_kernel.db.immutability import register_immutability_listeners
from books_kernel.exceptions import ConcurrencyConflictError, PersistenceError
from books_kernel.logging_config import LogContext, get_logger
from books_kernel.models import (
    Account,
    Document,
    FinancialTransaction,
    InventoryLevel,
    InventoryMovement,
    LineItem,
    Product,
    SequenceCounter,
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

logger = get_logger("storage.sql")

# deadlock_detected, serialization_failure, lock_not_available
_TRANSIENT_PGCODES = frozenset({"40P01", "40001", "55P03"})

_TRANSIENT_MARKERS = (
    "deadlock",
    "could not serialize",
    "database is locked",
    "lock timeout",
    "could not obtain lock",
)


def translate_error(exc: SQLAlchemyError, operation: str):
    """Map a SQLAlchemy failure to ConcurrencyConflictError or PersistenceError."""
    orig = getattr(exc, "orig", None)
    detail = str(orig if orig is not None else exc)
    pgcode = getattr(orig, "pgcode", None)
    if pgcode in _TRANSIENT_PGCODES or any(m in detail.lower() for m in _TRANSIENT_MARKERS):
        return ConcurrencyConflictError(detail)
    return PersistenceError(operation, detail)


class SqlAccountRepository(AccountRepository):
    def __init__(self, session: Session):
        self._session = session

    def add(self, account: Account) -> Account:
        self._session.add(apply_column_defaults(account))
        self._session.flush()
        return account

    def get(self, account_id: UUID) -> Account | None:
        return self._session.get(Account, account_id)

    def get_for_update(self, account_id: UUID) -> Account | None:
        return self._session.execute(
            select(Account)
            .where(Account.id == account_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def list_accounts(self, account_type=None, active_only: bool = False) -> list[Account]:
        stmt = select(Account)
        if account_type is not None:
            stmt = stmt.where(Account.account_type == getattr(account_type, "value", account_type))
        if active_only:
            stmt = stmt.where(Account.is_active.is_(True))
        return list(self._session.execute(stmt.order_by(Account.name, Account.id)).scalars())


class SqlTransactionRepository(TransactionRepository):
    def __init__(self, session: Session):
        self._session = session

    def add(self, transaction: FinancialTransaction) -> FinancialTransaction:
        self._session.add(apply_column_defaults(transaction))
        self._session.flush()
        return transaction

    def get(self, transaction_id: UUID) -> FinancialTransaction | None:
        return self._session.get(FinancialTransaction, transaction_id)

    def delete(self, transaction: FinancialTransaction) -> None:
        self._session.delete(transaction)
        self._session.flush()

    def list_for_account(
        self,
        account_id: UUID,
        start: date | None = None,
        end: date | None = None,
        before: date | None = None,
    ) -> list[FinancialTransaction]:
        stmt = select(FinancialTransaction).where(FinancialTransaction.account_id == account_id)
        if start is not None:
            stmt = stmt.where(FinancialTransaction.transaction_date >= start)
        if end is not None:
            stmt = stmt.where(FinancialTransaction.transaction_date <= end)
        if before is not None:
            stmt = stmt.where(FinancialTransaction.transaction_date < before)
        stmt = stmt.order_by(FinancialTransaction.transaction_date, FinancialTransaction.seq)
        return list(self._session.execute(stmt).scalars())

    def find_by_document(self, document_id: UUID) -> list[FinancialTransaction]:
        return list(
            self._session.execute(
                select(FinancialTransaction)
                .where(FinancialTransaction.document_id == document_id)
                .order_by(FinancialTransaction.seq)
            ).scalars()
        )


class SqlDocumentRepository(DocumentRepository):
    def __init__(self, session: Session):
        self._session = session

    def add(self, document: Document) -> Document:
        self._session.add(apply_column_defaults(document))
        self._session.flush()
        return document

    def add_lines(self, lines: list[LineItem]) -> list[LineItem]:
        for line in lines:
            self._session.add(apply_column_defaults(line))
        self._session.flush()
        return lines

    def get(self, document_id: UUID) -> Document | None:
        return self._session.get(Document, document_id)

    def get_for_update(self, document_id: UUID) -> Document | None:
        return self._session.execute(
            select(Document)
            .where(Document.id == document_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def lines(self, document_id: UUID) -> list[LineItem]:
        return list(
            self._session.execute(
                select(LineItem)
                .where(LineItem.document_id == document_id)
                .order_by(LineItem.line_no)
            ).scalars()
        )

    def list_by_account(
        self,
        account_id: UUID,
        start: date | None = None,
        end: date | None = None,
        kind=None,
        status=None,
    ) -> list[Document]:
        stmt = select(Document).where(Document.account_id == account_id)
        if start is not None:
            stmt = stmt.where(Document.document_date >= start)
        if end is not None:
            stmt = stmt.where(Document.document_date <= end)
        if kind is not None:
            stmt = stmt.where(Document.kind == getattr(kind, "value", kind))
        if status is not None:
            stmt = stmt.where(Document.status == getattr(status, "value", status))
        stmt = stmt.order_by(Document.document_date, Document.number)
        return list(self._session.execute(stmt).scalars())

    def update_status(self, document: Document, status) -> Document:
        document.status = getattr(status, "value", status)
        self._session.flush()
        return document

    def delete(self, document: Document) -> None:
        self._session.execute(delete(LineItem).where(LineItem.document_id == document.id))
        self._session.delete(document)
        self._session.flush()

    def number_exists(self, kind, number: str) -> bool:
        found = self._session.execute(
            select(Document.id).where(
                Document.kind == getattr(kind, "value", kind),
                Document.number == number,
            )
        ).first()
        return found is not None


class SqlInventoryRepository(InventoryRepository):
    def __init__(self, session: Session):
        self._session = session

    def _level_query(self, product_id: UUID, warehouse_id: UUID):
        return select(InventoryLevel).where(
            InventoryLevel.product_id == product_id,
            InventoryLevel.warehouse_id == warehouse_id,
        )

    def get_level(self, product_id: UUID, warehouse_id: UUID) -> InventoryLevel | None:
        return self._session.execute(
            self._level_query(product_id, warehouse_id)
        ).scalar_one_or_none()

    def get_level_for_update(
        self, product_id: UUID, warehouse_id: UUID
    ) -> InventoryLevel | None:
        return self._session.execute(
            self._level_query(product_id, warehouse_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def create_level(self, product_id: UUID, warehouse_id: UUID) -> InventoryLevel:
        # Savepoint so a lost creation race does not roll back the rest of the unit
        savepoint = self._session.begin_nested()
        try:
            level = apply_column_defaults(
                InventoryLevel(product_id=product_id, warehouse_id=warehouse_id)
            )
            self._session.add(level)
            self._session.flush()
            savepoint.commit()
            return level
        except IntegrityError:
            logger.debug(
                "inventory_level_race_retry",
                extra={"product_id": product_id, "warehouse_id": warehouse_id},
            )
            savepoint.rollback()
            return self._session.execute(
                self._level_query(product_id, warehouse_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one()

    def list_levels(
        self,
        warehouse_id: UUID | None = None,
        product_id: UUID | None = None,
    ) -> list[InventoryLevel]:
        stmt = select(InventoryLevel)
        if warehouse_id is not None:
            stmt = stmt.where(InventoryLevel.warehouse_id == warehouse_id)
        if product_id is not None:
            stmt = stmt.where(InventoryLevel.product_id == product_id)
        stmt = stmt.order_by(InventoryLevel.product_id, InventoryLevel.warehouse_id)
        return list(self._session.execute(stmt).scalars())

    def add_movement(self, movement: InventoryMovement) -> InventoryMovement:
        self._session.add(apply_column_defaults(movement))
        self._session.flush()
        return movement

    def get_movement(self, movement_id: UUID) -> InventoryMovement | None:
        return self._session.get(InventoryMovement, movement_id)

    def delete_movement(self, movement: InventoryMovement) -> None:
        self._session.delete(movement)
        self._session.flush()

    def list_movements(
        self,
        product_id: UUID | None = None,
        warehouse_id: UUID | None = None,
        document_id: UUID | None = None,
    ) -> list[InventoryMovement]:
        stmt = select(InventoryMovement)
        if product_id is not None:
            stmt = stmt.where(InventoryMovement.product_id == product_id)
        if warehouse_id is not None:
            stmt = stmt.where(InventoryMovement.warehouse_id == warehouse_id)
        if document_id is not None:
            stmt = stmt.where(InventoryMovement.document_id == document_id)
        return list(self._session.execute(stmt.order_by(InventoryMovement.seq)).scalars())


class SqlCatalogRepository(CatalogRepository):
    def __init__(self, session: Session):
        self._session = session

    def add_product(self, product: Product) -> Product:
        self._session.add(apply_column_defaults(product))
        self._session.flush()
        return product

    def get_product(self, product_id: UUID) -> Product | None:
        return self._session.get(Product, product_id)

    def get_product_by_code(self, code: str) -> Product | None:
        return self._session.execute(
            select(Product).where(Product.code == code)
        ).scalar_one_or_none()

    def list_products(self) -> list[Product]:
        return list(self._session.execute(select(Product).order_by(Product.code)).scalars())

    def add_warehouse(self, warehouse: Warehouse) -> Warehouse:
        self._session.add(apply_column_defaults(warehouse))
        self._session.flush()
        return warehouse

    def get_warehouse(self, warehouse_id: UUID) -> Warehouse | None:
        return self._session.get(Warehouse, warehouse_id)

    def list_warehouses(self) -> list[Warehouse]:
        return list(
            self._session.execute(select(Warehouse).order_by(Warehouse.name, Warehouse.id)).scalars()
        )


class SqlSequenceRepository(SequenceRepository):
    """
    Locked-counter allocation.

    The locked counter row is the sole source of truth for the next value;
    aggregate max-plus-one is never used.
    """

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self):
        return (
            select(SequenceCounter)
            .with_for_update()
            .execution_options(populate_existing=True)
        )

    def next_value(self, sequence_name: str) -> int:
        counter = self._session.execute(
            self._locked_counter().where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()

        if counter is None:
            # First use: another unit may create the same counter concurrently
            savepoint = self._session.begin_nested()
            try:
                counter = apply_column_defaults(
                    SequenceCounter(name=sequence_name, current_value=1)
                )
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._session.execute(
                    self._locked_counter().where(SequenceCounter.name == sequence_name)
                ).scalar_one()

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value


class SqlUnitOfWork(UnitOfWork):
    def __init__(self, session: Session):
        self.session = session
        self.accounts = SqlAccountRepository(session)
        self.transactions = SqlTransactionRepository(session)
        self.documents = SqlDocumentRepository(session)
        self.inventory = SqlInventoryRepository(session)
        self.catalog = SqlCatalogRepository(session)
        self.sequences = SqlSequenceRepository(session)

    def flush(self) -> None:
        self.session.flush()


class SqlStorageBackend(StorageBackend):
    """
    SQLAlchemy-backed storage for PostgreSQL (production) or SQLite.

    Each unit of work is one Session and one database transaction.
    """

    name = "sql"

    def __init__(self, database_url: str, echo: bool = False, **engine_options):
        self.database_url = database_url
        self.engine = build_engine(database_url, echo=echo, **engine_options)
        self._session_factory = make_session_factory(self.engine)
        register_immutability_listeners()

    @property
    def is_sqlite(self) -> bool:
        return is_sqlite_url(self.database_url)

    @contextmanager
    def unit_of_work(self) -> Generator[SqlUnitOfWork, None, None]:
        unit_id = uuid4()
        session = self._session_factory()
        with LogContext.bind(unit_id=unit_id):
            try:
                yield SqlUnitOfWork(session)
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                translated = translate_error(exc, "unit_of_work")
                logger.warning(
                    "unit_of_work_rolled_back",
                    extra={"error_code": translated.code, "detail": translated.detail},
                )
                raise translated from exc
            except Exception as exc:
                session.rollback()
                logger.debug(
                    "unit_of_work_rolled_back",
                    extra={"error_code": getattr(exc, "code", type(exc).__name__)},
                )
                raise
            finally:
                session.close()

    def create_schema(self) -> None:
        create_tables(self.engine)

    def drop_schema(self) -> None:
        drop_tables(self.engine)

    def dispose(self) -> None:
        self.engine.dispose()
