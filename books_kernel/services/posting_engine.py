"""
PostingEngine -- the only writer of document-derived stock and ledger state.

Responsibility:
    Creates documents, posts them (stock movements per line plus one
    account transaction), and reverses them on delete or cancel.
Architecture position:
    Kernel > Services.  Orchestrates LedgerStore and InventoryStore inside
    the caller's unit of work; never commits.

Post algorithm:
    1. Validate: a posted document needs an account, a warehouse and at
       least one line; each line needs a product, quantity > 0 and a unit
       price >= 0; the account must be active and of a type compatible
       with the document kind.
    2. Compute totals from the line items.
    3. Persist the document and its lines.
    4. If posting: resolve each product, lock the touched levels (sorted)
       and the account, adjust stock per line in insertion order
       (+qty purchase, -qty sale), then record one transaction for the
       total (debit for a sale, credit for a purchase) tagged with the
       document.

Reverse algorithm:
    Posted documents get every tagged movement reversed through the
    InventoryStore (guarded) and the tagged transaction reversed through
    the LedgerStore.  Delete then removes lines and document; cancel keeps
    the document with status ``cancelled``.

Any failure leaves the unit to be rolled back by its owner, so partial
postings are never observable.
"""

from collections.abc import Sequence
from uuid import UUID

from books_kernel.domain.dtos import DocumentInput, LineItemInput, ReversalResult
from books_kernel.domain.settings import KernelSettings
from books_kernel.domain.totals import compute_document_totals
from books_kernel.domain.values import (
    ZERO,
    AccountType,
    DocumentKind,
    DocumentStatus,
    to_decimal,
)
from books_kernel.exceptions import (
    AccountInactiveError,
    AccountTypeMismatchError,
    AlreadyPostedError,
    DocumentNotFoundError,
    DocumentStateError,
    DuplicateDocumentNumberError,
    MissingPostingTargetError,
    ValidationError,
)
from books_kernel.logging_config import LogContext, get_logger
from books_kernel.models import Account, Document, LineItem
from books_kernel.services.base import BaseService
from books_kernel.services.inventory_store import InventoryStore
from books_kernel.services.ledger_store import LedgerStore
from books_kernel.storage.base import document_number_sequence

logger = get_logger("services.posting")


class PostingEngine(BaseService):
    def __init__(self, uow, clock=None, settings: KernelSettings | None = None):
        super().__init__(uow, clock)
        self.settings = settings or KernelSettings()
        self.ledger = LedgerStore(uow, self.clock)
        self.inventory = InventoryStore(
            uow, self.clock, self.settings.allow_negative_adjustments
        )

    # -- validation --------------------------------------------------------

    @staticmethod
    def _require_targets(account_id, warehouse_id, line_count: int) -> None:
        missing = []
        if account_id is None:
            missing.append("account_id")
        if warehouse_id is None:
            missing.append("warehouse_id")
        if missing:
            raise MissingPostingTargetError(missing)
        if line_count == 0:
            raise ValidationError("A posted document requires at least one line item", field="lines")

    def _check_account(self, kind: DocumentKind, account_id: UUID, posting: bool) -> Account:
        account = self.ledger.get_account(account_id)
        account_type = AccountType(account.account_type)
        if account_type is kind.incompatible_account_type:
            raise AccountTypeMismatchError(str(account.id), account_type.value, kind.value)
        if posting and not account.is_active:
            raise AccountInactiveError(str(account.id))
        return account

    def _resolve_number(self, kind: DocumentKind, number: str | None) -> str:
        if number is not None and number.strip():
            number = number.strip()
            if self.uow.documents.number_exists(kind, number):
                raise DuplicateDocumentNumberError(kind.value, number)
            return number
        # Skip values already taken by hand-entered numbers
        while True:
            value = self.uow.sequences.next_value(document_number_sequence(kind))
            candidate = self.settings.numbering.format(kind, value)
            if not self.uow.documents.number_exists(kind, candidate):
                return candidate

    # -- create / post -----------------------------------------------------

    def create(self, draft: DocumentInput, lines: Sequence[LineItemInput]) -> Document:
        """
        Persist a document with its lines; post it when ``draft.status`` is posted.

        Raises:
            ValidationError (and subclasses): rejected input, nothing written.
            AccountNotFoundError, WarehouseNotFoundError, ProductNotFoundError.
            InsufficientStockError: a sale line exceeds the stock on hand.
        """
        kind = DocumentKind(draft.kind)
        status = DocumentStatus(draft.status)
        if status is DocumentStatus.CANCELLED:
            raise ValidationError("Documents are created as draft or posted", field="status")
        posting = status is DocumentStatus.POSTED
        lines = list(lines)

        if posting:
            self._require_targets(draft.account_id, draft.warehouse_id, len(lines))
        totals = compute_document_totals(lines, self.settings.decimal_places)
        if draft.account_id is not None:
            self._check_account(kind, draft.account_id, posting)
        if draft.warehouse_id is not None:
            self.inventory.require_warehouse(draft.warehouse_id)

        number = self._resolve_number(kind, draft.number)
        document = self.uow.documents.add(
            Document(
                kind=kind.value,
                number=number,
                account_id=draft.account_id,
                warehouse_id=draft.warehouse_id,
                document_date=draft.document_date or self.clock.today(),
                due_date=draft.due_date,
                status=DocumentStatus.DRAFT.value,
                subtotal=totals.subtotal,
                discount=totals.discount,
                tax=totals.tax,
                total=totals.total,
                payment_terms=draft.payment_terms,
                notes=draft.notes,
            )
        )
        rows = self.uow.documents.add_lines(
            [
                LineItem(
                    document_id=document.id,
                    line_no=line_no,
                    product_id=line.product_id,
                    quantity=to_decimal(line.quantity),
                    unit_price=to_decimal(line.unit_price),
                    discount=line_total.discount,
                    tax=line_total.tax,
                    total=line_total.total,
                )
                for line_no, (line, line_total) in enumerate(zip(lines, totals.lines), start=1)
            ]
        )
        logger.info(
            "document_created",
            extra={
                "document_id": document.id,
                "document_kind": kind.value,
                "number": number,
                "line_count": len(rows),
                "total": totals.total,
            },
        )

        if posting:
            self._post(document, rows, kind)
        return document

    def post_document(self, document_id: UUID) -> Document:
        """
        Post an existing draft, recomputing its totals from the stored lines.

        Raises:
            AlreadyPostedError: the document is already posted.
            DocumentStateError: the document was cancelled.
        """
        document = self.uow.documents.get_for_update(document_id)
        if document is None:
            raise DocumentNotFoundError(str(document_id))
        status = DocumentStatus(document.status)
        if status is DocumentStatus.POSTED:
            raise AlreadyPostedError(str(document.id))
        if status is not DocumentStatus.DRAFT:
            raise DocumentStateError(str(document.id), status.value, "post")

        kind = DocumentKind(document.kind)
        rows = self.uow.documents.lines(document.id)
        self._require_targets(document.account_id, document.warehouse_id, len(rows))
        self._check_account(kind, document.account_id, posting=True)
        self.inventory.require_warehouse(document.warehouse_id)

        totals = compute_document_totals(
            [
                LineItemInput(
                    product_id=row.product_id,
                    quantity=row.quantity,
                    unit_price=row.unit_price,
                    discount=row.discount,
                    tax=row.tax,
                )
                for row in rows
            ],
            self.settings.decimal_places,
        )
        for row, line_total in zip(rows, totals.lines):
            row.total = line_total.total
        document.subtotal = totals.subtotal
        document.discount = totals.discount
        document.tax = totals.tax
        document.total = totals.total
        self.uow.flush()

        self._post(document, rows, kind)
        return document

    def _post(self, document: Document, rows: list[LineItem], kind: DocumentKind) -> None:
        with LogContext.bind(document_id=document.id, account_id=document.account_id):
            for row in rows:
                self.inventory.require_product(row.product_id)

            self.inventory.lock_levels((row.product_id, document.warehouse_id) for row in rows)
            self.ledger.lock_account(document.account_id)

            for row in rows:
                self.inventory.adjust(
                    row.product_id,
                    document.warehouse_id,
                    kind.stock_direction * to_decimal(row.quantity),
                    kind.movement_type,
                    movement_date=document.document_date,
                    document_id=document.id,
                    document_type=kind.document_type,
                    notes=f"{document.number} line {row.line_no}",
                )

            transaction = None
            if to_decimal(document.total) > ZERO:
                transaction = self.ledger.apply_transaction(
                    document.account_id,
                    kind.transaction_kind,
                    document.total,
                    document.document_date,
                    reference=document.number,
                    document_id=document.id,
                    document_type=kind.document_type,
                )
            self.uow.documents.update_status(document, DocumentStatus.POSTED)

            logger.info(
                "document_posted",
                extra={
                    "document_kind": kind.value,
                    "number": document.number,
                    "movement_count": len(rows),
                    "transaction_id": transaction.id if transaction is not None else None,
                    "total": document.total,
                },
            )

    # -- reverse -----------------------------------------------------------

    def _reverse_effects(self, document: Document) -> tuple[int, UUID | None]:
        movements = self.uow.inventory.list_movements(document_id=document.id)
        transactions = self.uow.transactions.find_by_document(document.id)

        self.inventory.lock_levels((m.product_id, m.warehouse_id) for m in movements)
        for account_id in sorted({tx.account_id for tx in transactions}, key=str):
            self.ledger.lock_account(account_id)

        for movement in reversed(movements):
            self.inventory.reverse_movement(movement.id)

        reversed_tx_id = None
        for tx in transactions:
            self.ledger.reverse_transaction(tx.id)
            reversed_tx_id = tx.id
        return len(movements), reversed_tx_id

    def _load_for_reversal(self, document_id: UUID) -> Document:
        document = self.uow.documents.get_for_update(document_id)
        if document is None:
            raise DocumentNotFoundError(str(document_id))
        return document

    def reverse(self, document_id: UUID) -> ReversalResult:
        """
        Delete a document, first undoing its effects when it is posted.

        Raises:
            DocumentNotFoundError: unknown document.
            StockReversalConflictError: a purchase whose stock was consumed.
        """
        document = self._load_for_reversal(document_id)
        status = DocumentStatus(document.status)
        with LogContext.bind(document_id=document.id, account_id=document.account_id):
            restored, tx_id = 0, None
            if status is DocumentStatus.POSTED:
                restored, tx_id = self._reverse_effects(document)
            self.uow.documents.delete(document)
            logger.info(
                "document_deleted",
                extra={
                    "number": document.number,
                    "previous_status": status.value,
                    "restored_movements": restored,
                    "reversed_transaction_id": tx_id,
                },
            )
        return ReversalResult(
            document_id=document.id,
            number=document.number,
            kind=DocumentKind(document.kind),
            was_posted=status is DocumentStatus.POSTED,
            restored_movements=restored,
            reversed_transaction_id=tx_id,
            deleted=True,
        )

    def cancel(self, document_id: UUID) -> ReversalResult:
        """
        Undo a document's effects but keep it, with status ``cancelled``.

        Raises:
            DocumentStateError: the document is already cancelled.
        """
        document = self._load_for_reversal(document_id)
        status = DocumentStatus(document.status)
        if status is DocumentStatus.CANCELLED:
            raise DocumentStateError(str(document.id), status.value, "cancel")
        with LogContext.bind(document_id=document.id, account_id=document.account_id):
            restored, tx_id = 0, None
            if status is DocumentStatus.POSTED:
                restored, tx_id = self._reverse_effects(document)
            self.uow.documents.update_status(document, DocumentStatus.CANCELLED)
            logger.info(
                "document_cancelled",
                extra={
                    "number": document.number,
                    "previous_status": status.value,
                    "restored_movements": restored,
                    "reversed_transaction_id": tx_id,
                },
            )
        return ReversalResult(
            document_id=document.id,
            number=document.number,
            kind=DocumentKind(document.kind),
            was_posted=status is DocumentStatus.POSTED,
            restored_movements=restored,
            reversed_transaction_id=tx_id,
            deleted=False,
        )
