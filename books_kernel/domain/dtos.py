"""
Data Transfer Objects -- immutable inputs and results crossing the kernel boundary.

Inputs (DocumentInput, LineItemInput) carry what a caller may decide.  They
have no total fields: subtotal, discount, tax and total are always derived
from the line items by the Posting Engine.

Results (AccountStatement, StatementEntry, ReversalResult, ...) are frozen
snapshots; selectors never hand ORM rows to callers.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from uuid import UUID

from books_kernel.domain.values import (
    AccountType,
    DocumentKind,
    DocumentStatus,
    TransactionKind,
)


@dataclass(frozen=True)
class LineItemInput:
    """One requested line of a sales or purchase document."""

    product_id: UUID | None
    quantity: Decimal | None
    unit_price: Decimal | None
    discount: Decimal = Decimal("0")
    tax: Decimal = Decimal("0")


@dataclass(frozen=True)
class DocumentInput:
    """Header of a document to create; status POSTED posts it immediately."""

    kind: DocumentKind
    account_id: UUID | None = None
    warehouse_id: UUID | None = None
    number: str | None = None
    document_date: date | None = None
    due_date: date | None = None
    status: DocumentStatus = DocumentStatus.DRAFT
    payment_terms: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class LineTotals:
    gross: Decimal
    discount: Decimal
    tax: Decimal
    total: Decimal


@dataclass(frozen=True)
class DocumentTotals:
    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    total: Decimal
    lines: tuple[LineTotals, ...] = ()


@dataclass(frozen=True)
class ReversalResult:
    """Outcome of deleting or cancelling a document."""

    document_id: UUID
    number: str
    kind: DocumentKind
    was_posted: bool
    restored_movements: int
    reversed_transaction_id: UUID | None
    deleted: bool


@dataclass(frozen=True)
class AccountSummary:
    account_id: UUID
    name: str
    account_type: AccountType
    opening_balance: Decimal
    current_balance: Decimal


@dataclass(frozen=True)
class StatementEntry:
    """
    One line of an account statement.

    ``entry_type`` is the resolved side (debit/credit); ``signed_amount`` is
    the effect on the balance; ``balance`` is the running balance after it.
    """

    entry_date: date
    entry_type: TransactionKind
    reference: str | None
    amount: Decimal
    signed_amount: Decimal
    balance: Decimal
    source: str
    transaction_id: UUID | None = None
    document_id: UUID | None = None
    notes: str | None = None


@dataclass(frozen=True)
class AccountStatement:
    account: AccountSummary
    period_start: date | None
    period_end: date | None
    starting_balance: Decimal
    ending_balance: Decimal
    total_debits: Decimal
    total_credits: Decimal
    entries: tuple[StatementEntry, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class AccountActivity:
    """Most recent transaction and document for an account."""

    account_id: UUID
    last_transaction_id: UUID | None
    last_transaction_date: date | None
    last_transaction_amount: Decimal | None
    last_transaction_kind: TransactionKind | None
    last_document_id: UUID | None
    last_document_number: str | None
    last_document_date: date | None
    last_document_total: Decimal | None
    last_document_status: DocumentStatus | None


@dataclass(frozen=True)
class IntegrityIssue:
    """A stored value that disagrees with its replay."""

    entity: str
    entity_id: str
    stored: Decimal
    replayed: Decimal
