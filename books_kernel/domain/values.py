"""
Value types shared by every layer of the kernel.

Responsibility:
    Enumerations for account types, transaction kinds, document kinds and
    statuses, inventory movement types; the money/quantity rounding helpers.
Architecture position:
    Kernel > Domain -- pure, zero I/O.  Imported by db/, models/, services/
    and selectors/.

Invariants enforced:
    - Money is always Decimal, rounded half-up to a fixed number of places.
    - A document's sale/purchase nature comes from DocumentKind, never from
      the prefix of its number.
"""

from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

ZERO = Decimal("0")

MONEY_DECIMAL_PLACES = 2


class AccountType(str, Enum):
    """Kinds of accounts a document or payment can be posted against."""

    CUSTOMER = "customer"
    SUPPLIER = "supplier"
    EXPENSE = "expense"
    INCOME = "income"
    BANK = "bank"
    CASH = "cash"


class TransactionKind(str, Enum):
    """Financial transaction kind; JOURNAL resolves its side via is_debit."""

    CREDIT = "credit"
    DEBIT = "debit"
    JOURNAL = "journal"


class DocumentType(str, Enum):
    """Tag linking a transaction or movement back to its source document."""

    INVOICE = "invoice"
    PURCHASE = "purchase"
    NONE = "none"


class MovementType(str, Enum):
    SALE = "sale"
    PURCHASE = "purchase"
    ADJUSTMENT = "adjustment"
    TRANSFER = "transfer"


class PaymentMethod(str, Enum):
    CASH = "cash"
    BANK = "bank"
    CREDIT = "credit"
    CHECK = "check"


class DocumentStatus(str, Enum):
    DRAFT = "draft"
    POSTED = "posted"
    CANCELLED = "cancelled"


class DocumentKind(str, Enum):
    """
    Sale or purchase -- the single tagged variant for trade documents.

    Each kind knows the direction of its stock effect, the kind of the
    financial transaction it produces and the tag it stamps on both.
    """

    SALE = "sale"
    PURCHASE = "purchase"

    @property
    def document_type(self) -> DocumentType:
        return DocumentType.INVOICE if self is DocumentKind.SALE else DocumentType.PURCHASE

    @property
    def movement_type(self) -> MovementType:
        return MovementType.SALE if self is DocumentKind.SALE else MovementType.PURCHASE

    @property
    def transaction_kind(self) -> TransactionKind:
        # Customer owes us on a sale; we owe the supplier on a purchase.
        return TransactionKind.DEBIT if self is DocumentKind.SALE else TransactionKind.CREDIT

    @property
    def stock_direction(self) -> int:
        return -1 if self is DocumentKind.SALE else 1

    @property
    def incompatible_account_type(self) -> AccountType:
        return AccountType.SUPPLIER if self is DocumentKind.SALE else AccountType.CUSTOMER

    @classmethod
    def for_document_type(cls, document_type: DocumentType) -> "DocumentKind | None":
        if document_type is DocumentType.INVOICE:
            return cls.SALE
        if document_type is DocumentType.PURCHASE:
            return cls.PURCHASE
        return None


def to_decimal(value: Decimal | int | str | float | None) -> Decimal:
    """
    Coerce a caller-supplied number to Decimal.

    Floats go through str() so 0.1 becomes Decimal("0.1"), not its binary
    expansion.  None becomes zero.
    """
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round_money(value: Decimal, decimal_places: int = MONEY_DECIMAL_PLACES) -> Decimal:
    """Round a monetary value half-up.  The only sanctioned rounding for money."""
    quantum = Decimal(1).scaleb(-decimal_places)
    return value.quantize(quantum, rounding=ROUND_HALF_UP)
