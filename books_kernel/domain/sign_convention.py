"""
Sign convention -- the single source of truth for balance direction.

Responsibility:
    Maps (account type, transaction kind, document type) to whether an
    amount increases or decreases the account balance.  Both the write path
    (LedgerStore) and the read path (StatementReader) call these functions,
    so stored balances and replayed statements can never disagree.
Architecture position:
    Kernel > Domain -- pure functions, zero I/O.

Convention table:

    Account type | Increases balance                      | Decreases balance
    -------------|----------------------------------------|------------------
    customer     | debit, or document_type == invoice     | credit
    supplier     | credit, or document_type == purchase   | debit
    other        | debit                                  | credit

JOURNAL transactions take their side from ``is_debit``.
"""

from decimal import Decimal
from enum import Enum

from books_kernel.domain.values import AccountType, DocumentType, TransactionKind


class BalanceEffect(str, Enum):
    INCREASE = "increase"
    DECREASE = "decrease"

    @property
    def sign(self) -> int:
        return 1 if self is BalanceEffect.INCREASE else -1


def resolve_side(kind: TransactionKind, is_debit: bool | None = None) -> TransactionKind:
    """
    Collapse a transaction kind to DEBIT or CREDIT.

    Raises:
        ValueError: JOURNAL kind without an ``is_debit`` flag.
    """
    kind = TransactionKind(kind)
    if kind is not TransactionKind.JOURNAL:
        return kind
    if is_debit is None:
        raise ValueError("journal transactions require is_debit")
    return TransactionKind.DEBIT if is_debit else TransactionKind.CREDIT


def effect(
    account_type: AccountType,
    kind: TransactionKind,
    document_type: DocumentType | None = None,
    is_debit: bool | None = None,
) -> BalanceEffect:
    """Return whether a transaction increases or decreases the account balance."""
    account_type = AccountType(account_type)
    document_type = DocumentType(document_type) if document_type else DocumentType.NONE
    side = resolve_side(kind, is_debit)

    if account_type is AccountType.CUSTOMER:
        if document_type is DocumentType.INVOICE or side is TransactionKind.DEBIT:
            return BalanceEffect.INCREASE
        return BalanceEffect.DECREASE

    if account_type is AccountType.SUPPLIER:
        if document_type is DocumentType.PURCHASE or side is TransactionKind.CREDIT:
            return BalanceEffect.INCREASE
        return BalanceEffect.DECREASE

    if side is TransactionKind.DEBIT:
        return BalanceEffect.INCREASE
    return BalanceEffect.DECREASE


def signed_amount(
    account_type: AccountType,
    kind: TransactionKind,
    amount: Decimal,
    document_type: DocumentType | None = None,
    is_debit: bool | None = None,
) -> Decimal:
    """Amount with the sign of its balance effect applied."""
    return amount * effect(account_type, kind, document_type, is_debit).sign


def is_visible_on_statement(
    account_type: AccountType,
    document_type: DocumentType | None,
) -> bool:
    """
    Statement filter: customers never see purchase-tagged transactions and
    suppliers never see invoice-tagged ones.
    """
    account_type = AccountType(account_type)
    document_type = DocumentType(document_type) if document_type else DocumentType.NONE
    if account_type is AccountType.CUSTOMER:
        return document_type is not DocumentType.PURCHASE
    if account_type is AccountType.SUPPLIER:
        return document_type is not DocumentType.INVOICE
    return True
