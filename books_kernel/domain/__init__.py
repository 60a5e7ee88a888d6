"""Pure domain core: value types, sign convention, totals, DTOs, clock."""

from books_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from books_kernel.domain.dtos import (
    AccountActivity,
    AccountStatement,
    AccountSummary,
    DocumentInput,
    DocumentTotals,
    IntegrityIssue,
    LineItemInput,
    ReversalResult,
    StatementEntry,
)
from books_kernel.domain.sign_convention import (
    BalanceEffect,
    effect,
    is_visible_on_statement,
    signed_amount,
)
from books_kernel.domain.values import (
    AccountType,
    DocumentKind,
    DocumentStatus,
    DocumentType,
    MovementType,
    PaymentMethod,
    TransactionKind,
    round_money,
)

__all__ = [
    "AccountActivity",
    "AccountStatement",
    "AccountSummary",
    "AccountType",
    "BalanceEffect",
    "Clock",
    "DeterministicClock",
    "DocumentInput",
    "DocumentKind",
    "DocumentStatus",
    "DocumentTotals",
    "DocumentType",
    "IntegrityIssue",
    "LineItemInput",
    "MovementType",
    "PaymentMethod",
    "ReversalResult",
    "StatementEntry",
    "SystemClock",
    "TransactionKind",
    "effect",
    "is_visible_on_statement",
    "round_money",
    "signed_amount",
]
