"""
Module: books_kernel.models.account
Responsibility: ORM persistence for customer/supplier/other accounts and the
    financial transactions posted against them.
Architecture position: Kernel > Models.  May import from db/base.py and domain/values.

Invariants enforced:
    - current_balance == opening_balance + sum of signed transaction effects
      (maintained by LedgerStore under a row lock, checked by
      LedgerStore.recompute_balance).
    - FinancialTransaction rows are append-only (db/immutability.py).
    - amount > 0; the balance direction comes from the sign convention,
      never from the sign of the stored amount.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import BigInteger, Boolean, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from books_kernel.db.base import TrackedBase, UUIDString
from books_kernel.domain.values import (
    AccountType,
    DocumentType,
    PaymentMethod,
    TransactionKind,
)


class Account(TrackedBase):
    """
    A customer, supplier or other (expense, income, bank, cash) account.

    Guarantees:
        - account_type is one of AccountType.
        - current_balance starts equal to opening_balance.
    """

    __tablename__ = "accounts"
    __table_args__ = (
        Index("idx_account_type", "account_type"),
        Index("idx_account_active", "is_active"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    code: Mapped[str | None] = mapped_column(String(50), nullable=True)

    account_type: Mapped[AccountType] = mapped_column(
        String(20),
        nullable=False,
    )

    opening_balance: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    current_balance: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    email: Mapped[str | None] = mapped_column(String(200), nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Account {self.name} ({self.account_type})>"


class FinancialTransaction(TrackedBase):
    """
    A single debit, credit or journal amount against one account.

    Document-derived transactions carry document_id and document_type; a
    standalone payment or journal entry carries document_type NONE.
    """

    __tablename__ = "financial_transactions"
    __table_args__ = (
        Index("idx_transaction_account_date", "account_id", "transaction_date", "seq"),
        Index("idx_transaction_document", "document_id"),
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    kind: Mapped[TransactionKind] = mapped_column(String(10), nullable=False)

    # Journal entries only; None for plain debit/credit
    is_debit: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    transaction_date: Mapped[date] = mapped_column(nullable=False)

    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)

    document_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("documents.id"),
        nullable=True,
    )

    document_type: Mapped[DocumentType] = mapped_column(
        String(10),
        default=DocumentType.NONE.value,
        nullable=False,
    )

    payment_method: Mapped[PaymentMethod | None] = mapped_column(String(10), nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Tie-breaker for same-day ordering on statements
    seq: Mapped[int] = mapped_column(BigInteger, nullable=False)

    def __repr__(self) -> str:
        return f"<FinancialTransaction {self.kind} {self.amount} on {self.transaction_date}>"
