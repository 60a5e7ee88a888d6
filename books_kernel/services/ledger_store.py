"""
LedgerStore -- account balances and the transactions that explain them.

Responsibility:
    Applies and reverses FinancialTransactions, keeping
    Account.current_balance equal to the replay of its transactions.
Architecture position:
    Kernel > Services.  Called by the Posting Engine (document-derived
    transactions) and by the facade (payments, receipts, journal entries).

Invariants enforced:
    - amount > 0; direction comes from ``sign_convention.effect``, the same
      function the Statement Reader replays with.
    - Every read-modify-write of current_balance happens under a row lock
      on the Account.
    - JOURNAL transactions must say which side they are on (is_debit).
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from books_kernel.domain.sign_convention import signed_amount
from books_kernel.domain.values import ZERO, DocumentType, TransactionKind, to_decimal
from books_kernel.exceptions import (
    AccountNotFoundError,
    InvalidAmountError,
    TransactionNotFoundError,
    ValidationError,
)
from books_kernel.logging_config import get_logger
from books_kernel.models import Account, FinancialTransaction
from books_kernel.services.base import BaseService
from books_kernel.storage.base import LEDGER_SEQUENCE

logger = get_logger("services.ledger")


def transaction_effect(account: Account, tx: FinancialTransaction) -> Decimal:
    return signed_amount(
        account.account_type,
        tx.kind,
        to_decimal(tx.amount),
        tx.document_type,
        tx.is_debit,
    )


class LedgerStore(BaseService):
    def get_account(self, account_id: UUID) -> Account:
        account = self.uow.accounts.get(account_id)
        if account is None:
            raise AccountNotFoundError(str(account_id))
        return account

    def lock_account(self, account_id: UUID) -> Account:
        account = self.uow.accounts.get_for_update(account_id)
        if account is None:
            raise AccountNotFoundError(str(account_id))
        return account

    def get_balance(self, account_id: UUID) -> Decimal:
        return to_decimal(self.get_account(account_id).current_balance)

    def apply_transaction(
        self,
        account_id: UUID,
        kind: TransactionKind,
        amount: Decimal,
        transaction_date: date,
        *,
        is_debit: bool | None = None,
        reference: str | None = None,
        document_id: UUID | None = None,
        document_type: DocumentType = DocumentType.NONE,
        payment_method=None,
        notes: str | None = None,
    ) -> FinancialTransaction:
        """
        Record a transaction and move the account balance by its signed effect.

        Raises:
            InvalidAmountError: amount is missing or not greater than zero.
            ValidationError: JOURNAL kind without is_debit.
            AccountNotFoundError: unknown account.
        """
        amount = to_decimal(amount) if amount is not None else None
        if amount is None or amount <= ZERO:
            raise InvalidAmountError(amount)
        kind = TransactionKind(kind)
        if kind is TransactionKind.JOURNAL and is_debit is None:
            raise ValidationError("Journal transactions require is_debit", field="is_debit")
        if kind is not TransactionKind.JOURNAL:
            is_debit = None
        document_type = DocumentType(document_type or DocumentType.NONE)

        account = self.lock_account(account_id)
        delta = signed_amount(account.account_type, kind, amount, document_type, is_debit)

        tx = FinancialTransaction(
            account_id=account.id,
            kind=kind.value,
            is_debit=is_debit,
            amount=amount,
            transaction_date=transaction_date,
            reference=reference,
            document_id=document_id,
            document_type=document_type.value,
            payment_method=getattr(payment_method, "value", payment_method),
            notes=notes,
            seq=self.uow.sequences.next_value(LEDGER_SEQUENCE),
        )
        self.uow.transactions.add(tx)
        account.current_balance = to_decimal(account.current_balance) + delta
        self.uow.flush()

        logger.info(
            "transaction_applied",
            extra={
                "transaction_id": tx.id,
                "account_id": account.id,
                "kind": kind.value,
                "amount": amount,
                "delta": delta,
                "balance": account.current_balance,
                "document_id": document_id,
            },
        )
        return tx

    def reverse_transaction(self, transaction_id: UUID) -> FinancialTransaction:
        """Remove a transaction and take its effect back out of the balance."""
        tx = self.uow.transactions.get(transaction_id)
        if tx is None:
            raise TransactionNotFoundError(str(transaction_id))

        account = self.lock_account(tx.account_id)
        delta = transaction_effect(account, tx)
        account.current_balance = to_decimal(account.current_balance) - delta
        self.uow.transactions.delete(tx)
        self.uow.flush()

        logger.info(
            "transaction_reversed",
            extra={
                "transaction_id": tx.id,
                "account_id": account.id,
                "delta": -delta,
                "balance": account.current_balance,
                "document_id": tx.document_id,
            },
        )
        return tx

    def recompute_balance(self, account_id: UUID, before: date | None = None) -> Decimal:
        """
        Replay the account from its opening balance.

        With ``before``, only transactions dated strictly earlier count.
        """
        account = self.get_account(account_id)
        balance = to_decimal(account.opening_balance)
        for tx in self.uow.transactions.list_for_account(account.id, before=before):
            balance += transaction_effect(account, tx)
        return balance
