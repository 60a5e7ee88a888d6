"""
StatementReader -- account statements by chronological replay.

Responsibility:
    Rebuilds an account's history for a period from its transactions (and
    from posted documents that never produced one), applying the same
    ``sign_convention`` the LedgerStore writes with.  Because both sides
    share one function, a statement's balances always agree with
    Account.current_balance and LedgerStore.recompute_balance.
Architecture position:
    Kernel > Selectors.  Read-only.

Algorithm:
    1. Load the account; its type selects the sign convention.
    2. Keep transactions whose document tag the account type may show:
       customer statements never show purchase-tagged transactions and
       supplier statements never show invoice-tagged ones.
    3. Add posted documents of the matching kind (sales for customers,
       purchases for suppliers) that no transaction represents, either by
       document id or by a reference equal to the document number.
    4. starting balance = opening balance + effects of qualifying
       transactions dated strictly before the period start.
    5. Merge entries in (date, seq) order and run the balance forward.
    6. ending balance = last running balance (or the starting balance).

Failure modes:
    - AccountNotFoundError: the only error on this path.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from books_kernel.domain.dtos import (
    AccountActivity,
    AccountStatement,
    AccountSummary,
    StatementEntry,
)
from books_kernel.domain.sign_convention import (
    is_visible_on_statement,
    resolve_side,
    signed_amount,
)
from books_kernel.domain.values import (
    ZERO,
    AccountType,
    DocumentKind,
    DocumentStatus,
    TransactionKind,
    to_decimal,
)
from books_kernel.exceptions import AccountNotFoundError
from books_kernel.models import Account, FinancialTransaction
from books_kernel.selectors.base import BaseSelector

SOURCE_TRANSACTION = "transaction"
SOURCE_DOCUMENT = "document"

_DOCUMENT_KIND_FOR_ACCOUNT = {
    AccountType.CUSTOMER: DocumentKind.SALE,
    AccountType.SUPPLIER: DocumentKind.PURCHASE,
}


class StatementReader(BaseSelector):
    def _account(self, account_id: UUID) -> Account:
        account = self.uow.accounts.get(account_id)
        if account is None:
            raise AccountNotFoundError(str(account_id))
        return account

    def _qualifying(self, account: Account, **bounds) -> list[FinancialTransaction]:
        account_type = AccountType(account.account_type)
        return [
            tx
            for tx in self.uow.transactions.list_for_account(account.id, **bounds)
            if is_visible_on_statement(account_type, tx.document_type)
        ]

    def starting_balance(self, account_id: UUID, start: date | None = None) -> Decimal:
        account = self._account(account_id)
        balance = to_decimal(account.opening_balance)
        if start is None:
            return balance
        for tx in self._qualifying(account, before=start):
            balance += signed_amount(
                account.account_type, tx.kind, to_decimal(tx.amount), tx.document_type, tx.is_debit
            )
        return balance

    def statement(
        self,
        account_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> AccountStatement:
        account = self._account(account_id)
        account_type = AccountType(account.account_type)
        starting = self.starting_balance(account.id, start_date)

        # (sort key, entry kwargs without balance)
        pending: list[tuple[tuple, dict]] = []
        represented_ids: set[UUID] = set()
        represented_refs: set[str] = set()

        for tx in self._qualifying(account, start=start_date, end=end_date):
            side = resolve_side(tx.kind, tx.is_debit)
            amount = to_decimal(tx.amount)
            pending.append(
                (
                    (tx.transaction_date, 0, tx.seq, ""),
                    dict(
                        entry_date=tx.transaction_date,
                        entry_type=side,
                        reference=tx.reference,
                        amount=amount,
                        signed_amount=signed_amount(
                            account_type, tx.kind, amount, tx.document_type, tx.is_debit
                        ),
                        source=SOURCE_TRANSACTION,
                        transaction_id=tx.id,
                        document_id=tx.document_id,
                        notes=tx.notes,
                    ),
                )
            )

        # Representation is checked against every transaction, not just the period
        for tx in self.uow.transactions.list_for_account(account.id):
            if tx.document_id is not None:
                represented_ids.add(tx.document_id)
            if tx.reference:
                represented_refs.add(tx.reference)

        kind = _DOCUMENT_KIND_FOR_ACCOUNT.get(account_type)
        if kind is not None:
            for doc in self.uow.documents.list_by_account(
                account.id,
                start=start_date,
                end=end_date,
                kind=kind,
                status=DocumentStatus.POSTED,
            ):
                total = to_decimal(doc.total)
                if doc.id in represented_ids or doc.number in represented_refs or total <= ZERO:
                    continue
                pending.append(
                    (
                        (doc.document_date, 1, 0, doc.number),
                        dict(
                            entry_date=doc.document_date,
                            entry_type=kind.transaction_kind,
                            reference=doc.number,
                            amount=total,
                            signed_amount=signed_amount(
                                account_type, kind.transaction_kind, total, kind.document_type
                            ),
                            source=SOURCE_DOCUMENT,
                            document_id=doc.id,
                            notes=doc.notes,
                        ),
                    )
                )

        pending.sort(key=lambda item: item[0])
        running = starting
        entries = []
        total_debits = ZERO
        total_credits = ZERO
        for _, fields in pending:
            running += fields["signed_amount"]
            if fields["entry_type"] is TransactionKind.DEBIT:
                total_debits += fields["amount"]
            else:
                total_credits += fields["amount"]
            entries.append(StatementEntry(balance=running, **fields))

        return AccountStatement(
            account=AccountSummary(
                account_id=account.id,
                name=account.name,
                account_type=account_type,
                opening_balance=to_decimal(account.opening_balance),
                current_balance=to_decimal(account.current_balance),
            ),
            period_start=start_date,
            period_end=end_date,
            starting_balance=starting,
            ending_balance=running,
            total_debits=total_debits,
            total_credits=total_credits,
            entries=tuple(entries),
        )

    def last_activity(self, account_id: UUID) -> AccountActivity:
        """Latest transaction and latest document for an account."""
        account = self._account(account_id)
        transactions = self.uow.transactions.list_for_account(account.id)
        documents = self.uow.documents.list_by_account(account.id)
        last_tx = transactions[-1] if transactions else None
        last_doc = max(documents, key=lambda d: (d.document_date, d.created_at)) if documents else None
        return AccountActivity(
            account_id=account.id,
            last_transaction_id=last_tx.id if last_tx else None,
            last_transaction_date=last_tx.transaction_date if last_tx else None,
            last_transaction_amount=to_decimal(last_tx.amount) if last_tx else None,
            last_transaction_kind=TransactionKind(last_tx.kind) if last_tx else None,
            last_document_id=last_doc.id if last_doc else None,
            last_document_number=last_doc.number if last_doc else None,
            last_document_date=last_doc.document_date if last_doc else None,
            last_document_total=to_decimal(last_doc.total) if last_doc else None,
            last_document_status=DocumentStatus(last_doc.status) if last_doc else None,
        )
