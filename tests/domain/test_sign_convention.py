"""
Tests for the balance sign convention.

The same table drives the LedgerStore and the StatementReader, so these
cases pin both.
"""

from decimal import Decimal

import pytest

from books_kernel.domain.sign_convention import (
    BalanceEffect,
    effect,
    is_visible_on_statement,
    resolve_side,
    signed_amount,
)
from books_kernel.domain.values import AccountType, DocumentType, TransactionKind


class TestEffectTable:
    @pytest.mark.parametrize(
        "account_type, kind, document_type, expected",
        [
            (AccountType.CUSTOMER, TransactionKind.DEBIT, None, BalanceEffect.INCREASE),
            (AccountType.CUSTOMER, TransactionKind.CREDIT, None, BalanceEffect.DECREASE),
            (AccountType.CUSTOMER, TransactionKind.CREDIT, DocumentType.INVOICE, BalanceEffect.INCREASE),
            (AccountType.SUPPLIER, TransactionKind.CREDIT, None, BalanceEffect.INCREASE),
            (AccountType.SUPPLIER, TransactionKind.DEBIT, None, BalanceEffect.DECREASE),
            (AccountType.SUPPLIER, TransactionKind.DEBIT, DocumentType.PURCHASE, BalanceEffect.INCREASE),
            (AccountType.BANK, TransactionKind.DEBIT, None, BalanceEffect.INCREASE),
            (AccountType.EXPENSE, TransactionKind.CREDIT, None, BalanceEffect.DECREASE),
        ],
    )
    def test_effect(self, account_type, kind, document_type, expected):
        assert effect(account_type, kind, document_type) is expected

    def test_accepts_stored_string_values(self):
        """SQL rows hand back plain strings."""
        assert effect("customer", "debit", "none") is BalanceEffect.INCREASE
        assert effect("supplier", "debit", "none") is BalanceEffect.DECREASE

    def test_journal_uses_is_debit(self):
        assert effect(AccountType.CASH, TransactionKind.JOURNAL, is_debit=True) is BalanceEffect.INCREASE
        assert effect(AccountType.CASH, TransactionKind.JOURNAL, is_debit=False) is BalanceEffect.DECREASE

    def test_journal_without_is_debit_rejected(self):
        with pytest.raises(ValueError):
            resolve_side(TransactionKind.JOURNAL)


class TestSignedAmount:
    def test_customer_payment_is_negative(self):
        amount = signed_amount(AccountType.CUSTOMER, TransactionKind.CREDIT, Decimal("40"))
        assert amount == Decimal("-40")

    def test_supplier_purchase_is_positive(self):
        amount = signed_amount(
            AccountType.SUPPLIER, TransactionKind.CREDIT, Decimal("75.50"), DocumentType.PURCHASE
        )
        assert amount == Decimal("75.50")


class TestStatementVisibility:
    def test_customer_hides_purchase_tagged(self):
        assert not is_visible_on_statement(AccountType.CUSTOMER, DocumentType.PURCHASE)
        assert is_visible_on_statement(AccountType.CUSTOMER, DocumentType.INVOICE)
        assert is_visible_on_statement(AccountType.CUSTOMER, None)

    def test_supplier_hides_invoice_tagged(self):
        assert not is_visible_on_statement(AccountType.SUPPLIER, DocumentType.INVOICE)
        assert is_visible_on_statement(AccountType.SUPPLIER, DocumentType.PURCHASE)

    def test_other_accounts_see_everything(self):
        for document_type in DocumentType:
            assert is_visible_on_statement(AccountType.BANK, document_type)
