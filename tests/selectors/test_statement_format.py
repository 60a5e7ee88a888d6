"""Tests for plain-text statement rendering."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

from books_kernel.domain.dtos import AccountStatement, AccountSummary, StatementEntry
from books_kernel.domain.settings import StatementStyle
from books_kernel.domain.values import AccountType, TransactionKind
from books_kernel.selectors.statement_format import format_statement


def _statement():
    return AccountStatement(
        account=AccountSummary(
            account_id=uuid4(),
            name="Acme Ltd",
            account_type=AccountType.CUSTOMER,
            opening_balance=Decimal("0"),
            current_balance=Decimal("60"),
        ),
        period_start=date(2024, 1, 1),
        period_end=None,
        starting_balance=Decimal("0"),
        ending_balance=Decimal("60"),
        total_debits=Decimal("100"),
        total_credits=Decimal("40"),
        entries=(
            StatementEntry(
                entry_date=date(2024, 1, 5),
                entry_type=TransactionKind.DEBIT,
                reference="INV-00001",
                amount=Decimal("100"),
                signed_amount=Decimal("100"),
                balance=Decimal("100"),
                source="transaction",
            ),
            StatementEntry(
                entry_date=date(2024, 1, 9),
                entry_type=TransactionKind.CREDIT,
                reference=None,
                amount=Decimal("40"),
                signed_amount=Decimal("-40"),
                balance=Decimal("60"),
                source="transaction",
            ),
        ),
    )


class TestFormatStatement:
    def test_default_style(self):
        lines = format_statement(_statement())
        assert lines[0] == "Statement of account: Acme Ltd (customer)"
        assert lines[1] == "Period: 2024-01-01 to today"
        assert any("INV-00001" in line and "$100.00" in line for line in lines)
        assert any("-$40.00" in line for line in lines)
        assert lines[-1].startswith("Closing balance")
        assert lines[-1].endswith("$60.00")

    def test_company_header(self):
        style = StatementStyle(company_name="Corner Shop", company_details=("1 High St",))
        lines = format_statement(_statement(), style)
        assert lines[:3] == ["Corner Shop", "1 High St", ""]

    def test_symbol_after(self):
        style = StatementStyle(currency_symbol="EUR", symbol_position="after")
        lines = format_statement(_statement(), style)
        assert lines[-1].endswith("60.00 EUR")


class TestRenderThroughFacade:
    def test_render(self, books, customer):
        lines = books.render_account_statement(customer.id)
        assert lines[0] == "Statement of account: Acme Ltd (customer)"
