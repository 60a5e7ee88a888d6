"""Plain-text rendering of an AccountStatement."""

from books_kernel.domain.dtos import AccountStatement
from books_kernel.domain.settings import StatementStyle

_RULE_WIDTH = 78


def _period_label(statement: AccountStatement) -> str:
    start = statement.period_start.isoformat() if statement.period_start else "beginning"
    end = statement.period_end.isoformat() if statement.period_end else "today"
    return f"Period: {start} to {end}"


def format_statement(statement: AccountStatement, style: StatementStyle | None = None) -> list[str]:
    """
    Render a statement as printable lines.

    Company identity and currency formatting come from ``style``; the
    numbers are the statement's own, unchanged.
    """
    style = style or StatementStyle()
    money = style.format_money
    lines: list[str] = []

    if style.company_name:
        lines.append(style.company_name)
    lines.extend(style.company_details)
    if lines:
        lines.append("")

    summary = statement.account
    lines.append(f"Statement of account: {summary.name} ({summary.account_type.value})")
    lines.append(_period_label(statement))
    lines.append("=" * _RULE_WIDTH)
    lines.append(f"{'Date':<12}{'Reference':<18}{'Type':<8}{'Amount':>20}{'Balance':>20}")
    lines.append("-" * _RULE_WIDTH)
    lines.append(f"{'':<12}{'Opening balance':<26}{'':>20}{money(statement.starting_balance):>20}")

    for entry in statement.entries:
        lines.append(
            f"{entry.entry_date.isoformat():<12}"
            f"{(entry.reference or '')[:17]:<18}"
            f"{entry.entry_type.value:<8}"
            f"{money(entry.signed_amount):>20}"
            f"{money(entry.balance):>20}"
        )

    lines.append("-" * _RULE_WIDTH)
    lines.append(f"{'Total debits':<38}{money(statement.total_debits):>20}")
    lines.append(f"{'Total credits':<38}{money(statement.total_credits):>20}")
    lines.append(f"{'Closing balance':<38}{'':>20}{money(statement.ending_balance):>20}")
    return lines
