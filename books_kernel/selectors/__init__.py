"""Read-only selectors."""

from books_kernel.selectors.statement_format import format_statement
from books_kernel.selectors.statement_selector import StatementReader

__all__ = ["StatementReader", "format_statement"]
